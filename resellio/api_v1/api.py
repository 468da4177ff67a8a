"""Aggregate router for all Resellio API endpoints."""

from fastapi import APIRouter

from resellio.api_v1.calendar import router as calendar_router
from resellio.api_v1.dashboard import router as dashboard_router
from resellio.api_v1.grab import router as grab_router
from resellio.api_v1.meta_oauth import router as meta_oauth_router
from resellio.api_v1.relay import router as relay_router

api_router = APIRouter()
api_router.include_router(grab_router)
api_router.include_router(meta_oauth_router)
api_router.include_router(relay_router)
api_router.include_router(dashboard_router)
api_router.include_router(calendar_router)

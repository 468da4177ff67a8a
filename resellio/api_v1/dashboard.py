"""Pricing, caption and dashboard-settings endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends

from resellio.api_v1.schemas import (
    CaptionRequest,
    CaptionResponse,
    PricingRequest,
    PricingResponse,
)
from resellio.core.dependencies import get_calendar_service
from resellio.core.models import DashboardSettings
from resellio.core.services.caption import build_caption, count_hashtags
from resellio.core.services.calendar_service import CalendarService
from resellio.core.services.pricing import PricingInput, format_idr, quote

router = APIRouter(tags=["dashboard"])


@router.post("/pricing/quote", response_model=PricingResponse)
async def pricing_quote(payload: PricingRequest) -> dict:
    """Recommend a resale price and the units needed to reach the profit target."""
    result = quote(PricingInput(**payload.model_dump()))
    return {**asdict(result), "final_price_formatted": format_idr(result.final_price)}


@router.post("/caption", response_model=CaptionResponse)
async def caption(payload: CaptionRequest) -> dict:
    text = build_caption(
        niche=payload.niche,
        title=payload.title,
        selling_price=payload.price,
        tone=payload.tone,
        extra_hashtags=payload.extra_hashtags,
        template=payload.template,
    )
    return {"caption": text, "hashtag_count": count_hashtags(text)}


@router.get("/settings", response_model=DashboardSettings)
async def get_dashboard_settings(
    calendar: Annotated[CalendarService, Depends(get_calendar_service)],
) -> DashboardSettings:
    return await calendar.load_settings()


@router.put("/settings", response_model=DashboardSettings)
async def update_dashboard_settings(
    payload: DashboardSettings,
    calendar: Annotated[CalendarService, Depends(get_calendar_service)],
) -> DashboardSettings:
    """Replace the remembered pricing and caption preferences for this session."""
    return await calendar.save_settings(payload)

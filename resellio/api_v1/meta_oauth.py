"""Meta (Facebook Page + Instagram) connection endpoints."""

from __future__ import annotations

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from resellio.api_v1.schemas import (
    ConnectResponse,
    DisconnectResponse,
    ErrorResponse,
    MetaStatusResponse,
)
from resellio.core.dependencies import get_meta_oauth_service, get_session_id
from resellio.core.services.meta_oauth_service import (
    MetaConfigError,
    MetaOAuthError,
    MetaOAuthService,
    with_query,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meta", tags=["meta-oauth"])


def _request_origin(request: Request) -> str:
    return str(request.base_url).rstrip("/")


@router.get(
    "/connect",
    response_model=ConnectResponse,
    responses={status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse}},
)
async def connect(
    request: Request,
    session_id: Annotated[str, Depends(get_session_id)],
    oauth: Annotated[MetaOAuthService, Depends(get_meta_oauth_service)],
):
    """Issue an OAuth state for this session and return the Facebook consent URL."""
    try:
        connect_request = await oauth.begin_connect(session_id, _request_origin(request))
    except MetaConfigError as exc:
        logger.error("Meta OAuth is not configured: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc)},
        )
    return {"oauth_url": connect_request.authorization_url, "state": connect_request.state}


@router.get("/callback", response_class=Response, response_model=None)
async def callback(
    request: Request,
    session_id: Annotated[str, Depends(get_session_id)],
    oauth: Annotated[MetaOAuthService, Depends(get_meta_oauth_service)],
    code: Annotated[Optional[str], Query()] = None,
    state: Annotated[Optional[str], Query()] = None,
    error: Annotated[Optional[str], Query()] = None,
    error_reason: Annotated[Optional[str], Query()] = None,
) -> Response:
    """Finish the consent flow and send the browser back to the dashboard."""
    origin = _request_origin(request)
    try:
        result = await oauth.handle_callback(
            session_id,
            origin,
            code=code,
            state=state,
            error=error_reason or error,
        )
    except MetaOAuthError as exc:
        logger.warning("Meta OAuth callback failed: code=%s", exc.code.value)
        return RedirectResponse(with_query(f"{origin}/", {"meta_error": exc.code.value}))

    return RedirectResponse(with_query(f"{origin}/", {"meta": result.outcome}))


@router.get("/status", response_model=MetaStatusResponse)
async def connection_status(
    session_id: Annotated[str, Depends(get_session_id)],
    oauth: Annotated[MetaOAuthService, Depends(get_meta_oauth_service)],
) -> dict:
    """Report the stored Page / Instagram connection for this session."""
    return (await oauth.status(session_id)).to_dict()


@router.post("/disconnect", response_model=DisconnectResponse)
async def disconnect(
    session_id: Annotated[str, Depends(get_session_id)],
    oauth: Annotated[MetaOAuthService, Depends(get_meta_oauth_service)],
) -> dict:
    await oauth.disconnect(session_id)
    return {"disconnected": True, "status": "not_connected"}

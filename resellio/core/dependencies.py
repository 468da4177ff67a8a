"""
FastAPI dependencies for dependency injection.

Services are built per request from settings; the key-value store is shared
for the lifetime of the application.
"""

import logging
import re
import secrets
from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request, Response

from resellio.core.config import Settings, get_settings
from resellio.core.services.calendar_service import CalendarService
from resellio.core.services.kv_store import KeyValueStore, create_kv_store
from resellio.core.services.meta_graph_service import MetaGraphService
from resellio.core.services.meta_oauth_service import (
    CONNECTION_TTL_SECONDS,
    ConnectionCipher,
    MetaOAuthService,
    parse_scopes,
)
from resellio.core.services.product_grabber import ProductGrabber

logger = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


# ============================================================================
# Storage / Session Dependencies
# ============================================================================


def get_kv_store(request: Request) -> KeyValueStore:
    """Return the application-wide store, creating it if lifespan did not run."""
    store = getattr(request.app.state, "kv_store", None)
    if store is None:
        store = create_kv_store(get_settings().redis.url)
        request.app.state.kv_store = store
    return store


def get_session_id(
    request: Request,
    response: Response,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """
    Read the client's session id from its cookie, issuing a new one if absent.

    All OAuth state, connections and calendar data are keyed by this id.
    """
    cookie_name = settings.security.session_cookie_name
    session_id = request.cookies.get(cookie_name)
    if session_id and _SESSION_ID_RE.match(session_id):
        return session_id

    session_id = secrets.token_urlsafe(24)
    response.set_cookie(
        cookie_name,
        session_id,
        max_age=CONNECTION_TTL_SECONDS,
        httponly=True,
        secure=settings.security.session_cookie_secure,
        samesite="lax",
        path="/",
    )
    return session_id


# ============================================================================
# Service Dependencies
# ============================================================================


def get_product_grabber(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ProductGrabber:
    """Get ProductGrabber instance."""
    return ProductGrabber(
        timeout=settings.scrape.timeout,
        user_agent=settings.scrape.user_agent,
        default_price=settings.scrape.default_price,
    )


async def get_meta_graph_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> AsyncGenerator[MetaGraphService, None]:
    """Yield a MetaGraphService and close its HTTP client afterwards."""
    service = MetaGraphService(
        api_base_url=settings.meta.graph_api_url,
        timeout=settings.meta.timeout,
    )
    try:
        yield service
    finally:
        await service.close()


def get_connection_cipher(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ConnectionCipher:
    return ConnectionCipher(settings.oauth_encryption_key)


def get_meta_oauth_service(
    store: Annotated[KeyValueStore, Depends(get_kv_store)],
    graph: Annotated[MetaGraphService, Depends(get_meta_graph_service)],
    cipher: Annotated[ConnectionCipher, Depends(get_connection_cipher)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MetaOAuthService:
    """Provide the Meta connect flow bound to the configured app credentials."""
    return MetaOAuthService(
        store=store,
        graph=graph,
        cipher=cipher,
        app_id=settings.meta.app_id,
        app_secret=settings.meta.app_secret,
        dialog_url=settings.meta.dialog_url,
        redirect_uri=settings.meta.redirect_uri,
        scopes=parse_scopes(settings.meta.scopes),
        key_prefix=settings.redis.key_prefix,
    )


def get_calendar_service(
    store: Annotated[KeyValueStore, Depends(get_kv_store)],
    session_id: Annotated[str, Depends(get_session_id)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CalendarService:
    """Get CalendarService scoped to the caller's session."""
    return CalendarService(
        store=store,
        session_id=session_id,
        key_prefix=settings.redis.key_prefix,
    )

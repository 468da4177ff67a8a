"""Main FastAPI application for the Resellio dashboard backend."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from resellio.api_v1.api import api_router
from resellio.core.config import get_settings
from resellio.core.logging_config import configure_logging, trace_id_ctx
from resellio.core.rate_limit import limiter
from resellio.core.services.kv_store import create_kv_store

# Configure logging based on environment settings early during startup
settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Opens the session store on startup and closes it on shutdown.
    """
    logger.info("Starting Resellio Dashboard...")
    settings = get_settings()

    store = create_kv_store(settings.redis.url)
    app.state.kv_store = store
    if await store.ping():
        logger.info("Session store reachable")
    else:
        logger.warning("Session store is not reachable; sessions will not persist")

    if not settings.meta.configured:
        logger.warning("META_APP_ID / META_APP_SECRET not set; Meta connect is disabled")

    logger.info(f"Resellio Dashboard started on {settings.host}:{settings.port}")

    yield

    logger.info("Shutting down Resellio Dashboard...")
    await store.close()
    app.state.kv_store = None
    logger.info("Resellio Dashboard shut down complete")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Reseller dashboard: product grabber, pricing, captions and Meta publishing",
        debug=settings.debug,
        lifespan=lifespan,
    )

    # ========================================
    # Middleware
    # ========================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ========================================
    # Routers
    # ========================================

    app.include_router(api_router, prefix="/api")

    # ========================================
    # Root Endpoints
    # ========================================

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "running",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health(request: Request):
        """
        Health check endpoint.

        Returns:
            Health status of the application and its session store
        """
        store = getattr(request.app.state, "kv_store", None)
        store_status = "healthy" if store is not None and await store.ping() else "unhealthy"
        overall_status = "healthy" if store_status == "healthy" else "degraded"

        return {
            "status": overall_status,
            "services": {
                "session_store": store_status,
                "meta_oauth": "configured" if settings.meta.configured else "not_configured",
            },
        }

    # ========================================
    # Exception Handlers
    # ========================================

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Answer malformed grab bodies in the grabber's own error shape."""
        if request.url.path == "/api/grab":
            return JSONResponse(
                status_code=400,
                content={"error": "Request body must be a JSON object with a url field."},
            )
        return await request_validation_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler for unhandled errors."""
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "type": "internal_error",
            },
        )

    return app


# Create application instance
app = create_app()


@app.middleware("http")
async def attach_trace_id(request: Request, call_next):
    """Propagate X-Trace-Id into the logging context and echo it on the response."""
    trace_id = request.headers.get("X-Trace-Id") or str(uuid.uuid4())
    request.state.trace_id = trace_id
    token = trace_id_ctx.set(trace_id)
    try:
        response = await call_next(request)
    finally:
        trace_id_ctx.reset(token)
    response.headers["X-Trace-Id"] = trace_id
    return response


if __name__ == "__main__":
    """
    Run the application using uvicorn.

    For development: python -m resellio.main
    For production: use uvicorn directly (uvicorn resellio.main:app)
    """
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "resellio.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )

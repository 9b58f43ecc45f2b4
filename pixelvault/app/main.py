import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pixelvault.app.api.images import router as images_router
from pixelvault.app.core.config import Settings, settings
from pixelvault.app.core.logging import get_logger, setup_logging
from pixelvault.app.db.store import FileRecordStore, RecordStore
from pixelvault.app.exceptions import PixelVaultException, StorageFailureError
from pixelvault.app.middleware.rate_limit import build_rate_limiters
from pixelvault.app.middleware.request_id import RequestIdMiddleware, get_request_id
from pixelvault.app.middleware.request_size import (
    RequestSizeLimitMiddleware,
    SizeLimitedStream,
    payload_too_large_content,
)
from pixelvault.app.services.access_guard import AccessGuard


def create_app(
    app_settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use instead of the environment-derived ones
        store: Record store to use instead of a FileRecordStore under
            ``storage_dir``

    Returns:
        Configured FastAPI application instance
    """
    app_settings = app_settings or settings

    setup_logging(app_settings)
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Validates the shared secret, prepares the record store and builds
        the per-instance access guard and rate limiters on startup.
        """
        if not app_settings.upload_password:
            logger.error("UPLOAD_PASSWORD is not set")
            raise RuntimeError(
                "UPLOAD_PASSWORD environment variable is not set. "
                "Please set a password before starting the server."
            )

        record_store = store
        if record_store is None:
            record_store = FileRecordStore(app_settings.storage_dir)
            record_store.ensure_root()

        app.state.settings = app_settings
        app.state.store = record_store
        app.state.access_guard = AccessGuard(
            max_failures=app_settings.password_max_failures,
            lock_duration_seconds=app_settings.lock_duration_seconds,
        )
        app.state.rate_limiters = build_rate_limiters(app_settings)

        logger.info(
            "Application startup complete",
            extra={
                "store": type(record_store).__name__,
                "redis_rate_limits": app_settings.redis_enabled,
                "debug_mode": app_settings.debug,
            },
        )

        yield

        for limiter in app.state.rate_limiters.values():
            await limiter.cleanup()

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="PixelVault",
        description="Password-protected PNG/JPEG upload service storing decoded RGBA pixel data",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )

    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=app_settings.max_upload_bytes)

    # Request ID middleware for tracing (added last, so outermost)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(images_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Health check with record store status."""
        health_status: dict[str, Any] = {
            "status": "ok",
            "components": {},
        }

        try:
            await request.app.state.store.check()
            health_status["components"]["storage"] = {"status": "ok"}
        except StorageFailureError:
            health_status["status"] = "degraded"
            health_status["components"]["storage"] = {"status": "error"}

        health_status["components"]["rate_limiter"] = {
            "status": "ok",
            "backend": "redis" if app_settings.redis_enabled else "memory",
        }
        return health_status

    @app.exception_handler(PixelVaultException)
    async def pixelvault_exception_handler(
        request: Request, exc: PixelVaultException
    ) -> JSONResponse:
        """Translate domain errors into JSON responses with their status."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error_code, "message": exc.message},
            headers=exc.headers(),
        )

    @app.exception_handler(SizeLimitedStream.SizeExceededError)
    async def payload_too_large_handler(
        request: Request, exc: SizeLimitedStream.SizeExceededError
    ) -> JSONResponse:
        """Streamed bodies overrun the limit while a route parses its form."""
        return JSONResponse(status_code=413, content=payload_too_large_content(exc.detail))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; full details go to the
        server log. Debug mode adds the exception message and type.
        """
        request_id = get_request_id(request)

        logger.error(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
                "traceback": "".join(traceback.format_exception(exc)),
            },
        )

        content: dict[str, Any] = {
            "error": "internal_error",
            "message": "Internal server error",
            "request_id": request_id,
        }
        if app_settings.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__

        return JSONResponse(status_code=500, content=content)

    return app


def run() -> None:
    """Serve the application with uvicorn using the configured host/port."""
    import uvicorn

    uvicorn.run(
        "pixelvault.app.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


# Create the application instance
app = create_app()

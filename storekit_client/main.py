"""FastAPI application for the sandbox verification endpoint."""

import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storekit_client import __version__
from storekit_client.config import Config
from storekit_client.logging_config import configure_logging, get_logger
from storekit_client.middleware import RequestLoggingMiddleware

logger = get_logger(__name__)


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Loaded configuration (loaded from CONFIG_PATH/default if None)

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    json_format = os.getenv("LOG_FORMAT", "json").lower() == "json"
    configure_logging(log_level=log_level, json_format=json_format)

    config = config or Config()

    app = FastAPI(
        title="StoreKit Sandbox Verification",
        description="Local receipt verification endpoint for simulated purchases",
        version=__version__,
    )
    app.state.config = config

    app.add_middleware(RequestLoggingMiddleware)

    from storekit_client.api.verify_receipt import router as verify_router

    app.include_router(verify_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check."""
        return {
            "status": "healthy",
            "shared_secret": "configured" if config.shared_secret else "missing",
            "products": str(len(config.products)),
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    logger.info("app_created", endpoints=len(app.routes))
    return app

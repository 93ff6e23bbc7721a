"""
FastAPI application setup.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
import time
import uuid
from datetime import datetime

from dishscan.config import get_settings
from dishscan.core.error_handlers import setup_error_handlers, error_handler
from dishscan.core.logging import configure_logging

settings = get_settings()

configure_logging(settings.log_level.value, settings.log_format)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        **settings.get_cors_config()
    )

    setup_error_handlers(app)

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Log requests and responses with timing information."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(
            f"Request {request_id} started: {request.method} {request.url.path}",
            extra={'request_id': request_id}
        )

        response = await call_next(request)

        processing_time = (time.time() - start_time) * 1000
        logger.info(
            f"Request {request_id} completed: {response.status_code} ({processing_time:.2f}ms)",
            extra={'request_id': request_id}
        )
        return response

    @app.get("/")
    async def root():
        """Root endpoint for basic health check."""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "status": "running"
        }

    @app.get("/health")
    async def health_check():
        """Health check with configuration status and error statistics."""
        return {
            "status": "healthy" if settings.inference.api_key else "degraded",
            "version": settings.app_version,
            "timestamp": datetime.utcnow().isoformat(),
            "details": {
                "inference": {"configured": bool(settings.inference.api_key), "model": settings.inference.model},
                "ocr": {"enabled": settings.scan.ocr_enabled, "languages": settings.scan.ocr_languages},
            },
            "error_statistics": error_handler.get_error_statistics(),
        }

    from dishscan.api.scan_endpoints import router as scan_router
    app.include_router(scan_router)

    return app


# Create application instance
app = create_app()

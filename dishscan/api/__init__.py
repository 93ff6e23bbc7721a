# API routers

from .scan_endpoints import router as scan_router

__all__ = ["scan_router"]

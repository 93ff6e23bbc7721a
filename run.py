#!/usr/bin/env python3
"""
Application startup script.
"""

import argparse

import uvicorn

from dishscan.config import get_settings


def main():
    """Start the API server, with command line overrides for settings"""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Dish Scan Backend Server")
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (overrides HOST)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (overrides PORT)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload (overrides RELOAD)"
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        default=None,
        help="Uvicorn log level (overrides LOG_LEVEL)"
    )
    args = parser.parse_args()

    host = args.host or settings.host
    port = args.port or settings.port
    log_level = args.log_level or settings.log_level.value.lower()

    print(f"Starting {settings.app_name} v{settings.app_version}")
    print(f"Environment: {settings.environment.value}")
    print(f"Server: {host}:{port}")
    print(f"OCR: {'enabled' if settings.scan.ocr_enabled else 'disabled'} ({'+'.join(settings.scan.ocr_languages)})")
    print(f"Inference model: {settings.inference.model}")

    uvicorn.run(
        "dishscan.main:app",
        host=host,
        port=port,
        reload=args.reload or settings.reload,
        log_level=log_level,
    )


if __name__ == "__main__":
    main()

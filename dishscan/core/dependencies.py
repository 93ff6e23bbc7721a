"""
Dependency providers for FastAPI.

Builds the scan pipeline once from settings and hands it to endpoints, so
tests can swap it through ``app.dependency_overrides``.
"""

from fastapi import Request
from typing import Optional
import logging
import uuid

from dishscan.config.settings import Settings, get_settings
from dishscan.core.scan_pipeline import ScanPipeline
from dishscan.services.image_resolver import ImageResolver
from dishscan.services.inference_service import InferenceService
from dishscan.services.ocr_service import NullOCREngine, OCRService, TesseractOCREngine
from dishscan.services.preloader import ImagePreloader
from dishscan.services.text_localizer import TextLocalizer

logger = logging.getLogger(__name__)

_pipeline: Optional[ScanPipeline] = None


def build_scan_pipeline(settings: Optional[Settings] = None) -> ScanPipeline:
    """
    Wire a ScanPipeline from settings.

    OCR is a pluggable capability: with ``SCAN_OCR_ENABLED=false`` the
    pipeline runs on a no-op engine and keeps inference bounding boxes.
    """
    settings = settings or get_settings()
    scan_config = settings.scan

    if scan_config.ocr_enabled:
        engine = TesseractOCREngine(contrast_factor=scan_config.ocr_contrast_factor)
    else:
        engine = NullOCREngine()
    logger.info(f"Building scan pipeline (ocr={type(engine).__name__}, model={settings.inference.model})")

    return ScanPipeline(
        inference_service=InferenceService(config=settings.inference),
        ocr_service=OCRService(engine=engine, languages=scan_config.ocr_languages),
        localizer=TextLocalizer(scan_config),
        image_resolver=ImageResolver(settings.thumbnails),
        preloader=ImagePreloader(timeout_ms=scan_config.preload_timeout_ms),
        config=scan_config,
    )


def get_scan_pipeline() -> ScanPipeline:
    """Get the scan pipeline singleton."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_scan_pipeline()
    return _pipeline


def reset_scan_pipeline() -> None:
    """Drop the singleton so the next request rebuilds it from settings."""
    global _pipeline
    _pipeline = None


def get_request_id(request: Request) -> str:
    """Request id set by the logging middleware, or a fresh one."""
    request_id = getattr(request.state, 'request_id', None)
    if not request_id:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id

"""
Shared fixtures and fakes for the dish scan test suite.

The inference service and OCR engine are external collaborators, so tests
use controllable fakes for both.
"""

import asyncio
import io
from typing import List, Optional, Sequence

import pytest
from PIL import ExifTags, Image

from dishscan.config.settings import ScanSettings
from dishscan.core.scan_pipeline import ScanPipeline
from dishscan.models.internal_models import (
    EncodedImage,
    InferenceResult,
    InferredDish,
    OCRLine,
    PixelBox,
    ScanType,
    SpiceLevel,
)
from dishscan.services.ocr_service import BaseOCREngine, OCRService
from dishscan.services.preloader import ImagePreloader


def make_image_bytes(width: int = 1000, height: int = 500, fmt: str = "PNG") -> bytes:
    img = Image.new("RGB", (width, height), color="white")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_oriented_jpeg(width: int, height: int, orientation: int) -> bytes:
    """JPEG stored as width x height, tagged with an EXIF orientation"""
    img = Image.new("RGB", (width, height), color="white")
    exif = Image.Exif()
    exif[ExifTags.Base.Orientation] = orientation
    buf = io.BytesIO()
    img.save(buf, format="JPEG", exif=exif)
    return buf.getvalue()


def make_dish(original_name: str, name: Optional[str] = None, english_name: str = "") -> InferredDish:
    return InferredDish(
        name=name or original_name,
        original_name=original_name,
        english_name=english_name,
        description="Test dish",
        tags=("Savory",),
        allergens=("Soy",),
        spice_level=SpiceLevel.NONE,
        category="Main",
        bounding_box=(0, 0, 0, 0),
    )


def make_line(text: str, x0: int, y0: int, x1: int, y1: int) -> OCRLine:
    return OCRLine(text=text, bbox=PixelBox(x0=x0, y0=y0, x1=x1, y1=y1))


class FakeInferenceService:
    """Inference stand-in; optionally waits on a gate before answering"""

    def __init__(self, result: Optional[InferenceResult] = None, error: Optional[Exception] = None,
                 gate: Optional[asyncio.Event] = None):
        self.result = result or InferenceResult(is_menu=False, dishes=[])
        self.error = error
        self.gate = gate
        self.calls = []
        self.finished = False

    async def analyze(self, image: EncodedImage, scan_type: ScanType, target_language: str) -> InferenceResult:
        self.calls.append((scan_type, target_language))
        if self.gate is not None:
            await self.gate.wait()
        self.finished = True
        if self.error is not None:
            raise self.error
        return self.result


class FakeOCREngine(BaseOCREngine):
    """OCR engine stand-in returning fixed lines"""

    def __init__(self, lines: Sequence[OCRLine] = (), error: Optional[Exception] = None,
                 gate: Optional[asyncio.Event] = None):
        self.lines = list(lines)
        self.error = error
        self.gate = gate
        self.languages = None
        self.finished = False

    async def recognize(self, image: EncodedImage, languages: Sequence[str]) -> List[OCRLine]:
        self.languages = list(languages)
        if self.gate is not None:
            await self.gate.wait()
        self.finished = True
        if self.error is not None:
            raise self.error
        return self.lines


class RecordingLoader:
    """Preloader loader that records URLs and succeeds immediately"""

    def __init__(self):
        self.urls = []

    async def __call__(self, url: str) -> None:
        self.urls.append(url)


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def fast_config() -> ScanSettings:
    return ScanSettings(
        progress_tick_ms=10,
        completion_delay_ms=0,
        failure_abort_delay_ms=0,
        quota_abort_delay_ms=0,
        preload_timeout_ms=200,
    )


@pytest.fixture
def recording_loader() -> RecordingLoader:
    return RecordingLoader()


@pytest.fixture
def build_pipeline(fast_config, recording_loader):
    """Factory for pipelines wired with fakes"""

    def _build(inference: FakeInferenceService, engine: Optional[BaseOCREngine] = None, **kwargs) -> ScanPipeline:
        return ScanPipeline(
            inference_service=inference,
            ocr_service=OCRService(engine=engine or FakeOCREngine()),
            preloader=ImagePreloader(timeout_ms=fast_config.preload_timeout_ms, loader=recording_loader),
            config=kwargs.pop("config", fast_config),
            **kwargs,
        )

    return _build

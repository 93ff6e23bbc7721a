"""
OCR Service for locating menu text in scan images.

OCR only sharpens dish locations, so the service never raises: any engine
failure degrades to "no lines" and the pipeline keeps the inference
service's bounding boxes.
"""

import asyncio
import io
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

import pytesseract
from PIL import Image, ImageEnhance, ImageOps

from dishscan.core.exceptions import OCRFailure
from dishscan.models.internal_models import EncodedImage, OCRLine, PixelBox


class BaseOCREngine(ABC):
    """Abstract base class for OCR engines"""

    @abstractmethod
    async def recognize(self, image: EncodedImage, languages: Sequence[str]) -> List[OCRLine]:
        """Recognize text lines with pixel-space bounding boxes"""
        pass


class NullOCREngine(BaseOCREngine):
    """OCR engine used when text grounding is disabled; always returns no lines"""

    async def recognize(self, image: EncodedImage, languages: Sequence[str]) -> List[OCRLine]:
        return []


class TesseractOCREngine(BaseOCREngine):
    """Tesseract-based line recognizer"""

    DEFAULT_CONFIG = "--psm 3"

    def __init__(self, contrast_factor: float = 1.5, config: str = DEFAULT_CONFIG):
        self.contrast_factor = contrast_factor
        self.config = config
        self.logger = logging.getLogger(__name__)

    async def recognize(self, image: EncodedImage, languages: Sequence[str]) -> List[OCRLine]:
        # pytesseract shells out to the tesseract binary, keep it off the event loop
        return await asyncio.to_thread(self._recognize_sync, image.data, "+".join(languages))

    def _recognize_sync(self, image_bytes: bytes, lang: str) -> List[OCRLine]:
        try:
            prepared = self._prepare(image_bytes)
            data = pytesseract.image_to_data(
                prepared,
                lang=lang,
                config=self.config,
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
            raise OCRFailure(f"Tesseract failed: {e}")
        return group_words_into_lines(data)

    def _prepare(self, image_bytes: bytes) -> Image.Image:
        """Grayscale + contrast boost; geometry is left untouched so boxes stay in source pixels"""
        img = Image.open(io.BytesIO(image_bytes))
        img = ImageOps.exif_transpose(img)
        img = ImageOps.grayscale(img)
        return ImageEnhance.Contrast(img).enhance(self.contrast_factor)


def group_words_into_lines(data: Dict[str, list]) -> List[OCRLine]:
    """
    Merge Tesseract word rows into lines.

    Words sharing ``(block_num, par_num, line_num)`` form one line whose box
    is the union of the word boxes. Lines keep the engine's reading order.
    """
    lines: Dict[Tuple[int, int, int], dict] = {}
    texts = data.get("text", [])

    for i, raw_text in enumerate(texts):
        text = str(raw_text or "").strip()
        if not text:
            continue
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            conf = -1.0
        if conf < 0:
            continue

        key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
        left, top = int(data["left"][i]), int(data["top"][i])
        right, bottom = left + int(data["width"][i]), top + int(data["height"][i])

        entry = lines.get(key)
        if entry is None:
            lines[key] = {
                "words": [text],
                "confs": [conf],
                "box": [left, top, right, bottom],
            }
        else:
            entry["words"].append(text)
            entry["confs"].append(conf)
            box = entry["box"]
            box[0], box[1] = min(box[0], left), min(box[1], top)
            box[2], box[3] = max(box[2], right), max(box[3], bottom)

    results = []
    for entry in lines.values():
        x0, y0, x1, y1 = entry["box"]
        results.append(OCRLine(
            text=" ".join(entry["words"]),
            bbox=PixelBox(x0=x0, y0=y0, x1=x1, y1=y1),
            confidence=sum(entry["confs"]) / len(entry["confs"]) / 100.0,
        ))
    return results


class OCRService:
    """
    OCR adapter used by the scan pipeline.

    Wraps an engine with the configured language hints and converts every
    engine failure into an empty line list.
    """

    def __init__(self, engine: Optional[BaseOCREngine] = None, languages: Optional[Sequence[str]] = None):
        self.engine = engine or TesseractOCREngine()
        self.languages = list(languages or ["chi_sim", "eng"])
        self.logger = logging.getLogger(__name__)

    @property
    def enabled(self) -> bool:
        return not isinstance(self.engine, NullOCREngine)

    async def recognize_lines(self, image: EncodedImage) -> List[OCRLine]:
        """
        Recognize text lines in an encoded image.

        Returns:
            OCR lines in engine order; empty when OCR is disabled or fails
        """
        start_time = time.time()
        try:
            lines = await self.engine.recognize(image, self.languages)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.warning(f"OCR failed, continuing without text geometry: {e}")
            return []

        self.logger.info(
            f"OCR recognized {len(lines)} lines in {int((time.time() - start_time) * 1000)}ms",
            extra={'items_count': len(lines)}
        )
        return list(lines)

"""
Internal data models and enums for the dish scan pipeline.

None of these objects outlive a single pipeline invocation. Bounding boxes
on dishes are always ``[y_min, x_min, y_max, x_max]`` in the 0-1000
normalized space of the original image.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Any, Tuple, Union
from enum import Enum
from pathlib import Path


# Anything the image codec knows how to read: raw bytes, a filesystem path,
# a data: URI or an http(s) URL.
ImageHandle = Union[bytes, str, Path]


class ScanType(str, Enum):
    """What the user says they photographed"""
    DISH = "dish"
    MENU = "menu"


class SpiceLevel(str, Enum):
    """Spice scale returned by the inference service"""
    NONE = "None"
    MILD = "Mild"
    MEDIUM = "Medium"
    HOT = "Hot"


class TargetLanguage(str, Enum):
    """Languages dish details can be translated into"""
    ENGLISH = "English"
    CHINESE_SIMPLIFIED = "Chinese (Simplified)"
    CHINESE_TRADITIONAL = "Chinese (Traditional)"
    JAPANESE = "Japanese"
    KOREAN = "Korean"
    SPANISH = "Spanish"
    FRENCH = "French"
    THAI = "Thai"
    VIETNAMESE = "Vietnamese"
    GERMAN = "German"
    ITALIAN = "Italian"


@dataclass(frozen=True)
class ScanRequest:
    """Immutable input for one scan invocation"""
    source_image: Any
    scan_type: ScanType
    target_language: str = TargetLanguage.ENGLISH.value


@dataclass(frozen=True)
class EncodedImage:
    """
    Raw image payload with transport framing stripped.

    ``width`` and ``height`` are the upright size after the EXIF orientation
    is applied, the same frame OCR boxes are reported in.
    """
    data: bytes
    mime_type: str
    width: int
    height: int

    def __post_init__(self):
        if not self.data:
            raise ValueError("Encoded image payload must not be empty")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Image dimensions must be positive")


@dataclass(frozen=True)
class PixelBox:
    """OCR geometry in native pixel coordinates of the source image"""
    x0: int
    y0: int
    x1: int
    y1: int


@dataclass(frozen=True)
class OCRLine:
    """One recognized text run from the OCR engine"""
    text: str
    bbox: PixelBox
    confidence: Optional[float] = None


@dataclass(frozen=True)
class InferredDish:
    """A dish as described by the inference service"""
    name: str
    original_name: str
    english_name: str
    description: str
    tags: Tuple[str, ...]
    allergens: Tuple[str, ...]
    spice_level: SpiceLevel
    category: str
    bounding_box: Tuple[float, ...]


@dataclass(frozen=True)
class InferenceResult:
    """Parsed inference response"""
    is_menu: bool
    dishes: List[InferredDish] = field(default_factory=list)


@dataclass(frozen=True)
class LocalizedDish:
    """
    Inferred dish after localization.

    ``is_ocr_refined`` is True only when ``bounding_box`` was derived from the
    single best-matching OCR line; otherwise the box is the service estimate.
    """
    dish: InferredDish
    bounding_box: Tuple[float, ...]
    is_ocr_refined: bool = False
    matched_line: Optional[OCRLine] = None
    match_score: Optional[float] = None


@dataclass(frozen=True)
class Dish:
    """Final dish record handed to the caller; sequence fields are tuples"""
    id: str
    name: str
    original_name: str
    english_name: str
    description: str
    tags: Tuple[str, ...]
    allergens: Tuple[str, ...]
    spice_level: SpiceLevel
    category: str
    bounding_box: Tuple[float, ...]
    image: str
    is_menu: bool
    is_ocr_refined: bool = False


@dataclass
class PreloadReport:
    """Outcome of a bounded preload race"""
    requested: int = 0
    loaded: int = 0
    failed: int = 0
    timed_out: bool = False
    elapsed_ms: int = 0


@dataclass
class ScanResult:
    """Terminal result of a scan run"""
    scan_id: str
    dishes: List[Dish]
    is_menu: bool
    preload: Optional[PreloadReport] = None

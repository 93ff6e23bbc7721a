# Data models

from .internal_models import (
    ImageHandle,
    ScanType,
    SpiceLevel,
    TargetLanguage,
    ScanRequest,
    EncodedImage,
    PixelBox,
    OCRLine,
    InferredDish,
    InferenceResult,
    LocalizedDish,
    Dish,
    PreloadReport,
    ScanResult,
)
from .api_models import (
    InferredDishPayload,
    InferencePayload,
    DishResponse,
    ScanResponse,
    StandardErrorResponse,
    Envelope,
)

__all__ = [
    'ImageHandle',
    'ScanType',
    'SpiceLevel',
    'TargetLanguage',
    'ScanRequest',
    'EncodedImage',
    'PixelBox',
    'OCRLine',
    'InferredDish',
    'InferenceResult',
    'LocalizedDish',
    'Dish',
    'PreloadReport',
    'ScanResult',
    'InferredDishPayload',
    'InferencePayload',
    'DishResponse',
    'ScanResponse',
    'StandardErrorResponse',
    'Envelope',
]

# Business logic services

from .image_codec import ImageCodec, to_data_uri, decode_data_uri
from .ocr_service import OCRService, BaseOCREngine, TesseractOCREngine, NullOCREngine
from .inference_service import InferenceService, parse_inference_response
from .text_localizer import TextLocalizer, normalize_text, score_match
from .image_resolver import ImageResolver, build_search_query
from .preloader import ImagePreloader

__all__ = [
    'ImageCodec',
    'to_data_uri',
    'decode_data_uri',
    'OCRService',
    'BaseOCREngine',
    'TesseractOCREngine',
    'NullOCREngine',
    'InferenceService',
    'parse_inference_response',
    'TextLocalizer',
    'normalize_text',
    'score_match',
    'ImageResolver',
    'build_search_query',
    'ImagePreloader',
]

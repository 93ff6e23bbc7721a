"""
Core pipeline, progress reporting and error handling for the dish scan backend.
"""

from .exceptions import (
    ErrorCode,
    DishScanException,
    ImageReadError,
    ImageTooLargeError,
    QuotaExceededError,
    InferenceParseError,
    InferenceServiceError,
    OCRFailure,
    ImageLoadFailure,
    ScanCancelled,
    is_quota_error,
)
from .progress import CancellationToken, ProgressReporter, ScanState, InvalidStateTransition

__all__ = [
    "ErrorCode",
    "DishScanException",
    "ImageReadError",
    "ImageTooLargeError",
    "QuotaExceededError",
    "InferenceParseError",
    "InferenceServiceError",
    "OCRFailure",
    "ImageLoadFailure",
    "ScanCancelled",
    "is_quota_error",
    "CancellationToken",
    "ProgressReporter",
    "ScanState",
    "InvalidStateTransition",
]

"""
Custom exceptions for the dish scan backend.

Fatal errors (image read, inference) abort a scan run; OCR and per-image
preload failures are contained by the component that raised them.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    # Image errors
    IMAGE_READ_FAILED = "IMAGE_READ_FAILED"
    IMAGE_TOO_LARGE = "IMAGE_TOO_LARGE"
    IMAGE_LOAD_FAILED = "IMAGE_LOAD_FAILED"

    # Inference errors
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    INFERENCE_PARSE_FAILED = "INFERENCE_PARSE_FAILED"
    INFERENCE_FAILED = "INFERENCE_FAILED"

    # OCR errors
    OCR_FAILED = "OCR_FAILED"

    # Run control
    SCAN_CANCELLED = "SCAN_CANCELLED"

    # Generic errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class DishScanException(Exception):
    """Base exception for the dish scan backend."""

    # Shown to the user while the scan screen waits to abort
    user_message = "Error scanning. Try again."

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code


class ImageReadError(DishScanException):
    """Raised when the source image cannot be read or encoded."""

    def __init__(self, message: str = "Source image could not be read", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.IMAGE_READ_FAILED,
            details=details,
            status_code=400
        )


class ImageTooLargeError(DishScanException):
    """Raised when an uploaded image exceeds size limits."""

    def __init__(self, size_mb: float, max_size_mb: int):
        super().__init__(
            message=f"Image size {size_mb:.1f}MB exceeds maximum allowed size of {max_size_mb}MB",
            error_code=ErrorCode.IMAGE_TOO_LARGE,
            details={"size_mb": size_mb, "max_size_mb": max_size_mb},
            status_code=413
        )


class QuotaExceededError(DishScanException):
    """Raised when the inference service reports rate-limit or quota exhaustion."""

    user_message = "Gemini API Quota Exceeded. Please try again later."

    def __init__(self, message: str = "Inference service quota exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.QUOTA_EXCEEDED,
            details=details,
            status_code=429
        )


class InferenceParseError(DishScanException):
    """Raised when the inference response does not match the dish schema."""

    def __init__(self, message: str = "Inference response could not be parsed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.INFERENCE_PARSE_FAILED,
            details=details,
            status_code=502
        )


class InferenceServiceError(DishScanException):
    """Raised when the inference call fails for a reason other than quota."""

    def __init__(self, message: str = "Inference service call failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.INFERENCE_FAILED,
            details=details,
            status_code=502
        )


class OCRFailure(DishScanException):
    """Raised by OCR engines; the OCR adapter converts it into zero lines."""

    def __init__(self, message: str = "OCR engine failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.OCR_FAILED,
            details=details,
            status_code=500
        )


class ImageLoadFailure(DishScanException):
    """Raised when a single thumbnail fails to load; contained by the preloader."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            message=f"Image load failed for {url}: {reason}",
            error_code=ErrorCode.IMAGE_LOAD_FAILED,
            details={"url": url, "reason": reason},
            status_code=502
        )


class ScanCancelled(DishScanException):
    """Raised at a suspension point once the caller has abandoned the scan."""

    def __init__(self, stage: str):
        super().__init__(
            message=f"Scan cancelled before {stage}",
            error_code=ErrorCode.SCAN_CANCELLED,
            details={"stage": stage},
            status_code=499
        )


def is_quota_error(exc: BaseException) -> bool:
    """
    Check whether an inference SDK error signals rate limiting or quota exhaustion.

    Matches HTTP 429 codes, a RESOURCE_EXHAUSTED status, or a message that
    mentions 429 or quota.
    """
    if getattr(exc, "code", None) == 429 or getattr(exc, "status_code", None) == 429:
        return True
    if str(getattr(exc, "status", "") or "").upper() == "RESOURCE_EXHAUSTED":
        return True
    text = str(exc)
    return "429" in text or "quota" in text.lower() or "RESOURCE_EXHAUSTED" in text

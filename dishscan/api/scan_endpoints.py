"""
Scan API endpoints.

- POST /api/v1/scan: analyze one uploaded dish photo or menu image
"""

from fastapi import APIRouter, UploadFile, File, Depends
import logging
import time

from dishscan.config.settings import get_settings
from dishscan.core.dependencies import get_scan_pipeline, get_request_id
from dishscan.core.exceptions import ImageReadError, ImageTooLargeError
from dishscan.core.scan_pipeline import ScanPipeline
from dishscan.models.api_models import DishResponse, Envelope, ScanResponse, StandardErrorResponse
from dishscan.models.internal_models import ScanRequest, ScanType, TargetLanguage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["scan"])


@router.post(
    "/scan",
    response_model=Envelope[ScanResponse],
    responses={
        400: {"model": StandardErrorResponse, "description": "Unreadable image"},
        413: {"model": StandardErrorResponse, "description": "Image too large"},
        429: {"model": StandardErrorResponse, "description": "Inference quota exhausted"},
        502: {"model": StandardErrorResponse, "description": "Inference service failure"},
    }
)
async def scan_image(
    image: UploadFile = File(..., description="Dish photo or menu image (JPEG, PNG, WebP)"),
    scan_type: ScanType = ScanType.MENU,
    target_language: TargetLanguage = TargetLanguage.ENGLISH,
    pipeline: ScanPipeline = Depends(get_scan_pipeline),
    request_id: str = Depends(get_request_id)
) -> Envelope[ScanResponse]:
    """
    Scan an uploaded image into dish records.

    Args:
        image: Uploaded image file
        scan_type: "dish" for a food photo, "menu" for a menu
        target_language: Language for names, descriptions, tags and allergens

    Returns:
        Envelope with the ScanResponse
    """
    start_time = time.time()

    logger.info(
        f"Scan request {request_id}",
        extra={'request_id': request_id, 'scan_type': scan_type.value}
    )

    try:
        image_data = await image.read()
    except Exception as e:
        raise ImageReadError(f"Failed to read uploaded image: {e}")

    max_bytes = get_settings().max_upload_mb * 1024 * 1024
    if len(image_data) > max_bytes:
        raise ImageTooLargeError(len(image_data) / (1024 * 1024), get_settings().max_upload_mb)

    result = await pipeline.scan(ScanRequest(
        source_image=image_data,
        scan_type=scan_type,
        target_language=target_language.value,
    ))

    response = ScanResponse(
        request_id=request_id,
        scan_id=result.scan_id,
        is_menu=result.is_menu,
        dishes=[DishResponse.from_dish(dish) for dish in result.dishes],
        total_items_found=len(result.dishes),
        processing_time_ms=int((time.time() - start_time) * 1000),
    )
    return Envelope[ScanResponse](status="ok", data=response)

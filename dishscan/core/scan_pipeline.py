"""
Scan pipeline for dish and menu photos.

Orchestrates the complete workflow from image to dish records:
1. Image encoding
2. Inference and OCR, dispatched together and joined
3. Text localization of dish bounding boxes
4. Display image resolution
5. Bounded image preloading (menu scans only)

Inference and encoding failures are fatal to a run. OCR and preload
failures degrade locally.
"""

import asyncio
import logging
import time
import uuid
from typing import Callable, List, Optional

from dishscan.config.settings import ScanSettings
from dishscan.core.exceptions import DishScanException, QuotaExceededError, ScanCancelled
from dishscan.core.progress import CancellationToken, ProgressCallback, ProgressReporter, ScanState
from dishscan.models.internal_models import Dish, ScanRequest, ScanResult, ScanType
from dishscan.services.image_codec import ImageCodec
from dishscan.services.image_resolver import ImageResolver
from dishscan.services.inference_service import InferenceService
from dishscan.services.ocr_service import OCRService
from dishscan.services.preloader import ImagePreloader
from dishscan.services.text_localizer import TextLocalizer

CompleteCallback = Callable[[List[Dish], bool], None]
CancelCallback = Callable[[], None]

logger = logging.getLogger(__name__)


class ScanPipeline:
    """
    Orchestrates one scan per call.

    Nothing is shared between runs; every invocation owns its own results.
    """

    def __init__(
        self,
        inference_service: InferenceService,
        ocr_service: OCRService,
        codec: Optional[ImageCodec] = None,
        localizer: Optional[TextLocalizer] = None,
        image_resolver: Optional[ImageResolver] = None,
        preloader: Optional[ImagePreloader] = None,
        config: Optional[ScanSettings] = None,
    ):
        self.config = config or ScanSettings()
        self.inference_service = inference_service
        self.ocr_service = ocr_service
        self.codec = codec or ImageCodec()
        self.localizer = localizer or TextLocalizer(self.config)
        self.image_resolver = image_resolver or ImageResolver()
        self.preloader = preloader or ImagePreloader(timeout_ms=self.config.preload_timeout_ms)
        self.logger = logging.getLogger(__name__)

    async def scan(
        self,
        request: ScanRequest,
        reporter: Optional[ProgressReporter] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ScanResult:
        """
        Run a scan and return its result.

        Raises:
            ImageReadError, QuotaExceededError, InferenceParseError,
            InferenceServiceError: Fatal failures
            ScanCancelled: The token was cancelled at a suspension point
        """
        token = cancel_token or (reporter.cancel_token if reporter else CancellationToken())
        reporter = reporter or ProgressReporter(cancel_token=token)
        scan_id = uuid.uuid4().hex
        log_extra = {'scan_id': scan_id, 'scan_type': request.scan_type.value}
        start_time = time.time()

        try:
            reporter.transition(ScanState.ENCODING, "Analyzing image & text...")
            reporter.start_ticking()
            encoded = await self.codec.encode(request.source_image)
            token.raise_if_cancelled("analysis")

            reporter.transition(ScanState.ANALYZING)
            # Join, not race: localization needs both dish names and OCR geometry
            inference, lines = await asyncio.gather(
                self.inference_service.analyze(encoded, request.scan_type, request.target_language),
                self.ocr_service.recognize_lines(encoded),
            )
            reporter.stop_ticking()
            token.raise_if_cancelled("localization")

            reporter.transition(ScanState.LOCALIZING, "Refining locations...")
            localized = self.localizer.localize(inference.dishes, lines, encoded.width, encoded.height)
            token.raise_if_cancelled("image resolution")

            is_menu = inference.is_menu or request.scan_type == ScanType.MENU
            reporter.transition(ScanState.RESOLVING_IMAGES, "Finding dish photos...")
            dishes = self.image_resolver.resolve(localized, is_menu, encoded, scan_id)

            preload = None
            if is_menu and dishes:
                reporter.transition(ScanState.PRELOADING, "Loading images...")
                preload = await self.preloader.preload([dish.image for dish in dishes])
            token.raise_if_cancelled("completion")

            self.logger.info(
                f"Scan produced {len(dishes)} dishes (menu={is_menu})",
                extra={**log_extra, 'items_count': len(dishes),
                       'elapsed_ms': int((time.time() - start_time) * 1000)}
            )
            return ScanResult(scan_id=scan_id, dishes=dishes, is_menu=is_menu, preload=preload)

        except ScanCancelled as e:
            self.logger.info(f"Scan abandoned by caller: {e.message}", extra={**log_extra, 'stage': reporter.state.value})
            raise
        except DishScanException as e:
            self.logger.error(
                f"Scan failed at stage {reporter.state.value}: {e.message}",
                extra={**log_extra, 'stage': reporter.state.value}
            )
            raise
        finally:
            reporter.stop_ticking()

    async def run(
        self,
        request: ScanRequest,
        on_complete: CompleteCallback,
        on_cancel: CancelCallback,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        """
        Callback-shaped scan for interactive callers.

        ``on_complete(dishes, is_menu)`` fires exactly once on success.
        On failure the status text is shown, and ``on_cancel()`` fires once
        after a grace delay. After ``cancel_token.cancel()`` neither fires.
        """
        token = cancel_token or CancellationToken()
        reporter = ProgressReporter(
            on_progress=on_progress,
            cancel_token=token,
            tick_interval_ms=self.config.progress_tick_ms,
            tick_cap=self.config.progress_tick_cap,
        )
        reporter.set_status("Scanning Menu..." if request.scan_type == ScanType.MENU else "Analyzing Dish...")

        try:
            result = await self.scan(request, reporter=reporter, cancel_token=token)
        except ScanCancelled:
            return
        except Exception as e:
            if not isinstance(e, DishScanException):
                self.logger.error(f"Unexpected scan error: {e}", exc_info=True)
            await self._abort(e, reporter, token, on_cancel)
            return
        finally:
            reporter.stop_ticking()

        if not reporter.complete():
            return
        await asyncio.sleep(self.config.completion_delay_ms / 1000)
        if token.cancelled:
            return
        on_complete(result.dishes, result.is_menu)

    async def _abort(
        self,
        error: Exception,
        reporter: ProgressReporter,
        token: CancellationToken,
        on_cancel: CancelCallback,
    ) -> None:
        if token.cancelled:
            return
        if isinstance(error, QuotaExceededError):
            delay_ms = self.config.quota_abort_delay_ms
        else:
            delay_ms = self.config.failure_abort_delay_ms
        user_message = getattr(error, "user_message", DishScanException.user_message)
        reporter.fail(user_message)

        await asyncio.sleep(delay_ms / 1000)
        if token.cancelled:
            return
        on_cancel()

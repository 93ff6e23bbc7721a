"""
End-to-end scan pipeline tests with fake inference and OCR collaborators.
"""

import asyncio
import time

import pytest

from dishscan.config.settings import ScanSettings
from dishscan.core.exceptions import ImageReadError, InferenceParseError, QuotaExceededError
from dishscan.core.progress import CancellationToken
from dishscan.models.internal_models import InferenceResult, ScanRequest, ScanType
from dishscan.services.image_codec import to_data_uri
from dishscan.services.text_localizer import TextLocalizer
from tests.conftest import FakeInferenceService, FakeOCREngine, make_dish, make_line

MENU_LINES = [
    make_line("春卷 12", 100, 50, 300, 100),
    make_line("炒饭", 100, 150, 300, 200),
]


def menu_result(is_menu=True):
    return InferenceResult(is_menu=is_menu, dishes=[
        make_dish("春卷", name="Rollitos de primavera", english_name="Spring Rolls"),
        make_dish("炒饭", name="Arroz frito", english_name="Fried Rice"),
    ])


class CallbackRecorder:

    def __init__(self):
        self.completed = []
        self.cancelled = 0
        self.progress = []
        self.cancelled_at = None

    def on_complete(self, dishes, is_menu):
        self.completed.append((dishes, is_menu))

    def on_cancel(self):
        self.cancelled += 1
        self.cancelled_at = time.monotonic()

    def on_progress(self, progress, status_text):
        self.progress.append((progress, status_text))

    @property
    def values(self):
        return [progress for progress, _ in self.progress]


async def run_scan(pipeline, request, recorder, token=None):
    await pipeline.run(
        request,
        on_complete=recorder.on_complete,
        on_cancel=recorder.on_cancel,
        on_progress=recorder.on_progress,
        cancel_token=token,
    )


class TestMenuScan:

    @pytest.mark.asyncio
    async def test_menu_scan_end_to_end(self, build_pipeline, png_bytes, recording_loader):
        inference = FakeInferenceService(result=menu_result())
        pipeline = build_pipeline(inference, FakeOCREngine(lines=MENU_LINES))

        result = await pipeline.scan(ScanRequest(png_bytes, ScanType.MENU, "Spanish"))

        assert inference.calls == [(ScanType.MENU, "Spanish")]
        assert result.is_menu
        assert [dish.name for dish in result.dishes] == ["Rollitos de primavera", "Arroz frito"]
        spring_rolls, fried_rice = result.dishes
        assert spring_rolls.is_ocr_refined and fried_rice.is_ocr_refined
        assert spring_rolls.bounding_box == pytest.approx((100.0, 100.0, 200.0, 300.0))
        assert fried_rice.bounding_box == pytest.approx((300.0, 100.0, 400.0, 300.0))
        assert all(dish.image.startswith("https://tse2.mm.bing.net/th?q=") for dish in result.dishes)
        assert len({dish.id for dish in result.dishes}) == 2
        assert recording_loader.urls == [dish.image for dish in result.dishes]
        assert result.preload.loaded == 2

    @pytest.mark.asyncio
    async def test_menu_scan_type_wins_over_inference_flag(self, build_pipeline, png_bytes):
        pipeline = build_pipeline(FakeInferenceService(result=menu_result(is_menu=False)))
        result = await pipeline.scan(ScanRequest(png_bytes, ScanType.MENU))
        assert result.is_menu
        assert all(dish.is_menu for dish in result.dishes)

    @pytest.mark.asyncio
    async def test_empty_menu_completes_with_no_dishes(self, build_pipeline, png_bytes, recording_loader):
        recorder = CallbackRecorder()
        pipeline = build_pipeline(FakeInferenceService(result=InferenceResult(is_menu=True, dishes=[])))

        await run_scan(pipeline, ScanRequest(png_bytes, ScanType.MENU), recorder)

        assert recorder.completed == [([], True)]
        assert recording_loader.urls == []


class TestDishScan:

    @pytest.mark.asyncio
    async def test_dish_scan_embeds_source_photo(self, build_pipeline, png_bytes, recording_loader):
        result_in = InferenceResult(is_menu=False, dishes=[make_dish("Tonkotsu Ramen")])
        pipeline = build_pipeline(FakeInferenceService(result=result_in))

        result = await pipeline.scan(ScanRequest(png_bytes, ScanType.DISH))

        assert not result.is_menu
        [dish] = result.dishes
        assert dish.image.startswith("data:image/png;base64,")
        assert dish.image == to_data_uri(await pipeline.codec.encode(png_bytes))
        assert not dish.is_ocr_refined
        assert result.preload is None
        assert recording_loader.urls == []

    @pytest.mark.asyncio
    async def test_ocr_failure_keeps_inference_boxes(self, build_pipeline, png_bytes):
        dish = make_dish("春卷")
        pipeline = build_pipeline(
            FakeInferenceService(result=InferenceResult(is_menu=False, dishes=[dish])),
            FakeOCREngine(error=RuntimeError("tesseract missing")),
        )
        result = await pipeline.scan(ScanRequest(png_bytes, ScanType.DISH))
        assert result.dishes[0].bounding_box == dish.bounding_box
        assert not result.dishes[0].is_ocr_refined


class SpyLocalizer(TextLocalizer):

    def __init__(self, inference, engine):
        super().__init__()
        self.inference = inference
        self.engine = engine
        self.snapshots = []

    def localize(self, dishes, lines, width, height):
        self.snapshots.append((self.inference.finished, self.engine.finished))
        return super().localize(dishes, lines, width, height)


class TestJoin:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("first", ["inference", "ocr"])
    async def test_localization_waits_for_both_branches(self, build_pipeline, png_bytes, first):
        gates = {"inference": asyncio.Event(), "ocr": asyncio.Event()}
        inference = FakeInferenceService(result=menu_result(), gate=gates["inference"])
        engine = FakeOCREngine(lines=MENU_LINES, gate=gates["ocr"])
        localizer = SpyLocalizer(inference, engine)
        pipeline = build_pipeline(inference, engine, localizer=localizer)

        task = asyncio.ensure_future(pipeline.scan(ScanRequest(png_bytes, ScanType.MENU)))
        await asyncio.sleep(0.05)
        gates[first].set()
        await asyncio.sleep(0.05)
        assert localizer.snapshots == []

        for gate in gates.values():
            gate.set()
        result = await task

        assert localizer.snapshots == [(True, True)]
        assert all(dish.is_ocr_refined for dish in result.dishes)


class TestRunCallbacks:

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_ends_at_100(self, build_pipeline, png_bytes):
        recorder = CallbackRecorder()
        pipeline = build_pipeline(FakeInferenceService(result=menu_result()), FakeOCREngine(lines=MENU_LINES))

        await run_scan(pipeline, ScanRequest(png_bytes, ScanType.MENU), recorder)

        assert recorder.values == sorted(recorder.values)
        assert recorder.progress[0][1] == "Scanning Menu..."
        assert recorder.progress[-1] == (100.0, "Done")
        assert all(value < 100 for value in recorder.values[:-1])
        assert len(recorder.completed) == 1
        assert recorder.cancelled == 0

    @pytest.mark.asyncio
    async def test_dish_scan_initial_status(self, build_pipeline, png_bytes):
        recorder = CallbackRecorder()
        pipeline = build_pipeline(FakeInferenceService(result=InferenceResult(False, [make_dish("Gyoza")])))
        await run_scan(pipeline, ScanRequest(png_bytes, ScanType.DISH), recorder)
        assert recorder.progress[0][1] == "Analyzing Dish..."
        assert recorder.completed[0][1] is False

    @pytest.mark.asyncio
    async def test_cancel_mid_scan_fires_no_callbacks(self, build_pipeline, png_bytes):
        recorder = CallbackRecorder()
        gate = asyncio.Event()
        pipeline = build_pipeline(FakeInferenceService(result=menu_result(), gate=gate))
        token = CancellationToken()

        task = asyncio.ensure_future(run_scan(pipeline, ScanRequest(png_bytes, ScanType.MENU), recorder, token))
        await asyncio.sleep(0.05)
        token.cancel()
        progress_at_cancel = len(recorder.progress)
        gate.set()
        await task

        assert recorder.completed == []
        assert recorder.cancelled == 0
        assert len(recorder.progress) == progress_at_cancel

    @pytest.mark.asyncio
    async def test_cancel_during_completion_delay(self, build_pipeline, png_bytes):
        recorder = CallbackRecorder()
        token = CancellationToken()
        config = ScanSettings(progress_tick_ms=10, completion_delay_ms=200)
        pipeline = build_pipeline(FakeInferenceService(result=menu_result()), config=config)

        task = asyncio.ensure_future(run_scan(pipeline, ScanRequest(png_bytes, ScanType.MENU), recorder, token))
        while not recorder.progress or recorder.progress[-1][0] < 100:
            await asyncio.sleep(0.01)
        token.cancel()
        await task

        assert recorder.completed == []

    @pytest.mark.asyncio
    async def test_parse_failure_cancels_once(self, build_pipeline, png_bytes):
        recorder = CallbackRecorder()
        pipeline = build_pipeline(FakeInferenceService(error=InferenceParseError("not json")))

        await run_scan(pipeline, ScanRequest(png_bytes, ScanType.MENU), recorder)

        assert recorder.cancelled == 1
        assert recorder.completed == []
        assert recorder.progress[-1][1] == "Error scanning. Try again."
        assert recorder.values[-1] < 100

    @pytest.mark.asyncio
    async def test_quota_failure_uses_longer_delay(self, build_pipeline, png_bytes):
        recorder = CallbackRecorder()
        config = ScanSettings(progress_tick_ms=10, failure_abort_delay_ms=0, quota_abort_delay_ms=150)
        pipeline = build_pipeline(FakeInferenceService(error=QuotaExceededError()), config=config)

        start = time.monotonic()
        await run_scan(pipeline, ScanRequest(png_bytes, ScanType.DISH), recorder)

        assert recorder.cancelled == 1
        assert recorder.cancelled_at - start >= 0.14
        assert recorder.progress[-1][1] == "Gemini API Quota Exceeded. Please try again later."

    @pytest.mark.asyncio
    async def test_unreadable_image_cancels(self, build_pipeline):
        recorder = CallbackRecorder()
        inference = FakeInferenceService(result=menu_result())
        pipeline = build_pipeline(inference)

        await run_scan(pipeline, ScanRequest(b"definitely not an image", ScanType.MENU), recorder)

        assert recorder.cancelled == 1
        assert inference.calls == []

    @pytest.mark.asyncio
    async def test_scan_raises_for_unreadable_image(self, build_pipeline):
        pipeline = build_pipeline(FakeInferenceService())
        with pytest.raises(ImageReadError):
            await pipeline.scan(ScanRequest(b"not an image either", ScanType.DISH))

    @pytest.mark.asyncio
    async def test_runs_do_not_share_results(self, build_pipeline, png_bytes):
        pipeline = build_pipeline(FakeInferenceService(result=menu_result()))
        first, second = await asyncio.gather(
            pipeline.scan(ScanRequest(png_bytes, ScanType.MENU)),
            pipeline.scan(ScanRequest(png_bytes, ScanType.MENU)),
        )
        assert first.scan_id != second.scan_id
        assert not {d.id for d in first.dishes} & {d.id for d in second.dishes}

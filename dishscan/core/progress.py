"""
Progress and state reporting for scan runs.

A forward-only state machine that drives the user-visible percentage and
status text, plus the cancellation token checked at every suspension point.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from dishscan.core.exceptions import ScanCancelled

ProgressCallback = Callable[[float, str], None]

logger = logging.getLogger(__name__)


class ScanState(str, Enum):
    """Pipeline phases in the order they are entered"""
    IDLE = "idle"
    ENCODING = "encoding"
    ANALYZING = "analyzing"  # inference and OCR in flight together
    LOCALIZING = "localizing"
    RESOLVING_IMAGES = "resolving_images"
    PRELOADING = "preloading"
    COMPLETE = "complete"
    FAILED = "failed"


_STATE_ORDER = [
    ScanState.IDLE,
    ScanState.ENCODING,
    ScanState.ANALYZING,
    ScanState.LOCALIZING,
    ScanState.RESOLVING_IMAGES,
    ScanState.PRELOADING,
    ScanState.COMPLETE,
]

TERMINAL_STATES = {ScanState.COMPLETE, ScanState.FAILED}

# Floor applied to the percentage when a state is entered
_STATE_PROGRESS = {
    ScanState.ENCODING: 10.0,
    ScanState.ANALYZING: 10.0,
    ScanState.LOCALIZING: 85.0,
    ScanState.RESOLVING_IMAGES: 90.0,
    ScanState.PRELOADING: 95.0,
    ScanState.COMPLETE: 100.0,
}


class InvalidStateTransition(Exception):
    """Raised when a transition would move the state machine backwards"""
    pass


class CancellationToken:
    """Liveness flag owned by the caller"""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self, stage: str) -> None:
        if self._cancelled:
            raise ScanCancelled(stage)


def next_tick(progress: float, cap: float = 80.0) -> float:
    """Fast start, slow finish, never past ``cap``"""
    if progress >= cap:
        return progress
    if progress < 30:
        step = 3.0
    elif progress < 70:
        step = 1.0
    else:
        step = 0.3
    return min(cap, progress + step)


class ProgressReporter:
    """
    Forward-only scan state machine.

    The percentage never decreases and stays below 100 until COMPLETE. Once
    the token is cancelled nothing else is emitted.
    """

    def __init__(
        self,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        tick_interval_ms: int = 100,
        tick_cap: float = 80.0,
    ):
        self.on_progress = on_progress
        self.cancel_token = cancel_token or CancellationToken()
        self.tick_interval = tick_interval_ms / 1000
        self.tick_cap = tick_cap
        self.state = ScanState.IDLE
        self.progress = 0.0
        self.status_text = ""
        self._ticker: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return not self.cancel_token.cancelled and self.state not in TERMINAL_STATES

    def transition(self, state: ScanState, status_text: Optional[str] = None) -> bool:
        """
        Move to ``state``.

        Returns False (and changes nothing) when cancelled or already
        terminal. FAILED is reachable from any non-terminal state.
        """
        if not self.active:
            return False
        if state != ScanState.FAILED and _STATE_ORDER.index(state) <= _STATE_ORDER.index(self.state):
            raise InvalidStateTransition(f"{self.state.value} -> {state.value}")

        logger.debug(f"Scan state {self.state.value} -> {state.value}")
        self.state = state
        if status_text is not None:
            self.status_text = status_text
        if state in TERMINAL_STATES:
            self.stop_ticking()
        self._set_progress(_STATE_PROGRESS.get(state, self.progress))
        return True

    def set_status(self, status_text: str) -> None:
        if self.cancel_token.cancelled:
            return
        self.status_text = status_text
        self._emit()

    def complete(self, status_text: str = "Done") -> bool:
        return self.transition(ScanState.COMPLETE, status_text)

    def fail(self, status_text: str) -> bool:
        return self.transition(ScanState.FAILED, status_text)

    def _set_progress(self, value: float) -> None:
        if self.cancel_token.cancelled:
            return
        if self.state != ScanState.COMPLETE:
            value = min(value, 99.0)
        self.progress = max(self.progress, value)
        self._emit()

    def _emit(self) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(self.progress, self.status_text)
        except Exception as e:
            logger.warning(f"Progress callback raised: {e}")

    def start_ticking(self) -> None:
        """Start the repeating progress tick; call stop_ticking on every exit path"""
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.ensure_future(self._tick_loop())

    def stop_ticking(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()
        self._ticker = None

    @property
    def ticking(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    async def _tick_loop(self) -> None:
        while self.active:
            await asyncio.sleep(self.tick_interval)
            if not self.active:
                break
            ticked = next_tick(self.progress, self.tick_cap)
            if ticked > self.progress:
                self._set_progress(ticked)

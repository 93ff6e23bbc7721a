"""
Best-effort image preloader.

Races the joint completion of all image loads against a fixed timeout so a
slow or dead thumbnail host can never hold a scan for longer than the
timeout.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Sequence

import httpx

from dishscan.core.exceptions import ImageLoadFailure
from dishscan.models.internal_models import PreloadReport

ImageLoader = Callable[[str], Awaitable[None]]


class ImagePreloader:
    """Prefetches display images with a hard timeout"""

    DEFAULT_TIMEOUT_MS = 3000

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        http_client: Optional[httpx.AsyncClient] = None,
        loader: Optional[ImageLoader] = None,
    ):
        self.timeout_ms = timeout_ms
        self.http_client = http_client
        self.loader = loader or self._http_load
        self.logger = logging.getLogger(__name__)

    async def _http_load(self, url: str) -> None:
        if self.http_client is not None:
            response = await self.http_client.get(url)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                response = await client.get(url)
        response.raise_for_status()

    async def _attempt(self, url: str) -> bool:
        """One load attempt; settles either way"""
        try:
            await self.loader(url)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            failure = ImageLoadFailure(url, str(e) or type(e).__name__)
            self.logger.debug(failure.message)
            return False

    async def preload(self, urls: Sequence[str]) -> PreloadReport:
        """
        Load every remote URL, returning no later than the timeout.

        Empty values and ``data:`` URIs are already local and skipped.
        Attempts still running at the timeout are cancelled and their
        results discarded.
        """
        targets = [url for url in urls if url and not url.startswith("data:")]
        report = PreloadReport(requested=len(targets))
        if not targets:
            return report

        start_time = time.monotonic()
        tasks = [asyncio.ensure_future(self._attempt(url)) for url in targets]
        done, pending = await asyncio.wait(tasks, timeout=self.timeout_ms / 1000)

        for task in pending:
            task.cancel()
        for task in done:
            if task.result():
                report.loaded += 1
            else:
                report.failed += 1

        report.timed_out = bool(pending)
        report.elapsed_ms = int((time.monotonic() - start_time) * 1000)
        self.logger.info(
            f"Preloaded {report.loaded}/{report.requested} images "
            f"({report.failed} failed, timed_out={report.timed_out})",
            extra={'elapsed_ms': report.elapsed_ms}
        )
        return report

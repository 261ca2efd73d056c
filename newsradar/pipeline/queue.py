"""In-process crawl job queue with bounded concurrency and retries."""

import asyncio
import logging
from typing import List, Optional

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from .jobs import CrawlJobPayload, CrawlJobResult, CrawlJobRunner

logger = logging.getLogger(__name__)


class CrawlQueue:
    """Run queued crawl jobs on a fixed number of workers.

    A job is attempted up to ``attempts`` times with exponentially growing
    waits; a job that still fails is logged and dropped.
    """

    def __init__(
        self,
        runner: CrawlJobRunner,
        concurrency: int = 2,
        attempts: int = 3,
        backoff: float = 5.0,
    ) -> None:
        self.runner = runner
        self.concurrency = concurrency
        self.attempts = attempts
        self.backoff = backoff
        self.completed: List[CrawlJobResult] = []
        self.failed = 0
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue else 0

    def start(self) -> None:
        if self._workers:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"crawl-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info("Started %d crawl workers", self.concurrency)

    async def enqueue(self, payload: CrawlJobPayload) -> None:
        if self._queue is None:
            self.start()
        await self._queue.put(payload)
        logger.debug("Queued crawl job for source %s", payload.source_id)

    async def join(self) -> None:
        """Wait until every queued job has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None

    async def _run_with_retry(self, payload: CrawlJobPayload) -> CrawlJobResult:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.backoff, min=0, max=self.backoff * 2 ** self.attempts),
            before_sleep=lambda state: logger.warning(
                "Crawl of source %s failed (attempt %d/%d), retrying",
                payload.source_id,
                state.attempt_number,
                self.attempts,
            ),
            reraise=True,
        ):
            with attempt:
                return await self.runner.run(payload)

    async def _worker(self, index: int) -> None:
        while True:
            payload = await self._queue.get()
            try:
                result = await self._run_with_retry(payload)
                self.completed.append(result)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failed += 1
                logger.error(
                    "Crawl of source %s failed after %d attempts: %s", payload.source_id, self.attempts, e
                )
            finally:
                self._queue.task_done()

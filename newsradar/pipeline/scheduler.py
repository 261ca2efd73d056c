"""Periodic crawl, watch and housekeeping tasks."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Set

import pendulum

from ..config import SchedulerConfig
from ..db import Repository
from ..watch import WatchAnalyzer
from .jobs import CrawlService
from .queue import CrawlQueue

logger = logging.getLogger(__name__)

NIGHT_END_HOUR = 7
NIGHT_WINDOW_MINUTES = 10


def seconds_until_next(interval_seconds: float, now: datetime) -> float:
    """Seconds to the next wall-clock multiple of ``interval_seconds``."""
    elapsed = now.timestamp() % interval_seconds
    return interval_seconds - elapsed if elapsed else interval_seconds


class Scheduler:
    """Drive crawl sweeps, watch sweeps and cleanup on fixed intervals."""

    def __init__(
        self,
        crawl_service: CrawlService,
        queue: CrawlQueue,
        repository: Repository,
        watch: Optional[WatchAnalyzer] = None,
        config: Optional[SchedulerConfig] = None,
        clock: Callable[[], datetime] = lambda: pendulum.now("UTC"),
    ) -> None:
        self.crawl_service = crawl_service
        self.queue = queue
        self.repository = repository
        self.watch = watch
        self.config = config or SchedulerConfig()
        self.clock = clock
        self._crawl_running = False
        self._ticks: Set[asyncio.Task] = set()

    def should_run_crawl(self, now: Optional[datetime] = None) -> bool:
        """Night mode only lets the first minutes of each hour through."""
        if not self.config.night_mode:
            return True
        local = pendulum.instance(now or self.clock()).in_timezone(self.config.timezone)
        if local.hour < NIGHT_END_HOUR:
            if local.minute >= NIGHT_WINDOW_MINUTES:
                logger.debug("Night mode: skipping crawl at %02d:%02d", local.hour, local.minute)
                return False
        return True

    async def crawl_sweep(self) -> int:
        """Queue every ACTIVE source and wait for the jobs to finish.

        Returns the number of jobs queued; 0 when skipped.
        """
        if not self.should_run_crawl():
            return 0
        if self._crawl_running:
            logger.warning("Scheduled crawl already running, skipping")
            return 0

        self._crawl_running = True
        try:
            payloads = await self.crawl_service.active_payloads("scheduled")
            logger.info("Starting scheduled crawl for %d sources", len(payloads))
            for payload in payloads:
                await self.queue.enqueue(payload)
            await self.queue.join()
            return len(payloads)
        finally:
            self._crawl_running = False

    async def watch_sweep(self) -> int:
        if self.watch is None or not self.watch.is_available():
            return 0
        try:
            return await self.watch.sweep()
        except Exception as e:
            logger.error("Watch sweep failed: %s", e)
            return 0

    async def housekeeping(self) -> None:
        now = self.clock()
        articles = await self.repository.delete_articles_before(
            now - timedelta(days=self.config.article_retention_days)
        )
        logger.info("Article cleanup completed: %d old articles deleted", articles)
        jobs = await self.repository.delete_crawl_jobs_before(
            now - timedelta(days=self.config.job_retention_days)
        )
        logger.info("Crawl job cleanup completed: %d old records deleted", jobs)

    async def _every(self, interval_seconds: float, task: Callable[[], Awaitable], name: str) -> None:
        while True:
            await asyncio.sleep(seconds_until_next(interval_seconds, self.clock()))
            # a sweep still running when the next tick fires is skipped
            tick = asyncio.create_task(self._guarded(task, name))
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)

    async def _guarded(self, task: Callable[[], Awaitable], name: str) -> None:
        try:
            await task()
        except Exception as e:
            logger.error("%s failed: %s", name, e)

    async def run(self, stop: Optional[asyncio.Event] = None) -> None:
        """Run until ``stop`` is set (or forever)."""
        self.queue.start()
        loops = [
            asyncio.create_task(
                self._every(self.config.crawl_interval_minutes * 60, self.crawl_sweep, "Crawl sweep")
            ),
            asyncio.create_task(
                self._every(self.config.watch_interval_minutes * 60, self.watch_sweep, "Watch sweep")
            ),
            asyncio.create_task(
                self._every(self.config.housekeeping_interval_hours * 3600, self.housekeeping, "Housekeeping")
            ),
        ]
        logger.info(
            "Scheduler running: crawl every %d min, watch every %d min",
            self.config.crawl_interval_minutes,
            self.config.watch_interval_minutes,
        )
        try:
            if stop is None:
                await asyncio.gather(*loops)
            else:
                await stop.wait()
        finally:
            pending = loops + list(self._ticks)
            for t in pending:
                t.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            await self.queue.stop()

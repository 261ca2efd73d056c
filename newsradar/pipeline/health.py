"""Per-source crawl health bookkeeping."""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Optional, Tuple

import pendulum

from ..cache import ContentCache
from ..db import Repository
from ..exceptions import SourceNotFoundError
from ..models import MAX_CONSECUTIVE_FAILURES, Source, SourceStatus

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE = 500


class HealthTracker:
    """Apply crawl outcomes and operator actions to sources.

    Every update for a given source runs under that source's lock, so
    concurrent jobs never lose counter increments.
    """

    def __init__(self, repository: Repository, cache: Optional[ContentCache] = None) -> None:
        self.repository = repository
        self.cache = cache
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _load(self, source_id: int) -> Source:
        source = await self.repository.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source with id {source_id} not found")
        return source

    async def _operator_update(self, source: Source) -> Source:
        # cached selector checks and feed metadata are stale after operator changes
        stored = await self.repository.update_source(source)
        if self.cache is not None:
            await self.cache.invalidate_source(source.id)
        return stored

    async def record_success(
        self,
        source_id: int,
        duration_ms: int,
        found: int,
        inserted: int,
        feed_validators: Optional[Tuple[Optional[str], Optional[str]]] = None,
    ) -> Source:
        """Count a successful crawl.

        ``feed_validators`` is the (ETag, Last-Modified) pair of a 200 feed
        response; None leaves the stored pair untouched.
        """
        async with self._locks[source_id]:
            source = await self._load(source_id)
            source.total_crawls += 1
            source.successful_crawls += 1
            source.consecutive_failures = 0
            source.last_crawl_duration_ms = duration_ms
            source.last_crawl_at = pendulum.now("UTC")
            source.total_articles_found += found
            source.total_articles_inserted += inserted

            previous = source.avg_crawl_duration_ms
            if previous is None:
                source.avg_crawl_duration_ms = float(duration_ms)
            else:
                n = source.successful_crawls
                source.avg_crawl_duration_ms = previous + (duration_ms - previous) / n

            if feed_validators is not None:
                source.last_etag, source.last_feed_modified = feed_validators

            if source.status == SourceStatus.ERROR:
                logger.info("Source %s recovered, status back to ACTIVE", source_id)
                source.status = SourceStatus.ACTIVE

            return await self.repository.update_source(source)

    async def record_failure(self, source_id: int, error: str) -> Source:
        """Count a failed crawl; too many in a row puts the source in ERROR."""
        async with self._locks[source_id]:
            source = await self._load(source_id)
            source.total_crawls += 1
            source.failed_crawls += 1
            source.consecutive_failures += 1
            source.last_error_message = (error or "Unknown error")[:MAX_ERROR_MESSAGE]
            source.last_error_at = pendulum.now("UTC")
            source.last_crawl_at = source.last_error_at

            if (
                source.consecutive_failures >= MAX_CONSECUTIVE_FAILURES
                and source.status == SourceStatus.ACTIVE
            ):
                logger.warning(
                    "Source %s failed %d times in a row, status set to ERROR",
                    source_id,
                    source.consecutive_failures,
                )
                source.status = SourceStatus.ERROR

            return await self.repository.update_source(source)

    async def pause(self, source_id: int) -> Source:
        async with self._locks[source_id]:
            source = await self._load(source_id)
            source.status = SourceStatus.PAUSED
            return await self._operator_update(source)

    async def activate(self, source_id: int) -> Source:
        """Resume a paused or errored source; the failure streak is cleared."""
        async with self._locks[source_id]:
            source = await self._load(source_id)
            source.status = SourceStatus.ACTIVE
            source.consecutive_failures = 0
            return await self._operator_update(source)

    async def reset_health(self, source_id: int) -> Source:
        """Zero all health counters without touching the status."""
        async with self._locks[source_id]:
            source = await self._load(source_id)
            source.total_crawls = 0
            source.successful_crawls = 0
            source.failed_crawls = 0
            source.consecutive_failures = 0
            source.last_error_message = None
            source.last_error_at = None
            source.avg_crawl_duration_ms = None
            source.last_crawl_duration_ms = None
            source.total_articles_found = 0
            source.total_articles_inserted = 0
            return await self._operator_update(source)

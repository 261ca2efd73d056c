"""Cached source checks: selector matches and feed metadata."""

import logging
from typing import Any, Dict, Optional

from ..cache import ContentCache
from ..exceptions import ExtractionError, FetchError
from ..ingestion import FeedParser, FeedPreview, FetchOrchestrator, SelectorExtractor
from ..models import Source, SourceKind

logger = logging.getLogger(__name__)


class SourceChecker:
    """Validate sources, reusing results cached per source id."""

    def __init__(
        self,
        fetcher: FetchOrchestrator,
        extractor: SelectorExtractor,
        feed_parser: FeedParser,
        cache: ContentCache,
    ) -> None:
        self.fetcher = fetcher
        self.extractor = extractor
        self.feed_parser = feed_parser
        self.cache = cache

    async def check_selectors(self, source: Source, refresh: bool = False) -> Dict[str, Any]:
        """Count list items the source's selector matches on its list page.

        Returns ``{"is_valid", "found_count"}``; a page that cannot be fetched
        counts as zero matches.
        """
        if source.selectors is None:
            raise ExtractionError(f"Source {source.id} has no selector rules")

        if not refresh:
            cached = await self.cache.get_selector_validation(source.id)
            if cached is not None:
                logger.debug("Selector check for source %s served from cache", source.id)
                return cached

        try:
            async with self.fetcher.job_scope() as scope:
                async with scope.open(source.url) as page:
                    listing = await self.extractor.extract_links(page.root, source.selectors, page.url)
            found = listing.matched
        except FetchError as e:
            logger.warning("Selector check for source %s could not fetch %s: %s", source.id, source.url, e)
            found = 0

        await self.cache.cache_selector_validation(source.id, found > 0, found)
        return {"is_valid": found > 0, "found_count": found}

    async def feed_metadata(self, source: Source, refresh: bool = False) -> Optional[Dict[str, Any]]:
        """Feed title/description/link; None when the feed does not parse."""
        if source.kind != SourceKind.FEED:
            return None

        if not refresh:
            cached = await self.cache.get_metadata(source.id)
            if cached is not None:
                return cached

        preview = await self.feed_parser.preview_feed(source.feed_url or source.url)
        if not preview.valid:
            logger.warning("Feed metadata unavailable for source %s: %s", source.id, preview.error)
            return None
        await self.remember_feed(source, preview)
        return preview.metadata

    async def remember_feed(self, source: Source, preview: FeedPreview) -> None:
        if preview.valid:
            await self.cache.cache_metadata(source.id, preview.metadata)

    async def forget(self, source_id: int) -> None:
        await self.cache.invalidate_source(source_id)

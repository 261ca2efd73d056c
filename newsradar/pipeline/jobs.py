"""Crawl job payloads, creation and execution."""

import logging
import time
from typing import List, Optional, Tuple

import pendulum
from pydantic import BaseModel, Field

from ..config import CrawlerConfig
from ..db import Repository
from ..dedup import DeduplicationEngine
from ..exceptions import ExtractionError, FetchError, SourceNotActiveError, SourceNotFoundError
from ..ingestion import (
    ArticleData,
    FeedParser,
    FetchOrchestrator,
    FetchScope,
    SelectorExtractor,
    article_hash,
    parse_date,
    url_hash,
)
from ..models import Article, CrawlJob, CrawlJobStatus, SelectorRules, Source, SourceKind, SourceStatus
from ..watch import WatchAnalyzer
from .health import HealthTracker

logger = logging.getLogger(__name__)


class CrawlJobPayload(BaseModel):
    """Everything a worker needs to crawl one source."""

    source_id: int = Field(..., description="Source to crawl")
    url: str = Field(..., description="Site or list page URL")
    source_kind: SourceKind = Field(SourceKind.SELECTOR)
    triggered_by: str = Field("manual", description="manual or scheduled")
    selectors: Optional[SelectorRules] = None
    feed_url: Optional[str] = None
    last_etag: Optional[str] = None
    last_feed_modified: Optional[str] = None
    enrich_content: bool = False
    content_selector: Optional[str] = None
    ai_fallback: bool = False


class CrawlJobResult(BaseModel):
    """Outcome of one crawl job."""

    source_id: int
    items_found: int = 0
    items_inserted: int = 0
    duplicates: int = 0
    errors: List[str] = Field(default_factory=list)
    duration_ms: int = 0
    not_modified: bool = False


class CrawlService:
    """Turn sources into job payloads."""

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    async def build_payload(self, source_id: int, triggered_by: str = "manual") -> CrawlJobPayload:
        """
        Build the payload for one source.

        Raises:
            SourceNotFoundError: the source does not exist
            SourceNotActiveError: the source is paused or in error
        """
        source = await self.repository.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source with id {source_id} not found")
        if source.status != SourceStatus.ACTIVE:
            raise SourceNotActiveError(
                f"Source {source_id} is not active (status: {source.status.value})"
            )
        return self.payload_for(source, triggered_by)

    @staticmethod
    def payload_for(source: Source, triggered_by: str) -> CrawlJobPayload:
        payload = CrawlJobPayload(
            source_id=source.id,
            url=source.url,
            source_kind=source.kind,
            triggered_by=triggered_by,
            ai_fallback=source.ai_fallback,
        )
        if source.kind == SourceKind.FEED:
            payload.feed_url = source.feed_url or source.url
            payload.last_etag = source.last_etag
            payload.last_feed_modified = source.last_feed_modified
            payload.enrich_content = source.enrich_content
            payload.content_selector = source.content_selector
        else:
            payload.selectors = source.selectors
        return payload

    async def active_payloads(self, triggered_by: str = "scheduled") -> List[CrawlJobPayload]:
        """Payloads for every ACTIVE source."""
        sources = await self.repository.list_sources(SourceStatus.ACTIVE)
        return [self.payload_for(source, triggered_by) for source in sources]


def to_article(source_id: int, data: ArticleData) -> Article:
    return Article(
        source_id=source_id,
        title=data.title,
        url=data.url,
        published_at=parse_date(data.date),
        content=data.content or "",
        summary=data.summary,
        image_url=data.image_url,
        is_partial=data.is_partial,
        hash=article_hash(source_id, data.url),
        url_hash=url_hash(data.url),
    )


class CrawlJobRunner:
    """Execute crawl jobs end to end."""

    def __init__(
        self,
        repository: Repository,
        fetcher: FetchOrchestrator,
        feed_parser: FeedParser,
        extractor: SelectorExtractor,
        dedup: DeduplicationEngine,
        health: HealthTracker,
        watch: Optional[WatchAnalyzer] = None,
        config: Optional[CrawlerConfig] = None,
    ) -> None:
        self.repository = repository
        self.fetcher = fetcher
        self.feed_parser = feed_parser
        self.extractor = extractor
        self.dedup = dedup
        self.health = health
        self.watch = watch
        self.config = config or CrawlerConfig()

    async def _crawl_selectors(
        self, scope: FetchScope, payload: CrawlJobPayload, errors: List[str]
    ) -> List[ArticleData]:
        if payload.selectors is None:
            raise ExtractionError(f"Source {payload.source_id} has no selector rules")

        result = await self.extractor.scrape(
            scope,
            payload.url,
            payload.selectors,
            ai_fallback=payload.ai_fallback,
            max_pages=self.config.max_detail_pages,
        )
        errors.extend(result.errors)
        return result.articles

    async def _enrich(
        self, scope: FetchScope, data: ArticleData, selector: str, errors: List[str]
    ) -> ArticleData:
        try:
            async with scope.open(data.url) as page:
                text = await self.extractor.extract_content(page.root, selector)
        except FetchError as e:
            logger.warning("Enrichment failed: %s", e)
            errors.append(str(e))
            return data

        if text and len(text) > len(data.content or ""):
            data.content = text
            data.is_partial = False
        return data

    async def _crawl_feed(
        self, scope: FetchScope, payload: CrawlJobPayload, errors: List[str]
    ) -> Tuple[List[ArticleData], bool, Optional[Tuple[Optional[str], Optional[str]]]]:
        result = await self.feed_parser.fetch_feed(
            payload.feed_url or payload.url,
            etag=payload.last_etag,
            last_modified=payload.last_feed_modified,
        )
        if result.not_modified:
            return [], True, None
        await self.fetcher.cache.cache_metadata(payload.source_id, result.metadata)

        articles = [item.to_article() for item in result.items]
        if payload.enrich_content and payload.content_selector:
            partial = [a for a in articles if a.is_partial and a.url][: self.config.max_detail_pages]
            logger.info("Enriching %d partial feed items", len(partial))
            for article in partial:
                await self._enrich(scope, article, payload.content_selector, errors)

        return articles, False, (result.etag, result.last_modified)

    async def _store(self, source_id: int, articles: List[ArticleData]) -> Tuple[List[int], int]:
        inserted: List[int] = []
        duplicates = 0
        for data in articles:
            stored = await self.dedup.persist_new(to_article(source_id, data))
            if stored is None:
                duplicates += 1
                continue
            inserted.append(stored.id)
            try:
                await self.dedup.process(stored)
            except Exception as e:
                logger.error("Grouping failed for article %s: %s", stored.id, e)
        return inserted, duplicates

    async def run(self, payload: CrawlJobPayload) -> CrawlJobResult:
        """Run one job; failures are recorded and then re-raised."""
        started = time.monotonic()
        logger.info("Processing crawl job for source %s (%s)", payload.source_id, payload.source_kind.value)

        job = await self.repository.create_crawl_job(
            CrawlJob(
                source_id=payload.source_id,
                status=CrawlJobStatus.RUNNING,
                triggered_by=payload.triggered_by,
                started_at=pendulum.now("UTC"),
            )
        )

        errors: List[str] = []
        try:
            not_modified = False
            validators = None
            async with self.fetcher.job_scope() as scope:
                if payload.source_kind == SourceKind.FEED:
                    found, not_modified, validators = await self._crawl_feed(scope, payload, errors)
                else:
                    found = await self._crawl_selectors(scope, payload, errors)

            found = [a for a in found if a.title and a.url]
            inserted, duplicates = await self._store(payload.source_id, found)

            if self.watch is not None and inserted:
                await self.watch.analyze_new(inserted)

            duration_ms = int((time.monotonic() - started) * 1000)
            job.status = CrawlJobStatus.COMPLETED
            job.finished_at = pendulum.now("UTC")
            job.items_found = len(found)
            job.items_inserted = len(inserted)
            job.duration_ms = duration_ms
            await self.repository.update_crawl_job(job)

            await self.health.record_success(
                payload.source_id,
                duration_ms,
                found=len(found),
                inserted=len(inserted),
                feed_validators=validators,
            )
        except Exception as e:
            duration_ms = int((time.monotonic() - started) * 1000)
            job.status = CrawlJobStatus.FAILED
            job.finished_at = pendulum.now("UTC")
            job.duration_ms = duration_ms
            job.error_message = str(e) or type(e).__name__
            await self.repository.update_crawl_job(job)
            await self.health.record_failure(payload.source_id, job.error_message)
            logger.error("Crawl job failed for source %s: %s", payload.source_id, job.error_message)
            raise

        logger.info(
            "Crawl completed: %d found, %d inserted, %d duplicates (%dms)",
            len(found),
            len(inserted),
            duplicates,
            duration_ms,
        )
        return CrawlJobResult(
            source_id=payload.source_id,
            items_found=len(found),
            items_inserted=len(inserted),
            duplicates=duplicates,
            errors=errors,
            duration_ms=duration_ms,
            not_modified=not_modified,
        )

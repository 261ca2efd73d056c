"""Wiring of the pipeline services from configuration."""

import logging
from typing import Optional

from ..cache import ContentCache
from ..config import Config
from ..db import PostgresRepository, Repository
from ..dedup import DeduplicationEngine, SimilarityJudge
from ..ingestion import (
    AIExtractor,
    BrowserDriver,
    FeedParser,
    FetchOrchestrator,
    HtmlFetchClient,
    SelectorExtractor,
)
from ..llm import LLMProvider, build_provider
from ..watch import RelevanceJudge, WatchAnalyzer
from .checks import SourceChecker
from .health import HealthTracker
from .jobs import CrawlJobRunner, CrawlService
from .queue import CrawlQueue
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


class Runtime:
    """Own every long-lived service; use as an async context manager."""

    def __init__(
        self,
        config: Config,
        repository: Optional[Repository] = None,
        provider: Optional[LLMProvider] = None,
        use_browser: bool = True,
    ) -> None:
        """Initialize runtime; services are created on enter."""
        self.config = config
        self.repository = repository
        self.provider = provider
        self.use_browser = use_browser
        self.browser: Optional[BrowserDriver] = None

    async def __aenter__(self) -> "Runtime":
        settings = self.config.config

        if self.repository is None:
            self.repository = await PostgresRepository.connect(self.config.get_db_config())
        if self.provider is None:
            self.provider = build_provider(self.config.get_llm_config())

        crawler = settings.crawler
        self.cache = ContentCache.from_config(settings.redis)
        self.http_client = HtmlFetchClient(timeout=crawler.http_timeout)
        await self.http_client.open()
        if self.use_browser:
            self.browser = BrowserDriver(
                headless=crawler.headless,
                navigation_timeout=crawler.navigation_timeout,
                settle_delay=crawler.settle_delay,
                blocked_domains=crawler.blocked_domains,
            )
        self.fetcher = FetchOrchestrator(self.http_client, cache=self.cache, browser=self.browser)
        self.feed_parser = FeedParser(timeout=crawler.feed_timeout)
        self.extractor = SelectorExtractor(AIExtractor(self.provider))

        dedup = settings.dedup
        judge = None
        if self.provider is not None:
            judge = SimilarityJudge(
                self.provider, self.cache, max_attempts=dedup.max_retries, backoff=dedup.retry_backoff
            )
        self.dedup = DeduplicationEngine(self.repository, judge, dedup)
        self.watch = WatchAnalyzer(
            self.repository,
            RelevanceJudge(self.provider) if self.provider is not None else None,
            settings.watch,
        )

        self.health = HealthTracker(self.repository, cache=self.cache)
        self.checker = SourceChecker(self.fetcher, self.extractor, self.feed_parser, self.cache)
        self.crawl_service = CrawlService(self.repository)
        self.runner = CrawlJobRunner(
            self.repository,
            self.fetcher,
            self.feed_parser,
            self.extractor,
            self.dedup,
            self.health,
            watch=self.watch,
            config=crawler,
        )

        scheduling = settings.scheduler
        self.queue = CrawlQueue(
            self.runner,
            concurrency=scheduling.concurrency,
            attempts=scheduling.job_attempts,
            backoff=scheduling.job_backoff,
        )
        self.scheduler = Scheduler(
            self.crawl_service, self.queue, self.repository, watch=self.watch, config=scheduling
        )
        logger.info(
            "Runtime ready (semantic checks %s, browser %s)",
            "on" if self.provider else "off",
            "on" if self.browser else "off",
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self.browser is not None:
            await self.browser.close()
        await self.http_client.close()
        await self.cache.close()
        close_provider = getattr(self.provider, "close", None)
        if close_provider is not None:
            await close_provider()
        await self.repository.close()

"""Storage interface used by the pipeline."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..models import (
    Article,
    ArticleGroup,
    CrawlJob,
    Source,
    SourceStatus,
    WatchKeyword,
    WatchMatch,
)


class Repository(ABC):
    """Async persistence for sources, articles, groups, jobs and watch data."""

    # Sources

    @abstractmethod
    async def get_source(self, source_id: int) -> Optional[Source]:
        pass

    @abstractmethod
    async def list_sources(self, status: Optional[SourceStatus] = None) -> List[Source]:
        pass

    @abstractmethod
    async def add_source(self, source: Source) -> Source:
        pass

    @abstractmethod
    async def update_source(self, source: Source) -> Source:
        """Persist status, health counters and feed validators."""
        pass

    # Articles

    @abstractmethod
    async def article_exists(self, article_hash: str) -> bool:
        pass

    @abstractmethod
    async def insert_article(self, article: Article) -> Article:
        """Insert and return the stored row.

        Raises:
            DuplicateArticleError: the hash is already stored.
        """
        pass

    @abstractmethod
    async def get_article(self, article_id: int) -> Optional[Article]:
        pass

    @abstractmethod
    async def recent_articles(
        self,
        since: datetime,
        exclude_source_id: Optional[int] = None,
        limit: int = 500,
    ) -> List[Article]:
        """Articles created since ``since``, newest first."""
        pass

    @abstractmethod
    async def ungrouped_articles(self) -> List[Article]:
        """Articles without a group, oldest first."""
        pass

    @abstractmethod
    async def set_article_group(self, article_id: int, group_id: int, similarity: float) -> None:
        pass

    @abstractmethod
    async def unanalyzed_articles(self, since: datetime, limit: int = 50) -> List[Article]:
        """Unanalyzed articles created since ``since``, newest first."""
        pass

    @abstractmethod
    async def articles_visible_to(self, user_id: int, since: datetime, limit: int = 100) -> List[Article]:
        """Recent articles from system sources and sources owned by ``user_id``."""
        pass

    @abstractmethod
    async def mark_watch_analyzed(self, article_id: int, analyzed_at: datetime) -> None:
        pass

    # Groups

    @abstractmethod
    async def create_group(self, group: ArticleGroup) -> ArticleGroup:
        pass

    @abstractmethod
    async def get_group(self, group_id: int) -> Optional[ArticleGroup]:
        pass

    @abstractmethod
    async def count_groups(self) -> int:
        pass

    # Watch

    @abstractmethod
    async def get_keyword(self, keyword_id: int) -> Optional[WatchKeyword]:
        pass

    @abstractmethod
    async def active_keywords(self, user_id: Optional[int] = None) -> List[WatchKeyword]:
        """Active keywords of one user, or of every user when ``user_id`` is None."""
        pass

    @abstractmethod
    async def upsert_watch_match(self, match: WatchMatch) -> WatchMatch:
        """Insert or update the match for the (article, keyword) pair."""
        pass

    # Crawl jobs

    @abstractmethod
    async def create_crawl_job(self, job: CrawlJob) -> CrawlJob:
        pass

    @abstractmethod
    async def update_crawl_job(self, job: CrawlJob) -> CrawlJob:
        pass

    # Housekeeping

    @abstractmethod
    async def delete_articles_before(self, cutoff: datetime) -> int:
        pass

    @abstractmethod
    async def delete_crawl_jobs_before(self, cutoff: datetime) -> int:
        pass

    async def close(self) -> None:
        pass

"""In-memory stand-ins for the database and the language model."""

import itertools
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import pendulum

from newsradar.db import Repository
from newsradar.exceptions import DuplicateArticleError
from newsradar.llm import LLMProvider
from newsradar.models import (
    Article,
    ArticleGroup,
    CrawlJob,
    Source,
    SourceStatus,
    WatchKeyword,
    WatchMatch,
)


class FakeRepository(Repository):
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.sources: Dict[int, Source] = {}
        self.articles: Dict[int, Article] = {}
        self.groups: Dict[int, ArticleGroup] = {}
        self.keywords: Dict[int, WatchKeyword] = {}
        self.matches: Dict[tuple, WatchMatch] = {}
        self.jobs: Dict[int, CrawlJob] = {}
        self.now: Callable[[], datetime] = lambda: pendulum.now("UTC")

    def _stamp(self, model):
        model = model.model_copy(deep=True)
        if model.id is None:
            model.id = next(self._ids)
        if model.created_at is None:
            model.created_at = self.now()
        model.updated_at = self.now()
        return model

    # Sources

    async def get_source(self, source_id: int) -> Optional[Source]:
        source = self.sources.get(source_id)
        return source.model_copy(deep=True) if source else None

    async def list_sources(self, status: Optional[SourceStatus] = None) -> List[Source]:
        return [s.model_copy(deep=True) for s in self.sources.values() if status is None or s.status == status]

    async def add_source(self, source: Source) -> Source:
        stored = self._stamp(source)
        self.sources[stored.id] = stored
        return stored.model_copy(deep=True)

    async def update_source(self, source: Source) -> Source:
        stored = self._stamp(source)
        self.sources[stored.id] = stored
        return stored.model_copy(deep=True)

    # Articles

    async def article_exists(self, article_hash: str) -> bool:
        return any(a.hash == article_hash for a in self.articles.values())

    async def insert_article(self, article: Article) -> Article:
        if await self.article_exists(article.hash):
            raise DuplicateArticleError(article.url)
        stored = self._stamp(article)
        self.articles[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get_article(self, article_id: int) -> Optional[Article]:
        article = self.articles.get(article_id)
        return article.model_copy(deep=True) if article else None

    async def recent_articles(self, since, exclude_source_id=None, limit=500) -> List[Article]:
        found = [
            a
            for a in self.articles.values()
            if a.created_at >= since and (exclude_source_id is None or a.source_id != exclude_source_id)
        ]
        found.sort(key=lambda a: a.created_at, reverse=True)
        return [a.model_copy(deep=True) for a in found[:limit]]

    async def ungrouped_articles(self) -> List[Article]:
        found = sorted((a for a in self.articles.values() if a.group_id is None), key=lambda a: a.created_at)
        return [a.model_copy(deep=True) for a in found]

    async def set_article_group(self, article_id: int, group_id: int, similarity: float) -> None:
        article = self.articles[article_id]
        article.group_id = group_id
        article.similarity_score = similarity

    async def unanalyzed_articles(self, since, limit=50) -> List[Article]:
        found = [a for a in self.articles.values() if not a.is_watch_analyzed and a.created_at >= since]
        found.sort(key=lambda a: a.created_at, reverse=True)
        return [a.model_copy(deep=True) for a in found[:limit]]

    async def articles_visible_to(self, user_id: int, since, limit=100) -> List[Article]:
        found = []
        for article in self.articles.values():
            source = self.sources.get(article.source_id)
            if article.created_at >= since and source and (source.is_system or source.user_id == user_id):
                found.append(article)
        found.sort(key=lambda a: a.created_at, reverse=True)
        return [a.model_copy(deep=True) for a in found[:limit]]

    async def mark_watch_analyzed(self, article_id: int, analyzed_at) -> None:
        article = self.articles[article_id]
        article.is_watch_analyzed = True
        article.watch_analyzed_at = analyzed_at

    # Groups

    async def create_group(self, group: ArticleGroup) -> ArticleGroup:
        stored = self._stamp(group)
        self.groups[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get_group(self, group_id: int) -> Optional[ArticleGroup]:
        group = self.groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def count_groups(self) -> int:
        return len(self.groups)

    # Watch

    async def get_keyword(self, keyword_id: int) -> Optional[WatchKeyword]:
        return self.keywords.get(keyword_id)

    async def active_keywords(self, user_id: Optional[int] = None) -> List[WatchKeyword]:
        return [
            k for k in self.keywords.values() if k.is_active and (user_id is None or k.user_id == user_id)
        ]

    async def upsert_watch_match(self, match: WatchMatch) -> WatchMatch:
        key = (match.article_id, match.watch_keyword_id)
        existing = self.matches.get(key)
        if existing is not None:
            match = match.model_copy(update={"id": existing.id, "created_at": existing.created_at})
        stored = self._stamp(match)
        self.matches[key] = stored
        return stored

    async def add_keyword(self, keyword: WatchKeyword) -> WatchKeyword:
        stored = self._stamp(keyword)
        self.keywords[stored.id] = stored
        return stored

    # Crawl jobs

    async def create_crawl_job(self, job: CrawlJob) -> CrawlJob:
        stored = self._stamp(job)
        self.jobs[stored.id] = stored
        return stored.model_copy(deep=True)

    async def update_crawl_job(self, job: CrawlJob) -> CrawlJob:
        stored = self._stamp(job)
        self.jobs[stored.id] = stored
        return stored.model_copy(deep=True)

    # Housekeeping

    async def delete_articles_before(self, cutoff) -> int:
        old = [i for i, a in self.articles.items() if a.created_at < cutoff]
        for article_id in old:
            del self.articles[article_id]
        return len(old)

    async def delete_crawl_jobs_before(self, cutoff) -> int:
        old = [i for i, j in self.jobs.items() if j.created_at < cutoff]
        for job_id in old:
            del self.jobs[job_id]
        return len(old)


class FakeLLM(LLMProvider):
    """Provider answering through a handler; records every prompt."""

    def __init__(self, handler: Optional[Callable[[str], Any]] = None) -> None:
        self.handler = handler or (lambda prompt: {})
        self.prompts: List[str] = []
        self.systems: List[Optional[str]] = []

    async def complete_json(self, prompt, system=None, max_tokens=200, temperature=0.1) -> Dict[str, Any]:
        self.prompts.append(prompt)
        self.systems.append(system)
        result = self.handler(prompt)
        if isinstance(result, Exception):
            raise result
        return result

    def get_usage_stats(self) -> Dict:
        return {"api_calls": len(self.prompts)}

    @property
    def calls(self) -> int:
        return len(self.prompts)

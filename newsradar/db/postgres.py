"""Postgres implementation of the repository."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg.errors import UniqueViolation
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from ..exceptions import DuplicateArticleError
from ..models import (
    Article,
    ArticleGroup,
    CrawlJob,
    Source,
    SourceStatus,
    WatchKeyword,
    WatchMatch,
)
from .base import Repository
from .connection import get_connection, open_pool

logger = logging.getLogger(__name__)

SOURCE_COLUMNS = (
    "name",
    "url",
    "kind",
    "refresh_interval_minutes",
    "selectors",
    "feed_url",
    "last_etag",
    "last_feed_modified",
    "enrich_content",
    "content_selector",
    "ai_fallback",
    "user_id",
    "is_system",
    "status",
    "total_crawls",
    "successful_crawls",
    "failed_crawls",
    "consecutive_failures",
    "last_error_message",
    "last_error_at",
    "avg_crawl_duration_ms",
    "last_crawl_duration_ms",
    "last_crawl_at",
    "total_articles_found",
    "total_articles_inserted",
)

ARTICLE_COLUMNS = (
    "source_id",
    "title",
    "url",
    "published_at",
    "content",
    "summary",
    "image_url",
    "is_partial",
    "hash",
    "url_hash",
    "group_id",
    "similarity_score",
)

JOB_COLUMNS = (
    "source_id",
    "status",
    "triggered_by",
    "started_at",
    "finished_at",
    "items_found",
    "items_inserted",
    "duration_ms",
    "error_message",
)


def _source_params(source: Source) -> Dict[str, Any]:
    params = source.model_dump(include=set(SOURCE_COLUMNS))
    params["kind"] = source.kind.value
    params["status"] = source.status.value
    params["selectors"] = Jsonb(params["selectors"]) if params["selectors"] else None
    return params


def _job_params(job: CrawlJob) -> Dict[str, Any]:
    params = job.model_dump(include=set(JOB_COLUMNS))
    params["status"] = job.status.value
    return params


def _insert_sql(table: str, columns: tuple) -> str:
    names = ", ".join(columns)
    values = ", ".join(f"%({c})s" for c in columns)
    return f"INSERT INTO {table} ({names}) VALUES ({values}) RETURNING *"


def _update_sql(table: str, columns: tuple) -> str:
    assignments = ", ".join(f"{c} = %({c})s" for c in columns)
    return f"UPDATE {table} SET {assignments} WHERE id = %(id)s RETURNING *"


class PostgresRepository(Repository):
    """Repository backed by a psycopg async connection pool."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self.pool = pool

    @classmethod
    async def connect(cls, db_config: Dict[str, Any]) -> "PostgresRepository":
        return cls(await open_pool(db_config))

    async def close(self) -> None:
        await self.pool.close()

    async def _fetchone(self, sql: str, params: Any = None) -> Optional[Dict[str, Any]]:
        async with get_connection(self.pool) as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, params)
                return await cur.fetchone()

    async def _fetchall(self, sql: str, params: Any = None) -> List[Dict[str, Any]]:
        async with get_connection(self.pool) as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, params)
                return await cur.fetchall()

    async def _execute(self, sql: str, params: Any = None) -> int:
        async with get_connection(self.pool) as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, params)
                return cur.rowcount

    # Sources

    async def get_source(self, source_id: int) -> Optional[Source]:
        row = await self._fetchone("SELECT * FROM sources WHERE id = %s", (source_id,))
        return Source.model_validate(row) if row else None

    async def list_sources(self, status: Optional[SourceStatus] = None) -> List[Source]:
        if status is None:
            rows = await self._fetchall("SELECT * FROM sources ORDER BY id")
        else:
            rows = await self._fetchall(
                "SELECT * FROM sources WHERE status = %s ORDER BY id", (status.value,)
            )
        return [Source.model_validate(row) for row in rows]

    async def add_source(self, source: Source) -> Source:
        row = await self._fetchone(_insert_sql("sources", SOURCE_COLUMNS), _source_params(source))
        return Source.model_validate(row)

    async def update_source(self, source: Source) -> Source:
        params = _source_params(source)
        params["id"] = source.id
        row = await self._fetchone(_update_sql("sources", SOURCE_COLUMNS), params)
        return Source.model_validate(row)

    # Articles

    async def article_exists(self, article_hash: str) -> bool:
        row = await self._fetchone("SELECT 1 AS found FROM articles WHERE hash = %s", (article_hash,))
        return row is not None

    async def insert_article(self, article: Article) -> Article:
        params = article.model_dump(include=set(ARTICLE_COLUMNS))
        try:
            row = await self._fetchone(_insert_sql("articles", ARTICLE_COLUMNS), params)
        except UniqueViolation as e:
            raise DuplicateArticleError(f"Article already stored: {article.url}") from e
        return Article.model_validate(row)

    async def get_article(self, article_id: int) -> Optional[Article]:
        row = await self._fetchone("SELECT * FROM articles WHERE id = %s", (article_id,))
        return Article.model_validate(row) if row else None

    async def recent_articles(
        self,
        since: datetime,
        exclude_source_id: Optional[int] = None,
        limit: int = 500,
    ) -> List[Article]:
        rows = await self._fetchall(
            """
            SELECT * FROM articles
            WHERE created_at >= %(since)s
              AND (%(exclude)s::int IS NULL OR source_id <> %(exclude)s::int)
            ORDER BY created_at DESC
            LIMIT %(limit)s
            """,
            {"since": since, "exclude": exclude_source_id, "limit": limit},
        )
        return [Article.model_validate(row) for row in rows]

    async def ungrouped_articles(self) -> List[Article]:
        rows = await self._fetchall(
            "SELECT * FROM articles WHERE group_id IS NULL ORDER BY created_at ASC"
        )
        return [Article.model_validate(row) for row in rows]

    async def set_article_group(self, article_id: int, group_id: int, similarity: float) -> None:
        await self._execute(
            "UPDATE articles SET group_id = %s, similarity_score = %s WHERE id = %s",
            (group_id, similarity, article_id),
        )

    async def unanalyzed_articles(self, since: datetime, limit: int = 50) -> List[Article]:
        rows = await self._fetchall(
            """
            SELECT * FROM articles
            WHERE NOT is_watch_analyzed AND created_at >= %s
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (since, limit),
        )
        return [Article.model_validate(row) for row in rows]

    async def articles_visible_to(self, user_id: int, since: datetime, limit: int = 100) -> List[Article]:
        rows = await self._fetchall(
            """
            SELECT a.* FROM articles a
            JOIN sources s ON s.id = a.source_id
            WHERE a.created_at >= %s AND (s.is_system OR s.user_id = %s)
            ORDER BY a.created_at DESC
            LIMIT %s
            """,
            (since, user_id, limit),
        )
        return [Article.model_validate(row) for row in rows]

    async def mark_watch_analyzed(self, article_id: int, analyzed_at: datetime) -> None:
        await self._execute(
            "UPDATE articles SET is_watch_analyzed = TRUE, watch_analyzed_at = %s WHERE id = %s",
            (analyzed_at, article_id),
        )

    # Groups

    async def create_group(self, group: ArticleGroup) -> ArticleGroup:
        columns = ("title", "content", "summary", "image_url", "published_at")
        row = await self._fetchone(
            _insert_sql("article_groups", columns), group.model_dump(include=set(columns))
        )
        return ArticleGroup.model_validate(row)

    async def get_group(self, group_id: int) -> Optional[ArticleGroup]:
        row = await self._fetchone("SELECT * FROM article_groups WHERE id = %s", (group_id,))
        return ArticleGroup.model_validate(row) if row else None

    async def count_groups(self) -> int:
        row = await self._fetchone("SELECT COUNT(*) AS total FROM article_groups")
        return row["total"] if row else 0

    # Watch

    async def get_keyword(self, keyword_id: int) -> Optional[WatchKeyword]:
        row = await self._fetchone("SELECT * FROM watch_keywords WHERE id = %s", (keyword_id,))
        return WatchKeyword.model_validate(row) if row else None

    async def active_keywords(self, user_id: Optional[int] = None) -> List[WatchKeyword]:
        if user_id is None:
            rows = await self._fetchall("SELECT * FROM watch_keywords WHERE is_active ORDER BY id")
        else:
            rows = await self._fetchall(
                "SELECT * FROM watch_keywords WHERE is_active AND user_id = %s ORDER BY id",
                (user_id,),
            )
        return [WatchKeyword.model_validate(row) for row in rows]

    async def upsert_watch_match(self, match: WatchMatch) -> WatchMatch:
        row = await self._fetchone(
            """
            INSERT INTO watch_matches (article_id, watch_keyword_id, confidence, reason)
            VALUES (%(article_id)s, %(watch_keyword_id)s, %(confidence)s, %(reason)s)
            ON CONFLICT (article_id, watch_keyword_id)
            DO UPDATE SET confidence = EXCLUDED.confidence, reason = EXCLUDED.reason
            RETURNING *
            """,
            match.model_dump(include={"article_id", "watch_keyword_id", "confidence", "reason"}),
        )
        return WatchMatch.model_validate(row)

    # Crawl jobs

    async def create_crawl_job(self, job: CrawlJob) -> CrawlJob:
        row = await self._fetchone(_insert_sql("crawl_jobs", JOB_COLUMNS), _job_params(job))
        return CrawlJob.model_validate(row)

    async def update_crawl_job(self, job: CrawlJob) -> CrawlJob:
        params = _job_params(job)
        params["id"] = job.id
        row = await self._fetchone(_update_sql("crawl_jobs", JOB_COLUMNS), params)
        return CrawlJob.model_validate(row)

    # Housekeeping

    async def delete_articles_before(self, cutoff: datetime) -> int:
        deleted = await self._execute("DELETE FROM articles WHERE created_at < %s", (cutoff,))
        await self._execute(
            """
            DELETE FROM article_groups g
            WHERE NOT EXISTS (SELECT 1 FROM articles a WHERE a.group_id = g.id)
            """
        )
        return deleted

    async def delete_crawl_jobs_before(self, cutoff: datetime) -> int:
        return await self._execute("DELETE FROM crawl_jobs WHERE created_at < %s", (cutoff,))

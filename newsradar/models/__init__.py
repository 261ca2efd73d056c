"""Data models for the news pipeline."""

from .article import Article, ArticleGroup
from .crawl_job import CrawlJob, CrawlJobStatus
from .source import (
    MAX_CONSECUTIVE_FAILURES,
    HealthStatus,
    SelectorRules,
    Source,
    SourceKind,
    SourceStatus,
)
from .watch import CONFIDENCE_THRESHOLD, WatchKeyword, WatchMatch

__all__ = [
    "Article",
    "ArticleGroup",
    "CONFIDENCE_THRESHOLD",
    "CrawlJob",
    "CrawlJobStatus",
    "HealthStatus",
    "MAX_CONSECUTIVE_FAILURES",
    "SelectorRules",
    "Source",
    "SourceKind",
    "SourceStatus",
    "WatchKeyword",
    "WatchMatch",
]

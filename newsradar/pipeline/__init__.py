"""Crawl job orchestration."""

from .checks import SourceChecker
from .health import HealthTracker
from .jobs import CrawlJobPayload, CrawlJobResult, CrawlJobRunner, CrawlService
from .queue import CrawlQueue
from .runtime import Runtime
from .scheduler import Scheduler

__all__ = [
    "CrawlJobPayload",
    "CrawlJobResult",
    "CrawlJobRunner",
    "CrawlQueue",
    "CrawlService",
    "HealthTracker",
    "Runtime",
    "Scheduler",
    "SourceChecker",
]

"""Source model for crawl origins (CSS selector sites and feeds)."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .base import DBModel

MAX_CONSECUTIVE_FAILURES = 5


class SourceKind(str, Enum):
    """How a source is crawled."""

    SELECTOR = "selector"
    FEED = "feed"


class SourceStatus(str, Enum):
    """Operational status of a source."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ERROR = "ERROR"


class HealthStatus(str, Enum):
    """Derived health classification shown to operators."""

    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class SelectorRules(BaseModel):
    """CSS rules for two-phase list/detail scraping."""

    list_item: str = Field(..., description="Selector for repeated items on the list page")
    title: Optional[str] = Field(None, description="Detail page title selector")
    date: Optional[str] = Field(None, description="Detail page date selector")
    content: Optional[str] = Field(None, description="Detail page body selector")
    summary: Optional[str] = Field(None, description="Detail page summary selector")
    image: Optional[str] = Field(None, description="Detail page image selector")


class Source(DBModel):
    """Crawl source model."""

    name: str = Field(..., description="Source name")
    url: str = Field(..., description="Site or list page URL")
    kind: SourceKind = Field(SourceKind.SELECTOR, description="Selector rules or feed")
    refresh_interval_minutes: int = Field(10, description="Desired refresh interval", ge=1)
    selectors: Optional[SelectorRules] = Field(None, description="Selector rules (selector kind)")
    feed_url: Optional[str] = Field(None, description="Feed URL (feed kind, defaults to url)")
    last_etag: Optional[str] = Field(None, description="ETag from the last 200 feed response")
    last_feed_modified: Optional[str] = Field(None, description="Last-Modified from the last 200 feed response")
    enrich_content: bool = Field(False, description="Fetch detail pages for truncated feed items")
    content_selector: Optional[str] = Field(None, description="Selector used for feed enrichment")
    ai_fallback: bool = Field(False, description="Retry partial articles through the AI extractor")
    user_id: Optional[int] = Field(None, description="Owning user, None for system sources")
    is_system: bool = Field(False, description="Visible to and matched against every user")
    status: SourceStatus = Field(SourceStatus.ACTIVE, description="Operational status")

    total_crawls: int = Field(0, ge=0)
    successful_crawls: int = Field(0, ge=0)
    failed_crawls: int = Field(0, ge=0)
    consecutive_failures: int = Field(0, ge=0)
    last_error_message: Optional[str] = None
    last_error_at: Optional[datetime] = None
    avg_crawl_duration_ms: Optional[float] = None
    last_crawl_duration_ms: Optional[int] = None
    last_crawl_at: Optional[datetime] = None
    total_articles_found: int = Field(0, ge=0)
    total_articles_inserted: int = Field(0, ge=0)

    @property
    def success_rate(self) -> int:
        """Rounded success percentage; 100 when never crawled."""
        if self.total_crawls == 0:
            return 100
        return round(self.successful_crawls / self.total_crawls * 100)

    @property
    def health_status(self) -> HealthStatus:
        """Classify the source from its crawl counters."""
        rate = (
            self.successful_crawls / self.total_crawls * 100
            if self.total_crawls
            else 100.0
        )
        if self.consecutive_failures >= MAX_CONSECUTIVE_FAILURES or rate < 50:
            return HealthStatus.CRITICAL
        if self.consecutive_failures >= 2 or rate < 80:
            return HealthStatus.WARNING
        return HealthStatus.HEALTHY

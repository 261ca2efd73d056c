"""Crawl job audit records."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from .base import DBModel


class CrawlJobStatus(str, Enum):
    """Lifecycle of a crawl job."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class CrawlJob(DBModel):
    """One orchestrator run for one source."""

    source_id: int = Field(..., description="Foreign key to sources table")
    status: CrawlJobStatus = Field(CrawlJobStatus.PENDING, description="Job status")
    triggered_by: str = Field("manual", description="manual or scheduled")
    started_at: Optional[datetime] = Field(None, description="When the job started")
    finished_at: Optional[datetime] = Field(None, description="When the job finished")
    items_found: int = Field(0, ge=0)
    items_inserted: int = Field(0, ge=0)
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None

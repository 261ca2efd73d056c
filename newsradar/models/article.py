"""Article and article group models."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import DBModel


class Article(DBModel):
    """Normalized article stored once per (source, url)."""

    source_id: int = Field(..., description="Foreign key to sources table")
    title: str = Field(..., description="Article title")
    url: str = Field(..., description="Canonical URL of the article")
    published_at: Optional[datetime] = Field(None, description="Publication timestamp")
    content: str = Field("", description="Extracted body text")
    summary: Optional[str] = Field(None, description="Short summary")
    image_url: Optional[str] = Field(None, description="Lead image URL")
    is_partial: bool = Field(False, description="Neither content nor summary was extracted")
    hash: str = Field(..., description="sha256 of source id and url, unique")
    url_hash: str = Field(..., description="sha256 of the url, shared across sources")
    group_id: Optional[int] = Field(None, description="Foreign key to article_groups")
    similarity_score: Optional[float] = Field(None, description="Similarity to the group")
    is_read: bool = Field(False)
    is_watch_analyzed: bool = Field(False)
    watch_analyzed_at: Optional[datetime] = None


class ArticleGroup(DBModel):
    """Cluster of articles from different sources reporting the same event."""

    title: str = Field(..., description="Representative title")
    content: str = Field("", description="Representative content")
    summary: Optional[str] = Field(None, description="Representative summary")
    image_url: Optional[str] = Field(None, description="Representative image")
    published_at: Optional[datetime] = Field(None, description="Representative publish time")

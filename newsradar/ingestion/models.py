"""Data models for ingestion."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ArticleData(BaseModel):
    """Normalized article shape produced by both extractors."""

    title: str = Field("", description="Article title")
    url: str = Field(..., description="Absolute article URL")
    date: Optional[str] = Field(None, description="Raw publication date string")
    content: Optional[str] = Field(None, description="Body text")
    summary: Optional[str] = Field(None, description="Short summary")
    image_url: Optional[str] = Field(None, description="Absolute image URL")
    is_partial: bool = Field(False, description="Neither content nor summary found")


class ListResult(BaseModel):
    """Outcome of the list phase."""

    links: List[str] = Field(default_factory=list, description="Unique absolute article links")
    matched: int = Field(0, description="Number of nodes matching the list selector")


class HttpFetchResult(BaseModel):
    """Lightweight HTTP fetch outcome."""

    url: str = Field(..., description="Requested URL")
    final_url: str = Field(..., description="URL after redirects")
    html: str = Field(..., description="Response body")
    needs_js: bool = Field(False, description="Body looks like it needs script execution")


class FeedItem(BaseModel):
    """Parsed feed item in normalized form."""

    title: str = Field("", description="Item title")
    link: str = Field("", description="Absolute item URL")
    published: Optional[str] = Field(None, description="Raw publication date")
    content: str = Field("", description="Plain text content")
    summary: str = Field("", description="Plain text summary")
    author: Optional[str] = Field(None, description="Author or creator")
    image_url: Optional[str] = Field(None, description="Lead image URL")
    guid: Optional[str] = Field(None, description="Feed-supplied identifier")
    categories: List[str] = Field(default_factory=list)
    is_partial: bool = Field(False, description="Content shorter than the partial threshold")

    def to_article(self) -> ArticleData:
        """Convert to the shared article shape."""
        return ArticleData(
            title=self.title,
            url=self.link,
            date=self.published,
            content=self.content or None,
            summary=self.summary[:500] if self.summary else None,
            image_url=self.image_url,
            is_partial=self.is_partial,
        )


class FeedResult(BaseModel):
    """Result of a conditional feed fetch."""

    feed_url: str = Field(..., description="Feed URL")
    items: List[FeedItem] = Field(default_factory=list, description="Parsed feed items")
    metadata: Dict[str, Optional[str]] = Field(default_factory=dict, description="Channel metadata")
    etag: Optional[str] = Field(None, description="ETag to store")
    last_modified: Optional[str] = Field(None, description="Last-Modified to store")
    not_modified: bool = Field(False, description="Server answered 304")


class FeedPreview(BaseModel):
    """Validation result for a candidate feed URL."""

    valid: bool = Field(..., description="Feed fetched and parsed")
    feed_url: str = Field(..., description="Feed URL")
    metadata: Dict[str, Optional[str]] = Field(default_factory=dict)
    sample_items: List[FeedItem] = Field(default_factory=list)
    item_count: int = Field(0)
    error: Optional[str] = Field(None, description="Error message if invalid")

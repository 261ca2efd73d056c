"""RSS/Atom feed fetching with conditional requests."""

import logging
import re
from typing import Any, Dict, Optional

import feedparser
import httpx

from ..exceptions import FeedError
from .models import FeedItem, FeedPreview, FeedResult
from .text import strip_html, to_absolute_url

logger = logging.getLogger(__name__)

FEED_USER_AGENT = "NewsRadar/1.0 RSS Reader"
FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"
PARTIAL_CONTENT_CHARS = 200
PREVIEW_ITEMS = 5

IMG_SRC_RE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)


def _entry_raw_content(entry: Dict[str, Any]) -> str:
    # feedparser maps content:encoded and atom content onto entry.content
    contents = entry.get("content") or []
    for block in contents:
        value = block.get("value")
        if value:
            return value
    for key in ("description", "summary"):
        value = entry.get(key)
        if value:
            return value
    return ""


def _entry_image(entry: Dict[str, Any], raw_content: str) -> Optional[str]:
    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            url = media.get("url")
            if url:
                return url

    for enclosure in entry.get("enclosures") or []:
        if (enclosure.get("type") or "").startswith("image/") and enclosure.get("href"):
            return enclosure["href"]

    image = entry.get("image")
    if isinstance(image, dict) and image.get("href"):
        return image["href"]

    match = IMG_SRC_RE.search(raw_content)
    return match.group(1) if match else None


def parse_entry(entry: Dict[str, Any], base_url: str) -> FeedItem:
    """Normalize one feedparser entry."""
    raw_content = _entry_raw_content(entry)
    content = strip_html(raw_content)
    summary = strip_html(entry.get("summary") or "") or content[:500]

    link = entry.get("link") or ""
    image = _entry_image(entry, raw_content)

    return FeedItem(
        title=strip_html(entry.get("title") or ""),
        link=to_absolute_url(link, base_url) if link else "",
        published=entry.get("published") or entry.get("updated") or None,
        content=content,
        summary=summary,
        author=entry.get("author") or None,
        image_url=to_absolute_url(image, base_url) if image else None,
        guid=entry.get("id") or None,
        categories=[tag.get("term") for tag in entry.get("tags") or [] if tag.get("term")],
        is_partial=len(content) < PARTIAL_CONTENT_CHARS,
    )


def _feed_metadata(feed: Dict[str, Any]) -> Dict[str, Optional[str]]:
    image = feed.get("image")
    return {
        "title": feed.get("title"),
        "description": feed.get("subtitle") or feed.get("description"),
        "link": feed.get("link"),
        "language": feed.get("language"),
        "image": image.get("href") if isinstance(image, dict) else None,
    }


class FeedParser:
    """Fetch and parse RSS/Atom feeds."""

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = FEED_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize feed parser."""
        self.timeout = timeout
        self.user_agent = user_agent
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
            headers={"User-Agent": self.user_agent, "Accept": FEED_ACCEPT},
        )

    async def fetch_feed(
        self,
        feed_url: str,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> FeedResult:
        """Conditionally fetch a feed.

        A 304 answer returns no items and echoes the stored validators so the
        caller leaves them untouched.
        """
        headers = {}
        if etag:
            headers["If-None-Match"] = etag
        if last_modified:
            headers["If-Modified-Since"] = last_modified

        try:
            async with self._client() as client:
                response = await client.get(feed_url, headers=headers)
        except httpx.TimeoutException as e:
            raise FeedError(f"Feed request timed out: {feed_url}") from e
        except httpx.HTTPError as e:
            raise FeedError(f"HTTP error fetching {feed_url}: {e}") from e

        if response.status_code == 304:
            logger.info("Feed not modified: %s", feed_url)
            return FeedResult(
                feed_url=feed_url,
                etag=etag,
                last_modified=last_modified,
                not_modified=True,
            )

        if not response.is_success:
            raise FeedError(f"HTTP {response.status_code} fetching {feed_url}")

        feed = feedparser.parse(response.content)
        if feed.bozo and not feed.entries and not feed.feed.get("title"):
            raise FeedError(f"Invalid feed at {feed_url}: {feed.get('bozo_exception')}")

        base_url = str(response.url)
        items = [parse_entry(entry, base_url) for entry in feed.entries]
        logger.info("Parsed %d items from %s", len(items), feed_url)

        return FeedResult(
            feed_url=feed_url,
            items=items,
            metadata=_feed_metadata(feed.feed),
            etag=response.headers.get("etag"),
            last_modified=response.headers.get("last-modified"),
        )

    async def preview_feed(self, feed_url: str) -> FeedPreview:
        """Fetch a feed for inspection; never raises."""
        try:
            result = await self.fetch_feed(feed_url)
        except FeedError as e:
            return FeedPreview(valid=False, feed_url=feed_url, error=str(e))

        return FeedPreview(
            valid=True,
            feed_url=feed_url,
            metadata=result.metadata,
            sample_items=result.items[:PREVIEW_ITEMS],
            item_count=len(result.items),
        )

    async def validate_feed(self, feed_url: str) -> bool:
        preview = await self.preview_feed(feed_url)
        return preview.valid and preview.item_count > 0

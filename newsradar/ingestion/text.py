"""Text, URL and date normalization shared by extractors."""

import hashlib
import re
from datetime import datetime
from typing import Optional
from urllib.parse import urljoin, urlparse

import pendulum
from bs4 import BeautifulSoup

_WHITESPACE = re.compile(r"\s+")

TURKISH_MONTHS = {
    "ocak": 1,
    "şubat": 2,
    "mart": 3,
    "nisan": 4,
    "mayıs": 5,
    "haziran": 6,
    "temmuz": 7,
    "ağustos": 8,
    "eylül": 9,
    "ekim": 10,
    "kasım": 11,
    "aralık": 12,
}


def sanitize_text(text: Optional[str]) -> str:
    """Collapse whitespace and newlines into single spaces and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def strip_html(raw: Optional[str]) -> str:
    """Remove scripts, styles and tags, decode entities, collapse whitespace."""
    if not raw:
        return ""
    soup = BeautifulSoup(raw, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()
    return sanitize_text(soup.get_text(" "))


def truncate(text: Optional[str], limit: int) -> Optional[str]:
    """Cut text to ``limit`` characters, keeping None and empty values."""
    if not text:
        return text
    return text[:limit]


def to_absolute_url(url: Optional[str], base_url: str) -> str:
    """Resolve ``url`` against the page it was found on.

    Protocol-relative URLs are forced to https; root-relative and
    document-relative forms are joined with the base.
    """
    if not url:
        return ""
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("/"):
        parsed = urlparse(base_url)
        if parsed.scheme and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}{url}"
    try:
        return urljoin(base_url, url)
    except ValueError:
        return url


def article_hash(source_id: int, url: str) -> str:
    """Per-source identity of an article."""
    return hashlib.sha256(f"{source_id}:{url}".encode("utf-8")).hexdigest()


def url_hash(url: str) -> str:
    """Cross-source identity of a URL."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def parse_date(value: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Parse a scraped date string, falling back to ``now``.

    Accepts ISO 8601 / RFC style strings and Turkish dates such as
    ``15 Ocak 2024`` or ``3 Mart`` (current year assumed).
    """
    fallback = now or pendulum.now("UTC")
    if not value:
        return fallback

    text = value.strip()
    try:
        parsed = pendulum.parse(text, strict=False)
        if isinstance(parsed, datetime):
            return parsed
    except (ValueError, TypeError, OverflowError):
        pass

    lower = text.lower()
    for name, month in TURKISH_MONTHS.items():
        if name in lower:
            day = re.search(r"\b(\d{1,2})\b", lower)
            year = re.search(r"\b(\d{4})\b", lower)
            if day:
                try:
                    return pendulum.datetime(
                        int(year.group(1)) if year else fallback.year,
                        month,
                        int(day.group(1)),
                        tz="Europe/Istanbul",
                    )
                except ValueError:
                    return fallback
    return fallback

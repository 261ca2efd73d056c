"""Page fetching, feed parsing and article extraction."""

from .ai_extractor import AIExtractor
from .browser import BrowserDriver, BrowserSession
from .dom import Node, PlaywrightNode, SoupNode
from .extractor import ScrapeResult, SelectorExtractor
from .feed_parser import FeedParser
from .fetcher import FetchedPage, FetchOrchestrator, FetchScope
from .http_client import HtmlFetchClient, needs_javascript
from .models import ArticleData, FeedItem, FeedPreview, FeedResult, HttpFetchResult, ListResult
from .text import article_hash, parse_date, sanitize_text, to_absolute_url, url_hash

__all__ = [
    "AIExtractor",
    "BrowserDriver",
    "BrowserSession",
    "Node",
    "SoupNode",
    "PlaywrightNode",
    "SelectorExtractor",
    "ScrapeResult",
    "FeedParser",
    "FetchOrchestrator",
    "FetchedPage",
    "FetchScope",
    "HtmlFetchClient",
    "needs_javascript",
    "ArticleData",
    "FeedItem",
    "FeedPreview",
    "FeedResult",
    "HttpFetchResult",
    "ListResult",
    "article_hash",
    "url_hash",
    "parse_date",
    "sanitize_text",
    "to_absolute_url",
]

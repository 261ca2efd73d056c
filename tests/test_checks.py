import asyncio

import httpx
import pytest

from newsradar.cache import ContentCache, MemoryBackend
from newsradar.exceptions import ExtractionError
from newsradar.ingestion import FeedParser, FetchOrchestrator, HtmlFetchClient, SelectorExtractor
from newsradar.models import SelectorRules, Source, SourceKind
from newsradar.pipeline import SourceChecker

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
<channel>
  <title>Bölge Haberleri</title>
  <link>https://bolge.example/</link>
  <description>Bölgeden son gelişmeler</description>
  <item><title>Yol çalışması</title><link>https://bolge.example/yol</link></item>
</channel>
</rss>
"""

LIST_PAGE = """<html><body>
<div class="item"><a href="/a">A</a></div>
<div class="item"><a href="/b">B</a></div>
</body></html>"""


class Site:
    def __init__(self) -> None:
        self.requests = []

    def __call__(self, request):
        self.requests.append(request.url.path)
        if request.url.path == "/rss":
            return httpx.Response(200, content=RSS.encode("utf-8"))
        if request.url.path == "/liste":
            return httpx.Response(200, text=LIST_PAGE)
        return httpx.Response(404)


def build_checker(site):
    transport = httpx.MockTransport(site)
    cache = ContentCache(MemoryBackend())
    checker = SourceChecker(
        FetchOrchestrator(HtmlFetchClient(transport=transport)),
        SelectorExtractor(),
        FeedParser(transport=transport),
        cache,
    )
    return checker, cache


def add(repo, **fields):
    return asyncio.run(repo.add_source(Source(name="Bölge", **fields)))


def test_selector_check_is_cached_per_source(repo):
    site = Site()
    checker, cache = build_checker(site)
    source = add(repo, url="https://bolge.example/liste", selectors=SelectorRules(list_item=".item"))

    async def main():
        first = await checker.check_selectors(source)
        second = await checker.check_selectors(source)
        requests_before_refresh = len(site.requests)
        await checker.check_selectors(source, refresh=True)
        return first, second, requests_before_refresh

    first, second, requests_before_refresh = asyncio.run(main())
    assert first == {"is_valid": True, "found_count": 2}
    assert second == first
    assert requests_before_refresh == 1
    assert len(site.requests) == 2


def test_selector_check_without_matches_is_invalid(repo):
    checker, cache = build_checker(Site())
    unmatched = add(repo, url="https://bolge.example/liste", selectors=SelectorRules(list_item=".yok"))
    missing = add(repo, url="https://bolge.example/kayip", selectors=SelectorRules(list_item=".item"))

    async def main():
        results = [await checker.check_selectors(unmatched), await checker.check_selectors(missing)]
        return results, await cache.get_selector_validation(missing.id)

    results, cached = asyncio.run(main())
    assert results == [{"is_valid": False, "found_count": 0}] * 2
    assert cached == {"is_valid": False, "found_count": 0}


def test_selector_check_needs_rules(repo):
    checker, _ = build_checker(Site())
    source = add(repo, url="https://bolge.example/liste")

    with pytest.raises(ExtractionError):
        asyncio.run(checker.check_selectors(source))


def test_feed_metadata_is_cached(repo):
    site = Site()
    checker, cache = build_checker(site)
    source = add(repo, url="https://bolge.example/", kind=SourceKind.FEED, feed_url="https://bolge.example/rss")

    async def main():
        first = await checker.feed_metadata(source)
        second = await checker.feed_metadata(source)
        return first, second

    first, second = asyncio.run(main())
    assert first["title"] == "Bölge Haberleri"
    assert first["description"] == "Bölgeden son gelişmeler"
    assert second["title"] == "Bölge Haberleri"
    assert "cached_at" in second
    assert site.requests == ["/rss"]


def test_feed_metadata_for_broken_feed_is_not_cached(repo):
    checker, cache = build_checker(Site())
    feed = add(repo, url="https://bolge.example/", kind=SourceKind.FEED, feed_url="https://bolge.example/kayip")
    page = add(repo, url="https://bolge.example/liste", selectors=SelectorRules(list_item=".item"))

    async def main():
        return (
            await checker.feed_metadata(feed),
            await cache.get_metadata(feed.id),
            await checker.feed_metadata(page),
        )

    assert asyncio.run(main()) == (None, None, None)


def test_forget_drops_both_entries(repo):
    checker, cache = build_checker(Site())
    source = add(repo, url="https://bolge.example/liste", selectors=SelectorRules(list_item=".item"))

    async def main():
        await checker.check_selectors(source)
        await cache.cache_metadata(source.id, {"title": "Bölge"})
        await checker.forget(source.id)
        return await cache.get_selector_validation(source.id), await cache.get_metadata(source.id)

    assert asyncio.run(main()) == (None, None)

import asyncio

import httpx
import pytest

from newsradar.cache import ContentCache, MemoryBackend
from newsradar.dedup import DeduplicationEngine
from newsradar.exceptions import ExtractionError, FeedError, SourceNotActiveError, SourceNotFoundError
from newsradar.ingestion import FeedParser, FetchOrchestrator, HtmlFetchClient, SelectorExtractor
from newsradar.models import CrawlJobStatus, SelectorRules, Source, SourceKind, SourceStatus, WatchKeyword
from newsradar.pipeline import CrawlJobRunner, CrawlService, HealthTracker
from newsradar.watch import RelevanceJudge, WatchAnalyzer

BODY = "Belediye meclisi yeni ulaşım planını oy birliğiyle kabul etti. " * 12

RSS = f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
<channel>
  <title>Şehir Haberleri</title>
  <link>https://sehir.example/</link>
  <item>
    <title>Ulaşım planı kabul edildi</title>
    <link>https://sehir.example/ulasim</link>
    <content:encoded><![CDATA[<p>{BODY}</p>]]></content:encoded>
  </item>
  <item>
    <title>Van'da kar yağışı</title>
    <link>https://sehir.example/kar</link>
    <description>Kısa haber</description>
  </item>
  <item>
    <link>https://sehir.example/basliksiz</link>
    <description>Başlıksız öğe</description>
  </item>
</channel>
</rss>
"""

LIST_PAGE = f"""<html><body>
<div class="item"><a href="/haber/1">Bir</a></div>
<div class="item"><a href="/haber/2">İki</a></div>
<div class="item"><a href="/haber/kayip">Kayıp</a></div>
<p>{BODY}</p>
</body></html>"""

DETAIL_PAGE = """<html><body>
<h1>{title}</h1>
<div class="content">{body}</div>
</body></html>"""


def site(request):
    path = request.url.path
    if path == "/rss":
        if request.headers.get("If-None-Match") == '"v1"':
            return httpx.Response(304)
        return httpx.Response(200, content=RSS.encode("utf-8"), headers={"ETag": '"v1"'})
    if path == "/liste":
        return httpx.Response(200, text=LIST_PAGE)
    if path == "/haber/1":
        return httpx.Response(200, text=DETAIL_PAGE.format(title="Birinci haber", body=BODY))
    if path == "/haber/2":
        return httpx.Response(200, text=DETAIL_PAGE.format(title="İkinci haber", body=BODY))
    if path == "/kar":
        return httpx.Response(200, text=DETAIL_PAGE.format(title="Van'da kar yağışı", body=BODY))
    return httpx.Response(404)


def build_runner(repo, handler=site, watch=None):
    transport = httpx.MockTransport(handler)
    return CrawlJobRunner(
        repo,
        FetchOrchestrator(HtmlFetchClient(transport=transport)),
        FeedParser(transport=transport),
        SelectorExtractor(),
        DeduplicationEngine(repo),
        HealthTracker(repo),
        watch=watch,
    )


def add_feed_source(repo, **fields):
    source = Source(
        name="Şehir",
        url="https://sehir.example/",
        kind=SourceKind.FEED,
        feed_url="https://sehir.example/rss",
        user_id=1,
        **fields,
    )
    return asyncio.run(repo.add_source(source))


def add_selector_source(repo, selectors=None):
    source = Source(
        name="Liste",
        url="https://liste.example/liste",
        selectors=selectors,
        user_id=1,
    )
    return asyncio.run(repo.add_source(source))


def crawl(repo, runner, source_id):
    async def main():
        payload = await CrawlService(repo).build_payload(source_id)
        return await runner.run(payload)

    return asyncio.run(main())


def test_build_payload_rejects_missing_and_inactive_sources(repo):
    paused = add_feed_source(repo, status=SourceStatus.PAUSED)
    service = CrawlService(repo)

    with pytest.raises(SourceNotFoundError):
        asyncio.run(service.build_payload(999))
    with pytest.raises(SourceNotActiveError):
        asyncio.run(service.build_payload(paused.id))


def test_feed_payload_defaults_to_site_url(repo):
    source = asyncio.run(
        repo.add_source(Source(name="Akış", url="https://akis.example/rss", kind=SourceKind.FEED, last_etag='"x"'))
    )
    payload = asyncio.run(CrawlService(repo).build_payload(source.id, "scheduled"))
    assert payload.feed_url == "https://akis.example/rss"
    assert payload.last_etag == '"x"'
    assert payload.triggered_by == "scheduled"
    assert payload.selectors is None


def test_active_payloads_skip_paused_and_errored_sources(repo):
    add_feed_source(repo)
    add_feed_source(repo, status=SourceStatus.PAUSED)
    add_feed_source(repo, status=SourceStatus.ERROR)

    payloads = asyncio.run(CrawlService(repo).active_payloads())
    assert len(payloads) == 1
    assert payloads[0].triggered_by == "scheduled"


def test_feed_job_stores_articles_and_validators(repo):
    source = add_feed_source(repo)
    result = crawl(repo, build_runner(repo), source.id)

    assert result.items_found == 2
    assert result.items_inserted == 2
    assert result.duplicates == 0
    titles = sorted(a.title for a in repo.articles.values())
    assert titles == ["Ulaşım planı kabul edildi", "Van'da kar yağışı"]

    stored = repo.sources[source.id]
    assert stored.last_etag == '"v1"'
    assert stored.successful_crawls == 1
    assert stored.total_articles_inserted == 2

    job = next(iter(repo.jobs.values()))
    assert job.status == CrawlJobStatus.COMPLETED
    assert job.items_found == 2
    assert job.items_inserted == 2
    assert job.triggered_by == "manual"


def test_not_modified_feed_keeps_validators(repo):
    source = add_feed_source(repo, last_etag='"v1"', last_feed_modified="Mon, 15 Jan 2024 10:00:00 GMT")
    result = crawl(repo, build_runner(repo), source.id)

    assert result.not_modified is True
    assert result.items_found == 0
    assert not repo.articles
    stored = repo.sources[source.id]
    assert stored.last_etag == '"v1"'
    assert stored.last_feed_modified == "Mon, 15 Jan 2024 10:00:00 GMT"
    assert stored.successful_crawls == 1


def test_rerun_counts_duplicates(repo):
    source = add_feed_source(repo)
    runner = build_runner(repo)
    crawl(repo, runner, source.id)
    repo.sources[source.id].last_etag = None

    result = crawl(repo, runner, source.id)
    assert result.items_inserted == 0
    assert result.duplicates == 2
    assert len(repo.articles) == 2


def test_partial_feed_items_are_enriched(repo):
    source = add_feed_source(repo, enrich_content=True, content_selector=".content")
    crawl(repo, build_runner(repo), source.id)

    snow = next(a for a in repo.articles.values() if a.url == "https://sehir.example/kar")
    assert snow.content.startswith("Belediye meclisi")
    assert snow.is_partial is False


def test_failed_job_is_recorded_and_raised(repo):
    source = add_feed_source(repo)
    runner = build_runner(repo, handler=lambda request: httpx.Response(500))

    with pytest.raises(FeedError):
        crawl(repo, runner, source.id)

    job = next(iter(repo.jobs.values()))
    assert job.status == CrawlJobStatus.FAILED
    assert "500" in job.error_message
    stored = repo.sources[source.id]
    assert stored.failed_crawls == 1
    assert stored.consecutive_failures == 1


def test_selector_job_scrapes_detail_pages(repo):
    source = add_selector_source(repo, SelectorRules(list_item=".item", title="h1", content=".content"))
    result = crawl(repo, build_runner(repo), source.id)

    assert result.items_found == 2
    assert result.items_inserted == 2
    assert len(result.errors) == 1
    assert "kayip" in result.errors[0]
    titles = sorted(a.title for a in repo.articles.values())
    assert titles == ["Birinci haber", "İkinci haber"]
    assert all(a.content for a in repo.articles.values())


def test_selector_job_without_rules_fails(repo):
    source = add_selector_source(repo)

    with pytest.raises(ExtractionError):
        crawl(repo, build_runner(repo), source.id)
    assert repo.sources[source.id].failed_crawls == 1


def test_new_articles_are_checked_against_watch_keywords(repo, llm):
    llm.handler = lambda prompt: {
        "isRelevant": "Van'da kar" in prompt,
        "confidence": 0.9,
        "reason": "Van ili",
    }
    keyword = asyncio.run(repo.add_keyword(WatchKeyword(user_id=1, keyword="Van")))
    source = add_feed_source(repo)
    runner = build_runner(repo, watch=WatchAnalyzer(repo, RelevanceJudge(llm)))

    crawl(repo, runner, source.id)
    assert llm.calls == 2
    assert [m.watch_keyword_id for m in repo.matches.values()] == [keyword.id]
    assert all(a.is_watch_analyzed for a in repo.articles.values())


def test_feed_job_refreshes_cached_metadata(repo):
    source = add_feed_source(repo)
    cache = ContentCache(MemoryBackend())
    transport = httpx.MockTransport(site)
    runner = CrawlJobRunner(
        repo,
        FetchOrchestrator(HtmlFetchClient(transport=transport), cache=cache),
        FeedParser(transport=transport),
        SelectorExtractor(),
        DeduplicationEngine(repo),
        HealthTracker(repo, cache=cache),
    )
    crawl(repo, runner, source.id)

    metadata = asyncio.run(cache.get_metadata(source.id))
    assert metadata["title"] == "Şehir Haberleri"
    assert metadata["link"] == "https://sehir.example/"

import asyncio

import pytest

from newsradar.cache import ContentCache, MemoryBackend
from newsradar.exceptions import SourceNotFoundError
from newsradar.models import HealthStatus, Source, SourceStatus
from newsradar.pipeline import HealthTracker


def add_source(repo, **fields):
    return asyncio.run(repo.add_source(Source(name="Ajans", url="https://ajans.example", **fields)))


def test_five_failures_put_source_in_error(repo):
    source = add_source(repo)
    health = HealthTracker(repo)

    async def main():
        statuses = []
        for i in range(5):
            updated = await health.record_failure(source.id, f"timeout {i}")
            statuses.append(updated.status)
        return statuses

    statuses = asyncio.run(main())
    assert statuses[:4] == [SourceStatus.ACTIVE] * 4
    assert statuses[4] == SourceStatus.ERROR
    stored = repo.sources[source.id]
    assert stored.consecutive_failures == 5
    assert stored.failed_crawls == 5
    assert stored.last_error_message == "timeout 4"
    assert stored.health_status == HealthStatus.CRITICAL


def test_success_resets_streak_and_recovers(repo):
    source = add_source(repo, status=SourceStatus.ERROR, consecutive_failures=7, total_crawls=7, failed_crawls=7)
    health = HealthTracker(repo)

    updated = asyncio.run(health.record_success(source.id, 1200, found=10, inserted=4))
    assert updated.status == SourceStatus.ACTIVE
    assert updated.consecutive_failures == 0
    assert updated.successful_crawls == 1
    assert updated.total_articles_found == 10
    assert updated.total_articles_inserted == 4
    assert updated.avg_crawl_duration_ms == 1200.0


def test_running_average_duration(repo):
    source = add_source(repo)
    health = HealthTracker(repo)

    async def main():
        await health.record_success(source.id, 1000, 1, 1)
        await health.record_success(source.id, 2000, 1, 1)
        return await health.record_success(source.id, 3000, 1, 1)

    updated = asyncio.run(main())
    assert updated.avg_crawl_duration_ms == pytest.approx(2000.0)
    assert updated.last_crawl_duration_ms == 3000


def test_paused_source_stays_paused(repo):
    source = add_source(repo, status=SourceStatus.PAUSED)
    health = HealthTracker(repo)

    async def main():
        for _ in range(6):
            await health.record_failure(source.id, "boom")
        return await health.record_success(source.id, 100, 0, 0)

    assert asyncio.run(main()).status == SourceStatus.PAUSED


def test_feed_validators_are_stored_only_when_given(repo):
    source = add_source(repo, last_etag='"v1"', last_feed_modified="Mon, 01 Jan 2024 00:00:00 GMT")
    health = HealthTracker(repo)

    async def main():
        kept = await health.record_success(source.id, 10, 0, 0)
        replaced = await health.record_success(source.id, 10, 0, 0, feed_validators=('"v2"', None))
        return kept, replaced

    kept, replaced = asyncio.run(main())
    assert kept.last_etag == '"v1"'
    assert replaced.last_etag == '"v2"'
    assert replaced.last_feed_modified is None


def test_concurrent_updates_are_not_lost(repo):
    source = add_source(repo)
    health = HealthTracker(repo)

    async def main():
        await asyncio.gather(
            *[health.record_success(source.id, 100, 2, 1) for _ in range(10)],
            *[health.record_failure(source.id, "flaky") for _ in range(3)],
        )

    asyncio.run(main())
    stored = repo.sources[source.id]
    assert stored.total_crawls == 13
    assert stored.successful_crawls == 10
    assert stored.failed_crawls == 3
    assert stored.total_articles_found == 20


def test_operator_actions(repo):
    source = add_source(repo)
    health = HealthTracker(repo)

    async def main():
        for _ in range(5):
            await health.record_failure(source.id, "down")
        paused = await health.pause(source.id)
        active = await health.activate(source.id)
        reset = await health.reset_health(source.id)
        return paused, active, reset

    paused, active, reset = asyncio.run(main())
    assert paused.status == SourceStatus.PAUSED
    assert active.status == SourceStatus.ACTIVE
    assert active.consecutive_failures == 0
    assert active.failed_crawls == 5
    assert reset.failed_crawls == 0
    assert reset.total_crawls == 0
    assert reset.last_error_message is None
    assert reset.status == SourceStatus.ACTIVE
    assert reset.success_rate == 100


def test_unknown_source_raises(repo):
    with pytest.raises(SourceNotFoundError):
        asyncio.run(HealthTracker(repo).record_failure(42, "boom"))


def test_operator_actions_drop_cached_checks(repo):
    source = add_source(repo)
    cache = ContentCache(MemoryBackend())
    health = HealthTracker(repo, cache=cache)

    async def cached_after(action):
        await cache.cache_selector_validation(source.id, True, 8)
        await cache.cache_metadata(source.id, {"title": "Ajans"})
        await action(source.id)
        return await cache.get_selector_validation(source.id), await cache.get_metadata(source.id)

    async def main():
        return [await cached_after(a) for a in (health.pause, health.activate, health.reset_health)]

    assert asyncio.run(main()) == [(None, None)] * 3


def test_crawl_outcomes_keep_cached_checks(repo):
    source = add_source(repo)
    cache = ContentCache(MemoryBackend())
    health = HealthTracker(repo, cache=cache)

    async def main():
        await cache.cache_selector_validation(source.id, True, 8)
        await health.record_failure(source.id, "timeout")
        return await cache.get_selector_validation(source.id)

    assert asyncio.run(main()) == {"is_valid": True, "found_count": 8}

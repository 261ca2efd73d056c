import asyncio

import pytest

from newsradar.config import DedupConfig
from newsradar.dedup import DeduplicationEngine, SimilarityJudge
from newsradar.ingestion import article_hash, url_hash
from newsradar.models import Article

FAST = DedupConfig(call_delay=0)


def make_article(source_id, title, url, content=""):
    return Article(
        source_id=source_id,
        title=title,
        url=url,
        content=content,
        hash=article_hash(source_id, url),
        url_hash=url_hash(url),
    )


def engine_for(repo, llm=None, **overrides):
    judge = SimilarityJudge(llm, backoff=0) if llm is not None else None
    return DeduplicationEngine(repo, judge, FAST.model_copy(update=overrides))


async def store(repo, *articles):
    return [await repo.insert_article(a) for a in articles]


def test_persist_new_skips_known_hash(repo):
    engine = engine_for(repo)
    article = make_article(1, "Başlık", "https://a.example/1")

    async def main():
        first = await engine.persist_new(article)
        second = await engine.persist_new(article)
        return first, second

    first, second = asyncio.run(main())
    assert first is not None and first.id is not None
    assert second is None
    assert len(repo.articles) == 1


@pytest.mark.parametrize("score, grouped", [(0.79, False), (0.80, True)])
def test_similarity_threshold(repo, llm, score, grouped):
    llm.handler = lambda prompt: {"isSameNews": score >= 0.8, "similarity": score, "reason": ""}
    engine = engine_for(repo, llm)

    async def main():
        stored, = await store(repo, make_article(1, "Merkez Bankası faizi sabit tuttu", "https://a.example/1"))
        new, = await store(repo, make_article(2, "Merkez Bankası faiz kararını açıkladı", "https://b.example/1"))
        return stored, new, await engine.process(new)

    stored, new, group_id = asyncio.run(main())
    assert llm.calls == 1
    if grouped:
        assert group_id is not None
        assert repo.articles[stored.id].group_id == group_id
        assert repo.articles[stored.id].similarity_score == 1.0
        assert repo.articles[new.id].similarity_score == 0.8
    else:
        assert group_id is None
        assert repo.articles[new.id].group_id is None
        assert not repo.groups


def test_unrelated_titles_never_reach_the_judge(repo, llm):
    llm.handler = lambda prompt: {"isSameNews": True, "similarity": 1.0}
    engine = engine_for(repo, llm)

    async def main():
        await store(repo, make_article(1, "Galatasaray derbiyi kazandı", "https://a.example/1"))
        new, = await store(repo, make_article(2, "Borsa güne yükselişle başladı", "https://b.example/1"))
        return await engine.process(new)

    assert asyncio.run(main()) is None
    assert llm.calls == 0


def test_same_source_is_not_a_candidate(repo, llm):
    llm.handler = lambda prompt: {"isSameNews": True, "similarity": 1.0}
    engine = engine_for(repo, llm)

    async def main():
        await store(repo, make_article(1, "Merkez Bankası faizi sabit tuttu", "https://a.example/1"))
        new, = await store(repo, make_article(1, "Merkez Bankası faiz kararını açıkladı", "https://a.example/2"))
        return await engine.process(new)

    assert asyncio.run(main()) is None
    assert llm.calls == 0


def test_new_group_takes_richest_article(repo, llm):
    llm.handler = lambda prompt: {"isSameNews": True, "similarity": 0.95}
    engine = engine_for(repo, llm)
    long_body = "Para politikası kurulu politika faizini yüzde 50 seviyesinde sabit bıraktı. " * 5

    async def main():
        await store(repo, make_article(1, "Merkez Bankası faizi sabit tuttu", "https://a.example/1", "Kısa"))
        new, = await store(
            repo, make_article(2, "Merkez Bankası faiz kararını açıkladı", "https://b.example/1", long_body)
        )
        return await engine.process(new)

    group_id = asyncio.run(main())
    group = repo.groups[group_id]
    assert group.title == "Merkez Bankası faiz kararını açıkladı"
    assert group.content == long_body


def test_joins_existing_group(repo, llm):
    llm.handler = lambda prompt: {"isSameNews": True, "similarity": 0.85}
    engine = engine_for(repo, llm)

    async def main():
        await store(repo, make_article(1, "Merkez Bankası faizi sabit tuttu", "https://a.example/1"))
        second, = await store(repo, make_article(2, "Merkez Bankası faiz kararını açıkladı", "https://b.example/1"))
        first_group = await engine.process(second)
        third, = await store(repo, make_article(3, "Merkez Bankası faiz oranını değiştirmedi", "https://c.example/1"))
        return first_group, await engine.process(third), third

    first_group, second_group, third = asyncio.run(main())
    assert first_group == second_group
    assert len(repo.groups) == 1
    assert repo.articles[third.id].group_id == first_group


def test_exact_titles_group_without_judge(repo):
    engine = engine_for(repo)

    async def main():
        await store(repo, make_article(1, "Son dakika: Ankara'da deprem", "https://a.example/1"))
        same, = await store(repo, make_article(2, "SON DAKIKA Ankara'da deprem!", "https://b.example/1"))
        other, = await store(repo, make_article(3, "Ankara'da 4.2 büyüklüğünde deprem", "https://c.example/1"))
        return await engine.process(same), await engine.process(other)

    same_group, other_group = asyncio.run(main())
    assert same_group is not None
    assert other_group is None


def test_backfill_groups_exact_titles_without_calls(repo, llm):
    llm.handler = lambda prompt: {"isSameNews": True, "similarity": 1.0}
    engine = engine_for(repo, llm)

    async def main():
        await store(
            repo,
            make_article(1, "Seçim sonuçları açıklandı", "https://a.example/1", "kısa"),
            make_article(2, "Seçim sonuçları açıklandı!", "https://b.example/1", "daha uzun içerik"),
            make_article(3, "Galatasaray derbiyi kazandı", "https://c.example/1"),
        )
        return await engine.backfill()

    stats = asyncio.run(main())
    assert llm.calls == 0
    assert stats.processed == 3
    assert stats.grouped == 2
    assert stats.groups == 1
    group = next(iter(repo.groups.values()))
    assert group.content == "daha uzun içerik"
    assert repo.articles[3].group_id is None


def test_backfill_fuzzy_phase(repo, llm):
    llm.handler = lambda prompt: {"isSameNews": True, "similarity": 0.9}
    engine = engine_for(repo, llm)
    progress = []

    async def main():
        await store(
            repo,
            make_article(1, "Merkez Bankası faizi sabit tuttu", "https://a.example/1"),
            make_article(2, "Merkez Bankası faiz kararını açıkladı", "https://b.example/1"),
            make_article(3, "Galatasaray derbiyi kazandı", "https://c.example/1"),
        )
        return await engine.backfill(on_progress=lambda *args: progress.append(args))

    stats = asyncio.run(main())
    assert stats.grouped == 2
    assert stats.groups == 1
    assert repo.articles[1].group_id == repo.articles[2].group_id is not None
    assert repo.articles[2].similarity_score == 0.9
    assert repo.articles[3].group_id is None
    assert progress


def test_backfill_stops_after_repeated_judge_errors(repo, llm):
    llm.handler = lambda prompt: RuntimeError("upstream unavailable")
    engine = engine_for(repo, llm, max_consecutive_errors=1)

    async def main():
        await store(
            repo,
            make_article(1, "Merkez Bankası faizi sabit tuttu", "https://a.example/1"),
            make_article(2, "Merkez Bankası faiz kararını açıkladı", "https://b.example/1"),
            make_article(3, "Merkez Bankası faiz oranını değiştirmedi", "https://c.example/1"),
        )
        return await engine.backfill()

    stats = asyncio.run(main())
    assert llm.calls == 2
    assert stats.grouped == 0

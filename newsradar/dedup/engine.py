"""Cross-source duplicate detection and article grouping."""

import asyncio
import logging
from collections import defaultdict
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Set

import pendulum
from pydantic import BaseModel, Field

from ..config import DedupConfig
from ..db import Repository
from ..exceptions import DuplicateArticleError
from ..models import Article, ArticleGroup
from .judge import SimilarityJudge, SimilarityVerdict
from .lexical import normalize_title, title_similarity

logger = logging.getLogger(__name__)


class SimilarityMatch(SimilarityVerdict):
    """Verdict against a stored candidate."""

    article_id: int = Field(..., description="Candidate article id")


class BackfillStats(BaseModel):
    """Outcome of a backfill pass."""

    processed: int = Field(0, description="Ungrouped articles considered")
    grouped: int = Field(0, description="Articles assigned to a group")
    groups: int = Field(0, description="Total groups after the pass")


def _richest(articles: List[Article]) -> Article:
    best = articles[0]
    for article in articles[1:]:
        if len(article.content or "") > len(best.content or ""):
            best = article
    return best


def _group_from(article: Article) -> ArticleGroup:
    return ArticleGroup(
        title=article.title,
        content=article.content or "",
        summary=article.summary,
        image_url=article.image_url,
        published_at=article.published_at,
    )


class DeduplicationEngine:
    """Store articles once per source and group the same story across sources."""

    def __init__(
        self,
        repository: Repository,
        judge: Optional[SimilarityJudge] = None,
        config: Optional[DedupConfig] = None,
    ) -> None:
        self.repository = repository
        self.judge = judge
        self.config = config or DedupConfig()

    def is_semantic_available(self) -> bool:
        return self.judge is not None

    async def persist_new(self, article: Article) -> Optional[Article]:
        """Insert an article unless its per-source hash is already stored.

        Returns None for duplicates, including rows lost to an insert race.
        """
        if await self.repository.article_exists(article.hash):
            return None
        try:
            return await self.repository.insert_article(article)
        except DuplicateArticleError:
            logger.debug("Insert race on %s, counted as duplicate", article.url)
            return None

    def prefilter(self, article: Article, candidates: List[Article]) -> List[Article]:
        """Keep candidates whose titles overlap enough to be worth a judge call."""
        kept = []
        for candidate in candidates:
            score = title_similarity(article.title, candidate.title)
            if score > 0 and score >= self.config.prefilter_threshold:
                kept.append(candidate)
        return kept

    async def rank_candidates(self, article: Article, candidates: List[Article]) -> List[SimilarityMatch]:
        """Judge prefiltered candidates, best first.

        Stops early once a candidate reaches the early-stop similarity.
        """
        potential = self.prefilter(article, candidates)
        logger.debug("Pre-filter: %d -> %d potential matches", len(candidates), len(potential))

        results: List[SimilarityMatch] = []
        for i, candidate in enumerate(potential):
            if i > 0 and self.config.call_delay:
                await asyncio.sleep(self.config.call_delay)

            verdict = await self.judge.compare(article, candidate)
            results.append(SimilarityMatch(article_id=candidate.id, **verdict.model_dump()))
            if verdict.similarity >= self.config.early_stop_similarity:
                break

        results.sort(key=lambda m: m.similarity, reverse=True)
        return results

    async def find_similar(self, article: Article) -> List[SimilarityMatch]:
        """Stored articles from other sources that report the same story.

        Without a judge only identical normalized titles match.
        """
        since = pendulum.now("UTC") - timedelta(days=self.config.max_days_back)
        candidates = [
            c
            for c in await self.repository.recent_articles(
                since, exclude_source_id=article.source_id, limit=self.config.max_candidates
            )
            if c.id != article.id
        ]
        logger.debug("Checking against %d recent articles", len(candidates))

        if not self.is_semantic_available():
            title = normalize_title(article.title)
            return [
                SimilarityMatch(article_id=c.id, is_same_news=True, similarity=1.0, reason="Exact title")
                for c in candidates
                if title and normalize_title(c.title) == title
            ]

        ranked = await self.rank_candidates(article, candidates)
        return [m for m in ranked if m.similarity >= self.config.similarity_threshold]

    async def get_or_create_group(self, article: Article, matched: Article) -> ArticleGroup:
        """Return the matched article's group, creating one when it has none.

        A new group takes its fields from whichever article has more content,
        and the matched article joins it with similarity 1.0.
        """
        if matched.group_id is not None:
            group = await self.repository.get_group(matched.group_id)
            if group is not None:
                return group

        group = await self.repository.create_group(_group_from(_richest([matched, article])))
        await self.repository.set_article_group(matched.id, group.id, 1.0)
        logger.info("Created article group %s with article %s", group.id, matched.id)
        return group

    async def process(self, article: Article) -> Optional[int]:
        """Group a freshly stored article; returns its group id, if any."""
        matches = await self.find_similar(article)
        if not matches:
            return None

        best = matches[0]
        matched = await self.repository.get_article(best.article_id)
        if matched is None:
            return None

        group = await self.get_or_create_group(article, matched)
        await self.repository.set_article_group(article.id, group.id, best.similarity)
        logger.info(
            "Article %s joined group %s (similarity %.2f)", article.id, group.id, best.similarity
        )
        return group.id

    async def backfill(self, on_progress: Optional[Callable[[int, int, int], None]] = None) -> BackfillStats:
        """Group existing ungrouped articles.

        Exact normalized titles are grouped first without the judge; the
        remainder is then fuzzy-matched while the judge keeps answering.
        """
        articles = await self.repository.ungrouped_articles()
        logger.info("Processing %d ungrouped articles", len(articles))

        grouped = 0
        done: Set[int] = set()

        by_title: Dict[str, List[Article]] = defaultdict(list)
        for article in articles:
            by_title[normalize_title(article.title)].append(article)

        for title, members in by_title.items():
            if not title or len(members) < 2:
                continue
            group = await self.repository.create_group(_group_from(_richest(members)))
            for member in members:
                await self.repository.set_article_group(member.id, group.id, 1.0)
                done.add(member.id)
                grouped += 1
            logger.info("Exact title group %s with %d articles: %s", group.id, len(members), title[:50])

        logger.info("Exact title phase grouped %d articles", grouped)

        if not self.is_semantic_available():
            logger.warning("No similarity judge configured, skipping fuzzy matching")
            return BackfillStats(
                processed=len(articles), grouped=grouped, groups=await self.repository.count_groups()
            )

        remaining = [a for a in articles if a.id not in done]
        consecutive_errors = 0
        for index, article in enumerate(remaining, start=1):
            if article.id in done:
                continue

            candidates = [c for c in remaining if c.id != article.id and c.id not in done]
            if not candidates:
                continue

            ranked = await self.rank_candidates(article, candidates)
            if any(m.error for m in ranked):
                consecutive_errors += 1
                if consecutive_errors >= self.config.max_consecutive_errors:
                    logger.warning(
                        "Too many judge errors (%d), stopping fuzzy matching", consecutive_errors
                    )
                    break
            else:
                consecutive_errors = 0

            matches = [m for m in ranked if m.similarity >= self.config.similarity_threshold]
            if matches:
                group = await self.repository.create_group(_group_from(article))
                await self.repository.set_article_group(article.id, group.id, 1.0)
                done.add(article.id)
                grouped += 1
                for match in matches:
                    await self.repository.set_article_group(match.article_id, group.id, match.similarity)
                    done.add(match.article_id)
                    grouped += 1
                logger.info("Fuzzy group %s with %d articles", group.id, len(matches) + 1)

            if on_progress:
                on_progress(index, len(remaining), grouped)

        groups = await self.repository.count_groups()
        logger.info(
            "Backfill complete: %d processed, %d grouped, %d groups", len(articles), grouped, groups
        )
        return BackfillStats(processed=len(articles), grouped=grouped, groups=groups)

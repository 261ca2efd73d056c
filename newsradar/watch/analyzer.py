"""Semantic matching of articles against user watch keywords."""

import logging
from datetime import timedelta
from typing import Iterable, List, Optional

import pendulum
from pydantic import BaseModel, Field

from ..config import WatchConfig
from ..db import Repository
from ..llm import LLMProvider
from ..models import Article, Source, WatchKeyword, WatchMatch

logger = logging.getLogger(__name__)

PROMPT_CONTENT_CHARS = 500
REANALYZE_DAYS = 7

SYSTEM_PROMPT = (
    "Sen bir haber analiz uzmanısın. Haberlerin belirli anahtar kelimelerle ilgili olup "
    "olmadığını semantik olarak analiz edersin. Her zaman JSON formatında yanıt ver."
)


class RelevanceVerdict(BaseModel):
    """Judge answer for one article and keyword."""

    is_relevant: bool = Field(False)
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    reason: str = Field("")


def build_relevance_prompt(article: Article, keyword: WatchKeyword) -> str:
    description = f"Açıklama: {keyword.description}" if keyword.description else ""
    summary = f"Haber Özeti: {article.summary}" if article.summary else ""
    content = (article.content or "")[:PROMPT_CONTENT_CHARS]

    return f"""Aşağıdaki haberin "{keyword.keyword}" ile gerçekten ilgili olup olmadığını analiz et.

Takip Kelimesi: {keyword.keyword}
{description}

Haber Başlığı: {article.title}
{summary}
İçerik (ilk 500 karakter): {content}

ÇOK ÖNEMLİ KURALLAR:
1. Sadece kelimenin BAĞLAMSAL olarak geçip geçmediğine bak
2. Alt dizi eşleşmelerini KESINLIKLE REDDET:
   - "Van" kelimesi aranıyorsa: "hayvan", "divan", "dava" gibi kelimelerdeki "van" = HAYIR
   - "Van" kelimesi aranıyorsa: "Van ili", "Van'da", "Van Valisi" = EVET
3. Kelime ayrı bir kavram olarak veya coğrafi/özel isim olarak geçmeli
4. Sadece başlık veya içerikte gerçekten o konuyla ilgili olduğunda EVET de
5. Eş anlamlılar ve doğrudan ilişkili kavramlar da sayılır

JSON formatında yanıt ver:
{{
  "isRelevant": true veya false,
  "confidence": 0.0-1.0 arası güven skoru,
  "reason": "Kısa açıklama (maksimum 50 karakter)"
}}"""


class RelevanceJudge:
    """Ask the model whether an article is really about a keyword."""

    def __init__(self, provider: LLMProvider) -> None:
        self.provider = provider

    async def check(self, article: Article, keyword: WatchKeyword) -> RelevanceVerdict:
        """Never raises; failures come back as not relevant."""
        try:
            data = await self.provider.complete_json(
                build_relevance_prompt(article, keyword),
                system=SYSTEM_PROMPT,
                max_tokens=200,
                temperature=0.1,
            )
        except Exception as e:
            logger.error("Watch analysis failed for article %s: %s", article.id, e)
            return RelevanceVerdict(reason="Analysis error")

        confidence = data.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = 0.0
        return RelevanceVerdict(
            is_relevant=data.get("isRelevant") is True,
            confidence=min(max(float(confidence), 0.0), 1.0),
            reason=str(data.get("reason") or ""),
        )


class WatchAnalyzer:
    """Record which watch keywords each stored article is relevant to."""

    def __init__(
        self,
        repository: Repository,
        judge: Optional[RelevanceJudge],
        config: Optional[WatchConfig] = None,
    ) -> None:
        self.repository = repository
        self.judge = judge
        self.config = config or WatchConfig()

    def is_available(self) -> bool:
        return self.judge is not None

    async def keywords_for(self, source: Optional[Source]) -> List[WatchKeyword]:
        """System sources are matched against every user's keywords."""
        if source is None:
            return []
        if source.is_system:
            return await self.repository.active_keywords()
        if source.user_id is not None:
            return await self.repository.active_keywords(source.user_id)
        return []

    async def _match(self, article: Article, keyword: WatchKeyword) -> bool:
        verdict = await self.judge.check(article, keyword)
        if not (verdict.is_relevant and verdict.confidence >= self.config.confidence_threshold):
            return False

        await self.repository.upsert_watch_match(
            WatchMatch(
                article_id=article.id,
                watch_keyword_id=keyword.id,
                confidence=verdict.confidence,
                reason=verdict.reason,
            )
        )
        logger.info(
            "Match: article %r matches keyword %r (confidence %.2f)",
            article.title[:50],
            keyword.keyword,
            verdict.confidence,
        )
        return True

    async def _analyze(self, article: Article) -> int:
        source = await self.repository.get_source(article.source_id)
        matches = 0
        for keyword in await self.keywords_for(source):
            if await self._match(article, keyword):
                matches += 1
        await self.repository.mark_watch_analyzed(article.id, pendulum.now("UTC"))
        return matches

    async def analyze_article(self, article_id: int) -> int:
        """Analyze one stored article and return the number of matches."""
        if not self.is_available():
            return 0
        article = await self.repository.get_article(article_id)
        if article is None:
            return 0
        return await self._analyze(article)

    async def analyze_new(self, article_ids: Iterable[int]) -> None:
        """Analyze freshly inserted articles; one failure does not stop the batch."""
        article_ids = list(article_ids)
        if not self.is_available() or not article_ids:
            return
        logger.info("Analyzing %d new articles for watch keywords", len(article_ids))
        for article_id in article_ids:
            try:
                await self.analyze_article(article_id)
            except Exception as e:
                logger.error("Failed to analyze article %s: %s", article_id, e)

    async def sweep(self, limit: Optional[int] = None) -> int:
        """Catch up on recent articles that were never analyzed."""
        if not self.is_available():
            return 0
        since = pendulum.now("UTC") - timedelta(minutes=self.config.sweep_window_minutes)
        articles = await self.repository.unanalyzed_articles(
            since, limit=limit or self.config.sweep_batch_size
        )
        logger.info("Found %d unanalyzed articles", len(articles))

        analyzed = 0
        for article in articles:
            try:
                await self._analyze(article)
            except Exception as e:
                logger.error("Failed to analyze article %s: %s", article.id, e)
                continue
            analyzed += 1
        return analyzed

    async def reanalyze_keyword(self, keyword_id: int, limit: int = 100) -> int:
        """Run one keyword over its owner's recent articles; returns matches."""
        if not self.is_available():
            return 0
        keyword = await self.repository.get_keyword(keyword_id)
        if keyword is None or not keyword.is_active:
            return 0

        since = pendulum.now("UTC") - timedelta(days=REANALYZE_DAYS)
        articles = await self.repository.articles_visible_to(keyword.user_id, since, limit=limit)

        matches = 0
        for article in articles:
            if await self._match(article, keyword):
                matches += 1
        logger.info("Keyword %r matched %d of %d recent articles", keyword.keyword, matches, len(articles))
        return matches

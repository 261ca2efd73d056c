"""Semantic same-event judgement backed by an LLM."""

import hashlib
import logging
from typing import Optional

from pydantic import BaseModel, Field
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_incrementing

from ..cache import ContentCache
from ..llm import LLMProvider, is_rate_limit_error
from ..models import Article

logger = logging.getLogger(__name__)

PROMPT_CONTENT_CHARS = 500


class SimilarityVerdict(BaseModel):
    """Judge answer for one pair of articles."""

    is_same_news: bool = Field(False, description="Both articles report the same event")
    similarity: float = Field(0.0, ge=0.0, le=1.0)
    reason: str = Field("", description="Short rationale")
    error: bool = Field(False, description="The judge call failed and this is a zero verdict")


def _title_key(title: str) -> str:
    return hashlib.sha1((title or "").encode("utf-8")).hexdigest()[:16]


def verdict_cache_key(first_title: str, second_title: str) -> str:
    return f"dedup:{_title_key(first_title)}:{_title_key(second_title)}"


def _excerpt(article: Article) -> str:
    return (article.content or article.summary or "")[:PROMPT_CONTENT_CHARS]


def build_similarity_prompt(first: Article, second: Article) -> str:
    return f"""İki haber metnini karşılaştır ve aynı olayı/konuyu anlatıp anlatmadıklarını belirle.

Haber 1:
Başlık: {first.title}
İçerik: {_excerpt(first)}

Haber 2:
Başlık: {second.title}
İçerik: {_excerpt(second)}

SADECE JSON formatında yanıt ver, başka hiçbir şey yazma:
{{"isSameNews": true veya false, "similarity": 0.0-1.0 arası sayı, "reason": "Kısa açıklama"}}

Kurallar:
- Aynı olay farklı kelimelerle anlatılmış olabilir
- Başlıklar farklı olsa da içerik aynı haberi işliyorsa isSameNews = true
- similarity: 1.0 = kesinlikle aynı haber, 0.8+ = muhtemelen aynı, 0.5-0.8 = benzer konu, <0.5 = farklı"""


def _clamp(value) -> float:
    try:
        return min(max(float(value), 0.0), 1.0)
    except (TypeError, ValueError):
        return 0.0


class SimilarityJudge:
    """Ask the model whether two articles cover the same event.

    Verdicts are cached per title pair. Rate-limit errors are retried with
    a linearly growing wait; any other failure yields a zero verdict.
    """

    def __init__(
        self,
        provider: LLMProvider,
        cache: Optional[ContentCache] = None,
        max_attempts: int = 3,
        backoff: float = 2.0,
    ) -> None:
        self.provider = provider
        self.cache = cache or ContentCache()
        self.max_attempts = max_attempts
        self.backoff = backoff

    async def _ask(self, prompt: str) -> dict:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.backoff, increment=self.backoff),
            retry=retry_if_exception(is_rate_limit_error),
            before_sleep=lambda state: logger.warning(
                "Rate limited, retry %d/%d", state.attempt_number + 1, self.max_attempts
            ),
            reraise=True,
        ):
            with attempt:
                return await self.provider.complete_json(prompt, max_tokens=200, temperature=0.1)

    async def compare(self, first: Article, second: Article) -> SimilarityVerdict:
        key = verdict_cache_key(first.title, second.title)
        cached = await self.cache.get_json(key)
        if cached and "similarity" in cached:
            return SimilarityVerdict(
                is_same_news=bool(cached.get("is_same_news")),
                similarity=_clamp(cached.get("similarity")),
                reason=cached.get("reason") or "",
            )

        try:
            data = await self._ask(build_similarity_prompt(first, second))
        except Exception as e:
            logger.error("Similarity check failed for %r / %r: %s", first.title[:50], second.title[:50], e)
            return SimilarityVerdict(reason="Error occurred", error=True)

        verdict = SimilarityVerdict(
            is_same_news=bool(data.get("isSameNews", False)),
            similarity=_clamp(data.get("similarity", 0)),
            reason=str(data.get("reason") or ""),
        )
        await self.cache.set_json(key, verdict.model_dump(exclude={"error"}), self.cache.ttl_metadata)
        return verdict

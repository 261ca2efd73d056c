"""LLM-driven field extraction for pages the selectors could not read."""

import logging
from typing import Optional

import trafilatura
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field, ValidationError

from ..exceptions import LLMResponseError
from ..llm import LLMProvider

logger = logging.getLogger(__name__)

MAX_MARKDOWN_CHARS = 15000

SYSTEM_PROMPT = (
    "Sen bir web scraping uzmanısın. HTML/Markdown içerikten yapılandırılmış veri çıkarırsın. "
    "Her zaman JSON formatında yanıt ver. Türkçe içerik için Türkçe çıktı üret. "
    "Eğer bir alan bulunamazsa, o alanı null olarak döndür."
)

NOISE_SELECTORS = (
    "script, style, nav, footer, header, aside, iframe, noscript, "
    '[class*="comment"], [class*="sidebar"], [class*="share"], [class*="related"]'
)


class ExtractedFields(BaseModel):
    """Fields returned by the extraction model."""

    title: str = Field("", description="Article title")
    date: Optional[str] = None
    content: Optional[str] = None
    summary: Optional[str] = None
    image_url: Optional[str] = None
    confidence: float = Field(0.5, ge=0.0, le=1.0)


def html_to_markdown(html: str) -> str:
    """Reduce a page to markdown to keep prompts small."""
    markdown = trafilatura.extract(
        html,
        output_format="markdown",
        include_comments=False,
        include_tables=False,
        include_images=True,
    )
    if markdown:
        return markdown

    soup = BeautifulSoup(html or "", "html.parser")
    for element in soup.select(NOISE_SELECTORS):
        element.decompose()
    return (soup.body or soup).get_text("\n", strip=True)


def build_extraction_prompt(markdown: str, url: str) -> str:
    return f"""Aşağıdaki içerikten haber/makale bilgilerini çıkar.

URL: {url}

İçerik:
{markdown}

Aşağıdaki bilgileri JSON formatında döndür:
{{
  "title": "Haber başlığı",
  "date": "Yayın tarihi (ISO 8601 formatında, örn: 2024-01-15)",
  "content": "Haber içeriği (max 3000 karakter)",
  "summary": "Kısa özet (max 300 karakter)",
  "imageUrl": "Ana görsel URL'si (varsa)",
  "confidence": 0.0-1.0 arası güven skoru
}}

Kurallar:
- Bulunamayan alanlar için null kullan
- Tarih formatını standartlaştır
- İçeriği temizle (reklam, menü vs. çıkar)"""


class AIExtractor:
    """Fill article fields from a markdown rendering of the page."""

    def __init__(self, provider: Optional[LLMProvider]) -> None:
        self.provider = provider

    def is_available(self) -> bool:
        return self.provider is not None

    async def extract_article(self, html: str, url: str) -> Optional[ExtractedFields]:
        """Return extracted fields, or None when unavailable or the call fails."""
        if not self.is_available():
            return None

        markdown = html_to_markdown(html)[:MAX_MARKDOWN_CHARS]
        try:
            data = await self.provider.complete_json(
                build_extraction_prompt(markdown, url),
                system=SYSTEM_PROMPT,
                max_tokens=2000,
            )
        except LLMResponseError as e:
            logger.warning("AI extraction returned unusable output for %s: %s", url, e)
            return None
        except Exception as e:
            logger.error("AI extraction failed for %s: %s", url, e)
            return None

        confidence = data.get("confidence")
        try:
            return ExtractedFields(
                title=data.get("title") or "",
                date=data.get("date") or None,
                content=data.get("content") or None,
                summary=data.get("summary") or None,
                image_url=data.get("imageUrl") or data.get("image_url") or None,
                confidence=min(max(float(confidence), 0.0), 1.0) if isinstance(confidence, (int, float)) else 0.5,
            )
        except ValidationError as e:
            logger.warning("AI extraction returned malformed fields for %s: %s", url, e)
            return None

"""Two-phase, selector-driven article extraction.

The list phase turns a listing page into article links; the detail phase
reads each linked page with the configured selectors. Both phases work on
:class:`~newsradar.ingestion.dom.Node`, so the same code runs on plain HTML
and on pages rendered by the browser.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from ..exceptions import FetchError
from ..models import SelectorRules
from .ai_extractor import AIExtractor
from .dom import Node
from .fetcher import FetchScope
from .models import ArticleData, ListResult
from .text import sanitize_text, to_absolute_url

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 5000
MAX_SUMMARY_CHARS = 500
IMAGE_ATTRIBUTES = ("src", "data-src", "data-lazy-src", "data-original")


class ScrapeResult(BaseModel):
    """Articles scraped for one selector source."""

    articles: List[ArticleData] = Field(default_factory=list)
    matched: int = Field(0, description="List nodes matched on the listing page")
    errors: List[str] = Field(default_factory=list, description="Per-page failures")


class SelectorExtractor:
    """Extract articles from pages using per-source CSS rules."""

    def __init__(self, ai_extractor: Optional[AIExtractor] = None) -> None:
        self.ai_extractor = ai_extractor

    async def find_link(self, node: Node, base_url: str) -> Optional[str]:
        """Auto-detect the article link of a list node.

        Order: the node itself is an anchor, then its first anchor
        descendant, then its nearest anchor ancestor.
        """
        if await node.tag() == "a":
            href = await node.attribute("href")
            if href:
                return to_absolute_url(href, base_url)

        anchor = await node.select_one("a[href]")
        if anchor is not None:
            href = await anchor.attribute("href")
            if href:
                return to_absolute_url(href, base_url)

        parent = await node.closest("a[href]")
        if parent is not None:
            href = await parent.attribute("href")
            if href:
                return to_absolute_url(href, base_url)

        return None

    async def extract_links(self, root: Node, rules: SelectorRules, base_url: str) -> ListResult:
        """List phase; an empty result is not an error."""
        items = await root.select(rules.list_item)
        logger.info("Found %d list items on %s", len(items), base_url)

        links: List[str] = []
        seen = set()
        for item in items:
            link = await self.find_link(item, base_url)
            if link and link not in seen:
                seen.add(link)
                links.append(link)

        return ListResult(links=links, matched=len(items))

    async def _first_text(self, root: Node, selector: Optional[str]) -> str:
        if not selector:
            return ""
        element = await root.select_one(selector)
        if element is None:
            return ""
        return sanitize_text(await element.text())

    async def _image(self, root: Node, selector: str, page_url: str) -> Optional[str]:
        element = await root.select_one(selector)
        if element is None:
            return None

        src = None
        if await element.tag() == "img":
            for attr in IMAGE_ATTRIBUTES:
                src = await element.attribute(attr)
                if src:
                    break
        if not src:
            img = await element.select_one("img")
            if img is not None:
                for attr in IMAGE_ATTRIBUTES:
                    src = await img.attribute(attr)
                    if src:
                        break
        return to_absolute_url(src, page_url) if src else None

    async def _fallback_title(self, root: Node) -> str:
        meta = await root.select_one('meta[property="og:title"]')
        if meta is not None:
            content = await meta.attribute("content")
            if content:
                return sanitize_text(content)
        return await self._first_text(root, "title")

    async def extract_detail(self, root: Node, url: str, rules: SelectorRules) -> ArticleData:
        """Detail phase for one page."""
        title = await self._first_text(root, rules.title) or await self._fallback_title(root)
        date = await self._first_text(root, rules.date)
        content = (await self._first_text(root, rules.content))[:MAX_CONTENT_CHARS]
        summary = (await self._first_text(root, rules.summary))[:MAX_SUMMARY_CHARS]
        image_url = await self._image(root, rules.image, url) if rules.image else None

        return ArticleData(
            title=title,
            url=url,
            date=date or None,
            content=content or None,
            summary=summary or None,
            image_url=image_url,
            is_partial=not content and not summary,
        )

    async def extract_content(self, root: Node, selector: str) -> Optional[str]:
        """Single-selector body extraction used to enrich feed items."""
        text = await self._first_text(root, selector)
        return text[:MAX_CONTENT_CHARS] if text else None

    async def _fill_with_ai(self, article: ArticleData, html: str) -> ArticleData:
        extracted = await self.ai_extractor.extract_article(html, article.url)
        if extracted is None:
            return article

        updates = {}
        if not article.title and extracted.title:
            updates["title"] = extracted.title
        if not article.date and extracted.date:
            updates["date"] = extracted.date
        if extracted.content:
            updates["content"] = extracted.content[:MAX_CONTENT_CHARS]
        if extracted.summary:
            updates["summary"] = extracted.summary[:MAX_SUMMARY_CHARS]
        if not article.image_url and extracted.image_url:
            updates["image_url"] = to_absolute_url(extracted.image_url, article.url)

        merged = article.model_copy(update=updates)
        merged.is_partial = not merged.content and not merged.summary
        logger.info("AI fallback filled %s for %s", sorted(updates), article.url)
        return merged

    async def scrape(
        self,
        scope: FetchScope,
        list_url: str,
        rules: SelectorRules,
        ai_fallback: bool = False,
        max_pages: int = 30,
    ) -> ScrapeResult:
        """Run both phases for a selector source.

        A list page that cannot be fetched raises; individual detail pages
        that fail are recorded in ``errors`` and skipped.
        """
        async with scope.open(list_url) as page:
            listing = await self.extract_links(page.root, rules, page.url)

        result = ScrapeResult(matched=listing.matched)
        if not listing.links:
            logger.warning("No article links resolved on %s", list_url)
            return result

        use_ai = ai_fallback and self.ai_extractor is not None and self.ai_extractor.is_available()

        for link in listing.links[:max_pages]:
            try:
                async with scope.open(link) as page:
                    article = await self.extract_detail(page.root, link, rules)
                    if article.is_partial and use_ai:
                        html = page.html or await page.root.html()
                        article = await self._fill_with_ai(article, html)
            except FetchError as e:
                logger.warning("Detail page failed: %s", e)
                result.errors.append(str(e))
                continue
            result.articles.append(article)

        return result

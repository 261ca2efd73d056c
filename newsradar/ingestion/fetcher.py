"""Multi-strategy page fetching: cache, plain HTTP, then headless browser."""

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from ..cache import ContentCache
from ..exceptions import FetchError
from .browser import BrowserDriver, BrowserSession
from .dom import Node, SoupNode
from .http_client import HtmlFetchClient

logger = logging.getLogger(__name__)


@dataclass
class FetchedPage:
    """A page ready for extraction."""

    url: str
    root: Node
    via: str
    html: Optional[str] = None


class FetchScope:
    """Fetching for one crawl job.

    The browser context is created on the first fallback and belongs to this
    scope alone; it is released when the scope's stack unwinds.
    """

    def __init__(self, orchestrator: "FetchOrchestrator", stack: AsyncExitStack) -> None:
        self.orchestrator = orchestrator
        self._stack = stack
        self._session: Optional[BrowserSession] = None

    async def _browser_session(self) -> BrowserSession:
        if self._session is None:
            self._session = await self._stack.enter_async_context(self.orchestrator.browser.session())
        return self._session

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[FetchedPage]:
        """Yield a parsed page for ``url``.

        Raises:
            FetchError: when neither HTTP nor the browser can load the page.
        """
        cache = self.orchestrator.cache
        cached = await cache.get_html(url)
        if cached:
            yield FetchedPage(url=url, root=SoupNode.from_html(cached), via="cache", html=cached)
            return

        result = None
        http_error: Optional[FetchError] = None
        try:
            result = await self.orchestrator.http_client.fetch(url)
        except FetchError as e:
            logger.warning("HTTP fetch failed for %s: %s", url, e)
            http_error = e
        else:
            if not result.needs_js:
                await cache.cache_html(url, result.html)
                yield FetchedPage(
                    url=url, root=SoupNode.from_html(result.html), via="http", html=result.html
                )
                return

        if self.orchestrator.browser is None:
            if http_error is not None:
                raise http_error
            logger.warning("No browser configured, using raw HTML for %s", url)
            yield FetchedPage(
                url=url, root=SoupNode.from_html(result.html), via="http", html=result.html
            )
            return

        session = await self._browser_session()
        logger.info("Falling back to browser for %s", url)
        async with session.open(url) as root:
            yield FetchedPage(url=url, root=root, via="browser")


class FetchOrchestrator:
    """Pick the cheapest strategy that yields usable HTML for a URL.

    Shared by all workers; per-job state lives in the :class:`FetchScope`
    returned by :meth:`job_scope`.
    """

    def __init__(
        self,
        http_client: HtmlFetchClient,
        cache: Optional[ContentCache] = None,
        browser: Optional[BrowserDriver] = None,
    ) -> None:
        self.http_client = http_client
        self.cache = cache or ContentCache()
        self.browser = browser

    @asynccontextmanager
    async def job_scope(self) -> AsyncIterator[FetchScope]:
        """Scope one crawl job; its browser context is closed at the end."""
        async with AsyncExitStack() as stack:
            yield FetchScope(self, stack)

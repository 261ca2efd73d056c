"""Headless browser fallback for script-rendered pages."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional
from urllib.parse import urlparse

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Playwright,
    Route,
    async_playwright,
)

from ..exceptions import FetchError
from .dom import PlaywrightNode
from .http_client import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

BLOCKED_RESOURCE_TYPES = {"image", "font", "media"}


def is_blocked_host(url: str, blocked_domains: Iterable[str]) -> bool:
    """True when the request host is, or is a subdomain of, a blocked domain."""
    host = (urlparse(url).hostname or "").lower()
    return any(host == d or host.endswith("." + d) for d in blocked_domains)


class BrowserSession:
    """One isolated browsing context, scoped to a single crawl job."""

    def __init__(
        self,
        context: BrowserContext,
        navigation_timeout: float,
        settle_delay: float,
    ) -> None:
        self.context = context
        self.navigation_timeout = navigation_timeout
        self.settle_delay = settle_delay

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[PlaywrightNode]:
        """Navigate to ``url`` and yield the document root; closes the page."""
        page = await self.context.new_page()
        try:
            try:
                await page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=self.navigation_timeout * 1000,
                )
            except PlaywrightError as e:
                raise FetchError(url, f"Navigation failed: {e}") from e
            await page.wait_for_timeout(self.settle_delay * 1000)
            yield PlaywrightNode(page)
        finally:
            await page.close()


class BrowserDriver:
    """Process-wide, lazily launched Chromium shared across jobs."""

    def __init__(
        self,
        headless: bool = True,
        navigation_timeout: float = 30.0,
        settle_delay: float = 2.0,
        blocked_domains: Optional[Iterable[str]] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.headless = headless
        self.navigation_timeout = navigation_timeout
        self.settle_delay = settle_delay
        self.blocked_domains = [d.lower() for d in (blocked_domains or [])]
        self.user_agent = user_agent
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, args=BROWSER_ARGS
            )
            logger.info("Browser launched")
            return self._browser

    async def _route(self, route: Route) -> None:
        request = route.request
        if request.resource_type in BLOCKED_RESOURCE_TYPES or is_blocked_host(
            request.url, self.blocked_domains
        ):
            await route.abort()
        else:
            await route.continue_()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        """Acquire a fresh context; it is closed on every exit path."""
        browser = await self._ensure_browser()
        context = await browser.new_context(
            user_agent=self.user_agent,
            viewport={"width": 1280, "height": 720},
        )
        try:
            await context.route("**/*", self._route)
            yield BrowserSession(context, self.navigation_timeout, self.settle_delay)
        finally:
            await context.close()

    async def close(self) -> None:
        """Shut down the browser process."""
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
            logger.info("Browser closed")
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

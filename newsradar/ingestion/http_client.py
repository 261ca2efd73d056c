"""Lightweight HTML fetcher with browser-like headers."""

import logging
from typing import Dict, Optional

import httpx
from bs4 import BeautifulSoup

from ..exceptions import FetchError
from .models import HttpFetchResult

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "tr-TR,tr;q=0.9,en-US;q=0.8,en;q=0.7",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

MIN_BODY_TEXT = 500
MIN_ROOT_TEXT = 100


def needs_javascript(html: str) -> bool:
    """Guess whether a page only renders its content client-side."""
    soup = BeautifulSoup(html or "", "html.parser")
    body = soup.body or soup
    body_text = body.get_text(" ", strip=True)

    def root_is_empty(selector: str) -> bool:
        root = soup.select_one(selector)
        return root is not None and len(root.get_text(" ", strip=True)) < MIN_ROOT_TEXT

    noscript = " ".join(tag.get_text(" ") for tag in soup.find_all("noscript"))

    indicators = [
        len(body_text) < MIN_BODY_TEXT,
        root_is_empty("#root"),
        root_is_empty("#app"),
        soup.select_one("[ng-app]") is not None,
        soup.select_one("[data-reactroot]") is not None,
        "JavaScript" in noscript,
        "Loading..." in body_text and len(body_text) < 1000,
    ]
    return any(indicators)


class HtmlFetchClient:
    """Fetch pages over plain HTTP before resorting to a browser."""

    def __init__(
        self,
        timeout: float = 15.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client; call :meth:`open` before fetching."""
        self.timeout = timeout
        self.headers = headers or dict(BROWSER_HEADERS)
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=self.headers,
                transport=self.transport,
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HtmlFetchClient":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def fetch(self, url: str) -> HttpFetchResult:
        """Fetch ``url`` and classify whether it needs script execution.

        Raises:
            FetchError: on transport errors, timeouts and non-2xx answers.
        """
        await self.open()
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(url, f"HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise FetchError(url, "Request timed out") from e
        except httpx.HTTPError as e:
            raise FetchError(url, f"HTTP error: {e}") from e

        html = response.text
        js = needs_javascript(html)
        if js:
            logger.info("Page %s looks script-rendered", url)
        else:
            logger.debug("HTTP fetch successful for %s", url)

        return HttpFetchResult(url=url, final_url=str(response.url), html=html, needs_js=js)

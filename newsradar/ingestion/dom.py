"""Backend-neutral DOM access.

The extractor is written against :class:`Node`; one implementation wraps
BeautifulSoup trees for plain HTTP responses and one wraps Playwright handles
for pages rendered in the headless browser.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Union

from bs4 import BeautifulSoup, Tag
from playwright.async_api import ElementHandle, Page


class Node(ABC):
    """Minimal read-only view of a DOM element."""

    @abstractmethod
    async def select(self, selector: str) -> List["Node"]:
        """All descendants matching a CSS selector."""

    @abstractmethod
    async def select_one(self, selector: str) -> Optional["Node"]:
        """First descendant matching a CSS selector."""

    @abstractmethod
    async def attribute(self, name: str) -> Optional[str]:
        """Attribute value or None."""

    @abstractmethod
    async def text(self) -> str:
        """Concatenated text content."""

    @abstractmethod
    async def tag(self) -> str:
        """Lower-case tag name."""

    @abstractmethod
    async def closest(self, selector: str) -> Optional["Node"]:
        """Nearest ancestor matching a CSS selector."""

    @abstractmethod
    async def html(self) -> str:
        """Outer HTML."""


class SoupNode(Node):
    """Node backed by a BeautifulSoup element."""

    def __init__(self, element: Union[BeautifulSoup, Tag]) -> None:
        self.element = element

    @classmethod
    def from_html(cls, html: str) -> "SoupNode":
        return cls(BeautifulSoup(html or "", "html.parser"))

    async def select(self, selector: str) -> List[Node]:
        return [SoupNode(el) for el in self.element.select(selector)]

    async def select_one(self, selector: str) -> Optional[Node]:
        el = self.element.select_one(selector)
        return SoupNode(el) if el is not None else None

    async def attribute(self, name: str) -> Optional[str]:
        value = self.element.get(name) if isinstance(self.element, Tag) else None
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def text(self) -> str:
        return self.element.get_text(" ")

    async def tag(self) -> str:
        return (self.element.name or "").lower()

    async def closest(self, selector: str) -> Optional[Node]:
        parent = self.element.parent
        while parent is not None and isinstance(parent, Tag):
            if parent.name != "[document]" and parent.css.match(selector):
                return SoupNode(parent)
            parent = parent.parent
        return None

    async def html(self) -> str:
        return str(self.element)


class PlaywrightNode(Node):
    """Node backed by a live Playwright page or element handle."""

    def __init__(self, handle: Union[Page, ElementHandle]) -> None:
        self.handle = handle

    async def select(self, selector: str) -> List[Node]:
        return [PlaywrightNode(h) for h in await self.handle.query_selector_all(selector)]

    async def select_one(self, selector: str) -> Optional[Node]:
        h = await self.handle.query_selector(selector)
        return PlaywrightNode(h) if h is not None else None

    async def attribute(self, name: str) -> Optional[str]:
        if isinstance(self.handle, Page):
            return None
        return await self.handle.get_attribute(name)

    async def text(self) -> str:
        if isinstance(self.handle, Page):
            return await self.handle.evaluate("() => document.body ? document.body.innerText : ''")
        return await self.handle.text_content() or ""

    async def tag(self) -> str:
        if isinstance(self.handle, Page):
            return "#document"
        return await self.handle.evaluate("el => el.tagName.toLowerCase()")

    async def closest(self, selector: str) -> Optional[Node]:
        if isinstance(self.handle, Page):
            return None
        found = await self.handle.evaluate_handle(
            "(el, sel) => el.parentElement ? el.parentElement.closest(sel) : null", selector
        )
        element = found.as_element()
        return PlaywrightNode(element) if element is not None else None

    async def html(self) -> str:
        if isinstance(self.handle, Page):
            return await self.handle.content()
        return await self.handle.evaluate("el => el.outerHTML")

"""
Page handles
============

A page handle is the rendered-DOM capability the link checker and the page
checks consume. ``StaticPage`` works from fetched HTML with BeautifulSoup;
the browser-backed handle lives in ``qabot.web.browser``.
"""

import asyncio
import re
from pathlib import Path
from typing import Optional, Protocol, Sequence
from urllib.parse import urljoin

import aiohttp
from bs4 import BeautifulSoup, Tag
from loguru import logger

from qabot.core.transport import BROWSER_HEADERS
from qabot.errors import EvidenceCaptureFailed, PageLoadFailed

SIMPLE_ID = re.compile(r"^[A-Za-z][\w-]*$")
ZERO_OPACITY = re.compile(r"(?:^|;)opacity:0*(?:\.0*)?(?:;|$)")


class PageHandle(Protocol):
    """What the checks need from a rendered page."""

    url: str

    async def content(self) -> str:
        ...

    async def query_anchors(self) -> list[dict]:
        """Anchors in document order as dicts with href, resolved, selector,
        text, html and visible keys."""
        ...

    async def screenshot(self, path: Path, highlight: Sequence[str] = ()) -> None:
        ...

    async def screenshot_element(self, selector: str, path: Path, label: str = "") -> None:
        ...

    def is_closed(self) -> bool:
        ...

    async def close(self) -> None:
        ...


def css_path(element: Tag) -> str:
    """Build a selector that re-finds ``element``: nth-of-type steps up to the
    nearest ancestor with an id, or to the document root."""
    parts = []
    node = element
    while isinstance(node, Tag) and node.name not in ("html", "[document]"):
        element_id = node.get("id")
        if element_id:
            if SIMPLE_ID.match(element_id):
                parts.insert(0, f"#{element_id}")
            else:
                parts.insert(0, f'[id="{element_id}"]')
            return " > ".join(parts)
        index = len(node.find_previous_siblings(node.name)) + 1
        parts.insert(0, f"{node.name}:nth-of-type({index})")
        node = node.parent
    parts.insert(0, "html")
    return " > ".join(parts)


def _hidden_by_style(style: str) -> bool:
    style = re.sub(r"\s+", "", style.lower())
    return (
        "display:none" in style
        or "visibility:hidden" in style
        or bool(ZERO_OPACITY.search(style))
    )


def is_visible(element: Tag) -> bool:
    """Static approximation of the browser visibility rules: the element and
    its ancestors must not be hidden by attribute or inline style."""
    node = element
    while isinstance(node, Tag) and node.name != "[document]":
        if node.has_attr("hidden"):
            return False
        if str(node.get("aria-hidden", "")).lower() == "true":
            return False
        if _hidden_by_style(node.get("style", "")):
            return False
        node = node.parent
    return True


class StaticPage:
    """A page handle over fetched HTML. It cannot take screenshots."""

    def __init__(self, url: str, html: str, status: int = 200):
        self.url = url
        self.status = status
        self._html = html
        self._closed = False

    async def content(self) -> str:
        return self._html

    def _base_url(self, soup: BeautifulSoup) -> str:
        base = soup.find("base", href=True)
        if base:
            return urljoin(self.url, base["href"])
        return self.url

    async def query_anchors(self) -> list[dict]:
        soup = BeautifulSoup(self._html, "html.parser")
        base_url = self._base_url(soup)
        anchors = []
        for anchor in soup.find_all("a", href=True):
            href = anchor.get("href", "")
            anchors.append({
                "href": href,
                "resolved": urljoin(base_url, href.strip()),
                "selector": css_path(anchor),
                "text": anchor.get_text(" ", strip=True),
                "html": str(anchor),
                "visible": is_visible(anchor),
            })
        return anchors

    async def screenshot(self, path: Path, highlight: Sequence[str] = ()) -> None:
        raise EvidenceCaptureFailed("Static pages cannot be screenshotted")

    async def screenshot_element(self, selector: str, path: Path, label: str = "") -> None:
        raise EvidenceCaptureFailed("Static pages cannot be screenshotted")

    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        self._closed = True


class StaticRenderer:
    """
    Fetch pages over plain HTTP.

    Usage:
        async with StaticRenderer() as renderer:
            page = await renderer.open("https://example.com")
    """

    def __init__(self, timeout: float = 60.0, headers: Optional[dict] = None):
        self.timeout = timeout
        self.headers = {**BROWSER_HEADERS, **(headers or {})}
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "StaticRenderer":
        self._session = aiohttp.ClientSession(
            headers=self.headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def open(self, url: str) -> StaticPage:
        if self._session is None:
            raise RuntimeError("StaticRenderer must be used as an async context manager")

        try:
            async with self._session.get(url) as response:
                html = await response.text(errors="replace")
        except asyncio.TimeoutError:
            raise PageLoadFailed(url, f"Timeout after {self.timeout:g}s") from None
        except aiohttp.ClientError as e:
            raise PageLoadFailed(url, str(e) or e.__class__.__name__) from e

        if response.status >= 400:
            logger.warning("{} returned HTTP {}", url, response.status)
        return StaticPage(str(response.url), html, status=response.status)

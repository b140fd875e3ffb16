"""Shared fixtures: a scripted transport and fake page handles."""

import asyncio
from pathlib import Path
from typing import Optional, Sequence

import pytest

from qabot.core.transport import TransportResponse
from qabot.errors import EvidenceCaptureFailed, ProbeError


class FakeTransport:
    """
    Transport that answers from a script instead of the network.

    ``responses`` maps a URL (or a ``(method, url)`` pair, which wins) to a
    status code, a TransportResponse, or an exception to raise. A URL with a
    trailing slash answers like its scripted slashless form; anything else
    unscripted answers 200.
    """

    REASONS = {200: "OK", 301: "Moved Permanently", 403: "Forbidden", 404: "Not Found",
               405: "Method Not Allowed", 429: "Too Many Requests", 500: "Internal Server Error",
               501: "Not Implemented", 999: "Request denied"}

    def __init__(self, responses: Optional[dict] = None, delays: Optional[dict] = None, default_delay: float = 0.0):
        self.responses = responses or {}
        self.delays = delays or {}
        self.default_delay = default_delay
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __aenter__(self) -> "FakeTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        pass

    def urls_called(self, method: Optional[str] = None) -> list[str]:
        return [url for called_method, url in self.calls if method in (None, called_method)]

    def _lookup(self, method: str, url: str):
        return self.responses.get((method, url), self.responses.get(url))

    async def request(self, method: str, url: str, timeout: float) -> TransportResponse:
        self.calls.append((method, url))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(url, self.default_delay))
            answer = self._lookup(method, url)
            if answer is None and url.endswith("/"):
                answer = self._lookup(method, url[:-1])
            if answer is None:
                answer = 200
            if isinstance(answer, BaseException):
                raise answer
            if isinstance(answer, TransportResponse):
                return answer
            return TransportResponse(status=answer, reason=self.REASONS.get(answer, ""), final_url=url)
        finally:
            self.in_flight -= 1


class RecordingPage:
    """
    Page handle over a fixed anchor list that records screenshot calls.

    ``failing_selectors`` make ``screenshot_element`` raise, mimicking
    elements that disappeared after extraction.
    """

    def __init__(
        self,
        url: str,
        anchors: Sequence[dict] = (),
        html: str = "<html></html>",
        failing_selectors: Sequence[str] = (),
        fail_full_page: bool = False,
        query_error: Optional[Exception] = None,
    ):
        self.url = url
        self.anchors = list(anchors)
        self.html = html
        self.failing_selectors = set(failing_selectors)
        self.fail_full_page = fail_full_page
        self.query_error = query_error
        self.full_page_shots: list[tuple[Path, tuple]] = []
        self.element_shots: list[tuple[str, Path, str]] = []
        self.closed = False
        self.query_count = 0

    async def content(self) -> str:
        return self.html

    async def query_anchors(self) -> list[dict]:
        self.query_count += 1
        if self.query_error is not None:
            raise self.query_error
        return [dict(anchor) for anchor in self.anchors]

    async def screenshot(self, path: Path, highlight: Sequence[str] = ()) -> None:
        if self.fail_full_page:
            raise EvidenceCaptureFailed("page crashed")
        Path(path).write_bytes(b"png")
        self.full_page_shots.append((Path(path), tuple(highlight)))

    async def screenshot_element(self, selector: str, path: Path, label: str = "") -> None:
        if selector in self.failing_selectors:
            raise EvidenceCaptureFailed(f"{selector} not found")
        Path(path).write_bytes(b"png")
        self.element_shots.append((selector, Path(path), label))

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True


def anchor(href: str, selector: str = "a", text: str = "", visible: bool = True, resolved: Optional[str] = None) -> dict:
    """Build the anchor dict a page handle returns."""
    return {
        "href": href,
        "resolved": resolved,
        "selector": selector,
        "text": text,
        "html": f'<a href="{href}">{text}</a>',
        "visible": visible,
    }


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def probe_error():
    """Factory for transport-level failures."""
    def make(kind, message="boom"):
        return ProbeError(kind, message)
    return make

"""
Link Extractor
==============

Finds candidate anchors in a rendered page, keeps the visible ones and
normalizes their targets to absolute URLs.
"""

import re
from typing import AsyncIterator, Iterable, Optional
from urllib.parse import urljoin, urlparse, urlunparse

from loguru import logger

from qabot.core.models import LinkCandidate, LinkTarget
from qabot.errors import ExtractionFailed

EXCLUDED_PREFIXES = ("mailto:", "tel:", "javascript:", "data:", "sms:")
CHECKABLE_SCHEMES = ("http", "https")

MAX_LINK_TEXT_LENGTH = 100
MAX_HTML_LENGTH = 300


def _truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[: limit - 3] + "..."


def clean_link_text(text: str) -> str:
    """Collapse whitespace and truncate anchor text for display."""
    return _truncate(re.sub(r"\s+", " ", text or "").strip(), MAX_LINK_TEXT_LENGTH)


def strip_fragment(url: str) -> str:
    return urlunparse(urlparse(url)._replace(fragment=""))


def normalize_url(url: str) -> str:
    """Normalize an absolute URL into the deduplication key.

    Fragments are dropped and a trailing slash is removed from non-root paths.
    """
    parsed = urlparse(url)
    path = parsed.path or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return urlunparse(parsed._replace(path=path, fragment=""))


def resolve_href(raw_href: str, page_url: str, resolved: Optional[str] = None) -> Optional[str]:
    """Return the checkable absolute URL for an href, or None to skip it."""
    href = (raw_href or "").strip()
    if not href or href.startswith("#"):
        return None
    if href.lower().startswith(EXCLUDED_PREFIXES):
        return None

    absolute = (resolved or "").strip() or urljoin(page_url, href)
    parsed = urlparse(absolute)
    if parsed.scheme.lower() not in CHECKABLE_SCHEMES or not parsed.netloc:
        return None

    # "/current-page#section" is a fragment link back to this page.
    if "#" in href and strip_fragment(absolute) == strip_fragment(page_url):
        return None

    return normalize_url(absolute)


def _same_origin(url: str, page_url: str) -> bool:
    a, b = urlparse(url), urlparse(page_url)
    return (a.scheme, a.netloc.lower()) == (b.scheme, b.netloc.lower())


def group_by_target(candidates: Iterable[LinkCandidate]) -> list[LinkTarget]:
    """Collapse candidates sharing a URL into one check target.

    Targets keep first-discovery order; every anchor is kept on its target.
    """
    grouped: dict[str, list[LinkCandidate]] = {}
    for candidate in candidates:
        grouped.setdefault(candidate.url, []).append(candidate)
    return [LinkTarget(url=url, elements=tuple(elements)) for url, elements in grouped.items()]


class LinkExtractor:
    """
    Produce LinkCandidates from a page handle.

    The extractor holds no per-page state: every call re-queries the DOM, so
    the same page can be re-extracted on demand.
    """

    def __init__(self, include_hidden: bool = False, same_origin_only: bool = False):
        self.include_hidden = include_hidden
        self.same_origin_only = same_origin_only

    async def iter_candidates(self, page) -> AsyncIterator[LinkCandidate]:
        """Yield candidates in document order."""
        page_url = page.url
        try:
            anchors = await page.query_anchors()
        except ExtractionFailed:
            raise
        except Exception as e:
            raise ExtractionFailed(page_url, str(e) or e.__class__.__name__) from e

        skipped = 0
        for anchor in anchors:
            raw_href = anchor.get("href") or ""
            url = resolve_href(raw_href, page_url, anchor.get("resolved"))
            if url is None:
                skipped += 1
                continue

            visible = bool(anchor.get("visible", True))
            if not visible and not self.include_hidden:
                skipped += 1
                continue

            if self.same_origin_only and not _same_origin(url, page_url):
                skipped += 1
                continue

            yield LinkCandidate(
                url=url,
                raw_href=raw_href,
                selector=anchor.get("selector") or "a",
                link_text=clean_link_text(anchor.get("text", "")),
                html=_truncate(anchor.get("html", ""), MAX_HTML_LENGTH),
                is_visible=visible,
            )

        logger.debug("Skipped {} anchor(s) on {}", skipped, page_url)

    async def extract(self, page) -> list[LinkCandidate]:
        return [candidate async for candidate in self.iter_candidates(page)]

    async def targets(self, page) -> list[LinkTarget]:
        return group_by_target(await self.extract(page))

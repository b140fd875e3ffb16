"""
Link Check Data Model
=====================

Transient records created and discarded within one page check. The caller
owns the final PageLinkReport and decides whether to persist it.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from qabot.errors import ErrorKind

# Status reported when no HTTP response was received at all.
NETWORK_FAILURE = 0

DEFAULT_CONCURRENCY = 10
MAX_CONCURRENCY = 50
DEFAULT_TIMEOUT = 10.0

# Platforms known to reject automated probes. Matched by domain suffix.
DEFAULT_REVIEW_HOSTS = (
    "facebook.com",
    "fb.com",
    "twitter.com",
    "x.com",
    "instagram.com",
    "linkedin.com",
    "youtube.com",
    "youtu.be",
    "tiktok.com",
    "pinterest.com",
    "reddit.com",
    "snapchat.com",
)

# 999 is LinkedIn's answer to clients it considers bots.
DEFAULT_REVIEW_STATUSES = frozenset({401, 403, 405, 429, 999})


class Disposition(Enum):
    """Classification of a probed link."""
    OK = "ok"
    BROKEN = "broken"
    REVIEW = "review"


@dataclass(frozen=True)
class LinkCandidate:
    """One anchor found in the rendered page."""
    url: str
    raw_href: str
    selector: str
    link_text: str = ""
    html: str = ""
    is_visible: bool = True

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "raw_href": self.raw_href,
            "selector": self.selector,
            "link_text": self.link_text,
            "html": self.html,
            "is_visible": self.is_visible,
        }


@dataclass(frozen=True)
class LinkTarget:
    """A unique URL to probe plus every anchor that points at it."""
    url: str
    elements: tuple[LinkCandidate, ...]


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of checking one URL."""
    url: str
    status: int
    status_text: str
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    elapsed_ms: int = 0
    method: str = "HEAD"
    final_url: Optional[str] = None
    note: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "status": self.status,
            "status_text": self.status_text,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "elapsed_ms": self.elapsed_ms,
            "method": self.method,
            "final_url": self.final_url,
            "note": self.note,
        }


@dataclass(frozen=True)
class LinkCheckResult:
    """A probe outcome, its disposition and the anchors that referenced it."""
    probe: ProbeResult
    disposition: Disposition
    elements: tuple[LinkCandidate, ...] = ()

    @property
    def url(self) -> str:
        return self.probe.url

    def to_dict(self) -> dict:
        data = self.probe.to_dict()
        data["disposition"] = self.disposition.value
        data["elements"] = [element.to_dict() for element in self.elements]
        return data


@dataclass(frozen=True)
class Evidence:
    """Screenshots supporting reported failures.

    Capture is best-effort: the page may have changed since extraction.
    """
    full_page: Optional[Path] = None
    close_ups: tuple[Path, ...] = ()

    def to_dict(self) -> dict:
        return {
            "full_page": str(self.full_page) if self.full_page else None,
            "close_ups": [str(path) for path in self.close_ups],
        }


@dataclass
class PageLinkReport:
    """Aggregate broken-link result for one page."""
    page_url: str
    total_links: int = 0
    total_checked: int = 0
    ok_count: int = 0
    broken: list[LinkCheckResult] = field(default_factory=list)
    review: list[LinkCheckResult] = field(default_factory=list)
    evidence: Optional[Evidence] = None

    @property
    def passed(self) -> bool:
        return not self.broken

    def to_dict(self) -> dict:
        return {
            "page_url": self.page_url,
            "total_links": self.total_links,
            "total_checked": self.total_checked,
            "ok_count": self.ok_count,
            "broken_count": len(self.broken),
            "review_count": len(self.review),
            "broken": [result.to_dict() for result in self.broken],
            "review": [result.to_dict() for result in self.review],
            "evidence": self.evidence.to_dict() if self.evidence else None,
        }


@dataclass(frozen=True)
class ClassificationPolicy:
    """Which hosts and statuses are surfaced for manual review."""
    review_hosts: frozenset[str] = frozenset(DEFAULT_REVIEW_HOSTS)
    review_statuses: frozenset[int] = DEFAULT_REVIEW_STATUSES
    accepted_statuses: frozenset[int] = frozenset()

    def is_review_host(self, url: str) -> bool:
        hostname = (urlparse(url).hostname or "").lower()
        if not hostname:
            return False
        return any(
            hostname == domain or hostname.endswith("." + domain)
            for domain in self.review_hosts
        )


@dataclass(frozen=True)
class LinkCheckConfig:
    """Explicit settings for one page check; the core reads nothing else."""
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT
    include_hidden: bool = False
    same_origin_only: bool = False
    capture_evidence: bool = True
    evidence_dir: Path = Path("test-results")
    policy: ClassificationPolicy = field(default_factory=ClassificationPolicy)

    def __post_init__(self):
        if not 1 <= self.concurrency <= MAX_CONCURRENCY:
            raise ValueError(f"concurrency must be between 1 and {MAX_CONCURRENCY}")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

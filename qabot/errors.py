"""
Error taxonomy
==============

Only systemic failures (the page cannot be loaded, links cannot be
extracted) propagate to callers. Per-URL and per-element failures are recorded
on the results they belong to.
"""

from enum import Enum


class QABotError(Exception):
    """Base class for all harness errors."""


class ErrorKind(Enum):
    """Low-level classification of a failed probe."""
    TIMEOUT = "timeout"
    DNS = "dns"
    CONNECTION = "connection"
    TLS = "tls"
    NETWORK = "network"


class ExtractionFailed(QABotError):
    """The page DOM could not be queried for links."""

    def __init__(self, page_url: str, reason: str):
        self.page_url = page_url
        self.reason = reason
        super().__init__(f"Could not extract links from {page_url}: {reason}")


class PageLoadFailed(QABotError):
    """The page itself could not be fetched or rendered."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not load {url}: {reason}")


class ProbeError(QABotError):
    """A single existence probe failed at the network level.

    Raised by transports and always caught by the checker, which records it
    on the ProbeResult instead of letting it escape the batch.
    """

    def __init__(self, kind: ErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(f"{kind.value}: {message}")


class EvidenceCaptureFailed(QABotError):
    """A screenshot or element lookup failed."""


class ReportingDegraded(QABotError):
    """A report section could not be produced; the rest of the report stands."""


class WebhookDeliveryError(QABotError):
    """The webhook endpoint rejected the report."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        message = f"Webhook returned HTTP {status}"
        if body:
            message += f" - {body}"
        super().__init__(message)

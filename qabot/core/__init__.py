"""Broken link checking: extraction, probing, classification and evidence."""

from qabot.core.broken_links import check_page_links
from qabot.core.checker import LinkChecker
from qabot.core.classifier import classify
from qabot.core.evidence import EvidenceCapturer
from qabot.core.extractor import LinkExtractor, group_by_target, normalize_url
from qabot.core.models import (
    ClassificationPolicy,
    Disposition,
    Evidence,
    LinkCandidate,
    LinkCheckConfig,
    LinkCheckResult,
    LinkTarget,
    PageLinkReport,
    ProbeResult,
)
from qabot.core.report import aggregate, format_report
from qabot.core.transport import AiohttpTransport, TransportResponse

__all__ = [
    "check_page_links",
    "LinkChecker",
    "classify",
    "EvidenceCapturer",
    "LinkExtractor",
    "group_by_target",
    "normalize_url",
    "ClassificationPolicy",
    "Disposition",
    "Evidence",
    "LinkCandidate",
    "LinkCheckConfig",
    "LinkCheckResult",
    "LinkTarget",
    "PageLinkReport",
    "ProbeResult",
    "aggregate",
    "format_report",
    "AiohttpTransport",
    "TransportResponse",
]

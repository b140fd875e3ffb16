"""
Report merger
=============

Combines the per-check results for one page into a single record with a
fixed schema. BROKEN links fail the report; REVIEW links never do.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from loguru import logger

from qabot.core.models import PageLinkReport
from qabot.errors import ReportingDegraded
from qabot.web.accessibility import AccessibilityResult, format_accessibility_report
from qabot.web.gtm import GTMCheckResult
from qabot.web.seo import SEOCheckResult, SEOMetadata


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class MergedReport:
    """All check results for one URL."""
    url: str
    seo: list[SEOCheckResult]
    accessibility: AccessibilityResult
    links: Optional[PageLinkReport] = None
    gtm: Optional[GTMCheckResult] = None
    metadata: Optional[SEOMetadata] = None
    warnings: list[str] = field(default_factory=list)
    timestamp: str = field(default_factory=_now)

    @property
    def seo_passed(self) -> bool:
        return all(result.passed for result in self.seo)

    @property
    def broken_links_count(self) -> int:
        return len(self.links.broken) if self.links else 0

    @property
    def review_links_count(self) -> int:
        return len(self.links.review) if self.links else 0

    @property
    def gtm_passed(self) -> Optional[bool]:
        """None when the GTM check was not run."""
        return self.gtm.has_gtm if self.gtm is not None else None

    @property
    def passed(self) -> bool:
        # A page whose links could not be checked has not passed.
        return (
            self.seo_passed
            and self.links is not None
            and not self.links.broken
            and self.accessibility.passed
            and self.gtm_passed is not False
        )

    @property
    def overall_status(self) -> str:
        return "passed" if self.passed else "failed"

    def to_dict(self) -> dict:
        warnings = list(self.warnings)
        failed_seo = [result.to_dict() for result in self.seo if not result.passed]

        accessibility = self.accessibility.to_dict()
        accessibility["formatted_report"] = _degrade(
            "accessibility text report",
            lambda: format_accessibility_report(self.accessibility),
            warnings,
        )

        return {
            "url": self.url,
            "timestamp": self.timestamp,
            "summary": {
                "overall_status": self.overall_status,
                "seo_passed": self.seo_passed,
                "broken_links_count": self.broken_links_count,
                "review_links_count": self.review_links_count,
                "accessibility_passed": self.accessibility.passed,
                "gtm_passed": self.gtm_passed,
            },
            "seo": {
                "results": [result.to_dict() for result in self.seo],
                "passed_count": sum(1 for result in self.seo if result.passed),
                "total_count": len(self.seo),
                "failed_checks": failed_seo,
            },
            "broken_links": self.links.to_dict() if self.links else None,
            "accessibility": accessibility,
            "gtm": self.gtm.to_dict() if self.gtm else None,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "warnings": warnings,
        }


def _degrade(section: str, build: Callable[[], object], warnings: list[str]):
    """Build an optional report section; a failure becomes a warning."""
    try:
        return build()
    except Exception as e:
        degraded = ReportingDegraded(f"Could not build {section}: {e}")
        logger.warning(str(degraded))
        warnings.append(str(degraded))
        return None


def merge_results(
    url: str,
    seo: list[SEOCheckResult],
    accessibility: AccessibilityResult,
    links: Optional[PageLinkReport] = None,
    gtm: Optional[GTMCheckResult] = None,
    metadata: Optional[SEOMetadata] = None,
    warnings: Optional[list[str]] = None,
) -> MergedReport:
    """Merge one page's check results into a MergedReport."""
    return MergedReport(
        url=url,
        seo=list(seo),
        accessibility=accessibility,
        links=links,
        gtm=gtm,
        metadata=metadata,
        warnings=list(warnings or []),
    )

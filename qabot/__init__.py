"""
Site QA Bot
===========

Website QA harness: broken link checking with evidence screenshots, SEO,
accessibility and Google Tag Manager checks, merged per-page reports.
"""

__version__ = "1.0.0"

from qabot.core import (
    Disposition,
    LinkCheckConfig,
    PageLinkReport,
    check_page_links,
    format_report,
)

__all__ = [
    "__version__",
    "Disposition",
    "LinkCheckConfig",
    "PageLinkReport",
    "check_page_links",
    "format_report",
]

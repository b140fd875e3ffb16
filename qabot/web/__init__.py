"""Page rendering and the per-page SEO, accessibility and GTM checks."""

from qabot.web.accessibility import AccessibilityChecker, format_accessibility_report
from qabot.web.gtm import check_gtm
from qabot.web.page import StaticPage, StaticRenderer
from qabot.web.seo import SEOAnalyzer, SEOOptions

__all__ = [
    "AccessibilityChecker",
    "format_accessibility_report",
    "check_gtm",
    "StaticPage",
    "StaticRenderer",
    "SEOAnalyzer",
    "SEOOptions",
]

"""
SEO Checks Module
=================

On-page SEO checks over rendered HTML: title, meta description, canonical
URL, robots directives, image alt attributes, heading structure and Open
Graph tags.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Union

from bs4 import BeautifulSoup

from qabot.web.page import is_visible

META_DESCRIPTION_MIN = 50
META_DESCRIPTION_MAX = 160
OPEN_GRAPH_TAGS = ("og:title", "og:description", "og:image", "og:url")


@dataclass
class SEOCheckResult:
    """One SEO check outcome."""
    check: str
    passed: bool
    message: str
    value: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"check": self.check, "passed": self.passed, "message": self.message}
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass
class ImageInfo:
    """A visible image and its alt text."""
    src: str
    alt: Optional[str] = None

    def to_dict(self) -> dict:
        return {"src": self.src, "alt": self.alt}


@dataclass
class SEOMetadata:
    """Raw SEO fields for the tabular report."""
    title: str = ""
    meta_description: Optional[str] = None
    canonical_url: Optional[str] = None
    robots_meta_tag: Optional[str] = None
    open_graph: dict = field(default_factory=dict)
    images: list[ImageInfo] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "meta_description": self.meta_description,
            "canonical_url": self.canonical_url,
            "robots_meta_tag": self.robots_meta_tag,
            "open_graph": dict(self.open_graph),
            "images": [image.to_dict() for image in self.images],
        }


@dataclass
class SEOOptions:
    """Which checks to run and what to expect."""
    check_title: bool = True
    check_meta_description: bool = True
    check_canonical: bool = True
    check_robots: bool = False
    check_image_alt: bool = True
    check_headings: bool = True
    check_open_graph: bool = False
    expected_title: Optional[Union[str, re.Pattern]] = None
    expected_canonical: Optional[str] = None
    require_index: bool = True
    require_follow: bool = True


def _meta_content(soup: BeautifulSoup, **attrs) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    return tag.get("content")


def _canonical(soup: BeautifulSoup) -> Optional[str]:
    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "canonical" in [value.lower() for value in rel]:
            return link["href"]
    return None


def _title(soup: BeautifulSoup) -> str:
    tag = soup.find("title")
    return tag.get_text().strip() if tag else ""


class SEOAnalyzer:
    """
    Run the on-page SEO checks.

    Checks run in a fixed order and each produces exactly one
    SEOCheckResult; a page passes when every enabled check passes.
    """

    def __init__(self, options: Optional[SEOOptions] = None):
        self.options = options or SEOOptions()

    def run_checks(self, html: str) -> list[SEOCheckResult]:
        soup = BeautifulSoup(html, "html.parser")
        opts = self.options
        results = []

        if opts.check_title:
            results.append(self._check_title(soup))
        if opts.check_meta_description:
            results.append(self._check_meta_description(soup))
        if opts.check_canonical:
            results.append(self._check_canonical(soup))
        if opts.check_robots:
            results.append(self._check_robots(soup))
        if opts.check_image_alt:
            results.append(self._check_image_alt(soup))
        if opts.check_headings:
            results.append(self._check_headings(soup))
        if opts.check_open_graph:
            results.append(self._check_open_graph(soup))

        return results

    def _check_title(self, soup: BeautifulSoup) -> SEOCheckResult:
        """Title must exist and, if configured, match the expected value."""
        title = _title(soup)
        if not title:
            return SEOCheckResult("Page Title", False, "Page title is missing or empty")

        expected = self.options.expected_title
        if expected is not None:
            if isinstance(expected, re.Pattern):
                matches = bool(expected.search(title))
            else:
                matches = title == expected
            if not matches:
                pattern = expected.pattern if isinstance(expected, re.Pattern) else expected
                return SEOCheckResult(
                    "Page Title", False,
                    f'Page title does not match expected: "{pattern}"', title,
                )
            return SEOCheckResult("Page Title", True, "Page title matches expected", title)

        return SEOCheckResult("Page Title", True, f'Page title is present: "{title}"', title)

    def _check_meta_description(self, soup: BeautifulSoup) -> SEOCheckResult:
        description = _meta_content(soup, name="description")
        if not description:
            return SEOCheckResult("Meta Description", False, "Meta description is missing")

        length = len(description)
        recommended = f"recommended: {META_DESCRIPTION_MIN}-{META_DESCRIPTION_MAX}"
        if length < META_DESCRIPTION_MIN:
            return SEOCheckResult(
                "Meta Description", False,
                f"Meta description is too short ({length} chars, {recommended})", description,
            )
        if length > META_DESCRIPTION_MAX:
            return SEOCheckResult(
                "Meta Description", False,
                f"Meta description is too long ({length} chars, {recommended})", description,
            )
        return SEOCheckResult(
            "Meta Description", True,
            f"Meta description has appropriate length ({length} chars)", description,
        )

    def _check_canonical(self, soup: BeautifulSoup) -> SEOCheckResult:
        canonical = _canonical(soup)
        if not canonical:
            return SEOCheckResult("Canonical URL", False, "Canonical URL is missing")

        expected = self.options.expected_canonical
        if expected and canonical != expected:
            return SEOCheckResult(
                "Canonical URL", False,
                f'Canonical URL does not match expected: "{expected}"', canonical,
            )
        return SEOCheckResult("Canonical URL", True, f'Canonical URL is present: "{canonical}"', canonical)

    def _check_robots(self, soup: BeautifulSoup) -> SEOCheckResult:
        """Without a robots tag search engines assume index,follow."""
        require_index = self.options.require_index
        require_follow = self.options.require_follow
        robots = _meta_content(soup, name="robots")

        if not robots:
            passes = require_index and require_follow
            message = (
                "Robots meta tag is missing (defaults to index,follow)"
                if passes
                else "Robots meta tag is missing - consider adding explicit robots meta tag"
            )
            return SEOCheckResult("Robots Meta Tag", passes, message, "default (no robots meta tag)")

        lowered = robots.lower()
        allows_all = "all" in lowered
        issues = []

        if require_index:
            if "noindex" in lowered:
                issues.append("contains noindex (should be index)")
            elif "index" not in lowered and not allows_all:
                issues.append("missing index directive")

        if require_follow:
            if "nofollow" in lowered:
                issues.append("contains nofollow (should be follow)")
            elif "follow" not in lowered and not allows_all:
                issues.append("missing follow directive")

        if issues:
            return SEOCheckResult("Robots Meta Tag", False, f"Robots meta tag {'; '.join(issues)}", robots)
        return SEOCheckResult(
            "Robots Meta Tag", True, f'Robots meta tag is properly configured: "{robots}"', robots,
        )

    def _check_image_alt(self, soup: BeautifulSoup) -> SEOCheckResult:
        """Only visible images count; alt="" is a valid decorative marker."""
        visible = [img for img in soup.find_all("img") if is_visible(img)]
        missing = [img.get("src") or "unknown" for img in visible if img.get("alt") is None]

        if missing:
            return SEOCheckResult(
                "Image Alt Attributes", False,
                f"{len(missing)} visible image(s) missing alt attribute", ", ".join(missing),
            )
        return SEOCheckResult(
            "Image Alt Attributes", True, f"All {len(visible)} visible images have alt attributes",
        )

    def _check_headings(self, soup: BeautifulSoup) -> SEOCheckResult:
        h1_texts = [h1.get_text().strip() for h1 in soup.find_all("h1")]

        if not h1_texts:
            return SEOCheckResult("Heading Structure", False, "No H1 heading found", "H1: ")
        if len(h1_texts) > 1:
            return SEOCheckResult(
                "Heading Structure", False,
                f"Multiple H1 headings found ({len(h1_texts)}), should have only one",
                f"H1: {', '.join(h1_texts)}",
            )
        return SEOCheckResult(
            "Heading Structure", True, "Proper heading structure: 1 H1 found", f"H1: {h1_texts[0]}",
        )

    def _check_open_graph(self, soup: BeautifulSoup) -> SEOCheckResult:
        missing = [tag for tag in OPEN_GRAPH_TAGS if not _meta_content(soup, property=tag)]
        if missing:
            return SEOCheckResult("Open Graph Tags", False, f"Missing Open Graph tags: {', '.join(missing)}")
        return SEOCheckResult("Open Graph Tags", True, "All essential Open Graph tags are present")

    def extract_metadata(self, html: str) -> SEOMetadata:
        """Collect the raw SEO fields shown in the report table."""
        soup = BeautifulSoup(html, "html.parser")
        return SEOMetadata(
            title=_title(soup),
            meta_description=_meta_content(soup, name="description"),
            canonical_url=_canonical(soup),
            robots_meta_tag=_meta_content(soup, name="robots"),
            open_graph={tag: _meta_content(soup, property=tag) for tag in OPEN_GRAPH_TAGS},
            images=[
                ImageInfo(src=img.get("src") or "unknown", alt=img.get("alt"))
                for img in soup.find_all("img")
                if is_visible(img)
            ],
        )

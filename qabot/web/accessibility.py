"""
Accessibility Checker Module
============================

WCAG 2.1 rule checks over the rendered DOM. Findings use the axe-core
result shape (rule id, impact, affected nodes) so reports and summaries can
group them by rule.
"""

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from qabot.web.page import css_path, is_visible

HELP_URL = "https://dequeuniversity.com/rules/axe/4.8/{rule_id}"
MAX_NODE_HTML = 200


@dataclass
class ViolationNode:
    """One element affected by a rule."""
    target: list[str]
    html: str
    failure_summary: str = ""

    def to_dict(self) -> dict:
        return {"target": list(self.target), "html": self.html, "failure_summary": self.failure_summary}


@dataclass
class Violation:
    """A failed (or needs-review) accessibility rule."""
    id: str
    impact: str  # minor, moderate, serious, critical
    description: str
    help: str
    tags: list[str] = field(default_factory=list)
    nodes: list[ViolationNode] = field(default_factory=list)

    @property
    def help_url(self) -> str:
        return HELP_URL.format(rule_id=self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "impact": self.impact,
            "description": self.description,
            "help": self.help,
            "help_url": self.help_url,
            "tags": list(self.tags),
            "nodes": [node.to_dict() for node in self.nodes],
        }


@dataclass
class AccessibilityResult:
    """Scan outcome: violations fail the page, incomplete items need review."""
    url: str
    violations: list[Violation] = field(default_factory=list)
    incomplete: list[Violation] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.violations

    @property
    def total_violations(self) -> int:
        return len(self.violations)

    @property
    def total_incomplete(self) -> int:
        return len(self.incomplete)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "passed": self.passed,
            "total_violations": self.total_violations,
            "total_incomplete": self.total_incomplete,
            "violations": [violation.to_dict() for violation in self.violations],
            "incomplete": [item.to_dict() for item in self.incomplete],
        }


def _node(element: Tag, summary: str) -> ViolationNode:
    return ViolationNode(target=[css_path(element)], html=str(element), failure_summary=summary)


def _accessible_name(element: Tag) -> str:
    text = element.get_text(" ", strip=True)
    if text:
        return text
    for attr in ("aria-label", "title"):
        value = (element.get(attr) or "").strip()
        if value:
            return value
    if element.get("aria-labelledby"):
        return element["aria-labelledby"]
    for img in element.find_all("img"):
        if (img.get("alt") or "").strip():
            return img["alt"].strip()
    return ""


class AccessibilityChecker:
    """
    Check rendered HTML against WCAG 2.1 rules.

    Checks:
    - Perceivable: image alternatives, colour contrast (needs review)
    - Operable: link names, tab order
    - Understandable: page language, page title, form labels
    - Robust: heading and landmark structure
    """

    def check(self, url: str, html: str) -> AccessibilityResult:
        """
        Run accessibility rules on a page's HTML.

        Args:
            url: Page URL (for the result record)
            html: Rendered page HTML

        Returns:
            AccessibilityResult with violations and incomplete items
        """
        soup = BeautifulSoup(html, "html.parser")
        result = AccessibilityResult(url=url)

        self._check_language(soup, result)
        self._check_page_title(soup, result)
        self._check_images(soup, result)
        self._check_links(soup, result)
        self._check_forms(soup, result)
        self._check_headings(soup, result)
        self._check_landmarks(soup, result)
        self._check_tabindex(soup, result)
        self._check_color_contrast(soup, result)

        return result

    def _check_language(self, soup: BeautifulSoup, result: AccessibilityResult) -> None:
        """WCAG 3.1.1: Language of Page (Level A)"""
        html_tag = soup.find("html")
        if html_tag is None or (html_tag.get("lang") or "").strip():
            return
        result.violations.append(Violation(
            id="html-has-lang",
            impact="serious",
            description="Ensures every HTML document has a lang attribute",
            help="<html> element must have a lang attribute",
            tags=["wcag2a", "wcag311"],
            nodes=[ViolationNode(["html"], "<html>", "The <html> element does not have a lang attribute")],
        ))

    def _check_page_title(self, soup: BeautifulSoup, result: AccessibilityResult) -> None:
        """WCAG 2.4.2: Page Titled (Level A)"""
        title = soup.find("title")
        if title is not None and title.get_text().strip():
            return
        result.violations.append(Violation(
            id="document-title",
            impact="serious",
            description="Ensures each HTML document contains a non-empty <title> element",
            help="Documents must have <title> element to aid in navigation",
            tags=["wcag2a", "wcag242"],
            nodes=[ViolationNode(["html"], "<html>", "Document does not have a non-empty <title> element")],
        ))

    def _check_images(self, soup: BeautifulSoup, result: AccessibilityResult) -> None:
        """WCAG 1.1.1: Non-text Content (Level A)"""
        nodes = [
            _node(img, "Element does not have an alt attribute")
            for img in soup.find_all("img")
            if img.get("alt") is None
            and img.get("role") not in ("presentation", "none")
            and not (img.get("aria-label") or "").strip()
            and is_visible(img)
        ]
        if nodes:
            result.violations.append(Violation(
                id="image-alt",
                impact="critical",
                description="Ensures <img> elements have alternate text or a role of none or presentation",
                help="Images must have alternate text",
                tags=["wcag2a", "wcag111"],
                nodes=nodes,
            ))

    def _check_links(self, soup: BeautifulSoup, result: AccessibilityResult) -> None:
        """WCAG 2.4.4: Link Purpose (Level A)"""
        nodes = [
            _node(link, "Element does not have text that is visible to screen readers")
            for link in soup.find_all("a", href=True)
            if is_visible(link) and not _accessible_name(link)
        ]
        if nodes:
            result.violations.append(Violation(
                id="link-name",
                impact="serious",
                description="Ensures links have discernible text",
                help="Links must have discernible text",
                tags=["wcag2a", "wcag244", "wcag412"],
                nodes=nodes,
            ))

    def _check_forms(self, soup: BeautifulSoup, result: AccessibilityResult) -> None:
        """WCAG 1.3.1, 4.1.2: Form elements must have labels"""
        nodes = []
        for field_element in soup.find_all(["input", "textarea", "select"]):
            if field_element.get("type") in ("hidden", "submit", "button", "reset", "image"):
                continue
            field_id = field_element.get("id")
            labelled = (
                field_element.get("aria-label")
                or field_element.get("aria-labelledby")
                or field_element.get("title")
                or (field_id and soup.find("label", attrs={"for": field_id}))
                or field_element.find_parent("label")
            )
            if not labelled:
                nodes.append(_node(field_element, "Form element does not have an implicit or explicit label"))

        if nodes:
            result.violations.append(Violation(
                id="label",
                impact="critical",
                description="Ensures every form element has a label",
                help="Form elements must have labels",
                tags=["wcag2a", "wcag412", "wcag131"],
                nodes=nodes,
            ))

    def _check_headings(self, soup: BeautifulSoup, result: AccessibilityResult) -> None:
        """WCAG 1.3.1: Info and Relationships (Level A)"""
        headings = soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])

        empty = [h for h in headings if not _accessible_name(h)]
        if empty:
            result.violations.append(Violation(
                id="empty-heading",
                impact="minor",
                description="Ensures headings have discernible text",
                help="Headings should not be empty",
                tags=["cat.name-role-value", "best-practice"],
                nodes=[_node(h, "Element does not have text that is visible to screen readers") for h in empty],
            ))

        previous = 0
        skipped = []
        for heading in headings:
            level = int(heading.name[1])
            if previous and level - previous > 1:
                skipped.append(_node(heading, f"Heading level jumps from h{previous} to h{level}"))
            previous = level
        if skipped:
            result.violations.append(Violation(
                id="heading-order",
                impact="moderate",
                description="Ensures the order of headings is semantically correct",
                help="Heading levels should only increase by one",
                tags=["cat.semantics", "best-practice"],
                nodes=skipped,
            ))

    def _check_landmarks(self, soup: BeautifulSoup, result: AccessibilityResult) -> None:
        """WCAG 1.3.1: ARIA landmarks"""
        if soup.find("main") or soup.find(attrs={"role": "main"}):
            return
        result.violations.append(Violation(
            id="landmark-one-main",
            impact="moderate",
            description="Ensures the document has a main landmark",
            help="Document should have one main landmark",
            tags=["cat.semantics", "best-practice"],
            nodes=[ViolationNode(["html"], "<html>", "Document does not have a main landmark")],
        ))

    def _check_tabindex(self, soup: BeautifulSoup, result: AccessibilityResult) -> None:
        """WCAG 2.4.3: Focus Order (Level A)"""
        nodes = [
            _node(element, "Element has a tabindex greater than 0")
            for element in soup.find_all(tabindex=re.compile(r"^\s*[1-9]"))
        ]
        if nodes:
            result.violations.append(Violation(
                id="tabindex",
                impact="serious",
                description="Ensures tabindex attribute values are not greater than 0",
                help="Elements should not have tabindex greater than zero",
                tags=["cat.keyboard", "best-practice"],
                nodes=nodes,
            ))

    def _check_color_contrast(self, soup: BeautifulSoup, result: AccessibilityResult) -> None:
        """WCAG 1.4.3: Contrast (Minimum) (Level AA)"""
        # Contrast needs computed styles, so inline colours are only flagged for review.
        elements = [
            element for element in soup.find_all(style=re.compile(r"(^|;)\s*color\s*:", re.I))
            if is_visible(element)
        ]
        if elements:
            result.incomplete.append(Violation(
                id="color-contrast",
                impact="serious",
                description="Ensures the contrast between foreground and background colors meets WCAG 2 AA contrast ratio thresholds",
                help="Elements must meet minimum color contrast ratio thresholds",
                tags=["wcag2aa", "wcag143"],
                nodes=[_node(e, "Verify 4.5:1 contrast ratio (3:1 for large text)") for e in elements],
            ))


def _format_nodes(nodes: list[ViolationNode], lines: list[str]) -> None:
    for index, node in enumerate(nodes, start=1):
        lines.append(f"     Element {index}:")
        if node.target:
            lines.append(f"        Selector: {node.target[-1]}")
            if len(node.target) > 1:
                lines.append(f"        Full path: {' > '.join(node.target)}")
        if node.html:
            snippet = node.html if len(node.html) <= MAX_NODE_HTML else node.html[:MAX_NODE_HTML] + "..."
            lines.append(f"        HTML: {snippet}")
        if node.failure_summary:
            lines.append(f"        Issue: {node.failure_summary.strip()}")
        lines.append("")


def format_accessibility_report(result: AccessibilityResult) -> str:
    """Render the scan as a text block for logs and CI output."""
    if result.passed and not result.incomplete:
        return "✅ No accessibility violations found!"

    lines = [
        "Accessibility Check Results:",
        f"  Violations: {result.total_violations}",
        f"  Incomplete: {result.total_incomplete}",
        "",
    ]

    if result.violations:
        lines.append("Violations:")
        for violation in result.violations:
            lines.append(f"  ❌ {violation.id}: {violation.description}")
            lines.append(f"     Impact: {violation.impact}")
            lines.append(f"     Help: {violation.help_url}")
            lines.append(f"     Affected elements: {len(violation.nodes)}")
            lines.append("")
            _format_nodes(violation.nodes, lines)

    if result.incomplete:
        lines.append("Incomplete (needs manual review):")
        for item in result.incomplete:
            lines.append(f"  ⚠️  {item.id}: {item.description}")
            lines.append(f"     Help: {item.help_url}")
            lines.append(f"     Affected elements: {len(item.nodes)}")
            _format_nodes(item.nodes, lines)

    return "\n".join(lines).rstrip() + "\n"

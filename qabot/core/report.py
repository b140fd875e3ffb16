"""
Result aggregation and text formatting for one page's link check.
"""

from typing import Iterable, Optional

from qabot.core.models import Disposition, Evidence, LinkCheckResult, PageLinkReport


def aggregate(
    page_url: str,
    results: Iterable[LinkCheckResult],
    total_links: Optional[int] = None,
    evidence: Optional[Evidence] = None,
) -> PageLinkReport:
    """
    Combine per-URL results into a PageLinkReport.

    BROKEN and REVIEW results are kept in separate lists, each in the order
    the results were given (link discovery order).
    """
    results = list(results)
    report = PageLinkReport(
        page_url=page_url,
        total_links=len(results) if total_links is None else total_links,
        total_checked=len(results),
        evidence=evidence,
    )
    for result in results:
        if result.disposition is Disposition.BROKEN:
            report.broken.append(result)
        elif result.disposition is Disposition.REVIEW:
            report.review.append(result)
        else:
            report.ok_count += 1
    return report


def _format_status(result: LinkCheckResult) -> str:
    probe = result.probe
    return f"{probe.status} {probe.status_text}".strip()


def _format_entry(index: int, result: LinkCheckResult) -> list[str]:
    lines = [f"{index}. {result.url}", f"   Status: {_format_status(result)}"]

    if result.elements:
        lines.append(f"   Found on page ({len(result.elements)} element(s)):")
        for element in result.elements:
            lines.append(f"     - Selector: {element.selector}")
            if element.link_text:
                lines.append(f'       Link Text: "{element.link_text}"')
            if element.html:
                lines.append(f"       HTML: {element.html}")

    if result.probe.error:
        lines.append(f"   Error: {result.probe.error}")
    return lines


def format_report(report: PageLinkReport) -> str:
    """Render a deterministic, human-readable text block for a page report."""
    lines = [
        f"Broken link check: {report.page_url}",
        (
            f"Links found: {report.total_links} | Checked: {report.total_checked} | "
            f"OK: {report.ok_count} | Broken: {len(report.broken)} | "
            f"Needs review: {len(report.review)}"
        ),
        "",
    ]

    if report.broken:
        lines.append(f"❌ BROKEN LINKS ({len(report.broken)}):")
        lines.append("")
        for index, result in enumerate(report.broken, start=1):
            lines.extend(_format_entry(index, result))
            lines.append("")
    else:
        lines.append("✅ No broken links found!")
        lines.append("")

    if report.review:
        lines.append(f"⚠️  NEEDS MANUAL REVIEW ({len(report.review)}):")
        lines.append("   These hosts block automated checks; verify them in a browser.")
        lines.append("")
        for index, result in enumerate(report.review, start=1):
            lines.extend(_format_entry(index, result))
            lines.append("")

    if report.evidence:
        if report.evidence.full_page:
            lines.append(f"📸 Full page screenshot: {report.evidence.full_page}")
        for path in report.evidence.close_ups:
            lines.append(f"📸 Close-up: {path}")

    return "\n".join(lines).rstrip() + "\n"

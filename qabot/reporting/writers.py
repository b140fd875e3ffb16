"""
Report writers
==============

JSON report per page, HTML viewer per page, and a Markdown summary that
aggregates every JSON report under one domain.
"""

import io
import json
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from qabot.core.report import format_report
from qabot.reporting.merger import MergedReport
from qabot.reporting.paths import error_report_path, report_path_for_url, unique_url_based_dir

IMPACT_ORDER = {"critical": 0, "serious": 1, "moderate": 2, "minor": 3}
MAX_LISTED_SELECTORS = 5


def write_json(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def write_json_report(report: MergedReport, reports_dir: Union[str, Path] = "reports") -> Path:
    """Write the merged report to its URL-derived location."""
    path = write_json(report_path_for_url(report.url, reports_dir, "json"), report.to_dict())
    logger.info("Report saved: {}", path)
    return path


def write_error_report(
    url: str,
    error: BaseException,
    reports_dir: Union[str, Path] = "reports",
    final_url: Optional[str] = None,
) -> Path:
    """Record a page that could not be audited at all."""
    data = {
        "url": url,
        "timestamp": datetime.now().isoformat(),
        "error": True,
        "error_type": error.__class__.__name__,
        "error_message": str(error),
        "final_url": final_url or url,
    }
    path = write_json(error_report_path(url, reports_dir), data)
    logger.warning("Error report saved: {}", path)
    return path


def render_console_report(report: MergedReport, console: Console) -> None:
    """Print the merged report with rich; used for the terminal and the HTML viewer."""
    status_style = "green" if report.passed else "red"
    console.print(Panel(
        f"[bold]{escape(report.url)}[/bold]\n"
        f"Status: [{status_style}]{report.overall_status.upper()}[/{status_style}]\n"
        f"Generated: {report.timestamp}",
        title="Site QA Report",
    ))

    seo_table = Table(title="SEO Checks")
    seo_table.add_column("Check", style="cyan")
    seo_table.add_column("Status")
    seo_table.add_column("Details")
    for result in report.seo:
        seo_table.add_row(
            result.check,
            "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]",
            escape(result.message),
        )
    console.print(seo_table)

    if report.links is not None:
        console.print("\n[bold]Links[/bold]")
        console.print(escape(format_report(report.links)), highlight=False)
    else:
        console.print("\n[yellow]Links were not checked[/yellow]")

    a11y = report.accessibility
    a11y_table = Table(title="Accessibility Violations")
    a11y_table.add_column("Rule", style="cyan")
    a11y_table.add_column("Impact")
    a11y_table.add_column("Elements", justify="right")
    a11y_table.add_column("Help")
    for violation in a11y.violations:
        a11y_table.add_row(violation.id, violation.impact, str(len(violation.nodes)), escape(violation.help))
    if a11y.violations:
        console.print(a11y_table)
    else:
        console.print("[green]No accessibility violations[/green]")

    if report.gtm is not None:
        style = "green" if report.gtm.has_gtm else "red"
        console.print(f"\n[{style}]GTM: {escape(report.gtm.message)}[/{style}]")

    for warning in report.warnings:
        console.print(f"[yellow]Warning: {escape(warning)}[/yellow]")


def write_html_report(report: MergedReport, html_dir: Union[str, Path] = "playwright-report") -> Path:
    """Export the console rendering of a report as a standalone HTML page."""
    console = Console(record=True, width=120, file=io.StringIO())
    render_console_report(report, console)

    directory = unique_url_based_dir(report.url, html_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "index.html"
    path.write_text(console.export_html(inline_styles=True), encoding="utf-8")
    logger.info("HTML report saved: {}", path)
    return path


# --- Domain summary ---------------------------------------------------------


@dataclass
class DomainSummary:
    """Issues aggregated over all reports of one domain."""
    domain: str
    total_pages: int = 0
    pages_with_issues: int = 0
    pages_passed: int = 0
    seo_failures: list[dict] = field(default_factory=list)
    broken_links: list[dict] = field(default_factory=list)
    review_links: list[dict] = field(default_factory=list)
    accessibility_rules: list[dict] = field(default_factory=list)
    pages_without_gtm: list[dict] = field(default_factory=list)
    unreadable: list[str] = field(default_factory=list)

    @property
    def seo_failure_count(self) -> int:
        return sum(len(page["failed_checks"]) for page in self.seo_failures)

    @property
    def review_link_count(self) -> int:
        return sum(len(page["links"]) for page in self.review_links)

    @property
    def accessibility_instances(self) -> int:
        return sum(
            len(issue["pages"]) for rule in self.accessibility_rules for issue in rule["issues"]
        )

    @property
    def total_issues(self) -> int:
        return (
            self.seo_failure_count
            + len(self.broken_links)
            + self.review_link_count
            + self.accessibility_instances
            + len(self.pages_without_gtm)
        )


def find_report_files(directory: Path) -> list[Path]:
    """Every JSON report below ``directory``, skipping error reports."""
    return sorted(
        path for path in directory.rglob("*.json")
        if path.is_file() and not path.name.startswith("error-")
    )


def _issue_message(node: dict) -> str:
    summary = (node.get("failure_summary") or "").strip()
    if not summary:
        return "N/A"
    lines = [line.strip() for line in summary.splitlines() if line.strip()]
    if len(lines) > 1 and lines[0].lower().startswith("fix"):
        return lines[1]
    return lines[0]


def build_domain_summary(domain: str, reports_dir: Union[str, Path] = "reports") -> DomainSummary:
    """
    Aggregate issues across a domain's reports.

    Raises:
        FileNotFoundError: if the domain has no reports directory
    """
    directory = Path(reports_dir) / domain
    if not directory.is_dir():
        raise FileNotFoundError(f"Reports directory not found: {directory}")

    summary = DomainSummary(domain=domain)
    broken: "OrderedDict[str, dict]" = OrderedDict()
    rules: "OrderedDict[str, dict]" = OrderedDict()

    for path in find_report_files(directory):
        try:
            report = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Error reading {}: {}", path, e)
            summary.unreadable.append(str(path))
            continue

        summary.total_pages += 1
        page_url = report.get("url", str(path))
        has_issues = False

        failed = (report.get("seo") or {}).get("failed_checks") or []
        if failed:
            summary.seo_failures.append({"url": page_url, "failed_checks": failed})
            has_issues = True

        links = report.get("broken_links") or {}
        for link in links.get("broken") or []:
            entry = broken.setdefault(link["url"], {
                "url": link["url"],
                "status": link.get("status"),
                "status_text": link.get("status_text", ""),
                "error": link.get("error"),
                "found_on_pages": [],
            })
            entry["found_on_pages"].append({"url": page_url, "elements": link.get("elements") or []})
            has_issues = True

        review = links.get("review") or []
        if review:
            summary.review_links.append({"url": page_url, "links": review})
            has_issues = True

        for violation in (report.get("accessibility") or {}).get("violations") or []:
            rule = rules.setdefault(violation["id"], {
                "id": violation["id"],
                "impact": violation.get("impact"),
                "description": violation.get("description", ""),
                "help": violation.get("help", ""),
                "help_url": violation.get("help_url"),
                "issues": OrderedDict(),
            })
            for node in violation.get("nodes") or []:
                message = _issue_message(node)
                issue = rule["issues"].setdefault(message, {"message": message, "pages": [], "selectors": []})
                if page_url not in issue["pages"]:
                    issue["pages"].append(page_url)
                target = node.get("target") or ["N/A"]
                if target[-1] not in issue["selectors"]:
                    issue["selectors"].append(target[-1])
            has_issues = True

        gtm = report.get("gtm")
        if gtm is not None and not gtm.get("has_gtm"):
            summary.pages_without_gtm.append({"url": page_url, "message": gtm.get("message") or "GTM not found"})
            has_issues = True

        if has_issues:
            summary.pages_with_issues += 1
        else:
            summary.pages_passed += 1

    summary.broken_links = list(broken.values())
    summary.accessibility_rules = sorted(
        (dict(rule, issues=list(rule["issues"].values())) for rule in rules.values()),
        key=lambda rule: IMPACT_ORDER.get(rule["impact"], 99),
    )
    return summary


def render_summary_markdown(summary: DomainSummary, generated_at: Optional[datetime] = None) -> str:
    generated_at = generated_at or datetime.now()
    lines = [
        f"# Domain Summary Report: {summary.domain}",
        "",
        f"**Generated:** {generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Total Pages Tested:** {summary.total_pages}",
        f"**Pages with Issues:** {summary.pages_with_issues}",
        f"**Pages Passed:** {summary.pages_passed}",
        f"**Total Issues Found:** {summary.total_issues}",
        "",
        "---",
        "",
    ]

    if summary.total_issues == 0:
        lines += ["## ✅ No Issues Found!", "", "All pages passed all checks successfully.", ""]
        return "\n".join(lines)

    if summary.seo_failures:
        lines += ["## 🔍 SEO Issues", "", f"**Total SEO Failures:** {summary.seo_failure_count}", ""]
        for index, page in enumerate(summary.seo_failures, start=1):
            lines += [f"### {index}. {page['url']}", ""]
            for check in page["failed_checks"]:
                lines.append(f"- **{check['check']}**: {check.get('message') or 'Failed'}")
                if check.get("value"):
                    lines.append(f"  - Value: {check['value']}")
            lines.append("")
        lines += ["---", ""]

    if summary.broken_links:
        lines += ["## 🔗 Broken Links", "", f"**Total Broken Links:** {len(summary.broken_links)} unique URLs", ""]
        for index, link in enumerate(summary.broken_links, start=1):
            lines.append(f"### {index}. {link['url']}")
            lines.append(f"- **Status:** {link['status']} {link['status_text']}".rstrip())
            if link.get("error"):
                lines.append(f"- **Error:** {link['error']}")
            lines.append(f"- **Found on {len(link['found_on_pages'])} page(s):**")
            for page in link["found_on_pages"]:
                lines.append(f"  - {page['url']}")
                for element_index, element in enumerate(page["elements"], start=1):
                    lines.append(f"    - Element {element_index}: `{element.get('selector')}`")
                    if element.get("link_text"):
                        lines.append(f"      - Link Text: \"{element['link_text']}\"")
            lines.append("")
        lines += ["---", ""]

    if summary.review_links:
        lines += [
            "## ⚠️ Links for Review",
            "",
            f"**Total Links for Review:** {summary.review_link_count}",
            "",
            "These links may work in browsers but block automated requests (e.g., social media links).",
            "",
        ]
        for index, page in enumerate(summary.review_links, start=1):
            lines += [f"### {index}. {page['url']}", ""]
            for link in page["links"]:
                lines.append(f"- **{link['url']}**")
                lines.append(f"  - Status: {link.get('status')} {link.get('status_text', '')}".rstrip())
                if link.get("error"):
                    lines.append(f"  - Note: {link['error']}")
            lines.append("")
        lines += ["---", ""]

    if summary.accessibility_rules:
        lines += [
            "## ♿ Accessibility Violations",
            "",
            f"**Total Violations:** {summary.accessibility_instances} instances",
            f"**Unique Rule Types:** {len(summary.accessibility_rules)}",
            "",
        ]
        for index, rule in enumerate(summary.accessibility_rules, start=1):
            instances = sum(len(issue["pages"]) for issue in rule["issues"])
            lines += [
                f"### {index}. {rule['id']} ({rule['impact']})",
                "",
                f"**Description:** {rule['description']}",
                f"**Help:** {rule['help']}",
            ]
            if rule.get("help_url"):
                lines.append(f"**Help URL:** {rule['help_url']}")
            lines += [f"**Total Instances:** {instances}", ""]

            for issue_index, issue in enumerate(rule["issues"], start=1):
                lines += [f"#### Issue {issue_index}: {issue['message']}", ""]
                lines.append(f"**Affected Pages ({len(issue['pages'])}):**")
                lines += [f"- {page_url}" for page_url in issue["pages"]]
                selectors = issue["selectors"]
                if selectors and len(selectors) <= MAX_LISTED_SELECTORS:
                    lines += ["", f"**Selectors:** {', '.join(f'`{s}`' for s in selectors)}"]
                elif selectors:
                    lines += [
                        "",
                        f"**Selectors:** {len(selectors)} unique selector(s) "
                        f"(e.g., `{selectors[0]}`, `{selectors[1]}`, ...)",
                    ]
                lines.append("")
        lines += ["---", ""]

    if summary.pages_without_gtm:
        lines += [
            "## 📊 Missing Google Tag Manager",
            "",
            f"**Pages without GTM:** {len(summary.pages_without_gtm)}",
            "",
        ]
        for page in summary.pages_without_gtm:
            lines.append(f"- {page['url']}")
            if page.get("message"):
                lines.append(f"  - {page['message']}")
        lines += ["", "---", ""]

    lines += ["## 📊 Summary Statistics", "", "| Category | Count |", "|----------|-------|"]
    rows = [
        ("SEO Failures", summary.seo_failure_count),
        ("Broken Links", len(summary.broken_links)),
        ("Links for Review", summary.review_link_count),
        ("Accessibility Violations", summary.accessibility_instances),
        ("Pages without GTM", len(summary.pages_without_gtm)),
    ]
    lines += [f"| {label} | {count} |" for label, count in rows if count]
    lines.append("")

    return "\n".join(lines)


def write_domain_summary(domain: str, reports_dir: Union[str, Path] = "reports") -> Path:
    """Build and write ``Report_Summary_<domain>_<stamp>.md`` in the domain folder."""
    summary = build_domain_summary(domain, reports_dir)
    now = datetime.now()
    filename = f"Report_Summary_{domain.replace('.', '_')}_{now.strftime('%Y-%m-%d_%H-%M')}.md"
    path = Path(reports_dir) / domain / filename
    path.write_text(render_summary_markdown(summary, now), encoding="utf-8")
    logger.info(
        "Summary for {}: {} page(s), {} with issues, {} issue(s)",
        domain, summary.total_pages, summary.pages_with_issues, summary.total_issues,
    )
    return path

"""Tests for link report aggregation and text formatting."""

from pathlib import Path

from qabot.core.models import (
    Disposition,
    Evidence,
    LinkCandidate,
    LinkCheckResult,
    ProbeResult,
)
from qabot.core.report import aggregate, format_report

PAGE = "https://example.com/"


def result(url, status, disposition, status_text="", error=None, elements=()):
    return LinkCheckResult(
        probe=ProbeResult(url=url, status=status, status_text=status_text, error=error),
        disposition=disposition,
        elements=tuple(elements),
    )


def element(selector, text="", html=""):
    return LinkCandidate(url="", raw_href="", selector=selector, link_text=text, html=html)


class TestAggregate:
    """Tests for aggregate()."""

    def test_partitions_by_disposition_in_order(self):
        results = [
            result("https://example.com/a", 404, Disposition.BROKEN),
            result("https://example.com/b", 200, Disposition.OK),
            result("https://linkedin.com/x", 999, Disposition.REVIEW),
            result("https://example.com/c", 500, Disposition.BROKEN),
        ]
        report = aggregate(PAGE, results)

        assert report.total_checked == 4
        assert report.total_links == 4
        assert report.ok_count == 1
        assert [r.url for r in report.broken] == ["https://example.com/a", "https://example.com/c"]
        assert [r.url for r in report.review] == ["https://linkedin.com/x"]
        assert report.passed is False

    def test_review_only_report_passes(self):
        report = aggregate(PAGE, [result("https://x.com/a", 403, Disposition.REVIEW)])
        assert report.passed is True

    def test_counts_add_up(self):
        results = [result(f"https://example.com/{i}", 200, Disposition.OK) for i in range(3)]
        report = aggregate(PAGE, results, total_links=3)
        assert report.ok_count + len(report.broken) + len(report.review) == report.total_checked

    def test_to_dict(self):
        report = aggregate(PAGE, [result("https://example.com/a", 404, Disposition.BROKEN, "Not Found")])
        data = report.to_dict()

        assert data["broken_count"] == 1
        assert data["review_count"] == 0
        assert data["broken"][0]["status"] == 404
        assert data["broken"][0]["disposition"] == "broken"
        assert data["evidence"] is None


class TestFormatReport:
    """Tests for format_report()."""

    def test_clean_report(self):
        report = aggregate(PAGE, [result("https://example.com/a", 200, Disposition.OK)])
        text = format_report(report)

        assert text.startswith("Broken link check: https://example.com/\n")
        assert "Links found: 1 | Checked: 1 | OK: 1 | Broken: 0 | Needs review: 0" in text
        assert "✅ No broken links found!" in text
        assert "NEEDS MANUAL REVIEW" not in text
        assert text.endswith("\n")

    def test_broken_entry_lists_every_element(self):
        broken = result(
            "https://example.com/gone", 404, Disposition.BROKEN, "Not Found",
            elements=[
                element("#nav > a:nth-of-type(2)", "Pricing", '<a href="/gone">Pricing</a>'),
                element("html > body > footer > a", "Old pricing"),
            ],
        )
        text = format_report(aggregate(PAGE, [broken]))

        assert "❌ BROKEN LINKS (1):" in text
        assert "1. https://example.com/gone" in text
        assert "   Status: 404 Not Found" in text
        assert "   Found on page (2 element(s)):" in text
        assert "     - Selector: #nav > a:nth-of-type(2)" in text
        assert '       Link Text: "Pricing"' in text
        assert '       HTML: <a href="/gone">Pricing</a>' in text
        assert "     - Selector: html > body > footer > a" in text

    def test_error_and_review_sections(self):
        results = [
            result("https://down.example.com/", 0, Disposition.BROKEN, "Error", error="Connection refused"),
            result("https://linkedin.com/in/a", 999, Disposition.REVIEW, "Request denied"),
        ]
        text = format_report(aggregate(PAGE, results))

        assert "   Status: 0 Error" in text
        assert "   Error: Connection refused" in text
        assert "⚠️  NEEDS MANUAL REVIEW (1):" in text
        assert text.index("BROKEN LINKS") < text.index("NEEDS MANUAL REVIEW")

    def test_evidence_lines(self):
        evidence = Evidence(full_page=Path("shots/full.png"), close_ups=(Path("shots/1.png"),))
        report = aggregate(PAGE, [result("https://example.com/a", 404, Disposition.BROKEN)], evidence=evidence)
        text = format_report(report)

        assert "📸 Full page screenshot: shots/full.png" in text
        assert "📸 Close-up: shots/1.png" in text

    def test_deterministic(self):
        report = aggregate(PAGE, [result("https://example.com/a", 404, Disposition.BROKEN, "Not Found")])
        assert format_report(report) == format_report(report)

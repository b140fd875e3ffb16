"""Tests for report paths, merging and the file writers."""

import json
from datetime import datetime
from pathlib import Path

import pytest

from qabot.core.models import Disposition, LinkCandidate, LinkCheckResult, ProbeResult
from qabot.core.report import aggregate
from qabot.reporting.merger import merge_results
from qabot.reporting.paths import (
    error_report_path,
    report_path_for_url,
    unique_url_based_dir,
    url_based_dir,
)
from qabot.reporting.writers import (
    build_domain_summary,
    render_summary_markdown,
    write_domain_summary,
    write_error_report,
    write_html_report,
    write_json_report,
)
from qabot.web.accessibility import AccessibilityChecker
from qabot.web.gtm import check_gtm
from qabot.web.seo import SEOCheckResult

GOOD_HTML = '<html lang="en"><title>t</title><main><h1>Hi</h1></main></html>'


def link_result(url, status, disposition, page_selector="#a"):
    return LinkCheckResult(
        probe=ProbeResult(url=url, status=status, status_text="Not Found" if status == 404 else ""),
        disposition=disposition,
        elements=(LinkCandidate(url=url, raw_href=url, selector=page_selector, link_text="Go"),),
    )


def make_report(url="https://example.com/", broken=(), review=(), html=GOOD_HTML, seo_passed=True, gtm_html=None):
    results = [link_result(u, 404, Disposition.BROKEN) for u in broken]
    results += [link_result(u, 999, Disposition.REVIEW) for u in review]
    results.append(link_result("https://example.com/ok", 200, Disposition.OK))
    return merge_results(
        url,
        seo=[SEOCheckResult("Page Title", seo_passed, "Page title is present" if seo_passed else "Page title is missing or empty")],
        accessibility=AccessibilityChecker().check(url, html),
        links=aggregate(url, results),
        gtm=check_gtm(gtm_html) if gtm_html is not None else None,
    )


class TestReportPaths:
    """Tests for URL to file path mapping."""

    @pytest.mark.parametrize("url,expected", [
        ("https://example.com/", "reports/example.com/root/index.json"),
        ("https://www.example.com", "reports/example.com/root/index.json"),
        ("https://example.com/about.html", "reports/example.com/root/about.json"),
        ("https://example.com/about", "reports/example.com/root/about.json"),
        ("https://example.com/a/b/advanced-search/", "reports/example.com/a/b/advanced-search.json"),
    ])
    def test_report_path_for_url(self, url, expected):
        assert report_path_for_url(url) == Path(expected)

    def test_invalid_url(self):
        with pytest.raises(ValueError):
            report_path_for_url("not a url")

    def test_error_report_path(self):
        assert error_report_path("https://example.com/contact", "out") == Path("out/example.com/root/error-contact.json")

    def test_error_reports_for_different_domains_do_not_collide(self):
        first = error_report_path("https://a.com/", "out")
        second = error_report_path("https://b.com/", "out")

        assert first == Path("out/a.com/root/error-index.json")
        assert second == Path("out/b.com/root/error-index.json")

    def test_url_based_dir(self):
        assert url_based_dir("https://example.com/docs/guide.html", "shots") == Path("shots/example.com/docs/guide")
        assert url_based_dir("https://example.com/", "shots") == Path("shots/example.com")

    def test_unique_url_based_dir_avoids_existing(self, tmp_path):
        url = "https://example.com/page"
        first = unique_url_based_dir(url, tmp_path)
        first.mkdir(parents=True)
        second = unique_url_based_dir(url, tmp_path)
        second.mkdir(parents=True)
        third = unique_url_based_dir(url, tmp_path)

        assert len({first, second, third}) == 3
        assert second.name.startswith("page-")
        assert third.name.endswith("-1")


class TestMergedReport:
    """Tests for merge_results() and MergedReport."""

    def test_clean_page_passes(self):
        report = make_report()
        assert report.passed
        assert report.overall_status == "passed"

    def test_broken_link_fails_but_review_does_not(self):
        assert not make_report(broken=["https://example.com/gone"]).passed
        assert make_report(review=["https://linkedin.com/in/a"]).passed

    def test_seo_and_accessibility_failures_fail(self):
        assert not make_report(seo_passed=False).passed
        assert not make_report(html="<img src='x.png'>").passed

    def test_unchecked_links_fail(self):
        report = make_report()
        report.links = None
        assert not report.passed
        assert report.to_dict()["broken_links"] is None

    def test_gtm_is_optional(self):
        assert make_report().gtm_passed is None
        assert not make_report(gtm_html="<html></html>").passed
        gtm_page = '<script src="https://www.googletagmanager.com/gtm.js?id=GTM-ABCDE1"></script>'
        assert make_report(gtm_html=gtm_page).passed

    def test_to_dict_schema(self):
        data = make_report(broken=["https://example.com/gone"], review=["https://x.com/a"]).to_dict()

        assert set(data) == {
            "url", "timestamp", "summary", "seo", "broken_links", "accessibility", "gtm", "metadata", "warnings",
        }
        assert data["summary"] == {
            "overall_status": "failed",
            "seo_passed": True,
            "broken_links_count": 1,
            "review_links_count": 1,
            "accessibility_passed": True,
            "gtm_passed": None,
        }
        assert data["seo"]["passed_count"] == 1
        assert data["accessibility"]["formatted_report"] == "✅ No accessibility violations found!"
        assert data["timestamp"].endswith("Z")

    def test_formatter_failure_degrades_to_warning(self, monkeypatch):
        def explode(result):
            raise RuntimeError("formatter bug")

        monkeypatch.setattr("qabot.reporting.merger.format_accessibility_report", explode)
        data = make_report().to_dict()

        assert data["accessibility"]["formatted_report"] is None
        assert any("formatter bug" in warning for warning in data["warnings"])


class TestWriters:
    """Tests for JSON, HTML and error report files."""

    def test_write_json_report(self, tmp_path):
        path = write_json_report(make_report("https://example.com/about"), tmp_path)

        assert path == tmp_path / "example.com" / "root" / "about.json"
        assert json.loads(path.read_text(encoding="utf-8"))["url"] == "https://example.com/about"

    def test_write_html_report(self, tmp_path):
        path = write_html_report(make_report(broken=["https://example.com/gone"]), tmp_path)
        html = path.read_text(encoding="utf-8")

        assert path.name == "index.html"
        assert "Site QA Report" in html
        assert "https://example.com/gone" in html

    def test_write_error_report(self, tmp_path):
        path = write_error_report("https://example.com/down", TimeoutError("navigation timeout"), tmp_path)
        data = json.loads(path.read_text(encoding="utf-8"))

        assert path == tmp_path / "example.com" / "root" / "error-down.json"
        assert data["error"] is True
        assert data["error_type"] == "TimeoutError"
        assert data["error_message"] == "navigation timeout"


class TestDomainSummary:
    """Tests for the Markdown domain summary."""

    def write_reports(self, base: Path):
        write_json_report(make_report("https://example.com/", broken=["https://example.com/gone"]), base)
        write_json_report(make_report("https://example.com/about", broken=["https://example.com/gone"],
                                      html="<html><main><h1>x</h1></main></html>"), base)
        write_json_report(make_report("https://example.com/contact", review=["https://x.com/acme"],
                                      gtm_html="<html></html>"), base)
        write_json_report(make_report("https://example.com/clean"), base)
        write_error_report("https://example.com/down", RuntimeError("boom"), base / "example.com")

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            build_domain_summary("nowhere.com", tmp_path)

    def test_aggregates_across_pages(self, tmp_path):
        self.write_reports(tmp_path)
        summary = build_domain_summary("example.com", tmp_path)

        assert summary.total_pages == 4
        assert summary.pages_with_issues == 3
        assert summary.pages_passed == 1
        assert len(summary.broken_links) == 1
        assert len(summary.broken_links[0]["found_on_pages"]) == 2
        assert summary.review_link_count == 1
        assert [page["url"] for page in summary.pages_without_gtm] == ["https://example.com/contact"]
        assert {rule["id"] for rule in summary.accessibility_rules} == {"html-has-lang", "document-title"}

    def test_unreadable_report_is_skipped(self, tmp_path):
        self.write_reports(tmp_path)
        (tmp_path / "example.com" / "broken.json").write_text("{not json", encoding="utf-8")

        summary = build_domain_summary("example.com", tmp_path)

        assert summary.total_pages == 4
        assert len(summary.unreadable) == 1

    def test_markdown_sections(self, tmp_path):
        self.write_reports(tmp_path)
        text = render_summary_markdown(build_domain_summary("example.com", tmp_path), datetime(2024, 5, 1, 9, 30))

        assert text.startswith("# Domain Summary Report: example.com")
        assert "**Generated:** 2024-05-01 09:30:00" in text
        assert "## 🔗 Broken Links" in text
        assert "- **Found on 2 page(s):**" in text
        assert "## ⚠️ Links for Review" in text
        assert "## ♿ Accessibility Violations" in text
        assert "## 📊 Missing Google Tag Manager" in text
        assert "| Broken Links | 1 |" in text

    def test_clean_domain(self, tmp_path):
        write_json_report(make_report("https://example.com/"), tmp_path)
        text = render_summary_markdown(build_domain_summary("example.com", tmp_path))
        assert "## ✅ No Issues Found!" in text

    def test_write_domain_summary(self, tmp_path):
        self.write_reports(tmp_path)
        path = write_domain_summary("example.com", tmp_path)

        assert path.parent == tmp_path / "example.com"
        assert path.name.startswith("Report_Summary_example_com_")
        assert path.suffix == ".md"

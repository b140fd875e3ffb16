"""Tests for link extraction and URL normalization."""

import pytest

from conftest import RecordingPage, anchor
from qabot.core.extractor import (
    LinkExtractor,
    clean_link_text,
    group_by_target,
    normalize_url,
    resolve_href,
)
from qabot.errors import ExtractionFailed
from qabot.web.page import StaticPage

PAGE = "https://example.com/about"


class TestResolveHref:
    """Tests for href filtering and resolution."""

    @pytest.mark.parametrize("href", [
        "", "   ", "#", "#top", "mailto:hi@example.com", "tel:+15551234",
        "javascript:void(0)", "JavaScript:alert(1)", "data:text/plain,hi", "sms:123",
    ])
    def test_skips_non_checkable(self, href):
        """Test that empty, fragment-only and non-http hrefs are skipped."""
        assert resolve_href(href, PAGE) is None

    def test_skips_other_schemes(self):
        """Test that ftp and similar schemes are skipped."""
        assert resolve_href("ftp://files.example.com/a", PAGE) is None

    def test_resolves_relative(self):
        """Test relative hrefs resolve against the page URL."""
        assert resolve_href("contact", PAGE) == "https://example.com/contact"
        assert resolve_href("/pricing/", PAGE) == "https://example.com/pricing"

    def test_prefers_browser_resolved_value(self):
        """Test that a resolved URL from the DOM wins over urljoin."""
        assert resolve_href("x", PAGE, "https://cdn.example.com/x") == "https://cdn.example.com/x"

    def test_skips_fragment_link_to_same_page(self):
        """Test that /about#team on /about is treated as in-page navigation."""
        assert resolve_href("/about#team", PAGE) is None

    def test_keeps_fragment_link_to_other_page(self):
        """Test that a fragment on another page keeps the page, minus fragment."""
        assert resolve_href("/faq#shipping", PAGE) == "https://example.com/faq"


class TestNormalizeUrl:
    """Tests for the deduplication key."""

    def test_drops_fragment_and_trailing_slash(self):
        assert normalize_url("https://example.com/a/b/#x") == "https://example.com/a/b"

    def test_root_keeps_slash(self):
        assert normalize_url("https://example.com") == "https://example.com/"
        assert normalize_url("https://example.com/") == "https://example.com/"

    def test_keeps_query(self):
        assert normalize_url("https://example.com/s/?q=1") == "https://example.com/s?q=1"


class TestCleanLinkText:
    def test_collapses_whitespace(self):
        assert clean_link_text("  Read\n   more  ") == "Read more"

    def test_truncates_long_text(self):
        text = clean_link_text("x" * 150)
        assert len(text) == 100
        assert text.endswith("...")


class TestLinkExtractor:
    """Tests for LinkExtractor."""

    async def test_extracts_in_document_order(self):
        """Test that candidates keep document order and metadata."""
        page = RecordingPage(PAGE, [
            anchor("/one", selector="#nav > a:nth-of-type(1)", text="One"),
            anchor("mailto:x@example.com"),
            anchor("https://other.org/two", text="Two"),
        ])
        candidates = await LinkExtractor().extract(page)

        assert [c.url for c in candidates] == ["https://example.com/one", "https://other.org/two"]
        assert candidates[0].selector == "#nav > a:nth-of-type(1)"
        assert candidates[0].link_text == "One"
        assert candidates[0].raw_href == "/one"

    async def test_hidden_links_skipped_by_default(self):
        """Test that hidden anchors are excluded unless asked for."""
        page = RecordingPage(PAGE, [anchor("/shown"), anchor("/hidden", visible=False)])

        shown = await LinkExtractor().extract(page)
        everything = await LinkExtractor(include_hidden=True).extract(page)

        assert [c.url for c in shown] == ["https://example.com/shown"]
        assert len(everything) == 2
        assert everything[1].is_visible is False

    async def test_same_origin_only(self):
        page = RecordingPage(PAGE, [anchor("/local"), anchor("https://other.org/")])
        candidates = await LinkExtractor(same_origin_only=True).extract(page)
        assert [c.url for c in candidates] == ["https://example.com/local"]

    async def test_query_failure_raises_extraction_failed(self):
        """Test that a DOM failure is systemic, not a per-link result."""
        page = RecordingPage(PAGE, query_error=RuntimeError("Target closed"))

        with pytest.raises(ExtractionFailed) as excinfo:
            await LinkExtractor().extract(page)

        assert excinfo.value.page_url == PAGE
        assert "Target closed" in str(excinfo.value)

    async def test_reextracts_on_demand(self):
        """Test that the extractor queries the DOM on every call."""
        page = RecordingPage(PAGE, [anchor("/a")])
        extractor = LinkExtractor()
        await extractor.extract(page)
        page.anchors.append(anchor("/b"))

        assert len(await extractor.extract(page)) == 2
        assert page.query_count == 2

    async def test_static_page_integration(self):
        """Test extraction from real HTML through StaticPage."""
        html = """
        <html><body>
          <nav id="nav"><a href="/home">Home</a><a href="/docs/">Docs</a></nav>
          <a href="#main">Skip</a>
          <div style="display: none"><a href="/secret">Secret</a></div>
          <a href="/docs">Docs again</a>
        </body></html>
        """
        page = StaticPage("https://example.com/", html)
        targets = await LinkExtractor().targets(page)

        assert [t.url for t in targets] == ["https://example.com/home", "https://example.com/docs"]
        docs = targets[1]
        assert len(docs.elements) == 2
        assert docs.elements[0].selector == "#nav > a:nth-of-type(2)"


class TestGroupByTarget:
    async def test_groups_duplicates_in_first_seen_order(self):
        page = RecordingPage(PAGE, [
            anchor("/b", selector="s1"), anchor("/a", selector="s2"), anchor("/b/", selector="s3"),
        ])
        targets = group_by_target(await LinkExtractor().extract(page))

        assert [t.url for t in targets] == ["https://example.com/b", "https://example.com/a"]
        assert [e.selector for e in targets[0].elements] == ["s1", "s3"]

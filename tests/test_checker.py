"""Tests for the concurrency-bounded link checker."""

import pytest

from conftest import FakeTransport
from qabot.core.checker import LinkChecker
from qabot.core.classifier import classify
from qabot.core.models import Disposition
from qabot.core.transport import TransportResponse
from qabot.errors import ErrorKind, ProbeError


class TestLinkCheckerConfig:
    @pytest.mark.parametrize("concurrency", [0, 51, -1])
    def test_rejects_invalid_concurrency(self, concurrency):
        with pytest.raises(ValueError):
            LinkChecker(FakeTransport(), concurrency=concurrency)

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            LinkChecker(FakeTransport(), timeout=0)


class TestLinkChecker:
    """Tests for LinkChecker.check()."""

    async def test_empty_input(self):
        transport = FakeTransport()
        assert await LinkChecker(transport).check([]) == []
        assert transport.calls == []

    async def test_one_result_per_unique_url_in_order(self):
        """Test dedup and that results follow discovery order, not completion order."""
        urls = [f"https://example.com/{i}" for i in range(6)]
        delays = {urls[0]: 0.05, urls[1]: 0.0, urls[2]: 0.03}
        transport = FakeTransport(delays=delays)

        results = await LinkChecker(transport, concurrency=3).check(urls + [urls[0], urls[2]])

        assert [r.url for r in results] == urls
        assert len(transport.urls_called("HEAD")) == 6

    async def test_concurrency_bound_is_respected(self):
        """Test that no more than ``concurrency`` probes are in flight."""
        urls = [f"https://example.com/page-{i}" for i in range(20)]
        transport = FakeTransport(default_delay=0.01)

        await LinkChecker(transport, concurrency=4).check(urls)

        assert transport.max_in_flight <= 4
        assert transport.max_in_flight >= 2

    async def test_sequential_when_concurrency_is_one(self):
        transport = FakeTransport(default_delay=0.005)
        await LinkChecker(transport, concurrency=1).check(["https://a.com/", "https://b.com/"])
        assert transport.max_in_flight == 1

    async def test_failures_are_isolated(self):
        """Test that one failing URL does not affect the others."""
        transport = FakeTransport({
            "https://down.example.com/": ProbeError(ErrorKind.DNS, "Name or service not known"),
            "https://example.com/missing": 404,
            "https://example.com/crash": RuntimeError("transport bug"),
        })
        urls = ["https://example.com/", "https://down.example.com/", "https://example.com/missing",
                "https://example.com/crash"]

        results = await LinkChecker(transport).check(urls)

        ok, dns, missing, crash = results
        assert ok.status == 200 and ok.error is None
        assert dns.status == 0 and dns.error_kind is ErrorKind.DNS
        assert dns.status_text == "Error"
        assert missing.status == 404 and missing.status_text == "Not Found"
        assert crash.status == 0 and crash.error_kind is ErrorKind.NETWORK
        assert "transport bug" in crash.error

    async def test_timeout_produces_timeout_result(self):
        """Test that a slow URL yields a Timeout result without blocking others."""
        slow = "https://slow.example.com/"
        transport = FakeTransport(delays={slow: 1.0})

        results = await LinkChecker(transport, timeout=0.05).check([slow, "https://example.com/"])

        assert results[0].status == 0
        assert results[0].status_text == "Timeout"
        assert results[0].error_kind is ErrorKind.TIMEOUT
        assert results[0].error == "Timeout after 0.05s"
        assert results[1].status == 200

    async def test_elapsed_time_is_recorded(self):
        transport = FakeTransport(default_delay=0.02)
        [result] = await LinkChecker(transport).check(["https://example.com/"])
        assert result.elapsed_ms >= 15

    async def test_check_is_not_cached_between_calls(self):
        transport = FakeTransport()
        checker = LinkChecker(transport)
        await checker.check(["https://example.com/"])
        await checker.check(["https://example.com/"])
        assert len(transport.calls) == 2


class TestHeadFallback:
    """Tests for the HEAD then GET fallback."""

    @pytest.mark.parametrize("status", [405, 501])
    async def test_head_not_supported_falls_back_to_get(self, status):
        url = "https://example.com/head-hater"
        transport = FakeTransport({("HEAD", url): status, ("GET", url): 200})

        [result] = await LinkChecker(transport).check([url])

        assert transport.calls == [("HEAD", url), ("GET", url)]
        assert result.status == 200
        assert result.method == "GET"

    async def test_connection_error_on_head_falls_back_to_get(self):
        url = "https://example.com/flaky"
        transport = FakeTransport({
            ("HEAD", url): ProbeError(ErrorKind.CONNECTION, "reset by peer"),
            ("GET", url): 200,
        })

        [result] = await LinkChecker(transport).check([url])

        assert result.status == 200
        assert result.method == "GET"

    async def test_404_does_not_fall_back(self):
        url = "https://example.com/missing.html"
        transport = FakeTransport({url: 404})

        [result] = await LinkChecker(transport).check([url])

        assert transport.calls == [("HEAD", url)]
        assert result.status == 404

    async def test_dns_error_does_not_fall_back(self):
        url = "https://nowhere.invalid/"
        transport = FakeTransport({url: ProbeError(ErrorKind.DNS, "no such host")})

        [result] = await LinkChecker(transport).check([url])

        assert transport.calls == [("HEAD", url)]
        assert result.error_kind is ErrorKind.DNS

    async def test_review_hosts_use_get_directly(self):
        """Test that bot-blocking platforms skip HEAD entirely."""
        url = "https://www.linkedin.com/company/acme"
        transport = FakeTransport({url: TransportResponse(999, "Request denied", url)})

        [result] = await LinkChecker(transport).check([url])

        assert transport.calls == [("GET", url)]
        assert result.status == 999

    async def test_fallback_shares_one_deadline(self):
        """Test that HEAD plus GET together stay within the timeout."""
        url = "https://example.com/slow-get"
        transport = FakeTransport({("HEAD", url): 405}, delays={url: 0.04})

        [result] = await LinkChecker(transport, timeout=0.06).check([url])

        assert result.error_kind is ErrorKind.TIMEOUT


class TestTrailingSlashRetry:
    """Tests for retrying extensionless 404s with a trailing slash."""

    async def test_404_that_works_with_slash_is_ok(self):
        url = "https://example.com/docs"
        transport = FakeTransport({url: 404, url + "/": 200})

        [result] = await LinkChecker(transport).check([url])

        assert transport.urls_called() == [url, url + "/"]
        assert result.url == url
        assert result.status == 200
        assert result.error is None
        assert result.note == "Works with trailing slash: https://example.com/docs/"
        assert classify(result) is Disposition.OK

    async def test_404_with_slash_too_keeps_first_answer(self):
        url = "https://example.com/gone"
        transport = FakeTransport({url: 404})

        [result] = await LinkChecker(transport).check([url])

        assert transport.urls_called() == [url, url + "/"]
        assert result.url == url
        assert result.status == 404
        assert result.note is None

    @pytest.mark.parametrize("url", ["https://example.com/report.pdf", "https://example.com/page.html"])
    async def test_file_urls_are_not_retried(self, url):
        transport = FakeTransport({url: 404})

        [result] = await LinkChecker(transport).check([url])

        assert transport.urls_called() == [url]
        assert result.status == 404

    async def test_other_failures_are_not_retried(self):
        url = "https://example.com/error"
        transport = FakeTransport({url: 500})

        await LinkChecker(transport).check([url])

        assert transport.urls_called() == [url]

    async def test_retry_shares_the_deadline(self):
        url = "https://example.com/slow"
        transport = FakeTransport({url: 404}, delays={url: 0.04, url + "/": 0.04})

        [result] = await LinkChecker(transport, timeout=0.06).check([url])

        assert result.error_kind is ErrorKind.TIMEOUT

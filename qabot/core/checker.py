"""
Concurrency-bounded link checker
================================

Probes unique URLs through a transport with at most ``concurrency`` requests
in flight. Every URL yields exactly one ProbeResult; network failures are
recorded on the result, never raised.
"""

import asyncio
import re
from dataclasses import replace
from typing import Iterable
from urllib.parse import urlparse

from loguru import logger

from qabot.core.classifier import DEFAULT_POLICY
from qabot.core.models import (
    DEFAULT_CONCURRENCY,
    DEFAULT_TIMEOUT,
    MAX_CONCURRENCY,
    NETWORK_FAILURE,
    ClassificationPolicy,
    ProbeResult,
)
from qabot.core.transport import Transport
from qabot.errors import ErrorKind, ProbeError

# HEAD answers that mean "ask again with GET" rather than "missing".
HEAD_UNSUPPORTED_STATUSES = frozenset({405, 501})
HEAD_RETRYABLE_ERRORS = frozenset({ErrorKind.CONNECTION, ErrorKind.NETWORK})
FILE_EXTENSION = re.compile(r"\.\w{1,5}$")


class LinkChecker:
    """
    Check URLs for existence with a bounded pool of probes.

    The pool is created per ``check()`` call and nothing is cached between
    calls, so re-checking the same URLs probes them again.
    """

    def __init__(
        self,
        transport: Transport,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout: float = DEFAULT_TIMEOUT,
        policy: ClassificationPolicy = DEFAULT_POLICY,
    ):
        if not 1 <= concurrency <= MAX_CONCURRENCY:
            raise ValueError(f"concurrency must be between 1 and {MAX_CONCURRENCY}")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.transport = transport
        self.concurrency = concurrency
        self.timeout = timeout
        self.policy = policy

    async def check(self, urls: Iterable[str]) -> list[ProbeResult]:
        """
        Probe each unique URL once.

        Args:
            urls: URLs in discovery order; duplicates are dropped

        Returns:
            One ProbeResult per unique URL, in discovery order
        """
        unique_urls = list(dict.fromkeys(urls))
        if not unique_urls:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(url: str) -> ProbeResult:
            async with semaphore:
                return await self.probe(url)

        logger.debug(
            "Checking {} URL(s) with concurrency {}", len(unique_urls), self.concurrency
        )
        return list(await asyncio.gather(*(bounded(url) for url in unique_urls)))

    async def probe(self, url: str) -> ProbeResult:
        """Probe one URL within the deadline, HEAD then GET if needed."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            result = await asyncio.wait_for(self._head_then_get(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            result = ProbeResult(
                url=url,
                status=NETWORK_FAILURE,
                status_text="Timeout",
                error=f"Timeout after {self.timeout:g}s",
                error_kind=ErrorKind.TIMEOUT,
            )
        elapsed_ms = int((loop.time() - started) * 1000)
        return replace(result, elapsed_ms=elapsed_ms)

    async def _head_then_get(self, url: str) -> ProbeResult:
        result = await self._probe_once(url)
        if not self._should_retry_with_slash(url, result):
            return result

        with_slash = url + "/"
        logger.debug("{} answered 404; retrying as {}", url, with_slash)
        retry = await self._probe_once(with_slash)
        if retry.error is not None or not 200 <= retry.status <= 399:
            return result
        return replace(retry, url=url, note=f"Works with trailing slash: {with_slash}")

    async def _probe_once(self, url: str) -> ProbeResult:
        # Bot-blocking platforms reject HEAD outright.
        if self.policy.is_review_host(url):
            return await self._attempt("GET", url)

        head = await self._attempt("HEAD", url)
        if not self._should_fall_back(head):
            return head

        logger.debug("HEAD {} gave {}; retrying with GET", url, head.error or head.status)
        return await self._attempt("GET", url)

    @staticmethod
    def _should_retry_with_slash(url: str, result: ProbeResult) -> bool:
        # Targets are probed without their trailing slash, which some servers
        # only serve with it and do not redirect.
        if result.error is not None or result.status != 404:
            return False
        path = urlparse(url).path
        return not path.endswith("/") and not FILE_EXTENSION.search(path)

    @staticmethod
    def _should_fall_back(result: ProbeResult) -> bool:
        if result.error_kind in HEAD_RETRYABLE_ERRORS:
            return True
        return result.error is None and result.status in HEAD_UNSUPPORTED_STATUSES

    async def _attempt(self, method: str, url: str) -> ProbeResult:
        try:
            response = await self.transport.request(method, url, self.timeout)
        except ProbeError as e:
            return ProbeResult(
                url=url,
                status=NETWORK_FAILURE,
                status_text="Timeout" if e.kind is ErrorKind.TIMEOUT else "Error",
                error=e.message,
                error_kind=e.kind,
                method=method,
            )
        except Exception as e:
            # Transport bugs are recorded on the URL instead of aborting the batch.
            logger.warning("Unexpected error probing {}: {!r}", url, e)
            return ProbeResult(
                url=url,
                status=NETWORK_FAILURE,
                status_text="Error",
                error=str(e) or e.__class__.__name__,
                error_kind=ErrorKind.NETWORK,
                method=method,
            )

        return ProbeResult(
            url=url,
            status=response.status,
            status_text=response.reason,
            method=method,
            final_url=response.final_url,
        )

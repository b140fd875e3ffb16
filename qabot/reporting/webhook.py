"""
Webhook delivery of audit reports (n8n or any HTTP endpoint).

POST sends the report as a JSON body. GET sends it URL-encoded in a
``data`` query parameter, which only suits small payloads.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Iterable, Optional

import aiohttp
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from qabot.errors import WebhookDeliveryError
from qabot.reporting.merger import MergedReport

DEFAULT_TIMEOUT = 6.0
MAX_ATTEMPTS = 3


def _is_transient(error: BaseException) -> bool:
    if isinstance(error, (aiohttp.ClientConnectionError, asyncio.TimeoutError)):
        return True
    return isinstance(error, WebhookDeliveryError) and error.status >= 500


def build_payload(reports: Iterable[MergedReport], source: str = "qabot") -> dict:
    """Wrap one or more merged reports with a run summary."""
    return build_payload_from_dicts([report.to_dict() for report in reports], source)


def build_payload_from_dicts(reports: list[dict], source: str = "qabot") -> dict:
    """Same as build_payload, for reports already serialized (e.g. read from disk)."""
    passed = sum(
        1 for report in reports if report.get("summary", {}).get("overall_status") == "passed"
    )
    return {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "source": source,
        "url": reports[0].get("url") if len(reports) == 1 else None,
        "summary": {"total": len(reports), "passed": passed, "failed": len(reports) - passed},
        "reports": reports,
    }


class WebhookNotifier:
    """
    Send report payloads to a webhook.

    Connection errors, timeouts and 5xx answers are retried with exponential
    backoff; other non-2xx answers fail immediately.
    """

    def __init__(
        self,
        url: str,
        method: str = "POST",
        timeout: float = DEFAULT_TIMEOUT,
        wait=None,
    ):
        method = method.upper()
        if method not in ("GET", "POST"):
            raise ValueError("Webhook method must be GET or POST")
        self.url = url
        self.method = method
        self.timeout = timeout
        self.wait = wait or wait_exponential(multiplier=0.5, min=0.5, max=4)

    async def send(self, payload: dict) -> int:
        """
        Deliver a payload.

        Returns:
            HTTP status of the accepted request

        Raises:
            WebhookDeliveryError: if the endpoint rejects the payload
            aiohttp.ClientError: if the endpoint stays unreachable
        """
        body = json.dumps(payload, ensure_ascii=False)
        logger.info(
            "Sending {:.1f} KB to webhook via {}", len(body.encode("utf-8")) / 1024, self.method
        )

        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(MAX_ATTEMPTS),
                wait=self.wait,
                retry=retry_if_exception(_is_transient),
                reraise=True,
            ):
                with attempt:
                    number = attempt.retry_state.attempt_number
                    if number > 1:
                        logger.warning("Retrying webhook delivery (attempt {}/{})", number, MAX_ATTEMPTS)
                    return await self._deliver(session, body)

    async def _deliver(self, session: aiohttp.ClientSession, body: str) -> int:
        if self.method == "GET":
            request = session.get(self.url, params={"data": body})
        else:
            request = session.post(
                self.url, data=body.encode("utf-8"), headers={"Content-Type": "application/json"}
            )

        async with request as response:
            text = await response.text()
            if not 200 <= response.status < 300:
                raise WebhookDeliveryError(response.status, text[:500])
            logger.info("Webhook accepted payload (HTTP {})", response.status)
            return response.status

    async def send_reports(self, reports: Iterable[MergedReport]) -> Optional[int]:
        reports = list(reports)
        if not reports:
            return None
        return await self.send(build_payload(reports))

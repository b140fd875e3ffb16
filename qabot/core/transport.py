"""
Network transport used by the link checker.

A transport performs one HTTP request and either returns the response line or
raises ProbeError with a low-level ErrorKind. Retrying, fallback and timing
belong to the checker.
"""

import asyncio
import socket
import ssl
from dataclasses import dataclass
from typing import Optional, Protocol

import aiohttp
from loguru import logger

from qabot.errors import ErrorKind, ProbeError

MAX_REDIRECTS = 10

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


@dataclass(frozen=True)
class TransportResponse:
    """Status line of a completed request."""
    status: int
    reason: str
    final_url: Optional[str] = None


class Transport(Protocol):
    async def request(self, method: str, url: str, timeout: float) -> TransportResponse:
        ...


def classify_client_error(error: BaseException) -> ErrorKind:
    """Map an aiohttp / asyncio exception to an ErrorKind."""
    if isinstance(error, asyncio.TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(error, (aiohttp.ClientSSLError, ssl.SSLError)):
        return ErrorKind.TLS
    if isinstance(error, aiohttp.ClientConnectorError):
        if isinstance(error.os_error, socket.gaierror):
            return ErrorKind.DNS
        return ErrorKind.CONNECTION
    if isinstance(error, (aiohttp.ServerDisconnectedError, ConnectionError)):
        return ErrorKind.CONNECTION
    return ErrorKind.NETWORK


class AiohttpTransport:
    """
    Transport backed by one shared aiohttp session.

    Usage:
        async with AiohttpTransport() as transport:
            response = await transport.request("HEAD", url, timeout=10)
    """

    def __init__(self, headers: Optional[dict] = None, verify_ssl: bool = True):
        self.headers = {**BROWSER_HEADERS, **(headers or {})}
        self.verify_ssl = verify_ssl
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "AiohttpTransport":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=self.verify_ssl)
            self._session = aiohttp.ClientSession(headers=self.headers, connector=connector)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def request(self, method: str, url: str, timeout: float) -> TransportResponse:
        if self._session is None:
            await self.open()

        try:
            async with self._session.request(
                method,
                url,
                allow_redirects=True,
                max_redirects=MAX_REDIRECTS,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                return TransportResponse(
                    status=response.status,
                    reason=response.reason or "",
                    final_url=str(response.url),
                )
        except aiohttp.TooManyRedirects as e:
            raise ProbeError(ErrorKind.NETWORK, f"Too many redirects (>{MAX_REDIRECTS})") from e
        except (aiohttp.ClientError, asyncio.TimeoutError, ssl.SSLError, ConnectionError) as e:
            kind = classify_client_error(e)
            message = str(e) or e.__class__.__name__
            logger.debug("{} {} failed ({}): {}", method, url, kind.value, message)
            raise ProbeError(kind, message) from e

"""Direct HTTP probe producing a header/status snapshot."""

from __future__ import annotations

import ssl
import time
from typing import Optional

import httpx

from quickscan.core.config import ProbeConfig
from quickscan.core.logger import get_logger
from quickscan.models.snapshot import Snapshot
from quickscan.models.target import Target

logger = get_logger(__name__)

DNS_ERROR_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated",
)


def classify_transport_error(exc: BaseException) -> str:
    """
    Map a transport exception to a short failure code.

    Args:
        exc: Exception raised by the HTTP client

    Returns:
        Code such as ``ETIMEDOUT``, ``ENOTFOUND`` or ``ECONNREFUSED``
    """
    message = str(exc).lower()

    if isinstance(exc, httpx.TimeoutException):
        return "ETIMEDOUT"
    if isinstance(exc, httpx.TooManyRedirects):
        return "TOO_MANY_REDIRECTS"
    if isinstance(exc, httpx.ConnectError):
        if any(hint in message for hint in DNS_ERROR_HINTS):
            return "ENOTFOUND"
        if "refused" in message:
            return "ECONNREFUSED"
        if "ssl" in message or "tls" in message or isinstance(exc.__cause__, ssl.SSLError):
            return "TLS_ERROR"
        return "ECONNERROR"
    if isinstance(exc, httpx.RemoteProtocolError):
        return "EPROTO"
    if isinstance(exc, httpx.InvalidURL):
        return "EINVALIDURL"
    if isinstance(exc, httpx.UnsupportedProtocol):
        return "EUNSUPPORTED"
    return type(exc).__name__


class SnapshotProber:
    """
    Lightweight HEAD probe against a target.

    Follows a bounded number of redirects and accepts invalid or
    self-signed certificates, since misconfigured targets are exactly
    what gets inspected. Never raises: transport failures come back as an
    error snapshot.
    """

    def __init__(
        self,
        config: Optional[ProbeConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize snapshot prober.

        Args:
            config: Probe configuration
            transport: Transport for the probe client (the network by default)
        """
        self.config = config or ProbeConfig()
        self.transport = transport

    def _client_kwargs(self) -> dict:
        kwargs = {
            "timeout": self.config.timeout,
            "verify": self.config.verify_tls,
            "follow_redirects": True,
            "max_redirects": self.config.max_redirects,
            "headers": {"User-Agent": self.config.user_agent},
        }
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return kwargs

    async def probe(self, target: Target) -> Snapshot:
        """
        Probe a target and capture its status and headers.

        Args:
            target: Normalized target

        Returns:
            Snapshot with lowercased headers, or an error snapshot
        """
        url = target.url
        started = time.monotonic()

        if not target.host:
            logger.info("Probe skipped, target has no host", raw=target.raw)
            return Snapshot.failed("ENOTFOUND", detail="empty host", url=url)

        try:
            async with httpx.AsyncClient(**self._client_kwargs()) as client:
                response = await client.head(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            code = classify_transport_error(e)
            logger.info("Probe failed", url=url, error=code, detail=str(e))
            return Snapshot.failed(code, detail=str(e) or None, url=url)

        logger.debug(
            "Probe complete",
            url=url,
            status=response.status_code,
            duration_seconds=round(time.monotonic() - started, 2),
        )

        return Snapshot(
            url=str(response.url),
            status_code=response.status_code,
            headers=response.headers,
        )

"""Common plumbing for external grading and intelligence providers."""

from __future__ import annotations

import asyncio
import json
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx
from pydantic import ValidationError

from quickscan.core.errors import FailureReason, ProviderError
from quickscan.core.logger import get_logger, log_provider_complete, log_provider_start
from quickscan.models.result import Failure, Payload, ProviderResult, Success
from quickscan.models.snapshot import Snapshot
from quickscan.models.target import Target

logger = get_logger(__name__)


def failure_from_exception(provider: str, exc: BaseException) -> Failure:
    """
    Convert any provider-side exception into a Failure.

    Args:
        provider: Provider name
        exc: The exception raised while assessing

    Returns:
        Failure carrying the matching reason
    """
    if isinstance(exc, ProviderError):
        return Failure(provider, exc.reason, exc.detail)
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return Failure(provider, FailureReason.TIMEOUT, str(exc) or "timed out")
    if isinstance(exc, httpx.HTTPStatusError):
        return Failure(provider, FailureReason.REMOTE_ERROR, f"HTTP {exc.response.status_code}")
    if isinstance(exc, httpx.HTTPError):
        return Failure(provider, FailureReason.REMOTE_ERROR, f"{type(exc).__name__}: {exc}")
    if isinstance(exc, (ValidationError, json.JSONDecodeError, KeyError, TypeError, ValueError)):
        return Failure(provider, FailureReason.MALFORMED_RESPONSE, f"{type(exc).__name__}: {exc}")
    return Failure(provider, FailureReason.REMOTE_ERROR, f"{type(exc).__name__}: {exc}")


class BaseProvider(ABC):
    """
    Abstract base class for providers.

    Subclasses implement :meth:`fetch`, which returns a typed payload or
    raises. :meth:`assess` turns every failure mode into a ``Failure`` so
    nothing provider-specific escapes.
    """

    name: str = "provider"
    needs_snapshot: bool = False

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize provider.

        Args:
            client: Shared HTTP client (a private one is created per call otherwise)
        """
        self._client = client

    @property
    @abstractmethod
    def timeout(self) -> Optional[float]:
        """Overall time budget for one assessment (None for unbounded)."""

    def is_configured(self) -> bool:
        """Whether required credentials are present."""
        return True

    @abstractmethod
    async def fetch(self, target: Target, snapshot: Optional[Snapshot] = None) -> Payload:
        """Query the provider and decode its response."""

    async def assess(self, target: Target, snapshot: Optional[Snapshot] = None) -> ProviderResult:
        """
        Assess a target.

        Args:
            target: Normalized target
            snapshot: Probe snapshot, for providers that use it

        Returns:
            Success with the decoded payload, or Failure
        """
        if not self.is_configured():
            return Failure(self.name, FailureReason.NOT_CONFIGURED)

        log_provider_start(self.name, target.host)
        started = time.monotonic()
        try:
            payload = await self.fetch(target, snapshot)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            failure = failure_from_exception(self.name, e)
            log_provider_complete(
                self.name, False, time.monotonic() - started, reason=failure.describe()
            )
            return failure

        log_provider_complete(self.name, True, time.monotonic() - started)
        return Success(self.name, payload)

    @asynccontextmanager
    async def http(self, timeout: Optional[float] = None) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared client, or a private one closed on exit."""
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=timeout or self.timeout or 30.0) as client:
            yield client

    @staticmethod
    def decode_json(response: httpx.Response) -> Any:
        """
        Check status and decode a JSON body.

        Raises:
            ProviderError: On HTTP error status or undecodable body
        """
        if response.status_code in (401, 403):
            raise ProviderError(FailureReason.REMOTE_ERROR, f"authentication failed (HTTP {response.status_code})")
        if response.status_code == 429:
            raise ProviderError(FailureReason.REMOTE_ERROR, "rate limited (HTTP 429)")
        if response.status_code >= 400:
            raise ProviderError(FailureReason.REMOTE_ERROR, f"HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(FailureReason.MALFORMED_RESPONSE, f"invalid JSON: {e}") from e

    @staticmethod
    def expect_mapping(data: Any, what: str = "response") -> dict[str, Any]:
        """Require a JSON object."""
        if not isinstance(data, dict):
            raise ProviderError(FailureReason.MALFORMED_RESPONSE, f"{what} is not a JSON object")
        return data

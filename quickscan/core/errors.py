"""Error types shared by the scan engine."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class FailureReason(str, Enum):
    """Why a provider produced no result."""
    NOT_CONFIGURED = "not_configured"
    TIMEOUT = "timeout"
    REMOTE_ERROR = "remote_error"
    MALFORMED_RESPONSE = "malformed_response"
    POLL_EXHAUSTED = "poll_exhausted"
    UNSUPPORTED_TARGET = "unsupported_target"


class QuickScanError(Exception):
    """Base class for all QuickScan errors."""


class InvalidInputError(QuickScanError, ValueError):
    """The scan target could not be normalized."""


class ProviderError(QuickScanError):
    """
    A provider failed to produce a usable result.

    Raised inside adapters and converted to a ``Failure`` by the
    orchestrator's isolation boundary.
    """

    def __init__(self, reason: FailureReason, detail: Optional[str] = None):
        self.reason = reason
        self.detail = detail
        message = reason.value if not detail else f"{reason.value}: {detail}"
        super().__init__(message)

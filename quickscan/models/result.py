"""Provider results and their typed payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from quickscan.core.errors import FailureReason


class HeaderGradePayload(BaseModel):
    """Decoded header grading response."""

    model_config = ConfigDict(frozen=True)

    grade: Optional[str] = None
    score: Optional[int] = None
    missing_headers: list[str] = Field(default_factory=list)
    weak_headers: list[str] = Field(default_factory=list)
    details_url: Optional[str] = None


class TlsGradePayload(BaseModel):
    """Decoded TLS grading response for a host."""

    model_config = ConfigDict(frozen=True)

    host: str
    grade: Optional[str] = None
    endpoint_grades: dict[str, Optional[str]] = Field(default_factory=dict)
    cert_not_after: Optional[int] = Field(default=None, description="Leaf certificate expiry, epoch ms")
    from_cache: bool = False


class ExposurePayload(BaseModel):
    """Decoded exposure-intelligence response for an IP."""

    model_config = ConfigDict(frozen=True)

    ip: str
    ports: list[int] = Field(default_factory=list)
    vulns: list[str] = Field(default_factory=list)


class AIFindingsPayload(BaseModel):
    """Raw, untrusted finding entries returned by the AI analyzer."""

    model_config = ConfigDict(frozen=True)

    entries: list[Any] = Field(default_factory=list)


Payload = Union[HeaderGradePayload, TlsGradePayload, ExposurePayload, AIFindingsPayload]

P = TypeVar("P")


@dataclass(frozen=True)
class Success(Generic[P]):
    """A provider returned a usable payload."""
    provider: str
    payload: P

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """A provider produced nothing; ``reason`` says why."""
    provider: str
    reason: FailureReason
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def is_not_configured(self) -> bool:
        return self.reason == FailureReason.NOT_CONFIGURED

    def describe(self) -> str:
        return self.reason.value if not self.detail else f"{self.reason.value}: {self.detail}"


ProviderResult = Union[Success[Payload], Failure]

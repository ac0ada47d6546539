"""Scan result models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from quickscan.core.config import ScanProfile
from quickscan.models.finding import Finding, Severity
from quickscan.models.target import Target


class FallbackKind(str, Enum):
    """How the result was produced when providers gave nothing."""
    NONE = "none"
    HEURISTICS = "heuristics"
    UNREACHABLE = "unreachable"


class ScanReport(BaseModel):
    """
    Everything one scan produced.

    ``findings`` is the caller-facing result; the remaining fields record
    how it was reached.
    """

    scan_id: str = Field(default_factory=lambda: str(uuid4())[:8])
    target: Target
    profile: ScanProfile = ScanProfile.QUICK

    findings: list[Finding] = Field(default_factory=list)

    # provider name -> "ok" or failure description
    providers: dict[str, str] = Field(default_factory=dict)
    fallback: FallbackKind = FallbackKind.NONE
    deadline_hit: bool = False

    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def severity_counts(self) -> dict[str, int]:
        """Count findings per severity, worst first."""
        counts = {s.value: 0 for s in sorted(Severity, reverse=True)}
        for finding in self.findings:
            counts[finding.severity.value] += 1
        return counts

    @property
    def highest_severity(self) -> Optional[Severity]:
        if not self.findings:
            return None
        return max(f.severity for f in self.findings)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["duration_seconds"] = self.duration_seconds
        data["summary"] = self.severity_counts()
        return data

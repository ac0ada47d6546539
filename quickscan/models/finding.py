"""Unified security finding model."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TITLE_MAX_LENGTH = 90
REMEDIATION_MAX_LENGTH = 140


class Severity(str, Enum):
    """
    Finding severity levels.

    Totally ordered: ``critical > high > medium > low``.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Numeric rank for ordering (higher is worse)."""
        return _SEVERITY_RANKS[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANKS = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


def _clip(value: str, limit: int) -> str:
    value = " ".join(value.split())
    if len(value) <= limit:
        return value
    return value[: limit - 3].rstrip() + "..."


class Finding(BaseModel):
    """
    A single security finding.

    Every provider's output is reduced to this shape. Findings are
    immutable once created; over-long text is clipped on construction.
    """

    model_config = ConfigDict(frozen=True)

    severity: Severity
    title: str = Field(..., min_length=1)
    remediation: str = ""
    source: Optional[str] = Field(default=None, description="Provider that produced the finding")

    @field_validator("title")
    @classmethod
    def clip_title(cls, v: str) -> str:
        """Keep titles short enough for a single table row."""
        return _clip(v, TITLE_MAX_LENGTH)

    @field_validator("remediation")
    @classmethod
    def clip_remediation(cls, v: str) -> str:
        """Keep remediation actionable and short."""
        return _clip(v, REMEDIATION_MAX_LENGTH)

    @property
    def dedup_key(self) -> tuple[str, str]:
        """Key used to collapse duplicate findings across providers."""
        return self.severity.value, self.title.lower()

    @property
    def is_critical_or_high(self) -> bool:
        """Check if finding is critical or high severity."""
        return self.severity >= Severity.HIGH

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Finding":
        """
        Create Finding from dictionary.

        Accepts ``fix`` as an alias of ``remediation``.

        Args:
            data: Dictionary with finding data

        Returns:
            Finding instance
        """
        data = dict(data)
        if "remediation" not in data and "fix" in data:
            data["remediation"] = data.pop("fix")
        if isinstance(data.get("severity"), str):
            data["severity"] = Severity(data["severity"].strip().lower())
        return cls.model_validate(data)

    def to_markdown(self) -> str:
        """Format finding as Markdown for reports."""
        md = [f"- **[{self.severity.value.upper()}]** {self.title}"]
        if self.remediation:
            md.append(f"  - Fix: {self.remediation}")
        return "\n".join(md)

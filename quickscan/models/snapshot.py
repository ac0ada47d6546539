"""Direct probe snapshot model."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Snapshot(BaseModel):
    """
    Result of a direct HTTP probe against a target.

    Either a status/headers pair or an ``error`` naming the transport
    failure. Header names are lowercased on construction, so lookups
    always use lowercase keys.
    """

    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    status_code: Optional[int] = None
    headers: dict[str, str] = Field(default_factory=dict)
    error: Optional[str] = None
    error_detail: Optional[str] = None

    @field_validator("headers", mode="before")
    @classmethod
    def lowercase_headers(cls, v: Any) -> dict[str, str]:
        """Case-normalize header names."""
        if v is None:
            return {}
        items = v.items() if hasattr(v, "items") else v
        return {str(k).lower(): str(val) for k, val in items}

    @property
    def ok(self) -> bool:
        """Whether the probe reached the target."""
        return self.error is None

    def header(self, name: str) -> Optional[str]:
        """Look up a header by (case-insensitive) name."""
        return self.headers.get(name.lower())

    def has_header(self, name: str) -> bool:
        return bool(self.header(name))

    @classmethod
    def failed(cls, error: str, detail: Optional[str] = None, url: Optional[str] = None) -> "Snapshot":
        """Build an error snapshot."""
        return cls(url=url, error=error, error_detail=detail)

    def summary(self) -> dict[str, Any]:
        """Compact form used in AI prompts and reports."""
        if not self.ok:
            return {"error": self.error}
        return {"status_code": self.status_code, "headers": self.headers}

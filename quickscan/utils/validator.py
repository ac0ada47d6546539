"""Validation of untrusted, model-generated finding entries."""

from __future__ import annotations

import re
from typing import Any, Optional

from quickscan.core.logger import get_logger
from quickscan.models.finding import (
    REMEDIATION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Finding,
    Severity,
)

logger = get_logger(__name__)


class FindingOutputValidator:
    """
    Validates and sanitizes AI-generated finding entries.

    Each entry must be an object with a known severity, a non-empty
    string title and a string remediation within the length limits.
    Anything else is discarded rather than failing the scan.
    """

    SEVERITIES = {s.value for s in Severity}
    # Strip list markers and severity prefixes models like to add
    PREFIX_REGEX = re.compile(r"^(?:[\d]+[.)]\s*|[-*]\s*)")

    def __init__(self, source: str = "ai_analyzer"):
        """
        Initialize validator.

        Args:
            source: Provider name recorded on accepted findings
        """
        self.source = source
        self.seen: set[tuple[str, str]] = set()

    def _clean_text(self, value: str) -> str:
        value = " ".join(value.split())
        value = self.PREFIX_REGEX.sub("", value)
        return value.strip().strip("'\"").strip()

    def validate_single(self, entry: Any) -> Optional[Finding]:
        """
        Validate one entry.

        Args:
            entry: Raw entry from the model reply

        Returns:
            Finding, or None if the entry is malformed
        """
        if not isinstance(entry, dict):
            return None

        severity = entry.get("severity")
        title = entry.get("title")
        remediation = entry.get("remediation", entry.get("fix", ""))

        if not isinstance(severity, str) or severity.strip().lower() not in self.SEVERITIES:
            return None
        if not isinstance(title, str) or not isinstance(remediation, str):
            return None

        title = self._clean_text(title)
        remediation = self._clean_text(remediation)

        if not title or len(title) > TITLE_MAX_LENGTH:
            return None
        if len(remediation) > REMEDIATION_MAX_LENGTH:
            return None

        return Finding(
            severity=Severity(severity.strip().lower()),
            title=title,
            remediation=remediation,
            source=self.source,
        )

    def validate_and_clean(self, entries: list[Any]) -> list[Finding]:
        """
        Validate and deduplicate a batch of entries.

        Args:
            entries: Raw entries from the model reply

        Returns:
            Accepted findings in their original order
        """
        accepted = []
        for entry in entries:
            finding = self.validate_single(entry)
            if finding is None:
                logger.debug("Malformed AI finding discarded", entry=repr(entry)[:200])
                continue
            if finding.dedup_key in self.seen:
                continue
            self.seen.add(finding.dedup_key)
            accepted.append(finding)

        return accepted

    def reset(self) -> None:
        """Reset seen set for new validation batch."""
        self.seen.clear()

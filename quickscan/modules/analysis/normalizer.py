"""Translation of provider payloads into unified findings."""

from __future__ import annotations

import time
from typing import Callable, Iterable, Optional

from quickscan.core.logger import get_logger
from quickscan.models.finding import Finding, Severity
from quickscan.models.result import (
    AIFindingsPayload,
    ExposurePayload,
    Failure,
    HeaderGradePayload,
    ProviderResult,
    Success,
    TlsGradePayload,
)
from quickscan.utils.validator import FindingOutputValidator

logger = get_logger(__name__)

DAY_MS = 86_400_000

LOW_GRADES = {"A+", "A", "A-"}
MEDIUM_GRADES = {"B+", "B", "B-", "C+", "C", "C-"}

PORT_NAMES = {
    21: "FTP",
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    445: "SMB",
    1433: "MSSQL",
    3306: "MySQL",
    3389: "RDP",
    5432: "PostgreSQL",
    5900: "VNC",
    6379: "Redis",
    9200: "Elasticsearch",
    27017: "MongoDB",
}


def grade_to_severity(grade: Optional[str]) -> Severity:
    """
    Map a letter grade to a severity.

    ``A+``/``A`` are low, ``B``/``C`` medium, anything else (``D``, ``E``,
    ``F``, ``T``, unrecognized or absent) high.
    """
    normalized = (grade or "").strip().upper()
    if normalized in LOW_GRADES:
        return Severity.LOW
    if normalized in MEDIUM_GRADES:
        return Severity.MEDIUM
    return Severity.HIGH


def _grade_label(grade: Optional[str]) -> str:
    return grade.strip().upper() if grade and grade.strip() else "unavailable"


class FindingNormalizer:
    """
    Maps each provider's payload to findings.

    Dispatches on the payload type; a Failure contributes nothing.
    """

    def __init__(
        self,
        expiry_warning_days: int = 30,
        sensitive_ports: Iterable[int] = (22, 3389),
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize normalizer.

        Args:
            expiry_warning_days: Certificates expiring sooner than this are flagged
            sensitive_ports: Administrative ports reported as high severity
            clock: Current time in epoch seconds
        """
        self.expiry_warning_days = expiry_warning_days
        self.sensitive_ports = frozenset(sensitive_ports)
        self.clock = clock

    def normalize(self, result: ProviderResult) -> list[Finding]:
        """
        Convert a provider result to findings.

        Args:
            result: Success or Failure from an adapter

        Returns:
            Findings in provider order (empty for failures)
        """
        if isinstance(result, Failure):
            return []

        payload = result.payload
        source = result.provider

        if isinstance(payload, HeaderGradePayload):
            return self.from_header_grade(payload, source)
        if isinstance(payload, TlsGradePayload):
            return self.from_tls_grade(payload, source)
        if isinstance(payload, ExposurePayload):
            return self.from_exposure(payload, source)
        if isinstance(payload, AIFindingsPayload):
            return self.from_ai(payload, source)

        logger.warning("No normalizer for payload", provider=source, payload_type=type(payload).__name__)
        return []

    def from_header_grade(self, payload: HeaderGradePayload, source: str = "header_grading") -> list[Finding]:
        """One grade finding, one medium per missing header, one low per weak header."""
        grade = _grade_label(payload.grade)
        title = f"Security headers graded {grade}"
        if payload.score is not None:
            title += f" (score {payload.score})"

        findings = [
            Finding(
                severity=grade_to_severity(payload.grade),
                title=title,
                remediation="Review the missing and weak headers and align them with current security header guidance.",
                source=source,
            )
        ]

        for header in payload.missing_headers:
            findings.append(Finding(
                severity=Severity.MEDIUM,
                title=f"Missing {header} header",
                remediation=f"Add a {header} header with a restrictive policy.",
                source=source,
            ))

        for header in payload.weak_headers:
            findings.append(Finding(
                severity=Severity.LOW,
                title=f"Weak {header} header",
                remediation=f"Tighten the {header} value; the current policy does not meet recommendations.",
                source=source,
            ))

        return findings

    def days_until(self, epoch_ms: int) -> int:
        """Whole days from now until ``epoch_ms`` (negative if past)."""
        now_ms = self.clock() * 1000
        return round((epoch_ms - now_ms) / DAY_MS)

    def from_tls_grade(self, payload: TlsGradePayload, source: str = "tls_grading") -> list[Finding]:
        """One grade finding plus an expiry warning for soon-to-expire certificates."""
        grade = _grade_label(payload.grade)
        findings = [
            Finding(
                severity=grade_to_severity(payload.grade),
                title=f"TLS configuration graded {grade}",
                remediation="Disable legacy protocols and weak ciphers; serve a complete, trusted certificate chain.",
                source=source,
            )
        ]

        if payload.cert_not_after is not None:
            remaining_ms = payload.cert_not_after - self.clock() * 1000
            if remaining_ms < self.expiry_warning_days * DAY_MS:
                days = self.days_until(payload.cert_not_after)
                if remaining_ms >= 0:
                    title = f"TLS certificate expires in {days} days"
                else:
                    title = f"TLS certificate expired {abs(days)} days ago"
                findings.append(Finding(
                    severity=Severity.MEDIUM,
                    title=title,
                    remediation="Renew the certificate and automate renewal (e.g. ACME) to avoid outages.",
                    source=source,
                ))

        return findings

    def from_exposure(self, payload: ExposurePayload, source: str = "exposure") -> list[Finding]:
        """One finding per open port (high for admin ports) and per known vulnerability."""
        findings = []

        for port in payload.ports:
            service = PORT_NAMES.get(port)
            label = f"{port} ({service})" if service else str(port)
            if port in self.sensitive_ports:
                findings.append(Finding(
                    severity=Severity.HIGH,
                    title=f"Administrative port {label} exposed on {payload.ip}",
                    remediation="Restrict remote administration to a VPN or allow-listed source addresses.",
                    source=source,
                ))
            else:
                findings.append(Finding(
                    severity=Severity.MEDIUM,
                    title=f"Open port {label} exposed on {payload.ip}",
                    remediation="Close the port or firewall it if the service does not need to be public.",
                    source=source,
                ))

        for vuln in payload.vulns:
            findings.append(Finding(
                severity=Severity.MEDIUM,
                title=f"Known vulnerability {vuln} reported for {payload.ip}",
                remediation=f"Patch or upgrade the affected service; see the advisory for {vuln}.",
                source=source,
            ))

        return findings

    def from_ai(self, payload: AIFindingsPayload, source: str = "ai_analyzer") -> list[Finding]:
        """Validate entries field by field, discarding malformed ones."""
        validator = FindingOutputValidator(source=source)
        findings = validator.validate_and_clean(payload.entries)
        discarded = len(payload.entries) - len(findings)
        if discarded:
            logger.info("Discarded AI findings", discarded=discarded, kept=len(findings))
        return findings


def normalize(result: ProviderResult) -> list[Finding]:
    """Normalize with default settings."""
    return FindingNormalizer().normalize(result)

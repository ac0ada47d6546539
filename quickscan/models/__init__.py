"""Data models for QuickScan."""

from quickscan.models.finding import Finding, Severity
from quickscan.models.target import Target, normalize_target
from quickscan.models.snapshot import Snapshot
from quickscan.models.scan import FallbackKind, ScanReport
from quickscan.models.result import (
    AIFindingsPayload,
    ExposurePayload,
    Failure,
    HeaderGradePayload,
    ProviderResult,
    Success,
    TlsGradePayload,
)

__all__ = [
    "Finding",
    "Severity",
    "Target",
    "normalize_target",
    "Snapshot",
    "ScanReport",
    "FallbackKind",
    "ProviderResult",
    "Success",
    "Failure",
    "HeaderGradePayload",
    "TlsGradePayload",
    "ExposurePayload",
    "AIFindingsPayload",
]

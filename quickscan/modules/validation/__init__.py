"""Validation modules for live target probing."""

from quickscan.modules.validation.http_probe import SnapshotProber, classify_transport_error

__all__ = [
    "SnapshotProber",
    "classify_transport_error",
]

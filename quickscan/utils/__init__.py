"""Utility modules for QuickScan."""

from quickscan.utils.deduplicator import Deduplicator, merge_findings
from quickscan.utils.validator import FindingOutputValidator

__all__ = [
    "Deduplicator",
    "merge_findings",
    "FindingOutputValidator",
]

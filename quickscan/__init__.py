"""
QuickScan v1.0.0 - Multi-source security header and transport scanner.
"""

__version__ = "1.0.0"
__author__ = "QuickScan Team"

from quickscan.core.config import ScanProfile, Settings, get_settings
from quickscan.core.errors import InvalidInputError
from quickscan.core.logger import get_logger, setup_logging
from quickscan.core.orchestrator import ScanOrchestrator, run_quick_scan
from quickscan.models.finding import Finding, Severity

__all__ = [
    "__version__",
    "ScanProfile",
    "Settings",
    "get_settings",
    "InvalidInputError",
    "get_logger",
    "setup_logging",
    "ScanOrchestrator",
    "run_quick_scan",
    "Finding",
    "Severity",
]

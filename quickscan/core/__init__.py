"""Core modules for QuickScan."""

from quickscan.core.config import ScanProfile, Settings, get_settings, load_settings
from quickscan.core.errors import FailureReason, InvalidInputError, ProviderError, QuickScanError
from quickscan.core.logger import get_logger, setup_logging
from quickscan.core.polling import PollingEngine, PollJob, PollState, PollStatus

__all__ = [
    "ScanProfile",
    "Settings",
    "get_settings",
    "load_settings",
    "FailureReason",
    "InvalidInputError",
    "ProviderError",
    "QuickScanError",
    "get_logger",
    "setup_logging",
    "PollingEngine",
    "PollJob",
    "PollState",
    "PollStatus",
]

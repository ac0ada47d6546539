"""External grading and intelligence providers."""

from quickscan.modules.providers.base import BaseProvider, failure_from_exception
from quickscan.modules.providers.header_grade import HeaderGradingProvider
from quickscan.modules.providers.tls_grade import TlsGradingProvider
from quickscan.modules.providers.exposure import ExposureProvider
from quickscan.modules.providers.ai_analyzer import AIAnalyzerProvider

__all__ = [
    "BaseProvider",
    "failure_from_exception",
    "HeaderGradingProvider",
    "TlsGradingProvider",
    "ExposureProvider",
    "AIAnalyzerProvider",
]

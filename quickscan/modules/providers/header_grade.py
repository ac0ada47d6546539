"""HTTP security header grading via the Mozilla HTTP Observatory."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from quickscan.core.config import HeaderGradingConfig
from quickscan.core.errors import FailureReason, ProviderError
from quickscan.core.logger import get_logger
from quickscan.models.result import HeaderGradePayload
from quickscan.models.snapshot import Snapshot
from quickscan.models.target import Target
from quickscan.modules.providers.base import BaseProvider

logger = get_logger(__name__)

# Observatory tests that correspond to a single response header
HEADER_TESTS = {
    "content-security-policy": "Content-Security-Policy",
    "cross-origin-resource-policy": "Cross-Origin-Resource-Policy",
    "referrer-policy": "Referrer-Policy",
    "strict-transport-security": "Strict-Transport-Security",
    "x-content-type-options": "X-Content-Type-Options",
    "x-frame-options": "X-Frame-Options",
}


def parse_observatory_tests(tests: Any) -> tuple[list[str], list[str]]:
    """
    Split Observatory test results into missing and weak headers.

    A test whose result ends in ``-not-implemented`` means the header is
    absent; any other failing header test means it is present but weak.

    Args:
        tests: The ``tests`` mapping from the analyze endpoint

    Returns:
        (missing_headers, weak_headers), in header table order
    """
    if not isinstance(tests, dict):
        return [], []

    missing: list[str] = []
    weak: list[str] = []

    for test_name, header in HEADER_TESTS.items():
        result = tests.get(test_name)
        if not isinstance(result, dict):
            continue
        outcome = str(result.get("result") or "")
        if outcome.endswith("-not-implemented"):
            missing.append(header)
        elif result.get("pass") is False:
            weak.append(header)

    return missing, weak


class HeaderGradingProvider(BaseProvider):
    """
    Grades a site's security headers.

    ``POST /scan`` triggers (or reuses) an Observatory scan and returns the
    overall grade; ``GET /analyze`` adds the per-header test results. A
    failing analyze call still yields the grade.
    """

    name = "header_grading"

    def __init__(
        self,
        config: Optional[HeaderGradingConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(client)
        self.config = config or HeaderGradingConfig()

    @property
    def timeout(self) -> Optional[float]:
        return self.config.timeout

    async def fetch(self, target: Target, snapshot: Optional[Snapshot] = None) -> HeaderGradePayload:
        """Fetch the grade and header test results for a host."""
        params = {"host": target.host}

        async with self.http() as client:
            response = await client.post(f"{self.config.api_base}/scan", params=params)
            scan = self.expect_mapping(self.decode_json(response), "scan")

            if scan.get("error"):
                raise ProviderError(FailureReason.REMOTE_ERROR, str(scan["error"]))

            missing: list[str] = []
            weak: list[str] = []
            try:
                response = await client.get(f"{self.config.api_base}/analyze", params=params)
                analysis = self.expect_mapping(self.decode_json(response), "analysis")
                missing, weak = parse_observatory_tests(analysis.get("tests"))
            except (ProviderError, httpx.HTTPError) as e:
                logger.info("Observatory analyze unavailable, using grade only", host=target.host, error=str(e))

        score = scan.get("score")
        return HeaderGradePayload(
            grade=scan.get("grade"),
            score=score if isinstance(score, int) else None,
            missing_headers=missing,
            weak_headers=weak,
            details_url=scan.get("details_url"),
        )

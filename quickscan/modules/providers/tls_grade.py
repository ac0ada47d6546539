"""TLS grading via the Qualys SSL Labs assessment API."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from quickscan.core.config import TlsGradingConfig
from quickscan.core.errors import FailureReason, ProviderError
from quickscan.core.logger import get_logger
from quickscan.core.polling import PollingEngine, PollState, PollStatus, Sleeper
from quickscan.models.result import TlsGradePayload
from quickscan.models.snapshot import Snapshot
from quickscan.models.target import Target
from quickscan.modules.providers.base import BaseProvider

logger = get_logger(__name__)

# Best to worst; anything unlisted sorts after these
GRADE_ORDER = ["A+", "A", "A-", "B", "C", "D", "E", "F", "T", "M"]


def grade_rank(grade: Optional[str]) -> int:
    """Rank a grade for worst-of comparison (higher is worse)."""
    if grade in GRADE_ORDER:
        return GRADE_ORDER.index(grade)
    return len(GRADE_ORDER)


def classify_status(data: Any) -> tuple[PollStatus, Optional[str]]:
    """Map an SSL Labs ``status`` field to a poll status."""
    if not isinstance(data, dict):
        raise ProviderError(FailureReason.MALFORMED_RESPONSE, "assessment is not a JSON object")

    status = str(data.get("status") or "").upper()
    if status == "READY":
        return PollStatus.READY, None
    if status == "ERROR":
        return PollStatus.ERROR, data.get("statusMessage") or "assessment failed"
    # DNS, IN_PROGRESS and anything new stay pending
    return PollStatus.PENDING, None


def leaf_cert_expiry(data: dict[str, Any]) -> Optional[int]:
    """
    Find the leaf certificate's ``notAfter`` (epoch ms).

    Uses the first endpoint's certificate chain when present, then falls
    back to the first listed certificate, then to the older per-endpoint
    ``details.cert`` layout.
    """
    certs = [c for c in data.get("certs") or [] if isinstance(c, dict)]
    endpoints = [e for e in data.get("endpoints") or [] if isinstance(e, dict)]

    leaf_id = None
    for endpoint in endpoints:
        chains = (endpoint.get("details") or {}).get("certChains") or []
        if chains and isinstance(chains[0], dict) and chains[0].get("certIds"):
            leaf_id = chains[0]["certIds"][0]
            break

    if leaf_id is not None:
        for cert in certs:
            if cert.get("id") == leaf_id and cert.get("notAfter") is not None:
                return int(cert["notAfter"])

    if certs and certs[0].get("notAfter") is not None:
        return int(certs[0]["notAfter"])

    for endpoint in endpoints:
        cert = (endpoint.get("details") or {}).get("cert") or {}
        if cert.get("notAfter") is not None:
            return int(cert["notAfter"])

    return None


def parse_assessment(data: dict[str, Any], from_cache: bool = False) -> TlsGradePayload:
    """Decode a READY assessment into a typed payload."""
    endpoint_grades: dict[str, Optional[str]] = {}
    for endpoint in data.get("endpoints") or []:
        if isinstance(endpoint, dict):
            address = str(endpoint.get("ipAddress") or endpoint.get("serverName") or len(endpoint_grades))
            endpoint_grades[address] = endpoint.get("grade")

    graded = [g for g in endpoint_grades.values() if g]
    worst = max(graded, key=grade_rank) if graded else None

    return TlsGradePayload(
        host=str(data.get("host") or ""),
        grade=worst,
        endpoint_grades=endpoint_grades,
        cert_not_after=leaf_cert_expiry(data),
        from_cache=from_cache,
    )


class TlsGradingProvider(BaseProvider):
    """
    Grades a host's TLS configuration.

    SSL Labs assesses asynchronously, so the provider submits once
    (accepting a cached assessment up to ``max_cache_age_hours`` old) and
    then polls through :class:`PollingEngine` until READY or ERROR.
    """

    name = "tls_grading"

    def __init__(
        self,
        config: Optional[TlsGradingConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleeper] = None,
    ):
        super().__init__(client)
        self.config = config or TlsGradingConfig()
        self.engine = PollingEngine(
            interval=self.config.poll_interval,
            max_attempts=self.config.max_attempts,
            sleep=sleep,
        )

    @property
    def timeout(self) -> Optional[float]:
        # Poll sleeps plus one request, capped by the overall budget
        return min(self.config.max_total_seconds, self.engine.ceiling + self.config.request_timeout)

    async def fetch(self, target: Target, snapshot: Optional[Snapshot] = None) -> TlsGradePayload:
        """Run an assessment to completion."""
        if target.is_ip or target.is_cidr:
            raise ProviderError(FailureReason.UNSUPPORTED_TARGET, "TLS grading needs a hostname")
        if target.port not in (None, 443):
            raise ProviderError(FailureReason.UNSUPPORTED_TARGET, f"TLS grading only covers port 443, got {target.port}")

        url = f"{self.config.api_base}/analyze"
        base_params = {"host": target.host, "publish": "off", "all": "done"}

        async with self.http(timeout=self.config.request_timeout) as client:

            async def submit() -> Any:
                params = dict(
                    base_params,
                    fromCache="on",
                    maxAge=str(self.config.max_cache_age_hours),
                )
                return self.decode_json(await client.get(url, params=params))

            async def poll() -> Any:
                return self.decode_json(await client.get(url, params=base_params))

            job = await self.engine.run(submit, poll, classify_status)

        if job.state == PollState.TIMED_OUT:
            raise ProviderError(FailureReason.POLL_EXHAUSTED, job.reason)
        if job.state == PollState.ERRORED:
            raise ProviderError(FailureReason.REMOTE_ERROR, job.reason)

        logger.debug("TLS assessment ready", host=target.host, attempts=job.attempts)
        return parse_assessment(job.payload, from_cache=job.attempts == 1)

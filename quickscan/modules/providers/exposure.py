"""Exposure intelligence (open ports, known CVEs) from the Shodan API."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from quickscan.core.config import APIKeysConfig, ExposureConfig
from quickscan.core.errors import FailureReason, ProviderError
from quickscan.core.logger import get_logger
from quickscan.models.result import ExposurePayload
from quickscan.models.snapshot import Snapshot
from quickscan.models.target import Target
from quickscan.modules.providers.base import BaseProvider

logger = get_logger(__name__)


def parse_host_info(ip: str, data: dict[str, Any]) -> ExposurePayload:
    """
    Decode a ``/shodan/host/{ip}`` response.

    ``vulns`` is a list of CVE ids on current plans and a mapping keyed by
    CVE id on older responses; both are accepted.
    """
    ports = sorted({int(p) for p in data.get("ports") or [] if str(p).isdigit()})

    raw_vulns = data.get("vulns") or []
    if isinstance(raw_vulns, dict):
        raw_vulns = list(raw_vulns.keys())
    vulns = sorted({str(v) for v in raw_vulns if v})

    return ExposurePayload(ip=str(data.get("ip_str") or ip), ports=ports, vulns=vulns)


class ExposureProvider(BaseProvider):
    """
    Looks up what the internet already sees of a host.

    Hostnames are resolved through Shodan's DNS endpoint first. A host
    Shodan has no record of is a success with nothing disclosed.
    """

    name = "exposure"

    def __init__(
        self,
        config: Optional[ExposureConfig] = None,
        api_keys: Optional[APIKeysConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(client)
        self.config = config or ExposureConfig()
        self.api_key = (api_keys or APIKeysConfig()).get_shodan()

    @property
    def timeout(self) -> Optional[float]:
        return self.config.timeout

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def resolve(self, client: httpx.AsyncClient, hostname: str) -> str:
        """Resolve a hostname to an IP via Shodan DNS."""
        response = await client.get(
            f"{self.config.api_base}/dns/resolve",
            params={"hostnames": hostname, "key": self.api_key},
        )
        data = self.expect_mapping(self.decode_json(response), "DNS resolution")
        ip = data.get(hostname)
        if not ip:
            raise ProviderError(FailureReason.REMOTE_ERROR, f"could not resolve {hostname}")
        return str(ip)

    async def fetch(self, target: Target, snapshot: Optional[Snapshot] = None) -> ExposurePayload:
        """Fetch open ports and known vulnerabilities for the target's IP."""
        if target.is_cidr:
            raise ProviderError(FailureReason.UNSUPPORTED_TARGET, "exposure lookup needs a single host")

        async with self.http() as client:
            ip = target.host if target.is_ip else await self.resolve(client, target.host)

            response = await client.get(
                f"{self.config.api_base}/shodan/host/{ip}",
                params={"key": self.api_key, "minify": "true"},
            )

            if response.status_code == 404:
                logger.debug("No Shodan record", ip=ip)
                return ExposurePayload(ip=ip)

            data = self.expect_mapping(self.decode_json(response), "host information")

        return parse_host_info(ip, data)

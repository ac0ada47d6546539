"""Scan target model and normalization."""

from __future__ import annotations

import ipaddress
import re
from typing import Any, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

from quickscan.core.errors import InvalidInputError

SCHEME_REGEX = re.compile(r"^https?://", re.IGNORECASE)
CIDR_SUFFIX_REGEX = re.compile(r"/\d+$")

DEFAULT_PORTS = {"http": 80, "https": 443}


class Target(BaseModel):
    """
    Normalized representation of a scan subject.

    Built once per scan by :func:`normalize_target` and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    raw: str = Field(..., description="Original input string")
    scheme: str = "https"
    host: str
    port: Optional[int] = None
    is_ip: bool = False
    is_cidr: bool = False

    @property
    def effective_port(self) -> int:
        """Explicit port, or the scheme's default."""
        return self.port if self.port is not None else DEFAULT_PORTS[self.scheme]

    @property
    def is_tls(self) -> bool:
        return self.scheme == "https"

    @property
    def netloc(self) -> str:
        """Host (bracketed if IPv6) plus explicit port."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}" if self.port is not None else host

    @property
    def url(self) -> str:
        """Base URL for probing the target."""
        return f"{self.scheme}://{self.netloc}/"

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def is_ip_literal(value: str) -> bool:
    """Check whether a host string is an IPv4 or IPv6 literal."""
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def is_cidr_notation(raw: str) -> bool:
    """Check whether the first token of the raw input ends in ``/<digits>``."""
    tokens = raw.split()
    return bool(tokens) and bool(CIDR_SUFFIX_REGEX.search(tokens[0]))


def normalize_target(raw: Any) -> Target:
    """
    Parse a raw target string into a canonical :class:`Target`.

    Inputs without an ``http://`` or ``https://`` prefix are treated as
    ``https``. Pure: the same string always yields an equal Target.

    Args:
        raw: Hostname, IP address, CIDR range or URL

    Returns:
        Normalized Target

    Unparseable input (bad port, unclosed IPv6 bracket) keeps the trimmed
    string as its host and no port; the probe then reports it unreachable.

    Raises:
        InvalidInputError: If the input is not a non-empty string
    """
    if not isinstance(raw, str) or not raw:
        raise InvalidInputError("target is required (non-empty string)")

    trimmed = raw.strip()

    # Bare IPv6 literals do not survive URL parsing without brackets
    if is_ip_literal(trimmed):
        return Target(raw=raw, scheme="https", host=trimmed, is_ip=True, is_cidr=False)

    scheme_match = SCHEME_REGEX.match(trimmed)
    guess = trimmed if scheme_match else f"https://{trimmed}"

    try:
        parsed = urlsplit(guess)
        port = parsed.port
        host = parsed.hostname or trimmed
        scheme = parsed.scheme.lower()
    except ValueError:
        port = None
        host = trimmed
        scheme = scheme_match.group().split(":")[0].lower() if scheme_match else "https"

    return Target(
        raw=raw,
        scheme=scheme,
        host=host,
        port=port,
        is_ip=is_ip_literal(host),
        is_cidr=is_cidr_notation(trimmed),
    )

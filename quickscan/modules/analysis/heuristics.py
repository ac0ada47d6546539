"""
Heuristic rules over a probe snapshot.

The rule table is evaluated in order and every rule is independent, so a
target can trigger several of them. The engine is total: when nothing
fires it still returns a single low-severity "no issues" finding.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from quickscan.models.finding import Finding, Severity
from quickscan.models.snapshot import Snapshot
from quickscan.models.target import Target

SOURCE = "heuristics"


@dataclass(frozen=True)
class HeuristicRule:
    """One row of the rule table."""
    name: str
    severity: Severity
    condition: Callable[[Target, Snapshot], bool]
    title: Callable[[Target, Snapshot], str]
    remediation: str

    def evaluate(self, target: Target, snapshot: Snapshot) -> Optional[Finding]:
        if not self.condition(target, snapshot):
            return None
        return Finding(
            severity=self.severity,
            title=self.title(target, snapshot),
            remediation=self.remediation,
            source=SOURCE,
        )


def _fixed(title: str) -> Callable[[Target, Snapshot], str]:
    return lambda target, snapshot: title


# Port 80 is scheme-gated: an https target without an explicit port never fires it
RULES: tuple[HeuristicRule, ...] = (
    HeuristicRule(
        name="plain_http",
        severity=Severity.HIGH,
        condition=lambda t, s: t.scheme == "http",
        title=_fixed("Target served over HTTP (unencrypted)"),
        remediation="Force HTTPS and install a TLS certificate.",
    ),
    HeuristicRule(
        name="raw_ip",
        severity=Severity.MEDIUM,
        condition=lambda t, s: t.is_ip,
        title=_fixed("Target is a raw IP address"),
        remediation="Use a hostname behind a proxy/CDN to reduce exposure.",
    ),
    HeuristicRule(
        name="default_port_80",
        severity=Severity.LOW,
        condition=lambda t, s: t.scheme == "http" and t.effective_port == 80,
        title=_fixed("Default port 80 detected without TLS"),
        remediation="Redirect port 80 to HTTPS on 443 or close it.",
    ),
    HeuristicRule(
        name="cidr_range",
        severity=Severity.LOW,
        condition=lambda t, s: t.is_cidr,
        title=_fixed("CIDR range provided (large scope)"),
        remediation="Scan individual hosts; range-wide checks need a dedicated network scanner.",
    ),
    HeuristicRule(
        name="missing_hsts",
        severity=Severity.MEDIUM,
        condition=lambda t, s: not s.has_header("strict-transport-security"),
        title=_fixed("Missing Strict-Transport-Security header"),
        remediation="Add HSTS to enforce HTTPS (e.g. max-age=31536000; includeSubDomains).",
    ),
    HeuristicRule(
        name="missing_csp",
        severity=Severity.MEDIUM,
        condition=lambda t, s: not s.has_header("content-security-policy"),
        title=_fixed("Missing Content-Security-Policy header"),
        remediation="Add a CSP to mitigate XSS and data injection.",
    ),
    HeuristicRule(
        name="missing_xfo",
        severity=Severity.LOW,
        condition=lambda t, s: not s.has_header("x-frame-options"),
        title=_fixed("Missing X-Frame-Options header"),
        remediation="Add SAMEORIGIN or DENY to prevent clickjacking.",
    ),
    HeuristicRule(
        name="server_banner",
        severity=Severity.LOW,
        condition=lambda t, s: s.has_header("server"),
        title=lambda t, s: f"Server banner disclosed: {s.header('server')}",
        remediation="Remove or obfuscate the Server header.",
    ),
)


def no_issues_finding(target: Target) -> Finding:
    return Finding(
        severity=Severity.LOW,
        title=f"No issues detected by heuristic rules for {target.host}",
        remediation="Run a full scanner (OWASP ZAP, Nmap, etc.) for deeper checks.",
        source=SOURCE,
    )


class HeuristicRuleEngine:
    """Evaluates the fixed rule table against a target and its snapshot."""

    def __init__(self, rules: tuple[HeuristicRule, ...] = RULES):
        self.rules = rules

    def evaluate(self, target: Target, snapshot: Snapshot) -> list[Finding]:
        """
        Run every rule in table order.

        Args:
            target: Normalized target
            snapshot: Successful probe snapshot

        Returns:
            Non-empty list of findings
        """
        findings = [
            finding
            for finding in (rule.evaluate(target, snapshot) for rule in self.rules)
            if finding is not None
        ]
        return findings or [no_issues_finding(target)]


def evaluate(target: Target, snapshot: Snapshot) -> list[Finding]:
    """Evaluate the default rule table."""
    return HeuristicRuleEngine().evaluate(target, snapshot)

"""Report exporter for scan findings."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

from quickscan.core.logger import get_logger
from quickscan.models.finding import Finding, Severity
from quickscan.models.scan import ScanReport

logger = get_logger(__name__)


def findings_to_json(report: ScanReport, indent: int = 2) -> str:
    """Serialize a scan report (target, provider outcomes, findings) to JSON."""
    return json.dumps(report.to_dict(), indent=indent, default=str)


def findings_to_markdown(report: ScanReport) -> str:
    """Render a scan report as a Markdown document grouped by severity."""
    counts = report.severity_counts()
    md = [
        f"# QuickScan report: {report.target.host}",
        "",
        f"**Target:** `{report.target.raw.strip()}`  ",
        f"**Profile:** {report.profile.value}  ",
        f"**Scanned:** {report.started_at.strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "## Summary",
        "",
    ]
    for severity, count in counts.items():
        md.append(f"- {severity.capitalize()}: {count}")
    md.append("")

    if report.providers:
        md.append("## Providers")
        md.append("")
        for name, outcome in report.providers.items():
            md.append(f"- `{name}`: {outcome}")
        md.append("")

    md.append("## Findings")
    md.append("")
    for severity in sorted(Severity, reverse=True):
        group = [f for f in report.findings if f.severity == severity]
        if not group:
            continue
        md.append(f"### {severity.value.capitalize()} ({len(group)})")
        md.append("")
        md.extend(f.to_markdown() for f in group)
        md.append("")

    return "\n".join(md)


def findings_to_text(findings: list[Finding]) -> str:
    """Plain one-line-per-finding summary."""
    return "\n".join(
        f"[{f.severity.value.upper()}] {f.title}" + (f" -- {f.remediation}" if f.remediation else "")
        for f in findings
    )


def export_findings(report: ScanReport, output_path: Optional[Path] = None) -> Path:
    """
    Write a scan report to disk, choosing the format by file suffix.

    ``.json`` writes JSON, ``.md`` Markdown and anything else plain text.

    Args:
        report: Completed scan report
        output_path: Destination (defaults to output/<host>_<timestamp>.json)

    Returns:
        Path written
    """
    if output_path is None:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        safe_host = report.target.host.replace(":", "_").replace("/", "_")
        output_path = Path("output") / f"{safe_host}_{stamp}.json"

    output_path.parent.mkdir(parents=True, exist_ok=True)

    suffix = output_path.suffix.lower()
    if suffix == ".json":
        content = findings_to_json(report)
    elif suffix in (".md", ".markdown"):
        content = findings_to_markdown(report)
    else:
        content = findings_to_text(report.findings)

    output_path.write_text(content)
    logger.debug(f"Exported {len(report.findings)} findings to {output_path}")
    return output_path

"""Rich CLI interface for QuickScan."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from quickscan import __version__
from quickscan.core.config import ScanProfile, Settings, get_settings, load_settings
from quickscan.core.errors import InvalidInputError
from quickscan.core.exporter import export_findings, findings_to_json
from quickscan.core.logger import get_logger, setup_logging
from quickscan.core.orchestrator import ScanOrchestrator
from quickscan.models.scan import FallbackKind, ScanReport

app = typer.Typer(
    name="quickscan",
    help="Multi-source security header and transport scanner",
    add_completion=False,
)
console = Console()
logger = get_logger(__name__)

SEVERITY_COLORS = {
    "critical": "red",
    "high": "orange3",
    "medium": "yellow",
    "low": "blue",
}

# Exit code for rejected targets
EXIT_INVALID_INPUT = 2


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]QuickScan[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version",
    ),
    debug: bool = typer.Option(
        False, "--debug", "-d",
        help="Enable debug logging",
    ),
) -> None:
    """QuickScan - security header and transport checks from several sources."""
    settings = get_settings()
    log_level = "DEBUG" if debug or settings.debug else settings.log_level.value
    setup_logging(level=log_level, json_format=settings.log_json)


@app.command()
def scan(
    target: str = typer.Argument(..., help="Hostname, IP address, CIDR range or URL"),
    profile: ScanProfile = typer.Option(
        ScanProfile.QUICK, "--profile", "-p",
        help="quick = probe + heuristics; full = every configured provider",
    ),
    use_ai: bool = typer.Option(
        False, "--ai",
        help="Include the AI-assisted analyzer in a full scan (needs OPENAI_API_KEY)",
    ),
    deadline: Optional[float] = typer.Option(
        None, "--deadline",
        help="Give up on providers after this many seconds and fall back to heuristics",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o",
        help="Write the report to a file (.json, .md or .txt)",
    ),
    as_json: bool = typer.Option(
        False, "--json",
        help="Print the report as JSON",
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="YAML settings file",
    ),
) -> None:
    """Scan a single target and print its findings."""
    settings = load_settings(config_path)
    orchestrator = ScanOrchestrator(settings=settings)

    try:
        if as_json:
            report = asyncio.run(orchestrator.run(target, profile, include_ai=use_ai or None, deadline=deadline))
        else:
            with console.status(f"[cyan]Scanning {target} ({profile.value})...[/cyan]"):
                report = asyncio.run(orchestrator.run(target, profile, include_ai=use_ai or None, deadline=deadline))
    except InvalidInputError as e:
        console.print(f"[red]Invalid target: {e}[/red]")
        raise typer.Exit(EXIT_INVALID_INPUT)

    if as_json:
        print(findings_to_json(report))
    else:
        _display_report(report)

    if output:
        path = export_findings(report, output)
        if not as_json:
            console.print(f"[dim]Report saved to: {path}[/dim]")


def _display_report(report: ScanReport) -> None:
    """Display a scan report as a table with provider outcomes."""
    table = Table(title=f"Findings for {report.target.host}")
    table.add_column("Severity", style="bold")
    table.add_column("Finding", style="white")
    table.add_column("Fix", style="dim")
    table.add_column("Source", style="cyan")

    for finding in report.findings:
        color = SEVERITY_COLORS.get(finding.severity.value, "white")
        table.add_row(
            f"[{color}]{finding.severity.value.upper()}[/{color}]",
            finding.title,
            finding.remediation,
            finding.source or "",
        )

    console.print(table)

    if report.providers:
        console.print()
        for name, outcome in report.providers.items():
            style = "green" if outcome == "ok" else "yellow"
            console.print(f"  [{style}]{name}[/{style}]: {outcome}")

    if report.deadline_hit:
        console.print("[yellow]Deadline reached; provider results were discarded.[/yellow]")
    if report.fallback == FallbackKind.HEURISTICS and report.profile == ScanProfile.FULL:
        console.print("[dim]No provider produced findings; showing heuristic results.[/dim]")

    counts = report.severity_counts()
    summary = ", ".join(f"{n} {s}" for s, n in counts.items() if n)
    console.print(f"\n[bold]{len(report.findings)} findings[/bold] ({summary})")


@app.command()
def providers(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="YAML settings file",
    ),
) -> None:
    """List providers and whether each is enabled and configured."""
    settings: Settings = load_settings(config_path)
    orchestrator = ScanOrchestrator(settings=settings)

    table = Table(title="Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Profile", style="white")
    table.add_column("Status", style="white")

    table.add_row("probe + heuristics", "quick, full", "[green]always on[/green]")
    for provider in orchestrator.build_providers():
        profile_label = "full (--ai)" if provider.name == "ai_analyzer" else "full"
        if provider.is_configured():
            status = "[green]ready[/green]"
        else:
            status = "[yellow]not configured[/yellow]"
        table.add_row(provider.name, profile_label, status)

    console.print(table)


@app.command(name="config")
def config_cmd(
    action: str = typer.Argument(..., help="Action: set-key, delete-key, list-keys, show"),
    key_name: Optional[str] = typer.Argument(None, help="API key name (shodan, openai)"),
) -> None:
    """
    Manage API keys and configuration.

    Actions:
      set-key <name>     Set an API key (prompts for value securely)
      delete-key <name>  Delete an API key
      list-keys          List configured API keys (shows which are set)
      show               Show config file location and status

    Examples:
      quickscan config set-key shodan
      quickscan config list-keys
      quickscan config delete-key openai
    """
    from getpass import getpass

    from quickscan.core.config import (
        CONFIG_FILE,
        VALID_KEYS,
        delete_api_key,
        list_api_keys,
        save_api_key,
    )

    if action == "set-key":
        if not key_name or key_name not in VALID_KEYS:
            console.print(f"[red]Key name required; valid keys: {', '.join(sorted(VALID_KEYS))}[/red]")
            raise typer.Exit(1)

        console.print(f"[cyan]Enter API key for {key_name}:[/cyan]")
        key_value = getpass(prompt="  > ")

        if not key_value.strip():
            console.print("[red]Error: API key cannot be empty[/red]")
            raise typer.Exit(1)

        try:
            save_api_key(key_name, key_value.strip())
        except OSError as e:
            console.print(f"[red]Error saving API key: {e}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]API key '{key_name}' saved successfully[/green]")
        console.print(f"[dim]Config file: {CONFIG_FILE}[/dim]")

    elif action == "delete-key":
        if not key_name:
            console.print("[red]Error: Key name required[/red]")
            raise typer.Exit(1)

        if delete_api_key(key_name):
            console.print(f"[green]API key '{key_name}' deleted[/green]")
        else:
            console.print(f"[yellow]API key '{key_name}' not found in config[/yellow]")

    elif action == "list-keys":
        env_keys = {
            "shodan": bool(os.environ.get("SHODAN_API_KEY")),
            "openai": bool(os.environ.get("OPENAI_API_KEY")),
        }

        table = Table(title="API Keys", border_style="dim")
        table.add_column("Service", style="cyan")
        table.add_column("Environment", style="white")
        table.add_column("Status", style="white")

        for key, is_set in list_api_keys().items():
            table.add_row(
                key,
                "yes" if env_keys.get(key) else "no",
                "[green]configured[/green]" if is_set else "[dim]not set[/dim]",
            )
        console.print(table)

    elif action == "show":
        console.print(f"[bold]Config file:[/bold] {CONFIG_FILE}")
        console.print(f"[bold]Exists:[/bold] {'yes' if CONFIG_FILE.exists() else 'no'}")

    else:
        console.print(f"[red]Unknown action: {action}[/red]")
        console.print("Valid actions: set-key, delete-key, list-keys, show")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()

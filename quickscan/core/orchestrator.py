"""Scan orchestrator: fans a target out to every source and merges findings."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from quickscan.core.config import ScanProfile, Settings, get_settings
from quickscan.core.errors import InvalidInputError
from quickscan.core.logger import get_logger, log_finding
from quickscan.models.finding import Finding, Severity
from quickscan.models.result import Failure, ProviderResult
from quickscan.models.scan import FallbackKind, ScanReport
from quickscan.models.snapshot import Snapshot
from quickscan.models.target import Target, normalize_target
from quickscan.modules.analysis.heuristics import HeuristicRuleEngine
from quickscan.modules.analysis.normalizer import FindingNormalizer
from quickscan.modules.providers.ai_analyzer import AIAnalyzerProvider
from quickscan.modules.providers.base import BaseProvider, failure_from_exception
from quickscan.modules.providers.exposure import ExposureProvider
from quickscan.modules.providers.header_grade import HeaderGradingProvider
from quickscan.modules.providers.tls_grade import TlsGradingProvider
from quickscan.modules.validation.http_probe import SnapshotProber
from quickscan.utils.deduplicator import merge_findings

logger = get_logger(__name__)


async def isolate(
    provider: str,
    operation: Callable[[], Awaitable[ProviderResult]],
    timeout: Optional[float] = None,
) -> ProviderResult:
    """
    Run one provider call inside a failure boundary.

    Every exception (and an exceeded ``timeout``) becomes a ``Failure``;
    only cancellation propagates.

    Args:
        provider: Provider name for the Failure
        operation: Zero-argument coroutine factory
        timeout: Seconds before the call is abandoned

    Returns:
        The call's result, or a Failure
    """
    try:
        if timeout is None:
            return await operation()
        return await asyncio.wait_for(operation(), timeout)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        return failure_from_exception(provider, e)


def unreachable_finding(snapshot: Snapshot) -> Finding:
    return Finding(
        severity=Severity.HIGH,
        title=f"Target unreachable: {snapshot.error}",
        remediation="Verify DNS, firewall and that the site is up.",
        source="probe",
    )


class ScanOrchestrator:
    """
    Top-level scan coordinator.

    For each scan:
    1. Normalize the target (the only step allowed to reject a call)
    2. Probe it and run the profile's providers concurrently
    3. Merge findings from providers that succeeded, in completion order
    4. Fall back to heuristics over the probe when nothing was produced

    Settings are injected once; nothing is shared between scans.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        prober: Optional[SnapshotProber] = None,
        providers: Optional[list[BaseProvider]] = None,
        heuristics: Optional[HeuristicRuleEngine] = None,
        normalizer: Optional[FindingNormalizer] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Application settings (defaults to the cached settings)
            prober: Snapshot prober
            providers: Full-profile provider set; built per scan from
                settings when omitted
            heuristics: Heuristic rule engine
            normalizer: Finding normalizer
        """
        self.settings = settings or get_settings()
        self.prober = prober or SnapshotProber(config=self.settings.probe)
        self._providers = providers
        self.heuristics = heuristics or HeuristicRuleEngine()
        self.normalizer = normalizer or FindingNormalizer(
            expiry_warning_days=self.settings.tls_grading.expiry_warning_days,
            sensitive_ports=self.settings.exposure.sensitive_ports,
        )

    def build_providers(self, client: Optional[httpx.AsyncClient] = None) -> list[BaseProvider]:
        """
        Build the full-profile provider set from settings.

        Args:
            client: Pooled HTTP client shared by the providers of one scan

        Returns:
            Providers in launch order
        """
        if self._providers is not None:
            return list(self._providers)

        settings = self.settings
        providers: list[BaseProvider] = []
        if settings.header_grading.enabled:
            providers.append(HeaderGradingProvider(settings.header_grading, client=client))
        if settings.tls_grading.enabled:
            providers.append(TlsGradingProvider(settings.tls_grading, client=client))
        if settings.exposure.enabled:
            providers.append(ExposureProvider(settings.exposure, settings.api_keys, client=client))
        providers.append(AIAnalyzerProvider(settings.llm, settings.api_keys, client=client))
        return providers

    def select_providers(
        self,
        providers: list[BaseProvider],
        profile: ScanProfile,
        include_ai: bool,
    ) -> list[BaseProvider]:
        """Pick the providers a profile runs."""
        if profile == ScanProfile.QUICK:
            return []
        return [
            p for p in providers
            if include_ai or not isinstance(p, AIAnalyzerProvider)
        ]

    async def scan(
        self,
        raw_target: Any,
        profile: Union[ScanProfile, str] = ScanProfile.QUICK,
        include_ai: Optional[bool] = None,
        deadline: Optional[float] = None,
    ) -> list[Finding]:
        """
        Scan a target and return its findings.

        Args:
            raw_target: Hostname, IP, CIDR range or URL
            profile: ``quick`` (probe + heuristics) or ``full``
            include_ai: Run the AI analyzer in the full profile
                (defaults to ``settings.llm.enabled``)
            deadline: Outer time limit in seconds

        Returns:
            Non-empty list of findings

        Raises:
            InvalidInputError: If the target cannot be normalized
        """
        report = await self.run(raw_target, profile, include_ai=include_ai, deadline=deadline)
        return report.findings

    async def run(
        self,
        raw_target: Any,
        profile: Union[ScanProfile, str] = ScanProfile.QUICK,
        include_ai: Optional[bool] = None,
        deadline: Optional[float] = None,
    ) -> ScanReport:
        """
        Scan a target and return the full report.

        Same contract as :meth:`scan`.
        """
        target = normalize_target(raw_target)
        try:
            profile = ScanProfile(profile)
        except ValueError as e:
            raise InvalidInputError(f"unknown scan profile {profile!r}") from e
        if include_ai is None:
            include_ai = self.settings.llm.enabled
        if deadline is None:
            deadline = self.settings.scan_deadline

        report = ScanReport(target=target, profile=profile)
        log = logger.bind(scan_id=report.scan_id, target=target.host, profile=profile.value)
        log.info("Scan started")

        probe_task = asyncio.ensure_future(self.prober.probe(target))

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                providers = self.select_providers(self.build_providers(client), profile, include_ai)
                collect = self._collect(target, providers, probe_task, report)
                if deadline is not None:
                    merged = await asyncio.wait_for(collect, deadline)
                else:
                    merged = await collect
        except asyncio.TimeoutError:
            log.warning("Scan deadline reached, discarding provider results", deadline=deadline)
            report.deadline_hit = True
            merged = []
        except asyncio.CancelledError:
            probe_task.cancel()
            raise
        except Exception:
            log.exception("Provider collection failed, falling back to heuristics")
            merged = []

        if merged:
            report.findings = merged
        else:
            snapshot = await self._settle_probe(probe_task)
            report.findings, report.fallback = self.fallback(target, snapshot)
        if not probe_task.done():
            probe_task.cancel()

        report.completed_at = datetime.now()
        for finding in report.findings:
            log_finding(finding.title, finding.severity.value, target.host, source=finding.source)
        log.info(
            "Scan complete",
            findings=len(report.findings),
            fallback=report.fallback.value,
            duration_seconds=round(report.duration_seconds or 0.0, 2),
        )
        return report

    async def _collect(
        self,
        target: Target,
        providers: list[BaseProvider],
        probe_task: "asyncio.Future[Snapshot]",
        report: ScanReport,
    ) -> list[Finding]:
        """Run providers concurrently and merge their findings in completion order."""
        completed: list[list[Finding]] = []

        async def run_provider(provider: BaseProvider) -> None:
            if provider.needs_snapshot:
                # Shielded so a cancelled provider never cancels the shared probe
                snapshot: Optional[Snapshot] = await asyncio.shield(probe_task)
            else:
                snapshot = None

            result = await isolate(
                provider.name,
                lambda: provider.assess(target, snapshot),
                provider.timeout,
            )

            if isinstance(result, Failure):
                report.providers[provider.name] = result.describe()
                if result.is_not_configured:
                    logger.debug("Provider not configured, skipping", provider=provider.name)
                else:
                    logger.info("Provider failed", provider=provider.name, reason=result.describe())
                return

            report.providers[provider.name] = "ok"
            completed.append(self.normalizer.normalize(result))

        outcomes = await asyncio.gather(
            *(run_provider(p) for p in providers),
            return_exceptions=True,
        )
        for provider, outcome in zip(providers, outcomes):
            if isinstance(outcome, BaseException):
                report.providers[provider.name] = failure_from_exception(provider.name, outcome).describe()
                logger.error("Provider crashed", provider=provider.name, error=repr(outcome))

        return merge_findings(*completed)

    async def _settle_probe(self, probe_task: "asyncio.Future[Snapshot]") -> Snapshot:
        """Wait for the probe; a crashed probe counts as unreachable."""
        try:
            return await probe_task
        except Exception as e:
            logger.error("Probe crashed", error=repr(e))
            return Snapshot.failed(type(e).__name__, detail=str(e))

    def fallback(self, target: Target, snapshot: Snapshot) -> tuple[list[Finding], FallbackKind]:
        """
        Produce findings when no provider contributed.

        An unreachable target yields a single high finding; otherwise the
        heuristic rules run over the snapshot.
        """
        if not snapshot.ok:
            return [unreachable_finding(snapshot)], FallbackKind.UNREACHABLE
        return self.heuristics.evaluate(target, snapshot), FallbackKind.HEURISTICS


async def run_quick_scan(
    target: str,
    profile: Union[ScanProfile, str] = ScanProfile.QUICK,
    settings: Optional[Settings] = None,
) -> list[Finding]:
    """
    Convenience function to scan a single target.

    Args:
        target: Hostname, IP, CIDR range or URL
        profile: ``quick`` or ``full``
        settings: Optional settings

    Returns:
        Non-empty list of findings
    """
    orchestrator = ScanOrchestrator(settings=settings)
    return await orchestrator.scan(target, profile)

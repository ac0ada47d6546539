"""AI-assisted analysis of a probe snapshot via an OpenAI-compatible API."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

import httpx

from quickscan.core.config import APIKeysConfig, LLMConfig
from quickscan.core.errors import FailureReason, ProviderError
from quickscan.core.logger import get_logger
from quickscan.models.finding import REMEDIATION_MAX_LENGTH, TITLE_MAX_LENGTH
from quickscan.models.result import AIFindingsPayload
from quickscan.models.snapshot import Snapshot
from quickscan.models.target import Target
from quickscan.modules.providers.base import BaseProvider

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a web security analyst. Given a scan target and the HTTP response "
    "headers observed for it, list concrete security issues. Respond with a JSON "
    'object of the form {"findings": [{"severity": "low|medium|high|critical", '
    '"title": "...", "remediation": "..."}]}. '
    f"Titles must be at most {TITLE_MAX_LENGTH} characters and remediations at most "
    f"{REMEDIATION_MAX_LENGTH} characters. Return an empty list if nothing stands out."
)


def build_prompt(target: Target, snapshot: Optional[Snapshot]) -> str:
    """Build the user prompt describing the target and its snapshot."""
    context = {
        "target": target.raw.strip(),
        "url": target.url,
        "is_ip": target.is_ip,
        "snapshot": snapshot.summary() if snapshot is not None else None,
    }
    return "Analyze this target:\n" + json.dumps(context, indent=2, sort_keys=True)


def extract_findings(content: str) -> list[Any]:
    """
    Pull the ``findings`` array out of a model reply.

    Tolerates replies wrapped in markdown code fences.

    Raises:
        ProviderError: If no JSON object with a ``findings`` list is present
    """
    json_match = re.search(r"\{[\s\S]*\}", content or "")
    if not json_match:
        raise ProviderError(FailureReason.MALFORMED_RESPONSE, "no JSON object in reply")

    try:
        data = json.loads(json_match.group())
    except json.JSONDecodeError as e:
        raise ProviderError(FailureReason.MALFORMED_RESPONSE, f"invalid JSON in reply: {e}") from e

    findings = data.get("findings") if isinstance(data, dict) else None
    if not isinstance(findings, list):
        raise ProviderError(FailureReason.MALFORMED_RESPONSE, "reply has no findings list")
    return findings


class AIAnalyzerProvider(BaseProvider):
    """
    Asks a language model for findings about the probed target.

    The reply is untrusted: entries are only collected here and are
    validated field by field by the finding normalizer.
    """

    name = "ai_analyzer"
    needs_snapshot = True

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        api_keys: Optional[APIKeysConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(client)
        self.config = config or LLMConfig()
        self.api_key = (api_keys or APIKeysConfig()).get_openai()

    @property
    def timeout(self) -> Optional[float]:
        return self.config.timeout

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def fetch(self, target: Target, snapshot: Optional[Snapshot] = None) -> AIFindingsPayload:
        """Request findings from the model."""
        async with self.http() as client:
            response = await client.post(
                f"{self.config.api_base}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.config.model,
                    "messages": [
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": build_prompt(target, snapshot)},
                    ],
                    "max_tokens": self.config.max_tokens,
                    "temperature": self.config.temperature,
                    "response_format": {"type": "json_object"},
                },
            )
            data = self.expect_mapping(self.decode_json(response))

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(FailureReason.MALFORMED_RESPONSE, f"unexpected completion shape: {e}") from e

        entries = extract_findings(content)
        if len(entries) > self.config.max_findings:
            logger.debug("Truncating AI findings", received=len(entries), kept=self.config.max_findings)
        return AIFindingsPayload(entries=entries[: self.config.max_findings])

"""Tests for the snapshot prober and external provider adapters."""

import asyncio
import json

import httpx
import pytest

from quickscan.core.config import APIKeysConfig, LLMConfig, ProbeConfig, TlsGradingConfig
from quickscan.core.errors import FailureReason
from quickscan.models.result import Failure, Success
from quickscan.models.snapshot import Snapshot
from quickscan.models.target import normalize_target
from quickscan.modules.providers.ai_analyzer import AIAnalyzerProvider, extract_findings
from quickscan.modules.providers.exposure import ExposureProvider, parse_host_info
from quickscan.modules.providers.header_grade import HeaderGradingProvider, parse_observatory_tests
from quickscan.modules.providers.tls_grade import TlsGradingProvider, leaf_cert_expiry, parse_assessment
from quickscan.modules.validation.http_probe import SnapshotProber, classify_transport_error
from quickscan.core.errors import ProviderError

SHODAN_KEYS = APIKeysConfig(shodan="test-shodan-key")
OPENAI_KEYS = APIKeysConfig(openai="test-openai-key")


def assess_with(provider_factory, handler, target="example.com", snapshot=None):
    """Run ``provider.assess`` against a mocked transport."""
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = provider_factory(client)
            return await provider.assess(normalize_target(target), snapshot)

    return asyncio.run(scenario())


def unreachable(request):
    raise AssertionError(f"unexpected request to {request.url}")


async def no_sleep(seconds):
    return None


class TestSnapshotProber:
    """Tests for SnapshotProber."""

    def probe(self, handler, target="https://example.com", config=None):
        prober = SnapshotProber(config=config, transport=httpx.MockTransport(handler))
        return asyncio.run(prober.probe(normalize_target(target)))

    def test_successful_probe(self):
        """Test status and lowercased headers are captured."""
        def handler(request):
            assert request.method == "HEAD"
            return httpx.Response(200, headers={"Server": "nginx", "X-Frame-Options": "DENY"})

        snapshot = self.probe(handler)

        assert snapshot.ok
        assert snapshot.status_code == 200
        assert snapshot.headers["server"] == "nginx"
        assert snapshot.header("X-Frame-Options") == "DENY"

    def test_probe_uses_configured_client(self):
        """Test timeout and user agent come from the probe configuration."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        self.probe(handler, config=ProbeConfig(timeout=5.0, user_agent="quickscan-test"))

        assert seen[0].extensions["timeout"]["read"] == 5.0
        assert seen[0].headers["User-Agent"] == "quickscan-test"

    def test_redirects_are_capped(self):
        """Test a redirect loop stops after the configured number of hops."""
        requests = []

        def handler(request):
            requests.append(request.url)
            return httpx.Response(302, headers={"Location": f"https://example.com/hop{len(requests)}"})

        snapshot = self.probe(handler)

        assert snapshot.error == "TOO_MANY_REDIRECTS"
        assert len(requests) == ProbeConfig().max_redirects + 1

    def test_redirect_within_cap_is_followed(self):
        """Test a short redirect chain reaches the final response."""
        def handler(request):
            if request.url.path == "/":
                return httpx.Response(301, headers={"Location": "https://www.example.com/home"})
            return httpx.Response(200, headers={"Strict-Transport-Security": "max-age=1"})

        snapshot = self.probe(handler)

        assert snapshot.ok
        assert snapshot.url == "https://www.example.com/home"
        assert snapshot.has_header("strict-transport-security")

    @pytest.mark.parametrize("target", ["example.com:abc", "example.com:99999", "http://[::1"])
    def test_unparseable_target_is_unreachable(self, target):
        """Test targets with a broken authority produce an error snapshot."""
        def handler(request):
            raise httpx.ConnectError("[Errno 111] Connection refused")

        snapshot = self.probe(handler, target=target)

        assert not snapshot.ok
        assert snapshot.error

    def test_blank_target_is_unreachable(self):
        """Test a whitespace-only target never reaches the network."""
        snapshot = self.probe(unreachable, target="   ")

        assert snapshot.error == "ENOTFOUND"

    def test_error_status_is_still_a_snapshot(self):
        """Test HTTP error statuses are reachable responses."""
        snapshot = self.probe(lambda request: httpx.Response(503))
        assert snapshot.ok
        assert snapshot.status_code == 503

    def test_dns_failure(self):
        """Test unresolvable hosts produce ENOTFOUND."""
        def handler(request):
            raise httpx.ConnectError("[Errno -2] Name or service not known")

        snapshot = self.probe(handler)

        assert not snapshot.ok
        assert snapshot.error == "ENOTFOUND"

    def test_timeout(self):
        """Test timeouts produce ETIMEDOUT."""
        def handler(request):
            raise httpx.ReadTimeout("timed out")

        assert self.probe(handler).error == "ETIMEDOUT"

    @pytest.mark.parametrize("exc,code", [
        (httpx.ConnectError("[Errno 111] Connection refused"), "ECONNREFUSED"),
        (httpx.ConnectError("network unreachable"), "ECONNERROR"),
        (httpx.ConnectTimeout("connect timed out"), "ETIMEDOUT"),
        (httpx.TooManyRedirects("Exceeded maximum allowed redirects."), "TOO_MANY_REDIRECTS"),
        (httpx.RemoteProtocolError("Server disconnected"), "EPROTO"),
    ])
    def test_classify_transport_error(self, exc, code):
        """Test transport error classification."""
        assert classify_transport_error(exc) == code


class TestHeaderGrading:
    """Tests for the Observatory adapter."""

    def test_grade_and_headers(self):
        """Test scan grade is combined with analyze test results."""
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            assert request.url.params["host"] == "example.com"
            if request.url.path.endswith("/scan"):
                return httpx.Response(200, json={"grade": "B", "score": 70, "details_url": "https://example.org/r"})
            return httpx.Response(200, json={"tests": {
                "content-security-policy": {"pass": False, "result": "csp-not-implemented"},
                "x-frame-options": {"pass": False, "result": "x-frame-options-header-invalid"},
                "strict-transport-security": {"pass": True, "result": "hsts-implemented-max-age-at-least-six-months"},
            }})

        result = assess_with(lambda c: HeaderGradingProvider(client=c), handler)

        assert isinstance(result, Success)
        assert result.payload.grade == "B"
        assert result.payload.score == 70
        assert result.payload.missing_headers == ["Content-Security-Policy"]
        assert result.payload.weak_headers == ["X-Frame-Options"]
        assert calls == [("POST", "/api/v2/scan"), ("GET", "/api/v2/analyze")]

    def test_analyze_failure_keeps_grade(self):
        """Test the grade survives a failed analyze call."""
        def handler(request):
            if request.url.path.endswith("/scan"):
                return httpx.Response(200, json={"grade": "A+", "score": 105})
            return httpx.Response(500)

        result = assess_with(lambda c: HeaderGradingProvider(client=c), handler)

        assert isinstance(result, Success)
        assert result.payload.grade == "A+"
        assert result.payload.missing_headers == []

    def test_scan_error(self):
        """Test an Observatory scan error is a remote failure."""
        def handler(request):
            return httpx.Response(200, json={"error": "invalid-hostname", "message": "bad host"})

        result = assess_with(lambda c: HeaderGradingProvider(client=c), handler)

        assert isinstance(result, Failure)
        assert result.reason == FailureReason.REMOTE_ERROR

    def test_malformed_body(self):
        """Test non-JSON bodies are malformed responses."""
        result = assess_with(
            lambda c: HeaderGradingProvider(client=c),
            lambda request: httpx.Response(200, text="<html>oops</html>"),
        )
        assert isinstance(result, Failure)
        assert result.reason == FailureReason.MALFORMED_RESPONSE

    def test_rate_limited(self):
        """Test HTTP 429 is a remote failure."""
        result = assess_with(lambda c: HeaderGradingProvider(client=c), lambda request: httpx.Response(429))
        assert result.reason == FailureReason.REMOTE_ERROR
        assert "rate limited" in result.detail

    def test_parse_ignores_unknown_tests(self):
        """Test only header tests are considered."""
        missing, weak = parse_observatory_tests({
            "cookies": {"pass": False, "result": "cookies-without-secure-flag"},
            "referrer-policy": {"pass": True, "result": "referrer-policy-private"},
        })
        assert missing == []
        assert weak == []


class TestTlsGrading:
    """Tests for the SSL Labs adapter."""

    READY = {
        "host": "example.com",
        "status": "READY",
        "endpoints": [
            {"ipAddress": "192.0.2.1", "grade": "A", "details": {"certChains": [{"certIds": ["leaf"]}]}},
            {"ipAddress": "192.0.2.2", "grade": "B"},
        ],
        "certs": [
            {"id": "intermediate", "notAfter": 1900000000000},
            {"id": "leaf", "notAfter": 1800000000000},
        ],
    }

    def provider(self, client, max_attempts=12):
        config = TlsGradingConfig(poll_interval=15.0, max_attempts=max_attempts)
        return TlsGradingProvider(config, client=client, sleep=no_sleep)

    def test_cached_assessment(self):
        """Test a READY submit response is used directly."""
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            return httpx.Response(200, json=self.READY)

        result = assess_with(self.provider, handler)

        assert isinstance(result, Success)
        assert result.payload.grade == "B"
        assert result.payload.from_cache
        assert result.payload.cert_not_after == 1800000000000
        assert seen[0]["fromCache"] == "on"
        assert seen[0]["maxAge"] == "24"
        assert seen[0]["publish"] == "off"

    def test_polls_until_ready(self):
        """Test pending assessments are polled without the cache flag."""
        responses = [{"status": "DNS"}, {"status": "IN_PROGRESS"}, self.READY]
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            return httpx.Response(200, json=responses.pop(0))

        result = assess_with(self.provider, handler)

        assert isinstance(result, Success)
        assert not result.payload.from_cache
        assert len(seen) == 3
        assert "fromCache" not in seen[1]

    def test_poll_exhausted(self):
        """Test a never-ready assessment is reported as exhausted."""
        count = []

        def handler(request):
            count.append(1)
            return httpx.Response(200, json={"status": "IN_PROGRESS"})

        result = assess_with(lambda c: self.provider(c, max_attempts=4), handler)

        assert isinstance(result, Failure)
        assert result.reason == FailureReason.POLL_EXHAUSTED
        assert len(count) == 4

    def test_assessment_error(self):
        """Test ERROR status is a remote failure."""
        result = assess_with(
            self.provider,
            lambda request: httpx.Response(200, json={"status": "ERROR", "statusMessage": "Unable to resolve domain name"}),
        )
        assert result.reason == FailureReason.REMOTE_ERROR
        assert "Unable to resolve" in result.detail

    def test_ip_target_unsupported(self):
        """Test IP targets are rejected without any request."""
        result = assess_with(self.provider, unreachable, target="192.0.2.10")
        assert result.reason == FailureReason.UNSUPPORTED_TARGET

    def test_non_default_port_unsupported(self):
        """Test non-443 ports are rejected."""
        result = assess_with(self.provider, unreachable, target="https://example.com:8443")
        assert result.reason == FailureReason.UNSUPPORTED_TARGET

    def test_default_budget_within_three_minutes(self):
        """Test the overall assessment budget is capped."""
        provider = TlsGradingProvider(TlsGradingConfig())
        assert provider.timeout <= 180.0

    def test_budget_follows_short_polling(self):
        """Test short polling configurations keep their own smaller budget."""
        config = TlsGradingConfig(poll_interval=1.0, max_attempts=3, request_timeout=5.0)
        assert TlsGradingProvider(config).timeout == 7.0

    def test_legacy_cert_layout(self):
        """Test expiry from per-endpoint certificate details."""
        data = {"endpoints": [{"grade": "A", "details": {"cert": {"notAfter": 1234}}}]}
        assert leaf_cert_expiry(data) == 1234
        assert parse_assessment(data).grade == "A"


class TestExposure:
    """Tests for the Shodan adapter."""

    def test_not_configured(self):
        """Test a missing key fails fast without I/O."""
        result = assess_with(lambda c: ExposureProvider(api_keys=APIKeysConfig(), client=c), unreachable)

        assert isinstance(result, Failure)
        assert result.reason == FailureReason.NOT_CONFIGURED
        assert result.is_not_configured

    def test_hostname_lookup(self):
        """Test DNS resolution followed by host lookup."""
        def handler(request):
            assert request.url.params["key"] == "test-shodan-key"
            if request.url.path == "/dns/resolve":
                return httpx.Response(200, json={"example.com": "192.0.2.10"})
            assert request.url.path == "/shodan/host/192.0.2.10"
            return httpx.Response(200, json={"ip_str": "192.0.2.10", "ports": [443, 22], "vulns": ["CVE-2023-1234"]})

        result = assess_with(lambda c: ExposureProvider(api_keys=SHODAN_KEYS, client=c), handler)

        assert isinstance(result, Success)
        assert result.payload.ip == "192.0.2.10"
        assert result.payload.ports == [22, 443]
        assert result.payload.vulns == ["CVE-2023-1234"]

    def test_unknown_host_is_empty(self):
        """Test a 404 host lookup means nothing is exposed."""
        def handler(request):
            return httpx.Response(404, json={"error": "No information available for that IP."})

        result = assess_with(lambda c: ExposureProvider(api_keys=SHODAN_KEYS, client=c), handler, target="192.0.2.10")

        assert isinstance(result, Success)
        assert result.payload.ports == []

    def test_unauthorized(self):
        """Test a rejected key is a remote failure."""
        result = assess_with(
            lambda c: ExposureProvider(api_keys=SHODAN_KEYS, client=c),
            lambda request: httpx.Response(401),
            target="192.0.2.10",
        )
        assert result.reason == FailureReason.REMOTE_ERROR
        assert "authentication failed" in result.detail

    def test_cidr_unsupported(self):
        """Test CIDR ranges are rejected."""
        result = assess_with(lambda c: ExposureProvider(api_keys=SHODAN_KEYS, client=c), unreachable, target="10.0.0.0/24")
        assert result.reason == FailureReason.UNSUPPORTED_TARGET

    def test_legacy_vulns_mapping(self):
        """Test vulns keyed by CVE id."""
        payload = parse_host_info("192.0.2.10", {"ports": [80], "vulns": {"CVE-2021-1": {}, "CVE-2020-2": {}}})
        assert payload.vulns == ["CVE-2020-2", "CVE-2021-1"]


class TestAIAnalyzer:
    """Tests for the AI analyzer adapter."""

    def completion(self, content):
        return {"choices": [{"message": {"role": "assistant", "content": content}}]}

    def test_not_configured(self):
        """Test a missing key fails fast without I/O."""
        result = assess_with(lambda c: AIAnalyzerProvider(api_keys=APIKeysConfig(), client=c), unreachable)
        assert result.reason == FailureReason.NOT_CONFIGURED

    def test_findings_collected(self):
        """Test entries are extracted from a fenced reply and capped."""
        entries = [{"severity": "low", "title": f"Issue {i}", "remediation": "Fix it."} for i in range(5)]
        content = "```json\n" + json.dumps({"findings": entries}) + "\n```"

        def handler(request):
            body = json.loads(request.content)
            assert request.headers["Authorization"] == "Bearer test-openai-key"
            assert body["response_format"] == {"type": "json_object"}
            assert "server" in body["messages"][1]["content"]
            return httpx.Response(200, json=self.completion(content))

        result = assess_with(
            lambda c: AIAnalyzerProvider(LLMConfig(max_findings=3), OPENAI_KEYS, client=c),
            handler,
            snapshot=Snapshot(status_code=200, headers={"Server": "nginx"}),
        )

        assert isinstance(result, Success)
        assert len(result.payload.entries) == 3

    def test_non_json_reply(self):
        """Test prose replies are malformed."""
        result = assess_with(
            lambda c: AIAnalyzerProvider(api_keys=OPENAI_KEYS, client=c),
            lambda request: httpx.Response(200, json=self.completion("I could not find anything.")),
        )
        assert result.reason == FailureReason.MALFORMED_RESPONSE

    def test_unexpected_completion_shape(self):
        """Test a completion without choices is malformed."""
        result = assess_with(
            lambda c: AIAnalyzerProvider(api_keys=OPENAI_KEYS, client=c),
            lambda request: httpx.Response(200, json={"id": "x"}),
        )
        assert result.reason == FailureReason.MALFORMED_RESPONSE

    def test_extract_requires_findings_list(self):
        """Test replies must carry a findings list."""
        with pytest.raises(ProviderError):
            extract_findings('{"issues": []}')
        assert extract_findings('{"findings": []}') == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

# tests/test_rate_limit.py
"""Tests for rate-limit detection."""

import itertools
from unittest.mock import patch

import httpx
import pytest

from urllens.models import ProbeResponse, RateLimitResult
from urllens.rate_limit import (
    analyze_probe_responses,
    detect_rate_limit,
    get_rate_limit_summary,
)


def _probe(status=200, headers=None, elapsed=100.0):
    return ProbeResponse(status=status, headers=headers or {}, elapsed_ms=elapsed)


class TestAnalyzeProbeResponses:
    """Tests for inference over recorded probe responses."""

    def test_quiet_burst(self):
        result = analyze_probe_responses([_probe() for _ in range(5)])

        assert result.detected is False
        assert result.requests_made == 5
        assert result.requests_succeeded == 5
        assert result.headers_found == []

    def test_throttling_status(self):
        result = analyze_probe_responses([_probe(), _probe(429)])

        assert result.detected
        assert result.requests_succeeded == 1

    def test_service_unavailable_counts(self):
        assert analyze_probe_responses([_probe(503)]).detected

    def test_headers_deduplicated_and_parsed(self):
        headers = {"x-ratelimit-limit": "120", "x-ratelimit-remaining": "119", "retry-after": "30"}
        result = analyze_probe_responses([_probe(headers=headers), _probe(headers=headers)])

        assert result.detected
        assert result.headers_found == ["x-ratelimit-limit", "x-ratelimit-remaining", "retry-after"]
        assert result.estimated_limit == 120
        assert result.reset_window_seconds == 30

    def test_ratelimit_limit_header_fallback(self):
        result = analyze_probe_responses([_probe(headers={"ratelimit-limit": "60, 60;w=60"})])
        assert result.estimated_limit == 60

    def test_latency_doubling(self):
        latencies = [100, 100, 250, 250, 250]
        result = analyze_probe_responses([_probe(elapsed=ms) for ms in latencies])
        assert result.detected

    def test_latency_not_doubling(self):
        latencies = [100, 100, 150, 150, 150]
        result = analyze_probe_responses([_probe(elapsed=ms) for ms in latencies])
        assert result.detected is False

    def test_late_failure(self):
        statuses = [200, 200, 200, 404, 200]
        result = analyze_probe_responses([_probe(status) for status in statuses])
        assert result.detected

    def test_early_failure_ignored(self):
        statuses = [404, 200, 200, 200, 200]
        result = analyze_probe_responses([_probe(status) for status in statuses])
        assert result.detected is False

    def test_implicit_needs_three_responses(self):
        result = analyze_probe_responses([_probe(elapsed=10), _probe(elapsed=1000)])
        assert result.detected is False

    def test_requests_made_includes_failures(self):
        result = analyze_probe_responses([_probe(), _probe()], requests_made=5)

        assert result.requests_made == 5
        assert result.requests_succeeded == 2


class TestDetectRateLimit:
    """Tests for the HEAD request burst."""

    @pytest.mark.asyncio
    async def test_burst_of_head_requests(self, make_client):
        methods = []

        def handler(request):
            methods.append(request.method)
            return httpx.Response(200)

        # Constant fake latency keeps the implicit check deterministic
        with patch("urllens.rate_limit.time.perf_counter", side_effect=itertools.count(0, 0.01)):
            async with make_client(handler) as client:
                result = await detect_rate_limit("https://example.com/", client=client, delay=0)

        assert methods == ["HEAD"] * 5
        assert result.requests_made == 5
        assert result.requests_succeeded == 5
        assert result.detected is False

    @pytest.mark.asyncio
    async def test_throttled_after_three(self, make_client):
        calls = itertools.count(1)

        def handler(request):
            if next(calls) > 3:
                return httpx.Response(429, headers={"Retry-After": "60"})
            return httpx.Response(200)

        async with make_client(handler) as client:
            result = await detect_rate_limit("https://example.com/", client=client, delay=0)

        assert result.detected
        assert result.requests_succeeded == 3
        assert result.reset_window_seconds == 60
        assert result.headers_found == ["retry-after"]

    @pytest.mark.asyncio
    async def test_errors_counted_without_aborting(self, make_client):
        calls = itertools.count(1)

        def handler(request):
            if next(calls) % 2 == 0:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200)

        async with make_client(handler) as client:
            result = await detect_rate_limit(
                "https://example.com/", client=client, probe_count=4, delay=0
            )

        assert result.requests_made == 4
        assert result.requests_succeeded == 2


class TestRateLimitSummary:
    """Tests for the human-readable summary."""

    def test_not_detected(self):
        result = RateLimitResult(requests_made=5, requests_succeeded=5)
        assert get_rate_limit_summary(result) == "No rate limiting detected after 5 test requests."

    def test_detected(self):
        result = RateLimitResult(
            detected=True,
            requests_made=5,
            requests_succeeded=3,
            estimated_limit=100,
            reset_window_seconds=60,
            headers_found=["x-ratelimit-limit"],
        )
        summary = get_rate_limit_summary(result)

        assert summary.startswith("Rate limiting DETECTED.")
        assert "Estimated limit: 100 requests." in summary
        assert "Reset window: 60 seconds." in summary
        assert "Headers found: x-ratelimit-limit." in summary
        assert summary.endswith("3/5 test requests succeeded.")

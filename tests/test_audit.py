# tests/test_audit.py
"""Tests for batch auditing."""

import asyncio
import math

import httpx
import pytest

from urllens.audit import (
    CANCELLED_REASON,
    AuditEngine,
    build_audit_result,
    failed_audit_result,
    generate_audit_summary,
    get_audit_recommendation,
    process_url_batch,
)
from urllens.config import AuditLimits
from urllens.constants import MAX_AUDIT_URLS
from urllens.models import (
    AnalysisResult,
    AuditRecommendation,
    AuditStatus,
    BotProtection,
    BotProtectionType,
    ConfidenceLevel,
)

HTML_HEADERS = {"content-type": "text/html; charset=utf-8"}


def _engine(client, concurrency=2, max_urls=500):
    limits = AuditLimits(concurrency=concurrency, inter_batch_delay=0, max_urls=max_urls)
    return AuditEngine(limits=limits, client=client, check_robots=False, check_rate_limit=False)


@pytest.fixture
def site(clean_html):
    """Handler serving pages whose status is encoded in the path (/s/404)."""
    def handler(request):
        parts = request.url.path.strip("/").split("/")
        status = int(parts[1]) if len(parts) > 1 and parts[0] == "s" else 200
        return httpx.Response(status, headers=HTML_HEADERS, text=clean_html)

    return handler


class TestAuditRecommendation:
    """Tests for the score-to-verdict mapping."""

    @pytest.mark.parametrize("score,expected", [
        (100, AuditRecommendation.BEST_ENTRY_POINT),
        (85, AuditRecommendation.BEST_ENTRY_POINT),
        (84, AuditRecommendation.GOOD),
        (70, AuditRecommendation.GOOD),
        (50, AuditRecommendation.MODERATE),
        (49, AuditRecommendation.CHALLENGING),
    ])
    def test_accessible(self, score, expected):
        assert get_audit_recommendation(score, True, False) == expected

    def test_inaccessible_is_blocked(self):
        assert get_audit_recommendation(100, False, False) == AuditRecommendation.BLOCKED

    def test_low_score_with_protection_is_blocked(self):
        assert get_audit_recommendation(40, True, True) == AuditRecommendation.BLOCKED
        assert get_audit_recommendation(60, True, True) == AuditRecommendation.MODERATE


class TestBuildAuditResult:
    """Tests for turning an analysis into an audit result."""

    def test_accessible_page(self):
        analysis = AnalysisResult(url="https://example.com", final_url="https://example.com", status=200)
        result = build_audit_result(analysis)

        assert result.accessible
        assert result.scrape_likelihood_score == 100
        assert result.recommendation == AuditRecommendation.BEST_ENTRY_POINT
        assert result.blocked_reason is None
        assert result.score_breakdown.final_score == 100

    def test_http_error_status(self):
        analysis = AnalysisResult(url="https://example.com", final_url="https://example.com", status=403)
        result = build_audit_result(analysis)

        assert result.accessible is False
        assert result.blocked_reason == "HTTP 403"
        assert result.recommendation == AuditRecommendation.BLOCKED
        assert result.scrape_likelihood_score == 60

    def test_network_error(self):
        analysis = AnalysisResult(
            url="https://example.com", final_url="https://example.com", status=0, error="timed out"
        )
        result = build_audit_result(analysis)

        assert result.accessible is False
        assert result.blocked_reason == "timed out"

    def test_failed_result(self):
        result = failed_audit_result("https://example.com", "boom")

        assert result.scrape_likelihood_score == 0
        assert result.status == 0
        assert result.recommendation == AuditRecommendation.BLOCKED
        assert result.error == "boom"


class TestAuditEngine:
    """Test suite for AuditEngine."""

    @pytest.mark.asyncio
    async def test_results_sorted_by_score(self, make_client, site):
        urls = [
            "https://example.com/s/404",
            "https://example.com/ok",
            "https://example.com/s/503",
        ]

        async with make_client(site) as client:
            results = await _engine(client).process_url_batch(urls)

        assert [r.url for r in results] == [
            "https://example.com/ok",
            "https://example.com/s/404",
            "https://example.com/s/503",
        ]
        assert [r.scrape_likelihood_score for r in results] == [100, 80, 60]

    @pytest.mark.asyncio
    async def test_equal_scores_keep_input_order(self, make_client, site):
        urls = [
            "https://example.com/c",
            "https://example.com/s/404",
            "https://example.com/a",
            "https://example.com/b",
        ]

        async with make_client(site) as client:
            results = await _engine(client, concurrency=3).process_url_batch(urls)

        assert [r.url for r in results] == [
            "https://example.com/c",
            "https://example.com/a",
            "https://example.com/b",
            "https://example.com/s/404",
        ]

    @pytest.mark.asyncio
    async def test_progress_snapshots(self, make_client, site):
        urls = [f"https://example.com/page{i}" for i in range(5)]
        snapshots = []

        async with make_client(site) as client:
            await _engine(client, concurrency=2).process_url_batch(urls, on_progress=snapshots.append)

        batches = math.ceil(len(urls) / 2)
        assert len(snapshots) == batches * 2 + 1
        assert snapshots[0].status == AuditStatus.TESTING
        assert snapshots[0].completed_urls == 0
        assert snapshots[0].total_batches == 3
        assert len(snapshots[1].latest_results) == 2
        assert snapshots[-1].status == AuditStatus.COMPLETED
        assert snapshots[-1].completed_urls == 5
        assert snapshots[-1].percent_complete == 100

    @pytest.mark.asyncio
    async def test_async_progress_callback(self, make_client, site):
        seen = []

        async def on_progress(progress):
            await asyncio.sleep(0)
            seen.append(progress.current_batch)

        async with make_client(site) as client:
            await _engine(client).process_url_batch(["https://example.com/a"], on_progress=on_progress)

        assert seen == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self, make_client, clean_html):
        in_flight = 0
        peak = 0

        async def handler(request):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, headers=HTML_HEADERS, text=clean_html)

        urls = [f"https://example.com/p{i}" for i in range(7)]
        async with make_client(handler) as client:
            results = await _engine(client, concurrency=3).process_url_batch(urls)

        assert len(results) == 7
        assert peak <= 3

    @pytest.mark.asyncio
    async def test_url_cap(self, make_client, site):
        urls = [f"https://example.com/p{i}" for i in range(6)]

        async with make_client(site) as client:
            results = await _engine(client, max_urls=4).process_url_batch(urls)

        assert len(results) == 4

    def test_configured_cap_cannot_exceed_hard_limit(self):
        engine = AuditEngine(limits=AuditLimits(max_urls=1000))
        assert engine.max_urls == MAX_AUDIT_URLS

    @pytest.mark.asyncio
    async def test_hard_url_cap(self, make_client, site):
        urls = [f"https://example.com/p{i}" for i in range(MAX_AUDIT_URLS + 20)]

        async with make_client(site) as client:
            results = await _engine(client, concurrency=100, max_urls=1000).process_url_batch(urls)

        assert len(results) == MAX_AUDIT_URLS
        assert {r.url for r in results} == set(urls[:MAX_AUDIT_URLS])

    @pytest.mark.asyncio
    async def test_abort_before_start(self, make_client, site):
        requests = []

        def handler(request):
            requests.append(request)
            return site(request)

        abort = asyncio.Event()
        abort.set()
        snapshots = []

        async with make_client(handler) as client:
            results = await _engine(client).process_url_batch(
                ["https://example.com/a", "https://example.com/b", "https://example.com/c"],
                on_progress=snapshots.append,
                abort_event=abort,
            )

        assert requests == []
        assert len(results) == 3
        assert all(r.blocked_reason == CANCELLED_REASON for r in results)
        assert snapshots[-1].status == AuditStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_abort_between_batches(self, make_client, site):
        abort = asyncio.Event()

        def on_progress(progress):
            if progress.latest_results:
                abort.set()

        urls = [f"https://example.com/p{i}" for i in range(4)]
        async with make_client(site) as client:
            results = await _engine(client, concurrency=2).process_url_batch(
                urls, on_progress=on_progress, abort_event=abort
            )

        cancelled = [r for r in results if r.blocked_reason == CANCELLED_REASON]
        assert len(results) == 4
        assert len(cancelled) == 2
        assert results[0].scrape_likelihood_score == 100

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failed_result(self, make_client, site):
        async with make_client(site) as client:
            results = await _engine(client).process_url_batch(["https://example.com/a", "not a url at all"])

        failed = [r for r in results if r.url == "not a url at all"][0]
        assert failed.scrape_likelihood_score == 0
        assert failed.recommendation == AuditRecommendation.BLOCKED
        assert results[0].url == "https://example.com/a"

    @pytest.mark.asyncio
    async def test_progress_stream(self, make_client, site):
        urls = [f"https://example.com/p{i}" for i in range(3)]

        async with make_client(site) as client:
            stream = _engine(client, concurrency=2).stream(urls)
            statuses = [progress.status async for progress in stream]

        assert statuses[-1] == AuditStatus.COMPLETED
        assert len(statuses) == 5
        assert len(stream.results) == 3

    @pytest.mark.asyncio
    async def test_module_level_function(self, make_client, site):
        async with make_client(site) as client:
            results = await process_url_batch(
                ["https://example.com/a", "https://example.com/s/404"],
                concurrency=1,
                client=client,
                inter_batch_delay=0,
                check_robots=False,
                check_rate_limit=False,
            )

        assert [r.status for r in results] == [200, 404]


class TestAuditSummary:
    """Tests for summary aggregation."""

    def _result(self, url, status, protections=()):
        analysis = AnalysisResult(
            url=url, final_url=url, status=status, bot_protections=list(protections)
        )
        return build_audit_result(analysis)

    def test_empty(self):
        summary = generate_audit_summary([])

        assert summary.total_urls == 0
        assert summary.average_score == 0
        assert summary.best_entry_points == []
        assert set(summary.recommendation_breakdown.values()) == {0}

    def test_counts_and_average(self):
        cloudflare = BotProtection(BotProtectionType.CLOUDFLARE, ConfidenceLevel.HIGH)
        results = [
            self._result("https://a.com/", 200),
            self._result("https://b.com/", 200, [cloudflare]),
            self._result("https://c.com/", 404),
            self._result("https://d.com/", 301, [cloudflare]),
        ]
        summary = generate_audit_summary(results)

        assert summary.total_urls == 4
        assert summary.accessible_count == 3
        assert summary.blocked_count == 1
        # (100 + 80 + 75) / 3 = 85
        assert summary.average_score == 85
        assert [r.url for r in summary.best_entry_points] == ["https://a.com/", "https://b.com/"]
        assert summary.by_status == {200: 2, 404: 1, 301: 1}
        assert summary.recommendation_breakdown["blocked"] == 1
        assert summary.common_protections == [("cloudflare", 2)]
        assert summary.to_dict()["by_status"] == {"200": 2, "404": 1, "301": 1}

    def test_best_entry_points_capped(self):
        results = [self._result(f"https://site{i}.com/", 200) for i in range(8)]
        assert len(generate_audit_summary(results).best_entry_points) == 5

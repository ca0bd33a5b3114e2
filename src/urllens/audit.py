"""Batch auditing of many URLs.

URLs are analyzed in fixed-size concurrent batches with the same analyzer and
scorer used for single URLs, so a URL scores identically in both modes.
Batches run one after another with a short pause in between, which bounds the
number of in-flight requests to the batch size.
"""

import asyncio
import inspect
import logging
import math
from collections import Counter
from dataclasses import replace
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional, Sequence, Union

import httpx

from urllens.config import AuditLimits, default_limits
from urllens.constants import (
    BEST_ENTRY_POINT_MIN_SCORE,
    EXCELLENT_SCORE_THRESHOLD,
    GOOD_SCORE_THRESHOLD,
    MAX_AUDIT_URLS,
    MAX_BEST_ENTRY_POINTS,
    MAX_COMMON_PROTECTIONS,
    MODERATE_SCORE_THRESHOLD,
)
from urllens.http_client import DEFAULT_HTTP_CONFIG, HttpClientConfig, client_scope
from urllens.models import (
    AnalysisResult,
    AuditProgress,
    AuditRecommendation,
    AuditResult,
    AuditStatus,
    AuditSummary,
)
from urllens.scoring import calculate_score_breakdown, round_half_up
from urllens.url_analyzer import URLAnalyzer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[AuditProgress], Union[None, Awaitable[None]]]

CANCELLED_REASON = "Audit cancelled"


def get_audit_recommendation(score: int, accessible: bool, has_bot_protection: bool) -> AuditRecommendation:
    """Map a score to an audit verdict.

    Inaccessible URLs are always blocked. Below the moderate threshold a URL
    is blocked when bot protection was seen, challenging otherwise.
    """
    if not accessible:
        return AuditRecommendation.BLOCKED
    if score >= EXCELLENT_SCORE_THRESHOLD:
        return AuditRecommendation.BEST_ENTRY_POINT
    if score >= GOOD_SCORE_THRESHOLD:
        return AuditRecommendation.GOOD
    if score >= MODERATE_SCORE_THRESHOLD:
        return AuditRecommendation.MODERATE
    if has_bot_protection:
        return AuditRecommendation.BLOCKED
    return AuditRecommendation.CHALLENGING


def build_audit_result(analysis: AnalysisResult) -> AuditResult:
    """Score an analysis and derive its audit verdict."""
    breakdown = calculate_score_breakdown(analysis)
    accessible = analysis.error is None and 200 <= analysis.status < 400

    blocked_reason = None
    if not accessible:
        blocked_reason = analysis.error or f"HTTP {analysis.status}"

    return AuditResult(
        url=analysis.url,
        final_url=analysis.final_url,
        status=analysis.status,
        accessible=accessible,
        scrape_likelihood_score=breakdown.final_score,
        recommendation=get_audit_recommendation(
            breakdown.final_score, accessible, bool(analysis.bot_protections)
        ),
        redirects=analysis.redirects,
        js_required=analysis.js_required,
        bot_protections=analysis.bot_protections,
        response_time_ms=analysis.response_time_ms,
        content_type=analysis.content_type,
        robots_txt=analysis.robots_txt,
        rate_limit=analysis.rate_limit,
        utm_flow=analysis.utm_flow,
        score_breakdown=breakdown,
        blocked_reason=blocked_reason,
        error=analysis.error,
    )


def failed_audit_result(url: str, reason: str) -> AuditResult:
    """Worst-case result for a URL whose analysis could not complete."""
    return AuditResult(
        url=url,
        final_url=url,
        status=0,
        accessible=False,
        scrape_likelihood_score=0,
        recommendation=AuditRecommendation.BLOCKED,
        blocked_reason=reason,
        error=reason,
    )


class AuditEngine:
    """Runs the URL analyzer over many URLs in bounded concurrent batches."""

    def __init__(
        self,
        limits: AuditLimits = default_limits,
        config: HttpClientConfig = DEFAULT_HTTP_CONFIG,
        client: Optional[httpx.AsyncClient] = None,
        **analyzer_options,
    ):
        """Initialize the engine.

        Args:
            limits: Batch size, timeout, URL cap and inter-batch delay
            config: HTTP client configuration; its timeout is replaced by limits.timeout_seconds
            client: Optional shared AsyncClient
            **analyzer_options: Passed to URLAnalyzer (check_robots, check_rate_limit, rate_limit_delay)
        """
        self.limits = limits
        self.config = replace(config, timeout=limits.timeout_seconds)
        self.client = client
        self.analyzer_options = analyzer_options

    @property
    def max_urls(self) -> int:
        return min(self.limits.max_urls, MAX_AUDIT_URLS)

    async def audit_url(self, url: str, analyzer: URLAnalyzer) -> AuditResult:
        """Analyze and score one URL; any failure becomes a worst-case result."""
        try:
            analysis = await analyzer.analyze(url)
        except Exception as e:
            logger.error(f"Audit of {url} failed: {e}")
            return failed_audit_result(url, str(e) or type(e).__name__)
        return build_audit_result(analysis)

    async def process_url_batch(
        self,
        urls: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
        abort_event: Optional[asyncio.Event] = None,
    ) -> List[AuditResult]:
        """Audit ``urls`` batch by batch.

        Progress is reported before and after every batch (the latter with
        that batch's results) and once more on completion. When
        ``abort_event`` is set, URLs that have not started yet get a
        cancelled result without any request being made.

        Args:
            urls: URLs to audit; anything past the URL cap is dropped
            on_progress: Optional sync or async progress callback
            abort_event: Optional cooperative cancellation signal

        Returns:
            One result per audited URL, sorted by score (highest first)
        """
        urls = list(urls)[:self.max_urls]
        batch_size = max(1, self.limits.concurrency)
        total_batches = math.ceil(len(urls) / batch_size)
        results: List[AuditResult] = []

        async def report(status: AuditStatus, step: str, batch: int, latest: Optional[List[AuditResult]] = None):
            if on_progress is None:
                return
            progress = AuditProgress(
                status=status,
                current_step=step,
                total_urls=len(urls),
                completed_urls=len(results),
                current_batch=batch,
                total_batches=total_batches,
                latest_results=latest or [],
            )
            outcome = on_progress(progress)
            if inspect.isawaitable(outcome):
                await outcome

        def aborted() -> bool:
            return abort_event is not None and abort_event.is_set()

        logger.info(f"Auditing {len(urls)} URL(s) in {total_batches} batch(es) of {batch_size}")

        async with client_scope(self.client, self.config) as http:
            analyzer = URLAnalyzer(config=self.config, client=http, **self.analyzer_options)

            async def run(url: str) -> AuditResult:
                if aborted():
                    return failed_audit_result(url, CANCELLED_REASON)
                return await self.audit_url(url, analyzer)

            for index in range(total_batches):
                start = index * batch_size
                batch = urls[start:start + batch_size]

                if aborted():
                    logger.info(f"Audit aborted before batch {index + 1}/{total_batches}")
                    results.extend(failed_audit_result(url, CANCELLED_REASON) for url in urls[start:])
                    break

                await report(
                    AuditStatus.TESTING,
                    f"Testing batch {index + 1}/{total_batches}",
                    index + 1,
                )

                batch_results = list(await asyncio.gather(*(run(url) for url in batch)))
                results.extend(batch_results)

                await report(
                    AuditStatus.TESTING,
                    f"Tested {len(results)}/{len(urls)} URLs",
                    index + 1,
                    batch_results,
                )

                if index < total_batches - 1 and self.limits.inter_batch_delay > 0:
                    await asyncio.sleep(self.limits.inter_batch_delay)

        results.sort(key=lambda r: r.scrape_likelihood_score, reverse=True)

        if aborted():
            await report(AuditStatus.CANCELLED, "Audit cancelled", total_batches)
        else:
            await report(AuditStatus.COMPLETED, "Audit complete", total_batches)

        logger.info(f"Audit finished: {len(results)} result(s)")
        return results

    def stream(
        self,
        urls: Sequence[str],
        abort_event: Optional[asyncio.Event] = None,
    ) -> "AuditProgressStream":
        """Run an audit and iterate over its progress snapshots."""
        return AuditProgressStream(self, urls, abort_event)


class AuditProgressStream:
    """Async iterator over the progress snapshots of one audit run.

    The sorted results are available on ``results`` once iteration ends.
    """

    _DONE = object()

    def __init__(self, engine: AuditEngine, urls: Sequence[str], abort_event: Optional[asyncio.Event] = None):
        self.engine = engine
        self.urls = list(urls)
        self.abort_event = abort_event
        self.results: Optional[List[AuditResult]] = None

    def __aiter__(self) -> AsyncIterator[AuditProgress]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[AuditProgress]:
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self.engine.process_url_batch(
            self.urls, on_progress=queue.put_nowait, abort_event=self.abort_event
        ))
        task.add_done_callback(lambda _: queue.put_nowait(self._DONE))

        try:
            while True:
                item = await queue.get()
                if item is self._DONE:
                    break
                yield item
            self.results = task.result()
        finally:
            if not task.done():
                task.cancel()


async def process_url_batch(
    urls: Sequence[str],
    concurrency: int = default_limits.concurrency,
    timeout: float = default_limits.timeout_seconds,
    on_progress: Optional[ProgressCallback] = None,
    abort_event: Optional[asyncio.Event] = None,
    client: Optional[httpx.AsyncClient] = None,
    inter_batch_delay: float = default_limits.inter_batch_delay,
    **analyzer_options,
) -> List[AuditResult]:
    """
    Convenience function to audit a list of URLs.

    Args:
        urls: URLs to audit (capped at 500)
        concurrency: URLs per batch
        timeout: Per-request timeout for the main fetch in seconds
        on_progress: Optional progress callback
        abort_event: Optional cooperative cancellation signal
        client: Optional shared AsyncClient
        inter_batch_delay: Pause between batches in seconds
        **analyzer_options: Passed to URLAnalyzer

    Returns:
        Results sorted by score, highest first
    """
    limits = replace(
        default_limits,
        concurrency=concurrency,
        timeout_seconds=timeout,
        inter_batch_delay=inter_batch_delay,
    )
    engine = AuditEngine(limits=limits, client=client, **analyzer_options)
    return await engine.process_url_batch(urls, on_progress=on_progress, abort_event=abort_event)


def generate_audit_summary(results: Iterable[AuditResult]) -> AuditSummary:
    """Aggregate a result list into counts, averages and top entries.

    The average score covers accessible URLs only. Best entry points are
    the first accessible results scoring 80 or more, in list order.

    Args:
        results: Audit results (normally already sorted by score)

    Returns:
        AuditSummary
    """
    results = list(results)
    accessible = [r for r in results if r.accessible]

    average_score = 0
    if accessible:
        average_score = round_half_up(
            sum(r.scrape_likelihood_score for r in accessible) / len(accessible)
        )

    best_entry_points = [
        r for r in accessible if r.scrape_likelihood_score >= BEST_ENTRY_POINT_MIN_SCORE
    ][:MAX_BEST_ENTRY_POINTS]

    by_status = Counter(r.status or 0 for r in results)

    breakdown = {rec.value: 0 for rec in AuditRecommendation}
    for r in results:
        breakdown[r.recommendation.value] += 1

    protections = Counter(p.type.value for r in results for p in r.bot_protections)

    return AuditSummary(
        total_urls=len(results),
        accessible_count=len(accessible),
        blocked_count=len(results) - len(accessible),
        js_required_count=sum(1 for r in results if r.js_required),
        average_score=average_score,
        best_entry_points=best_entry_points,
        by_status=dict(by_status),
        recommendation_breakdown=breakdown,
        common_protections=protections.most_common(MAX_COMMON_PROTECTIONS),
    )

"""Rate-limit detection from a short burst of HEAD requests."""

import asyncio
import logging
import re
import time
from typing import List, Optional, Sequence

import httpx

from urllens.constants import (
    PROBE_TIMEOUT_SECONDS,
    RATE_LIMIT_HEADERS,
    RATE_LIMIT_PROBE_COUNT,
    RATE_LIMIT_PROBE_DELAY_SECONDS,
    RATE_LIMIT_STATUS_CODES,
    IMPLICIT_RATE_LIMIT_MIN_RESPONSES,
    IMPLICIT_RATE_LIMIT_LATENCY_FACTOR,
)
from urllens.http_client import client_scope
from urllens.models import ProbeResponse, RateLimitResult

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r'^\s*([+-]?\d+)')


def _parse_int(value: Optional[str]) -> Optional[int]:
    """Parse the leading integer of a header value ('120, 60' -> 120)."""
    if not value:
        return None
    match = _LEADING_INT_RE.match(value)
    return int(match.group(1)) if match else None


async def detect_rate_limit(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    probe_count: int = RATE_LIMIT_PROBE_COUNT,
    delay: float = RATE_LIMIT_PROBE_DELAY_SECONDS,
    timeout: float = PROBE_TIMEOUT_SECONDS,
) -> RateLimitResult:
    """Probe ``url`` with a burst of HEAD requests and infer rate limiting.

    Failed requests are counted toward ``requests_made`` and do not stop
    the burst.

    Args:
        url: URL to probe
        client: Optional shared AsyncClient
        probe_count: Number of requests in the burst
        delay: Pause between requests in seconds
        timeout: Per-request timeout in seconds

    Returns:
        RateLimitResult for the burst
    """
    responses: List[ProbeResponse] = []
    requests_made = 0

    async with client_scope(client, timeout=timeout) as http:
        for attempt in range(probe_count):
            start = time.perf_counter()
            try:
                response = await http.head(url, timeout=timeout)
            except httpx.HTTPError as e:
                logger.debug(f"Rate-limit probe {attempt + 1} to {url} failed: {e}")
            else:
                responses.append(ProbeResponse(
                    status=response.status_code,
                    headers={k.lower(): v for k, v in response.headers.items()},
                    elapsed_ms=(time.perf_counter() - start) * 1000,
                ))
            requests_made += 1

            if attempt < probe_count - 1 and delay > 0:
                await asyncio.sleep(delay)

    result = analyze_probe_responses(responses, requests_made)
    logger.debug(
        f"Rate-limit probe for {url}: detected={result.detected}, "
        f"{result.requests_succeeded}/{result.requests_made} succeeded"
    )
    return result


def analyze_probe_responses(
    responses: Sequence[ProbeResponse],
    requests_made: Optional[int] = None,
) -> RateLimitResult:
    """Infer rate limiting from recorded probe responses.

    Explicit signals are throttling status codes and rate-limit headers.
    Without them, a doubling of latency in the second half of the burst or
    any failure after the first two requests also counts.

    Args:
        responses: Responses in request order (failed requests excluded)
        requests_made: Total requests attempted, including failures

    Returns:
        RateLimitResult
    """
    result = RateLimitResult(
        requests_made=len(responses) if requests_made is None else requests_made
    )

    for response in responses:
        if 200 <= response.status < 400:
            result.requests_succeeded += 1

        if response.status in RATE_LIMIT_STATUS_CODES:
            result.detected = True

        for header in RATE_LIMIT_HEADERS:
            if response.headers.get(header) and header not in result.headers_found:
                result.headers_found.append(header)
                result.detected = True

        limit = _parse_int(
            response.headers.get('x-ratelimit-limit') or response.headers.get('ratelimit-limit')
        )
        if limit and limit > 0:
            result.estimated_limit = limit

        retry_after = _parse_int(response.headers.get('retry-after'))
        if retry_after is not None:
            result.reset_window_seconds = retry_after

    if not result.detected and len(responses) >= IMPLICIT_RATE_LIMIT_MIN_RESPONSES:
        result.detected = _has_implicit_rate_limit(responses)

    return result


def _has_implicit_rate_limit(responses: Sequence[ProbeResponse]) -> bool:
    half = len(responses) // 2
    first = [r.elapsed_ms for r in responses[:half]]
    second = [r.elapsed_ms for r in responses[half:]]

    first_avg = sum(first) / len(first)
    second_avg = sum(second) / len(second)
    if second_avg > first_avg * IMPLICIT_RATE_LIMIT_LATENCY_FACTOR:
        return True

    return any(r.status >= 400 for r in responses[2:])


def get_rate_limit_summary(result: RateLimitResult) -> str:
    if not result.detected:
        return f"No rate limiting detected after {result.requests_made} test requests."

    parts = ["Rate limiting DETECTED."]

    if result.estimated_limit:
        parts.append(f"Estimated limit: {result.estimated_limit} requests.")

    if result.reset_window_seconds:
        parts.append(f"Reset window: {result.reset_window_seconds} seconds.")

    if result.headers_found:
        parts.append(f"Headers found: {', '.join(result.headers_found)}.")

    parts.append(f"{result.requests_succeeded}/{result.requests_made} test requests succeeded.")

    return " ".join(parts)

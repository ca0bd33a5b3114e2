"""Single-URL scrapability analysis.

Fetches one URL while recording its redirect chain, extracts JavaScript and
bot-protection signals from the response, then gathers the robots.txt
verdict and a rate-limit probe for the final URL side by side.
"""

import asyncio
import logging
import time
from typing import List, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from urllens.constants import RATE_LIMIT_PROBE_DELAY_SECONDS
from urllens.detectors import detect_bot_protections, detect_javascript_hints
from urllens.http_client import DEFAULT_HTTP_CONFIG, HttpClientConfig, client_scope
from urllens.models import AnalysisResult, RateLimitResult, Redirect, RobotsTxtResult
from urllens.outcome import Outcome
from urllens.param_flow import analyze_parameter_flow
from urllens.rate_limit import detect_rate_limit
from urllens.robots import fetch_robots_txt
from urllens.urls import normalize_url

logger = logging.getLogger(__name__)

# Content types whose bodies are never treated as HTML
_NON_HTML_CONTENT_TYPES = (
    'application/json',
    'image/',
    'audio/',
    'video/',
    'font/',
    'application/octet-stream',
    'application/pdf',
    'application/zip',
)


def _normalize_headers(headers: httpx.Headers) -> dict[str, str]:
    """Lower-case header names; repeated headers are joined with ', '."""
    normalized: dict[str, str] = {}
    for key, value in headers.multi_items():
        key = key.lower()
        normalized[key] = f"{normalized[key]}, {value}" if key in normalized else value
    return normalized


def _response_html(response: httpx.Response) -> str:
    """Return the body as text, or '' when it is not parseable as text."""
    content_type = response.headers.get('content-type', '').lower()
    if any(marker in content_type for marker in _NON_HTML_CONTENT_TYPES):
        return ''

    try:
        return response.text
    except (UnicodeDecodeError, LookupError) as e:
        logger.debug(f"Could not decode body of {response.url}: {e}")
        return ''


class URLAnalyzer:
    """Analyzes how difficult a URL is to fetch programmatically."""

    def __init__(
        self,
        config: HttpClientConfig = DEFAULT_HTTP_CONFIG,
        client: Optional[httpx.AsyncClient] = None,
        check_robots: bool = True,
        check_rate_limit: bool = True,
        rate_limit_delay: float = RATE_LIMIT_PROBE_DELAY_SECONDS,
    ):
        """Initialize the analyzer.

        Args:
            config: HTTP client configuration (user agent, timeouts, redirect cap)
            client: Optional shared AsyncClient; a temporary one is used otherwise
            check_robots: Fetch robots.txt for the final URL
            check_rate_limit: Run the rate-limit probe against the final URL
            rate_limit_delay: Pause between rate-limit probe requests
        """
        self.config = config
        self.client = client
        self.check_robots = check_robots
        self.check_rate_limit = check_rate_limit
        self.rate_limit_delay = rate_limit_delay

    async def analyze(self, url: str, include_html: bool = False) -> AnalysisResult:
        """Analyze one URL.

        Network failures are captured in the result (``status=0`` and
        ``error`` set). Only a malformed URL raises.

        Args:
            url: URL with or without a scheme
            include_html: Keep the response body on the result

        Returns:
            AnalysisResult

        Raises:
            InvalidURLError: If the URL cannot be normalized
        """
        original_url = normalize_url(url)

        async with client_scope(self.client, self.config) as http:
            return await self._analyze(http, original_url, include_html)

    async def _analyze(
        self,
        http: httpx.AsyncClient,
        original_url: str,
        include_html: bool,
    ) -> AnalysisResult:
        redirects: List[Redirect] = []
        current_url = original_url
        start = time.perf_counter()

        try:
            response = await self._fetch_following_redirects(http, original_url, redirects)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            if redirects:
                current_url = redirects[-1].to_url
            logger.info(f"Request to {original_url} failed: {e}")
            return AnalysisResult(
                url=original_url,
                final_url=current_url,
                status=0,
                redirects=redirects,
                response_time_ms=(time.perf_counter() - start) * 1000,
                error=str(e) or type(e).__name__,
            )

        response_time_ms = (time.perf_counter() - start) * 1000
        final_url = redirects[-1].to_url if redirects else original_url
        headers = _normalize_headers(response.headers)
        html = _response_html(response)

        soup = BeautifulSoup(html, 'html.parser')
        js_required = detect_javascript_hints(html, soup)
        bot_protections = detect_bot_protections(html, headers)

        robots_txt, rate_limit = await self._auxiliary_signals(http, final_url)

        result = AnalysisResult(
            url=original_url,
            final_url=final_url,
            status=response.status_code,
            redirects=redirects,
            js_required=js_required,
            bot_protections=bot_protections,
            response_time_ms=response_time_ms,
            content_type=headers.get('content-type'),
            headers=headers,
            robots_txt=robots_txt,
            rate_limit=rate_limit,
            html=html if include_html else None,
        )
        result.utm_flow = analyze_parameter_flow(result.redirect_chain)

        logger.info(
            f"Analyzed {original_url}: status={result.status}, "
            f"redirects={len(redirects)}, js_required={js_required}, "
            f"protections={[p.type.value for p in bot_protections]}"
        )
        return result

    async def _fetch_following_redirects(
        self,
        http: httpx.AsyncClient,
        url: str,
        redirects: List[Redirect],
    ) -> httpx.Response:
        """GET ``url``, recording each redirect hop in ``redirects``.

        Raises:
            httpx.TooManyRedirects: If the chain exceeds the redirect cap
        """
        current_url = url

        while True:
            response = await http.get(current_url, timeout=self.config.timeout, follow_redirects=False)

            if not response.is_redirect:
                return response

            if len(redirects) >= self.config.max_redirects:
                raise httpx.TooManyRedirects(
                    f"Exceeded maximum allowed redirects ({self.config.max_redirects})",
                    request=response.request,
                )

            location = urljoin(current_url, response.headers['location'])
            redirects.append(Redirect(current_url, location, response.status_code))
            logger.debug(f"Redirect {response.status_code}: {current_url} -> {location}")
            current_url = location

    async def _auxiliary_signals(
        self,
        http: httpx.AsyncClient,
        final_url: str,
    ) -> tuple[Optional[RobotsTxtResult], Optional[RateLimitResult]]:
        """Run the robots.txt lookup and rate-limit probe concurrently."""
        robots_outcome, rate_limit_outcome = await asyncio.gather(
            self._robots(http, final_url),
            self._rate_limit(http, final_url),
        )
        return robots_outcome.value_or_none(), rate_limit_outcome.value_or_none()

    async def _robots(self, http: httpx.AsyncClient, url: str) -> Outcome[RobotsTxtResult]:
        if not self.check_robots:
            return Outcome.success(None)
        return await Outcome.capture(
            fetch_robots_txt(url, client=http, timeout=self.config.probe_timeout),
            label=f"robots.txt lookup for {url}",
        )

    async def _rate_limit(self, http: httpx.AsyncClient, url: str) -> Outcome[RateLimitResult]:
        if not self.check_rate_limit:
            return Outcome.success(None)
        return await Outcome.capture(
            detect_rate_limit(
                url,
                client=http,
                delay=self.rate_limit_delay,
                timeout=self.config.probe_timeout,
            ),
            label=f"rate-limit probe for {url}",
        )


async def analyze_url(
    url: str,
    include_html: bool = False,
    client: Optional[httpx.AsyncClient] = None,
    config: HttpClientConfig = DEFAULT_HTTP_CONFIG,
    **kwargs,
) -> AnalysisResult:
    """
    Convenience function to analyze a single URL.

    Args:
        url: URL with or without a scheme
        include_html: Keep the response body on the result
        client: Optional shared AsyncClient
        config: HTTP client configuration
        **kwargs: Passed to URLAnalyzer (check_robots, check_rate_limit, rate_limit_delay)

    Returns:
        AnalysisResult
    """
    analyzer = URLAnalyzer(config=config, client=client, **kwargs)
    return await analyzer.analyze(url, include_html=include_html)

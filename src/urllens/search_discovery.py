"""Search-engine fallback for domain discovery.

Uses the Google Custom Search JSON API with a ``site:`` query. The free tier
allows 100 queries per day, so at most three result pages are requested and
quota errors end the search quietly with whatever was collected.
"""

import logging
import math
from typing import Dict, List, Optional, Tuple

import httpx

from urllens.config import settings
from urllens.constants import (
    GOOGLE_SEARCH_ENDPOINT,
    MAX_SEARCH_PAGES,
    SEARCH_RESULTS_PER_PAGE,
    SEARCH_TIMEOUT_SECONDS,
)
from urllens.http_client import client_scope
from urllens.models import SearchDiscoveryResult
from urllens.urls import dedupe_key, extract_domain, normalize_domain

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = (
    "Google Search API not configured. Set GOOGLE_API_KEY and GOOGLE_CSE_ID environment variables."
)
QUOTA_EXCEEDED_MESSAGE = "Google API daily quota exceeded (100 free queries/day)"


class SearchAPIError(Exception):
    """Error payload returned by the search API."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def quota_exceeded(self) -> bool:
        return self.code == 429 or 'quota' in self.message.lower()


def is_google_search_configured() -> bool:
    return bool(settings.google_api_key and settings.google_cse_id)


def is_sitemap_url(url: str) -> bool:
    lower = url.lower()
    return 'sitemap' in lower and (lower.endswith('.xml') or '.xml?' in lower)


def _belongs_to_domain(url: str, domain: str, include_subdomains: bool) -> bool:
    host = extract_domain(url)
    if include_subdomains:
        return host == domain or host.endswith(f".{domain}")
    return host == domain


async def _search(
    http: httpx.AsyncClient,
    query: str,
    start_index: int,
    api_key: str,
    cse_id: str,
) -> Dict:
    """Fetch one page of search results.

    Raises:
        SearchAPIError: If the API responds with an error status
    """
    response = await http.get(
        GOOGLE_SEARCH_ENDPOINT,
        params={
            'key': api_key,
            'cx': cse_id,
            'q': query,
            'start': str(start_index),
            'num': str(SEARCH_RESULTS_PER_PAGE),
        },
        headers={'Accept': 'application/json'},
        timeout=SEARCH_TIMEOUT_SECONDS,
    )

    if not response.is_success:
        try:
            message = response.json().get('error', {}).get('message')
        except ValueError:
            message = None
        raise SearchAPIError(response.status_code, message or f"HTTP {response.status_code}")

    return response.json()


async def discover_urls_from_google(
    domain: str,
    max_results: int = MAX_SEARCH_PAGES * SEARCH_RESULTS_PER_PAGE,
    include_subdomains: bool = True,
    client: Optional[httpx.AsyncClient] = None,
) -> SearchDiscoveryResult:
    """Find indexed pages of ``domain`` through a site: search.

    Args:
        domain: Domain to search for
        max_results: Upper bound on returned URLs
        include_subdomains: Keep results on subdomains of ``domain``
        client: Optional shared AsyncClient

    Returns:
        SearchDiscoveryResult; errors and quota exhaustion are reported on
        the result together with any URLs collected before them
    """
    api_key = settings.google_api_key
    cse_id = settings.google_cse_id
    if not api_key or not cse_id:
        return SearchDiscoveryResult(error=NOT_CONFIGURED_MESSAGE)

    target = normalize_domain(domain)
    query = f"site:{target}" if include_subdomains else f"site:{target} -site:*.{target}"
    pages = min(math.ceil(max_results / SEARCH_RESULTS_PER_PAGE), MAX_SEARCH_PAGES)

    urls: List[str] = []
    total_results = 0

    try:
        async with client_scope(client) as http:
            for page in range(pages):
                data = await _search(
                    http, query, page * SEARCH_RESULTS_PER_PAGE + 1, api_key, cse_id
                )

                if page == 0:
                    try:
                        total_results = int(data.get('searchInformation', {}).get('totalResults', 0))
                    except (TypeError, ValueError):
                        total_results = 0

                items = data.get('items') or []
                for item in items:
                    link = item.get('link')
                    if link and _belongs_to_domain(link, target, include_subdomains):
                        urls.append(link)

                if len(items) < SEARCH_RESULTS_PER_PAGE or len(urls) >= max_results:
                    break
    except SearchAPIError as e:
        if e.quota_exceeded:
            logger.warning(f"Search quota exceeded while discovering {target}")
            return SearchDiscoveryResult(
                urls=urls, total_results=total_results,
                error=QUOTA_EXCEEDED_MESSAGE, quota_exceeded=True,
            )
        logger.warning(f"Search API error for {target}: {e.message}")
        return SearchDiscoveryResult(urls=urls, total_results=total_results, error=e.message)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Search request for {target} failed: {e}")
        return SearchDiscoveryResult(urls=urls, error=str(e) or type(e).__name__)

    seen = set()
    unique = []
    for url in urls:
        key = dedupe_key(url)
        if key not in seen:
            seen.add(key)
            unique.append(url)

    logger.info(f"Search found {len(unique)} URL(s) for {target}")
    return SearchDiscoveryResult(urls=unique[:max_results], total_results=total_results)


async def discover_sitemaps_from_google(
    domain: str,
    client: Optional[httpx.AsyncClient] = None,
) -> Tuple[List[str], Optional[str]]:
    """Search for sitemap documents of ``domain``.

    Returns:
        Tuple of (sitemap URLs, error message or None)
    """
    api_key = settings.google_api_key
    cse_id = settings.google_cse_id
    if not api_key or not cse_id:
        return [], "Google Search API not configured"

    target = normalize_domain(domain)
    query = f"site:{target} (filetype:xml inurl:sitemap OR inurl:sitemap.xml)"

    try:
        async with client_scope(client) as http:
            data = await _search(http, query, 1, api_key, cse_id)
    except SearchAPIError as e:
        return [], e.message
    except (httpx.HTTPError, ValueError) as e:
        return [], str(e) or type(e).__name__

    links = [item.get('link') for item in data.get('items') or []]
    return [link for link in links if link and is_sitemap_url(link)], None

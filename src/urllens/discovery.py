"""Domain discovery: build a candidate URL list for a whole domain.

Stages run in a fixed order (root check, robots.txt sitemaps, standard
sitemap paths, common content paths, search fallback) and each one is
isolated, so a failing stage only loses its own URLs.
"""

import asyncio
import logging
from typing import List, Optional

import httpx

from urllens.config import AuditLimits, default_limits
from urllens.constants import (
    COMMON_PATHS,
    COMMON_PATH_BATCH_SIZE,
    MIN_URLS_BEFORE_SEARCH_FALLBACK,
    SITEMAP_PATHS,
)
from urllens.http_client import DEFAULT_HTTP_CONFIG, HttpClientConfig, client_scope
from urllens.models import (
    DiscoveredURL,
    DiscoverySource,
    DiscoverySourceType,
    DomainDiscoveryResult,
)
from urllens.outcome import Outcome
from urllens.robots import fetch_robots_txt
from urllens.search_discovery import discover_urls_from_google, is_google_search_configured
from urllens.sitemap import SitemapParser
from urllens.urls import dedupe_key, normalize_domain

logger = logging.getLogger(__name__)


def deduplicate_urls(urls: List[DiscoveredURL]) -> List[DiscoveredURL]:
    """Drop later duplicates, treating a trailing slash as insignificant."""
    seen = set()
    unique = []

    for item in urls:
        key = dedupe_key(item.url)
        if key not in seen:
            seen.add(key)
            unique.append(item)

    return unique


class DomainDiscovery:
    """Discovers candidate URLs for a domain from several sources."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        config: HttpClientConfig = DEFAULT_HTTP_CONFIG,
        limits: AuditLimits = default_limits,
        include_common_paths: bool = True,
    ):
        """Initialize discovery.

        Args:
            client: Optional shared AsyncClient
            config: HTTP client configuration
            limits: Audit limits (max URLs per domain, timeout)
            include_common_paths: Probe the fixed list of common content paths
        """
        self.client = client
        self.config = config
        self.limits = limits
        self.include_common_paths = include_common_paths

    async def discover(self, domain: str, max_urls: Optional[int] = None) -> DomainDiscoveryResult:
        """Run all discovery stages for ``domain``.

        Args:
            domain: Domain or URL; scheme, path and trailing slash are ignored
            max_urls: Cap on returned URLs (defaults to limits.max_urls_per_domain)

        Returns:
            DomainDiscoveryResult whose URL list always contains the root URL

        Raises:
            InvalidDomainError: If the domain is not a valid host name
        """
        max_urls = max_urls or self.limits.max_urls_per_domain
        target = normalize_domain(domain)
        base_url = f"https://{target}"
        result = DomainDiscoveryResult(domain=target)
        found: List[DiscoveredURL] = []

        logger.info(f"Discovering URLs for {target}")

        async with client_scope(self.client, self.config) as http:
            await self._check_root(http, base_url, result)

            robots_stage = await Outcome.capture(
                self._robots_sitemaps(http, base_url), label=f"robots.txt sitemap discovery for {target}"
            )
            robots_urls = robots_stage.value_or_none() or []
            if robots_urls:
                result.sources.append(DiscoverySource(
                    DiscoverySourceType.ROBOTS_TXT, f"{base_url}/robots.txt", len(robots_urls)
                ))
                found.extend(robots_urls)

            sitemap_stage = await Outcome.capture(
                self._standard_sitemaps(http, base_url, result), label=f"sitemap discovery for {target}"
            )
            found.extend(sitemap_stage.value_or_none() or [])

            if self.include_common_paths:
                common_stage = await Outcome.capture(
                    self._common_paths(http, base_url), label=f"common path discovery for {target}"
                )
                common_urls = common_stage.value_or_none() or []
                if common_urls:
                    result.sources.append(DiscoverySource(
                        DiscoverySourceType.COMMON_PATH, base_url, len(common_urls)
                    ))
                    found.extend(common_urls)

            if len(found) < MIN_URLS_BEFORE_SEARCH_FALLBACK and is_google_search_configured():
                search_stage = await Outcome.capture(
                    self._search(http, target, max_urls - len(found), result),
                    label=f"search discovery for {target}",
                )
                found.extend(search_stage.value_or_none() or [])

        urls = deduplicate_urls(found)[:max_urls]

        if not any(dedupe_key(item.url) == base_url for item in urls):
            urls.insert(0, DiscoveredURL(base_url, DiscoverySourceType.COMMON_PATH))

        result.discovered_urls = urls
        logger.info(
            f"Discovered {len(urls)} URL(s) for {target} from {len(result.sources)} source(s)"
        )
        return result

    async def _check_root(self, http: httpx.AsyncClient, base_url: str, result: DomainDiscoveryResult) -> None:
        try:
            response = await http.head(
                base_url, timeout=self.limits.timeout_seconds, follow_redirects=True
            )
        except httpx.TimeoutException:
            result.root_blocked_reason = "Timeout"
            return
        except httpx.HTTPError as e:
            result.root_blocked_reason = str(e) or type(e).__name__
            return

        result.root_status = response.status_code
        result.root_accessible = response.is_success
        if not response.is_success:
            result.root_blocked_reason = f"HTTP {response.status_code}"

    async def _robots_sitemaps(self, http: httpx.AsyncClient, base_url: str) -> List[DiscoveredURL]:
        robots = await fetch_robots_txt(base_url, client=http, timeout=self.config.probe_timeout)
        if not robots.sitemaps:
            return []

        parser = SitemapParser(client=http, timeout=self.limits.timeout_seconds)
        urls = []
        for sitemap_url in robots.sitemaps:
            for url in await parser.parse(sitemap_url):
                urls.append(DiscoveredURL(url, DiscoverySourceType.ROBOTS_TXT))
        return urls

    async def _standard_sitemaps(
        self,
        http: httpx.AsyncClient,
        base_url: str,
        result: DomainDiscoveryResult,
    ) -> List[DiscoveredURL]:
        parser = SitemapParser(client=http, timeout=self.limits.timeout_seconds)
        urls = []

        for path in SITEMAP_PATHS:
            sitemap_url = f"{base_url}{path}"
            found = await parser.parse(sitemap_url)
            if not found:
                continue

            source_type = (
                DiscoverySourceType.SITEMAP_INDEX if 'index' in path else DiscoverySourceType.SITEMAP
            )
            result.sources.append(DiscoverySource(source_type, sitemap_url, len(found)))
            urls.extend(DiscoveredURL(url, source_type) for url in found)

        return urls

    async def _common_paths(self, http: httpx.AsyncClient, base_url: str) -> List[DiscoveredURL]:
        urls = []
        paths = list(COMMON_PATHS)

        for i in range(0, len(paths), COMMON_PATH_BATCH_SIZE):
            batch = [f"{base_url}{path}" for path in paths[i:i + COMMON_PATH_BATCH_SIZE]]
            accessible = await asyncio.gather(*(self._is_accessible(http, url) for url in batch))
            urls.extend(
                DiscoveredURL(url, DiscoverySourceType.COMMON_PATH)
                for url, ok in zip(batch, accessible) if ok
            )

        return urls

    async def _is_accessible(self, http: httpx.AsyncClient, url: str) -> bool:
        try:
            response = await http.head(
                url, timeout=self.limits.timeout_seconds / 2, follow_redirects=True
            )
        except httpx.HTTPError as e:
            logger.debug(f"HEAD {url} failed: {e}")
            return False
        return response.is_success

    async def _search(
        self,
        http: httpx.AsyncClient,
        target: str,
        max_results: int,
        result: DomainDiscoveryResult,
    ) -> List[DiscoveredURL]:
        if max_results <= 0:
            return []

        search = await discover_urls_from_google(
            target, max_results=max_results, include_subdomains=True, client=http
        )
        result.search_quota_exceeded = search.quota_exceeded

        if not search.urls:
            return []

        result.sources.append(DiscoverySource(
            DiscoverySourceType.GOOGLE_INDEX,
            f"https://www.google.com/search?q=site:{target}",
            len(search.urls),
        ))
        return [DiscoveredURL(url, DiscoverySourceType.GOOGLE_INDEX) for url in search.urls]


async def discover_domain_urls(
    domain: str,
    max_urls: Optional[int] = None,
    include_common_paths: bool = True,
    client: Optional[httpx.AsyncClient] = None,
    limits: AuditLimits = default_limits,
) -> DomainDiscoveryResult:
    """
    Convenience function to discover URLs for a domain.

    Args:
        domain: Domain to discover
        max_urls: Cap on returned URLs
        include_common_paths: Probe common content paths
        client: Optional shared AsyncClient
        limits: Audit limits

    Returns:
        DomainDiscoveryResult
    """
    discovery = DomainDiscovery(
        client=client, limits=limits, include_common_paths=include_common_paths
    )
    return await discovery.discover(domain, max_urls=max_urls)

"""robots.txt fetching and path-allowance checks."""

import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

import httpx

from urllens.constants import ROBOTS_USER_AGENT, PROBE_TIMEOUT_SECONDS
from urllens.http_client import client_scope
from urllens.models import RobotRule, RobotsTxtResult

logger = logging.getLogger(__name__)


def robots_url_for(url: str) -> str:
    """Return the robots.txt URL for the origin of ``url``."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/robots.txt"


async def fetch_robots_txt(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = PROBE_TIMEOUT_SECONDS,
) -> RobotsTxtResult:
    """Fetch and parse robots.txt for the origin of ``url``.

    A missing document, a non-200 response or a network failure all yield
    ``exists=False, allowed=True``.

    Args:
        url: Any URL on the site; its path is the one checked for allowance
        client: Optional shared AsyncClient
        timeout: Request timeout in seconds

    Returns:
        RobotsTxtResult for the URL's path
    """
    robots_url = robots_url_for(url)

    try:
        async with client_scope(client, timeout=timeout) as http:
            response = await http.get(
                robots_url,
                headers={"User-Agent": ROBOTS_USER_AGENT, "Accept": "text/plain,*/*"},
                timeout=timeout,
                follow_redirects=True,
            )
    except httpx.HTTPError as e:
        logger.info(f"Could not load robots.txt from {robots_url}: {e}")
        return RobotsTxtResult()

    if response.status_code != 200:
        logger.info(f"No robots.txt found at {robots_url} (status: {response.status_code})")
        return RobotsTxtResult()

    content = response.text
    result = parse_robots_txt(content, urlparse(url).path or "/")
    result.raw_content = content
    logger.debug(f"Loaded robots.txt from {robots_url}: {len(result.rules)} group(s)")
    return result


def parse_robots_txt(content: str, path: str = "/") -> RobotsTxtResult:
    """Parse robots.txt content and check whether ``path`` is allowed.

    Args:
        content: Raw robots.txt text
        path: URL path to check against the '*' group

    Returns:
        RobotsTxtResult with exists=True
    """
    rules: List[RobotRule] = []
    sitemaps: List[str] = []
    crawl_delay: Optional[float] = None
    current: Optional[RobotRule] = None

    for line in content.splitlines():
        line = line.strip()

        # Skip comments and empty lines
        if not line or line.startswith('#'):
            continue

        if ':' not in line:
            continue

        directive, value = line.split(':', 1)
        directive = directive.strip().lower()
        value = value.strip()

        if directive == 'user-agent':
            if current is not None:
                rules.append(current)
            current = RobotRule(user_agent=value)
        elif directive == 'disallow':
            if current is not None and value:
                current.disallow.append(value)
        elif directive == 'allow':
            if current is not None and value:
                current.allow.append(value)
        elif directive == 'sitemap':
            if value:
                sitemaps.append(value)
        elif directive == 'crawl-delay':
            try:
                crawl_delay = float(value)
            except ValueError:
                logger.debug(f"Ignoring invalid crawl-delay: {value!r}")

    if current is not None:
        rules.append(current)

    return RobotsTxtResult(
        exists=True,
        allowed=is_path_allowed(rules, path),
        crawl_delay=crawl_delay,
        sitemaps=sitemaps,
        rules=rules,
    )


def is_path_allowed(rules: List[RobotRule], path: str) -> bool:
    """Check ``path`` against the '*' group only.

    The first matching Disallow blocks the path unless a longer Allow
    pattern also matches it.
    """
    wildcard = next((r for r in rules if r.user_agent == '*'), None)
    if wildcard is None:
        return True

    for disallow in wildcard.disallow:
        if matches_path(path, disallow):
            return any(
                matches_path(path, allow) and len(allow) > len(disallow)
                for allow in wildcard.allow
            )

    return True


def matches_path(path: str, pattern: str) -> bool:
    """Match a robots.txt pattern supporting '*' and a trailing '$'."""
    if not pattern:
        return False

    if '*' in pattern:
        anchored = pattern.endswith('$')
        body = pattern[:-1] if anchored else pattern
        regex = '.*'.join(re.escape(part) for part in body.split('*'))
        return re.match(f"^{regex}{'$' if anchored else ''}", path) is not None

    if pattern.endswith('$'):
        return path == pattern[:-1]

    return path.startswith(pattern)


def get_robots_summary(result: RobotsTxtResult) -> str:
    if not result.exists:
        return "No robots.txt found - all paths are allowed by default."

    parts = []
    if result.allowed:
        parts.append("This URL is ALLOWED for crawling.")
    else:
        parts.append("This URL is DISALLOWED for crawling.")

    if result.crawl_delay:
        parts.append(f"Crawl delay: {result.crawl_delay:g} seconds.")

    if result.sitemaps:
        parts.append(f"{len(result.sitemaps)} sitemap(s) found.")

    total_rules = sum(len(r.allow) + len(r.disallow) for r in result.rules)
    parts.append(f"{total_rules} total rules across {len(result.rules)} user-agent(s).")

    return " ".join(parts)

"""Shared HTTP client configuration.

Every component takes an optional ``httpx.AsyncClient``. When none is given
it opens a short-lived one from ``create_client`` so callers that analyze a
single URL do not have to manage a client themselves.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from urllens.constants import (
    DEFAULT_USER_AGENT,
    DEFAULT_TIMEOUT_SECONDS,
    PROBE_TIMEOUT_SECONDS,
    MAX_REDIRECTS,
    DEFAULT_ACCEPT,
    DEFAULT_ACCEPT_LANGUAGE,
)


@dataclass(frozen=True)
class HttpClientConfig:
    """Read-only settings applied to every outbound request."""
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    probe_timeout: float = PROBE_TIMEOUT_SECONDS
    max_redirects: int = MAX_REDIRECTS

    def default_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": DEFAULT_ACCEPT,
            "Accept-Language": DEFAULT_ACCEPT_LANGUAGE,
        }


DEFAULT_HTTP_CONFIG = HttpClientConfig()


def create_client(
    config: HttpClientConfig = DEFAULT_HTTP_CONFIG,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient with browser-like defaults.

    Redirects are not followed automatically; the analyzer walks the chain
    itself so each hop can be recorded.

    Args:
        config: Client configuration
        timeout: Override for the default request timeout
        transport: Optional transport (used by tests)

    Returns:
        Configured httpx.AsyncClient
    """
    return httpx.AsyncClient(
        headers=config.default_headers(),
        timeout=httpx.Timeout(timeout if timeout is not None else config.timeout),
        follow_redirects=False,
        transport=transport,
    )


@asynccontextmanager
async def client_scope(
    client: Optional[httpx.AsyncClient],
    config: HttpClientConfig = DEFAULT_HTTP_CONFIG,
    timeout: Optional[float] = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the given client, or a temporary one that is closed on exit."""
    if client is not None:
        yield client
        return

    async with create_client(config, timeout=timeout) as owned:
        yield owned

"""Shared fixtures: in-process HTTP backends built on httpx.MockTransport."""

from typing import Callable, Dict, Optional, Tuple

import httpx
import pytest

from urllens.http_client import HttpClientConfig, create_client

# Timeouts are irrelevant with a mock transport; keep tests fast
TEST_HTTP_CONFIG = HttpClientConfig(timeout=5.0, probe_timeout=5.0)

CLEAN_HTML = """<!DOCTYPE html>
<html>
<head><title>Plain page</title></head>
<body>
<main>
<h1>Welcome to the example page</h1>
<p>This page is served as static markup. Every paragraph you can read here was
rendered on the server and shipped as ordinary text, so a simple HTTP client
sees the same words a person sees in a browser window.</p>
<p>There is nothing interactive on this page. It lists opening hours, the
postal address of the office and a short history of the company.</p>
</main>
</body>
</html>
"""

Route = Tuple[int, Dict[str, str], str]


def route_handler(routes: Dict[str, Route], default: Optional[Route] = None) -> Callable:
    """Build a MockTransport handler serving fixed responses by URL.

    Keys are full URLs without the query string or 'METHOD url' for a
    method-specific entry. A trailing slash is ignored on both sides, so
    "https://example.com/" also matches a request for the bare origin.
    Unknown URLs get ``default`` or a 404.
    """
    table = {key.rstrip("/"): route for key, route in routes.items()}

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url).split("?")[0].rstrip("/")
        route = table.get(f"{request.method} {url}") or table.get(url) or default
        if route is None:
            return httpx.Response(404, text="not found")
        status, headers, body = route
        return httpx.Response(status, headers=headers, text=body)

    return handler


@pytest.fixture
def make_client():
    """Factory for AsyncClients backed by a MockTransport handler."""
    def factory(handler: Callable) -> httpx.AsyncClient:
        return create_client(TEST_HTTP_CONFIG, transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def clean_html():
    """Server-rendered page with no JavaScript or protection markers."""
    return CLEAN_HTML


@pytest.fixture
def routes():
    """Factory for URL-keyed MockTransport handlers."""
    return route_handler

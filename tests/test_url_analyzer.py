# tests/test_url_analyzer.py
"""Tests for single-URL analysis."""

import httpx
import pytest

from urllens.http_client import HttpClientConfig
from urllens.models import BotProtectionType
from urllens.url_analyzer import URLAnalyzer, analyze_url
from urllens.urls import InvalidURLError

HTML_HEADERS = {"content-type": "text/html; charset=utf-8"}


def _analyzer(client, **kwargs):
    kwargs.setdefault("check_rate_limit", False)
    return URLAnalyzer(client=client, **kwargs)


class TestURLAnalyzer:
    """Test suite for URLAnalyzer."""

    @pytest.mark.asyncio
    async def test_direct_page(self, make_client, routes, clean_html):
        handler = routes({
            "https://example.com/": (200, HTML_HEADERS, clean_html),
        })

        async with make_client(handler) as client:
            result = await _analyzer(client).analyze("example.com")

        assert result.url == "https://example.com"
        assert result.final_url == "https://example.com"
        assert result.status == 200
        assert result.redirects == []
        assert result.js_required is False
        assert result.bot_protections == []
        assert result.content_type == "text/html; charset=utf-8"
        assert result.error is None
        assert result.html is None
        assert result.response_time_ms >= 0

    @pytest.mark.asyncio
    async def test_redirect_chain_recorded(self, make_client, routes, clean_html):
        handler = routes({
            "https://example.com/old": (301, {"location": "/middle"}, ""),
            "https://example.com/middle": (302, {"location": "https://www.example.com/new"}, ""),
            "https://www.example.com/new": (200, HTML_HEADERS, clean_html),
        })

        async with make_client(handler) as client:
            result = await _analyzer(client).analyze("https://example.com/old")

        assert [(r.from_url, r.to_url, r.status) for r in result.redirects] == [
            ("https://example.com/old", "https://example.com/middle", 301),
            ("https://example.com/middle", "https://www.example.com/new", 302),
        ]
        assert result.final_url == "https://www.example.com/new"
        assert result.redirect_chain == [
            "https://example.com/old",
            "https://example.com/middle",
            "https://www.example.com/new",
        ]

    @pytest.mark.asyncio
    async def test_redirect_cap(self, make_client):
        def handler(request):
            step = int(request.url.path.strip("/") or 0)
            return httpx.Response(302, headers={"location": f"/{step + 1}"})

        config = HttpClientConfig(max_redirects=3)
        async with make_client(handler) as client:
            result = await _analyzer(client, config=config).analyze("https://loop.example.com/0")

        assert result.status == 0
        assert result.error is not None
        assert len(result.redirects) == 3
        assert result.final_url == "https://loop.example.com/3"

    @pytest.mark.asyncio
    async def test_network_error_is_captured(self, make_client):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        async with make_client(handler) as client:
            result = await _analyzer(client).analyze("https://down.example.com")

        assert result.status == 0
        assert result.error == "Name or service not known"
        assert result.robots_txt is None
        assert result.rate_limit is None

    @pytest.mark.asyncio
    async def test_invalid_url_raises(self, make_client):
        async with make_client(lambda request: httpx.Response(200)) as client:
            with pytest.raises(InvalidURLError):
                await _analyzer(client).analyze("   ")

    @pytest.mark.asyncio
    async def test_bot_protection_and_robots(self, make_client, routes, clean_html):
        headers = dict(HTML_HEADERS, server="cloudflare", **{"cf-ray": "8a1b2c"})
        handler = routes({
            "https://shop.example.com/item": (200, headers, clean_html),
            "https://shop.example.com/robots.txt": (200, {}, "User-agent: *\nDisallow: /item\n"),
        })

        async with make_client(handler) as client:
            result = await _analyzer(client).analyze("https://shop.example.com/item")

        assert [p.type for p in result.bot_protections] == [BotProtectionType.CLOUDFLARE]
        assert result.robots_txt.exists
        assert result.robots_txt.allowed is False
        assert result.headers["cf-ray"] == "8a1b2c"

    @pytest.mark.asyncio
    async def test_json_body_is_not_html(self, make_client, routes):
        handler = routes({
            "https://api.example.com/v1": (200, {"content-type": "application/json"}, '{"vue": 1}'),
        })

        async with make_client(handler) as client:
            result = await _analyzer(client, check_robots=False).analyze(
                "https://api.example.com/v1", include_html=True
            )

        assert result.html == ""
        # An empty body reads as an empty app shell
        assert result.js_required is True

    @pytest.mark.asyncio
    async def test_include_html(self, make_client, routes, clean_html):
        handler = routes({"https://example.com/": (200, HTML_HEADERS, clean_html)})

        async with make_client(handler) as client:
            result = await _analyzer(client, check_robots=False).analyze(
                "https://example.com/", include_html=True
            )

        assert result.html == clean_html
        assert "html" in result.to_dict()

    @pytest.mark.asyncio
    async def test_auxiliary_failure_does_not_abort(self, make_client, clean_html):
        def handler(request):
            if request.url.path == "/robots.txt":
                raise RuntimeError("robots exploded")
            return httpx.Response(200, headers=HTML_HEADERS, text=clean_html)

        async with make_client(handler) as client:
            result = await _analyzer(client).analyze("https://example.com/")

        assert result.status == 200
        assert result.robots_txt is None

    @pytest.mark.asyncio
    async def test_rate_limit_probe_runs(self, make_client, clean_html):
        def handler(request):
            if request.method == "HEAD":
                return httpx.Response(429)
            return httpx.Response(200, headers=HTML_HEADERS, text=clean_html)

        async with make_client(handler) as client:
            result = await _analyzer(
                client, check_robots=False, check_rate_limit=True, rate_limit_delay=0
            ).analyze("https://example.com/")

        assert result.rate_limit.detected
        assert result.rate_limit.requests_made == 5

    @pytest.mark.asyncio
    async def test_utm_flow_attached(self, make_client, routes, clean_html):
        handler = routes({
            "https://go.example.com/c": (301, {"location": "https://example.com/landing"}, ""),
            "https://example.com/landing": (200, HTML_HEADERS, clean_html),
        })

        async with make_client(handler) as client:
            result = await _analyzer(client, check_robots=False).analyze(
                "https://go.example.com/c?utm_source=news"
            )

        assert result.utm_flow.has_utm_params
        assert result.utm_flow.utm_preserved is False
        assert result.utm_flow.utm_lost_at == 2

    @pytest.mark.asyncio
    async def test_convenience_function(self, make_client, routes, clean_html):
        handler = routes({"https://example.com/": (200, HTML_HEADERS, clean_html)})

        async with make_client(handler) as client:
            result = await analyze_url(
                "https://example.com/", client=client, check_robots=False, check_rate_limit=False
            )

        assert result.status == 200

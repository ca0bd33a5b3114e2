# tests/test_robots.py
"""Tests for robots.txt parsing and fetching."""

import httpx
import pytest

from urllens.models import RobotRule, RobotsTxtResult
from urllens.robots import (
    fetch_robots_txt,
    get_robots_summary,
    is_path_allowed,
    matches_path,
    parse_robots_txt,
    robots_url_for,
)

ROBOTS_TXT = """# Example robots.txt
User-agent: Googlebot
Disallow: /nogoogle

User-agent: *
Disallow: /private
Allow: /private/public-page
Disallow: /*.pdf$
Crawl-delay: 2.5

Sitemap: https://example.com/sitemap.xml
Sitemap: https://example.com/news-sitemap.xml
"""


class TestMatchesPath:
    """Tests for robots.txt pattern matching."""

    def test_prefix_match(self):
        assert matches_path("/private/file", "/private")
        assert not matches_path("/public", "/private")

    def test_wildcard(self):
        assert matches_path("/shop/item/42", "/shop/*/42")
        assert not matches_path("/blog/item/42", "/shop/*/42")

    def test_end_anchor(self):
        assert matches_path("/exact", "/exact$")
        assert not matches_path("/exact/more", "/exact$")

    def test_wildcard_with_end_anchor(self):
        assert matches_path("/files/report.pdf", "/*.pdf$")
        assert not matches_path("/files/report.pdf?download=1", "/*.pdf$")

    def test_empty_pattern_never_matches(self):
        assert not matches_path("/anything", "")


class TestParseRobotsTxt:
    """Tests for robots.txt parsing."""

    def test_groups_and_directives(self):
        result = parse_robots_txt(ROBOTS_TXT, "/")

        assert result.exists
        assert result.allowed
        assert [r.user_agent for r in result.rules] == ["Googlebot", "*"]
        assert result.rules[1].disallow == ["/private", "/*.pdf$"]
        assert result.rules[1].allow == ["/private/public-page"]
        assert result.crawl_delay == 2.5
        assert result.sitemaps == [
            "https://example.com/sitemap.xml",
            "https://example.com/news-sitemap.xml",
        ]

    def test_disallowed_path(self):
        assert parse_robots_txt(ROBOTS_TXT, "/private/data").allowed is False

    def test_longer_allow_wins(self):
        assert parse_robots_txt(ROBOTS_TXT, "/private/public-page").allowed is True

    def test_only_wildcard_group_is_consulted(self):
        assert parse_robots_txt(ROBOTS_TXT, "/nogoogle").allowed is True

    def test_empty_disallow_allows_everything(self):
        result = parse_robots_txt("User-agent: *\nDisallow:\n", "/anything")
        assert result.allowed
        assert result.rules[0].disallow == []

    def test_rules_before_user_agent_are_ignored(self):
        result = parse_robots_txt("Disallow: /\nUser-agent: *\nAllow: /\n", "/x")
        assert result.allowed
        assert result.rules[0].disallow == []

    def test_invalid_crawl_delay(self):
        result = parse_robots_txt("User-agent: *\nCrawl-delay: soon\n")
        assert result.crawl_delay is None

    def test_no_wildcard_group(self):
        rules = [RobotRule(user_agent="Bingbot", disallow=["/"])]
        assert is_path_allowed(rules, "/anything")


class TestFetchRobotsTxt:
    """Tests for fetching robots.txt over HTTP."""

    def test_robots_url(self):
        assert robots_url_for("https://example.com/a/b?c=1") == "https://example.com/robots.txt"

    @pytest.mark.asyncio
    async def test_fetch_and_check_path(self, make_client):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["ua"] = request.headers["user-agent"]
            return httpx.Response(200, text=ROBOTS_TXT)

        async with make_client(handler) as client:
            result = await fetch_robots_txt("https://example.com/private/x", client=client)

        assert seen["url"] == "https://example.com/robots.txt"
        assert seen["ua"] == "URLLensBot/1.0"
        assert result.exists
        assert result.allowed is False
        assert result.raw_content == ROBOTS_TXT

    @pytest.mark.asyncio
    async def test_missing_robots(self, make_client):
        async with make_client(lambda request: httpx.Response(404)) as client:
            result = await fetch_robots_txt("https://example.com/", client=client)

        assert result.exists is False
        assert result.allowed is True
        assert result.rules == []

    @pytest.mark.asyncio
    async def test_network_error(self, make_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            result = await fetch_robots_txt("https://example.com/", client=client)

        assert result.exists is False
        assert result.allowed is True


class TestRobotsSummary:
    """Tests for the human-readable summary."""

    def test_missing(self):
        assert get_robots_summary(RobotsTxtResult()) == (
            "No robots.txt found - all paths are allowed by default."
        )

    def test_full(self):
        summary = get_robots_summary(parse_robots_txt(ROBOTS_TXT, "/private/x"))

        assert "This URL is DISALLOWED for crawling." in summary
        assert "Crawl delay: 2.5 seconds." in summary
        assert "2 sitemap(s) found." in summary
        assert "4 total rules across 2 user-agent(s)." in summary

# tests/test_urls.py
"""Tests for URL and domain normalization helpers."""

import pytest

from urllens.urls import (
    InvalidDomainError,
    InvalidURLError,
    canonicalize_url,
    dedupe_key,
    extract_domain,
    filter_urls_by_domain,
    get_unique_domains,
    group_urls_by_domain,
    is_valid_url,
    normalize_domain,
    normalize_url,
    validate_urls,
)


class TestNormalizeUrl:
    """Tests for normalize_url."""

    def test_adds_https(self):
        assert normalize_url("example.com/path") == "https://example.com/path"

    def test_keeps_given_form(self):
        assert normalize_url("  http://Example.com/A?b=1  ") == "http://Example.com/A?b=1"

    def test_localhost_and_port(self):
        assert normalize_url("localhost:8080/x") == "https://localhost:8080/x"

    @pytest.mark.parametrize("value", ["", "   ", "ftp://example.com", "https://", "exa mple.com"])
    def test_rejects(self, value):
        with pytest.raises(InvalidURLError):
            normalize_url(value)

    def test_rejects_bad_port(self):
        with pytest.raises(InvalidURLError):
            normalize_url("https://example.com:99999/")

    def test_url_in_query_value(self):
        url = "example.com/go?next=https://other.com"
        assert normalize_url(url) == "https://example.com/go?next=https://other.com"

    @pytest.mark.parametrize("value", ["https://münchen.de/", "https://my_host.example.com/", "bücher.example"])
    def test_accepts_idn_and_underscore_hosts(self, value):
        assert normalize_url(value).startswith("https://")

    @pytest.mark.parametrize("value", ["https://example..com/", "https://-bad-.com/"])
    def test_rejects_malformed_hosts(self, value):
        with pytest.raises(InvalidURLError):
            normalize_url(value)


class TestCanonicalizeUrl:
    """Tests for canonicalize_url."""

    def test_lowercases_and_adds_root_path(self):
        assert canonicalize_url("HTTPS://Example.COM") == "https://example.com/"

    def test_drops_fragment(self):
        assert canonicalize_url("https://example.com/a?x=1#top") == "https://example.com/a?x=1"

    def test_is_valid_url_requires_scheme(self):
        assert is_valid_url("https://example.com/a")
        assert not is_valid_url("example.com/a")
        assert not is_valid_url("")


class TestNormalizeDomain:
    """Tests for normalize_domain."""

    @pytest.mark.parametrize("value,expected", [
        ("example.com", "example.com"),
        ("  Example.COM  ", "example.com"),
        ("https://example.com/", "example.com"),
        ("http://shop.example.com/about/team", "shop.example.com"),
        ("example.com:8443", "example.com:8443"),
        ("https://München.de/", "münchen.de"),
    ])
    def test_normalizes(self, value, expected):
        assert normalize_domain(value) == expected

    @pytest.mark.parametrize("value", ["", "https://", "not a domain", "-bad-.com"])
    def test_rejects(self, value):
        with pytest.raises(InvalidDomainError):
            normalize_domain(value)


class TestUrlCollections:
    """Tests for helpers over URL lists."""

    def test_extract_domain(self):
        assert extract_domain("https://Shop.Example.com/x") == "shop.example.com"
        assert extract_domain("no way") == ""

    def test_dedupe_key(self):
        assert dedupe_key("https://example.com/a/") == dedupe_key("https://example.com/a")

    def test_validate_urls(self):
        valid, invalid = validate_urls(["example.com", "https://a.com/x#frag", "bad url"])

        assert valid == ["https://example.com/", "https://a.com/x"]
        assert invalid == ["bad url"]

    def test_group_urls_by_domain(self):
        groups = group_urls_by_domain([
            "https://b.com/1", "https://a.com/1", "https://b.com/2", "junk here",
        ])

        assert list(groups) == ["b.com", "a.com"]
        assert groups["b.com"] == ["https://b.com/1", "https://b.com/2"]

    def test_filter_urls_by_domain(self):
        urls = ["https://example.com/", "https://blog.example.com/p", "https://notexample.com/"]
        assert filter_urls_by_domain(urls, "example.com") == urls[:2]

    def test_get_unique_domains(self):
        urls = ["https://a.com/1", "https://b.com/", "https://a.com/2"]
        assert get_unique_domains(urls) == ["a.com", "b.com"]

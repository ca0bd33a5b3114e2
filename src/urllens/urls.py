"""URL and domain normalization helpers."""

import logging
import re
from collections import OrderedDict
from typing import Dict, Iterable, List, Tuple
from urllib.parse import urlparse, urlunparse

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r'^https?://', re.IGNORECASE)
_ANY_SCHEME_RE = re.compile(r'^[a-z][a-z0-9+.\-]*://', re.IGNORECASE)
# Checked against the IDNA (punycode) form, so internationalized names pass
_LABEL_RE = re.compile(r'^[a-z0-9_]([a-z0-9_-]*[a-z0-9_])?$', re.IGNORECASE)


class InvalidURLError(ValueError):
    """Raised when a URL string cannot be parsed into an http(s) URL."""


class InvalidDomainError(InvalidURLError):
    """Raised when a domain string is empty or not a valid host name."""


def _host_is_valid(host: str) -> bool:
    if not host:
        return False
    if host == 'localhost':
        return True

    try:
        ascii_host = host.rstrip('.').encode('idna').decode('ascii')
    except UnicodeError:
        return False

    return all(_LABEL_RE.match(label) for label in ascii_host.split('.'))


def normalize_url(url: str) -> str:
    """Default a URL to https:// and validate it.

    The URL is otherwise returned as given, so redirect chains start from
    exactly what the caller asked for.

    Args:
        url: URL with or without a scheme

    Returns:
        URL with an http(s) scheme

    Raises:
        InvalidURLError: If the URL is empty or has no valid host
    """
    if url is None:
        raise InvalidURLError("Invalid URL format")

    candidate = url.strip()
    if not candidate:
        raise InvalidURLError("Invalid URL format")

    if not _SCHEME_RE.match(candidate):
        if _ANY_SCHEME_RE.match(candidate):
            raise InvalidURLError(f"Invalid URL format: {url}")
        candidate = f"https://{candidate}"

    try:
        parsed = urlparse(candidate)
        # Accessing .port validates the port component
        parsed.port
    except ValueError as e:
        raise InvalidURLError(f"Invalid URL format: {url}") from e

    if not _host_is_valid(parsed.hostname or ''):
        raise InvalidURLError(f"Invalid URL format: {url}")

    return candidate


def canonicalize_url(url: str) -> str:
    """Normalize a URL to a canonical form (lower-cased host, '/' path).

    Args:
        url: URL with or without a scheme

    Returns:
        Canonical URL, e.g. 'https://example.com/'

    Raises:
        InvalidURLError: If the URL is malformed
    """
    parsed = urlparse(normalize_url(url))
    path = parsed.path or '/'
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        path,
        parsed.params,
        parsed.query,
        '',
    ))


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a valid host."""
    if not url or not _SCHEME_RE.match(url.strip()):
        return False
    try:
        normalize_url(url)
        return True
    except InvalidURLError:
        return False


def normalize_domain(domain: str) -> str:
    """Reduce user input to a bare host name.

    Strips whitespace, scheme, trailing slashes and any path.

    Args:
        domain: Domain or URL, e.g. 'https://Example.com/about/'

    Returns:
        Lower-cased host, e.g. 'example.com'

    Raises:
        InvalidDomainError: If nothing usable remains
    """
    if domain is None:
        raise InvalidDomainError("Domain is required")

    value = domain.strip().lower()
    value = _SCHEME_RE.sub('', value)
    value = value.rstrip('/')
    value = value.split('/')[0]

    host = value.split(':')[0]
    if not _host_is_valid(host):
        raise InvalidDomainError(f"Invalid domain: {domain!r}")

    return value


def extract_domain(url: str) -> str:
    """Return the host name of a URL, or '' if it cannot be parsed."""
    try:
        return (urlparse(normalize_url(url)).hostname or '').lower()
    except InvalidURLError:
        return ''


def dedupe_key(url: str) -> str:
    """Key used to treat URLs as equal regardless of a trailing slash."""
    return url.rstrip('/')


def validate_urls(urls: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Split URLs into canonical valid ones and rejected inputs.

    Args:
        urls: Raw URL strings

    Returns:
        Tuple of (valid canonical URLs, invalid inputs)
    """
    valid: List[str] = []
    invalid: List[str] = []

    for url in urls:
        try:
            valid.append(canonicalize_url(url))
        except InvalidURLError:
            invalid.append(url)

    return valid, invalid


def group_urls_by_domain(urls: Iterable[str]) -> Dict[str, List[str]]:
    """Group URLs by host name, preserving first-seen domain order."""
    groups: Dict[str, List[str]] = OrderedDict()

    for url in urls:
        domain = extract_domain(url)
        if domain:
            groups.setdefault(domain, []).append(url)

    return dict(groups)


def filter_urls_by_domain(urls: Iterable[str], domain: str) -> List[str]:
    """Keep URLs on ``domain`` or one of its subdomains."""
    target = normalize_domain(domain).split(':')[0]
    kept = []

    for url in urls:
        host = extract_domain(url)
        if host == target or host.endswith(f".{target}"):
            kept.append(url)

    return kept


def get_unique_domains(urls: Iterable[str]) -> List[str]:
    """Return distinct host names in first-seen order."""
    return list(group_urls_by_domain(urls).keys())


def origin_of(url: str) -> str:
    """Return scheme://host[:port] for a URL."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"

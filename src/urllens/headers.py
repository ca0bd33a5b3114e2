"""Response header inspection.

Explains each response header in terms of what it means for scraping, and
derives a simple security-hygiene score from the headers present.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from urllens.models import HeaderInfo
from urllens.scoring import round_half_up

CATEGORY_ORDER = ('security', 'cors', 'caching', 'content', 'server', 'custom', 'other')

UNKNOWN_HEADER_DESCRIPTION = "Custom or non-standard header."


def _always(impact: str) -> Callable[[str], str]:
    return lambda value: impact


@dataclass(frozen=True)
class HeaderDefinition:
    category: str
    description: str
    impact: Callable[[str], str]
    recommendation: Optional[Callable[[str], Optional[str]]] = None


def _frame_options_recommendation(value: str) -> Optional[str]:
    if value.lower() == 'deny':
        return "Page cannot be embedded - may affect scraping via browser automation."
    return None


def _cors_recommendation(value: str) -> Optional[str]:
    if value == '*':
        return "Wide open CORS - easy to scrape via browser-based tools."
    return "Restricted CORS - may need server-side scraping."


def _cache_control_impact(value: str) -> str:
    if 'no-store' in value or 'no-cache' in value:
        return 'negative'
    return 'neutral'


def _cache_control_recommendation(value: str) -> Optional[str]:
    if 'no-store' in value:
        return "Content not cacheable - each request hits the server."
    match = re.search(r'max-age=(\d+)', value)
    if match:
        seconds = int(match.group(1))
        if seconds > 3600:
            return f"Content cached for {round_half_up(seconds / 3600)} hours - good for reducing requests."
    return None


def _content_type_recommendation(value: str) -> Optional[str]:
    if 'application/json' in value:
        return "JSON response - easy to parse."
    if 'text/html' in value:
        return "HTML response - may need DOM parsing."
    return None


def _server_recommendation(value: str) -> Optional[str]:
    lower = value.lower()
    if 'cloudflare' in lower:
        return "Cloudflare detected - may have bot protection."
    if 'nginx' in lower:
        return "Nginx server - generally good performance."
    if 'apache' in lower:
        return "Apache server - widely used, well-documented."
    return None


def _remaining_impact(value: str) -> str:
    match = re.match(r'\s*(-?\d+)', value)
    if match and int(match.group(1)) < 10:
        return 'negative'
    return 'neutral'


HEADER_DEFINITIONS: Dict[str, HeaderDefinition] = {
    # Security
    'strict-transport-security': HeaderDefinition(
        'security', "Forces HTTPS connections, preventing man-in-the-middle attacks.", _always('positive'),
    ),
    'content-security-policy': HeaderDefinition(
        'security', "Controls resources the browser can load, preventing XSS attacks.", _always('positive'),
    ),
    'x-content-type-options': HeaderDefinition(
        'security', "Prevents MIME type sniffing, reducing risk of drive-by downloads.",
        lambda value: 'positive' if value.lower() == 'nosniff' else 'neutral',
    ),
    'x-frame-options': HeaderDefinition(
        'security', "Controls if the page can be embedded in iframes, preventing clickjacking.",
        _always('positive'), _frame_options_recommendation,
    ),
    'x-xss-protection': HeaderDefinition(
        'security', "Legacy XSS filter (deprecated in modern browsers).", _always('neutral'),
    ),
    'referrer-policy': HeaderDefinition(
        'security', "Controls how much referrer information is sent with requests.", _always('neutral'),
    ),
    'permissions-policy': HeaderDefinition(
        'security', "Controls which browser features can be used.", _always('neutral'),
    ),
    'cross-origin-opener-policy': HeaderDefinition(
        'security', "Isolates browsing context for security.", _always('neutral'),
    ),
    'cross-origin-embedder-policy': HeaderDefinition(
        'security', "Requires cross-origin resources to explicitly allow embedding.", _always('neutral'),
    ),
    'cross-origin-resource-policy': HeaderDefinition(
        'security', "Controls how resources can be shared cross-origin.", _always('neutral'),
    ),

    # CORS
    'access-control-allow-origin': HeaderDefinition(
        'cors', "Specifies which origins can access the resource.",
        lambda value: 'positive' if value == '*' else 'neutral', _cors_recommendation,
    ),
    'access-control-allow-methods': HeaderDefinition(
        'cors', "Specifies allowed HTTP methods for CORS requests.", _always('neutral'),
    ),
    'access-control-allow-headers': HeaderDefinition(
        'cors', "Specifies allowed headers for CORS requests.", _always('neutral'),
    ),
    'access-control-expose-headers': HeaderDefinition(
        'cors', "Headers that can be exposed to the client.", _always('neutral'),
    ),
    'access-control-max-age': HeaderDefinition(
        'cors', "How long CORS preflight results can be cached.", _always('neutral'),
    ),

    # Caching
    'cache-control': HeaderDefinition(
        'caching', "Directives for caching mechanisms.", _cache_control_impact, _cache_control_recommendation,
    ),
    'etag': HeaderDefinition(
        'caching', "Unique identifier for a specific version of the resource.", _always('neutral'),
    ),
    'last-modified': HeaderDefinition(
        'caching', "When the resource was last modified.", _always('neutral'),
    ),
    'expires': HeaderDefinition(
        'caching', "Date/time after which the response is stale.", _always('neutral'),
    ),
    'vary': HeaderDefinition(
        'caching', "Headers that affect cache key selection.", _always('neutral'),
    ),
    'age': HeaderDefinition(
        'caching', "Time in seconds the object has been in proxy cache.", _always('info'),
    ),
    'cf-cache-status': HeaderDefinition(
        'caching', "Cloudflare cache status.", _always('info'),
    ),

    # Content
    'content-type': HeaderDefinition(
        'content', "Media type of the resource.", _always('info'), _content_type_recommendation,
    ),
    'content-length': HeaderDefinition(
        'content', "Size of the response body in bytes.", _always('info'),
    ),
    'content-encoding': HeaderDefinition(
        'content', "Compression algorithm used.", _always('info'),
    ),
    'content-language': HeaderDefinition(
        'content', "Language(s) of the content.", _always('info'),
    ),
    'transfer-encoding': HeaderDefinition(
        'content', "How the message body is transferred.", _always('info'),
    ),

    # Server
    'server': HeaderDefinition(
        'server', "Information about the server software.", _always('info'), _server_recommendation,
    ),
    'x-powered-by': HeaderDefinition(
        'server', "Technology stack information (often hidden for security).", _always('info'),
    ),
    'via': HeaderDefinition(
        'server', "Proxy servers the request passed through.", _always('info'),
    ),
    'date': HeaderDefinition(
        'server', "Date and time the response was generated.", _always('info'),
    ),
    'x-akamai-transformed': HeaderDefinition(
        'server', "Akamai CDN transformation applied.", _always('neutral'),
    ),

    # Bot protection and rate limiting
    'cf-ray': HeaderDefinition(
        'security', "Cloudflare Ray ID - indicates Cloudflare protection.", _always('negative'),
        lambda value: "Cloudflare is active - may need to handle challenges.",
    ),
    'x-datadome': HeaderDefinition(
        'security', "DataDome bot protection is active.", _always('negative'),
        lambda value: "DataDome detected - sophisticated bot protection.",
    ),
    'x-ratelimit-limit': HeaderDefinition(
        'security', "Maximum requests allowed in time window.", _always('negative'),
        lambda value: f"Rate limit: {value} requests per window.",
    ),
    'x-ratelimit-remaining': HeaderDefinition(
        'security', "Remaining requests in current window.", _remaining_impact,
    ),
    'x-ratelimit-reset': HeaderDefinition(
        'security', "When the rate limit window resets.", _always('info'),
    ),
    'retry-after': HeaderDefinition(
        'security', "Seconds to wait before retrying.", _always('negative'),
    ),
}

# (header, penalty, finding) applied when the header is absent
MISSING_HEADER_PENALTIES = (
    ('strict-transport-security', 10, "Missing HSTS header"),
    ('content-security-policy', 10, "Missing Content Security Policy"),
    ('x-content-type-options', 5, "Missing X-Content-Type-Options"),
    ('x-frame-options', 5, "Missing X-Frame-Options"),
)

SERVER_HEADER_DETAIL_LENGTH = 20


def analyze_headers(headers: Mapping[str, str]) -> List[HeaderInfo]:
    """
    Describe every response header.

    Known headers get their category, impact and an optional
    recommendation; unknown ``x-`` headers are 'custom', the rest 'other'.

    Args:
        headers: Response headers

    Returns:
        HeaderInfo list ordered by category (security first), input order
        preserved within a category
    """
    results = []

    for name, value in headers.items():
        definition = HEADER_DEFINITIONS.get(name.lower())

        if definition is None:
            category = 'custom' if name.lower().startswith('x-') else 'other'
            results.append(HeaderInfo(name, value, category, UNKNOWN_HEADER_DESCRIPTION, 'info'))
            continue

        recommendation = definition.recommendation(value) if definition.recommendation else None
        results.append(HeaderInfo(
            name=name,
            value=value,
            category=definition.category,
            description=definition.description,
            impact=definition.impact(value),
            recommendation=recommendation,
        ))

    results.sort(key=lambda info: CATEGORY_ORDER.index(info.category))
    return results


def get_headers_security_score(headers: Mapping[str, str]) -> Tuple[int, List[str]]:
    """Score security-header hygiene from 100 down, with the findings behind it.

    Bot-protection headers are reported as findings but cost nothing.

    Returns:
        Tuple of (score in [0, 100], findings)
    """
    lower = {name.lower(): value for name, value in headers.items()}
    findings = []
    score = 100

    for header, penalty, finding in MISSING_HEADER_PENALTIES:
        if not lower.get(header):
            score -= penalty
            findings.append(finding)

    if lower.get('x-powered-by'):
        score -= 5
        findings.append("Server technology exposed via X-Powered-By")

    if len(lower.get('server') or '') > SERVER_HEADER_DETAIL_LENGTH:
        score -= 5
        findings.append("Detailed server information exposed")

    if lower.get('cf-ray'):
        findings.append("Cloudflare protection active")

    if lower.get('x-datadome'):
        findings.append("DataDome bot protection active")

    return max(0, score), findings


def group_headers_by_category(headers: List[HeaderInfo]) -> Dict[str, List[HeaderInfo]]:
    groups: Dict[str, List[HeaderInfo]] = {category: [] for category in CATEGORY_ORDER}
    for header in headers:
        groups[header.category].append(header)
    return groups

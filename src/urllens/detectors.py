"""Signal detectors for fetched pages.

Both detectors are heuristic. Bot-protection signatures are plain data keyed
by ``BotProtectionType``; adding a vendor means adding a table entry.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Tuple

from bs4 import BeautifulSoup

from urllens.constants import (
    ANALYSIS_RATE_LIMIT_HEADERS,
    APP_ROOT_SELECTOR,
    MAX_SCRIPT_TAGS,
    MIN_APP_ROOT_TEXT_LENGTH,
    MIN_BODY_TEXT_LENGTH,
    NOSCRIPT_TEXT_THRESHOLD,
)
from urllens.models import BotProtection, BotProtectionType, ConfidenceLevel

logger = logging.getLogger(__name__)


def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


_ANY_VALUE = re.compile(r'.+')


@dataclass(frozen=True)
class BotSignature:
    """HTML and header patterns identifying one protection vendor."""
    confidence: ConfidenceLevel
    patterns: Tuple[Pattern, ...]
    header_patterns: Tuple[Tuple[str, Pattern], ...] = ()


# Evaluated in insertion order
BOT_PROTECTION_SIGNATURES: Dict[BotProtectionType, BotSignature] = {
    BotProtectionType.CLOUDFLARE: BotSignature(
        confidence=ConfidenceLevel.HIGH,
        patterns=_compile(r'cloudflare', r'cf-ray', r'__cf_bm', r'cdn-cgi', r'challenge-platform'),
        header_patterns=(
            ('server', re.compile(r'cloudflare', re.IGNORECASE)),
            ('cf-ray', _ANY_VALUE),
        ),
    ),
    BotProtectionType.RECAPTCHA: BotSignature(
        confidence=ConfidenceLevel.HIGH,
        patterns=_compile(r'google\.com/recaptcha', r'grecaptcha', r'g-recaptcha', r'recaptcha-token'),
    ),
    BotProtectionType.HCAPTCHA: BotSignature(
        confidence=ConfidenceLevel.HIGH,
        patterns=_compile(r'hcaptcha\.com', r'h-captcha', r'hcaptcha-response'),
    ),
    BotProtectionType.DATADOME: BotSignature(
        confidence=ConfidenceLevel.HIGH,
        patterns=_compile(r'datadome', r'dd\.js', r'datadome\.co'),
        header_patterns=(('x-datadome', _ANY_VALUE),),
    ),
    BotProtectionType.AKAMAI: BotSignature(
        confidence=ConfidenceLevel.MEDIUM,
        patterns=_compile(r'akamai', r'akam/', r'_abck', r'bm_sz'),
        header_patterns=(('x-akamai-transformed', _ANY_VALUE),),
    ),
    BotProtectionType.IMPERVA: BotSignature(
        confidence=ConfidenceLevel.HIGH,
        patterns=_compile(r'imperva', r'incapsula', r'visid_incap', r'incap_ses'),
        header_patterns=(('x-iinfo', _ANY_VALUE),),
    ),
    BotProtectionType.PERIMETERX: BotSignature(
        confidence=ConfidenceLevel.HIGH,
        patterns=_compile(r'perimeterx', r'px\.js', r'_pxhd', r'_px3'),
        header_patterns=(('x-px-cd', _ANY_VALUE),),
    ),
    BotProtectionType.FINGERPRINTING: BotSignature(
        confidence=ConfidenceLevel.MEDIUM,
        patterns=_compile(
            r'fingerprintjs',
            r'fp\.js',
            r'canvas\.toDataURL',
            r'webgl.*fingerprint',
            r'audioContext.*fingerprint',
        ),
    ),
}

# Framework markers, dynamic-content calls and loading placeholders
JS_DETECTION_PATTERNS: Tuple[Pattern, ...] = _compile(
    # SPA frameworks
    r'__NEXT_DATA__',
    r'__NUXT__',
    r'ng-app',
    r'ng-controller',
    r'data-reactroot',
    r'data-react-checksum',
    r'_react',
    r'vue',
    r'svelte',
    # Dynamic content
    r'document\.write',
    r'innerHTML',
    r'window\.onload',
    r'DOMContentLoaded',
    # AJAX/Fetch
    r'XMLHttpRequest',
    r'fetch\s*\(',
    r'axios',
    # State management
    r'redux',
    r'vuex',
    r'mobx',
    # Rendering hints
    r'loading\.\.\.',
    r'skeleton',
    r'placeholder',
    r'lazy-load',
)

_NOSCRIPT_PHRASES = re.compile(
    r'javascript.*required|enable.*javascript|browser.*support', re.IGNORECASE
)
_WHITESPACE = re.compile(r'\s+')


def detect_javascript_hints(html: str, soup: Optional[BeautifulSoup] = None) -> bool:
    """Guess whether a page needs JavaScript to render its content.

    Checks run in order and the first hit wins: a substantial <noscript>
    message, an almost empty body with an empty app root, a framework or
    dynamic-content marker anywhere in the HTML, and finally a high number
    of <script> tags.

    Args:
        html: Raw HTML
        soup: Parsed document, if the caller already has one

    Returns:
        True if the page likely requires JavaScript
    """
    if soup is None:
        soup = BeautifulSoup(html or '', 'html.parser')

    noscript_text = ''.join(tag.get_text() for tag in soup.find_all('noscript')).strip()
    if len(noscript_text) > NOSCRIPT_TEXT_THRESHOLD or _NOSCRIPT_PHRASES.search(noscript_text):
        return True

    body = soup.body
    body_text = _WHITESPACE.sub(' ', body.get_text() if body else '').strip()
    app_root_text = ''.join(el.get_text() for el in soup.select(APP_ROOT_SELECTOR)).strip()
    if len(body_text) < MIN_BODY_TEXT_LENGTH and len(app_root_text) < MIN_APP_ROOT_TEXT_LENGTH:
        return True

    for pattern in JS_DETECTION_PATTERNS:
        if pattern.search(html):
            logger.debug(f"JavaScript marker matched: {pattern.pattern}")
            return True

    return len(soup.find_all('script')) > MAX_SCRIPT_TAGS


def detect_bot_protections(html: str, headers: Dict[str, str]) -> List[BotProtection]:
    """Match page content and headers against the signature table.

    At most one entry is recorded per protection type.

    Args:
        html: Raw HTML (may be empty)
        headers: Response headers with lower-cased names

    Returns:
        Detected protections in signature-table order
    """
    detected: Dict[BotProtectionType, BotProtection] = {}

    for protection_type, signature in BOT_PROTECTION_SIGNATURES.items():
        if protection_type in detected:
            continue

        detail = _match_signature(signature, html, headers)
        if detail is not None:
            detected[protection_type] = BotProtection(protection_type, signature.confidence, detail)

    for header in ANALYSIS_RATE_LIMIT_HEADERS:
        if headers.get(header):
            detected.setdefault(BotProtectionType.RATE_LIMITING, BotProtection(
                BotProtectionType.RATE_LIMITING,
                ConfidenceLevel.MEDIUM,
                f"Rate limit header detected: {header}",
            ))
            break

    return list(detected.values())


def _match_signature(signature: BotSignature, html: str, headers: Dict[str, str]) -> Optional[str]:
    """Return a detail string if the signature matches, else None."""
    for pattern in signature.patterns:
        if pattern.search(html):
            return "Pattern found in page content"

    for header, pattern in signature.header_patterns:
        value = headers.get(header)
        if value and pattern.search(value):
            return f"Detected via {header} header"

    return None

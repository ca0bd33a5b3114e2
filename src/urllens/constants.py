# src/urllens/constants.py
"""Centralized constants for URL Lens.

Fixed tables and limits shared across the analyzer, discovery and audit
modules. For user-configurable values, see config.py and AuditLimits.
"""

# =============================================================================
# HTTP Client Constants
# =============================================================================

# Browser-like user agent sent with every outbound request
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Identifies our own probes in server logs (robots.txt fetches)
ROBOTS_USER_AGENT = "URLLensBot/1.0"

# Timeout for the main page fetch (seconds)
DEFAULT_TIMEOUT_SECONDS = 10.0

# Timeout for robots.txt, rate-limit probes and discovery probes (seconds)
PROBE_TIMEOUT_SECONDS = 5.0

# Maximum redirect hops followed by the main analysis fetch
MAX_REDIRECTS = 10

DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9"


# =============================================================================
# Rate-Limit Probe Constants
# =============================================================================

# Number of HEAD requests in one probe burst
RATE_LIMIT_PROBE_COUNT = 5

# Delay between probe requests (seconds)
RATE_LIMIT_PROBE_DELAY_SECONDS = 0.1

# Minimum responses required for the implicit latency/failure heuristic
IMPLICIT_RATE_LIMIT_MIN_RESPONSES = 3

# Second-half latency must exceed first-half latency by this factor
IMPLICIT_RATE_LIMIT_LATENCY_FACTOR = 2

# Status codes that signal explicit throttling
RATE_LIMIT_STATUS_CODES = (429, 503)

# Header names that indicate rate limiting (lower-cased)
RATE_LIMIT_HEADERS = (
    "x-ratelimit-limit",
    "x-ratelimit-remaining",
    "x-ratelimit-reset",
    "x-rate-limit-limit",
    "x-rate-limit-remaining",
    "x-rate-limit-reset",
    "ratelimit-limit",
    "ratelimit-remaining",
    "ratelimit-reset",
    "retry-after",
    "x-retry-after",
)

# Subset checked on the main analysis response
ANALYSIS_RATE_LIMIT_HEADERS = (
    "x-ratelimit-limit",
    "x-ratelimit-remaining",
    "x-rate-limit-limit",
    "retry-after",
)


# =============================================================================
# URL Parameter Constants
# =============================================================================

UTM_PARAMS = (
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "utm_id",
)

# Click-ID and attribution parameters that are not UTM keys
TRACKING_PARAMS = (
    "fbclid",
    "fb_action_ids",
    "fb_action_types",
    "fb_source",
    "gclid",
    "gclsrc",
    "dclid",
    "msclkid",
    "twclid",
    "ttclid",
    "li_fat_id",
    "ref",
    "source",
    "campaign",
    "medium",
)


# =============================================================================
# JavaScript Detection Constants
# =============================================================================

# Noscript text longer than this suggests the page needs JavaScript
NOSCRIPT_TEXT_THRESHOLD = 50

# Visible body text below this is considered a thin shell
MIN_BODY_TEXT_LENGTH = 200

# App-root container text below this is considered empty
MIN_APP_ROOT_TEXT_LENGTH = 50

# CSS selector for containers that usually hold the rendered app
APP_ROOT_SELECTOR = "main, article, #app, #root, .content"

# More script tags than this suggests a client-rendered page
MAX_SCRIPT_TAGS = 15


# =============================================================================
# Scoring Constants
# =============================================================================

BASE_SCORE = 100

REDIRECT_PENALTY_PER_HOP = 3
MAX_REDIRECT_PENALTY = 15

JS_REQUIRED_PENALTY = 15

MAX_BOT_PROTECTION_PENALTY = 50

# Penalty used when no status-specific entry applies
UNKNOWN_STATUS_PENALTY = 60

# Exact status code penalties take priority over the class buckets
STATUS_CODE_PENALTIES = {
    400: 30,
    401: 25,
    403: 40,
    404: 20,
    405: 25,
    429: 50,
    500: 30,
    502: 35,
    503: 40,
}

# Penalties keyed by the first digit of the status code
STATUS_CLASS_PENALTIES = {
    2: 0,
    3: 5,
    4: 25,
    5: 30,
}

# Score thresholds for recommendation bands
EXCELLENT_SCORE_THRESHOLD = 85
GOOD_SCORE_THRESHOLD = 70
MODERATE_SCORE_THRESHOLD = 50
DIFFICULT_SCORE_THRESHOLD = 30

# Score thresholds for display colors
SUCCESS_COLOR_THRESHOLD = 70
WARNING_COLOR_THRESHOLD = 40


# =============================================================================
# Discovery Constants
# =============================================================================

# Standard sitemap locations probed independently of robots.txt
SITEMAP_PATHS = (
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/sitemap-index.xml",
    "/sitemaps.xml",
)

# Common content paths probed with HEAD requests
COMMON_PATHS = (
    "/about",
    "/about-us",
    "/contact",
    "/contact-us",
    "/blog",
    "/news",
    "/products",
    "/services",
    "/pricing",
    "/faq",
    "/help",
    "/support",
    "/terms",
    "/privacy",
    "/careers",
    "/team",
)

# Number of common-path probes run concurrently
COMMON_PATH_BATCH_SIZE = 5

# Search fallback runs only when fewer URLs than this were found
MIN_URLS_BEFORE_SEARCH_FALLBACK = 10

# Google Custom Search JSON API
GOOGLE_SEARCH_ENDPOINT = "https://www.googleapis.com/customsearch/v1"
SEARCH_RESULTS_PER_PAGE = 10
MAX_SEARCH_PAGES = 3
SEARCH_TIMEOUT_SECONDS = 10.0


# =============================================================================
# Audit Constants
# =============================================================================

# URLs beyond this are silently dropped from an audit
MAX_AUDIT_URLS = 500

MAX_DOMAINS_PER_AUDIT = 5
MAX_URLS_PER_DOMAIN = 100

# URLs analyzed concurrently per batch
DEFAULT_AUDIT_CONCURRENCY = 5

# Pause between batches (seconds)
INTER_BATCH_DELAY_SECONDS = 0.5

# Minimum score for a URL to count as a best entry point
BEST_ENTRY_POINT_MIN_SCORE = 80

MAX_BEST_ENTRY_POINTS = 5
MAX_COMMON_PROTECTIONS = 5

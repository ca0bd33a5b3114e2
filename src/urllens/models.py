"""Data models for URL scrapability analysis."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class BotProtectionType(str, Enum):
    """Known bot-protection middleware families."""
    CLOUDFLARE = "cloudflare"
    RECAPTCHA = "recaptcha"
    HCAPTCHA = "hcaptcha"
    DATADOME = "datadome"
    AKAMAI = "akamai"
    IMPERVA = "imperva"
    PERIMETERX = "perimeterx"
    FINGERPRINTING = "fingerprinting"
    RATE_LIMITING = "rate_limiting"
    UNKNOWN = "unknown"


class ConfidenceLevel(str, Enum):
    """Confidence of a heuristic detection."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Redirect:
    """One hop of a redirect chain."""
    from_url: str
    to_url: str
    status: int

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.from_url, "to": self.to_url, "status": self.status}


@dataclass(frozen=True)
class BotProtection:
    """A detected bot-protection signal."""
    type: BotProtectionType
    confidence: ConfidenceLevel
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "confidence": self.confidence.value,
            "detail": self.detail,
        }


# =============================================================================
# Robots.txt
# =============================================================================

@dataclass
class RobotRule:
    """Allow/disallow patterns for one user-agent group."""
    user_agent: str
    allow: list[str] = field(default_factory=list)
    disallow: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_agent": self.user_agent,
            "allow": list(self.allow),
            "disallow": list(self.disallow),
        }


@dataclass
class RobotsTxtResult:
    """Parsed robots.txt and the verdict for the analyzed path."""
    exists: bool = False
    allowed: bool = True
    crawl_delay: Optional[float] = None
    sitemaps: list[str] = field(default_factory=list)
    rules: list[RobotRule] = field(default_factory=list)
    raw_content: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "exists": self.exists,
            "allowed": self.allowed,
            "crawl_delay": self.crawl_delay,
            "sitemaps": list(self.sitemaps),
            "rules": [r.to_dict() for r in self.rules],
            "raw_content": self.raw_content,
        }


# =============================================================================
# Rate limiting
# =============================================================================

@dataclass
class ProbeResponse:
    """One request of a rate-limit probe burst."""
    status: int
    headers: dict[str, str]
    elapsed_ms: float


@dataclass
class RateLimitResult:
    """Outcome of a rate-limit probe burst."""
    detected: bool = False
    requests_made: int = 0
    requests_succeeded: int = 0
    estimated_limit: Optional[int] = None
    reset_window_seconds: Optional[int] = None
    headers_found: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "detected": self.detected,
            "requests_made": self.requests_made,
            "requests_succeeded": self.requests_succeeded,
            "estimated_limit": self.estimated_limit,
            "reset_window_seconds": self.reset_window_seconds,
            "headers_found": list(self.headers_found),
        }


# =============================================================================
# Parameter flow
# =============================================================================

class ParamChangeType(str, Enum):
    PRESERVED = "preserved"
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class ParameterChange:
    """How one query parameter changed between two URLs."""
    key: str
    change: ParamChangeType
    old_value: Optional[str] = None
    new_value: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "type": self.change.value,
            "old_value": self.old_value,
            "new_value": self.new_value,
        }


@dataclass
class RedirectParameterState:
    """Query parameters observed at one step of a redirect chain."""
    step: int
    url: str
    all_params: dict[str, str] = field(default_factory=dict)
    utm_params: dict[str, str] = field(default_factory=dict)
    changes: list[ParameterChange] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "url": self.url,
            "all_params": dict(self.all_params),
            "utm_params": dict(self.utm_params),
            "changes": [c.to_dict() for c in self.changes],
        }


@dataclass(frozen=True)
class UTMIssue:
    """A problem found while tracking parameters through redirects."""
    severity: IssueSeverity
    message: str
    affected_params: tuple[str, ...] = ()
    step: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "message": self.message,
            "affected_params": list(self.affected_params),
            "step": self.step,
        }


@dataclass
class ParameterFlowResult:
    """Parameter flow across a full redirect chain."""
    has_utm_params: bool = False
    utm_preserved: bool = True
    all_params_preserved: bool = True
    initial_params: dict[str, str] = field(default_factory=dict)
    final_params: dict[str, str] = field(default_factory=dict)
    initial_utm_params: dict[str, str] = field(default_factory=dict)
    final_utm_params: dict[str, str] = field(default_factory=dict)
    parameter_flow: list[RedirectParameterState] = field(default_factory=list)
    params_added: list[str] = field(default_factory=list)
    params_removed: list[str] = field(default_factory=list)
    params_modified: list[str] = field(default_factory=list)
    utm_lost_at: Optional[int] = None
    issues: list[UTMIssue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_utm_params": self.has_utm_params,
            "utm_preserved": self.utm_preserved,
            "all_params_preserved": self.all_params_preserved,
            "initial_params": dict(self.initial_params),
            "final_params": dict(self.final_params),
            "initial_utm_params": dict(self.initial_utm_params),
            "final_utm_params": dict(self.final_utm_params),
            "parameter_flow": [s.to_dict() for s in self.parameter_flow],
            "params_added": list(self.params_added),
            "params_removed": list(self.params_removed),
            "params_modified": list(self.params_modified),
            "utm_lost_at": self.utm_lost_at,
            "issues": [i.to_dict() for i in self.issues],
        }


# =============================================================================
# Analysis and scoring
# =============================================================================

@dataclass
class AnalysisResult:
    """Everything observed while probing one URL."""
    url: str
    final_url: str
    status: int = 0
    redirects: list[Redirect] = field(default_factory=list)
    js_required: bool = False
    bot_protections: list[BotProtection] = field(default_factory=list)
    response_time_ms: float = 0.0
    content_type: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)
    robots_txt: Optional[RobotsTxtResult] = None
    rate_limit: Optional[RateLimitResult] = None
    utm_flow: Optional[ParameterFlowResult] = None
    error: Optional[str] = None
    html: Optional[str] = None

    @property
    def redirect_chain(self) -> list[str]:
        """Original URL, each redirect target, and the final URL."""
        chain = [self.url] + [r.to_url for r in self.redirects]
        if self.final_url and chain[-1] != self.final_url:
            chain.append(self.final_url)
        return chain

    def to_dict(self) -> dict[str, Any]:
        data = {
            "url": self.url,
            "final_url": self.final_url,
            "status": self.status,
            "redirects": [r.to_dict() for r in self.redirects],
            "js_required": self.js_required,
            "bot_protections": [p.to_dict() for p in self.bot_protections],
            "response_time_ms": round(self.response_time_ms, 1),
            "content_type": self.content_type,
            "headers": dict(self.headers),
            "robots_txt": self.robots_txt.to_dict() if self.robots_txt else None,
            "rate_limit": self.rate_limit.to_dict() if self.rate_limit else None,
            "utm_flow": self.utm_flow.to_dict() if self.utm_flow else None,
            "error": self.error,
        }
        if self.html is not None:
            data["html"] = self.html
        return data


class ScoreBand(str, Enum):
    """Recommendation band selected by score thresholds."""
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    DIFFICULT = "difficult"
    VERY_DIFFICULT = "very_difficult"


@dataclass(frozen=True)
class ScoreBreakdown:
    """Penalty-by-penalty derivation of a scrapability score."""
    base_score: int = 100
    status_penalty: int = 0
    redirect_penalty: int = 0
    js_penalty: int = 0
    bot_protection_penalty: int = 0
    final_score: int = 100

    @property
    def total_penalty(self) -> int:
        return (
            self.status_penalty
            + self.redirect_penalty
            + self.js_penalty
            + self.bot_protection_penalty
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "base_score": self.base_score,
            "status_penalty": self.status_penalty,
            "redirect_penalty": self.redirect_penalty,
            "js_penalty": self.js_penalty,
            "bot_protection_penalty": self.bot_protection_penalty,
            "final_score": self.final_score,
        }


@dataclass(frozen=True)
class ScoreResult:
    """Score, band and canned guidance for one analysis."""
    score: int
    band: ScoreBand
    recommendation: str
    breakdown: ScoreBreakdown

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "band": self.band.value,
            "recommendation": self.recommendation,
            "breakdown": self.breakdown.to_dict(),
        }


# =============================================================================
# Discovery
# =============================================================================

class DiscoverySourceType(str, Enum):
    """How a candidate URL was found."""
    ROBOTS_TXT = "robots_txt"
    SITEMAP = "sitemap"
    SITEMAP_INDEX = "sitemap_index"
    COMMON_PATH = "common_path"
    GOOGLE_INDEX = "google_index"


@dataclass(frozen=True)
class DiscoveredURL:
    url: str
    source: DiscoverySourceType

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "source": self.source.value}


@dataclass(frozen=True)
class DiscoverySource:
    """One discovery stage or document and how many URLs it yielded."""
    type: DiscoverySourceType
    url: str
    urls_found: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "url": self.url, "urls_found": self.urls_found}


@dataclass
class DomainDiscoveryResult:
    """Candidate URLs found for a domain."""
    domain: str
    root_accessible: bool = False
    root_status: Optional[int] = None
    root_blocked_reason: Optional[str] = None
    discovered_urls: list[DiscoveredURL] = field(default_factory=list)
    sources: list[DiscoverySource] = field(default_factory=list)
    search_quota_exceeded: bool = False

    @property
    def urls(self) -> list[str]:
        return [d.url for d in self.discovered_urls]

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "root_accessible": self.root_accessible,
            "root_status": self.root_status,
            "root_blocked_reason": self.root_blocked_reason,
            "discovered_urls": [d.to_dict() for d in self.discovered_urls],
            "sources": [s.to_dict() for s in self.sources],
            "search_quota_exceeded": self.search_quota_exceeded,
        }


@dataclass
class SearchDiscoveryResult:
    """URLs returned by the search-engine fallback."""
    urls: list[str] = field(default_factory=list)
    total_results: int = 0
    error: Optional[str] = None
    quota_exceeded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "urls": list(self.urls),
            "total_results": self.total_results,
            "error": self.error,
            "quota_exceeded": self.quota_exceeded,
        }


# =============================================================================
# Audit
# =============================================================================

class AuditRecommendation(str, Enum):
    BEST_ENTRY_POINT = "best_entry_point"
    GOOD = "good"
    MODERATE = "moderate"
    CHALLENGING = "challenging"
    BLOCKED = "blocked"


class AuditStatus(str, Enum):
    PENDING = "pending"
    DISCOVERING = "discovering"
    TESTING = "testing"
    SCORING = "scoring"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class AuditResult:
    """Analysis of one audited URL with its derived verdict."""
    url: str
    final_url: str
    status: int
    accessible: bool
    scrape_likelihood_score: int
    recommendation: AuditRecommendation
    redirects: list[Redirect] = field(default_factory=list)
    js_required: bool = False
    bot_protections: list[BotProtection] = field(default_factory=list)
    response_time_ms: float = 0.0
    content_type: Optional[str] = None
    robots_txt: Optional[RobotsTxtResult] = None
    rate_limit: Optional[RateLimitResult] = None
    utm_flow: Optional[ParameterFlowResult] = None
    score_breakdown: Optional[ScoreBreakdown] = None
    blocked_reason: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "final_url": self.final_url,
            "status": self.status,
            "accessible": self.accessible,
            "scrape_likelihood_score": self.scrape_likelihood_score,
            "recommendation": self.recommendation.value,
            "redirects": [r.to_dict() for r in self.redirects],
            "js_required": self.js_required,
            "bot_protections": [p.to_dict() for p in self.bot_protections],
            "response_time_ms": round(self.response_time_ms, 1),
            "content_type": self.content_type,
            "robots_txt": self.robots_txt.to_dict() if self.robots_txt else None,
            "rate_limit": self.rate_limit.to_dict() if self.rate_limit else None,
            "utm_flow": self.utm_flow.to_dict() if self.utm_flow else None,
            "score_breakdown": self.score_breakdown.to_dict() if self.score_breakdown else None,
            "blocked_reason": self.blocked_reason,
            "error": self.error,
        }


@dataclass
class AuditProgress:
    """Snapshot of a running audit, delivered to progress listeners."""
    status: AuditStatus
    current_step: str
    total_urls: int
    completed_urls: int = 0
    current_batch: int = 0
    total_batches: int = 0
    discovered_urls: int = 0
    latest_results: list[AuditResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def percent_complete(self) -> int:
        if self.total_urls <= 0:
            return 100 if self.status == AuditStatus.COMPLETED else 0
        return math.floor(self.completed_urls / self.total_urls * 100 + 0.5)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "current_step": self.current_step,
            "total_urls": self.total_urls,
            "completed_urls": self.completed_urls,
            "current_batch": self.current_batch,
            "total_batches": self.total_batches,
            "discovered_urls": self.discovered_urls,
            "percent_complete": self.percent_complete,
            "latest_results": [r.to_dict() for r in self.latest_results],
            "error": self.error,
        }


@dataclass
class AuditSummary:
    """Aggregate view over a list of audit results."""
    total_urls: int = 0
    accessible_count: int = 0
    blocked_count: int = 0
    js_required_count: int = 0
    average_score: int = 0
    best_entry_points: list[AuditResult] = field(default_factory=list)
    by_status: dict[int, int] = field(default_factory=dict)
    recommendation_breakdown: dict[str, int] = field(default_factory=dict)
    common_protections: list[tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_urls": self.total_urls,
            "accessible_count": self.accessible_count,
            "blocked_count": self.blocked_count,
            "js_required_count": self.js_required_count,
            "average_score": self.average_score,
            "best_entry_points": [r.url for r in self.best_entry_points],
            "by_status": {str(k): v for k, v in self.by_status.items()},
            "recommendation_breakdown": dict(self.recommendation_breakdown),
            "common_protections": [
                {"name": name, "count": count} for name, count in self.common_protections
            ],
        }


# =============================================================================
# URL lists and headers
# =============================================================================

@dataclass
class URLListParseResult:
    """URLs extracted from user-supplied CSV or free text."""
    urls: list[str] = field(default_factory=list)
    invalid_lines: list[str] = field(default_factory=list)
    duplicates_removed: int = 0
    total_lines: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "urls": list(self.urls),
            "invalid_lines": list(self.invalid_lines),
            "duplicates_removed": self.duplicates_removed,
            "total_lines": self.total_lines,
        }


@dataclass(frozen=True)
class HeaderInfo:
    """One response header with its scraping-relevant explanation."""
    name: str
    value: str
    category: str
    description: str
    impact: str
    recommendation: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "category": self.category,
            "description": self.description,
            "impact": self.impact,
            "recommendation": self.recommendation,
        }

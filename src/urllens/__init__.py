"""URL scrapability analyzer: redirects, bot protection, JavaScript and crawl policy."""

__version__ = "0.1.0"

from urllens.url_analyzer import URLAnalyzer, analyze_url
from urllens.scoring import calculate_score, calculate_score_breakdown, get_recommendation
from urllens.audit import AuditEngine, process_url_batch, generate_audit_summary
from urllens.discovery import DomainDiscovery, discover_domain_urls
from urllens.sitemap import SitemapParser
from urllens.models import (
    AnalysisResult,
    ScoreResult,
    AuditResult,
    AuditProgress,
    AuditSummary,
    DomainDiscoveryResult,
)
from urllens.config import settings, Config, AuditLimits
from urllens.urls import InvalidURLError, InvalidDomainError

__all__ = [
    # Core
    "URLAnalyzer",
    "analyze_url",
    "calculate_score",
    "calculate_score_breakdown",
    "get_recommendation",
    "AuditEngine",
    "process_url_batch",
    "generate_audit_summary",
    "DomainDiscovery",
    "discover_domain_urls",
    "SitemapParser",
    # Models
    "AnalysisResult",
    "ScoreResult",
    "AuditResult",
    "AuditProgress",
    "AuditSummary",
    "DomainDiscoveryResult",
    # Configuration
    "settings",
    "Config",
    "AuditLimits",
    # Errors
    "InvalidURLError",
    "InvalidDomainError",
]

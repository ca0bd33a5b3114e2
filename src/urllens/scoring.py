"""Penalty-based scrapability scoring.

Every function here is pure: the same AnalysisResult always yields the same
breakdown, score and recommendation.
"""

import math
from typing import Dict, Iterable

from urllens.constants import (
    BASE_SCORE,
    STATUS_CODE_PENALTIES,
    STATUS_CLASS_PENALTIES,
    UNKNOWN_STATUS_PENALTY,
    REDIRECT_PENALTY_PER_HOP,
    MAX_REDIRECT_PENALTY,
    JS_REQUIRED_PENALTY,
    MAX_BOT_PROTECTION_PENALTY,
    EXCELLENT_SCORE_THRESHOLD,
    GOOD_SCORE_THRESHOLD,
    MODERATE_SCORE_THRESHOLD,
    DIFFICULT_SCORE_THRESHOLD,
    SUCCESS_COLOR_THRESHOLD,
    WARNING_COLOR_THRESHOLD,
)
from urllens.models import (
    AnalysisResult,
    BotProtection,
    BotProtectionType,
    ConfidenceLevel,
    ScoreBand,
    ScoreBreakdown,
    ScoreResult,
)

BOT_PROTECTION_PENALTIES: Dict[BotProtectionType, int] = {
    BotProtectionType.CLOUDFLARE: 20,
    BotProtectionType.RECAPTCHA: 25,
    BotProtectionType.HCAPTCHA: 25,
    BotProtectionType.DATADOME: 30,
    BotProtectionType.AKAMAI: 25,
    BotProtectionType.IMPERVA: 30,
    BotProtectionType.PERIMETERX: 30,
    BotProtectionType.FINGERPRINTING: 15,
    BotProtectionType.RATE_LIMITING: 10,
    BotProtectionType.UNKNOWN: 15,
}

CONFIDENCE_MULTIPLIERS: Dict[ConfidenceLevel, float] = {
    ConfidenceLevel.LOW: 0.5,
    ConfidenceLevel.MEDIUM: 0.75,
    ConfidenceLevel.HIGH: 1.0,
}

# Checked from the highest threshold down
SCORE_BANDS = (
    (EXCELLENT_SCORE_THRESHOLD, ScoreBand.EXCELLENT),
    (GOOD_SCORE_THRESHOLD, ScoreBand.GOOD),
    (MODERATE_SCORE_THRESHOLD, ScoreBand.MODERATE),
    (DIFFICULT_SCORE_THRESHOLD, ScoreBand.DIFFICULT),
)

RECOMMENDATIONS: Dict[ScoreBand, str] = {
    ScoreBand.EXCELLENT: (
        "Excellent scrapability! This URL should be easy to scrape with basic HTTP requests."
    ),
    ScoreBand.GOOD: (
        "Good scrapability. Standard scraping tools should work, but watch for occasional blocks."
    ),
    ScoreBand.MODERATE: (
        "Moderate scrapability. Consider using headers rotation and request delays. "
        "A headless browser may be needed."
    ),
    ScoreBand.DIFFICULT: (
        "Difficult to scrape. Requires headless browser with stealth plugins, proxy rotation, "
        "and careful rate limiting."
    ),
    ScoreBand.VERY_DIFFICULT: (
        "Very difficult to scrape. Heavy bot protection detected. Consider using specialized "
        "anti-detection tools or residential proxies."
    ),
}

SCORE_LABELS: Dict[ScoreBand, str] = {
    ScoreBand.EXCELLENT: "Excellent",
    ScoreBand.GOOD: "Good",
    ScoreBand.MODERATE: "Moderate",
    ScoreBand.DIFFICULT: "Difficult",
    ScoreBand.VERY_DIFFICULT: "Very Difficult",
}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values."""
    return math.floor(value + 0.5)


def calculate_status_penalty(status: int) -> int:
    """Exact status entries win over the 2xx/3xx/4xx/5xx buckets; anything else is 60."""
    if status in STATUS_CODE_PENALTIES:
        return STATUS_CODE_PENALTIES[status]

    if 200 <= status < 600:
        return STATUS_CLASS_PENALTIES[status // 100]

    return UNKNOWN_STATUS_PENALTY


def calculate_redirect_penalty(redirect_count: int) -> int:
    return min(redirect_count * REDIRECT_PENALTY_PER_HOP, MAX_REDIRECT_PENALTY)


def calculate_bot_protection_penalty(protections: Iterable[BotProtection]) -> int:
    """Sum confidence-scaled penalties per unique protection type, capped at 50."""
    total = 0
    seen = set()

    for protection in protections:
        if protection.type in seen:
            continue
        seen.add(protection.type)

        base = BOT_PROTECTION_PENALTIES.get(
            protection.type, BOT_PROTECTION_PENALTIES[BotProtectionType.UNKNOWN]
        )
        total += round_half_up(base * CONFIDENCE_MULTIPLIERS[protection.confidence])

    return min(total, MAX_BOT_PROTECTION_PENALTY)


def calculate_score_breakdown(result: AnalysisResult) -> ScoreBreakdown:
    """Derive the full penalty breakdown for an analysis.

    Args:
        result: Analysis of one URL

    Returns:
        ScoreBreakdown with final_score clamped to [0, 100]
    """
    status_penalty = calculate_status_penalty(result.status)
    redirect_penalty = calculate_redirect_penalty(len(result.redirects))
    js_penalty = JS_REQUIRED_PENALTY if result.js_required else 0
    bot_penalty = calculate_bot_protection_penalty(result.bot_protections)

    total_penalty = status_penalty + redirect_penalty + js_penalty + bot_penalty
    final_score = max(0, min(100, BASE_SCORE - total_penalty))

    return ScoreBreakdown(
        base_score=BASE_SCORE,
        status_penalty=status_penalty,
        redirect_penalty=redirect_penalty,
        js_penalty=js_penalty,
        bot_protection_penalty=bot_penalty,
        final_score=final_score,
    )


def get_score_band(score: int) -> ScoreBand:
    for threshold, band in SCORE_BANDS:
        if score >= threshold:
            return band
    return ScoreBand.VERY_DIFFICULT


def get_recommendation(score: int) -> str:
    return RECOMMENDATIONS[get_score_band(score)]


def get_score_label(score: int) -> str:
    return SCORE_LABELS[get_score_band(score)]


def get_score_color(score: int) -> str:
    """Display color class for a score: success, warning or error."""
    if score >= SUCCESS_COLOR_THRESHOLD:
        return "success"
    if score >= WARNING_COLOR_THRESHOLD:
        return "warning"
    return "error"


def calculate_score(result: AnalysisResult) -> ScoreResult:
    """Score an analysis and attach the matching recommendation.

    Args:
        result: Analysis of one URL

    Returns:
        ScoreResult with score, band, recommendation text and breakdown
    """
    breakdown = calculate_score_breakdown(result)
    band = get_score_band(breakdown.final_score)

    return ScoreResult(
        score=breakdown.final_score,
        band=band,
        recommendation=RECOMMENDATIONS[band],
        breakdown=breakdown,
    )

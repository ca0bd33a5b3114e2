"""Query parameter tracking through redirect chains.

Follows UTM and click-ID parameters hop by hop so that attribution loss
caused by a redirect can be pinned to the step where it happened.
"""

import logging
from typing import Dict, List, Sequence
from urllib.parse import parse_qsl, urlparse

from urllens.constants import UTM_PARAMS, TRACKING_PARAMS
from urllens.models import (
    IssueSeverity,
    ParamChangeType,
    ParameterChange,
    ParameterFlowResult,
    RedirectParameterState,
    UTMIssue,
)

logger = logging.getLogger(__name__)

_TRACKING_KEYS = frozenset(UTM_PARAMS + TRACKING_PARAMS)


def parse_url_params(url: str) -> Dict[str, str]:
    """Parse a URL's query string into a flat map.

    Repeated keys keep their last value. Unparseable URLs yield an empty map.
    """
    try:
        query = urlparse(url).query
    except ValueError:
        return {}
    return dict(parse_qsl(query, keep_blank_values=True))


def extract_utm_params(params: Dict[str, str]) -> Dict[str, str]:
    return {key: params[key] for key in UTM_PARAMS if key in params}


def extract_tracking_params(params: Dict[str, str]) -> Dict[str, str]:
    """Return UTM keys plus known click-ID keys, matched case-insensitively."""
    return {key: value for key, value in params.items() if key.lower() in _TRACKING_KEYS}


def compare_params(before: Dict[str, str], after: Dict[str, str]) -> List[ParameterChange]:
    """Classify every key of either map as preserved, added, removed or modified.

    Args:
        before: Parameters of the earlier URL
        after: Parameters of the later URL

    Returns:
        One change per key, keys of ``before`` first, then new keys
    """
    changes = []
    keys = list(before) + [key for key in after if key not in before]

    for key in keys:
        if key in before and key not in after:
            changes.append(ParameterChange(key, ParamChangeType.REMOVED, old_value=before[key]))
        elif key not in before:
            changes.append(ParameterChange(key, ParamChangeType.ADDED, new_value=after[key]))
        elif before[key] != after[key]:
            changes.append(ParameterChange(
                key, ParamChangeType.MODIFIED, old_value=before[key], new_value=after[key]
            ))
        else:
            changes.append(ParameterChange(
                key, ParamChangeType.PRESERVED, old_value=before[key], new_value=after[key]
            ))

    return changes


def has_utm_params(params: Dict[str, str]) -> bool:
    return any(key in params for key in UTM_PARAMS)


def are_utm_params_preserved(initial: Dict[str, str], final: Dict[str, str]) -> bool:
    """True when every UTM key of ``initial`` appears in ``final`` with the same value."""
    final_utm = extract_utm_params(final)
    return all(final_utm.get(key) == value for key, value in extract_utm_params(initial).items())


def _keys_with(changes: List[ParameterChange], change_type: ParamChangeType) -> List[str]:
    return [c.key for c in changes if c.change == change_type]


def analyze_parameter_flow(urls: Sequence[str]) -> ParameterFlowResult:
    """Track query parameters across an ordered redirect chain.

    Args:
        urls: Chain of URLs, first = original request, last = terminal URL

    Returns:
        ParameterFlowResult with one state per URL and the derived issues
    """
    if not urls:
        return ParameterFlowResult()

    flow: List[RedirectParameterState] = []
    previous: Dict[str, str] = {}

    for index, url in enumerate(urls):
        current = parse_url_params(url)
        flow.append(RedirectParameterState(
            step=index + 1,
            url=url,
            all_params=current,
            utm_params=extract_utm_params(current),
            changes=[] if index == 0 else compare_params(previous, current),
        ))
        previous = current

    initial = flow[0].all_params
    final = flow[-1].all_params

    # Overall changes compare the first and last step directly
    overall = compare_params(initial, final)
    added = _keys_with(overall, ParamChangeType.ADDED)
    removed = _keys_with(overall, ParamChangeType.REMOVED)
    modified = _keys_with(overall, ParamChangeType.MODIFIED)

    initial_has_utm = has_utm_params(initial)
    utm_lost_at = None
    if initial_has_utm:
        for index in range(1, len(flow)):
            current_utm = flow[index].utm_params
            if any(key not in current_utm for key in flow[index - 1].utm_params):
                utm_lost_at = index + 1
                break

    lost_utm = [key for key in UTM_PARAMS if key in initial and key not in final]
    modified_utm = [
        key for key in UTM_PARAMS
        if key in initial and key in final and initial[key] != final[key]
    ]
    lost_tracking = [key for key in TRACKING_PARAMS if key in initial and key not in final]

    issues: List[UTMIssue] = []
    if lost_utm:
        issues.append(UTMIssue(
            IssueSeverity.ERROR,
            f"UTM parameters lost during redirect: {', '.join(lost_utm)}",
            tuple(lost_utm),
            step=utm_lost_at,
        ))
    if modified_utm:
        issues.append(UTMIssue(
            IssueSeverity.WARNING,
            f"UTM parameters were modified: {', '.join(modified_utm)}",
            tuple(modified_utm),
        ))
    if lost_tracking:
        issues.append(UTMIssue(
            IssueSeverity.WARNING,
            f"Other tracking parameters lost: {', '.join(lost_tracking)}",
            tuple(lost_tracking),
        ))
    if added:
        issues.append(UTMIssue(
            IssueSeverity.INFO,
            f"New parameters added during redirect: {', '.join(added)}",
            tuple(added),
        ))

    if issues:
        logger.debug(f"Parameter flow over {len(urls)} URLs produced {len(issues)} issue(s)")

    return ParameterFlowResult(
        has_utm_params=initial_has_utm,
        utm_preserved=not lost_utm and not modified_utm,
        all_params_preserved=not removed and not modified,
        initial_params=initial,
        final_params=final,
        initial_utm_params=extract_utm_params(initial),
        final_utm_params=extract_utm_params(final),
        parameter_flow=flow,
        params_added=added,
        params_removed=removed,
        params_modified=modified,
        utm_lost_at=utm_lost_at,
        issues=issues,
    )


def format_url_with_params(url: str) -> dict:
    """Split a URL into its base and a list of flagged parameters for display.

    Returns:
        Dict with 'base' and 'params' ({key, value, is_utm} entries)
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return {"base": url, "params": []}

    if not parsed.scheme or not parsed.netloc:
        return {"base": url, "params": []}

    base = f"{parsed.scheme}://{parsed.netloc}{parsed.path}"
    params = [
        {"key": key, "value": value, "is_utm": key.lower() in UTM_PARAMS}
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
    ]
    return {"base": base, "params": params}


def get_utm_analysis_summary(result: ParameterFlowResult) -> str:
    parts = []

    if not result.has_utm_params:
        parts.append("No UTM parameters in initial URL.")
    elif result.utm_preserved:
        parts.append("All UTM parameters preserved through redirects.")
    else:
        parts.append("UTM parameters were lost or modified.")
        if result.utm_lost_at:
            parts.append(f"Lost at step {result.utm_lost_at}.")

    if result.params_removed:
        parts.append(f"{len(result.params_removed)} parameter(s) removed.")
    if result.params_added:
        parts.append(f"{len(result.params_added)} parameter(s) added.")

    return " ".join(parts)

"""Reading URL lists from CSV or pasted text, and writing results back to CSV."""

import csv
import io
import logging
import re
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from urllens.models import URLListParseResult
from urllens.urls import InvalidURLError, canonicalize_url

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS = (',', ';', '\t', '|')
DELIMITER_SAMPLE_LINES = 5
HEADER_KEYWORDS = ('url', 'link', 'website', 'address', 'domain', 'page')

_DOMAIN_LIKE_RE = re.compile(r'^(?:www\.)?[a-zA-Z0-9][-a-zA-Z0-9]*\.[a-zA-Z]{2,}(?:/.*)?$')
_LIST_SPLIT_RE = re.compile(r'[\n,]+')

# (attribute, header) pairs for exported audit results
AUDIT_CSV_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ('url', 'URL'),
    ('final_url', 'Final URL'),
    ('status', 'Status'),
    ('accessible', 'Accessible'),
    ('scrape_likelihood_score', 'Score'),
    ('recommendation', 'Recommendation'),
    ('js_required', 'JS Required'),
    ('response_time_ms', 'Response Time (ms)'),
    ('blocked_reason', 'Blocked Reason'),
)


def _split_lines(content: str) -> List[str]:
    return content.replace('\r\n', '\n').replace('\r', '\n').split('\n')


def detect_delimiter(lines: Sequence[str]) -> str:
    """Pick the delimiter that occurs most often and equally on every sample line.

    Args:
        lines: CSV lines; only the first few non-empty ones are sampled

    Returns:
        One of ',', ';', tab or '|'; ',' when nothing stands out
    """
    sample = [line for line in lines[:DELIMITER_SAMPLE_LINES] if line.strip()]
    best, best_count = ',', 0

    for delimiter in CANDIDATE_DELIMITERS:
        counts = [line.count(delimiter) for line in sample]
        if len(set(counts)) > 1:
            continue
        total = sum(counts)
        if total > best_count:
            best, best_count = delimiter, total

    return best


def is_header_row(line: str) -> bool:
    lower = line.lower()
    return any(keyword in lower for keyword in HEADER_KEYWORDS)


def looks_like_url(value: str) -> bool:
    """Loose check: an http(s) prefix or something shaped like a domain."""
    value = value.strip()
    if value.startswith(('http://', 'https://')):
        return True
    return bool(_DOMAIN_LIKE_RE.match(value))


def _clean(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
        value = value[1:-1]
    return value.strip()


def _to_url(value: str) -> Optional[str]:
    try:
        return canonicalize_url(value)
    except InvalidURLError:
        return None


def extract_url_from_line(line: str, delimiter: str) -> Optional[str]:
    """Return the line itself if it is a single URL, else its first URL-like column."""
    if delimiter not in line and looks_like_url(line):
        return _clean(line)

    try:
        columns = next(csv.reader([line], delimiter=delimiter))
    except csv.Error:
        columns = line.split(delimiter)

    for column in columns:
        column = column.strip()
        if looks_like_url(column):
            return _clean(column)

    return None


class _Collector:
    """Accumulates unique canonical URLs in first-seen order."""

    def __init__(self):
        self.result = URLListParseResult()
        self._seen = set()

    def add(self, url: str) -> None:
        if url in self._seen:
            self.result.duplicates_removed += 1
            return
        self._seen.add(url)
        self.result.urls.append(url)


def parse_csv(content: str) -> URLListParseResult:
    """
    Extract URLs from CSV content.

    The delimiter is detected from the first lines and a header row is
    skipped when it mentions a URL-ish column name. Each remaining line
    contributes the first URL-looking column. URLs are canonicalized and
    deduplicated; lines without a usable URL are listed as invalid.

    Args:
        content: Raw CSV text

    Returns:
        URLListParseResult
    """
    lines = _split_lines(content)
    delimiter = detect_delimiter(lines)
    start = 1 if lines and is_header_row(lines[0]) else 0
    collector = _Collector()

    for raw in lines[start:]:
        line = raw.strip()
        if not line:
            continue
        collector.result.total_lines += 1

        candidate = extract_url_from_line(line, delimiter)
        url = _to_url(candidate) if candidate else None
        if url is None:
            collector.result.invalid_lines.append(line)
            continue
        collector.add(url)

    result = collector.result
    logger.debug(
        f"Parsed CSV: {len(result.urls)} URL(s), {result.duplicates_removed} duplicate(s), "
        f"{len(result.invalid_lines)} invalid line(s)"
    )
    return result


def parse_url_list(text: str) -> URLListParseResult:
    """
    Extract URLs from pasted text separated by newlines, commas or spaces.

    Items that neither parse as a URL nor look like one are ignored rather
    than reported as invalid.

    Args:
        text: Free-form text

    Returns:
        URLListParseResult
    """
    collector = _Collector()
    normalized = text.replace('\r\n', '\n').replace('\r', '\n')

    for item in _LIST_SPLIT_RE.split(normalized):
        item = item.strip()
        if not item:
            continue

        parts = item.split() if 'http' in item and ' ' in item else [item]
        for part in parts:
            part = part.strip()
            if not part:
                continue
            collector.result.total_lines += 1

            url = _to_url(part)
            if url is not None:
                collector.add(url)
            elif looks_like_url(part):
                collector.result.invalid_lines.append(part)

    return collector.result


def escape_csv_field(value: str) -> str:
    """Quote a field containing a comma, newline or double quote."""
    if ',' in value or '\n' in value or '"' in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def _field(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        value = row.get(key)
    else:
        value = getattr(row, key, None)
    if hasattr(value, 'value'):
        value = value.value
    return value


def results_to_csv(
    results: Iterable[Any],
    columns: Sequence[Tuple[str, str]] = AUDIT_CSV_COLUMNS,
) -> str:
    """Render results as CSV text.

    Args:
        results: Mappings or objects exposing the column keys as attributes
        columns: (key, header) pairs in output order

    Returns:
        CSV text with a header row; missing values become empty fields
    """
    buffer = io.StringIO()
    buffer.write(','.join(escape_csv_field(header) for _, header in columns))

    for row in results:
        fields = []
        for key, _ in columns:
            value = _field(row, key)
            fields.append(escape_csv_field('' if value is None else str(value)))
        buffer.write('\n')
        buffer.write(','.join(fields))

    return buffer.getvalue()

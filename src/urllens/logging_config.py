"""Logging setup for the urllens command line.

Reports, JSON and progress lines are printed to stdout, so log records go
to stderr and, optionally, to a file.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Log one line per request at INFO
HTTP_LOGGERS = ('httpx', 'httpcore')


def resolve_log_level(level: Optional[str], fallback: str = "INFO") -> int:
    """Numeric level for a level name; unknown or empty names use ``fallback``."""
    name = (level or '').strip().upper()
    if name not in LOG_LEVELS:
        name = fallback
    return getattr(logging, name)


def setup_logging(
    level: Optional[str] = "INFO",
    log_file: Optional[str] = None,
    format_string: str = DEFAULT_LOG_FORMAT,
) -> None:
    """Configure the root logger.

    Request logging from the HTTP client is kept only at DEBUG.

    Args:
        level: One of LOG_LEVELS (case-insensitive); anything else means INFO
        log_file: Optional log file path; parent directories are created
        format_string: Record format
    """
    numeric_level = resolve_log_level(level)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=numeric_level,
        format=format_string,
        handlers=handlers,
        force=True
    )

    http_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

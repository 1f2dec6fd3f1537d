"""Logging helpers shared by the registry, locator and installer modules.

Keeps structured ``extra`` payloads consistent and makes sure URLs with
embedded credentials or tokens never reach log output.
"""
from __future__ import annotations

import logging
import re
import sys
import time
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from constants import Constants

_SENSITIVE_QUERY_KEYS = re.compile(r"(token|key|secret|password|auth|signature)", re.IGNORECASE)


def configure_logging(level: str = "INFO", logfile: Optional[str] = None, quiet: bool = False) -> None:
    """Configure the root logger once for CLI use.

    Args:
        level: Level name, e.g. "DEBUG".
        logfile: Optional path; when set, records go to the file instead of stderr.
        quiet: Suppress everything below ERROR on the console.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if logfile:
        handler: logging.Handler = logging.FileHandler(logfile, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
    root.addHandler(handler)

    level_value = getattr(logging, str(level).upper(), logging.INFO)
    if quiet and not logfile:
        level_value = max(level_value, logging.ERROR)
    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from this logger would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` dict for structured log records, dropping None values."""
    return {k: v for k, v in fields.items() if v is not None}


def safe_url(url: Optional[str]) -> str:
    """Return the URL with userinfo removed and sensitive query values redacted."""
    if not url:
        return ""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "[REDACTED]"
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    query = urlencode(
        [
            (k, "[REDACTED]" if _SENSITIVE_QUERY_KEYS.search(k) else v)
            for k, v in parse_qsl(parts.query, keep_blank_values=True)
        ]
    )
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)

"""Shared HTTP helpers used by the registry feed loader.

Encapsulates common request/timeout/retry handling so callers avoid
duplicating try/except blocks around requests.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


class HttpError(Exception):
    """Raised when a URL could not be fetched after all retries."""

    def __init__(self, url: str, message: str, status_code: int = 0):
        super().__init__(f"{safe_url(url)}: {message}")
        self.url = url
        self.status_code = status_code


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], bytes]:
    """Perform GET request with timeout and retries, with DEBUG traces.

    Server errors (5xx), timeouts and connection errors are retried with a
    linear backoff; client errors are returned immediately.

    Returns:
        Tuple of (status_code, headers_dict, body). status_code is 0 when every
        attempt failed before a response was received; body then carries the
        last error text.
    """
    safe_target = safe_url(url)
    last_exception = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * attempt)
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1
                        )
                    )
                response = requests.get(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=headers,
                    **kwargs
                )
            except requests.Timeout:
                last_exception = "timeout"
                logger.debug("HTTP timeout (attempt %d): %s", attempt + 1, safe_target)
                continue
            except requests.RequestException as exc:  # includes ConnectionError
                last_exception = str(exc)
                logger.debug("HTTP request exception (attempt %d): %s", attempt + 1, safe_target)
                continue

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    status_code=response.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target
                )
            )
        if response.status_code >= 500:
            last_exception = f"HTTP {response.status_code}"
            continue
        return response.status_code, dict(response.headers), response.content

    message = f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {last_exception}"
    return 0, {}, message.encode("utf-8")


def get_bytes(url: str, *, headers: Optional[Dict[str, str]] = None, **kwargs: Any) -> bytes:
    """Fetch a URL and return the body, raising HttpError on any non-200 outcome."""
    status_code, _, body = robust_get(url, headers=headers, **kwargs)
    if status_code == 200:
        return body
    if status_code == 0:
        raise HttpError(url, body.decode("utf-8", errors="replace"))
    raise HttpError(url, f"unexpected status {status_code}", status_code=status_code)

"""Version comparison between installed servers and the catalog."""

from __future__ import annotations

from typing import Optional

import semantic_version

from locator.parser import is_commit_hash
from locator.tokenizer import DEFAULT_VERSION


def coerce_version(value: Optional[str]) -> Optional[semantic_version.Version]:
    """Best-effort semantic version for registry version strings.

    Tolerates a leading ``v`` and short forms like ``1.2``. Returns None for
    "latest", commit hashes and anything else that is not version-like.
    """
    if not value:
        return None
    text = value.strip()
    if text == DEFAULT_VERSION or is_commit_hash(text):
        return None
    if text[:1] in ("v", "V"):
        text = text[1:]
    if not text[:1].isdigit():
        return None
    try:
        return semantic_version.Version.coerce(text)
    except ValueError:
        return None


def is_update_available(installed: Optional[str], available: Optional[str]) -> bool:
    """True when the catalog offers a strictly newer version than the one installed."""
    current = coerce_version(installed)
    candidate = coerce_version(available)
    if current is None or candidate is None:
        return False
    return candidate > current

"""Shared tokenizer for the ``pkg:<scheme>/<name>@<version>?<params>`` grammar.

Every ecosystem dialect uses the same splitting rules; dialects only decide
which schemes they accept and how parameters are interpreted.
"""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

PKG_PREFIX = "pkg:"
DEFAULT_VERSION = "latest"


@dataclass
class LocatorParts:
    """Structural pieces of a locator before any ecosystem interpretation."""
    source_id: str
    scheme: str
    name: str
    version: str
    params: Dict[str, str] = field(default_factory=dict)


def split_scheme(source_id: str) -> Optional[tuple]:
    """Return (scheme, remainder) for ``pkg:<scheme>/<remainder>``, else None."""
    if not source_id.startswith(PKG_PREFIX):
        return None
    scheme, sep, remainder = source_id[len(PKG_PREFIX):].partition("/")
    if not sep or not scheme:
        return None
    return scheme.lower(), remainder


def parse_params(segment: str) -> Dict[str, str]:
    """Parse ``k=v&k2=v2``; pairs without '=' are skipped, last duplicate wins."""
    params: Dict[str, str] = {}
    for pair in segment.split("&"):
        key, sep, value = pair.partition("=")
        if not sep or not key:
            continue
        params[key] = value
    return params


def split_name_version(segment: str, scoped_names: bool = False) -> tuple:
    """Split ``name@version`` on the first '@' (after a leading scope '@' if allowed)."""
    start = 1 if scoped_names and segment.startswith("@") else 0
    at = segment.find("@", start)
    if at < 0:
        return segment, DEFAULT_VERSION
    return segment[:at], segment[at + 1:] or DEFAULT_VERSION


def tokenize(locator: str, schemes: Iterable[str], scoped_names: bool = False) -> Optional[LocatorParts]:
    """Split a raw (percent-encoded) locator into its structural parts.

    Args:
        locator: Raw locator as found in the registry feed.
        schemes: Schemes accepted by the calling dialect, e.g. ("cargo",).
        scoped_names: Allow names starting with '@' (npm scopes).

    Returns:
        LocatorParts, or None when the prefix is missing, the scheme is not
        accepted or the name is empty.
    """
    if not isinstance(locator, str):
        return None
    source_id = urllib.parse.unquote(locator.strip())
    split = split_scheme(source_id)
    if split is None:
        return None
    scheme, remainder = split
    if scheme not in {s.lower() for s in schemes}:
        return None

    package_version, _, parameters = remainder.partition("?")
    name, version = split_name_version(package_version, scoped_names=scoped_names)
    if not any(ch.isalnum() for ch in name):
        return None

    return LocatorParts(
        source_id=source_id,
        scheme=scheme,
        name=name,
        version=version,
        params=parse_params(parameters),
    )

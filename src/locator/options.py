"""Typed accessors for the ecosystem options carried by a PackageSource.

Call sites go through these helpers instead of indexing ``source.options``
directly, so key names and value conventions live in one place.
"""

from __future__ import annotations

from typing import List, Optional

from constants import Constants

from .models import PackageSource

_TRUE_VALUES = ("true", "1", "yes", "on")


def build_tool(source: PackageSource) -> str:
    """Return the ecosystem marker recorded by the parser."""
    return source.options.get(Constants.BUILD_TOOL_KEY, source.type.value)


def option_value(source: PackageSource, key: str, default: Optional[str] = None) -> Optional[str]:
    """Return a raw option value; empty strings count as absent."""
    value = source.options.get(key)
    if value is None or value == "":
        return default
    return value


def option_flag(source: PackageSource, key: str) -> bool:
    """Interpret an option as a boolean switch (``locked=true``)."""
    value = source.options.get(key)
    return value is not None and value.strip().lower() in _TRUE_VALUES


def option_list(source: PackageSource, key: str) -> List[str]:
    """Interpret an option as a comma separated list, skipping blanks."""
    value = source.options.get(key) or ""
    return [item.strip() for item in value.split(",") if item.strip()]

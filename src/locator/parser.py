"""Package locator parser.

Turns ``pkg:<scheme>/<name>@<version>?<params>`` strings from the registry
feed into InstallationMethod values. Parsing is total: anything that cannot be
understood becomes ``UNKNOWN`` instead of raising, so one bad entry never
aborts a catalog.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Optional, Union

from constants import Constants, Ecosystem
from common.logging_utils import extra_context, is_debug_enabled

from .dialects import DIALECTS, Dialect, get_dialect
from .models import UNKNOWN, GitReference, InstallationMethod, PackageSource
from .tokenizer import LocatorParts, tokenize

logger = logging.getLogger(__name__)

LocatorParser = Callable[[str, Optional[str]], InstallationMethod]

_COMMIT_HASH = re.compile(r"^[0-9a-f]{40}$")


def is_commit_hash(version: str) -> bool:
    """True for a full 40-character lowercase hex revision."""
    return bool(_COMMIT_HASH.match(version))


def infer_git_reference(version: str) -> GitReference:
    """Revision for full commit hashes, tag for everything else."""
    if is_commit_hash(version):
        return GitReference.revision(version)
    return GitReference.tag(version)


def _is_true(value: str) -> bool:
    return value.strip().lower() == "true"


def build_source(parts: LocatorParts, dialect: Dialect, entry_name: Optional[str] = None) -> PackageSource:
    """Interpret tokenized parts with a dialect's vocabulary into a PackageSource."""
    options: Dict[str, str] = {Constants.BUILD_TOOL_KEY: dialect.build_tool}
    repository_url: Optional[str] = None
    git_reference: Optional[GitReference] = None

    for key, value in parts.params.items():
        if key == "repository_url":
            repository_url = value or None
        elif key == "rev":
            if _is_true(value):
                git_reference = GitReference.revision(parts.version)
        elif key == "tag":
            if _is_true(value):
                git_reference = GitReference.tag(parts.version)
        elif key == "branch":
            if _is_true(value):
                git_reference = GitReference.branch(parts.version)
        elif key in Constants.RESERVED_OPTION_KEYS:
            logger.debug("Dropping reserved parameter %r from %s", key, parts.source_id)
        else:
            options[key] = value

    if repository_url is None and dialect.default_repository is not None:
        repository_url = dialect.default_repository(parts)

    if repository_url is not None and git_reference is None:
        git_reference = infer_git_reference(parts.version)

    return PackageSource(
        source_id=parts.source_id,
        type=dialect.source_type,
        pkg_name=parts.name,
        entry_name=entry_name or parts.name,
        version=parts.version,
        repository_url=repository_url,
        git_reference=git_reference,
        options=options,
    )


def parse_with_dialect(locator: str, dialect: Dialect, entry_name: Optional[str] = None) -> InstallationMethod:
    """Parse a locator with one dialect; never raises."""
    try:
        parts = tokenize(locator, dialect.schemes, scoped_names=dialect.scoped_names)
        if parts is None:
            logger.debug("Unrecognized locator for %s: %r", dialect.source_type.value, locator)
            return UNKNOWN
        source = build_source(parts, dialect, entry_name)
        method = dialect.wrap(source, parts)
    except Exception:  # pylint: disable=broad-exception-caught
        # parse is total
        logger.warning("Failed to parse locator %r", locator, exc_info=True)
        return UNKNOWN

    if is_debug_enabled(logger):
        logger.debug(
            "Parsed locator",
            extra=extra_context(
                event="parse",
                component="locator",
                outcome=method.kind.value,
                target=locator,
                ecosystem=dialect.source_type.value,
            )
        )
    return method


def make_parser(dialect: Dialect) -> LocatorParser:
    """Bind a dialect into a ``(locator, entry_name) -> InstallationMethod`` callable."""

    def _parse(locator: str, entry_name: Optional[str] = None) -> InstallationMethod:
        return parse_with_dialect(locator, dialect, entry_name)

    _parse.__name__ = f"parse_{dialect.source_type.value}_package"
    return _parse


PARSERS: Dict[Ecosystem, LocatorParser] = {
    ecosystem: make_parser(dialect) for ecosystem, dialect in DIALECTS.items()
}


def parse(
    locator: str,
    ecosystem: Union[Ecosystem, str, None],
    entry_name: Optional[str] = None,
) -> InstallationMethod:
    """Parse a locator for the given ecosystem tag.

    Args:
        locator: Raw locator string, e.g. "pkg:cargo/ripgrep@14.1.0".
        ecosystem: Ecosystem enum or feed tag ("cargo", "pypi", ...).
        entry_name: Catalog display name recorded on the PackageSource.

    Returns:
        The resolved InstallationMethod, ``UNKNOWN`` when the tag is not
        supported or the locator cannot be parsed.
    """
    if not isinstance(ecosystem, Ecosystem):
        ecosystem = Ecosystem.from_tag(ecosystem)
    dialect = get_dialect(ecosystem)
    if dialect is None:
        return UNKNOWN
    return parse_with_dialect(locator, dialect, entry_name)

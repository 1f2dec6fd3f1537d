"""Per-ecosystem locator dialects.

Each supported ecosystem gets the schemes it accepts, the build-tool marker
stored in ``options`` and a wrap function turning the normalized
PackageSource into an InstallationMethod. The shared splitting rules live in
``locator.tokenizer``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from constants import Ecosystem

from .models import (
    UNKNOWN,
    GitBuild,
    InstallationMethod,
    PackageSource,
    PackageSourceType,
    PrebuiltBinary,
    StandardPackage,
)
from .options import option_value
from .tokenizer import DEFAULT_VERSION, LocatorParts

GITHUB_BASE_URL = "https://github.com"


@dataclass(frozen=True)
class Dialect:
    """Parameter-interpretation table for one ecosystem."""

    source_type: PackageSourceType
    schemes: Tuple[str, ...]
    build_tool: str
    wrap: Callable[[PackageSource, LocatorParts], InstallationMethod]
    scoped_names: bool = False
    default_repository: Optional[Callable[[LocatorParts], Optional[str]]] = None


def _wrap_standard(source: PackageSource, parts: LocatorParts) -> InstallationMethod:
    return StandardPackage(source=source)


def _is_github_slug(name: str) -> bool:
    owner, sep, repo = name.partition("/")
    return bool(sep and owner and repo)


def _github_repository(parts: LocatorParts) -> Optional[str]:
    if parts.scheme == "github" and _is_github_slug(parts.name):
        return f"{GITHUB_BASE_URL}/{parts.name}"
    return None


def _wrap_git(source: PackageSource, parts: LocatorParts) -> InstallationMethod:
    if not source.repository_url:
        return UNKNOWN
    return GitBuild(
        source=source,
        repository_url=source.repository_url,
        git_reference=source.git_reference,
    )


def _wrap_binary(source: PackageSource, parts: LocatorParts) -> InstallationMethod:
    download_url = option_value(source, "download_url")
    if download_url is None and parts.scheme == "github":
        asset = option_value(source, "asset")
        if asset and _is_github_slug(parts.name):
            if source.version == DEFAULT_VERSION:
                download_url = f"{GITHUB_BASE_URL}/{parts.name}/releases/latest/download/{asset}"
            else:
                download_url = (
                    f"{GITHUB_BASE_URL}/{parts.name}/releases/download/{source.version}/{asset}"
                )
    if not download_url:
        return UNKNOWN
    return PrebuiltBinary(source=source, download_url=download_url)


DIALECTS: Dict[Ecosystem, Dialect] = {
    Ecosystem.CARGO: Dialect(PackageSourceType.CARGO, ("cargo",), "cargo", _wrap_standard),
    Ecosystem.NPM: Dialect(PackageSourceType.NPM, ("npm",), "npm", _wrap_standard, scoped_names=True),
    Ecosystem.PIP: Dialect(PackageSourceType.PIP, ("pypi", "pip"), "pip", _wrap_standard),
    Ecosystem.GO: Dialect(PackageSourceType.GO, ("golang", "go"), "go", _wrap_standard),
    Ecosystem.GEM: Dialect(PackageSourceType.GEM, ("gem",), "gem", _wrap_standard),
    Ecosystem.GIT: Dialect(
        PackageSourceType.GIT,
        ("git", "github"),
        "git",
        _wrap_git,
        default_repository=_github_repository,
    ),
    Ecosystem.BINARY: Dialect(PackageSourceType.BINARY, ("generic", "github"), "curl", _wrap_binary),
}


def get_dialect(ecosystem: Optional[Ecosystem]) -> Optional[Dialect]:
    """Return the dialect registered for an ecosystem, or None."""
    if ecosystem is None:
        return None
    return DIALECTS.get(ecosystem)

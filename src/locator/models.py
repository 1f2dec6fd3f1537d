"""Data models for parsed package locators and installation methods."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class PackageSourceType(Enum):
    """Ecosystem a parsed locator belongs to."""
    CARGO = "cargo"
    NPM = "npm"
    PIP = "pip"
    GO = "go"
    GEM = "gem"
    GIT = "git"
    BINARY = "binary"


class GitReferenceKind(Enum):
    """What a git reference points at."""
    REVISION = "revision"
    TAG = "tag"
    BRANCH = "branch"


@dataclass(frozen=True)
class GitReference:
    """A revision hash, tag name or branch name inside a git repository."""
    kind: GitReferenceKind
    value: str

    @classmethod
    def revision(cls, value: str) -> "GitReference":
        return cls(GitReferenceKind.REVISION, value)

    @classmethod
    def tag(cls, value: str) -> "GitReference":
        return cls(GitReferenceKind.TAG, value)

    @classmethod
    def branch(cls, value: str) -> "GitReference":
        return cls(GitReferenceKind.BRANCH, value)


@dataclass(frozen=True)
class PackageSource:
    """Normalized representation of a package locator."""
    source_id: str  # decoded locator string
    type: PackageSourceType
    pkg_name: str
    entry_name: str  # catalog display name; may differ from pkg_name
    version: str  # never empty, "latest" when the locator has none
    repository_url: Optional[str] = None
    git_reference: Optional[GitReference] = None
    options: Dict[str, str] = field(default_factory=dict)


class MethodKind(Enum):
    """Strategy used to obtain a package."""
    STANDARD_PACKAGE = "standard_package"
    GIT_BUILD = "git_build"
    PREBUILT_BINARY = "prebuilt_binary"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class InstallationMethod:
    """Base of the installation method variants; see subclasses."""

    @property
    def kind(self) -> MethodKind:
        raise NotImplementedError

    @property
    def is_unknown(self) -> bool:
        return self.kind is MethodKind.UNKNOWN


@dataclass(frozen=True)
class StandardPackage(InstallationMethod):
    """Install through the ecosystem's own package manager."""
    source: PackageSource

    @property
    def kind(self) -> MethodKind:
        return MethodKind.STANDARD_PACKAGE


@dataclass(frozen=True)
class GitBuild(InstallationMethod):
    """Clone a repository and optionally run a build command in it."""
    source: PackageSource
    repository_url: str
    git_reference: Optional[GitReference]

    @property
    def kind(self) -> MethodKind:
        return MethodKind.GIT_BUILD


@dataclass(frozen=True)
class PrebuiltBinary(InstallationMethod):
    """Download a ready-to-run artifact."""
    source: PackageSource
    download_url: str

    @property
    def kind(self) -> MethodKind:
        return MethodKind.PREBUILT_BINARY


@dataclass(frozen=True)
class UnknownMethod(InstallationMethod):
    """Locator could not be parsed or is not supported."""

    @property
    def kind(self) -> MethodKind:
        return MethodKind.UNKNOWN


UNKNOWN = UnknownMethod()

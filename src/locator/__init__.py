"""Package locator parsing.

- tokenizer.py: shared ``pkg:<scheme>/<name>@<version>?<params>`` splitting
- dialects.py: per-ecosystem schemes, markers and wrap functions
- parser.py: total parse into InstallationMethod values
- options.py: typed accessors for ecosystem options
"""

from .models import (  # noqa: F401
    UNKNOWN,
    GitBuild,
    GitReference,
    GitReferenceKind,
    InstallationMethod,
    MethodKind,
    PackageSource,
    PackageSourceType,
    PrebuiltBinary,
    StandardPackage,
    UnknownMethod,
)
from .parser import PARSERS, make_parser, parse, parse_with_dialect  # noqa: F401

__all__ = [
    "UNKNOWN",
    "GitBuild",
    "GitReference",
    "GitReferenceKind",
    "InstallationMethod",
    "MethodKind",
    "PackageSource",
    "PackageSourceType",
    "PrebuiltBinary",
    "StandardPackage",
    "UnknownMethod",
    "PARSERS",
    "make_parser",
    "parse",
    "parse_with_dialect",
]

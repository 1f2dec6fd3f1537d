"""Data models for registry catalog entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


class InvalidRegistryRecord(ValueError):
    """A feed record is missing required fields or has the wrong shape."""


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value if v is not None)
    return ()


@dataclass(frozen=True)
class RegistryItem:
    """One installable language server as described by the registry feed."""
    name: str
    description: str
    source: str  # raw locator, possibly percent-encoded
    ecosystem: Optional[str] = None
    homepage: Optional[str] = None
    languages: Tuple[str, ...] = ()
    licenses: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryItem":
        """Build an item from a feed record.

        Accepts ``"source": "pkg:..."`` as well as the nested
        ``"source": {"id": "pkg:..."}`` form.

        Raises:
            InvalidRegistryRecord: when name or source is missing.
        """
        if not isinstance(data, dict):
            raise InvalidRegistryRecord(f"expected a mapping, got {type(data).__name__}")

        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidRegistryRecord("record has no name")

        source = data.get("source")
        if isinstance(source, dict):
            source = source.get("id")
        if not isinstance(source, str) or not source.strip():
            raise InvalidRegistryRecord(f"record {name!r} has no source locator")

        ecosystem = data.get("ecosystem")
        if not isinstance(ecosystem, str) or not ecosystem.strip():
            ecosystem = None

        homepage = data.get("homepage")
        return cls(
            name=name.strip(),
            description=str(data.get("description") or ""),
            source=source.strip(),
            ecosystem=ecosystem,
            homepage=homepage if isinstance(homepage, str) else None,
            languages=_as_tuple(data.get("languages")),
            licenses=_as_tuple(data.get("licenses")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "source": self.source,
            "ecosystem": self.ecosystem,
            "homepage": self.homepage,
            "languages": list(self.languages),
            "licenses": list(self.licenses),
        }

"""Installation method resolver.

Maps a registry entry to an InstallationMethod through a table of locator
parsers keyed by ecosystem. New ecosystems are added with ``register`` and
need no changes in the orchestrator.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Union

from constants import Ecosystem
from locator.models import UNKNOWN, InstallationMethod
from locator.parser import PARSERS, LocatorParser
from registry.models import RegistryItem

logger = logging.getLogger(__name__)


class InstallationMethodResolver:
    """Dispatches registry entries to the parser for their ecosystem."""

    def __init__(self, parsers: Optional[Dict[Ecosystem, LocatorParser]] = None):
        self._parsers: Dict[Ecosystem, LocatorParser] = dict(PARSERS if parsers is None else parsers)

    def register(self, ecosystem: Union[Ecosystem, str], parser: LocatorParser) -> None:
        """Add or replace the parser for an ecosystem."""
        key = ecosystem if isinstance(ecosystem, Ecosystem) else Ecosystem.from_tag(ecosystem)
        if key is None:
            raise ValueError(f"unknown ecosystem tag: {ecosystem!r}")
        self._parsers[key] = parser

    def supports(self, ecosystem: Optional[str]) -> bool:
        key = Ecosystem.from_tag(ecosystem)
        return key is not None and key in self._parsers

    def resolve(self, entry: RegistryItem) -> InstallationMethod:
        """Resolve an entry; unsupported or missing ecosystems give UNKNOWN."""
        key = Ecosystem.from_tag(entry.ecosystem)
        parser = self._parsers.get(key) if key is not None else None
        if parser is None:
            logger.debug("No parser for ecosystem %r of %s", entry.ecosystem, entry.name)
            return UNKNOWN
        return parser(entry.source, entry.name)

"""JSON persistence for installation records."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Callable, Iterable, List

from .state import InstalledLanguageServer, InstalledPackageStateStore, StateChange

logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1


class StateFile:
    """Stores InstalledLanguageServer records in a JSON file."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> List[InstalledLanguageServer]:
        """Read records; a missing file is empty, a corrupt one is ignored with a warning."""
        if not os.path.isfile(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return []

        raw_records = data.get("installed", []) if isinstance(data, dict) else []
        records = []
        for raw in raw_records:
            try:
                records.append(InstalledLanguageServer.from_dict(raw))
            except (KeyError, ValueError, TypeError, AttributeError) as exc:
                logger.warning("Skipping malformed installation record %r: %s", raw, exc)
        return records

    def save(self, records: Iterable[InstalledLanguageServer]) -> None:
        """Write all records atomically (temp file + rename)."""
        payload = {
            "version": _FORMAT_VERSION,
            "installed": [r.to_dict() for r in sorted(records, key=lambda r: r.package_name)],
        }
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".installed-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            try:
                os.unlink(tmp_path)
            except OSError:
                logger.debug("Failed to remove temp file: %s", tmp_path)
            raise

    def attach(self, store: InstalledPackageStateStore) -> Callable[[], None]:
        """Save the store's contents after every change; returns the unsubscribe function."""

        def _on_change(change: StateChange) -> None:
            try:
                self.save(store.all().values())
            except OSError as exc:
                logger.error("Could not persist installation state to %s: %s", self.path, exc)

        return store.subscribe(_on_change)

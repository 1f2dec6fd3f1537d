"""Installed-package state store.

Process-wide table of installation records keyed by registry name. Records
are immutable and replaced whole under a lock, so a reader never sees a mix
of old and new fields. Observers are notified after the lock is released.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InstalledLanguageServer:
    """Installation record for one package."""
    package_name: str
    installed_version: str
    is_enabled: bool = True
    install_path: Optional[str] = None
    installed_at: datetime = dataclasses.field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package_name": self.package_name,
            "installed_version": self.installed_version,
            "is_enabled": self.is_enabled,
            "install_path": self.install_path,
            "installed_at": self.installed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstalledLanguageServer":
        """Rebuild a record from ``to_dict`` output.

        Raises:
            KeyError, ValueError, TypeError: on malformed input.
        """
        installed_at = data.get("installed_at")
        if installed_at:
            when = datetime.fromisoformat(str(installed_at))
            if when.tzinfo is None:
                when = when.replace(tzinfo=timezone.utc)
        else:
            when = _utcnow()
        version = str(data["installed_version"])
        if not version:
            raise ValueError("installed_version must not be empty")
        return cls(
            package_name=str(data["package_name"]),
            installed_version=version,
            is_enabled=bool(data.get("is_enabled", True)),
            install_path=data.get("install_path"),
            installed_at=when,
        )


class ChangeKind(Enum):
    INSTALLED = "installed"
    ENABLED = "enabled"
    REMOVED = "removed"
    LOADED = "loaded"


@dataclass(frozen=True)
class StateChange:
    """Notification payload; ``record`` is None for removals and bulk loads."""
    kind: ChangeKind
    name: Optional[str] = None
    record: Optional[InstalledLanguageServer] = None


StateObserver = Callable[[StateChange], None]


class InstalledPackageStateStore:
    """Thread-safe mapping of package name to InstalledLanguageServer."""

    def __init__(self) -> None:
        self._records: Dict[str, InstalledLanguageServer] = {}
        self._observers: List[StateObserver] = []
        self._lock = threading.Lock()

    def get(self, name: str) -> Optional[InstalledLanguageServer]:
        with self._lock:
            return self._records.get(name)

    def all(self) -> Dict[str, InstalledLanguageServer]:
        """Snapshot copy of every record."""
        with self._lock:
            return dict(self._records)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def set_installed(self, name: str, record: InstalledLanguageServer) -> None:
        if record.package_name != name:
            record = dataclasses.replace(record, package_name=name)
        with self._lock:
            self._records[name] = record
        self._notify(StateChange(ChangeKind.INSTALLED, name, record))

    def set_enabled(self, name: str, enabled: bool) -> bool:
        """Toggle the enabled flag. Returns False when no record exists."""
        with self._lock:
            current = self._records.get(name)
            if current is None:
                return False
            if current.is_enabled == enabled:
                return True
            record = dataclasses.replace(current, is_enabled=enabled)
            self._records[name] = record
        self._notify(StateChange(ChangeKind.ENABLED, name, record))
        return True

    def remove(self, name: str) -> Optional[InstalledLanguageServer]:
        with self._lock:
            removed = self._records.pop(name, None)
        if removed is not None:
            self._notify(StateChange(ChangeKind.REMOVED, name, None))
        return removed

    def load(self, records: Iterable[InstalledLanguageServer]) -> None:
        """Replace the table with records loaded at startup."""
        table = {record.package_name: record for record in records}
        with self._lock:
            self._records = table
        logger.debug("Loaded %d installation records", len(table))
        self._notify(StateChange(ChangeKind.LOADED))

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        with self._lock:
            self._observers.append(observer)

        def _unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return _unsubscribe

    def _notify(self, change: StateChange) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(change)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("State observer %r failed", observer)

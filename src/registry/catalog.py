"""In-memory catalog of registry entries.

The list is replaced wholesale on refresh and never mutated in place, so a
reader iterating a snapshot is unaffected by a concurrent refresh.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, List, Optional, Tuple

from .models import RegistryItem

logger = logging.getLogger(__name__)

CatalogListener = Callable[[Tuple[RegistryItem, ...]], None]


class RegistryCatalogStore:
    """Holds the current registry snapshot and notifies subscribers on change."""

    def __init__(self, items: Optional[Iterable[RegistryItem]] = None):
        self._items: Tuple[RegistryItem, ...] = ()
        self._by_name = {}
        self._listeners: List[CatalogListener] = []
        self._lock = threading.Lock()
        if items is not None:
            self._swap(items)

    @property
    def items(self) -> Tuple[RegistryItem, ...]:
        """Current snapshot; safe to iterate while a refresh happens."""
        return self._items

    def get(self, name: str) -> Optional[RegistryItem]:
        return self._by_name.get(name)

    def names(self) -> List[str]:
        return [item.name for item in self._items]

    def __len__(self) -> int:
        return len(self._items)

    def _swap(self, items: Iterable[RegistryItem]) -> Tuple[RegistryItem, ...]:
        unique = []
        by_name = {}
        for item in items:
            if item.name in by_name:
                logger.warning("Duplicate registry entry %r ignored", item.name)
                continue
            by_name[item.name] = item
            unique.append(item)
        snapshot = tuple(unique)
        with self._lock:
            # Publish both views together so get() and items agree
            self._items, self._by_name = snapshot, by_name
        return snapshot

    def replace(self, items: Iterable[RegistryItem]) -> None:
        """Replace the whole catalog and notify subscribers."""
        snapshot = self._swap(items)
        logger.info("Registry catalog updated: %d entries", len(snapshot))
        self._publish(snapshot)

    def refresh(self, loader: Callable[[], Iterable[RegistryItem]]) -> None:
        """Load a fresh list with ``loader`` and replace the catalog.

        Exceptions from the loader propagate; the previous snapshot stays.
        """
        self.replace(loader())

    def notify_updated(self) -> None:
        """Tell subscribers the catalog (or what it reports) changed."""
        self._publish(self._items)

    def subscribe(self, listener: CatalogListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, snapshot: Tuple[RegistryItem, ...]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Catalog listener %r failed", listener)

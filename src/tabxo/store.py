"""Device-wide key-value store shared by every tab, with cross-tab change events.

``SharedStorage`` holds the data; each tab talks to it through its own
``StorageContext``. A write notifies the listeners of every *other* context,
never the writer's own, the way browser storage events behave.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    key: str
    old_value: Optional[str]
    new_value: Optional[str]


Listener = Callable[[StorageEvent], None]


class KeyValueStore(Protocol):
    """What the sync layer needs from a store."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...

    def on_change(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""
        ...


class SharedStorage:
    """The backing store for one device."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._contexts: List[StorageContext] = []

    def context(self) -> "StorageContext":
        ctx = StorageContext(self)
        self._contexts.append(ctx)
        return ctx

    # ---- internals used by StorageContext ----

    def _write(self, origin: "StorageContext", key: str, value: Optional[str]) -> None:
        old = self._data.get(key)
        if old == value:
            return
        if value is None:
            del self._data[key]
        else:
            self._data[key] = value
        event = StorageEvent(key=key, old_value=old, new_value=value)
        for ctx in list(self._contexts):
            if ctx is not origin:
                ctx._deliver(event)

    def _detach(self, ctx: "StorageContext") -> None:
        if ctx in self._contexts:
            self._contexts.remove(ctx)


class StorageContext:
    """One tab's view of the shared storage."""

    def __init__(self, storage: SharedStorage) -> None:
        self._storage = storage
        self._listeners: List[Listener] = []

    def get(self, key: str) -> Optional[str]:
        return self._storage._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._storage._write(self, key, value)

    def remove(self, key: str) -> None:
        self._storage._write(self, key, None)

    def keys(self) -> List[str]:
        return list(self._storage._data)

    def on_change(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._listeners.clear()
        self._storage._detach(self)

    def _deliver(self, event: StorageEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # One failing tab handler must not starve the others
                logger.exception("Storage listener failed for key %s", event.key)

"""A flag store that follows live updates from a provider."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Optional

from .flags import Flag
from .store import AnyStore, Store, StoreLoadError


class StoreProvider(ABC):
    """Something that can load a Store and watch its source for changes."""

    @abstractmethod
    def load(self, stop: Optional[threading.Event] = None) -> Optional[Store]:
        """Load the current store; None means the source reported no change."""

    @abstractmethod
    def watch(self, stop: threading.Event, on_change: Callable[[Store], None]) -> None:
        """Block, calling on_change with each new store, until stop is set."""


class DynamicStore(AnyStore):
    """A store that swaps in each update its provider delivers; call start() first."""

    def __init__(self, provider: StoreProvider, stop: Optional[threading.Event] = None) -> None:
        self._provider = provider
        self._stop_event = stop if stop is not None else threading.Event()
        self._lock = threading.Lock()
        self._store: Optional[Store] = None
        self._last_updated: Optional[datetime] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Load the initial store and begin watching the provider."""
        initial = self._provider.load(self._stop_event)
        if initial is None:
            raise StoreLoadError("provider returned no flags")
        self._on_change(initial)
        self._thread = threading.Thread(
            target=self._provider.watch, args=(self._stop_event, self._on_change), daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop watching the provider."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(5.0)

    def _on_change(self, updated: Optional[Store]) -> None:
        if updated is not None:
            with self._lock:
                self._store = updated
                self._last_updated = datetime.now(timezone.utc)

    def last_updated(self) -> Optional[datetime]:
        """Return when the store last changed, or None if it was never loaded."""
        with self._lock:
            return self._last_updated

    def _current(self) -> Store:
        with self._lock:
            if self._store is None:
                raise RuntimeError("dynamic store has not been started")
            return self._store

    def get(self, key: str) -> Optional[Flag]:
        return self._current().get(key)

    def all_flags(self) -> dict[str, Flag]:
        return self._current().all_flags()

    def __enter__(self) -> "DynamicStore":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
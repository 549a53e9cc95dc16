"""A store provider that reads a file and reloads it when it changes."""

from __future__ import annotations

import os
import queue
import threading
from datetime import datetime
from typing import Callable, Optional, TextIO, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .dynamic import StoreProvider
from .store import Store, StoreLoadError, store_from_file

_RELEVANT = {"modified", "created", "moved"}


class _EventQueue(FileSystemEventHandler):
    def __init__(self, events: "queue.Queue[FileSystemEvent]") -> None:
        super().__init__()
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._events.put(event)


class FileProvider(StoreProvider):
    """Provides a Store from a flag file on disk, watching its directory for changes."""

    def __init__(self, path: Union[str, os.PathLike], log: Optional[TextIO] = None) -> None:
        self.path = os.fspath(path)
        self.log = log
        self.last: Optional[Store] = None

    def _log_event(self, message: str) -> None:
        if self.log is not None:
            self.log.write(message.strip() + "\n")

    def load(self, stop: Optional[threading.Event] = None) -> Store:
        self.last = store_from_file(os.path.abspath(self.path))
        self._log_event(f"Store updated at {datetime.now().astimezone().isoformat()}")
        return self.last

    def watch(self, stop: threading.Event, on_change: Callable[[Store], None]) -> None:
        target = os.path.realpath(self.path)
        events: "queue.Queue[FileSystemEvent]" = queue.Queue()
        observer = Observer()
        try:
            observer.schedule(_EventQueue(events), os.path.dirname(target), recursive=False)
            observer.start()
        except OSError as exc:
            self._log_event(f"error watching file: {exc}")
            return
        try:
            while not stop.is_set():
                try:
                    event = events.get(timeout=0.1)
                except queue.Empty:
                    continue
                paths = {event.src_path, getattr(event, "dest_path", "")}
                if event.is_directory or event.event_type not in _RELEVANT:
                    continue
                if target not in {os.path.realpath(os.fsdecode(p)) for p in paths if p}:
                    continue
                if stop.wait(0.05):  # debounce
                    return
                try:
                    on_change(self.load(stop))
                except StoreLoadError:
                    continue
        finally:
            observer.stop()
            observer.join()
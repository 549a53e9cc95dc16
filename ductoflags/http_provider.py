"""A store provider that polls an HTTP endpoint for flag definitions."""

from __future__ import annotations

import http.client
import re
import threading
import urllib.error
import urllib.request
from http import HTTPStatus
from typing import Callable, Optional
from urllib.parse import urlsplit

from .dynamic import StoreProvider
from .store import Store, StoreLoadError, detect_format, store_from_bytes

_HOST_CHARS = re.compile(r"^[A-Za-z0-9._~%:\[\]-]+$")


class HTTPStatusError(StoreLoadError):
    """Raised when the endpoint answers with an error status."""

    def __init__(self, status: int, reason: str = "") -> None:
        if not reason and status in HTTPStatus._value2member_map_:
            reason = HTTPStatus(status).phrase
        self.status = status
        self.reason = reason
        super().__init__(f"http error: {status} {reason}".rstrip())


class HTTPProvider(StoreProvider):
    """Provides a Store fetched over HTTP(S), polling for changes at an interval."""

    def __init__(self, url: str, token: str = "", interval: float = 30.0,
                 timeout: Optional[float] = None) -> None:
        self.url = url
        self.token = token
        self.interval = interval
        self.timeout = timeout
        self.last_modified = ""
        self._lock = threading.Lock()

    def load(self, stop: Optional[threading.Event] = None) -> Optional[Store]:
        """Fetch the flags; return None when the server answers 304 Not Modified."""
        if stop is not None and stop.is_set():
            raise StoreLoadError("request cancelled")
        parts = urlsplit(self.url)
        if parts.scheme not in ("http", "https") or not _HOST_CHARS.match(parts.netloc or ""):
            raise StoreLoadError(f"invalid URL {self.url!r}")

        headers = {}
        if self.token:
            headers["Authorization"] = "Bearer " + self.token
        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified
        request = urllib.request.Request(self.url, headers=headers, method="GET")

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read()
                last_modified = response.headers.get("Last-Modified", "")
        except urllib.error.HTTPError as exc:
            exc.close()
            if exc.code == HTTPStatus.NOT_MODIFIED:
                return None
            raise HTTPStatusError(exc.code, exc.reason if isinstance(exc.reason, str) else "") from None
        except (OSError, http.client.HTTPException, ValueError) as exc:
            raise StoreLoadError(f"http request: {exc}") from exc

        store = store_from_bytes(body, detect_format(self.url))
        with self._lock:
            self.last_modified = last_modified or ""
        return store

    def watch(self, stop: threading.Event, on_change: Callable[[Store], None]) -> None:
        while not stop.wait(self.interval):
            try:
                store = self.load(stop)
            except StoreLoadError:
                continue
            if store is not None:
                on_change(store)


def store_from_url(url: str, token: str = "") -> Store:
    """Fetch flags once from an HTTP(S) endpoint."""
    store = HTTPProvider(url, token).load()
    if store is None:
        raise StoreLoadError("no flags returned")
    return store
"""An HTTP server exposing flag definitions and evaluations as JSON or YAML."""

from __future__ import annotations

import json
import signal
import socket
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import formatdate, parsedate_to_datetime
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Iterable, Mapping, Optional, TextIO
from urllib.parse import parse_qs, urlsplit

import yaml

from .dynamic import DynamicStore
from .file_provider import FileProvider
from .flags import EvaluationResult, Flag, VariantRule
from .store import AnyStore, StoreLoadError

_ZERO_TIME = "Mon, 01 Jan 0001 00:00:00 GMT"

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}

_SERVE_DEFAULTS = {"file": "flags.json", "addr": ":8080", "token": ""}
_SERVE_USAGE = (
    "Usage of serve:\n"
    "  -addr string\n"
    "    \tListen address (default \":8080\")\n"
    "  -file string\n"
    "    \tPath to feature flag definition file (default \"flags.json\")\n"
    "  -token string\n"
    "    \tOptional bearer token required to access the API\n"
)


class _FlagError(Exception):
    """Raised when command-line flags cannot be parsed."""


class _HelpRequested(_FlagError):
    """Raised when -h or -help is given and not defined."""


def _parse_flags(argv: Iterable[str], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Parse single- or double-dash flags; the default's type decides the flag's kind.

    Parsing stops at the first argument that is not a flag, or after "--".
    """
    values = {name: list(d) if isinstance(d, list) else d for name, d in defaults.items()}
    args = iter(argv)
    for arg in args:
        if len(arg) < 2 or not arg.startswith("-"):
            break
        if arg == "--":
            break
        body = arg[2:] if arg.startswith("--") else arg[1:]
        if not body or body[0] in "-=":
            raise _FlagError(f"bad flag syntax: {arg}")
        name, has_value, value = body.partition("=")
        if name not in defaults:
            if name in ("help", "h"):
                raise _HelpRequested("flag: help requested")
            raise _FlagError(f"flag provided but not defined: -{name}")

        default = defaults[name]
        if isinstance(default, bool):
            if not has_value or value in _TRUE_WORDS:
                values[name] = True
            elif value in _FALSE_WORDS:
                values[name] = False
            else:
                raise _FlagError(f'invalid boolean value "{value}" for -{name}: parse error')
            continue

        if not has_value:
            following = next(args, None)
            if following is None:
                raise _FlagError(f"flag needs an argument: -{name}")
            value = following
        if isinstance(default, list):
            values[name].append(value)
        else:
            values[name] = value
    return values


@dataclass
class ResolutionResponse:
    """The answer given for a single flag lookup."""

    variant: str
    value: Any
    reason: str
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        out = {"variant": self.variant, "value": self.value, "reason": self.reason}
        if self.error:
            out["error"] = self.error
        return out


def _plain(graph: Any, yaml_style: bool = False) -> Any:
    """Turn flags and responses into plain data; mappings get sorted keys."""
    if isinstance(graph, ResolutionResponse):
        out = graph.to_dict()
        out["value"] = _plain(graph.value, yaml_style)
        if yaml_style:
            out["error"] = graph.error
        return out
    if isinstance(graph, Flag):
        out = graph.to_dict()
        out["variants"] = _plain(graph.variants, yaml_style)
        if "rules" in out:
            out["rules"] = [_plain(rule, yaml_style) for rule in graph.rules]
        return out
    if isinstance(graph, VariantRule):
        out = graph.to_dict()
        if "if" in out:
            out["if"] = _plain(graph.conditions, yaml_style)
        return out
    if isinstance(graph, EvaluationResult):
        out = graph.to_dict()
        out["Value"] = _plain(graph.value, yaml_style)
        return out
    if isinstance(graph, Mapping):
        return {
            str(key): _plain(value, yaml_style)
            for key, value in sorted(graph.items(), key=lambda item: str(item[0]))
        }
    if isinstance(graph, (list, tuple)):
        return [_plain(item, yaml_style) for item in graph]
    return graph


def encode_json(graph: Any) -> str:
    """Encode as indented JSON followed by a newline."""
    return json.dumps(_plain(graph), indent=2, ensure_ascii=False) + "\n"


def encode_yaml(graph: Any) -> str:
    """Encode as a YAML document."""
    return yaml.safe_dump(
        _plain(graph, yaml_style=True),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        indent=4,
    )


_ROUTES: dict[str, tuple[Callable[[Any], str], str]] = {
    "/api/flags": (encode_json, "application/json"),
    "/api/flags.json": (encode_json, "application/json"),
    "/api/flags.yaml": (encode_yaml, "application/yaml"),
}


def _last_updated(store: AnyStore) -> Optional[datetime]:
    if isinstance(store, DynamicStore):
        return store.last_updated()
    return None


def _parse_http_time(value: str) -> Optional[datetime]:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _resolve(store: AnyStore, key: str, ctx: Mapping[str, str]) -> ResolutionResponse:
    flag = store.get(key)
    if flag is None:
        return ResolutionResponse(variant="", value=False, reason="ERROR", error="flag not found")
    result = flag.evaluate(ctx)
    reason = "TARGETING_MATCH" if result.matched else "FALLBACK"
    return ResolutionResponse(variant=result.variant, value=result.value, reason=reason)


class _FlagHandler(BaseHTTPRequestHandler):
    server: "_FlagServer"

    def log_message(self, format: str, *args: Any) -> None:
        pass

    def _send(self, status: int, body: bytes, content_type: str, headers: Mapping[str, str] = {}) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        for name, value in headers.items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(body)

    def _send_text(self, status: int, text: str) -> None:
        self._send(
            status,
            text.encode("utf-8"),
            "text/plain; charset=utf-8",
            {"X-Content-Type-Options": "nosniff"},
        )

    def _handle(self) -> None:
        parts = urlsplit(self.path)
        route = _ROUTES.get(parts.path)
        if route is None:
            self._send_text(404, "404 page not found\n")
            return
        encoder, content_type = route

        token = self.server.token
        if token and self.headers.get("Authorization", "") != "Bearer " + token:
            self._send_text(401, "unauthorized\n")
            return

        store = self.server.store
        updated = _last_updated(store)
        if_modified = self.headers.get("If-Modified-Since", "")
        if if_modified and updated is not None:
            since = _parse_http_time(if_modified)
            if since is not None and updated < since + timedelta(seconds=1):
                self.send_response(304)
                self.end_headers()
                return
        last_modified = formatdate(updated.timestamp(), usegmt=True) if updated else _ZERO_TIME

        query = parse_qs(parts.query, keep_blank_values=True)
        key = query.get("key", [""])[0]
        if key:
            ctx = {name: values[0] for name, values in query.items() if values}
            graph: Any = _resolve(store, key, ctx)
        else:
            graph = store.all_flags()

        body = encoder(graph).encode("utf-8")
        self._send(200, body, content_type, {"Last-Modified": last_modified})

    do_GET = _handle
    do_POST = _handle
    do_PUT = _handle
    do_DELETE = _handle
    do_PATCH = _handle


class _FlagServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], store: AnyStore, token: str) -> None:
        self.store = store
        self.token = token
        super().__init__(address, _FlagHandler)


class _FlagServer6(_FlagServer):
    address_family = socket.AF_INET6


def _split_addr(addr: str) -> tuple[str, int]:
    host, sep, port_text = addr.rpartition(":")
    if not sep:
        raise ValueError(f"address {addr}: missing port in address")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"address {addr}: invalid port") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"address {addr}: invalid port")
    return host, port


def make_server(store: AnyStore, addr: str = ":8080", token: str = "") -> ThreadingHTTPServer:
    """Bind an HTTP server answering /api/flags, /api/flags.json and /api/flags.yaml."""
    host, port = _split_addr(addr)
    server_class = _FlagServer6 if ":" in host else _FlagServer
    return server_class((host, port), store, token)


def _install_signal_handlers(
    server: ThreadingHTTPServer, stop: threading.Event
) -> dict[int, Any]:
    if threading.current_thread() is not threading.main_thread():
        return {}

    def shut_down(signum: int, frame: Any) -> None:
        stop.set()
        threading.Thread(target=server.shutdown, daemon=True).start()

    return {sig: signal.signal(sig, shut_down) for sig in (signal.SIGINT, signal.SIGTERM)}


def serve(
    argv: Optional[list[str]] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """Run the flag server until interrupted; return the exit code."""
    argv = sys.argv[1:] if argv is None else argv
    stdout = sys.stdout if stdout is None else stdout
    stderr = sys.stderr if stderr is None else stderr

    try:
        options = _parse_flags(argv, _SERVE_DEFAULTS)
    except _HelpRequested:
        stderr.write(_SERVE_USAGE)
        return 0
    except _FlagError as exc:
        stderr.write(f"{exc}\n{_SERVE_USAGE}")
        return 2

    stop = threading.Event()
    store = DynamicStore(FileProvider(options["file"], log=stdout), stop)
    try:
        store.start()
    except StoreLoadError as exc:
        stderr.write(f"failed to load flags: {exc}\n")
        return 1

    try:
        server = make_server(store, options["addr"], options["token"])
    except (OSError, ValueError) as exc:
        store.stop()
        stderr.write(f"server failed: {exc}")
        return 1

    previous = _install_signal_handlers(server, stop)
    try:
        stdout.write(f"Listening on {options['addr']}...\n")
        server.serve_forever()
    finally:
        for sig, handler in previous.items():
            if handler is not None:
                signal.signal(sig, handler)
        server.server_close()
        store.stop()
    return 0
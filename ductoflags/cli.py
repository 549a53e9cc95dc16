"""The ducto-flags command: query or list flags, or run the flag server."""

from __future__ import annotations

import json
import sys
from typing import Iterable, Optional, TextIO

from .serve import _FlagError, _parse_flags, _plain, encode_json, serve
from .store import StoreLoadError, store_from_file

_RUN_DEFAULTS = {"file": "flags.json", "key": "", "list": False, "ctx": []}


def parse_context(pairs: Iterable[str]) -> dict[str, str]:
    """Turn key=value strings into an evaluation context; others are ignored."""
    ctx: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if sep:
            ctx[key] = value
    return ctx


def run(
    argv: Optional[list[str]] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """Evaluate one flag or list all flags from a definition file."""
    argv = sys.argv[1:] if argv is None else argv
    stdout = sys.stdout if stdout is None else stdout
    stderr = sys.stderr if stderr is None else stderr

    try:
        options = _parse_flags(argv, _RUN_DEFAULTS)
    except _FlagError as exc:
        stderr.write(f"failed to parse args: {exc}\n")
        return 1

    path, key, print_all = options["file"], options["key"], options["list"]
    if not path:
        stderr.write("missing required flag: -file")
        return 1
    if not key and not print_all:
        stderr.write("must provide either -key or -list")
        return 1

    try:
        store = store_from_file(path)
    except StoreLoadError as exc:
        stderr.write(f"failed to load flags: {exc}")
        return 1

    if print_all:
        stdout.write(encode_json(store.all_flags()))
        return 0

    flag = store.get(key)
    if flag is None:
        stderr.write(f"failed to get flag: {key}: not found")
        return 1
    result = flag.evaluate(parse_context(options["ctx"]))
    if not result.ok:
        stderr.write(f"failed to evaluate flag: variant {result.variant!r} not found")
        return 1

    payload = _plain({"key": key, "result": result})
    stdout.write(json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n")
    return 0


def run_root(
    argv: Optional[list[str]] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """Dispatch to the serve subcommand or to flag evaluation."""
    argv = sys.argv[1:] if argv is None else argv
    if argv and argv[0] == "serve":
        return serve(argv[1:], stdout, stderr)
    return run(argv, stdout, stderr)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point of the ducto-flags command."""
    argv = sys.argv[1:] if argv is None else argv
    return run_root(argv, sys.stdout, sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
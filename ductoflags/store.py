"""Flag stores and loading them from JSON or YAML documents."""

from __future__ import annotations

import json
import os
import re
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Union

import yaml

from .flags import Flag

_BOOL_TAG = "tag:yaml.org,2002:bool"


class _YamlLoader(yaml.SafeLoader):
    """Safe loader that only treats true/false as booleans, so yes/no/on/off stay strings."""


_YamlLoader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag != _BOOL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_YamlLoader.add_implicit_resolver(
    _BOOL_TAG, re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"), list("tTfF")
)


class StoreLoadError(Exception):
    """Raised when flag definitions cannot be read or parsed."""


class AnyStore(ABC):
    """Anything that hands out flag definitions by key."""

    @abstractmethod
    def get(self, key: str) -> Optional[Flag]:
        """Return the flag named key, or None if there is none."""

    @abstractmethod
    def all_flags(self) -> dict[str, Flag]:
        """Return every flag definition by key."""


class Store(AnyStore):
    """A store holding a fixed set of flags."""

    def __init__(self, flags: Optional[Mapping[str, Flag]] = None) -> None:
        self._flags: dict[str, Flag] = dict(flags or {})

    def get(self, key: str) -> Optional[Flag]:
        return self._flags.get(key)

    def all_flags(self) -> dict[str, Flag]:
        return dict(self._flags)


def detect_format(path: str) -> str:
    """Return "yaml" for .yaml/.yml paths and "json" for anything else."""
    name = re.split(r"[/\\]", path)[-1]
    dot = name.rfind(".")
    return "yaml" if dot >= 0 and name[dot:].lower() in (".yaml", ".yml") else "json"


def _flags_from(parsed: Any) -> dict[str, Flag]:
    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        raise ValueError(f"expected an object of flags, got {type(parsed).__name__}")
    return {str(key): Flag.from_dict(value) for key, value in parsed.items()}


def store_from_bytes(data: Union[bytes, str], format: str = "json") -> Store:
    """Parse flag definitions in the given format ("yaml", otherwise JSON)."""
    label = "YAML" if format == "yaml" else "JSON"
    try:
        if format == "yaml":
            parsed = yaml.load(data, Loader=_YamlLoader)
        elif not data.strip():
            raise ValueError("unexpected end of JSON input")
        else:
            parsed = json.loads(data)
        return Store(_flags_from(parsed))
    except (yaml.YAMLError, ValueError) as exc:
        raise StoreLoadError(f"parse {label}: {exc}") from exc


def store_from_file(path: Union[str, os.PathLike]) -> Store:
    """Load flags from a file, choosing the format from its extension."""
    path = os.fspath(path)
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        raise StoreLoadError(f"read flag file: {exc}") from exc
    return store_from_bytes(data, detect_format(path))
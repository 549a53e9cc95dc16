"""A feature-flag provider that resolves typed values with OpenFeature semantics."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Mapping, Optional, TypeVar

from .store import AnyStore

PROVIDER_NAME = "ducto-featureflags"

T = TypeVar("T")


class Reason(str, Enum):
    """Why a value was resolved the way it was."""

    DEFAULT = "DEFAULT"
    TARGETING_MATCH = "TARGETING_MATCH"


class ErrorCode(str, Enum):
    """The kind of failure met while resolving a flag."""

    FLAG_NOT_FOUND = "FLAG_NOT_FOUND"
    PARSE_ERROR = "PARSE_ERROR"
    TYPE_MISMATCH = "TYPE_MISMATCH"


@dataclass(frozen=True)
class ResolutionError:
    """A failure reported alongside the default value."""

    code: ErrorCode
    message: str = ""

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}" if self.message else self.code.value


@dataclass(frozen=True)
class ResolutionDetail(Generic[T]):
    """The resolved value together with its variant, reason and any error."""

    value: T
    variant: str = ""
    reason: Reason = Reason.DEFAULT
    error: Optional[ResolutionError] = None

    @property
    def error_code(self) -> Optional[ErrorCode]:
        return self.error.code if self.error is not None else None

    @property
    def error_message(self) -> str:
        return self.error.message if self.error is not None else ""


@dataclass(frozen=True)
class ProviderMetadata:
    """Descriptive information about a provider."""

    name: str


class _TypeMismatch(Exception):
    pass


def convert_context(context: Optional[Mapping[str, Any]]) -> dict[str, str]:
    """Keep only the string-valued entries of a flattened evaluation context."""
    return {key: value for key, value in (context or {}).items() if isinstance(value, str)}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise _TypeMismatch


def _as_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    raise _TypeMismatch


def _as_int(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    raise _TypeMismatch


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _TypeMismatch
    return float(value)


@dataclass
class DuctoProvider:
    """Resolves typed flag values from any flag store."""

    store: AnyStore

    def metadata(self) -> ProviderMetadata:
        return ProviderMetadata(name=PROVIDER_NAME)

    def hooks(self) -> list:
        return []

    def _resolve(
        self,
        flag_key: str,
        default_value: Any,
        evaluation_context: Optional[Mapping[str, Any]],
        convert: Optional[Callable[[Any], Any]],
        type_name: str,
    ) -> ResolutionDetail:
        flag = self.store.get(flag_key)
        if flag is None:
            return ResolutionDetail(
                value=default_value, error=ResolutionError(ErrorCode.FLAG_NOT_FOUND, flag_key)
            )

        result = flag.evaluate(convert_context(evaluation_context))
        if not result.ok:
            return ResolutionDetail(
                value=default_value,
                variant=result.variant,
                error=ResolutionError(ErrorCode.PARSE_ERROR, "variant not found"),
            )

        value = result.value
        if convert is not None:
            try:
                value = convert(value)
            except _TypeMismatch:
                return ResolutionDetail(
                    value=default_value,
                    variant=result.variant,
                    error=ResolutionError(ErrorCode.TYPE_MISMATCH, type_name),
                )

        reason = Reason.TARGETING_MATCH if result.matched else Reason.DEFAULT
        return ResolutionDetail(value=value, variant=result.variant, reason=reason)

    def resolve_boolean_details(self, flag_key: str, default_value: bool,
                                evaluation_context: Optional[Mapping[str, Any]] = None
                                ) -> ResolutionDetail[bool]:
        return self._resolve(flag_key, default_value, evaluation_context, _as_bool, "bool")

    def resolve_string_details(self, flag_key: str, default_value: str,
                               evaluation_context: Optional[Mapping[str, Any]] = None
                               ) -> ResolutionDetail[str]:
        return self._resolve(flag_key, default_value, evaluation_context, _as_str, "string")

    def resolve_integer_details(self, flag_key: str, default_value: int,
                                evaluation_context: Optional[Mapping[str, Any]] = None
                                ) -> ResolutionDetail[int]:
        return self._resolve(flag_key, default_value, evaluation_context, _as_int, "int")

    def resolve_float_details(self, flag_key: str, default_value: float,
                              evaluation_context: Optional[Mapping[str, Any]] = None
                              ) -> ResolutionDetail[float]:
        return self._resolve(flag_key, default_value, evaluation_context, _as_float, "float")

    def resolve_object_details(self, flag_key: str, default_value: Any,
                               evaluation_context: Optional[Mapping[str, Any]] = None
                               ) -> ResolutionDetail[Any]:
        return self._resolve(flag_key, default_value, evaluation_context, None, "object")
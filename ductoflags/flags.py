"""Feature flag definitions and their rule-based evaluation."""

from __future__ import annotations

import functools
import hashlib
import socket
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

HOSTNAME_SEED = "HOSTNAME"


def _typed(value: Any, kind: type, name: str, empty: Any) -> Any:
    if value is None:
        return empty
    if not isinstance(value, kind):
        raise ValueError(f"{name}: expected {kind.__name__}, got {type(value).__name__}")
    return value


@functools.lru_cache(maxsize=None)
def get_hostname() -> str:
    """Return this machine's host name, or an empty string if it is unknown."""
    try:
        return socket.gethostname()
    except OSError:
        return ""


def hash_to_percent(value: str, algo: str = "") -> int:
    """Map a seed value to a bucket in 0..99 using sha256 or, by default, FNV-1a."""
    data = value.encode("utf-8")
    if algo == "sha256":
        return hashlib.sha256(data).digest()[0] % 100
    h = 0x811C9DC5
    for byte in data:
        h = ((h ^ byte) * 0x01000193) & 0xFFFFFFFF
    return h % 100


@dataclass
class VariantRule:
    """A targeting rule selecting a variant when its conditions hold."""

    variant: str = ""
    conditions: dict[str, str] = field(default_factory=dict)
    percent: Optional[int] = None
    seed: str = ""
    seed_hash: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "VariantRule":
        data = _typed(data, Mapping, "rule", {})
        conditions = _typed(data.get("if"), Mapping, "if", {})
        percent = data.get("percent")
        if percent is not None and (isinstance(percent, bool) or not isinstance(percent, int)):
            raise ValueError(f"percent: expected int, got {type(percent).__name__}")
        return cls(
            variant=_typed(data.get("variant"), str, "variant", ""),
            conditions={str(k): _typed(v, str, f"if.{k}", "") for k, v in conditions.items()},
            percent=percent,
            seed=_typed(data.get("seed"), str, "seed", ""),
            seed_hash=_typed(data.get("seed_hash"), str, "seed_hash", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"if": dict(self.conditions)} if self.conditions else {}
        out["variant"] = self.variant
        if self.percent is not None:
            out["percent"] = self.percent
        if self.seed:
            out["seed"] = self.seed
        if self.seed_hash:
            out["seed_hash"] = self.seed_hash
        return out

    def matches(self, ctx: Optional[Mapping[str, str]]) -> bool:
        """Tell whether the conditions and the optional percentage rollout hold."""
        ctx = ctx or {}
        if any(ctx.get(key, "") != expected for key, expected in self.conditions.items()):
            return False
        if self.percent is None:
            return True
        if self.percent <= 0 or not self.seed:
            return False
        if self.seed in ctx:
            seed_value = ctx[self.seed]
        elif self.seed == HOSTNAME_SEED and get_hostname():
            seed_value = get_hostname()
        else:
            return False
        return hash_to_percent(seed_value, self.seed_hash) < self.percent


@dataclass(frozen=True)
class EvaluationResult:
    """The outcome of evaluating a flag against a context."""

    variant: str = ""
    value: Any = None
    ok: bool = False
    matched: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"Variant": self.variant, "Value": self.value, "OK": self.ok, "Matched": self.matched}


@dataclass
class Flag:
    """A single feature flag definition."""

    default_variant: str = ""
    variants: dict[str, Any] = field(default_factory=dict)
    rules: list[VariantRule] = field(default_factory=list)
    disabled: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "Flag":
        data = _typed(data, Mapping, "flag", {})
        return cls(
            default_variant=_typed(data.get("defaultVariant"), str, "defaultVariant", ""),
            variants=dict(_typed(data.get("variants"), Mapping, "variants", {})),
            rules=[VariantRule.from_dict(r) for r in _typed(data.get("rules"), list, "rules", [])],
            disabled=_typed(data.get("disabled"), bool, "disabled", False),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"disabled": True} if self.disabled else {}
        out["defaultVariant"] = self.default_variant
        out["variants"] = dict(self.variants)
        if self.rules:
            out["rules"] = [rule.to_dict() for rule in self.rules]
        return out

    def evaluate(self, ctx: Optional[Mapping[str, str]] = None) -> EvaluationResult:
        """Resolve the flag to a variant: the first matching rule, else the default."""
        rule = next((r for r in self.rules if r.matches(ctx)), None)
        if rule is not None:
            if rule.variant not in self.variants:
                return EvaluationResult(variant=rule.variant, ok=False, matched=True)
            return EvaluationResult(rule.variant, self.variants[rule.variant], True, True)
        if self.default_variant not in self.variants:
            return EvaluationResult(variant=self.default_variant, ok=False)
        return EvaluationResult(self.default_variant, self.variants[self.default_variant], True, False)
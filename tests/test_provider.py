import pytest

from ductoflags.flags import Flag
from ductoflags.provider import (
    DuctoProvider,
    ErrorCode,
    ProviderMetadata,
    Reason,
    ResolutionError,
    convert_context,
)
from ductoflags.store import Store, store_from_bytes


def make_provider(flags_json: str) -> DuctoProvider:
    return DuctoProvider(store_from_bytes(flags_json, "json"))


def test_example_provider_string_value():
    provider = make_provider(
        """{
        "my_flag": {
            "enabled": true,
            "defaultVariant": "on",
            "variants": {"on": "hello world"}
        }
    }"""
    )
    ctx = {"test-group": "examples", "foo": 123}
    detail = provider.resolve_string_details("my_flag", "fallback", ctx)
    assert detail.value == "hello world"
    assert detail.error is None


def test_provider_integration():
    store = Store(
        {
            "my_flag": Flag(
                default_variant="greet",
                variants={"greet": "hello world", "farewell": "goodbye world"},
            )
        }
    )
    provider = DuctoProvider(store)
    detail = provider.resolve_string_details("my_flag", "fallback", {"env": "prod"})
    assert detail.value == "hello world"
    assert detail.error is None
    assert detail.reason is Reason.DEFAULT


def test_boolean_evaluation():
    provider = make_provider(
        """{
        "beta_enabled": {
            "defaultVariant": "on",
            "variants": {"on": true, "off": false},
            "rules": [{"if": {"group": "beta"}, "variant": "on"}]
        }
    }"""
    )
    detail = provider.resolve_boolean_details("beta_enabled", False, {"group": "beta"})
    assert detail.value is True
    assert detail.variant == "on"
    assert detail.reason is Reason.TARGETING_MATCH


def test_boolean_evaluation_default_fallback():
    provider = make_provider(
        """{
        "dark_mode": {
            "defaultVariant": "off",
            "variants": {"on": true, "off": false}
        }
    }"""
    )
    detail = provider.resolve_boolean_details("dark_mode", True, None)
    assert detail.value is False
    assert detail.variant == "off"
    assert detail.reason is Reason.DEFAULT


def test_string_evaluation():
    provider = make_provider(
        """{
        "color": {
            "defaultVariant": "red",
            "variants": {"red": "red", "blue": "blue"},
            "rules": [{"if": {"user": "a"}, "variant": "blue"}]
        }
    }"""
    )
    detail = provider.resolve_string_details("color", "fallback", {"user": "a"})
    assert detail.value == "blue"
    assert detail.reason is Reason.TARGETING_MATCH


def test_int_evaluation():
    provider = make_provider(
        """{
        "max_limit": {
            "defaultVariant": "low",
            "variants": {"low": 5, "high": 10},
            "rules": [{"if": {"env": "prod"}, "variant": "high"}]
        }
    }"""
    )
    detail = provider.resolve_integer_details("max_limit", 0, {"env": "prod"})
    assert detail.value == 10
    assert detail.reason is Reason.TARGETING_MATCH


def test_float_evaluation():
    provider = make_provider(
        """{
        "threshold": {
            "defaultVariant": "low",
            "variants": {"low": 0.5, "high": 1.0},
            "rules": [{"if": {"env": "staging"}, "variant": "high"}]
        }
    }"""
    )
    detail = provider.resolve_float_details("threshold", 0.0, {"env": "staging"})
    assert detail.value == 1.0
    assert detail.reason is Reason.TARGETING_MATCH


def test_object_evaluation():
    provider = make_provider(
        """{
        "profile": {
            "defaultVariant": "basic",
            "variants": {
                "basic": {"mode": "limited", "features": ["read"]},
                "pro": {"mode": "full", "features": ["read", "write"]}
            },
            "rules": [{"if": {"plan": "pro"}, "variant": "pro"}]
        }
    }"""
    )
    detail = provider.resolve_object_details("profile", None, {"plan": "pro"})
    assert detail.value == {"mode": "full", "features": ["read", "write"]}
    assert detail.reason is Reason.TARGETING_MATCH


def test_flag_not_found_returns_default():
    provider = make_provider("{}")
    detail = provider.resolve_boolean_details("missing", True, {})
    assert detail.value is True
    assert detail.error == ResolutionError(ErrorCode.FLAG_NOT_FOUND, "missing")
    assert detail.reason is Reason.DEFAULT


def test_missing_variant_is_parse_error():
    provider = make_provider('{"f": {"defaultVariant": "gone", "variants": {"on": true}}}')
    detail = provider.resolve_boolean_details("f", False, {})
    assert detail.value is False
    assert detail.variant == "gone"
    assert detail.error_code is ErrorCode.PARSE_ERROR
    assert detail.error_message == "variant not found"


@pytest.mark.parametrize(
    "method, default, type_name",
    [
        ("resolve_boolean_details", False, "bool"),
        ("resolve_integer_details", 7, "int"),
        ("resolve_float_details", 2.5, "float"),
    ],
)
def test_type_mismatch_returns_default(method, default, type_name):
    provider = make_provider('{"f": {"defaultVariant": "s", "variants": {"s": "text"}}}')
    detail = getattr(provider, method)("f", default, {})
    assert detail.value == default
    assert detail.variant == "s"
    assert detail.error == ResolutionError(ErrorCode.TYPE_MISMATCH, type_name)


def test_string_type_mismatch():
    provider = make_provider('{"f": {"defaultVariant": "n", "variants": {"n": 3}}}')
    detail = provider.resolve_string_details("f", "x", {})
    assert detail.value == "x"
    assert detail.error_code is ErrorCode.TYPE_MISMATCH


def test_integer_from_float_truncates():
    provider = make_provider('{"f": {"defaultVariant": "n", "variants": {"n": 3.9}}}')
    detail = provider.resolve_integer_details("f", 0, {})
    assert detail.value == 3
    assert detail.error is None


def test_integer_rejects_bool():
    provider = make_provider('{"f": {"defaultVariant": "b", "variants": {"b": true}}}')
    detail = provider.resolve_integer_details("f", 4, {})
    assert detail.value == 4
    assert detail.error_code is ErrorCode.TYPE_MISMATCH


def test_float_from_int():
    provider = make_provider('{"f": {"defaultVariant": "n", "variants": {"n": 2}}}')
    detail = provider.resolve_float_details("f", 0.0, {})
    assert detail.value == 2.0
    assert isinstance(detail.value, float)


def test_non_string_context_values_are_ignored():
    provider = make_provider(
        """{
        "f": {
            "defaultVariant": "off",
            "variants": {"on": true, "off": false},
            "rules": [{"if": {"n": "1"}, "variant": "on"}]
        }
    }"""
    )
    detail = provider.resolve_boolean_details("f", True, {"n": 1})
    assert detail.value is False
    assert detail.reason is Reason.DEFAULT


def test_convert_context_keeps_strings_only():
    assert convert_context({"a": "x", "b": 1, "c": None, "d": "y"}) == {"a": "x", "d": "y"}
    assert convert_context(None) == {}


def test_metadata_and_hooks():
    provider = DuctoProvider(Store())
    assert provider.metadata() == ProviderMetadata(name="ducto-featureflags")
    assert provider.hooks() == []
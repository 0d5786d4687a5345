"""Unit tests for PostgreSQL type coercion."""

import ipaddress
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from wal2json_loader import CoercionError, TypeRegistry, UnknownTypePolicy, coerce, default_registry


def _coerce(type_tag, raw):
    return coerce(type_tag, raw, "col", "public.t")


def test_integer_from_float():
    """JSON numbers decode as floats; integral values become int."""
    value = _coerce("integer", 42.0)
    assert value == 42
    assert isinstance(value, int)


def test_integer_rejects_fraction_and_range():
    with pytest.raises(CoercionError, match="not an integral value"):
        _coerce("integer", 42.5)
    with pytest.raises(CoercionError, match="out of range"):
        _coerce("integer", 2**31)
    assert _coerce("bigint", 2**31) == 2**31
    with pytest.raises(CoercionError):
        _coerce("smallint", 40000)


def test_integer_rejects_bool_and_text():
    with pytest.raises(CoercionError):
        _coerce("integer", True)
    with pytest.raises(CoercionError, match="expected a number"):
        _coerce("integer", "42")


def test_double_precision():
    assert _coerce("double precision", 21.5) == 21.5
    value = _coerce("double precision", 3)
    assert value == 3.0
    assert isinstance(value, float)
    with pytest.raises(CoercionError):
        _coerce("double precision", "21.5")


def test_boolean():
    assert _coerce("boolean", True) is True
    assert _coerce("boolean", False) is False
    with pytest.raises(CoercionError, match="expected a boolean"):
        _coerce("boolean", 1)


def test_text_and_varchar():
    assert _coerce("text", "hello") == "hello"
    assert _coerce("character varying", "abc") == "abc"
    assert _coerce("character varying(255)", "abc") == "abc"
    with pytest.raises(CoercionError, match="expected a string"):
        _coerce("text", 5)


def test_timestamp_with_time_zone():
    value = _coerce("timestamp with time zone", "2023-03-01 10:15:00.123+00")
    assert value == datetime(2023, 3, 1, 10, 15, 0, 123000, tzinfo=timezone.utc)
    assert value.tzinfo is not None


def test_timestamp_with_time_zone_offsets():
    value = _coerce("timestamp with time zone", "2023-03-01 10:15:00+05:30")
    assert value.utcoffset() == timedelta(hours=5, minutes=30)

    value = _coerce("timestamp with time zone", "2023-03-01 10:15:00.5-08")
    assert value.utcoffset() == timedelta(hours=-8)
    assert value.microsecond == 500000


def test_timestamp_with_time_zone_rejects_malformed():
    with pytest.raises(CoercionError) as exc_info:
        _coerce("timestamp with time zone", "yesterday")
    assert exc_info.value.raw == "yesterday"

    with pytest.raises(CoercionError, match="no UTC offset"):
        _coerce("timestamp with time zone", "2023-03-01 10:15:00")

    with pytest.raises(CoercionError):
        _coerce("timestamp with time zone", "2023-02-30 10:15:00+00")


def test_timestamp_infinity():
    """PostgreSQL infinities map to the datetime bounds asyncpg writes back as infinity."""
    assert _coerce("timestamp with time zone", "infinity") == datetime.max.replace(
        tzinfo=timezone.utc
    )
    assert _coerce("timestamp with time zone", "-infinity") == datetime.min.replace(
        tzinfo=timezone.utc
    )
    assert _coerce("timestamp without time zone", "infinity") == datetime.max
    assert _coerce("timestamp without time zone", "-infinity").tzinfo is None


def test_date_infinity():
    assert _coerce("date", "infinity") == date.max
    assert _coerce("date", "-infinity") == date.min


def test_bc_values_are_rejected():
    with pytest.raises(CoercionError, match="BC dates") as exc_info:
        _coerce("timestamp with time zone", "0044-03-15 12:00:00+00 BC")
    assert exc_info.value.raw == "0044-03-15 12:00:00+00 BC"
    with pytest.raises(CoercionError, match="BC dates"):
        _coerce("date", "0044-03-15 BC")


def test_timestamp_without_time_zone():
    value = _coerce("timestamp without time zone", "2023-03-01 10:15:00")
    assert value == datetime(2023, 3, 1, 10, 15)
    assert value.tzinfo is None


def test_date():
    assert _coerce("date", "2023-03-01") == date(2023, 3, 1)
    with pytest.raises(CoercionError) as exc_info:
        _coerce("date", "2023-13-01")
    assert exc_info.value.raw == "2023-13-01"


def test_jsonb_is_validated():
    text = '{"sensor": "a1", "values": [1, 2]}'
    assert _coerce("jsonb", text) == text
    with pytest.raises(CoercionError):
        _coerce("jsonb", "{not json")


def test_inet():
    assert _coerce("inet", "192.168.0.1") == ipaddress.ip_address("192.168.0.1")
    assert _coerce("inet", "10.1.2.3/8") == ipaddress.ip_interface("10.1.2.3/8")
    assert _coerce("inet", "2001:db8::1") == ipaddress.ip_address("2001:db8::1")
    with pytest.raises(CoercionError) as exc_info:
        _coerce("inet", "999.1.1.1")
    assert exc_info.value.raw == "999.1.1.1"


def test_numeric_and_uuid():
    assert _coerce("numeric", "1299.99") == Decimal("1299.99")
    assert _coerce("numeric(10,2)", 5) == Decimal("5")
    value = "c2d29867-3d0b-d497-9191-18a9d8ee7830"
    assert _coerce("uuid", value) == uuid.UUID(value)


def test_null_passes_through_for_known_types():
    for type_tag in ("integer", "text", "timestamp with time zone", "inet", "iot_1.sensor_type"):
        assert _coerce(type_tag, None) is None


def test_schema_qualified_custom_type_is_text():
    assert _coerce("iot_1.sensor_type", "temperature") == "temperature"


def test_unknown_unqualified_type_fails_loudly():
    """Unknown built-in types are never dropped or guessed."""
    with pytest.raises(CoercionError, match="unsupported type") as exc_info:
        coerce("tsvector", "'a' 'b'", "body", "public.docs")
    exc = exc_info.value
    assert exc.table == "public.docs"
    assert exc.column_name == "body"
    assert exc.type_tag == "tsvector"


def test_unknown_type_policies():
    text_registry = default_registry(UnknownTypePolicy.TEXT)
    assert text_registry.coerce("tsvector", "'a'", "c", "t") == "'a'"

    strict = default_registry(UnknownTypePolicy.STRICT)
    with pytest.raises(CoercionError):
        strict.coerce("iot_1.sensor_type", "temperature", "c", "t")


def test_registry_extension_and_prefix_order():
    registry = TypeRegistry()
    registry.register_prefix("char", lambda raw: "short")
    registry.register_prefix("character varying", lambda raw: "long")
    registry.register("character varying(1)", lambda raw: "exact")

    assert registry.coerce("character varying(1)", "x", "c", "t") == "exact"
    assert registry.coerce("character varying(9)", "x", "c", "t") == "long"
    assert registry.coerce("character(3)", "x", "c", "t") == "short"


def test_coercion_error_chains_cause():
    with pytest.raises(CoercionError) as exc_info:
        _coerce("date", "not-a-date")
    assert isinstance(exc_info.value.__cause__, ValueError)

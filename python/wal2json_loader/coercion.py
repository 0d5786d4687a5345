"""
Conversion of wire-level column values into values asyncpg binds natively.

Each PostgreSQL type tag reported by logical decoding is mapped to a coercion
function in a TypeRegistry. Tags are looked up by exact match first, then by
prefix (``character varying(255)`` matches the ``character varying`` prefix).
Tags the registry does not know are handled by an explicit UnknownTypePolicy.

Example:
    >>> coerce("integer", 42.0, "id", "public.readings")
    42
    >>> coerce("inet", "10.0.0.1/8", "addr", "public.hosts")
    IPv4Interface('10.0.0.1/8')
"""

import ipaddress
import json
import re
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .exceptions import CoercionError

Coercer = Callable[[Any], Any]


class UnknownTypePolicy(str, Enum):
    """What to do with a type tag that has no registered coercer."""

    QUALIFIED_AS_TEXT = "qualified-as-text"
    TEXT = "text"
    STRICT = "strict"


INT16_RANGE = (-(2**15), 2**15 - 1)
INT32_RANGE = (-(2**31), 2**31 - 1)
INT64_RANGE = (-(2**63), 2**63 - 1)

# PostgreSQL text output: "2023-03-01 10:15:00.123+00", offsets may be
# "+05", "+05:30" or "+05:30:15"; fractions carry 1 to 6 digits.
_TIMESTAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[ T]"
    r"(?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d{1,6}))?"
    r"(?P<offset>Z|[+-]\d{2}(?::?\d{2}(?::?\d{2})?)?)?$"
)


def _require_number(raw: Any) -> Any:
    # bool is an int subclass; JSON true/false is never a number here
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise TypeError(f"expected a number, got {type(raw).__name__}")
    return raw


def _require_text(raw: Any) -> str:
    if not isinstance(raw, str):
        raise TypeError(f"expected a string, got {type(raw).__name__}")
    return raw


def _integer_coercer(bounds: Tuple[int, int]) -> Coercer:
    low, high = bounds

    def to_int(raw: Any) -> int:
        number = _require_number(raw)
        if isinstance(number, float) and not number.is_integer():
            raise ValueError("not an integral value")
        value = int(number)
        if not low <= value <= high:
            raise ValueError(f"out of range [{low}, {high}]")
        return value

    return to_int


def to_float(raw: Any) -> float:
    return float(_require_number(raw))


def to_bool(raw: Any) -> bool:
    if not isinstance(raw, bool):
        raise TypeError(f"expected a boolean, got {type(raw).__name__}")
    return raw


def to_numeric(raw: Any) -> Decimal:
    if isinstance(raw, str):
        text = raw
    else:
        text = str(_require_number(raw))
    try:
        return Decimal(text)
    except InvalidOperation:
        raise ValueError("not a decimal number") from None


def to_text(raw: Any) -> str:
    return _require_text(raw)


def to_json(raw: Any) -> str:
    """Validate JSON text; the text itself is what asyncpg's json codecs expect."""
    text = _require_text(raw)
    json.loads(text)
    return text


def _reject_bc(text: str) -> None:
    if text.endswith(" BC"):
        raise ValueError("BC dates cannot be represented")


def _parse_timestamp(raw: Any, aware: bool) -> datetime:
    text = _require_text(raw)
    # asyncpg writes datetime.max/min as PostgreSQL infinity
    if text in ("infinity", "-infinity"):
        value = datetime.max if text == "infinity" else datetime.min
        return value.replace(tzinfo=timezone.utc) if aware else value
    _reject_bc(text)
    match = _TIMESTAMP_RE.match(text)
    if match is None:
        raise ValueError("unrecognized timestamp format")

    iso = f"{match['date']}T{match['time']}"
    if match["fraction"]:
        iso += "." + match["fraction"].ljust(6, "0")

    offset = match["offset"]
    if aware:
        if offset is None:
            raise ValueError("timestamp has no UTC offset")
        iso += _normalize_offset(offset)
    elif offset is not None:
        raise ValueError("unexpected UTC offset")

    return datetime.fromisoformat(iso)


def _normalize_offset(offset: str) -> str:
    if offset == "Z":
        return "+00:00"
    sign, digits = offset[0], offset[1:].replace(":", "")
    parts = [digits[i:i + 2] for i in range(0, len(digits), 2)]
    if len(parts) == 1:
        parts.append("00")
    return sign + ":".join(parts)


def to_timestamptz(raw: Any) -> datetime:
    return _parse_timestamp(raw, aware=True)


def to_timestamp(raw: Any) -> datetime:
    return _parse_timestamp(raw, aware=False)


def to_date(raw: Any) -> date:
    text = _require_text(raw)
    if text == "infinity":
        return date.max
    if text == "-infinity":
        return date.min
    _reject_bc(text)
    return date.fromisoformat(text)


def to_inet(raw: Any) -> Any:
    """Parse ``inet`` text; a prefix length yields an interface, else an address."""
    text = _require_text(raw)
    if "/" in text:
        return ipaddress.ip_interface(text)
    return ipaddress.ip_address(text)


def to_uuid(raw: Any) -> uuid.UUID:
    return uuid.UUID(_require_text(raw))


class TypeRegistry:
    """Maps PostgreSQL type tags to coercion functions."""

    def __init__(self, unknown_policy: UnknownTypePolicy = UnknownTypePolicy.QUALIFIED_AS_TEXT):
        self.unknown_policy = UnknownTypePolicy(unknown_policy)
        self._exact: Dict[str, Coercer] = {}
        self._prefixes: List[Tuple[str, Coercer]] = []

    def register(self, type_tag: str, coercer: Coercer) -> None:
        self._exact[type_tag] = coercer

    def register_prefix(self, prefix: str, coercer: Coercer) -> None:
        self._prefixes.append((prefix, coercer))
        # longest prefix wins
        self._prefixes.sort(key=lambda item: len(item[0]), reverse=True)

    def resolve(self, type_tag: str) -> Optional[Coercer]:
        """Return the coercer for a tag, or None when the unknown-type policy rejects it."""
        coercer = self._exact.get(type_tag)
        if coercer is not None:
            return coercer
        for prefix, candidate in self._prefixes:
            if type_tag.startswith(prefix):
                return candidate
        return self._fallback(type_tag)

    def _fallback(self, type_tag: str) -> Optional[Coercer]:
        if self.unknown_policy is UnknownTypePolicy.TEXT:
            return to_text
        if self.unknown_policy is UnknownTypePolicy.QUALIFIED_AS_TEXT and "." in type_tag:
            return to_text
        return None

    def coerce(self, type_tag: str, raw: Any, column_name: str, table: str) -> Any:
        """
        Convert one wire value to its typed representation.

        Args:
            type_tag: Upstream column type name (e.g. "integer")
            raw: JSON scalar from the change event
            column_name: Column name, for error context
            table: Qualified table name, for error context

        Returns:
            The coerced value; JSON null becomes None

        Raises:
            CoercionError: If the tag is unsupported or the value does not fit it
        """
        coercer = self.resolve(type_tag)
        if coercer is None:
            raise CoercionError(table, column_name, type_tag, raw, "unsupported type")
        if raw is None:
            return None
        try:
            return coercer(raw)
        except (TypeError, ValueError) as exc:
            raise CoercionError(table, column_name, type_tag, raw, str(exc)) from exc


def default_registry(
    unknown_policy: UnknownTypePolicy = UnknownTypePolicy.QUALIFIED_AS_TEXT,
) -> TypeRegistry:
    """Build a registry with every built-in PostgreSQL type mapping."""
    registry = TypeRegistry(unknown_policy)
    registry.register("smallint", _integer_coercer(INT16_RANGE))
    registry.register("integer", _integer_coercer(INT32_RANGE))
    registry.register("bigint", _integer_coercer(INT64_RANGE))
    registry.register("real", to_float)
    registry.register("double precision", to_float)
    registry.register("numeric", to_numeric)
    registry.register("boolean", to_bool)
    registry.register("text", to_text)
    registry.register("json", to_json)
    registry.register("jsonb", to_json)
    registry.register("date", to_date)
    registry.register("timestamp with time zone", to_timestamptz)
    registry.register("timestamp without time zone", to_timestamp)
    registry.register("inet", to_inet)
    registry.register("uuid", to_uuid)
    registry.register_prefix("character varying", to_text)
    registry.register_prefix("numeric(", to_numeric)
    return registry


_DEFAULT_REGISTRY = default_registry()


def coerce(type_tag: str, raw: Any, column_name: str, table: str) -> Any:
    """Coerce with the default registry. See TypeRegistry.coerce."""
    return _DEFAULT_REGISTRY.coerce(type_tag, raw, column_name, table)

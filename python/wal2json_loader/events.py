"""Change events decoded from wal2json-style JSON lines."""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Union

from .exceptions import DecodeError


class Action(str, Enum):
    """Event kinds emitted by logical decoding."""

    BEGIN = "B"
    INSERT = "I"
    COMMIT = "C"
    KEEPALIVE = "K"


@dataclass(frozen=True)
class Column:
    """One column value as carried on the wire."""

    name: str
    type_tag: str
    value: Any


@dataclass(frozen=True)
class Message:
    schema: str
    table: str
    columns: Tuple[Column, ...]

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.table}"

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)


@dataclass(frozen=True)
class Event:
    """One decoded input line.

    ``transaction_id``, ``lsn`` and ``timestamp`` are passed through as found
    in the input and are never interpreted.
    """

    action: Action
    transaction_id: Any = None
    lsn: Optional[str] = None
    timestamp: Optional[str] = None
    message: Optional[Message] = None


_SCALAR_TYPES = (str, int, float, bool, type(None))


def decode(line: Union[bytes, str]) -> Event:
    """
    Decode a single input line into an Event.

    Args:
        line: One JSON object, as bytes (UTF-8) or text

    Returns:
        The decoded Event

    Raises:
        DecodeError: If the line is not valid JSON, names an unknown action,
            or an Insert is missing its schema, table or columns
    """
    try:
        payload = json.loads(line)
    except (UnicodeDecodeError, ValueError) as exc:
        raise DecodeError(line, f"invalid JSON: {exc}") from exc
    except RecursionError as exc:
        raise DecodeError(line, "JSON nested too deeply") from exc

    if not isinstance(payload, dict):
        raise DecodeError(line, "expected a JSON object")

    try:
        action = Action(payload.get("action"))
    except ValueError:
        raise DecodeError(line, f"unknown action {payload.get('action')!r}") from None

    message = None
    if action is Action.INSERT:
        message = _decode_insert_message(line, payload.get("message"))

    return Event(
        action=action,
        transaction_id=payload.get("xid"),
        lsn=payload.get("lsn"),
        timestamp=payload.get("timestamp"),
        message=message,
    )


def _is_identifier(name: str) -> bool:
    # PostgreSQL identifiers cannot be empty or contain NUL
    return bool(name) and "\x00" not in name


def _decode_insert_message(line: Union[bytes, str], message: Any) -> Message:
    if not isinstance(message, dict):
        raise DecodeError(line, "insert without a message object")

    schema = message.get("schema")
    table = message.get("table")
    if not isinstance(schema, str) or not isinstance(table, str):
        raise DecodeError(line, "insert message needs string 'schema' and 'table'")
    if not _is_identifier(schema) or not _is_identifier(table):
        raise DecodeError(line, "insert schema and table must be non-empty and free of NUL")

    raw_columns = message.get("columns")
    if not isinstance(raw_columns, list) or not raw_columns:
        raise DecodeError(line, "insert message needs a non-empty 'columns' list")

    columns = []
    for index, raw in enumerate(raw_columns):
        if not isinstance(raw, dict):
            raise DecodeError(line, f"column {index} is not an object")
        name = raw.get("name")
        type_tag = raw.get("type")
        if not isinstance(name, str) or not isinstance(type_tag, str):
            raise DecodeError(line, f"column {index} needs string 'name' and 'type'")
        if not _is_identifier(name):
            raise DecodeError(line, f"column {index} name must be non-empty and free of NUL")
        if "value" not in raw:
            raise DecodeError(line, f"column {name!r} has no 'value'")
        value = raw["value"]
        if not isinstance(value, _SCALAR_TYPES):
            raise DecodeError(line, f"column {name!r} value is not a scalar")
        columns.append(Column(name=name, type_tag=type_tag, value=value))

    return Message(schema=schema, table=table, columns=tuple(columns))

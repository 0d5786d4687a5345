"""Custom exceptions for wal2json-loader."""

from typing import Any, Optional, Sequence


class LoaderError(Exception):
    """Base exception for loader errors.

    ``line_number`` is filled in by the loader with the 1-based input line
    that triggered the error, when one is known.
    """

    line_number: Optional[int] = None

    def __str__(self) -> str:
        message = super().__str__()
        if self.line_number is not None:
            return f"line {self.line_number}: {message}"
        return message


class DecodeError(LoaderError):
    """Raised when an input line is not a well-formed change event."""

    def __init__(self, raw_line: Any, cause: str):
        self.raw_line = raw_line
        self.cause = cause
        super().__init__(f"malformed event ({cause}): {raw_line!r}")


class TableMismatchError(LoaderError):
    """Raised when an Insert targets a different table than the open transaction."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"transaction is writing to {expected}, got an insert for {actual}"
        )


class ColumnMismatchError(LoaderError):
    """Raised when an Insert's columns differ from the transaction's columns."""

    def __init__(self, table: str, expected: Sequence[str], actual: Sequence[str]):
        self.table = table
        self.expected = tuple(expected)
        self.actual = tuple(actual)
        super().__init__(
            f"column mismatch on {table}: expected ({', '.join(self.expected)}), "
            f"got ({', '.join(self.actual)})"
        )


class CoercionError(LoaderError):
    """Raised when a wire value cannot be converted to its declared type."""

    def __init__(self, table: str, column_name: str, type_tag: str, raw: Any, cause: str):
        self.table = table
        self.column_name = column_name
        self.type_tag = type_tag
        self.raw = raw
        self.cause = cause
        super().__init__(
            f"cannot coerce {table}.{column_name} value {raw!r} to {type_tag!r}: {cause}"
        )


class SinkError(LoaderError):
    """Raised when the target store rejects a batched write."""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        row_count: Optional[int] = None,
    ):
        self.reason = message
        self.table = table
        self.row_count = row_count
        if table is not None:
            message = f"write of {row_count} rows into {table} failed: {message}"
        super().__init__(message)


class ConfigurationError(LoaderError):
    """Raised when loader settings are invalid."""
    pass

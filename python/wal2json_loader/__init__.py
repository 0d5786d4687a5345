"""
Replay of PostgreSQL logical decoding streams into a target database.

This library reads wal2json-style change events (one JSON object per line),
rebuilds each committed transaction and writes it as a single multi-row
INSERT through asyncpg.
"""

import asyncio
from typing import AsyncIterable, Iterable, Optional, Union

__version__ = "0.1.0"

from .accumulator import Batch, TransactionAccumulator, TransactionBuffer
from .coercion import TypeRegistry, UnknownTypePolicy, coerce, default_registry
from .events import Action, Column, Event, Message, decode
from .exceptions import (
    CoercionError,
    ColumnMismatchError,
    ConfigurationError,
    DecodeError,
    LoaderError,
    SinkError,
    TableMismatchError,
)
from .loader import Loader, LoaderStats, RawLine
from .sink import AsyncpgSink, DryRunSink, Sink
from .statement import build_insert, quote_ident

__all__ = [
    "Action",
    "AsyncpgSink",
    "Batch",
    "CoercionError",
    "Column",
    "ColumnMismatchError",
    "ConfigurationError",
    "DecodeError",
    "DryRunSink",
    "Event",
    "Loader",
    "LoaderError",
    "LoaderStats",
    "Message",
    "Sink",
    "SinkError",
    "TableMismatchError",
    "TransactionAccumulator",
    "TransactionBuffer",
    "TypeRegistry",
    "UnknownTypePolicy",
    "build_insert",
    "coerce",
    "decode",
    "default_registry",
    "quote_ident",
    "replay",
]


def replay(
    lines: Union[Iterable[RawLine], AsyncIterable[RawLine]],
    sink: Sink,
    registry: Optional[TypeRegistry] = None,
    skip_failed_transactions: bool = False,
) -> LoaderStats:
    """
    Replay a change stream synchronously.

    This wraps Loader.run() in asyncio.run(), so it must not be called from
    inside a running event loop. Use Loader directly in async code.

    Args:
        lines: Raw input lines (bytes or str)
        sink: Write target for committed transactions
        registry: Type coercion registry (default: built-in mappings)
        skip_failed_transactions: Skip bad transactions instead of raising

    Returns:
        Counters for the run

    Example:
        >>> with open("changes.json", "rb") as fh:
        ...     stats = replay(fh, DryRunSink())
    """
    loader = Loader(sink, registry, skip_failed_transactions)
    return asyncio.run(loader.run(lines))

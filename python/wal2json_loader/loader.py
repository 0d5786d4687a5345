"""
Sequential replay of a change stream into a Sink.

The Loader reads raw lines one at a time, decodes them, feeds the
TransactionAccumulator and writes every committed batch before reading the
next line. There is no read-ahead and no pipelining of writes.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Iterable, Optional, Union

from .accumulator import Batch, TransactionAccumulator
from .coercion import TypeRegistry
from .events import Action, Event, decode
from .exceptions import (
    CoercionError,
    ColumnMismatchError,
    DecodeError,
    SinkError,
    TableMismatchError,
)
from .sink import Sink
from .statement import build_insert

logger = logging.getLogger(__name__)

RawLine = Union[bytes, str]

# Errors raised while turning a line into buffered rows; these can be
# skipped per transaction. Sink failures never are.
_SKIPPABLE_ERRORS = (DecodeError, CoercionError, TableMismatchError, ColumnMismatchError)


@dataclass
class LoaderStats:
    """Counters for one Loader.run()."""

    lines_read: int = 0
    events: int = 0
    keepalives: int = 0
    transactions_committed: int = 0
    rows_written: int = 0
    transactions_skipped: int = 0


async def _iterate(lines: Union[Iterable[RawLine], AsyncIterable[RawLine]]) -> AsyncIterator[RawLine]:
    if hasattr(lines, "__aiter__"):
        async for line in lines:
            yield line
    else:
        for line in lines:
            yield line


class Loader:
    """
    Replays committed transactions from a wal2json-style stream into a Sink.

    Example:
        >>> loader = Loader(AsyncpgSink(pool))
        >>> with open("changes.json", "rb") as fh:
        ...     stats = await loader.run(fh)
        >>> stats.transactions_committed
        12
    """

    def __init__(
        self,
        sink: Sink,
        registry: Optional[TypeRegistry] = None,
        skip_failed_transactions: bool = False,
    ):
        """
        Args:
            sink: Write target for committed batches
            registry: Type coercion registry (default: built-in mappings)
            skip_failed_transactions: On a malformed line or a row that cannot
                be buffered, log it, drop the current transaction and resume at
                the next Begin instead of raising
        """
        self.sink = sink
        self.accumulator = TransactionAccumulator(registry)
        self.skip_failed_transactions = skip_failed_transactions
        self.stats = LoaderStats()
        self._discarding = False

    async def run(self, lines: Union[Iterable[RawLine], AsyncIterable[RawLine]]) -> LoaderStats:
        """
        Process every line in order.

        Args:
            lines: Sync or async iterable of raw lines (bytes or str)

        Returns:
            Counters for this run

        Raises:
            DecodeError, CoercionError, TableMismatchError, ColumnMismatchError:
                When a line cannot be applied and skipping is disabled
            SinkError: When a batched write fails
            asyncio.CancelledError: When the run is cancelled; any partial
                transaction is discarded
        """
        try:
            async for line in _iterate(lines):
                self.stats.lines_read += 1
                if not line.strip():
                    continue
                await self.process_line(line, self.stats.lines_read)
        except asyncio.CancelledError:
            if self.accumulator.buffer.rows:
                logger.warning(
                    "cancelled, discarding %d uncommitted rows",
                    len(self.accumulator.buffer.rows),
                )
            self.accumulator.reset()
            raise

        if self.accumulator.buffer.rows:
            logger.warning(
                "input ended inside a transaction, %d uncommitted rows for %s were not written",
                len(self.accumulator.buffer.rows),
                self.accumulator.buffer.qualified_name,
            )
        return self.stats

    async def process_line(self, line: RawLine, line_number: Optional[int] = None) -> Optional[int]:
        """
        Decode and apply one line, writing a batch if it commits one.

        Returns:
            Rows written by this line, or None if nothing was written
        """
        try:
            event = decode(line)
            batch = self._apply(event)
        except _SKIPPABLE_ERRORS as exc:
            exc.line_number = line_number
            if not self.skip_failed_transactions:
                raise
            self._skip(exc)
            return None

        if batch is None:
            return None
        try:
            return await self.flush(batch)
        except SinkError as exc:
            exc.line_number = line_number
            raise

    def _apply(self, event: Event) -> Optional[Batch]:
        self.stats.events += 1
        if event.action is Action.KEEPALIVE:
            self.stats.keepalives += 1
            return None
        if self._discarding:
            if event.action is not Action.BEGIN:
                return None
            self._discarding = False
        return self.accumulator.feed(event)

    def _skip(self, exc: Exception) -> None:
        logger.error("skipping transaction: %s", exc)
        self.accumulator.reset()
        self.stats.transactions_skipped += 1
        self._discarding = True

    async def flush(self, batch: Batch) -> int:
        """Write one batch to the sink."""
        statement, params = build_insert(batch)
        logger.debug(
            "inserting table=%s column_names=%s num_rows=%d",
            batch.qualified_name,
            ",".join(batch.column_names),
            batch.row_count,
        )
        try:
            rows = await self.sink.execute(statement, params)
        except SinkError as exc:
            raise SinkError(exc.reason, table=batch.qualified_name, row_count=batch.row_count) from exc

        self.stats.transactions_committed += 1
        self.stats.rows_written += batch.row_count
        logger.info(
            "inserted rows txn_count=%d table=%s rows=%d",
            self.stats.transactions_committed,
            batch.qualified_name,
            batch.row_count,
        )
        return rows

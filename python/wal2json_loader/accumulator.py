"""Reconstruction of committed transactions from a change event stream."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from .coercion import TypeRegistry, default_registry
from .events import Action, Event, Message
from .exceptions import ColumnMismatchError, TableMismatchError

logger = logging.getLogger(__name__)

Row = Tuple[Any, ...]


@dataclass(frozen=True)
class Batch:
    """All rows of one committed transaction, ready to be written."""

    schema: str
    table: str
    column_names: Tuple[str, ...]
    rows: Tuple[Row, ...]
    transaction_id: Any = None
    lsn: Optional[str] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.table}"

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass
class TransactionBuffer:
    """Rows buffered for the transaction currently open."""

    schema: Optional[str] = None
    table: Optional[str] = None
    column_names: Optional[Tuple[str, ...]] = None
    rows: List[Row] = field(default_factory=list)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.table}"

    def reset(self) -> None:
        self.schema = None
        self.table = None
        self.column_names = None
        self.rows = []

    def append(self, message: Message, row: Row) -> None:
        """Append a coerced row, adopting the message's table on the first row."""
        names = message.column_names
        if self.column_names is None:
            self.schema = message.schema
            self.table = message.table
            self.column_names = names
        elif (message.schema, message.table) != (self.schema, self.table):
            raise TableMismatchError(self.qualified_name, message.qualified_name)
        elif names != self.column_names:
            raise ColumnMismatchError(self.qualified_name, self.column_names, names)
        self.rows.append(row)

    def snapshot(self, commit: Optional[Event] = None) -> Batch:
        return Batch(
            schema=self.schema,
            table=self.table,
            column_names=self.column_names,
            rows=tuple(self.rows),
            transaction_id=commit.transaction_id if commit else None,
            lsn=commit.lsn if commit else None,
        )


class State(str, Enum):
    IDLE = "idle"
    OPEN = "open"


class TransactionAccumulator:
    """
    State machine turning Begin/Insert/Commit events into Batches.

    Each accumulator owns exactly one TransactionBuffer, so independent
    pipelines never share state.

    Example:
        >>> acc = TransactionAccumulator()
        >>> for event in events:
        ...     batch = acc.feed(event)
        ...     if batch is not None:
        ...         write(batch)
    """

    def __init__(self, registry: Optional[TypeRegistry] = None):
        self.registry = registry if registry is not None else default_registry()
        self.buffer = TransactionBuffer()
        self.state = State.IDLE

    def feed(self, event: Event) -> Optional[Batch]:
        """
        Apply one event.

        Returns:
            A Batch when the event commits a transaction holding rows,
            otherwise None

        Raises:
            CoercionError: If a column value does not fit its declared type
            TableMismatchError: If an Insert targets another table than the
                open transaction
            ColumnMismatchError: If an Insert's columns differ from the open
                transaction's columns
        """
        if event.action is Action.BEGIN:
            if self.buffer.rows:
                logger.debug(
                    "discarding %d uncommitted rows for %s",
                    len(self.buffer.rows),
                    self.buffer.qualified_name,
                )
            self.buffer.reset()
            self.state = State.OPEN
        elif event.action is Action.INSERT:
            self._insert(event)
        elif event.action is Action.COMMIT:
            return self._commit(event)
        return None

    def reset(self) -> None:
        """Drop any buffered rows and return to IDLE."""
        self.buffer.reset()
        self.state = State.IDLE

    def _insert(self, event: Event) -> None:
        message = event.message
        table = message.qualified_name
        row = tuple(
            self.registry.coerce(column.type_tag, column.value, column.name, table)
            for column in message.columns
        )
        if self.state is State.IDLE:
            logger.warning(
                "insert into %s without a preceding begin (xid=%s), starting a transaction",
                table,
                event.transaction_id,
            )
        self.buffer.append(message, row)
        self.state = State.OPEN

    def _commit(self, event: Event) -> Optional[Batch]:
        if self.state is State.IDLE:
            return None
        batch = self.buffer.snapshot(event) if self.buffer.rows else None
        self.reset()
        return batch

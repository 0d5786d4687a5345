"""Write targets for batched INSERT statements."""

import asyncio
import logging
from typing import Any, List, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

import asyncpg

from .exceptions import SinkError

logger = logging.getLogger(__name__)


@runtime_checkable
class Sink(Protocol):
    """Executes one parameterized statement per committed transaction."""

    async def execute(self, statement: str, params: Sequence[Any]) -> int:
        """Run the statement and return the number of rows affected.

        Implementations raise SinkError when the write fails.
        """
        ...


def rows_from_status(status: str) -> int:
    """
    Extract the row count from a command status tag.

    Args:
        status: Status returned by asyncpg, e.g. "INSERT 0 3"

    Returns:
        The trailing row count, or 0 when the tag carries none
    """
    parts = status.split()
    if parts and parts[-1].isdigit():
        return int(parts[-1])
    return 0


class AsyncpgSink:
    """
    Sink backed by an asyncpg pool or connection.

    Example:
        pool = await asyncpg.create_pool(dsn, min_size=1, max_size=1)
        sink = AsyncpgSink(pool, timeout=30.0)
        await sink.ping()
        rows = await sink.execute('INSERT INTO "public"."t" ("id") VALUES ($1)', [1])
    """

    def __init__(
        self,
        executor: Union[asyncpg.Pool, asyncpg.Connection],
        timeout: Optional[float] = None,
    ):
        """
        Args:
            executor: Pool or connection to run statements on
            timeout: Per-statement timeout in seconds (None = no limit)
        """
        self._executor = executor
        self._timeout = timeout

    async def ping(self) -> None:
        """Check connectivity with ``SELECT 1``."""
        try:
            await self._executor.fetchval("SELECT 1", timeout=self._timeout)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
            raise SinkError(f"connection check failed: {exc}") from exc
        logger.info("connected to the database")

    async def execute(self, statement: str, params: Sequence[Any]) -> int:
        try:
            status = await self._executor.execute(statement, *params, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise SinkError(f"statement timed out after {self._timeout}s") from exc
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise SinkError(str(exc)) from exc
        return rows_from_status(status)


class DryRunSink:
    """Sink that logs statements instead of running them."""

    def __init__(self) -> None:
        self.statements: List[Tuple[str, List[Any]]] = []

    async def execute(self, statement: str, params: Sequence[Any]) -> int:
        self.statements.append((statement, list(params)))
        logger.info("dry run: %s (%d parameters)", statement, len(params))
        return 0

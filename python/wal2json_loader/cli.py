"""Command line entry point: replay a change stream file into PostgreSQL."""

import asyncio
from pathlib import Path
from typing import Optional

import asyncpg
import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .coercion import UnknownTypePolicy, default_registry
from .config import LoaderConfig
from .exceptions import LoaderError
from .loader import Loader, LoaderStats
from .logging_config import get_logger, setup_logging
from .sink import AsyncpgSink, DryRunSink

console = Console()
logger = get_logger("cli")

app = typer.Typer(
    name="wal2json-loader",
    help="Replay committed inserts from a logical decoding stream into PostgreSQL.",
    add_completion=False,
)


async def load(config: LoaderConfig) -> LoaderStats:
    """Run one load as described by config."""
    registry = default_registry(config.unknown_type_policy)

    if config.dry_run:
        return await _load_file(config, Loader(DryRunSink(), registry, config.skip_failed_transactions))

    pool = await asyncpg.create_pool(
        config.target_uri,
        min_size=config.pool_min_size,
        max_size=config.pool_max_size,
    )
    try:
        sink = AsyncpgSink(pool, timeout=config.statement_timeout)
        await sink.ping()
        return await _load_file(config, Loader(sink, registry, config.skip_failed_transactions))
    finally:
        await pool.close()


async def _load_file(config: LoaderConfig, loader: Loader) -> LoaderStats:
    with open(config.json_file, "rb") as fh:
        return await loader.run(fh)


def _print_summary(stats: LoaderStats) -> None:
    table = Table(show_header=True, pad_edge=True)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Lines read", str(stats.lines_read))
    table.add_row("Transactions written", str(stats.transactions_committed))
    table.add_row("Rows written", str(stats.rows_written))
    table.add_row("Keepalives", str(stats.keepalives))
    table.add_row("Transactions skipped", str(stats.transactions_skipped))
    console.print(table)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"wal2json-loader {__version__}")
        raise typer.Exit()


@app.command()
def main(
    target_uri: Optional[str] = typer.Option(
        None,
        "--target-uri",
        envvar="LOADER_TARGET_URI",
        help="Target database URI to write data.",
    ),
    json_file: Path = typer.Option(
        Path("sample.json"),
        "--json-file",
        envvar="LOADER_JSON_FILE",
        help="Path of the JSON file to read from.",
    ),
    level: str = typer.Option(
        "info",
        "--level",
        envvar="LOADER_LOG_LEVEL",
        help="Log level to use from [ 'error', 'warn', 'info', 'debug' ].",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        envvar="LOADER_LOG_FILE",
        help="Also append log records to this file.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Log the generated statements instead of executing them.",
    ),
    skip_failed_transactions: bool = typer.Option(
        False,
        "--skip-failed-transactions",
        help="Skip to the next transaction on malformed input instead of aborting.",
    ),
    statement_timeout: Optional[float] = typer.Option(
        None,
        "--statement-timeout",
        help="Per-statement timeout in seconds.",
    ),
    unknown_types: UnknownTypePolicy = typer.Option(
        UnknownTypePolicy.QUALIFIED_AS_TEXT,
        "--unknown-types",
        help="How to handle column types with no built-in mapping.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    """
    Replay committed inserts from a wal2json-style change stream.

    Each committed transaction becomes one multi-row INSERT.

    Examples:

      wal2json-loader --target-uri postgres://user@localhost/db --json-file changes.json

      wal2json-loader --json-file changes.json --dry-run --level debug
    """
    try:
        config = LoaderConfig(
            target_uri=target_uri,
            json_file=str(json_file),
            log_level=level,
            log_file=str(log_file) if log_file else None,
            dry_run=dry_run,
            skip_failed_transactions=skip_failed_transactions,
            statement_timeout=statement_timeout,
            unknown_type_policy=unknown_types,
        )
    except LoaderError as exc:
        console.print(f"Invalid configuration: {exc}", style="red", markup=False)
        raise typer.Exit(2)

    setup_logging(config.log_level, config.log_file)

    if not json_file.is_file():
        logger.error("failed to open file: %s", config.json_file)
        raise typer.Exit(1)

    try:
        stats = asyncio.run(load(config))
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        logger.error("load failed: %s", exc)
        raise typer.Exit(1)
    except LoaderError as exc:
        logger.error("%s", exc)
        raise typer.Exit(1)

    _print_summary(stats)

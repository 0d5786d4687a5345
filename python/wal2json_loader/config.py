"""Loader settings.

Settings come from CLI options, each of which can also be supplied through an
environment variable:

    LOADER_TARGET_URI   target database URI
    LOADER_JSON_FILE    path of the change stream file
    LOADER_LOG_LEVEL    one of error, warn, info, debug
    LOADER_LOG_FILE     optional file that also receives log records

Example:
    >>> config = LoaderConfig(target_uri="postgres://localhost/db", log_level="debug")
    >>> config.log_level
    'debug'
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .coercion import UnknownTypePolicy
from .exceptions import ConfigurationError

LOG_LEVELS = ("error", "warn", "warning", "info", "debug")


@dataclass(frozen=True)
class LoaderConfig:
    """Validated settings for one loader run.

    Attributes:
        target_uri: PostgreSQL connection URI (not needed for a dry run)
        json_file: Path of the newline-delimited change stream
        log_level: Logging verbosity
        log_file: Optional file that also receives log records
        dry_run: Log statements instead of executing them
        skip_failed_transactions: Skip to the next Begin on bad input instead of aborting
        statement_timeout: Per-statement timeout in seconds (None = no limit)
        unknown_type_policy: Handling of type tags with no registered coercion
        pool_min_size: Minimum connections in the asyncpg pool
        pool_max_size: Maximum connections in the asyncpg pool
    """

    target_uri: Optional[str] = None
    json_file: str = "sample.json"
    log_level: str = "info"
    log_file: Optional[str] = None
    dry_run: bool = False
    skip_failed_transactions: bool = False
    statement_timeout: Optional[float] = None
    unknown_type_policy: UnknownTypePolicy = UnknownTypePolicy.QUALIFIED_AS_TEXT
    pool_min_size: int = 1
    pool_max_size: int = 1

    def __post_init__(self) -> None:
        if not self.dry_run and not self.target_uri:
            raise ConfigurationError("target_uri is required unless dry_run is set")
        if not self.json_file:
            raise ConfigurationError("json_file must not be empty")
        if self.log_level.lower() not in LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}"
            )
        if self.statement_timeout is not None and self.statement_timeout <= 0:
            raise ConfigurationError("statement_timeout must be positive")
        if self.pool_min_size < 1:
            raise ConfigurationError("pool_min_size must be at least 1")
        if self.pool_max_size < self.pool_min_size:
            raise ConfigurationError("pool_max_size must be at least pool_min_size")
        try:
            object.__setattr__(
                self, "unknown_type_policy", UnknownTypePolicy(self.unknown_type_policy)
            )
        except ValueError:
            raise ConfigurationError(
                f"unknown_type_policy must be one of "
                f"{', '.join(p.value for p in UnknownTypePolicy)}"
            ) from None

"""
Logging configuration for wal2json-loader.

Library modules only create loggers; handlers are installed once by the CLI.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "wal2json_loader"

_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def setup_logging(level: str = "info", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure logging with a rich handler on stderr.

    Args:
        level: One of error, warn, info, debug
        log_file: Optional file path to also write logs to

    Returns:
        Configured logger instance for wal2json_loader
    """
    numeric_level = _LEVELS.get(level.lower(), logging.INFO)
    debug = numeric_level == logging.DEBUG

    handlers: list[logging.Handler] = [
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            markup=False,
            show_time=True,
            show_path=debug,
        )
    ]

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        handlers.append(file_handler)

    # force replaces handlers from an earlier call in the same process
    logging.basicConfig(
        level=numeric_level, format="%(message)s", datefmt="[%X]", handlers=handlers, force=True
    )

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(numeric_level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger namespaced under wal2json_loader.

    Args:
        name: Module name; None returns the package logger
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER)
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)

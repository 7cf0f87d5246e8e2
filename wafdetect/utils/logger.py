"""
Logger Utility for wafdetect
Provides consistent logging configuration
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


def _console_level(verbosity: int, silent: bool) -> int:
    if silent:
        return logging.ERROR
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity <= 0:
        return logging.WARNING
    return logging.INFO


def setup_logger(verbosity: int = 1,
                 log_file: Optional[str] = None,
                 silent: bool = False,
                 no_color: bool = False,
                 logger_name: str = "wafdetect") -> logging.Logger:
    """Set up logger with console and optional file output.

    verbosity 0 shows warnings only, 1 adds progress info and 2 enables
    debug output (probe details, signature scores).
    """

    # Create logger
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG if verbosity >= 2 or log_file else _console_level(verbosity, silent))
    logger.propagate = False

    # Clear existing handlers
    logger.handlers.clear()

    # Console handler with rich formatting; stdout is reserved for results
    console = Console(file=sys.stderr, no_color=no_color)
    console_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=(verbosity >= 2),
        rich_tracebacks=True,
        markup=False,
    )
    console_handler.setLevel(_console_level(verbosity, silent))
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)

        # Detailed format for file
        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
        file_handler.setFormatter(logging.Formatter(file_format))
        logger.addHandler(file_handler)

    # Suppress overly verbose third-party loggers unless in debug
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING if verbosity < 2 else logging.INFO)

    return logger


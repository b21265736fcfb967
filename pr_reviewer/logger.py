"""Process-wide Loguru configuration."""

from __future__ import annotations

import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from loguru import logger as _logger

LOG_DIR_ENV = "APP_LOG_DIR"
LOG_LEVEL_ENV = "APP_LOG_LEVEL"
LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

_CONFIGURED = False


def _stderr_sink(message: str) -> None:
    """Write to whatever sys.stderr is at emit time."""
    sys.stderr.write(message)


def _resolve_log_dir(explicit: str | Path | None) -> Path | None:
    """Return the file-sink directory, or None when file logging is off."""
    if explicit is not None:
        return Path(explicit).expanduser().resolve()
    env_value = os.getenv(LOG_DIR_ENV)
    if env_value:
        return Path(env_value).expanduser().resolve()
    return None


def configure_logger(*, level: str | None = None, log_dir: str | Path | None = None) -> None:
    """Configure the Loguru logger exactly once per process."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    log_level = level or os.getenv(LOG_LEVEL_ENV, "INFO")

    _logger.remove()
    _logger.add(
        _stderr_sink,
        level=log_level.upper(),
        format=LOG_FORMAT,
        colorize=sys.stderr.isatty(),
    )

    target_dir = _resolve_log_dir(log_dir)
    if target_dir is not None:
        target_dir.mkdir(parents=True, exist_ok=True)
        _logger.add(
            target_dir / "{time:YYYY-MM-DD}.log",
            rotation="50 MB",
            retention="10 days",
            level="DEBUG",
            format=LOG_FORMAT,
            backtrace=True,
            diagnose=False,
        )

    _CONFIGURED = True


def get_logger(**context: str | int | None) -> Any:
    """Return the shared logger, bound to any non-empty context fields."""
    return _logger.bind(**{key: value for key, value in context.items() if value is not None})


@contextmanager
def log_timing(logger_instance: Any, operation: str) -> Iterator[Any]:
    """Log start, completion, and failure of one operation with its duration."""
    start_time = time.monotonic()
    logger_instance.debug("Starting {}", operation)
    try:
        yield logger_instance
    except Exception as exc:
        duration = time.monotonic() - start_time
        logger_instance.error("Failed {} after {:.3f}s: {}", operation, duration, exc)
        raise
    duration = time.monotonic() - start_time
    logger_instance.debug("Completed {} in {:.3f}s", operation, duration)

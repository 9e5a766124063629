"""Root logging setup for the ``kinect-helper`` command."""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional, Union

# Frame pumps and the audio reader log from their own threads.
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)-18s | %(message)s"
LOG_DATEFMT = "%H:%M:%S"
LOG_FILE_MAX_BYTES = 2 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# asyncio reports every slow to_thread hop at DEBUG.
DEFAULT_QUIET_LOGGERS = ("asyncio",)

_LEVEL_ALIASES = {"warn": "warning", "fatal": "critical", "err": "error"}

_installed: list[logging.Handler] = []


def coerce_level(level: Union[int, str]) -> int:
    """Translate ``"info"``/``"WARN"``/``20`` style levels to logging constants."""
    if not isinstance(level, str):
        return int(level)
    key = level.strip().lower()
    value = logging.getLevelName(_LEVEL_ALIASES.get(key, key).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level '{level}'")
    return value


def _build_handlers(console: bool, log_file: Optional[Path], level: int) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding="utf-8")
        )
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    force: bool = False,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    quiet_loggers: Iterable[str] = DEFAULT_QUIET_LOGGERS,
) -> None:
    """Install console and/or rotating-file handlers on the root logger.

    A second call only adjusts the level unless ``force`` is set, in which
    case the handlers installed earlier are closed and rebuilt.
    Loggers named in ``quiet_loggers`` are raised to WARNING.
    """

    numeric_level = coerce_level(level)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    if _installed and not force:
        for handler in _installed:
            handler.setLevel(numeric_level)
        return

    for handler in list(root.handlers):
        root.removeHandler(handler)
        with contextlib.suppress(Exception):
            handler.close()
    _installed.clear()

    path = Path(log_file) if log_file else None
    handlers = _build_handlers(console, path, numeric_level) or [logging.NullHandler()]
    for handler in handlers:
        root.addHandler(handler)
    _installed.extend(handlers)


__all__ = ["configure_logging", "coerce_level", "LOG_FORMAT", "LOG_DATEFMT", "DEFAULT_QUIET_LOGGERS"]

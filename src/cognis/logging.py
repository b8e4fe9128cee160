"""Logging setup shared by the CLI and library consumers.

Library modules only call ``logging.getLogger(__name__)``; handlers are
attached to the ``cognis`` logger by :func:`configure_logging`.
"""

from __future__ import annotations

import logging as py_logging
import sys
from pathlib import Path
from typing import TextIO

LOGGER_NAME = "cognis"
LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
DEFAULT_LOG_PATH = Path("~/.config/cognis/logs/cognis.log")
_FALLBACK_LOG_PATH = Path(".cognis/logs/cognis.log")
_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s"


def normalize_level(level: str) -> str:
    normalized = level.strip().upper()
    if normalized == "WARNING":
        return "WARN"
    return normalized


def level_value(level: str) -> int:
    return LOG_LEVELS.get(normalize_level(level), py_logging.INFO)


def resolve_log_path(path: str | Path | None = None) -> Path:
    candidate = Path(path) if path else DEFAULT_LOG_PATH
    try:
        expanded = candidate.expanduser()
    except RuntimeError:
        # No resolvable home directory.
        expanded = _FALLBACK_LOG_PATH if path is None else candidate
    return expanded if expanded.is_absolute() else expanded.resolve()


def default_log_path() -> Path:
    return resolve_log_path()


def _file_handler(path: Path, formatter: py_logging.Formatter) -> py_logging.Handler | None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = py_logging.FileHandler(path, encoding="utf-8")
    except OSError:
        return None
    handler.setLevel(py_logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    resolved = level_value(level)
    formatter = py_logging.Formatter(_FORMAT)

    logger = py_logging.getLogger(LOGGER_NAME)
    for previous in list(logger.handlers):
        logger.removeHandler(previous)
        previous.close()

    console = py_logging.StreamHandler(stream or sys.stderr)
    console.setLevel(resolved)
    console.setFormatter(formatter)
    logger.addHandler(console)
    logger.setLevel(resolved)

    if log_file:
        file_handler = _file_handler(resolve_log_path(log_file), formatter)
        if file_handler is not None:
            logger.addHandler(file_handler)
            # Logger level gates handlers; the file handler records everything.
            logger.setLevel(py_logging.DEBUG)

    logger.propagate = False
    return logger

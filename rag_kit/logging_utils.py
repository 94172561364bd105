from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict

LEVEL_ENV = "RAG_KIT_LOG_LEVEL"
NOISY_LOGGERS = ("urllib3", "httpx", "chromadb", "sentence_transformers", "pypdf")


class _PlainFormatter(logging.Formatter):
    """One line per record; DEBUG runs add time, thread and source location."""

    short_fmt = "%(levelname)s %(name)s - %(message)s"
    debug_fmt = "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(filename)s:%(lineno)d - %(message)s"

    def __init__(self, debug: bool = False) -> None:
        super().__init__(fmt=self.debug_fmt if debug else self.short_fmt, datefmt="%Y-%m-%d %H:%M:%S")


class _JsonFormatter(logging.Formatter):
    """Each record as one JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "thread": record.threadName,
            "file": record.filename,
            "line": record.lineno,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _coerce_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    name = (level or "").strip().upper()
    if name.isdigit():
        return int(name)
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def level_from_flags(verbose: bool = False, quiet: bool = False) -> str | None:
    """Map CLI --verbose / --quiet onto a level name; None defers to the env."""
    if verbose and quiet:
        raise ValueError("Cannot use --verbose and --quiet together.")
    if verbose:
        return "DEBUG"
    if quiet:
        return "WARNING"
    return None


def setup_logging(level: str | int | None = None, json_logs: bool = False) -> None:
    """
    Configure root logging to stderr. Safe to call repeatedly.

    `level` wins when given; otherwise RAG_KIT_LOG_LEVEL, then INFO.
    """
    final_level = _coerce_level(level if level is not None else os.getenv(LEVEL_ENV))

    root = logging.getLogger()
    root.setLevel(final_level)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(_JsonFormatter() if json_logs else _PlainFormatter(debug=final_level <= logging.DEBUG))
    root.addHandler(handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(final_level, logging.WARNING))

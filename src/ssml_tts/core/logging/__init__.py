"""
ssml-tts Structured Logging.

Numeric levels (1-4) on top of the standard logging module, a colored
console handler and an optional rotating JSONL file handler. Messages are
short event names with structured fields:

    from ssml_tts.core.logging import get_logger, info, verbose

    log = get_logger("ssml-tts.mymodule")
    info(log, "segments_ready", count=3, seconds=0.41)
    verbose(log, "segment_uploaded", index=1, store="r2")

Two field names are lifted out of the structured fields: `seconds` (shown
colored by duration) and `event`.

Configuration:
    export SSML_TTS_LOG_LEVEL=3   # VERBOSE
    export SSML_TTS_LOG_DIR=logs  # also write logs/ssml-tts.jsonl
    export SSML_TTS_NO_COLOR=1

    or in settings.yaml:
        logging:
          level: 2
          log_dir: logs
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from .context import (
    get_level,
    get_level_name,
    get_log_config,
    get_request_id,
    is_configured,
    read_logging_config,
    set_configured,
    set_level,
    set_log_config,
    set_request_id,
)
from .formatters import ColoredConsoleFormatter, Colors, JsonlFormatter, get_tag_color, supports_color
from .levels import LEVEL_MAP, LEVEL_NAMES, LogLevel, coerce_level

_TRACE = logging.DEBUG - 5

# helper name -> (python level, console tag, numeric level)
_HELPERS = {
    "info": (logging.INFO, "INFO", LogLevel.NORMAL),
    "warn": (logging.WARNING, "WARN", LogLevel.NORMAL),
    "success": (logging.INFO, "SUCCESS", LogLevel.NORMAL),
    "error": (logging.ERROR, "ERROR", LogLevel.MINIMAL),
    "fail": (logging.ERROR, "FAIL", LogLevel.MINIMAL),
    "verbose": (logging.DEBUG, "INFO", LogLevel.VERBOSE),
    "debug": (_TRACE, "DEBUG", LogLevel.DEBUG),
}


def _console_handler(level: LogLevel) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LEVEL_MAP.get(level, logging.INFO))
    handler.setFormatter(ColoredConsoleFormatter())
    return handler


def _jsonl_handler(cfg: Dict[str, Any]) -> logging.Handler:
    directory = Path(cfg["log_dir"])
    directory.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        directory / str(cfg.get("jsonl_file", "ssml-tts.jsonl")),
        maxBytes=int(cfg.get("rotate_max_bytes", 10 * 1024 * 1024)),
        backupCount=int(cfg.get("rotate_backup_count", 5)),
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(_TRACE)
    handler.setFormatter(JsonlFormatter())
    return handler


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install the console (and optional JSONL) handlers on the root logger.

    Args:
        level: 1-4, a level name or LogLevel. Falls back to SSML_TTS_LOG_LEVEL,
            then the settings file, then NORMAL.
        force: Replace handlers even when logging is already configured.
    """
    if is_configured() and not force:
        return

    cfg = read_logging_config()
    set_log_config(cfg)
    resolved = coerce_level(level if level is not None else cfg.get("level", LogLevel.NORMAL))
    set_level(resolved)

    root = logging.getLogger()
    root.setLevel(_TRACE)
    root.handlers = [_console_handler(resolved)]
    if cfg.get("log_dir"):
        root.addHandler(_jsonl_handler(cfg))

    set_configured(True)


def _emit(logger: logging.Logger, helper: str, message: str, fields: Dict[str, Any]) -> None:
    py_level, tag, numeric = _HELPERS[helper]
    if numeric > get_level():
        return

    record_extra = {
        "tag": tag,
        "numeric_level": int(numeric),
        "request_id": get_request_id(),
        "event": fields.pop("event", None),
        "seconds": fields.pop("seconds", None),
        "extra_data": fields or None,
    }
    logger.log(py_level, message, extra=record_extra)


def get_logger(name: str = "ssml-tts") -> logging.Logger:
    """Return a named logger; the first call configures logging."""
    configure_logging()
    return logging.getLogger(name)


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Request lifecycle and results (NORMAL)."""
    _emit(logger, "info", msg, fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, "warn", msg, fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, "success", msg, fields)


def error(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Failures that abort a request (MINIMAL, always shown)."""
    _emit(logger, "error", msg, fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, "fail", msg, fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Per-segment detail (VERBOSE)."""
    _emit(logger, "verbose", msg, fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, "debug", msg, fields)


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "LEVEL_NAMES",
    "coerce_level",
    "Colors",
    "supports_color",
    "get_tag_color",
    "get_request_id",
    "set_request_id",
    "get_level",
    "get_level_name",
    "get_log_config",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]

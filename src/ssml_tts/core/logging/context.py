"""
Request Context and Logging State.

The request id lives in a ContextVar so that concurrent requests handled
by the same worker each log their own id. Level and configuration are
process-wide module state.

Environment Variables:
    - SSML_TTS_LOG_LEVEL: Log level (1-4 or name)
    - SSML_TTS_LOG_DIR: Directory for the JSONL log file
    - SSML_TTS_JSONL_FILE: JSONL log filename
    - SSML_TTS_LOG_ROTATE_BYTES: Max file size before rotation
    - SSML_TTS_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Return the request id of the current context, or "-"."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging configuration.

    Priority (highest first):
        1. SSML_TTS_* environment variables
        2. `logging` section of the settings file
        3. Defaults applied by configure_logging()
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("SSML_TTS_SETTINGS", "config/settings.yaml")
    try:
        from ssml_tts.core.config import load_settings
        settings = load_settings(settings_path, missing_ok=True)
        cfg.update(settings.raw.get("logging", {}) or {})
    except (OSError, yaml.YAMLError):
        # Unreadable settings file: environment and defaults only
        pass

    if os.getenv("SSML_TTS_LOG_LEVEL"):
        cfg["level"] = os.environ["SSML_TTS_LOG_LEVEL"]
    if os.getenv("SSML_TTS_LOG_DIR"):
        cfg["log_dir"] = os.environ["SSML_TTS_LOG_DIR"]
    if os.getenv("SSML_TTS_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["SSML_TTS_JSONL_FILE"]
    for env, key in (
        ("SSML_TTS_LOG_ROTATE_BYTES", "rotate_max_bytes"),
        ("SSML_TTS_LOG_ROTATE_BACKUP", "rotate_backup_count"),
    ):
        if os.getenv(env):
            try:
                cfg[key] = int(os.environ[env])
            except ValueError:
                pass  # ignore malformed override

    return cfg

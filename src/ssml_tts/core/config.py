"""
Configuration Management for ssml-tts.

Configuration Hierarchy (highest priority first):
    1. Environment variables (GCS_BUCKET, R2_*, PROJECT_NUMBER, ...)
    2. YAML config file (config/settings.yaml, or $SSML_TTS_SETTINGS)
    3. Defaults class values

Example settings.yaml:
    chunking:
      max_len: 3000
      pause_ms: 600

    voice:
      language_code: en-GB
      name: en-GB-Wavenet-B

    storage:
      r2_bucket: podcasts
      r2_endpoint: https://<account>.r2.cloudflarestorage.com
      r2_public_base_url: https://pub-xxxx.r2.dev

    long_audio:
      project_number: "123456789"

    logging:
      level: 2
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or malformed."""
    pass


class Defaults:
    """Default configuration values, used when YAML and env are silent."""

    # ─────────────────────────────────────────────────────────────────────────
    # Chunking
    # ─────────────────────────────────────────────────────────────────────────
    CHUNKING_MAX_LEN = 3000             # Characters inside each <speak>
    CHUNKING_ASCII_ONLY = False         # Fold text to ASCII before wrapping
    CHUNKING_PAUSE_MS = 600             # Pause between paragraphs

    # ─────────────────────────────────────────────────────────────────────────
    # Per-request fan-out
    # ─────────────────────────────────────────────────────────────────────────
    CONCURRENCY_DEFAULT_WORKERS = 3     # Used when the request names none
    CONCURRENCY_MAX_WORKERS = 10        # Hard ceiling per request

    # ─────────────────────────────────────────────────────────────────────────
    # Voice / audio defaults
    # ─────────────────────────────────────────────────────────────────────────
    VOICE_LANGUAGE_CODE = "en-GB"
    VOICE_NAME = "en-GB-Wavenet-B"
    AUDIO_ENCODING = "MP3"
    AUDIO_SPEAKING_RATE = 1.0

    # ─────────────────────────────────────────────────────────────────────────
    # Storage
    # ─────────────────────────────────────────────────────────────────────────
    STORAGE_R2_PREFIX = "tts"

    # ─────────────────────────────────────────────────────────────────────────
    # Long-audio API
    # ─────────────────────────────────────────────────────────────────────────
    LONG_AUDIO_API_BASE = "https://texttospeech.googleapis.com"
    LONG_AUDIO_LOCATION = "global"
    LONG_AUDIO_TIMEOUT_S = 30.0
    LONG_AUDIO_POLL_INTERVAL_S = 10.0

    # ─────────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────────
    HTTP_TOLERANT_JSON = True           # Retry malformed bodies through json_repair
    HTTP_MAX_TEXT_CHARS = 100_000

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG
    LOGGING_TEXT_PREVIEW_CHARS = 80


# Environment variable -> (section, key)
_ENV_OVERRIDES = {
    "GOOGLE_CREDENTIALS": ("google", "credentials_json"),
    "GCS_BUCKET": ("storage", "gcs_bucket"),
    "R2_BUCKET": ("storage", "r2_bucket"),
    "R2_ENDPOINT": ("storage", "r2_endpoint"),
    "R2_ACCESS_KEY_ID": ("storage", "r2_access_key_id"),
    "R2_SECRET_ACCESS_KEY": ("storage", "r2_secret_access_key"),
    "R2_PUBLIC_BASE_URL": ("storage", "r2_public_base_url"),
    "PROJECT_NUMBER": ("long_audio", "project_number"),
    "SSML_TTS_MAX_LEN": ("chunking", "max_len"),
}


@dataclass
class ChunkingConfig:
    """Text-to-SSML chunking parameters."""
    max_len: int = Defaults.CHUNKING_MAX_LEN
    ascii_only: bool = Defaults.CHUNKING_ASCII_ONLY
    pause_ms: int = Defaults.CHUNKING_PAUSE_MS


@dataclass
class ConcurrencyConfig:
    """
    Per-request synthesis fan-out.

    Each request synthesizes its segments on at most `max_workers` threads.
    """
    default_workers: int = Defaults.CONCURRENCY_DEFAULT_WORKERS
    max_workers: int = Defaults.CONCURRENCY_MAX_WORKERS


@dataclass
class VoiceDefaultsConfig:
    """Voice and audio settings used when a request does not supply them."""
    language_code: str = Defaults.VOICE_LANGUAGE_CODE
    name: str = Defaults.VOICE_NAME
    audio_encoding: str = Defaults.AUDIO_ENCODING
    speaking_rate: float = Defaults.AUDIO_SPEAKING_RATE


@dataclass
class StorageConfig:
    """
    Object storage targets.

    R2 (S3-compatible) is used when its endpoint, keys and bucket are all
    present; otherwise GCS is used when a bucket is known.
    """
    gcs_bucket: Optional[str] = None
    r2_bucket: Optional[str] = None
    r2_endpoint: Optional[str] = None
    r2_access_key_id: Optional[str] = None
    r2_secret_access_key: Optional[str] = None
    r2_public_base_url: Optional[str] = None
    r2_prefix: str = Defaults.STORAGE_R2_PREFIX

    @property
    def r2_credentials_configured(self) -> bool:
        return bool(self.r2_endpoint and self.r2_access_key_id and self.r2_secret_access_key)


@dataclass
class LongAudioConfig:
    """Long-running synthesis (synthesizeLongAudio) proxy settings."""
    project_number: Optional[str] = None
    location: str = Defaults.LONG_AUDIO_LOCATION
    api_base: str = Defaults.LONG_AUDIO_API_BASE
    timeout_s: float = Defaults.LONG_AUDIO_TIMEOUT_S
    poll_interval_s: float = Defaults.LONG_AUDIO_POLL_INTERVAL_S


@dataclass
class HttpConfig:
    """HTTP surface settings."""
    tolerant_json: bool = Defaults.HTTP_TOLERANT_JSON
    max_text_chars: int = Defaults.HTTP_MAX_TEXT_CHARS


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL, 2 = NORMAL (default), 3 = VERBOSE, 4 = DEBUG
    """
    level: int = Defaults.LOGGING_LEVEL
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS


@dataclass
class ServiceConfig:
    """
    Validated, typed configuration built from Settings.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.chunking.max_len)
    """
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    voice: VoiceDefaultsConfig = field(default_factory=VoiceDefaultsConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    long_audio: LongAudioConfig = field(default_factory=LongAudioConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    google_credentials_json: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Build and validate configuration from raw settings.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Chunking
        # ─────────────────────────────────────────────────────────────────────
        chunking_raw = raw.get("chunking", {}) or {}
        chunking = ChunkingConfig(
            max_len=cls._as_int("chunking.max_len", chunking_raw.get("max_len", Defaults.CHUNKING_MAX_LEN)),
            ascii_only=bool(chunking_raw.get("ascii_only", Defaults.CHUNKING_ASCII_ONLY)),
            pause_ms=cls._as_int("chunking.pause_ms", chunking_raw.get("pause_ms", Defaults.CHUNKING_PAUSE_MS)),
        )
        cls._validate_positive("chunking.max_len", chunking.max_len)
        cls._validate_non_negative("chunking.pause_ms", chunking.pause_ms)

        # ─────────────────────────────────────────────────────────────────────
        # Concurrency
        # ─────────────────────────────────────────────────────────────────────
        concurrency_raw = raw.get("concurrency", {}) or {}
        concurrency = ConcurrencyConfig(
            default_workers=cls._as_int(
                "concurrency.default_workers",
                concurrency_raw.get("default_workers", Defaults.CONCURRENCY_DEFAULT_WORKERS),
            ),
            max_workers=cls._as_int(
                "concurrency.max_workers",
                concurrency_raw.get("max_workers", Defaults.CONCURRENCY_MAX_WORKERS),
            ),
        )
        cls._validate_positive("concurrency.max_workers", concurrency.max_workers)
        cls._validate_range("concurrency.default_workers", concurrency.default_workers, 1, concurrency.max_workers)

        # ─────────────────────────────────────────────────────────────────────
        # Voice
        # ─────────────────────────────────────────────────────────────────────
        voice_raw = raw.get("voice", {}) or {}
        voice = VoiceDefaultsConfig(
            language_code=str(voice_raw.get("language_code", Defaults.VOICE_LANGUAGE_CODE)),
            name=str(voice_raw.get("name", Defaults.VOICE_NAME)),
            audio_encoding=str(voice_raw.get("audio_encoding", Defaults.AUDIO_ENCODING)).upper(),
            speaking_rate=float(voice_raw.get("speaking_rate", Defaults.AUDIO_SPEAKING_RATE)),
        )
        cls._validate_range("voice.speaking_rate", voice.speaking_rate, 0.25, 4.0)

        # ─────────────────────────────────────────────────────────────────────
        # Storage
        # ─────────────────────────────────────────────────────────────────────
        storage_raw = raw.get("storage", {}) or {}
        storage = StorageConfig(
            gcs_bucket=storage_raw.get("gcs_bucket") or None,
            r2_bucket=storage_raw.get("r2_bucket") or None,
            r2_endpoint=storage_raw.get("r2_endpoint") or None,
            r2_access_key_id=storage_raw.get("r2_access_key_id") or None,
            r2_secret_access_key=storage_raw.get("r2_secret_access_key") or None,
            r2_public_base_url=storage_raw.get("r2_public_base_url") or None,
            r2_prefix=str(storage_raw.get("r2_prefix") or Defaults.STORAGE_R2_PREFIX),
        )

        # ─────────────────────────────────────────────────────────────────────
        # Long audio
        # ─────────────────────────────────────────────────────────────────────
        long_raw = raw.get("long_audio", {}) or {}
        project_number = long_raw.get("project_number")
        long_audio = LongAudioConfig(
            project_number=str(project_number) if project_number else None,
            location=str(long_raw.get("location", Defaults.LONG_AUDIO_LOCATION)),
            api_base=str(long_raw.get("api_base", Defaults.LONG_AUDIO_API_BASE)).rstrip("/"),
            timeout_s=float(long_raw.get("timeout_s", Defaults.LONG_AUDIO_TIMEOUT_S)),
            poll_interval_s=float(long_raw.get("poll_interval_s", Defaults.LONG_AUDIO_POLL_INTERVAL_S)),
        )
        cls._validate_positive("long_audio.timeout_s", long_audio.timeout_s)
        cls._validate_positive("long_audio.poll_interval_s", long_audio.poll_interval_s)

        # ─────────────────────────────────────────────────────────────────────
        # HTTP
        # ─────────────────────────────────────────────────────────────────────
        http_raw = raw.get("http", {}) or {}
        http = HttpConfig(
            tolerant_json=bool(http_raw.get("tolerant_json", Defaults.HTTP_TOLERANT_JSON)),
            max_text_chars=cls._as_int(
                "http.max_text_chars", http_raw.get("max_text_chars", Defaults.HTTP_MAX_TEXT_CHARS)
            ),
        )
        cls._validate_positive("http.max_text_chars", http.max_text_chars)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)
        logging_cfg = LoggingConfig(
            level=log_level,
            text_preview_chars=cls._as_int(
                "logging.text_preview_chars",
                logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS),
            ),
        )
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)

        google_raw = raw.get("google", {}) or {}

        return cls(
            chunking=chunking,
            concurrency=concurrency,
            voice=voice,
            storage=storage,
            long_audio=long_audio,
            http=http,
            logging=logging_cfg,
            google_credentials_json=google_raw.get("credentials_json") or None,
        )

    @staticmethod
    def _as_int(name: str, value: Any) -> int:
        """Coerce to int, reporting the setting name on failure."""
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigValidationError(f"{name} must be an integer, got {value!r}")

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable raw settings loaded from YAML plus environment overrides.

    Use get_service_config() for the validated, typed view.
    """
    raw: Dict[str, Any]

    @property
    def max_len(self) -> int:
        return int((self.raw.get("chunking", {}) or {}).get("max_len", Defaults.CHUNKING_MAX_LEN))

    def get_service_config(self) -> ServiceConfig:
        """
        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def apply_env_overrides(raw: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Copy non-empty override variables from the environment into raw settings."""
    env = os.environ if environ is None else environ
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            section_raw = raw.get(section)
            if not isinstance(section_raw, dict):
                section_raw = raw[section] = {}
            section_raw[key] = value
    return raw


def default_settings_path() -> str:
    return os.getenv("SSML_TTS_SETTINGS", "config/settings.yaml")


def load_settings(path: Optional[str] = None, missing_ok: bool = False) -> Settings:
    """
    Load settings from a YAML file and apply environment overrides.

    Args:
        path: YAML path (defaults to $SSML_TTS_SETTINGS or config/settings.yaml).
        missing_ok: Treat a missing file as empty instead of raising.

    Raises:
        FileNotFoundError: If the file doesn't exist and missing_ok is False.
    """
    p = Path(path or default_settings_path())
    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif not missing_ok:
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    return Settings(raw=apply_env_overrides(raw))

"""
Tests for configuration validation and defaults.

Tests cover:
- Defaults class values
- ServiceConfig.from_settings() - all sections
- ConfigValidationError on invalid values
- String log level coercion ("DEBUG" -> 4)
- Environment overrides (GCS_BUCKET, R2_*, PROJECT_NUMBER, ...)
- load_settings() with and without a file
"""

import pytest

from ssml_tts.core.config import (
    ConfigValidationError,
    Defaults,
    ServiceConfig,
    Settings,
    StorageConfig,
    apply_env_overrides,
    load_settings,
)


class TestDefaults:
    """Tests for Defaults class values."""

    def test_chunking_defaults(self):
        """Chunking defaults match the public contract."""
        assert Defaults.CHUNKING_MAX_LEN == 3000
        assert Defaults.CHUNKING_PAUSE_MS == 600
        assert Defaults.CHUNKING_ASCII_ONLY is False

    def test_concurrency_defaults(self):
        """Fan-out defaults to 3 workers, at most 10."""
        assert Defaults.CONCURRENCY_DEFAULT_WORKERS == 3
        assert Defaults.CONCURRENCY_MAX_WORKERS == 10

    def test_voice_defaults(self):
        """Default voice is the British Wavenet voice, MP3 at rate 1.0."""
        assert Defaults.VOICE_LANGUAGE_CODE == "en-GB"
        assert Defaults.VOICE_NAME == "en-GB-Wavenet-B"
        assert Defaults.AUDIO_ENCODING == "MP3"
        assert Defaults.AUDIO_SPEAKING_RATE == 1.0

    def test_long_audio_defaults(self):
        """Long audio talks to the public API in the global location."""
        assert Defaults.LONG_AUDIO_API_BASE == "https://texttospeech.googleapis.com"
        assert Defaults.LONG_AUDIO_LOCATION == "global"

    def test_logging_defaults(self):
        assert Defaults.LOGGING_LEVEL == 2
        assert Defaults.LOGGING_TEXT_PREVIEW_CHARS == 80


class TestServiceConfigFromSettings:
    """Tests for ServiceConfig.from_settings()."""

    def test_empty_settings_use_defaults(self):
        """Missing sections fall back to Defaults."""
        config = ServiceConfig.from_settings(Settings(raw={}))
        assert config.chunking.max_len == 3000
        assert config.concurrency.default_workers == 3
        assert config.concurrency.max_workers == 10
        assert config.voice.name == "en-GB-Wavenet-B"
        assert config.storage.r2_prefix == "tts"
        assert config.storage.gcs_bucket is None
        assert config.long_audio.project_number is None
        assert config.http.tolerant_json is True
        assert config.google_credentials_json is None

    def test_none_sections_use_defaults(self):
        """A section present but empty in YAML (None) uses defaults."""
        config = ServiceConfig.from_settings(Settings(raw={"chunking": None, "storage": None}))
        assert config.chunking.max_len == 3000
        assert config.storage.r2_bucket is None

    def test_chunking_values(self):
        config = ServiceConfig.from_settings(Settings(raw={
            "chunking": {"max_len": 4400, "ascii_only": True, "pause_ms": 300},
        }))
        assert config.chunking.max_len == 4400
        assert config.chunking.ascii_only is True
        assert config.chunking.pause_ms == 300

    def test_string_numbers_are_coerced(self):
        """Values from environment overrides arrive as strings."""
        config = ServiceConfig.from_settings(Settings(raw={"chunking": {"max_len": "1500"}}))
        assert config.chunking.max_len == 1500

    def test_voice_encoding_uppercased(self):
        config = ServiceConfig.from_settings(Settings(raw={"voice": {"audio_encoding": "ogg_opus"}}))
        assert config.voice.audio_encoding == "OGG_OPUS"

    def test_storage_values(self):
        config = ServiceConfig.from_settings(Settings(raw={
            "storage": {
                "r2_bucket": "podcasts",
                "r2_endpoint": "https://acct.r2.cloudflarestorage.com",
                "r2_access_key_id": "key",
                "r2_secret_access_key": "secret",
                "r2_public_base_url": "https://pub.example.dev",
            },
        }))
        assert config.storage.r2_bucket == "podcasts"
        assert config.storage.r2_credentials_configured is True

    def test_long_audio_api_base_trailing_slash_removed(self):
        config = ServiceConfig.from_settings(Settings(raw={
            "long_audio": {"api_base": "http://localhost:9000/", "project_number": 12345},
        }))
        assert config.long_audio.api_base == "http://localhost:9000"
        assert config.long_audio.project_number == "12345"

    def test_google_credentials(self):
        config = ServiceConfig.from_settings(Settings(raw={"google": {"credentials_json": "{}"}}))
        assert config.google_credentials_json == "{}"

    def test_string_log_level(self):
        """Level names are coerced to numbers."""
        config = ServiceConfig.from_settings(Settings(raw={"logging": {"level": "DEBUG"}}))
        assert config.logging.level == 4
        config = ServiceConfig.from_settings(Settings(raw={"logging": {"level": "verbose"}}))
        assert config.logging.level == 3


class TestConfigValidation:
    """ConfigValidationError is raised for out-of-bounds values."""

    def test_zero_max_len_rejected(self):
        with pytest.raises(ConfigValidationError, match="chunking.max_len"):
            ServiceConfig.from_settings(Settings(raw={"chunking": {"max_len": 0}}))

    def test_non_integer_max_len_rejected(self):
        with pytest.raises(ConfigValidationError, match="must be an integer"):
            ServiceConfig.from_settings(Settings(raw={"chunking": {"max_len": "lots"}}))

    def test_negative_pause_rejected(self):
        with pytest.raises(ConfigValidationError, match="pause_ms"):
            ServiceConfig.from_settings(Settings(raw={"chunking": {"pause_ms": -1}}))

    def test_default_workers_above_max_rejected(self):
        with pytest.raises(ConfigValidationError, match="default_workers"):
            ServiceConfig.from_settings(Settings(raw={
                "concurrency": {"default_workers": 20, "max_workers": 10},
            }))

    def test_speaking_rate_range(self):
        with pytest.raises(ConfigValidationError, match="speaking_rate"):
            ServiceConfig.from_settings(Settings(raw={"voice": {"speaking_rate": 9}}))

    def test_log_level_range(self):
        with pytest.raises(ConfigValidationError, match="logging.level"):
            ServiceConfig.from_settings(Settings(raw={"logging": {"level": 7}}))

    def test_timeout_must_be_positive(self):
        with pytest.raises(ConfigValidationError, match="timeout_s"):
            ServiceConfig.from_settings(Settings(raw={"long_audio": {"timeout_s": 0}}))


class TestEnvOverrides:
    """Tests for apply_env_overrides()."""

    def test_storage_variables(self):
        raw = apply_env_overrides({}, environ={
            "GCS_BUCKET": "audio-bucket",
            "R2_BUCKET": "r2-bucket",
            "R2_PUBLIC_BASE_URL": "https://pub.example.dev",
        })
        assert raw["storage"]["gcs_bucket"] == "audio-bucket"
        assert raw["storage"]["r2_bucket"] == "r2-bucket"
        assert raw["storage"]["r2_public_base_url"] == "https://pub.example.dev"

    def test_env_wins_over_yaml(self):
        raw = apply_env_overrides({"storage": {"gcs_bucket": "from-yaml"}}, environ={"GCS_BUCKET": "from-env"})
        assert raw["storage"]["gcs_bucket"] == "from-env"

    def test_empty_variables_ignored(self):
        raw = apply_env_overrides({"storage": {"gcs_bucket": "from-yaml"}}, environ={"GCS_BUCKET": ""})
        assert raw["storage"]["gcs_bucket"] == "from-yaml"

    def test_project_and_credentials(self):
        raw = apply_env_overrides({}, environ={"PROJECT_NUMBER": "42", "GOOGLE_CREDENTIALS": '{"type": "x"}'})
        config = ServiceConfig.from_settings(Settings(raw=raw))
        assert config.long_audio.project_number == "42"
        assert config.google_credentials_json == '{"type": "x"}'

    def test_max_len_variable(self):
        raw = apply_env_overrides({}, environ={"SSML_TTS_MAX_LEN": "1200"})
        assert Settings(raw=raw).max_len == 1200


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"))

    def test_missing_file_ok(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SSML_TTS_MAX_LEN", raising=False)
        settings = load_settings(str(tmp_path / "nope.yaml"), missing_ok=True)
        assert settings.max_len == 3000

    def test_yaml_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SSML_TTS_MAX_LEN", raising=False)
        path = tmp_path / "settings.yaml"
        path.write_text("chunking:\n  max_len: 2500\n", encoding="utf-8")
        settings = load_settings(str(path))
        assert settings.max_len == 2500
        assert settings.get_service_config().chunking.max_len == 2500

    def test_settings_env_path(self, tmp_path, monkeypatch):
        """SSML_TTS_SETTINGS selects the file when no path is given."""
        monkeypatch.delenv("SSML_TTS_MAX_LEN", raising=False)
        path = tmp_path / "custom.yaml"
        path.write_text("chunking:\n  max_len: 900\n", encoding="utf-8")
        monkeypatch.setenv("SSML_TTS_SETTINGS", str(path))
        assert load_settings().max_len == 900


class TestStorageConfig:
    def test_r2_requires_all_credentials(self):
        assert StorageConfig(r2_endpoint="https://e", r2_access_key_id="k").r2_credentials_configured is False
        assert StorageConfig(
            r2_endpoint="https://e", r2_access_key_id="k", r2_secret_access_key="s",
        ).r2_credentials_configured is True

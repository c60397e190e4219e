"""
FastAPI Dependency Injection Providers.

Shared resources for the route handlers, resolved through Depends():

    1. get_settings() - Loads and caches settings (YAML + environment)
    2. get_config() - Validated ServiceConfig built from the settings
    3. get_chunked_service() - Singleton ChunkedSpeechService

The service owns its collaborators (speech synthesizer, stores, long-audio
client) and creates the production ones lazily, so the app starts without
cloud credentials. Tests swap any provider through app.dependency_overrides:

    app.dependency_overrides[get_chunked_service] = lambda: ChunkedSpeechService(
        config, synthesizer=FakeSynth(), stores=FakeStores(),
    )

Settings Path:
    $SSML_TTS_SETTINGS, default config/settings.yaml. A missing file means
    defaults plus environment overrides.
"""
from __future__ import annotations

from functools import lru_cache

from ssml_tts.core.config import ServiceConfig, Settings, load_settings
from ssml_tts.services.chunked_service import ChunkedSpeechService, get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once; restart the process to pick up changes."""
    return load_settings(missing_ok=True)


@lru_cache(maxsize=1)
def get_config() -> ServiceConfig:
    """
    Raises:
        ConfigValidationError: If the settings are invalid.
    """
    return get_settings().get_service_config()


def get_chunked_service() -> ChunkedSpeechService:
    """The process-wide ChunkedSpeechService."""
    return get_service(get_config())

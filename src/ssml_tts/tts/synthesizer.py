"""
Speech Synthesis Provider.

The service only needs one operation from a provider: turn one SSML segment
into audio bytes. SpeechSynthesizer is that seam; GoogleSpeechSynthesizer
implements it on Google Cloud Text-to-Speech.

Voice and audio settings arrive from clients as camelCase JSON
({"languageCode": "en-GB", "name": "en-GB-Wavenet-B"}) and from YAML as
snake_case; both spellings are accepted by the from_dict() constructors.

Credentials:
    The client is built from inline service-account JSON when one is
    configured (GOOGLE_CREDENTIALS) and parses, otherwise from application
    default credentials.

Example:
    synth = GoogleSpeechSynthesizer.from_config(config)
    audio = synth.synthesize(
        "<speak>Hello.</speak>",
        VoiceConfig(language_code="en-GB", name="en-GB-Wavenet-B"),
        AudioSettings(audio_encoding="MP3"),
    )
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from google.cloud import texttospeech
from google.oauth2 import service_account

from ssml_tts.core.config import ServiceConfig
from ssml_tts.core.logging import get_logger, verbose, warn
from ssml_tts.services.errors import InvalidInputError, SynthesisError
from ssml_tts.utils.timeit import timeit

_LOG = get_logger("ssml-tts.synthesizer")

_CONTENT_TYPES = {
    "MP3": "audio/mpeg",
    "OGG_OPUS": "audio/ogg",
    "LINEAR16": "audio/wav",
    "MULAW": "audio/basic",
    "ALAW": "audio/basic",
}

_EXTENSIONS = {
    "MP3": "mp3",
    "OGG_OPUS": "ogg",
    "LINEAR16": "wav",
    "MULAW": "ulaw",
    "ALAW": "alaw",
}


def content_type_for(encoding: str) -> str:
    return _CONTENT_TYPES.get(encoding.upper(), "application/octet-stream")


def extension_for(encoding: str) -> str:
    return _EXTENSIONS.get(encoding.upper(), "bin")


def _pick(data: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    if snake in data:
        return data[snake]
    return data.get(camel, default)


@dataclass(frozen=True)
class VoiceConfig:
    """Voice selection: language, optional voice name and gender."""
    language_code: str
    name: Optional[str] = None
    ssml_gender: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], default: "VoiceConfig") -> "VoiceConfig":
        if not data:
            return default
        return cls(
            language_code=str(_pick(data, "language_code", "languageCode", default.language_code)),
            name=_pick(data, "name", "name"),
            ssml_gender=_pick(data, "ssml_gender", "ssmlGender"),
        )


@dataclass(frozen=True)
class AudioSettings:
    """Output audio encoding and prosody settings."""
    audio_encoding: str = "MP3"
    speaking_rate: float = 1.0
    pitch: Optional[float] = None
    sample_rate_hertz: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], default: "AudioSettings") -> "AudioSettings":
        if not data:
            return default
        pitch = _pick(data, "pitch", "pitch")
        sample_rate = _pick(data, "sample_rate_hertz", "sampleRateHertz")
        try:
            return cls(
                audio_encoding=str(_pick(data, "audio_encoding", "audioEncoding", default.audio_encoding)).upper(),
                speaking_rate=float(_pick(data, "speaking_rate", "speakingRate", default.speaking_rate)),
                pitch=float(pitch) if pitch is not None else None,
                sample_rate_hertz=int(sample_rate) if sample_rate is not None else None,
            )
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Invalid audioConfig: {e}", details={"audioConfig": data}) from e

    @property
    def content_type(self) -> str:
        return content_type_for(self.audio_encoding)

    @property
    def extension(self) -> str:
        return extension_for(self.audio_encoding)


def default_voice(config: ServiceConfig) -> VoiceConfig:
    return VoiceConfig(language_code=config.voice.language_code, name=config.voice.name)


def default_audio(config: ServiceConfig) -> AudioSettings:
    return AudioSettings(
        audio_encoding=config.voice.audio_encoding,
        speaking_rate=config.voice.speaking_rate,
    )


def validate_settings(voice: VoiceConfig, audio: AudioSettings) -> None:
    """
    Check encoding and gender names against the provider's enums.

    Raises:
        InvalidInputError: If either name is unknown.
    """
    encoding = audio.audio_encoding.upper()
    if encoding not in texttospeech.AudioEncoding.__members__:
        raise InvalidInputError(
            f"Unsupported audioEncoding: {audio.audio_encoding}",
            details={"audio_encoding": audio.audio_encoding},
        )
    if voice.ssml_gender and str(voice.ssml_gender).upper() not in texttospeech.SsmlVoiceGender.__members__:
        raise InvalidInputError(
            f"Unsupported ssmlGender: {voice.ssml_gender}",
            details={"ssml_gender": voice.ssml_gender},
        )


class SpeechSynthesizer(Protocol):
    """Anything that turns one SSML segment into audio bytes."""

    def synthesize(self, ssml: str, voice: VoiceConfig, audio: AudioSettings) -> bytes:
        ...


def load_credentials(credentials_json: Optional[str]) -> Optional[service_account.Credentials]:
    """
    Parse inline service-account JSON.

    Returns None (fall back to default credentials) when nothing is
    configured or the JSON does not parse.
    """
    if not credentials_json:
        return None
    try:
        info_dict = json.loads(credentials_json)
        return service_account.Credentials.from_service_account_info(info_dict)
    except (ValueError, KeyError) as e:
        warn(_LOG, "inline_credentials_invalid", error=str(e))
        return None


class GoogleSpeechSynthesizer:
    """SpeechSynthesizer backed by Google Cloud Text-to-Speech."""

    def __init__(self, client: texttospeech.TextToSpeechClient):
        self._client = client

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "GoogleSpeechSynthesizer":
        credentials = load_credentials(config.google_credentials_json)
        if credentials is not None:
            client = texttospeech.TextToSpeechClient(credentials=credentials)
        else:
            client = texttospeech.TextToSpeechClient()
        return cls(client)

    def synthesize(self, ssml: str, voice: VoiceConfig, audio: AudioSettings) -> bytes:
        """
        Synthesize one SSML segment.

        Raises:
            InvalidInputError: If the encoding or gender is unknown.
            SynthesisError: If the provider rejects the request or fails.
        """
        validate_settings(voice, audio)
        voice_params = texttospeech.VoiceSelectionParams(language_code=voice.language_code)
        if voice.name:
            voice_params.name = voice.name
        if voice.ssml_gender:
            voice_params.ssml_gender = texttospeech.SsmlVoiceGender[str(voice.ssml_gender).upper()]
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding[audio.audio_encoding.upper()],
            speaking_rate=audio.speaking_rate,
        )
        if audio.pitch is not None:
            audio_config.pitch = audio.pitch
        if audio.sample_rate_hertz is not None:
            audio_config.sample_rate_hertz = audio.sample_rate_hertz

        try:
            with timeit("synthesize") as t:
                response = self._client.synthesize_speech(
                    input=texttospeech.SynthesisInput(ssml=ssml),
                    voice=voice_params,
                    audio_config=audio_config,
                )
        except Exception as e:
            raise SynthesisError(f"Speech synthesis failed: {e}") from e

        verbose(_LOG, "synthesized", chars=len(ssml), bytes=len(response.audio_content), seconds=round(t.seconds, 4))
        return response.audio_content

"""
ChunkedSpeechService - Chunked Synthesis Pipeline.

This module provides the service behind POST /tts/chunked. Long text is
split into SSML segments, each segment is synthesized and (optionally)
uploaded in parallel, and the results are returned in input order.

Architecture:
    Request → Validate → Flatten SSML → Chunk → [Synthesize → Upload] x N → Sort → Response

Key Components:
    - Chunker: ssml_tts.tts.chunker.chunk_text (pure, never raises)
    - Synthesizer: any SpeechSynthesizer (Google Cloud TTS in production)
    - Stores: StoreFactory choosing R2 or GCS per request
    - Long audio: LongAudioClient for the synthesizeLongAudio proxy

Collaborators are injected through the constructor; production ones are
created lazily on first use so the service can start without credentials.

Example:
    >>> service = ChunkedSpeechService(config, synthesizer=my_synth)
    >>> result = service.synthesize_chunked(
    ...     ChunkedRequest(text="First paragraph.\\n\\nSecond one.", return_base64=True),
    ...     request_id="abc123",
    ... )
    >>> result.count
    1
"""
from __future__ import annotations

import base64
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ssml_tts import __version__
from ssml_tts.core.config import ServiceConfig
from ssml_tts.core.logging import fail, get_logger, info, set_request_id, success, verbose
from ssml_tts.services.errors import ServiceError, SynthesisError
from ssml_tts.services.validators import clamp_concurrency, validate_max_len, validate_text
from ssml_tts.tts.chunker import TextSegment, chunk_text
from ssml_tts.tts.long_audio import LongAudioClient
from ssml_tts.tts.storage import AudioStore, StoreFactory, make_object_key
from ssml_tts.tts.synthesizer import (
    AudioSettings,
    GoogleSpeechSynthesizer,
    SpeechSynthesizer,
    VoiceConfig,
    default_audio,
    default_voice,
    validate_settings,
)
from ssml_tts.utils.ssml import convert_to_plain_text, is_ssml
from ssml_tts.utils.text import NORMALIZE_VERSION
from ssml_tts.utils.timeit import timeit

_LOG = get_logger("ssml-tts.service")


# =============================================================================
# Request/Response Dataclasses
# =============================================================================

@dataclass
class ChunkedRequest:
    """
    Request for chunked synthesis.

    Attributes:
        text: Plain text or a <speak> document (required).
        voice: Voice selection dict (camelCase or snake_case keys).
        audio_config: Audio settings dict (camelCase or snake_case keys).
        concurrency: Parallel segments (clamped to [1, max_workers]).
        return_base64: Return audio inline instead of uploading it.
        max_len: Per-segment budget override.
        ascii_only: Fold text to ASCII before chunking.
        gcs_bucket / r2_bucket / r2_prefix: Per-request storage overrides.
    """
    text: str
    voice: Optional[Dict[str, Any]] = None
    audio_config: Optional[Dict[str, Any]] = None
    concurrency: Optional[int] = None
    return_base64: bool = False
    max_len: Optional[int] = None
    ascii_only: Optional[bool] = None
    gcs_bucket: Optional[str] = None
    r2_bucket: Optional[str] = None
    r2_prefix: Optional[str] = None


@dataclass
class SegmentAudio:
    """Synthesis outcome for one segment."""
    index: int
    ssml: str
    bytes_approx: int
    url: Optional[str] = None
    base64: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "index": self.index,
            "ssml": self.ssml,
            "bytesApprox": self.bytes_approx,
            "url": self.url,
        }
        if self.base64 is not None:
            result["base64"] = self.base64
        return result


@dataclass
class ChunkedResult:
    """
    Result of chunked synthesis.

    Attributes:
        chunks: Per-segment results, sorted by index.
        storage: Which backends were available for this request.
        request_id: Request ID for tracing.
        total_seconds: Total processing time.
    """
    chunks: List[SegmentAudio]
    storage: Dict[str, bool]
    request_id: str
    total_seconds: float = 0.0
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.chunks)

    @property
    def summary_bytes_approx(self) -> int:
        return sum(c.bytes_approx for c in self.chunks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "chunks": [c.to_dict() for c in self.chunks],
            "summaryBytesApprox": self.summary_bytes_approx,
            "storage": dict(self.storage),
            "request_id": self.request_id,
        }


def approx_bytes_from_base64(b64: str) -> int:
    """Approximate decoded size: 4 base64 chars carry 3 bytes."""
    return (len(b64) * 3) // 4


# =============================================================================
# Main Service Class
# =============================================================================

class ChunkedSpeechService:
    """
    Chunk, synthesize and store long text.

    Args:
        config: Validated service configuration.
        synthesizer: Speech provider; GoogleSpeechSynthesizer when omitted.
        stores: Store selector; built from config.storage when omitted.
        long_audio: Long-audio client; built from config.long_audio when omitted.
    """

    def __init__(
        self,
        config: ServiceConfig,
        synthesizer: Optional[SpeechSynthesizer] = None,
        stores: Optional[StoreFactory] = None,
        long_audio: Optional[LongAudioClient] = None,
    ):
        self._config = config
        self._synthesizer = synthesizer
        self._stores = stores or StoreFactory(config.storage, config.google_credentials_json)
        self._long_audio = long_audio
        self._lock = threading.Lock()
        self._default_voice = default_voice(config)
        self._default_audio = default_audio(config)

        info(
            _LOG, "service_init",
            max_len=config.chunking.max_len,
            max_workers=config.concurrency.max_workers,
            r2=config.storage.r2_credentials_configured,
            gcs=bool(config.storage.gcs_bucket),
        )

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def synthesizer(self) -> SpeechSynthesizer:
        if self._synthesizer is None:
            with self._lock:
                if self._synthesizer is None:
                    self._synthesizer = GoogleSpeechSynthesizer.from_config(self._config)
        return self._synthesizer

    @property
    def long_audio(self) -> LongAudioClient:
        if self._long_audio is None:
            with self._lock:
                if self._long_audio is None:
                    self._long_audio = LongAudioClient(
                        self._config.long_audio,
                        credentials_json=self._config.google_credentials_json,
                    )
        return self._long_audio

    # =========================================================================
    # Chunking
    # =========================================================================

    def plan(
        self,
        text: Any,
        max_len: Optional[int] = None,
        ascii_only: Optional[bool] = None,
    ) -> List[TextSegment]:
        """
        Validate text and split it into segments without synthesizing.

        SSML input is flattened to plain text first so that markup is never
        cut in half by the chunker.

        Raises:
            InvalidInputError: If text or max_len is invalid.
        """
        text = validate_text(text, self._config.http.max_text_chars)
        budget = validate_max_len(max_len) or self._config.chunking.max_len
        fold = self._config.chunking.ascii_only if ascii_only is None else ascii_only

        if is_ssml(text):
            text = convert_to_plain_text(text)
            verbose(_LOG, "ssml_flattened", chars=len(text))

        return chunk_text(text, budget, ascii_only=fold, pause_ms=self._config.chunking.pause_ms)

    # =========================================================================
    # Synthesis
    # =========================================================================

    def synthesize_chunked(self, request: ChunkedRequest, request_id: str) -> ChunkedResult:
        """
        Chunk the request text, then synthesize and store every segment.

        Segments run on a thread pool bounded by the request's concurrency.
        Results are sorted by index before returning. The first failing
        segment fails the whole request.

        Raises:
            InvalidInputError: If the request is invalid.
            SynthesisError: If synthesis of any segment fails.
            StorageError: If an upload fails.
        """
        timings: Dict[str, float] = {}

        with timeit("chunk") as t_chunk:
            segments = self.plan(request.text, request.max_len, request.ascii_only)
        timings["chunk"] = t_chunk.seconds

        voice = VoiceConfig.from_dict(request.voice, self._default_voice)
        audio = AudioSettings.from_dict(request.audio_config, self._default_audio)
        validate_settings(voice, audio)
        workers = clamp_concurrency(
            request.concurrency,
            self._config.concurrency.default_workers,
            self._config.concurrency.max_workers,
        )

        store: Optional[AudioStore] = None
        if not request.return_base64:
            store = self._stores.select(r2_bucket=request.r2_bucket, gcs_bucket=request.gcs_bucket)
        prefix = request.r2_prefix or self._config.storage.r2_prefix

        info(
            _LOG, "chunked_request",
            segments=len(segments),
            workers=workers,
            store=store.name if store else None,
            encoding=audio.audio_encoding,
        )

        with timeit("fanout") as t_fanout:
            chunks = self._fan_out(segments, voice, audio, store, prefix, workers, request_id)
        timings["fanout"] = t_fanout.seconds

        result = ChunkedResult(
            chunks=chunks,
            storage={
                "r2": self._stores.r2_available(request.r2_bucket),
                "gcs": self._stores.gcs_available(request.gcs_bucket),
            },
            request_id=request_id,
            total_seconds=t_chunk.seconds + t_fanout.seconds,
            timings=timings,
        )
        success(
            _LOG, "chunked_done",
            count=result.count,
            bytes=result.summary_bytes_approx,
            seconds=round(result.total_seconds, 4),
        )
        return result

    def _fan_out(
        self,
        segments: List[TextSegment],
        voice: VoiceConfig,
        audio: AudioSettings,
        store: Optional[AudioStore],
        prefix: str,
        workers: int,
        request_id: str,
    ) -> List[SegmentAudio]:
        if not segments:
            return []

        results: List[SegmentAudio] = []
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"tts-{request_id}") as pool:
            futures = [
                pool.submit(self._process_segment, segment, voice, audio, store, prefix, request_id)
                for segment in segments
            ]
            try:
                for future in as_completed(futures):
                    results.append(future.result())
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        results.sort(key=lambda r: r.index)
        return results

    def _process_segment(
        self,
        segment: TextSegment,
        voice: VoiceConfig,
        audio: AudioSettings,
        store: Optional[AudioStore],
        prefix: str,
        request_id: str,
    ) -> SegmentAudio:
        # Pool threads start with an empty context
        set_request_id(request_id)
        try:
            audio_bytes = self.synthesizer.synthesize(segment.ssml, voice, audio)
        except ServiceError as e:
            e.details.setdefault("index", segment.index)
            fail(_LOG, "segment_failed", index=segment.index, error=e.code)
            raise
        except Exception as e:
            fail(_LOG, "segment_failed", index=segment.index, error=str(e))
            raise SynthesisError(f"Synthesis failed for segment {segment.index}: {e}", details={"index": segment.index}) from e

        b64 = base64.b64encode(audio_bytes).decode("ascii")
        url: Optional[str] = None
        if store is not None:
            key = make_object_key(prefix, segment.index, audio.extension)
            url = store.put(key, audio_bytes, audio.content_type)

        verbose(_LOG, "segment_done", index=segment.index, bytes=len(audio_bytes), url=bool(url))
        return SegmentAudio(
            index=segment.index,
            ssml=segment.ssml,
            bytes_approx=approx_bytes_from_base64(b64),
            url=url,
            # Inline audio when requested or when there is nowhere to upload it
            base64=b64 if store is None else None,
        )

    # =========================================================================
    # Health Check
    # =========================================================================

    def get_health_info(self) -> Dict[str, Any]:
        storage = self._config.storage
        return {
            "ok": True,
            "service": "ssml-tts",
            "version": __version__,
            "normalize_version": NORMALIZE_VERSION,
            "chunking": {
                "max_len": self._config.chunking.max_len,
                "pause_ms": self._config.chunking.pause_ms,
                "ascii_only": self._config.chunking.ascii_only,
            },
            "concurrency": {
                "default": self._config.concurrency.default_workers,
                "max": self._config.concurrency.max_workers,
            },
            "storage": {
                "r2": self._stores.r2_available(),
                "gcs": bool(storage.gcs_bucket),
            },
            "long_audio": {
                "project_configured": bool(self._config.long_audio.project_number),
                "location": self._config.long_audio.location,
            },
        }


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[ChunkedSpeechService] = None
_service_lock = threading.Lock()


def get_service(config: ServiceConfig) -> ChunkedSpeechService:
    """Thread-safe lazy singleton used by the API layer."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = ChunkedSpeechService(config)
    return _service


def reset_service() -> None:
    """Drop the global service instance (tests)."""
    global _service
    with _service_lock:
        _service = None

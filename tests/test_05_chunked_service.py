"""
Tests for ChunkedSpeechService - the chunked synthesis pipeline.

Tests cover:
- plan(): validation, SSML flattening, max_len and ascii overrides
- synthesize_chunked() happy path with fake synthesizer and stores
- Index order preserved under out-of-order completion
- Concurrency clamped to [1, max_workers]
- Base64 vs upload, object keys and content types
- Storage summary (r2/gcs availability)
- Failure in one segment fails the request
- Bad audio settings rejected before any segment is synthesized
- Request id visible to logs emitted from pool threads
- get_health_info() response structure
"""
import base64
import threading
import time

import pytest

from ssml_tts.core.config import ServiceConfig, Settings
from ssml_tts.core.logging import get_request_id
from ssml_tts.services.chunked_service import (
    ChunkedRequest,
    ChunkedSpeechService,
    SegmentAudio,
    approx_bytes_from_base64,
    get_service,
    reset_service,
)
from ssml_tts.services.errors import ErrorCode, InvalidInputError, StorageError, SynthesisError

LONG_TEXT = (
    "First paragraph has one sentence.\n\n"
    "Second paragraph is here. It has two sentences.\n\n"
    "Third paragraph closes the text."
)


class FakeSynth:
    """Records calls; returns deterministic bytes per segment."""

    def __init__(self, delay_first: float = 0.0, fail_on: str | None = None):
        self.calls = []
        self.delay_first = delay_first
        self.fail_on = fail_on
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def synthesize(self, ssml, voice, audio):
        with self._lock:
            self.calls.append((ssml, voice, audio))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.fail_on and self.fail_on in ssml:
                raise RuntimeError("provider exploded")
            if self.delay_first and "First" in ssml:
                time.sleep(self.delay_first)
            else:
                time.sleep(0.01)
            return f"AUDIO:{ssml}".encode("utf-8")
        finally:
            with self._lock:
                self.active -= 1


class FakeStore:
    def __init__(self, name="r2", base="https://cdn.example.dev", fail=False):
        self.name = name
        self.base = base
        self.fail = fail
        self.puts = []

    def put(self, key, data, content_type):
        if self.fail:
            raise StorageError("upload failed", details={"key": key})
        self.puts.append((key, data, content_type))
        return f"{self.base}/{key}"


class FakeStores:
    """Stands in for StoreFactory."""

    def __init__(self, store=None, r2=True, gcs=False):
        self.store = store
        self.r2 = r2
        self.gcs = gcs
        self.selected_with = None

    def select(self, r2_bucket=None, gcs_bucket=None):
        self.selected_with = (r2_bucket, gcs_bucket)
        return self.store

    def r2_available(self, bucket=None):
        return self.r2

    def gcs_available(self, bucket=None):
        return self.gcs or bool(bucket)


@pytest.fixture
def config():
    return ServiceConfig.from_settings(Settings(raw={
        "chunking": {"max_len": 60},
        "concurrency": {"default_workers": 3, "max_workers": 4},
    }))


@pytest.fixture
def synth():
    return FakeSynth()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def service(config, synth, store):
    return ChunkedSpeechService(config, synthesizer=synth, stores=FakeStores(store=store))


class TestPlan:
    """Tests for plan() (chunking without synthesis)."""

    def test_uses_configured_max_len(self, service):
        segments = service.plan(LONG_TEXT)
        assert len(segments) >= 2
        assert all(len(s.ssml) - len("<speak></speak>") <= 60 for s in segments)

    def test_max_len_override(self, service):
        assert len(service.plan(LONG_TEXT, max_len=3000)) == 1

    def test_ssml_input_flattened(self, service):
        segments = service.plan('<speak>Hello <break time="1s"/> <emphasis>world</emphasis>.</speak>')
        assert [s.ssml for s in segments] == ["<speak>Hello world.</speak>"]

    def test_ascii_only_override(self, service):
        assert service.plan("Déjà vu", ascii_only=True)[0].ssml == "<speak>Deja vu</speak>"

    @pytest.mark.parametrize("text", ["", "   ", None, 42])
    def test_invalid_text(self, service, text):
        with pytest.raises(InvalidInputError):
            service.plan(text)

    def test_text_too_long(self, synth):
        config = ServiceConfig.from_settings(Settings(raw={"http": {"max_text_chars": 10}}))
        svc = ChunkedSpeechService(config, synthesizer=synth, stores=FakeStores())
        with pytest.raises(InvalidInputError) as exc_info:
            svc.plan("x" * 11)
        assert exc_info.value.details["max_chars"] == 10

    def test_non_positive_max_len(self, service):
        with pytest.raises(InvalidInputError):
            service.plan("Hello.", max_len=0)


class TestSynthesizeChunked:
    """Tests for synthesize_chunked()."""

    def test_happy_path_uploads(self, service, synth, store):
        result = service.synthesize_chunked(ChunkedRequest(text=LONG_TEXT), request_id="rid-1")

        assert result.count == len(synth.calls) >= 2
        assert [c.index for c in result.chunks] == list(range(result.count))
        assert all(c.url and c.url.startswith("https://cdn.example.dev/tts-") for c in result.chunks)
        assert all(c.base64 is None for c in result.chunks)
        assert len(store.puts) == result.count
        assert result.request_id == "rid-1"

    def test_object_keys_and_content_type(self, service, store):
        service.synthesize_chunked(ChunkedRequest(text=LONG_TEXT, r2_prefix="ep12"), request_id="r")
        keys = [key for key, _, _ in store.puts]
        assert all(key.startswith("ep12-") for key in keys)
        assert any(key.endswith("-000.mp3") for key in keys)
        assert all(ct == "audio/mpeg" for _, _, ct in store.puts)

    def test_audio_encoding_drives_extension(self, service, store):
        service.synthesize_chunked(
            ChunkedRequest(text="Hi.", audio_config={"audioEncoding": "OGG_OPUS"}),
            request_id="r",
        )
        key, _, content_type = store.puts[0]
        assert key.endswith(".ogg")
        assert content_type == "audio/ogg"

    def test_return_base64_skips_upload(self, service, synth, store):
        result = service.synthesize_chunked(ChunkedRequest(text="Hello.", return_base64=True), request_id="r")
        chunk = result.chunks[0]
        assert chunk.url is None
        assert base64.b64decode(chunk.base64) == b"AUDIO:<speak>Hello.</speak>"
        assert store.puts == []

    def test_no_store_returns_base64(self, config, synth):
        svc = ChunkedSpeechService(config, synthesizer=synth, stores=FakeStores(store=None, r2=False))
        result = svc.synthesize_chunked(ChunkedRequest(text="Hello."), request_id="r")
        assert result.chunks[0].url is None
        assert result.chunks[0].base64 is not None

    def test_bytes_approx(self, service):
        result = service.synthesize_chunked(ChunkedRequest(text="Hello.", return_base64=True), request_id="r")
        chunk = result.chunks[0]
        assert chunk.bytes_approx == (len(chunk.base64) * 3) // 4
        assert result.summary_bytes_approx == sum(c.bytes_approx for c in result.chunks)

    def test_voice_and_audio_passed_through(self, service, synth):
        service.synthesize_chunked(
            ChunkedRequest(
                text="Hello.",
                voice={"languageCode": "en-US", "name": "en-US-Neural2-F"},
                audio_config={"speakingRate": 1.25},
                return_base64=True,
            ),
            request_id="r",
        )
        _, voice, audio = synth.calls[0]
        assert voice.language_code == "en-US"
        assert voice.name == "en-US-Neural2-F"
        assert audio.speaking_rate == 1.25
        assert audio.audio_encoding == "MP3"

    def test_default_voice(self, service, synth):
        service.synthesize_chunked(ChunkedRequest(text="Hello.", return_base64=True), request_id="r")
        _, voice, audio = synth.calls[0]
        assert voice.language_code == "en-GB"
        assert voice.name == "en-GB-Wavenet-B"

    def test_bucket_overrides_forwarded(self, config, synth, store):
        stores = FakeStores(store=store)
        svc = ChunkedSpeechService(config, synthesizer=synth, stores=stores)
        svc.synthesize_chunked(ChunkedRequest(text="Hi.", r2_bucket="b1", gcs_bucket="b2"), request_id="r")
        assert stores.selected_with == ("b1", "b2")

    def test_storage_summary(self, service):
        result = service.synthesize_chunked(ChunkedRequest(text="Hi.", gcs_bucket="g"), request_id="r")
        assert result.storage == {"r2": True, "gcs": True}

    def test_to_dict_shape(self, service):
        body = service.synthesize_chunked(ChunkedRequest(text=LONG_TEXT), request_id="abc").to_dict()
        assert set(body) == {"count", "chunks", "summaryBytesApprox", "storage", "request_id"}
        assert set(body["chunks"][0]) == {"index", "ssml", "bytesApprox", "url"}

    def test_empty_plan_after_flattening(self, service, synth):
        """SSML with no speakable text produces zero segments, not an error."""
        result = service.synthesize_chunked(ChunkedRequest(text="<speak><break time='1s'/></speak>"), request_id="r")
        assert result.count == 0
        assert synth.calls == []


class TestOrderingAndConcurrency:
    def test_order_preserved_under_out_of_order_completion(self, config, store):
        """The first segment finishes last; results still come back by index."""
        synth = FakeSynth(delay_first=0.2)
        svc = ChunkedSpeechService(config, synthesizer=synth, stores=FakeStores(store=store))
        result = svc.synthesize_chunked(ChunkedRequest(text=LONG_TEXT, concurrency=4), request_id="r")
        assert [c.index for c in result.chunks] == list(range(result.count))
        assert "First" in result.chunks[0].ssml

    def test_concurrency_clamped_to_max_workers(self, config, store):
        synth = FakeSynth()
        svc = ChunkedSpeechService(config, synthesizer=synth, stores=FakeStores(store=store))
        text = "\n\n".join(f"Paragraph number {i} is long enough to stand alone." for i in range(12))
        svc.synthesize_chunked(ChunkedRequest(text=text, concurrency=50), request_id="r")
        assert synth.max_active <= config.concurrency.max_workers

    def test_concurrency_one_is_sequential(self, config, store):
        synth = FakeSynth()
        svc = ChunkedSpeechService(config, synthesizer=synth, stores=FakeStores(store=store))
        svc.synthesize_chunked(ChunkedRequest(text=LONG_TEXT, concurrency=0), request_id="r")
        assert synth.max_active == 1


class TestFailures:
    def test_synthesis_failure_fails_request(self, config, store):
        synth = FakeSynth(fail_on="Second")
        svc = ChunkedSpeechService(config, synthesizer=synth, stores=FakeStores(store=store))
        with pytest.raises(SynthesisError) as exc_info:
            svc.synthesize_chunked(ChunkedRequest(text=LONG_TEXT), request_id="r")
        assert exc_info.value.code == ErrorCode.SYNTHESIS_FAILED
        assert "index" in exc_info.value.details

    def test_storage_failure_fails_request(self, config, synth):
        svc = ChunkedSpeechService(config, synthesizer=synth, stores=FakeStores(store=FakeStore(fail=True)))
        with pytest.raises(StorageError):
            svc.synthesize_chunked(ChunkedRequest(text="Hello."), request_id="r")

    def test_service_error_from_provider_keeps_code(self, config, store):
        class Rejecting:
            def synthesize(self, ssml, voice, audio):
                raise SynthesisError("Speech synthesis failed: quota exceeded")

        svc = ChunkedSpeechService(config, synthesizer=Rejecting(), stores=FakeStores(store=store))
        with pytest.raises(SynthesisError) as exc_info:
            svc.synthesize_chunked(ChunkedRequest(text="Hello."), request_id="r")
        assert exc_info.value.details["index"] == 0

    @pytest.mark.parametrize("request_kwargs", [
        {"audio_config": {"speakingRate": "fast"}},
        {"audio_config": {"audioEncoding": "NOT_A_CODEC"}},
        {"voice": {"languageCode": "en-GB", "ssmlGender": "ROBOT"}},
    ])
    def test_bad_settings_rejected_before_synthesis(self, service, synth, request_kwargs):
        with pytest.raises(InvalidInputError):
            service.synthesize_chunked(ChunkedRequest(text=LONG_TEXT, **request_kwargs), request_id="r")
        assert synth.calls == []


class TestRequestIdInWorkers:
    def test_segments_see_request_id(self, config, store):
        seen = []

        class Recording:
            def synthesize(self, ssml, voice, audio):
                seen.append(get_request_id())
                return b"AUDIO"

        svc = ChunkedSpeechService(config, synthesizer=Recording(), stores=FakeStores(store=store))
        result = svc.synthesize_chunked(ChunkedRequest(text=LONG_TEXT, concurrency=3), request_id="rid-123")
        assert len(seen) == result.count > 1
        assert set(seen) == {"rid-123"}


class TestHealthInfo:
    def test_structure(self, service):
        info = service.get_health_info()
        assert info["ok"] is True
        assert info["service"] == "ssml-tts"
        assert isinstance(info["version"], str)
        assert info["chunking"]["max_len"] == 60
        assert info["concurrency"] == {"default": 3, "max": 4}
        assert set(info["storage"]) == {"r2", "gcs"}


class TestHelpers:
    def test_approx_bytes_from_base64(self):
        b64 = base64.b64encode(b"x" * 300).decode()
        assert approx_bytes_from_base64(b64) == 300

    def test_segment_audio_to_dict_omits_missing_base64(self):
        d = SegmentAudio(index=1, ssml="<speak>x</speak>", bytes_approx=3, url="u").to_dict()
        assert d == {"index": 1, "ssml": "<speak>x</speak>", "bytesApprox": 3, "url": "u"}

    def test_singleton(self, config):
        reset_service()
        try:
            assert get_service(config) is get_service(config)
        finally:
            reset_service()

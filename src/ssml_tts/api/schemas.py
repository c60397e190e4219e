"""
API Request Schemas.

Pydantic models for the JSON bodies accepted by the HTTP layer. Field names
follow the wire format clients already send (camelCase, plus the uppercase
storage overrides), exposed to Python under snake_case names.

Models:
    ChunkedTTSRequest: Body of POST /tts/chunked
    PreviewRequest: Body of POST /tts/chunked/preview
    LongStartRequest: Body of POST /tts/long/start

Example Request (POST /tts/chunked):
    {
        "text": "First paragraph.\\n\\nSecond paragraph.",
        "voice": {"languageCode": "en-GB", "name": "en-GB-Wavenet-B"},
        "audioConfig": {"audioEncoding": "MP3", "speakingRate": 1.0},
        "concurrency": 3,
        "returnBase64": false,
        "R2_PREFIX": "episode-12"
    }
"""
from __future__ import annotations

from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ssml_tts.services.chunked_service import ChunkedRequest
from ssml_tts.services.errors import InvalidInputError

_M = TypeVar("_M", bound=BaseModel)


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PreviewRequest(_Body):
    """Chunking-only request; nothing is synthesized."""
    text: str = Field(..., min_length=1, description="Plain text or a <speak> document")
    max_len: int | None = Field(default=None, alias="maxLen", gt=0, description="Per-segment character budget")
    ascii_only: bool | None = Field(default=None, alias="asciiOnly", description="Fold text to ASCII")


class ChunkedTTSRequest(PreviewRequest):
    """
    Chunked synthesis request.

    Attributes:
        voice: Google voice selection (languageCode, name, ssmlGender).
            Defaults to the configured voice.
        audio_config: Google audio config (audioEncoding, speakingRate,
            pitch, sampleRateHertz). Defaults to MP3 at rate 1.0.
        concurrency: Segments synthesized in parallel (clamped to 1..10).
        return_base64: Return audio inline instead of uploading it.
        gcs_bucket / r2_bucket: Override the configured buckets.
        r2_prefix: Object key prefix (default "tts").
    """
    voice: Dict[str, Any] | None = Field(default=None, description="Voice selection")
    audio_config: Dict[str, Any] | None = Field(default=None, alias="audioConfig", description="Audio settings")
    concurrency: int | None = Field(default=None, description="Parallel segments (default 3)")
    return_base64: bool = Field(default=False, alias="returnBase64", description="Inline base64 audio")
    gcs_bucket: str | None = Field(default=None, alias="GCS_BUCKET")
    r2_bucket: str | None = Field(default=None, alias="R2_BUCKET")
    r2_prefix: str | None = Field(default=None, alias="R2_PREFIX")

    def to_service_request(self) -> ChunkedRequest:
        return ChunkedRequest(
            text=self.text,
            voice=self.voice,
            audio_config=self.audio_config,
            concurrency=self.concurrency,
            return_base64=self.return_base64,
            max_len=self.max_len,
            ascii_only=self.ascii_only,
            gcs_bucket=self.gcs_bucket,
            r2_bucket=self.r2_bucket,
            r2_prefix=self.r2_prefix,
        )


class LongStartRequest(_Body):
    """
    Long-audio start request.

    Attributes:
        tts: synthesizeLongAudio body without outputGcsUri
            ({"input": ..., "voice": ..., "audioConfig": ...}).
        output_gcs_uri: gs:// destination for the audio file.
        project_number: Overrides the configured project.
        pass_through_auth: Forward the caller's bearer token upstream.
    """
    tts: Dict[str, Any]
    output_gcs_uri: str = Field(..., alias="outputGcsUri")
    project_number: str | None = Field(default=None, alias="projectNumber")
    pass_through_auth: bool = Field(default=False, alias="passThroughAuth")


def parse_body(model: Type[_M], data: Any) -> _M:
    """
    Validate a parsed JSON body against a schema.

    Raises:
        InvalidInputError: With the failing fields in details.
    """
    if not isinstance(data, dict):
        raise InvalidInputError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise InvalidInputError("Invalid request body", details={"fields": fields}) from e

"""
TTS API Routes.

Endpoints:
    GET  /tts/chunked          - Liveness message for the chunked endpoint
    POST /tts/chunked          - Chunk, synthesize and store long text
    POST /tts/chunked/preview  - Chunk only, no synthesis
    POST /tts/long/start       - Start a synthesizeLongAudio operation
    GET  /tts/long/status      - Poll a long-audio operation
    GET  /health               - Health check for load balancers and uptime checks

Request Flow (POST /tts/chunked):
    1. Request ID assigned by middleware (X-Request-Id header)
    2. Body read raw and parsed, repaired if tolerant_json is on
    3. Body validated against ChunkedTTSRequest
    4. ChunkedSpeechService.synthesize_chunked()
    5. JSON summary: count, chunks[], summaryBytesApprox, storage

Error Handling:
    All errors are returned as JSON:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>",
        "details": {...},
        "request_id": "<12 chars>"
    }

    HTTP status codes come from the error code (services/errors.py):
        - INVALID_INPUT -> 400 Bad Request
        - UPSTREAM_ERROR -> 502 Bad Gateway
        - everything else -> 500 Internal Server Error

Example Usage:
    >>> import httpx
    >>> r = httpx.post(
    ...     "http://localhost:8000/tts/chunked",
    ...     json={"text": "Hello there.\\n\\nSecond paragraph.", "returnBase64": True},
    ... )
    >>> r.json()["count"]
    1
"""
from __future__ import annotations

import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from ssml_tts.api.body import json_body
from ssml_tts.api.dependencies import get_chunked_service
from ssml_tts.api.schemas import ChunkedTTSRequest, LongStartRequest, PreviewRequest, parse_body
from ssml_tts.core.logging import error, get_logger, info, set_request_id
from ssml_tts.services.chunked_service import ChunkedSpeechService
from ssml_tts.services.errors import ErrorCode, InvalidInputError, ServiceError
from ssml_tts.services.validators import validate_gcs_uri

router = APIRouter()

_LOG = get_logger("ssml-tts.api")


def new_request_id() -> str:
    return str(uuid.uuid4())[:12]


async def request_id(request: Request) -> str:
    """Request ID assigned by the middleware, bound to the logging context."""
    rid = getattr(request.state, "request_id", None) or new_request_id()
    set_request_id(rid)
    return rid


def _error_response(err: ServiceError, rid: str) -> JSONResponse:
    content = err.to_dict()
    content["request_id"] = rid
    return JSONResponse(status_code=err.http_status, content=content)


def _internal_error(rid: str) -> JSONResponse:
    # Details stay in the logs
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": ErrorCode.INTERNAL_ERROR,
            "message": "Internal server error",
            "request_id": rid,
        },
    )


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@router.get("/tts/chunked")
def chunked_alive():
    """Liveness message for clients probing the endpoint with GET."""
    return {"ok": True, "message": "Chunked TTS endpoint is alive. POST JSON with a 'text' field."}


@router.post("/tts/chunked")
def tts_chunked(
    body: Any = Depends(json_body),
    rid: str = Depends(request_id),
    service: ChunkedSpeechService = Depends(get_chunked_service),
):
    """
    Chunked synthesis endpoint.

    Splits the text into SSML segments, synthesizes them in parallel and
    uploads each one to R2 or GCS (or returns base64 audio).

    Returns:
        {
            "count": 2,
            "chunks": [{"index": 0, "ssml": "<speak>...</speak>",
                        "bytesApprox": 48213, "url": "https://..."}, ...],
            "summaryBytesApprox": 96120,
            "storage": {"r2": true, "gcs": false},
            "request_id": "abc123def456"
        }

    Example:
        curl -X POST http://localhost:8000/tts/chunked \\
            -H "Content-Type: application/json" \\
            -d '{"text": "Hello!", "returnBase64": true}'
    """
    try:
        req = parse_body(ChunkedTTSRequest, body)
        result = service.synthesize_chunked(req.to_service_request(), rid)
        return result.to_dict()
    except ServiceError as e:
        return _error_response(e, rid)
    except Exception as e:
        error(_LOG, "chunked_unhandled", error_type=type(e).__name__, error=str(e))
        return _internal_error(rid)


@router.post("/tts/chunked/preview")
def tts_chunked_preview(
    body: Any = Depends(json_body),
    rid: str = Depends(request_id),
    service: ChunkedSpeechService = Depends(get_chunked_service),
):
    """Return the segment plan for a text without calling the speech provider."""
    try:
        req = parse_body(PreviewRequest, body)
        segments = service.plan(req.text, req.max_len, req.ascii_only)
    except ServiceError as e:
        return _error_response(e, rid)

    info(_LOG, "preview", segments=len(segments))
    return {
        "count": len(segments),
        "chunks": [
            {"index": s.index, "ssml": s.ssml, "bytesApprox": s.approximate_byte_size}
            for s in segments
        ],
        "request_id": rid,
    }


@router.post("/tts/long/start")
def tts_long_start(
    request: Request,
    body: Any = Depends(json_body),
    rid: str = Depends(request_id),
    service: ChunkedSpeechService = Depends(get_chunked_service),
):
    """
    Start a long-audio operation.

    Body: {"tts": {...}, "outputGcsUri": "gs://bucket/file.wav",
           "projectNumber"?: "...", "passThroughAuth"?: true}

    The upstream operation JSON is returned as-is: 200 when the API
    accepted the request, 400 when it rejected it.
    """
    try:
        req = parse_body(LongStartRequest, body)
        validate_gcs_uri(req.output_gcs_uri)
        bearer = _bearer_token(request) if req.pass_through_auth else None
        ok, payload = service.long_audio.start(
            req.tts,
            req.output_gcs_uri,
            project_number=req.project_number,
            bearer_token=bearer,
        )
    except ServiceError as e:
        return _error_response(e, rid)
    except Exception as e:
        error(_LOG, "long_start_unhandled", error_type=type(e).__name__, error=str(e))
        return _internal_error(rid)

    return JSONResponse(status_code=200 if ok else 400, content=payload)


@router.get("/tts/long/status")
def tts_long_status(
    request: Request,
    name: Optional[str] = Query(default=None, description="Operation name (projects/.../operations/...)"),
    pass_through_auth: bool = Query(default=False, alias="passThroughAuth"),
    rid: str = Depends(request_id),
    service: ChunkedSpeechService = Depends(get_chunked_service),
):
    """Fetch the state of a long-audio operation by name."""
    try:
        if not name:
            raise InvalidInputError("operation name is required")
        bearer = _bearer_token(request) if pass_through_auth else None
        ok, payload = service.long_audio.status(name, bearer_token=bearer)
    except ServiceError as e:
        return _error_response(e, rid)
    except Exception as e:
        error(_LOG, "long_status_unhandled", error_type=type(e).__name__, error=str(e))
        return _internal_error(rid)

    return JSONResponse(status_code=200 if ok else 400, content=payload)


@router.get("/health")
def health(service: ChunkedSpeechService = Depends(get_chunked_service)):
    """
    Health check endpoint for load balancers and keep-alive pings.

    Returns service name, version and which storage backends and
    long-audio settings are configured.
    """
    return service.get_health_info()

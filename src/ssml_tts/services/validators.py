"""
Input Validation for the Chunked Speech Service.

Validation runs before any synthesis call. Every function raises
InvalidInputError (HTTP 400) with a message a client can act on.

Validation Rules:
    - Text: required, non-blank, at most http.max_text_chars characters
    - Concurrency: clamped to [1, concurrency.max_workers]
    - maxLen: positive integer when given (floor applied by the chunker)
    - outputGcsUri: must start with gs://
"""
from __future__ import annotations

from typing import Any, Optional

from ssml_tts.core.logging import get_logger, warn
from ssml_tts.services.errors import InvalidInputError

_LOG = get_logger("ssml-tts.validators")


def validate_text(text: Any, max_chars: int) -> str:
    """
    Validate request text.

    Raises:
        InvalidInputError: If text is missing, not a string, blank, or too long.
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidInputError("Provide 'text' string in body.")
    if len(text) > max_chars:
        raise InvalidInputError(
            f"Text exceeds maximum length ({len(text)} > {max_chars})",
            details={"length": len(text), "max_chars": max_chars},
        )
    return text


def clamp_concurrency(value: Optional[int], default: int, max_workers: int) -> int:
    """Clamp requested fan-out to [1, max_workers]."""
    requested = default if value is None else value
    clamped = max(1, min(max_workers, int(requested)))
    if clamped != requested:
        warn(_LOG, "concurrency_clamped", requested=requested, used=clamped)
    return clamped


def validate_max_len(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    if value <= 0:
        raise InvalidInputError(f"maxLen must be positive, got {value}")
    return value


def validate_gcs_uri(uri: Any) -> str:
    if not isinstance(uri, str) or not uri.startswith("gs://"):
        raise InvalidInputError("outputGcsUri must be a gs:// URI", details={"outputGcsUri": uri})
    return uri

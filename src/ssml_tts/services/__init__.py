"""
ssml-tts Services Layer.

Business logic between the API layer and the chunking/speech collaborators.

Components:
    - chunked_service.py: ChunkedSpeechService (chunk, synthesize, store)
    - errors.py: Code-carrying service exceptions
    - validators.py: Input validation functions

Only the exceptions are re-exported here; the tts collaborators import them,
and ChunkedSpeechService imports the collaborators.
"""
from .errors import (
    ErrorCode,
    InvalidInputError,
    ServiceError,
    StorageError,
    SynthesisError,
    UpstreamError,
)

__all__ = [
    "ServiceError",
    "InvalidInputError",
    "SynthesisError",
    "StorageError",
    "UpstreamError",
    "ErrorCode",
]

"""
Service Errors.

Every failure surfaced to clients carries a stable error code so that the
HTTP layer can map it to a status and clients can branch on it:

    {"ok": false, "error": "SYNTHESIS_FAILED", "message": "...", "details": {...}}

Exceptions:
    - ServiceError: base class (INTERNAL_ERROR by default)
    - InvalidInputError: bad request data (400)
    - SynthesisError: speech provider failure (500)
    - StorageError: object upload failure (500)
    - UpstreamError: long-audio API failure or timeout (502)
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Error codes returned in API error bodies."""
    INVALID_INPUT = "INVALID_INPUT"         # Bad request data
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"   # Speech provider error
    STORAGE_FAILED = "STORAGE_FAILED"       # Upload error
    UPSTREAM_ERROR = "UPSTREAM_ERROR"       # Long-audio API error
    INTERNAL_ERROR = "INTERNAL_ERROR"       # Unexpected error


HTTP_STATUS = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.SYNTHESIS_FAILED: 500,
    ErrorCode.STORAGE_FAILED: 500,
    ErrorCode.UPSTREAM_ERROR: 502,
    ErrorCode.INTERNAL_ERROR: 500,
}


class ServiceError(Exception):
    """
    Base exception with an error code and optional details.

    Attributes:
        message: Human-readable error message.
        code: One of ErrorCode.
        details: Extra context for the client (segment index, position, ...).
    """

    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the API error body."""
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class InvalidInputError(ServiceError):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class SynthesisError(ServiceError):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SYNTHESIS_FAILED, details)


class StorageError(ServiceError):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.STORAGE_FAILED, details)


class UpstreamError(ServiceError):
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.UPSTREAM_ERROR, details)

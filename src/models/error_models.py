"""
Error envelope for the Multichat proxy API.

Every error leaves the HTTP layer as ``{"error": {...}}`` so the chat UI can
render one annotation format regardless of which provider failed:

    {
        "error": {
            "code": "EXT_7011",
            "message": "claude API HTTP 529: overloaded",
            "timestamp": "2025-01-15T10:30:00+00:00",
            "path": "/api/chat"
        }
    }
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    # Request and import payload validation
    VALIDATION_ERROR = "VAL_2001"
    VALIDATION_INVALID_FORMAT = "VAL_2003"
    VALIDATION_INCOMPATIBLE_VERSION = "VAL_2005"

    RESOURCE_NOT_FOUND = "RES_3001"
    RESOURCE_ALREADY_EXISTS = "RES_3002"

    # Conversation store and orchestrator
    CHAT_NOT_FOUND = "CHAT_4001"
    STREAM_ABORTED = "CHAT_4002"

    # Upstream providers
    EXTERNAL_SERVICE_ERROR = "EXT_7001"
    EXTERNAL_RATE_LIMITED = "EXT_7003"
    EXTERNAL_MALFORMED_RESPONSE = "EXT_7004"
    OPENAI_ERROR = "EXT_7010"
    CLAUDE_ERROR = "EXT_7011"
    GEMINI_ERROR = "EXT_7012"
    OCR_ERROR = "EXT_7020"

    INTERNAL_ERROR = "INT_9001"
    INTERNAL_UNEXPECTED = "INT_9999"


class ErrorDetail(BaseModel):
    """One field-level problem (request body location or import payload path)."""

    field: str | None = None
    message: str
    code: str | None = None


class ErrorResponse(BaseModel):
    code: ErrorCode
    message: str
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: list[ErrorDetail] | None = None
    path: str | None = None
    # Only rendered when DEBUG is on
    debug: dict[str, Any] | None = Field(default=None, exclude=True)

    def to_dict(self, include_debug: bool = False) -> dict[str, Any]:
        body = self.model_dump(mode="json", exclude_none=True)
        if include_debug and self.debug:
            body["debug"] = self.debug
        return {"error": body}


_STATUS_GROUPS: dict[int, tuple[ErrorCode, ...]] = {
    404: (ErrorCode.RESOURCE_NOT_FOUND, ErrorCode.CHAT_NOT_FOUND),
    409: (ErrorCode.RESOURCE_ALREADY_EXISTS,),
    422: (
        ErrorCode.VALIDATION_ERROR,
        ErrorCode.VALIDATION_INVALID_FORMAT,
        ErrorCode.VALIDATION_INCOMPATIBLE_VERSION,
    ),
    429: (ErrorCode.EXTERNAL_RATE_LIMITED,),
    # Client closed request: the stream was cancelled on purpose
    499: (ErrorCode.STREAM_ABORTED,),
    502: (
        ErrorCode.EXTERNAL_SERVICE_ERROR,
        ErrorCode.EXTERNAL_MALFORMED_RESPONSE,
        ErrorCode.OPENAI_ERROR,
        ErrorCode.CLAUDE_ERROR,
        ErrorCode.GEMINI_ERROR,
        ErrorCode.OCR_ERROR,
    ),
}

ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    code: status for status, codes in _STATUS_GROUPS.items() for code in codes
}

#: Provider key -> error code used when that provider fails
PROVIDER_ERROR_CODES: dict[str, ErrorCode] = {
    "openai": ErrorCode.OPENAI_ERROR,
    "claude": ErrorCode.CLAUDE_ERROR,
    "gemini": ErrorCode.GEMINI_ERROR,
    "vision": ErrorCode.OCR_ERROR,
}


def get_status_code(error_code: ErrorCode) -> int:
    """HTTP status for ``error_code``; anything unmapped is a 500."""
    return ERROR_CODE_TO_STATUS.get(error_code, 500)


__all__ = [
    "ERROR_CODE_TO_STATUS",
    "PROVIDER_ERROR_CODES",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "get_status_code",
]

"""
Global exception handlers for the Multichat proxy API.

Maps domain exceptions onto the standardized ``{"error": {...}}`` envelope.
"""

from __future__ import annotations

import traceback

from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.constants import ERROR_INCOMPATIBLE_VERSION, get_settings
from core.exceptions import (
    ChatNotFoundError,
    DuplicateIdError,
    MalformedResponseError,
    PayloadValidationError,
    ProviderError,
    StreamAbortedError,
)
from models.error_models import (
    PROVIDER_ERROR_CODES,
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    get_status_code,
)
from utils.logger import logger


def _create_error_response(
    code: ErrorCode,
    message: str,
    request: Request | None = None,
    details: list[ErrorDetail] | None = None,
    debug_info: dict[str, Any] | None = None,
) -> ErrorResponse:
    """Create a standardized error response."""
    return ErrorResponse(
        code=code,
        message=message,
        path=request.url.path if request else None,
        details=details,
        debug=debug_info,
    )


def _log_error(error: Exception, code: ErrorCode, status_code: int, request: Request | None = None) -> None:
    """Log error with appropriate level and context."""
    context = {"error_code": code.value, "status_code": status_code, "path": request.url.path if request else None}
    if status_code >= 500:
        logger.error(f"Server error: {code.value} - {error}", **context)
    elif status_code >= 400:
        logger.warning(f"Client error: {code.value} - {error}", **context)


def _respond(
    request: Request,
    exc: Exception,
    code: ErrorCode,
    message: str,
    details: list[ErrorDetail] | None = None,
    debug_info: dict[str, Any] | None = None,
) -> JSONResponse:
    status_code = get_status_code(code)
    settings = get_settings()
    error_response = _create_error_response(code, message, request, details, debug_info if settings.debug else None)
    _log_error(exc, code, status_code, request)
    return JSONResponse(status_code=status_code, content=error_response.to_dict(include_debug=settings.debug))


def provider_error_response(request: Request, exc: ProviderError | MalformedResponseError) -> JSONResponse:
    """Error envelope for an upstream provider failure."""
    if isinstance(exc, MalformedResponseError):
        code = ErrorCode.EXTERNAL_MALFORMED_RESPONSE
        debug_info: dict[str, Any] = {"provider": exc.provider, "detail": exc.detail}
    elif exc.status == 429:
        code = ErrorCode.EXTERNAL_RATE_LIMITED
        debug_info = {"provider": exc.provider, "upstream_status": exc.status}
    else:
        code = PROVIDER_ERROR_CODES.get(exc.provider, ErrorCode.EXTERNAL_SERVICE_ERROR)
        debug_info = {"provider": exc.provider, "upstream_status": exc.status}
    return _respond(request, exc, code, str(exc), debug_info=debug_info)


async def provider_exception_handler(request: Request, exc: ProviderError) -> JSONResponse:
    return provider_error_response(request, exc)


async def malformed_response_handler(request: Request, exc: MalformedResponseError) -> JSONResponse:
    return provider_error_response(request, exc)


async def payload_validation_handler(request: Request, exc: PayloadValidationError) -> JSONResponse:
    details = [ErrorDetail(field=d.get("field"), message=str(d.get("message", ""))) for d in exc.details]
    if str(exc) == ERROR_INCOMPATIBLE_VERSION:
        code = ErrorCode.VALIDATION_INCOMPATIBLE_VERSION
    else:
        code = ErrorCode.VALIDATION_INVALID_FORMAT
    return _respond(request, exc, code, str(exc), details=details or None)


async def chat_not_found_handler(request: Request, exc: ChatNotFoundError) -> JSONResponse:
    return _respond(request, exc, ErrorCode.CHAT_NOT_FOUND, str(exc))


async def duplicate_id_handler(request: Request, exc: DuplicateIdError) -> JSONResponse:
    return _respond(request, exc, ErrorCode.RESOURCE_ALREADY_EXISTS, str(exc))


async def stream_aborted_handler(request: Request, exc: StreamAbortedError) -> JSONResponse:
    return _respond(request, exc, ErrorCode.STREAM_ABORTED, str(exc))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with consistent formatting."""
    status_to_code = {
        404: ErrorCode.RESOURCE_NOT_FOUND,
        409: ErrorCode.RESOURCE_ALREADY_EXISTS,
        422: ErrorCode.VALIDATION_ERROR,
        429: ErrorCode.EXTERNAL_RATE_LIMITED,
        502: ErrorCode.EXTERNAL_SERVICE_ERROR,
    }
    code = status_to_code.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    error_response = _create_error_response(code=code, message=message, request=request)
    _log_error(exc, code, exc.status_code, request)
    return JSONResponse(status_code=exc.status_code, content=error_response.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors from request parsing."""
    details = [
        ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]
    return _respond(request, exc, ErrorCode.VALIDATION_ERROR, "Request validation failed", details=details)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with graceful degradation."""
    logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}", exc_info=True, path=request.url.path)
    debug_info = {
        "exception_type": type(exc).__name__,
        "exception_message": str(exc),
        "traceback": traceback.format_exc(),
    }
    return _respond(request, exc, ErrorCode.INTERNAL_UNEXPECTED, "An unexpected error occurred", debug_info=debug_info)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    # Note: type: ignore needed because Starlette's type signature expects Exception,
    # but covariant exception types in handlers are safe and work correctly at runtime
    app.add_exception_handler(ProviderError, provider_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(MalformedResponseError, malformed_response_handler)  # type: ignore[arg-type]
    app.add_exception_handler(PayloadValidationError, payload_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ChatNotFoundError, chat_not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DuplicateIdError, duplicate_id_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StreamAbortedError, stream_aborted_handler)  # type: ignore[arg-type]

    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]

    # Catch-all for unexpected exceptions
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "generic_exception_handler",
    "http_exception_handler",
    "provider_error_response",
    "register_exception_handlers",
    "validation_exception_handler",
]

"""API response helpers and exception handlers.

All API responses use a flat shape:
- Success: { "<kind>": ... } e.g. {"bucket": {...}}, {"usage": {...}}, {"ok": true}
- Error: { "error": "<message>", "code": "E_...", "request_id": "..." }

The request_id is included in error responses for debugging and support.
"""

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from stash.errors import ERROR_CODE_TO_MESSAGE, ApiError, ApiErrorCode
from stash.logging import get_logger, get_request_id
from stash.services.files import FileDownload

logger = get_logger(__name__)


def success_response(kind: str, data: Any) -> dict[str, Any]:
    """Create a success response body.

    Args:
        kind: Top-level key naming what is returned ("bucket", "file", ...).
        data: The response data.

    Returns:
        Dict with a single kind key.
    """
    return {kind: data}


def ok_response() -> dict[str, Any]:
    """Success body for operations that return nothing."""
    return {"ok": True}


def download_response(download: FileDownload) -> StreamingResponse:
    """Stream file content with its length and type set before the body."""
    return StreamingResponse(
        download.chunks,
        media_type=download.content_type,
        headers={"Content-Length": str(download.size)},
    )


def error_response(
    code: ApiErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Create an error response body.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        request_id: Optional request ID for correlation (auto-populated from context if None).

    Returns:
        Dict with "error" (the message) and "code" keys, plus request_id when known.
    """
    if request_id is None:
        request_id = get_request_id()

    body: dict[str, Any] = {"error": message, "code": code.value}
    if request_id:
        body["request_id"] = request_id

    return body


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle Starlette HTTPException (unknown routes, wrong methods)."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_INVALID_REQUEST,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = ERROR_CODE_TO_MESSAGE[code]
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render missing or malformed form fields as E_INVALID_REQUEST."""
    fields = sorted({str(error["loc"][-1]) for error in exc.errors() if error.get("loc")})
    message = "Invalid request"
    if fields:
        message = f"Invalid request: {', '.join(fields)}"
    return JSONResponse(
        status_code=400,
        content=error_response(ApiErrorCode.E_INVALID_REQUEST, message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("Unhandled exception: %s", exc)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )

"""
Global exception handling for DevSprint API.

Provides structured JSON error responses for all exception types,
preventing stack traces from leaking to clients. Service operations report
expected failures as OperationResults; ``result_response`` maps those onto
HTTP status codes.
"""

from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from devsprint.infrastructure.clock import utcnow
from devsprint.models.result import FailureKind, OperationResult

logger = structlog.get_logger(__name__)

FAILURE_STATUS: Dict[FailureKind, int] = {
    FailureKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    FailureKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    FailureKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.PERSISTENCE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class DevSprintException(Exception):
    """Base exception for DevSprint application errors."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(DevSprintException):
    """Missing, expired or invalid session token."""
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class StorageError(DevSprintException):
    """Raised when the blob store rejects or fails an upload."""
    def __init__(self, message: str = "Upload failed", details: dict = None):
        super().__init__(message=message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)


def result_response(result: OperationResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Render an OperationResult as ``{success, ...}`` with a matching status code."""
    if result.success:
        code = success_status
    else:
        code = FAILURE_STATUS.get(result.kind, status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=code, content=jsonable_encoder(result.to_payload()))


def _error_body(message: str, error_type: str, **extra: Any) -> Dict[str, Any]:
    body = {
        "success": False,
        "error": {
            "message": message,
            "type": error_type,
            "timestamp": utcnow().isoformat(),
        },
    }
    body["error"].update(extra)
    return body


async def _devsprint_exception_handler(request: Request, exc: DevSprintException) -> JSONResponse:
    """Handle DevSprint application exceptions."""
    error_id = utcnow().strftime("%Y%m%d_%H%M%S_%f")

    logger.warning(
        "devsprint_exception",
        error_id=error_id,
        error_type=type(exc).__name__,
        message=exc.message,
        path=request.url.path,
        method=request.method,
        details=exc.details,
    )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, type(exc).__name__, error_id=error_id, details=exc.details),
        headers=headers,
    )


async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unhandled exceptions."""
    error_id = utcnow().strftime("%Y%m%d_%H%M%S_%f")

    logger.error(
        "unhandled_exception",
        error_id=error_id,
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Internal server error", "InternalServerError", error_id=error_id),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors with structured detail."""
    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        errors=exc.errors(),
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder(_error_body("Validation error", "ValidationError", details=exc.errors())),
    )


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), "HTTPException", status_code=exc.status_code),
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(DevSprintException, _devsprint_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _global_exception_handler)
    logger.info("exception_handlers_registered")

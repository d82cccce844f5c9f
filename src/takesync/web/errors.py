"""JSON error responses for the HTTP surface."""

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from takesync.utils.exceptions import (
    APIError,
    ConcurrentModificationError,
    IntegrationNotFoundError,
    InvalidTransitionError,
    JobNotFoundError,
    TakesyncError,
)

logger = structlog.get_logger(__name__)


class AppHTTPException(HTTPException):
    """HTTP error carrying a plain message for the JSON body."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(status_code=status_code, detail=message)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _status_for(exc: TakesyncError) -> int:
    if isinstance(exc, (IntegrationNotFoundError, JobNotFoundError)):
        return 404
    if isinstance(exc, (InvalidTransitionError, ConcurrentModificationError)):
        return 409
    if isinstance(exc, APIError):
        return 502
    return 500


def register_error_handlers(app: FastAPI) -> None:
    """Map domain and HTTP errors to ``{success: false, error}`` bodies."""

    @app.exception_handler(StarletteHTTPException)
    def http_exception_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    def request_validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid request", "details": exc.errors()},
        )

    @app.exception_handler(TakesyncError)
    def takesync_exception_handler(request: Request, exc: TakesyncError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error("Request failed", path=request.url.path, error=str(exc))
        return error_response(status_code, str(exc))

"""
Error taxonomy of the rotation engine and the JSON envelope it is rendered in.

Every error carries a stable ``code``; handlers registered by the app factory
turn them into ``{"success": false, "error": {"code", "message", "details"?}}``.
"""
import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class RotationError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, code: str, message: str, details: list[dict] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class RotationValidationError(RotationError):
    status_code = status.HTTP_400_BAD_REQUEST


class RotationConflictError(RotationError):
    status_code = status.HTTP_409_CONFLICT


class RotationNotFoundError(RotationError):
    status_code = status.HTTP_404_NOT_FOUND


class RotationStorageError(RotationError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Storage failure, nothing was written. Retry the whole range."):
        super().__init__("STORAGE_ERROR", message)


def field_error(field: str, message: str) -> dict:
    return {"field": field, "message": message}


def error_body(code: str, message: str, details: list[dict] | None = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"success": False, "error": error}


_HTTP_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


async def _rotation_error_handler(request: Request, exc: RotationError) -> JSONResponse:
    if isinstance(exc, RotationStorageError):
        logger.error("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, exc.details),
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        field_error(".".join(str(p) for p in err["loc"]), err["msg"])
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=error_body("VALIDATION_ERROR", "Request validation failed", details),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RotationError, _rotation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

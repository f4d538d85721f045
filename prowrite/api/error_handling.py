"""Map service, storage and HTTP errors onto the JSON error envelope."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from prowrite.api.schemas import Envelope, ErrorBody
from prowrite.logging import get_logger
from prowrite.service.errors import ServiceError
from prowrite.storage.errors import ConstraintViolation, StorageError

logger = get_logger(__name__)

_STATUS_TO_CODE = {
    400: "validation_error",
    401: "unauthorized",
    402: "payment_required",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    500: "server_error",
    502: "upstream_error",
}

GENERIC_SERVER_MESSAGE = "internal server error"
STORAGE_UNAVAILABLE_MESSAGE = "storage unavailable"


def _error_response(
    status_code: int,
    message: str,
    details: Any = None,
    code: Optional[str] = None,
) -> JSONResponse:
    body = ErrorBody(
        code=code or _STATUS_TO_CODE.get(status_code, "server_error"),
        message=message,
        details=details,
    )
    return JSONResponse(
        status_code=status_code,
        content=Envelope(status="error", error=body).model_dump(),
    )


def _log_error(request: Request, event: str, status_code: int, **fields: Any) -> None:
    log = logger.error if status_code >= 500 else logger.warning
    log(event, path=request.url.path, method=request.method, status_code=status_code, **fields)


def _unpack_http_detail(exc: HTTPException) -> tuple[str, Optional[str], Any]:
    """Return (message, code, details) from an HTTPException detail.

    Routes raise envelope-shaped details via ``routes._http_error``; anything
    else is wrapped as ``{"detail": ...}``.
    """
    detail = exc.detail
    if isinstance(detail, dict) and isinstance(detail.get("error"), dict):
        error = detail["error"]
        return error.get("message", "http error"), error.get("code"), error.get("details")
    wrapped = detail if isinstance(detail, dict) else {"detail": detail}
    return str(wrapped.get("detail", "http error")), None, wrapped


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        _log_error(
            request,
            "service_error",
            exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            detail=exc.detail,
        )
        return _error_response(exc.status_code, exc.message, exc.detail, code=exc.error_code)

    @app.exception_handler(ConstraintViolation)
    async def handle_constraint_violation(request: Request, exc: ConstraintViolation):
        _log_error(request, "constraint_violation", 409, message=exc.message, detail=exc.detail)
        return _error_response(409, exc.message, exc.detail, code="conflict")

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        # Driver and query details stay in the log
        _log_error(request, "storage_error", 500, message=exc.message, detail=exc.detail)
        return _error_response(500, STORAGE_UNAVAILABLE_MESSAGE)

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        message, code, details = _unpack_http_detail(exc)
        _log_error(request, "http_error", exc.status_code, error_code=code, message=message)
        return _error_response(exc.status_code, message, details, code=code)

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        return _error_response(500, GENERIC_SERVER_MESSAGE)

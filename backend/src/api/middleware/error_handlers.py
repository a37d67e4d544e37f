"""FastAPI exception handlers aligned with HTTP API contract."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple, Type

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...services.errors import (
    DanglingReferenceError,
    DiagramStoreError,
    DuplicateNameError,
    FormatError,
    NotFoundError,
    OperationRejectedError,
    SchemaValidationError,
    StorageError,
)

logger = logging.getLogger(__name__)

DEFAULT_ERRORS: Dict[int, Tuple[str, str]] = {
    status.HTTP_400_BAD_REQUEST: ("validation_error", "Invalid request payload"),
    status.HTTP_404_NOT_FOUND: ("not_found", "Resource not found"),
    status.HTTP_409_CONFLICT: ("conflict", "Request conflicts with current state"),
    status.HTTP_422_UNPROCESSABLE_ENTITY: ("unprocessable", "Document failed validation"),
    status.HTTP_500_INTERNAL_SERVER_ERROR: ("internal_error", "Internal server error"),
}

# Most specific classes first; the first isinstance match wins.
DOMAIN_ERRORS: Tuple[Tuple[Type[DiagramStoreError], int, str], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND, "not_found"),
    (DuplicateNameError, status.HTTP_409_CONFLICT, "duplicate_name"),
    (OperationRejectedError, status.HTTP_409_CONFLICT, "operation_rejected"),
    (SchemaValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY, "schema_validation_failed"),
    (FormatError, status.HTTP_422_UNPROCESSABLE_ENTITY, "format_error"),
    (DanglingReferenceError, status.HTTP_422_UNPROCESSABLE_ENTITY, "dangling_reference"),
    (StorageError, status.HTTP_500_INTERNAL_SERVER_ERROR, "storage_error"),
)


def _normalize_error(
    status_code: int, detail: Any
) -> Tuple[str, str, Optional[Dict[str, Any]]]:
    default_error, default_message = DEFAULT_ERRORS.get(
        status_code, DEFAULT_ERRORS[status.HTTP_500_INTERNAL_SERVER_ERROR]
    )
    if isinstance(detail, dict):
        error = detail.get("error", default_error)
        message = detail.get("message", default_message)
        detail_payload = detail.get("detail")
        if detail_payload is None:
            remainder = {
                k: v for k, v in detail.items() if k not in {"error", "message", "detail"}
            }
            detail_payload = remainder or None
        return error, message, detail_payload
    if isinstance(detail, str) and detail:
        return default_error, detail, None
    return default_error, default_message, None


def _response(status_code: int, detail: Any) -> JSONResponse:
    error, message, extra = _normalize_error(status_code, detail)
    return JSONResponse(
        status_code=status_code, content={"error": error, "message": message, "detail": extra}
    )


def classify_domain_error(exc: DiagramStoreError) -> Tuple[int, str]:
    for error_type, status_code, code in DOMAIN_ERRORS:
        if isinstance(exc, error_type):
            return status_code, code
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    detail = {"detail": {"errors": jsonable_encoder(exc.errors())}}
    return _response(status.HTTP_400_BAD_REQUEST, detail)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _response(exc.status_code, exc.detail)


async def domain_exception_handler(request: Request, exc: DiagramStoreError) -> JSONResponse:
    status_code, code = classify_domain_error(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _response(
        status_code, {"error": code, "message": exc.message, "detail": exc.details or None}
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return _response(status.HTTP_400_BAD_REQUEST, str(exc))


async def internal_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return _response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.args[0] if exc.args else None)


def register_error_handlers(app: FastAPI) -> None:
    """Attach shared exception handlers to the FastAPI application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(DiagramStoreError, domain_exception_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(Exception, internal_exception_handler)


__all__ = [
    "DOMAIN_ERRORS",
    "classify_domain_error",
    "register_error_handlers",
    "validation_exception_handler",
    "http_exception_handler",
    "domain_exception_handler",
    "value_error_handler",
    "internal_exception_handler",
]

"""Exception handlers producing the structured error envelope.

Every error response has the same shape::

    {"status": 404, "error": "NOT_FOUND", "message": "...",
     "path": "/api/...", "timestamp": "..."}

Validation failures add ``errors: {field: message}``. SQL, stack traces and
other internals are logged, never returned.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..database import utcnow
from ..exceptions import ConflictError, DatabaseError, ErrorCode, VaultException

logger = logging.getLogger(__name__)

_HTTP_ERROR_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    409: ErrorCode.CONFLICT,
    429: ErrorCode.RATE_LIMITED,
}


def error_body(
    request: Request,
    status_code: int,
    error_code: ErrorCode,
    message: str,
) -> Dict[str, Any]:
    """Build the envelope shared by every error response."""
    return {
        "status": status_code,
        "error": error_code.value,
        "message": message,
        "path": request.url.path,
        "timestamp": utcnow().isoformat(),
    }


def _envelope(request: Request, exc: VaultException) -> Dict[str, Any]:
    body = exc.to_dict()
    body["path"] = request.url.path
    body["timestamp"] = utcnow().isoformat()
    return body


async def vault_exception_handler(request: Request, exc: VaultException) -> JSONResponse:
    """
    Handle custom exceptions and return structured JSON responses.

    Client errors are logged at INFO, server errors at ERROR.

    Args:
        request: FastAPI request object
        exc: VaultException instance

    Returns:
        JSONResponse with error details
    """
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        f"VaultException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(request, exc)
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map pydantic validation failures to 400 with a per-field message map."""
    errors: Dict[str, str] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "request"
        errors.setdefault(field, err.get("msg", "Invalid value"))

    body = error_body(request, 400, ErrorCode.VALIDATION_ERROR, "Validation failed")
    body["errors"] = errors
    logger.info(
        "Request validation failed",
        extra={"path": request.url.path, "fields": sorted(errors)},
    )
    return JSONResponse(status_code=400, content=body)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown route, wrong method) in the envelope."""
    error_code = _HTTP_ERROR_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, error_code, message),
        headers=getattr(exc, "headers", None),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """A unique or foreign key constraint fired that the services did not pre-check."""
    logger.warning(
        "Integrity constraint violated",
        extra={"path": request.url.path, "method": request.method, "detail": str(exc.orig)},
    )
    return await vault_exception_handler(
        request, ConflictError("Request conflicts with existing data")
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Database error",
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return await vault_exception_handler(
        request, DatabaseError("A database error occurred", original_error=exc)
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback, answer with a generic 500."""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content=error_body(request, 500, ErrorCode.INTERNAL_ERROR, "An unexpected error occurred"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(VaultException, vault_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

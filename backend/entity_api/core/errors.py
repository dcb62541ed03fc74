"""
Exception handlers rendering every failure as the error envelope:

    {"error": {"code": "ENTxxx", "message": "...", "details": {...}}}
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from entity_shared.config.logging import entity_api_logger as logger
from entity_shared.utils.exceptions import (
    UNKNOWN_ERROR_CODE,
    EntityError,
    ValidationFailedError,
)


def error_response(status_code: int, code: str, message: str, details: dict | None = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details or {}}},
        headers=headers,
    )


def entity_error_handler(request: Request, exc: EntityError) -> JSONResponse:
    """Kernel errors carry their own code and status."""
    return JSONResponse(status_code=exc.http_status, content={"error": jsonable_encoder(exc.to_dict())})


def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """401 from the identity provider, 404/405 from routing."""
    message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
    return error_response(
        exc.status_code,
        f"HTTP{exc.status_code}",
        message,
        headers=getattr(exc, "headers", None),
    )


def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body or parameter validation failures become ENT004."""
    errors = jsonable_encoder(exc.errors(), exclude={"input", "ctx", "url"})
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    error = ValidationFailedError(field or "body", first.get("msg", "invalid request"), errors=errors)
    return entity_error_handler(request, error)


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else is ERR000 / 500; the transaction was already rolled back."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return error_response(500, UNKNOWN_ERROR_CODE, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EntityError, entity_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

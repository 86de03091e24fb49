"""
Error envelope shared by every endpoint.

All failures leave the API as ``{"success": false, "message": ..., "error": ...}``;
the ``error`` detail is only exposed in development.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTPException that also carries the underlying error text."""

    def __init__(self, status_code: int, message: str, error: Optional[Any] = None):
        super().__init__(status_code=status_code, detail=message)
        self.error = str(error) if error is not None else None


def error_body(message: str, error: Optional[str] = None, **extra) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error and config.is_development():
        body["error"] = error
    body.update(extra)
    return body


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error = getattr(exc, "error", None)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), error),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Request validation error for {request.method} {request.url.path}: {exc.errors()}")
    errors = exc.errors()
    message = "Invalid request data"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, errors=jsonable_encoder(errors, custom_encoder={Exception: str})),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception for {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", str(exc)),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

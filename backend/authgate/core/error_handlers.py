"""Render every error as the common JSON error envelope"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from authgate.core.exceptions import BaseAPIException

logger = logging.getLogger(__name__)


def error_response(
    request: Request,
    status_code: int,
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Build the error envelope

    401 responses carry ``WWW-Authenticate: Bearer`` so clients know to
    refresh or sign in again.
    """
    headers = dict(headers or {})
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "code": code,
            "details": details or {},
            "path": request.url.path,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers=headers or None,
    )


async def handle_api_exception(request: Request, exc: BaseAPIException) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)
    return error_response(request, exc.status_code, exc.message, exc.code, exc.details, exc.headers)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("Validation failed on %s: %s", request.url.path, [e["field"] for e in errors])
    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation failed",
        "VALIDATION_ERROR",
        {"errors": errors},
    )


async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        f"Database error on {request.method} {request.url.path}: {exc.__class__.__name__}",
        extra={"traceback": traceback.format_exc()},
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "A database error occurred. Please try again later.",
        "DATABASE_ERROR",
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.critical(
        f"Unhandled {exc.__class__.__name__} on {request.method} {request.url.path}",
        extra={"traceback": traceback.format_exc()},
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred.",
        "INTERNAL_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIException, handle_api_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(SQLAlchemyError, handle_database_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

"""Exception to JSON envelope mapping shared by both service tiers."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.schemas import ErrorResponse
from services.errors import InvalidArgumentError, OutOfRangeError

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"


def _error_response(request: Request, status_code: int, error: str, message: str) -> JSONResponse:
    body = ErrorResponse(
        timestamp=datetime.now(),
        status=status_code,
        error=error,
        message=message,
        path=request.url.path,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def handle_bad_request(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Illegal argument: %s",
        exc,
        extra={"path": request.url.path, "status": status.HTTP_400_BAD_REQUEST},
    )
    return _error_response(request, status.HTTP_400_BAD_REQUEST, "BadRequest", str(exc))


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    logger.error(
        "Invalid request: %s",
        problems,
        extra={"path": request.url.path, "status": status.HTTP_400_BAD_REQUEST},
    )
    return _error_response(request, status.HTTP_400_BAD_REQUEST, "BadRequest", problems)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unexpected error: %s",
        exc,
        exc_info=exc,
        extra={"path": request.url.path, "status": status.HTTP_500_INTERNAL_SERVER_ERROR},
    )
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        str(exc) or DEFAULT_ERROR_MESSAGE,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvalidArgumentError, handle_bad_request)
    app.add_exception_handler(OutOfRangeError, handle_bad_request)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

# app/api/errors.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.domain.exceptions import AppError, NotFoundError, to_app_error
from app.domain.validation import to_validation_error
from app.utils.logging import (
    get_logger,
    new_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from app.utils.settings import IS_DEVELOPMENT

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class HttpError(AppError):
    """Framework-level failures (405, 413, ...) in the common envelope."""

    kind = "HttpError"

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


def _correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


def error_response(request: Request, error: AppError) -> JSONResponse:
    if error.correlation_id is None:
        error.correlation_id = _correlation_id(request)

    where = f"{request.method} {request.url.path}"
    if error.status_code >= 500:
        logger.error(f"{error.kind} on {where}: {error.message} details={error.details}")
    else:
        logger.warning(f"{error.kind} on {where}: {error.message}")

    # storage / internal details only leave the process in development
    include_details = error.expose_details or IS_DEVELOPMENT
    response = JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(include_details=include_details),
    )
    if error.correlation_id:
        response.headers[CORRELATION_HEADER] = error.correlation_id
    return response


async def app_error_handler(request: Request, exc: AppError):
    return error_response(request, exc)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(request, to_validation_error(exc.errors()))


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        error = NotFoundError("Route", f"{request.method} {request.url.path}")
    else:
        error = HttpError(str(exc.detail), exc.status_code)
    return error_response(request, error)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(request, to_app_error(exc))


async def correlation_middleware(request: Request, call_next):
    correlation_id = request.headers.get(CORRELATION_HEADER) or new_correlation_id()
    request.state.correlation_id = correlation_id
    token = set_correlation_id(correlation_id)
    try:
        response = await call_next(request)
    finally:
        reset_correlation_id(token)
    response.headers[CORRELATION_HEADER] = correlation_id
    return response


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.middleware("http")(correlation_middleware)

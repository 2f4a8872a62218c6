from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler, request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vendor_request_app.web.http.errors import api_error_response, is_api_request, normalize_exception

LOGGER = logging.getLogger(__name__)


def _log_api_error(request: Request, exc: Exception, status_code: int, code: str) -> None:
    log_fn = LOGGER.warning if status_code < 500 else LOGGER.error
    log_fn(
        "API request failed. code=%s status=%s path=%s method=%s",
        code,
        status_code,
        request.url.path,
        request.method,
        exc_info=exc if status_code >= 500 else None,
        extra={
            "event": "api_error",
            "request_id": str(getattr(request.state, "request_id", "-")),
            "error_code": code,
            "status_code": int(status_code),
            "method": request.method,
            "path": str(request.url.path),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _request_validation_error_handler(request: Request, exc: RequestValidationError):
        if not is_api_request(request):
            return await request_validation_exception_handler(request, exc)
        return api_error_response(request, normalize_exception(exc))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(request: Request, exc: StarletteHTTPException):
        if not is_api_request(request):
            return await http_exception_handler(request, exc)
        return api_error_response(request, normalize_exception(exc))

    async def _domain_error_handler(request: Request, exc: Exception):
        return error_response(request, exc)

    # Registered per class so they are handled inside the router stack instead
    # of the outermost server-error middleware.
    for exc_class in HANDLED_ERROR_TYPES:
        app.add_exception_handler(exc_class, _domain_error_handler)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return error_response(request, exc)


HANDLED_ERROR_TYPES: tuple[type[Exception], ...] = (
    ValueError,
    PermissionError,
    LookupError,
    RuntimeError,
    OSError,
)


def error_response(request: Request, exc: Exception):
    spec = normalize_exception(exc)
    _log_api_error(request, exc, spec.status_code, spec.code)
    if not is_api_request(request):
        return PlainTextResponse(spec.message, status_code=spec.status_code)
    return api_error_response(request, spec)

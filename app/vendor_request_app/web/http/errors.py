from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vendor_request_app.core.env import VREQ_ERROR_INCLUDE_DETAILS, get_env_bool
from vendor_request_app.core.repository_errors import (
    PersistenceError,
    RequestNotFoundError,
    RequestValidationFailed,
    SchemaBootstrapRequiredError,
    UploadError,
)
from vendor_request_app.infrastructure.db import DataConnectionError, DataExecutionError, DataQueryError

ERROR_CODE_SCHEMA_BOOTSTRAP_REQUIRED = "SCHEMA_BOOTSTRAP_REQUIRED"
ERROR_CODE_VALIDATION = "VALIDATION_ERROR"
ERROR_CODE_BAD_REQUEST = "BAD_REQUEST"
ERROR_CODE_NOT_FOUND = "NOT_FOUND"
ERROR_CODE_FORBIDDEN = "FORBIDDEN"
ERROR_CODE_UPLOAD_FAILED = "UPLOAD_FAILED"
ERROR_CODE_PERSISTENCE = "PERSISTENCE_ERROR"
ERROR_CODE_DB_CONNECTION = "DB_CONNECTION_ERROR"
ERROR_CODE_INTERNAL = "INTERNAL_SERVER_ERROR"

_HTTP_STATUS_CODES = {
    400: ERROR_CODE_BAD_REQUEST,
    403: ERROR_CODE_FORBIDDEN,
    404: ERROR_CODE_NOT_FOUND,
    422: ERROR_CODE_VALIDATION,
}


@dataclass(frozen=True)
class ApiErrorSpec:
    status_code: int
    code: str
    message: str
    details: dict[str, Any] | None = None
    fields: dict[str, str] | None = None


def is_api_request(request: Request) -> bool:
    path = str(getattr(request.url, "path", "") or "")
    return path.startswith("/api/")


def request_id_from_request(request: Request) -> str:
    request_id = str(getattr(request.state, "request_id", "") or "").strip()
    if request_id:
        return request_id
    return str(request.headers.get("x-request-id", "")).strip() or "-"


def build_api_error_payload(
    *,
    code: str,
    message: str,
    request_id: str,
    details: dict[str, Any] | None = None,
    fields: dict[str, str] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ok": False,
        "error": {
            "code": str(code),
            "message": str(message),
        },
        "request_id": str(request_id or "-"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if fields:
        payload["error"]["fields"] = dict(fields)
    if details and get_env_bool(VREQ_ERROR_INCLUDE_DETAILS, default=False):
        payload["error"]["details"] = details
    return payload


def api_error_response(request: Request, spec: ApiErrorSpec) -> JSONResponse:
    request_id = request_id_from_request(request)
    payload = build_api_error_payload(
        code=spec.code,
        message=spec.message,
        request_id=request_id,
        details=spec.details,
        fields=spec.fields,
    )
    return JSONResponse(payload, status_code=int(spec.status_code), headers={"X-Request-ID": request_id})


def normalize_exception(exc: Exception) -> ApiErrorSpec:
    if isinstance(exc, RequestValidationFailed):
        return ApiErrorSpec(
            status_code=400,
            code=ERROR_CODE_VALIDATION,
            message="Please correct the highlighted fields and try again.",
            fields=exc.field_errors,
        )

    if isinstance(exc, RequestValidationError):
        return ApiErrorSpec(
            status_code=422,
            code=ERROR_CODE_VALIDATION,
            message="Request validation failed. Check field values and try again.",
            details={"errors": exc.errors()},
        )

    if isinstance(exc, RequestNotFoundError):
        return ApiErrorSpec(status_code=404, code=ERROR_CODE_NOT_FOUND, message=str(exc))

    if isinstance(exc, UploadError):
        return ApiErrorSpec(
            status_code=502,
            code=ERROR_CODE_UPLOAD_FAILED,
            message="File upload failed.",
            details={"reason": str(exc)},
        )

    if isinstance(exc, SchemaBootstrapRequiredError):
        return ApiErrorSpec(
            status_code=503,
            code=ERROR_CODE_SCHEMA_BOOTSTRAP_REQUIRED,
            message="Application schema is not ready. Complete bootstrap and retry.",
            details={"reason": str(exc)},
        )

    if isinstance(exc, PersistenceError):
        return ApiErrorSpec(
            status_code=503,
            code=ERROR_CODE_PERSISTENCE,
            message=str(exc) or "Record store is unavailable. Please retry.",
            details={"reason": str(exc.__cause__ or exc)},
        )

    if isinstance(exc, DataConnectionError):
        return ApiErrorSpec(
            status_code=503,
            code=ERROR_CODE_DB_CONNECTION,
            message="Database connection is unavailable. Please try again shortly.",
            details={"reason": str(exc)},
        )

    if isinstance(exc, (DataQueryError, DataExecutionError)):
        return ApiErrorSpec(
            status_code=503,
            code=ERROR_CODE_PERSISTENCE,
            message="Record store request failed. Please retry.",
            details={"reason": str(exc)},
        )

    if isinstance(exc, PermissionError):
        return ApiErrorSpec(
            status_code=403,
            code=ERROR_CODE_FORBIDDEN,
            message=str(exc) or "You do not have permission to perform this action.",
        )

    if isinstance(exc, ValueError):
        return ApiErrorSpec(
            status_code=400,
            code=ERROR_CODE_BAD_REQUEST,
            message=str(exc) or "Request parameters are invalid.",
        )

    if isinstance(exc, StarletteHTTPException):
        return ApiErrorSpec(
            status_code=int(exc.status_code),
            code=_HTTP_STATUS_CODES.get(int(exc.status_code), ERROR_CODE_INTERNAL),
            message=str(exc.detail or "HTTP request failed."),
        )

    return ApiErrorSpec(
        status_code=500,
        code=ERROR_CODE_INTERNAL,
        message="An unexpected error occurred. Please contact support if this continues.",
        details={"reason": str(exc), "type": exc.__class__.__name__},
    )

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from starlette.requests import Request

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from vendor_request_app.core.repository_errors import (  # noqa: E402
    PersistenceError,
    RequestNotFoundError,
    RequestValidationFailed,
    SchemaBootstrapRequiredError,
    UploadError,
)
from vendor_request_app.infrastructure.db import DataConnectionError, DataExecutionError  # noqa: E402
from vendor_request_app.web.http.errors import (  # noqa: E402
    build_api_error_payload,
    is_api_request,
    normalize_exception,
)


def _request(path: str) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": "https",
        "server": ("testserver", 443),
        "path": path,
        "query_string": b"",
        "headers": [(b"accept", b"*/*")],
    }

    async def _receive():
        return {"type": "http.request", "body": b"", "more_body": False}

    return Request(scope, _receive)


def test_is_api_request_by_path_prefix() -> None:
    assert is_api_request(_request("/api/review/requests")) is True
    assert is_api_request(_request("/documents/documents/1_a.pdf")) is False


@pytest.mark.parametrize(
    ("exc", "status_code", "code"),
    [
        (RequestValidationFailed({"name": "Organization is required."}), 400, "VALIDATION_ERROR"),
        (RequestNotFoundError("vrq-1"), 404, "NOT_FOUND"),
        (PermissionError("Access restricted: Admins only"), 403, "FORBIDDEN"),
        (UploadError("disk full"), 502, "UPLOAD_FAILED"),
        (PersistenceError("Record store write failed."), 503, "PERSISTENCE_ERROR"),
        (SchemaBootstrapRequiredError("missing table"), 503, "SCHEMA_BOOTSTRAP_REQUIRED"),
        (DataConnectionError("no warehouse"), 503, "DB_CONNECTION_ERROR"),
        (DataExecutionError("write failed"), 503, "PERSISTENCE_ERROR"),
        (ValueError("bad page"), 400, "BAD_REQUEST"),
        (KeyError("boom"), 500, "INTERNAL_SERVER_ERROR"),
    ],
)
def test_normalize_exception_maps_taxonomy(exc: Exception, status_code: int, code: str) -> None:
    spec = normalize_exception(exc)

    assert spec.status_code == status_code
    assert spec.code == code


def test_validation_error_carries_field_messages() -> None:
    spec = normalize_exception(RequestValidationFailed({"city": "City is required."}))

    assert spec.fields == {"city": "City is required."}


def test_error_payload_hides_details_unless_enabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("VREQ_ERROR_INCLUDE_DETAILS", raising=False)
    hidden = build_api_error_payload(code="X", message="m", request_id="abc", details={"reason": "secret"})
    monkeypatch.setenv("VREQ_ERROR_INCLUDE_DETAILS", "true")
    shown = build_api_error_payload(code="X", message="m", request_id="abc", details={"reason": "secret"})

    assert hidden["ok"] is False
    assert hidden["error"] == {"code": "X", "message": "m"}
    assert hidden["request_id"] == "abc"
    assert "timestamp" in hidden
    assert shown["error"]["details"] == {"reason": "secret"}

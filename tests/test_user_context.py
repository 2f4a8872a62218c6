from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from vendor_request_app.core.principal import SessionPrincipal, normalize_role  # noqa: E402
from vendor_request_app.web.app import create_app  # noqa: E402
from vendor_request_app.web.core.user_context_service import (  # noqa: E402
    require_admin,
    require_submitter,
    sanitize_header_identity_value,
)


def test_normalize_role_falls_back_to_user() -> None:
    assert normalize_role(" ADMIN ") == "admin"
    assert normalize_role("owner") == "user"
    assert normalize_role(None) == "user"


def test_role_gates() -> None:
    admin = SessionPrincipal(email="admin@example.com", role="admin")
    user = SessionPrincipal(email="testuser@email.com")

    require_admin(admin)
    require_submitter(user)
    with pytest.raises(PermissionError, match="Access restricted: Admins only"):
        require_admin(user)
    with pytest.raises(PermissionError, match="Admins are not allowed"):
        require_submitter(admin)


def test_sanitize_header_identity_value_rejects_control_characters() -> None:
    assert sanitize_header_identity_value("  a@x.com ") == "a@x.com"
    assert sanitize_header_identity_value("a@x.com\r\nX-Evil: 1") == ""
    assert sanitize_header_identity_value("x" * 400) == ""


def test_forwarded_identity_header_sets_principal(
    isolated_local_db: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("VREQ_TEST_USER", raising=False)
    client = TestClient(create_app())

    forwarded = client.get("/api/session", headers={"x-forwarded-email": "admin@example.com"}).json()
    anonymous = client.get("/api/session").json()

    assert forwarded["user"]["email"] == "admin@example.com"
    assert forwarded["user"]["role"] == "admin"
    assert anonymous["user"]["email"] == "unknown"
    assert anonymous["user"]["role"] == "user"


def test_forwarded_headers_ignored_when_untrusted(
    isolated_local_db: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("VREQ_TEST_USER", raising=False)
    monkeypatch.setenv("VREQ_TRUST_FORWARDED_IDENTITY_HEADERS", "false")
    client = TestClient(create_app())

    payload = client.get("/api/session", headers={"x-forwarded-email": "admin@example.com"}).json()

    assert payload["user"]["email"] == "unknown"

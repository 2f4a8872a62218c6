from __future__ import annotations

import sys
from pathlib import Path

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from vendor_request_app.core.config import AppConfig  # noqa: E402
from vendor_request_app.web.app import create_app  # noqa: E402
from vendor_request_app.web.core.runtime import reset_runtime_caches  # noqa: E402


def _clear_mode_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "VREQ_ENV",
        "VREQ_USE_LOCAL_DB",
        "VREQ_CATALOG",
        "VREQ_SCHEMA",
        "VREQ_FQ_SCHEMA",
        "VREQ_PAGE_SIZE",
        "VREQ_SESSION_SECRET",
        "VREQ_BLOB_PUBLIC_BASE_URL",
    ):
        monkeypatch.delenv(key, raising=False)


def test_dev_defaults_to_local_db(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("VREQ_ENV", "dev")

    config = AppConfig.from_env()

    assert config.env == "dev"
    assert config.is_dev_env is True
    assert config.use_local_db is True
    assert config.fq_schema == "vendor_dev.vendor_requests"
    assert config.page_size == 10


def test_prod_requires_catalog_and_schema(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("VREQ_ENV", "prod")

    with pytest.raises(RuntimeError):
        AppConfig.from_env()


def test_prod_uses_databricks_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("VREQ_ENV", "prod")
    monkeypatch.setenv("VREQ_FQ_SCHEMA", "main.vendor_requests")

    config = AppConfig.from_env()

    assert config.is_dev_env is False
    assert config.use_local_db is False
    assert (config.catalog, config.schema) == ("main", "vendor_requests")


def test_prod_rejects_local_db_override(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("VREQ_ENV", "prod")
    monkeypatch.setenv("VREQ_FQ_SCHEMA", "main.vendor_requests")
    monkeypatch.setenv("VREQ_USE_LOCAL_DB", "true")

    with pytest.raises(RuntimeError):
        AppConfig.from_env()


def test_malformed_fq_schema_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("VREQ_FQ_SCHEMA", "justoneword")

    with pytest.raises(RuntimeError):
        AppConfig.from_env()


def test_page_size_and_blob_base_url_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("VREQ_PAGE_SIZE", "25")
    monkeypatch.setenv("VREQ_BLOB_PUBLIC_BASE_URL", "/files/")

    config = AppConfig.from_env()

    assert config.page_size == 25
    assert config.blob_public_base_url == "/files"


def test_prod_app_refuses_default_session_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("VREQ_ENV", "prod")
    monkeypatch.setenv("VREQ_FQ_SCHEMA", "main.vendor_requests")
    reset_runtime_caches()

    try:
        with pytest.raises(RuntimeError, match="VREQ_SESSION_SECRET"):
            create_app()
    finally:
        reset_runtime_caches()

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Iterator

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from vendor_request_app.web.core.runtime import reset_runtime_caches  # noqa: E402


@pytest.fixture()
def isolated_local_db(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[Path]:
    repo_root = Path(__file__).resolve().parents[1]
    db_path = tmp_path / "vendor_requests_local.db"
    init_script = repo_root / "setup" / "local_db" / "init_local_db.py"
    result = subprocess.run(
        [
            sys.executable,
            str(init_script),
            "--db-path",
            str(db_path),
            "--reset",
        ],
        capture_output=True,
        text=True,
        cwd=str(repo_root),
        check=False,
    )
    if result.returncode != 0:
        raise RuntimeError(
            "Failed to initialize isolated local DB for tests.\n"
            f"stdout:\n{result.stdout}\n"
            f"stderr:\n{result.stderr}"
        )

    monkeypatch.setenv("VREQ_ENV", "dev")
    monkeypatch.setenv("VREQ_USE_LOCAL_DB", "true")
    monkeypatch.setenv("VREQ_LOCAL_DB_PATH", str(db_path))
    monkeypatch.setenv("VREQ_LOCAL_DB_AUTO_INIT", "false")
    monkeypatch.setenv("VREQ_BLOB_ROOT", str(tmp_path / "blobs"))
    monkeypatch.setenv("VREQ_TEST_USER", "testuser@email.com")
    monkeypatch.setenv("VREQ_SESSION_SECRET", "test-session-secret")
    monkeypatch.setenv("VREQ_QUERY_CACHE_ENABLED", "false")
    monkeypatch.delenv("VREQ_ALLOW_ROLE_OVERRIDE", raising=False)
    reset_runtime_caches()
    yield db_path
    reset_runtime_caches()

from __future__ import annotations

import logging
from pathlib import Path
import sqlite3
from typing import Iterable

from vendor_request_app.core.config import AppConfig
from vendor_request_app.core.env import (
    VREQ_LOCAL_DB_AUTO_INIT,
    VREQ_LOCAL_DB_RESET_ON_START,
    VREQ_LOCAL_DB_SEED,
    get_env_bool,
)
from vendor_request_app.core.models import RECORD_COLUMNS

LOGGER = logging.getLogger(__name__)
SQL_ROOT = Path(__file__).resolve().parents[1] / "sql"

REQUIRED_SCHEMA: dict[str, tuple[str, ...]] = {
    "vendor_request": RECORD_COLUMNS,
    "user_role": ("email", "role"),
}


def _sql_files_from_dir(directory: Path) -> list[Path]:
    if not directory.exists():
        raise FileNotFoundError(f"SQL directory not found: {directory}")
    return sorted(item for item in directory.iterdir() if item.is_file() and item.suffix.lower() == ".sql")


def _apply_sql_files(conn: sqlite3.Connection, files: Iterable[Path]) -> int:
    count = 0
    for sql_file in files:
        conn.executescript(sql_file.read_text(encoding="utf-8"))
        count += 1
    return count


def verify_required_schema(conn: sqlite3.Connection) -> list[str]:
    errors: list[str] = []
    for table_name, required_columns in REQUIRED_SCHEMA.items():
        rows = conn.execute(f"PRAGMA table_info({table_name})").fetchall()
        present = {str(row[1]).strip().lower() for row in rows}
        if not present:
            errors.append(f"missing table: {table_name}")
            continue
        missing = [column for column in required_columns if column.lower() not in present]
        if missing:
            errors.append(f"{table_name} missing columns: {', '.join(missing)}")
    return errors


def initialize_local_db(
    db_path: str | Path,
    *,
    reset: bool = False,
    seed: bool = True,
    sql_root: Path = SQL_ROOT,
) -> dict[str, int]:
    """Create (or rebuild with ``reset``) the local SQLite database.

    Applies every ``schema/*.sql`` file in name order, then ``seed/*.sql``
    unless ``seed`` is false, and verifies the tables the app reads.
    """
    path = Path(db_path).resolve()
    schema_files = _sql_files_from_dir(sql_root / "schema")
    seed_files = _sql_files_from_dir(sql_root / "seed") if seed else []

    if reset and path.exists():
        path.unlink()
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path)
    try:
        schema_count = _apply_sql_files(conn, schema_files)
        seed_count = _apply_sql_files(conn, seed_files)
        conn.commit()
        schema_errors = verify_required_schema(conn)
    finally:
        conn.close()
    if schema_errors:
        raise RuntimeError(
            "Local schema validation failed. Run with --reset to rebuild the database. "
            f"Details: {'; '.join(schema_errors)}"
        )
    LOGGER.info(
        "Local database ready. path=%s schema_scripts=%s seed_scripts=%s",
        path,
        schema_count,
        seed_count,
        extra={"event": "local_db_initialized", "db_path": str(path)},
    )
    return {"schema_scripts": schema_count, "seed_scripts": seed_count}


def ensure_local_db_ready(config: AppConfig) -> None:
    if not config.use_local_db:
        return
    if not get_env_bool(VREQ_LOCAL_DB_AUTO_INIT, default=True):
        return

    db_path = Path(config.local_db_path).resolve()
    reset_on_start = get_env_bool(VREQ_LOCAL_DB_RESET_ON_START, default=False)
    if db_path.exists() and not reset_on_start:
        return
    initialize_local_db(
        db_path,
        reset=reset_on_start,
        seed=get_env_bool(VREQ_LOCAL_DB_SEED, default=True),
    )

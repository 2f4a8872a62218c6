from __future__ import annotations

import contextvars
from contextlib import contextmanager
from datetime import date, datetime
import hashlib
import logging
from pathlib import Path
import re
import sqlite3
import time
from typing import Any, Iterable, Iterator

import pandas as pd
from databricks import sql as dbsql

from vendor_request_app.core.config import AppConfig
from vendor_request_app.core.env import (
    VREQ_QUERY_CACHE_ENABLED,
    VREQ_QUERY_CACHE_MAX_ENTRIES,
    VREQ_QUERY_CACHE_TTL_SEC,
    VREQ_SLOW_QUERY_MS,
    VREQ_SQL_TRACE_ENABLED,
    VREQ_SQL_TRACE_MAX_LEN,
    get_env_bool,
    get_env_float,
    get_env_int,
)
from vendor_request_app.infrastructure.cache import LruTtlCache

PERF_LOGGER = logging.getLogger("vendor_request_app.perf")
READ_VERBS = frozenset({"SELECT", "WITH"})
DDL_VERBS = frozenset({"CREATE", "ALTER", "DROP", "TRUNCATE"})

_REQUEST_PERF_CONTEXT: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "vreq_request_perf",
    default=None,
)


def start_request_perf_context(*, request_id: str, method: str, path: str) -> contextvars.Token:
    return _REQUEST_PERF_CONTEXT.set(
        {
            "request_id": request_id,
            "method": method,
            "path": path,
            "db_calls": 0,
            "db_total_ms": 0.0,
            "db_cache_hits": 0,
            "db_errors": 0,
        }
    )


def get_request_perf_context() -> dict[str, Any] | None:
    return _REQUEST_PERF_CONTEXT.get()


def clear_request_perf_context(token: contextvars.Token) -> None:
    _REQUEST_PERF_CONTEXT.reset(token)


class DataConnectionError(RuntimeError):
    """Raised when a database connection cannot be established."""


class DataQueryError(RuntimeError):
    """Raised when a query operation fails."""


class DataExecutionError(RuntimeError):
    """Raised when a non-query execution fails."""


def leading_sql_keyword(statement: str) -> str:
    text = re.sub(r"/\*.*?\*/", " ", str(statement or ""), flags=re.DOTALL)
    for raw_line in text.splitlines():
        line = raw_line.strip().lstrip("(").strip()
        if not line or line.startswith("--"):
            continue
        return line.split(None, 1)[0].upper()
    return ""


def sql_preview(statement: str, max_len: int = 180) -> str:
    compact = re.sub(r"\s+", " ", str(statement or "")).strip()
    if len(compact) <= max_len:
        return compact
    return f"{compact[: max_len - 3]}..."


class DatabricksSQLClient:
    """Runs SQL against the local SQLite file in dev or a Databricks SQL warehouse.

    Statements are written once, fully qualified against ``catalog.schema``;
    in local mode the schema prefix is stripped so the same files run on SQLite.
    Read results are cached until the next write.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self._query_cache = LruTtlCache[tuple[str, tuple[Any, ...]], pd.DataFrame](
            enabled=get_env_bool(VREQ_QUERY_CACHE_ENABLED, default=True),
            ttl_seconds=get_env_int(VREQ_QUERY_CACHE_TTL_SEC, default=60, min_value=0),
            max_entries=get_env_int(VREQ_QUERY_CACHE_MAX_ENTRIES, default=256, min_value=1),
            clone_value=lambda frame: frame.copy(deep=True),
        )
        self._sql_trace_enabled = get_env_bool(VREQ_SQL_TRACE_ENABLED, default=False)
        self._sql_trace_max_len = get_env_int(VREQ_SQL_TRACE_MAX_LEN, default=180, min_value=80)
        self._slow_query_ms = get_env_float(VREQ_SLOW_QUERY_MS, default=750.0, min_value=1.0)

    def _validate(self) -> None:
        if self.config.use_local_db:
            return
        missing = []
        if not self.config.databricks_server_hostname:
            missing.append("DATABRICKS_SERVER_HOSTNAME")
        if not self.config.databricks_http_path:
            missing.append("DATABRICKS_HTTP_PATH")
        if not self.config.databricks_token:
            missing.append("DATABRICKS_TOKEN")
        if missing:
            raise DataConnectionError(f"Missing Databricks settings: {', '.join(missing)}")

    def _connect(self) -> Any:
        if self.config.use_local_db:
            db_path = Path(self.config.local_db_path).resolve()
            if not db_path.exists():
                raise DataConnectionError(
                    f"Local DB not found: {db_path}. Run `python setup/local_db/init_local_db.py --reset` first."
                )
            try:
                return sqlite3.connect(str(db_path))
            except sqlite3.Error as exc:
                raise DataConnectionError(f"Failed to connect to local SQLite DB at {db_path}.") from exc

        self._validate()
        try:
            return dbsql.connect(
                server_hostname=self.config.databricks_server_hostname,
                http_path=self.config.databricks_http_path,
                access_token=self.config.databricks_token,
            )
        except Exception as exc:
            details = str(exc).strip()
            message = "Failed to connect to Databricks SQL warehouse."
            if details:
                message = f"{message} Details: {details}"
            raise DataConnectionError(message) from exc

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        conn = self._connect()
        try:
            yield conn
        finally:
            try:
                conn.close()
            except Exception:  # pylint: disable=broad-except
                PERF_LOGGER.debug("Connection close failed.", exc_info=True)

    def close(self) -> None:
        self._query_cache.clear()

    def _prepare(self, statement: str) -> str:
        normalized = str(statement or "").lstrip("\ufeff")
        # databricks-sql native params and sqlite both take qmark placeholders.
        normalized = normalized.replace("%s", "?")
        if self.config.use_local_db:
            normalized = normalized.replace(f"{self.config.fq_schema}.", "")
        return normalized

    def _prepare_params(self, params: Iterable[Any] | None) -> tuple[Any, ...]:
        if not params:
            return ()
        if not self.config.use_local_db:
            return tuple(params)
        cleaned: list[Any] = []
        for value in params:
            if isinstance(value, (datetime, date)):
                cleaned.append(value.isoformat())
            elif isinstance(value, bool):
                cleaned.append(int(value))
            else:
                cleaned.append(value)
        return tuple(cleaned)

    def _enforce_prod_sql_policy(self, statement: str, *, is_query: bool) -> None:
        if self.config.use_local_db:
            return
        if self.config.env != "prod" or not self.config.enforce_prod_sql_policy:
            return

        verb = leading_sql_keyword(statement)
        if not verb:
            raise RuntimeError("SQL statement is empty.")
        if verb in DDL_VERBS:
            raise RuntimeError(f"SQL verb '{verb}' is blocked in prod. Runtime schema changes are disabled.")
        if is_query:
            if verb not in READ_VERBS:
                raise RuntimeError(f"Read query verb '{verb}' is not allowed in prod query path.")
            return
        allowed = set(self.config.allowed_write_verbs)
        if verb not in allowed:
            raise RuntimeError(
                f"Write SQL verb '{verb}' is not allowed in prod. Allowed verbs: {', '.join(sorted(allowed))}."
            )

    def _record_perf(
        self,
        *,
        operation: str,
        statement: str,
        started: float,
        cached: bool = False,
        row_count: int | None = None,
        error: bool = False,
    ) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        request_ctx = get_request_perf_context()
        if request_ctx is not None:
            request_ctx["db_calls"] += 1
            request_ctx["db_total_ms"] += elapsed_ms
            request_ctx["db_cache_hits"] += int(cached)
            request_ctx["db_errors"] += int(error)

        slow = elapsed_ms >= self._slow_query_ms
        if not (self._sql_trace_enabled or slow or error):
            return
        sql_hash = hashlib.sha1(statement.encode("utf-8", errors="ignore")).hexdigest()[:12]
        preview = sql_preview(statement, max_len=self._sql_trace_max_len)
        log_fn = PERF_LOGGER.warning if (slow or error) else PERF_LOGGER.info
        log_fn(
            "sql_perf op=%s ms=%.2f cached=%s rows=%s error=%s hash=%s sql=%s",
            operation,
            elapsed_ms,
            str(cached).lower(),
            "-" if row_count is None else row_count,
            str(error).lower(),
            sql_hash,
            preview,
            extra={
                "event": "sql_perf",
                "operation": operation,
                "elapsed_ms": round(elapsed_ms, 2),
                "cached": cached,
                "rows": row_count,
                "error": error,
                "sql_hash": sql_hash,
                "sql_preview": preview,
            },
        )

    @staticmethod
    def _run_cursor(conn: Any, statement: str, params: tuple[Any, ...], *, fetch: bool) -> pd.DataFrame | None:
        cursor = conn.cursor()
        try:
            cursor.execute(statement, params)
            if not fetch:
                return None
            rows = cursor.fetchall()
            cols = [desc[0] for desc in cursor.description] if cursor.description else []
            return pd.DataFrame([tuple(row) for row in rows], columns=cols)
        finally:
            cursor.close()

    def query(self, statement: str, params: Iterable[Any] | None = None) -> pd.DataFrame:
        prepared_statement = self._prepare(statement)
        prepared_params = self._prepare_params(params)
        started = time.perf_counter()
        try:
            self._enforce_prod_sql_policy(prepared_statement, is_query=True)
            cache_key = (prepared_statement, prepared_params)
            cached = self._query_cache.get(cache_key)
            if cached is not None:
                self._record_perf(
                    operation="query",
                    statement=prepared_statement,
                    started=started,
                    cached=True,
                    row_count=len(cached.index),
                )
                return cached
            with self._connection() as conn:
                frame = self._run_cursor(conn, prepared_statement, prepared_params, fetch=True)
            self._query_cache.set(cache_key, frame)
        except DataConnectionError:
            self._record_perf(operation="query", statement=prepared_statement, started=started, error=True)
            raise
        except Exception as exc:
            self._record_perf(operation="query", statement=prepared_statement, started=started, error=True)
            raise DataQueryError("Query execution failed.") from exc
        self._record_perf(
            operation="query",
            statement=prepared_statement,
            started=started,
            row_count=len(frame.index),
        )
        return frame

    def execute(self, statement: str, params: Iterable[Any] | None = None) -> None:
        prepared_statement = self._prepare(statement)
        prepared_params = self._prepare_params(params)
        started = time.perf_counter()
        try:
            self._enforce_prod_sql_policy(prepared_statement, is_query=False)
            with self._connection() as conn:
                self._run_cursor(conn, prepared_statement, prepared_params, fetch=False)
                if self.config.use_local_db:
                    conn.commit()
        except DataConnectionError:
            self._record_perf(operation="execute", statement=prepared_statement, started=started, error=True)
            raise
        except Exception as exc:
            self._record_perf(operation="execute", statement=prepared_statement, started=started, error=True)
            raise DataExecutionError("Statement execution failed.") from exc
        finally:
            self._query_cache.clear()
        self._record_perf(operation="execute", statement=prepared_statement, started=started)

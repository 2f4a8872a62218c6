from __future__ import annotations

import os
from typing import Iterable

from vendor_request_app.core.util import as_bool, as_float, as_int

# Runtime mode
VREQ_ENV = "VREQ_ENV"
VREQ_USE_LOCAL_DB = "VREQ_USE_LOCAL_DB"
VREQ_LOCAL_DB_PATH = "VREQ_LOCAL_DB_PATH"
VREQ_LOCAL_DB_AUTO_INIT = "VREQ_LOCAL_DB_AUTO_INIT"
VREQ_LOCAL_DB_RESET_ON_START = "VREQ_LOCAL_DB_RESET_ON_START"
VREQ_LOCAL_DB_SEED = "VREQ_LOCAL_DB_SEED"
VREQ_CATALOG = "VREQ_CATALOG"
VREQ_SCHEMA = "VREQ_SCHEMA"
VREQ_FQ_SCHEMA = "VREQ_FQ_SCHEMA"
VREQ_ENFORCE_PROD_SQL_POLICY = "VREQ_ENFORCE_PROD_SQL_POLICY"
VREQ_ALLOWED_WRITE_VERBS = "VREQ_ALLOWED_WRITE_VERBS"

# Databricks SQL warehouse
DATABRICKS_SERVER_HOSTNAME_KEYS = (
    "DATABRICKS_SERVER_HOSTNAME",
    "DATABRICKS_HOST",
    "DBSQL_SERVER_HOSTNAME",
)
DATABRICKS_HTTP_PATH_KEYS = (
    "DATABRICKS_HTTP_PATH",
    "DATABRICKS_SQL_HTTP_PATH",
    "DBSQL_HTTP_PATH",
)
DATABRICKS_WAREHOUSE_ID_KEYS = (
    "DATABRICKS_WAREHOUSE_ID",
    "DATABRICKS_SQL_WAREHOUSE_ID",
)
DATABRICKS_TOKEN = "DATABRICKS_TOKEN"

# SQL client tuning
VREQ_QUERY_CACHE_ENABLED = "VREQ_QUERY_CACHE_ENABLED"
VREQ_QUERY_CACHE_TTL_SEC = "VREQ_QUERY_CACHE_TTL_SEC"
VREQ_QUERY_CACHE_MAX_ENTRIES = "VREQ_QUERY_CACHE_MAX_ENTRIES"
VREQ_SLOW_QUERY_MS = "VREQ_SLOW_QUERY_MS"
VREQ_SQL_TRACE_ENABLED = "VREQ_SQL_TRACE_ENABLED"
VREQ_SQL_TRACE_MAX_LEN = "VREQ_SQL_TRACE_MAX_LEN"

# Blob storage
VREQ_BLOB_ROOT = "VREQ_BLOB_ROOT"
VREQ_BLOB_BUCKET = "VREQ_BLOB_BUCKET"
VREQ_BLOB_PUBLIC_BASE_URL = "VREQ_BLOB_PUBLIC_BASE_URL"

# Views
VREQ_PAGE_SIZE = "VREQ_PAGE_SIZE"
VREQ_VIEW_CACHE_ENABLED = "VREQ_VIEW_CACHE_ENABLED"
VREQ_VIEW_CACHE_TTL_SEC = "VREQ_VIEW_CACHE_TTL_SEC"
VREQ_VIEW_CACHE_MAX_ENTRIES = "VREQ_VIEW_CACHE_MAX_ENTRIES"

# Web/session
VREQ_SESSION_SECRET = "VREQ_SESSION_SECRET"
VREQ_SESSION_HTTPS_ONLY = "VREQ_SESSION_HTTPS_ONLY"
VREQ_TEST_USER = "VREQ_TEST_USER"
VREQ_ALLOW_ROLE_OVERRIDE = "VREQ_ALLOW_ROLE_OVERRIDE"
VREQ_TRUST_FORWARDED_IDENTITY_HEADERS = "VREQ_TRUST_FORWARDED_IDENTITY_HEADERS"
VREQ_ERROR_INCLUDE_DETAILS = "VREQ_ERROR_INCLUDE_DETAILS"
VREQ_PERF_LOG_ENABLED = "VREQ_PERF_LOG_ENABLED"

# Logging
VREQ_LOG_LEVEL = "VREQ_LOG_LEVEL"
VREQ_LOG_JSON = "VREQ_LOG_JSON"
VREQ_LOG_CAPTURE_ROOT = "VREQ_LOG_CAPTURE_ROOT"


def get_env(name: str, default: str = "") -> str:
    return str(os.getenv(name, default) or "").strip()


def get_first_env(names: Iterable[str], default: str = "") -> str:
    for name in names:
        value = get_env(name)
        if value:
            return value
    return default


def get_env_bool(name: str, *, default: bool = False) -> bool:
    return as_bool(os.getenv(name), default=default)


def get_env_int(
    name: str,
    *,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    return as_int(os.getenv(name), default=default, min_value=min_value, max_value=max_value)


def get_env_float(
    name: str,
    *,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    return as_float(os.getenv(name), default=default, min_value=min_value, max_value=max_value)

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from vendor_request_app.core.defaults import (
    DEFAULT_ALLOWED_WRITE_VERBS,
    DEFAULT_ALLOWED_WRITE_VERBS_CSV,
    DEFAULT_BLOB_BUCKET,
    DEFAULT_BLOB_PUBLIC_BASE_URL,
    DEFAULT_BLOB_ROOT,
    DEFAULT_DEV_CATALOG,
    DEFAULT_DEV_ENV_NAMES,
    DEFAULT_DEV_SCHEMA,
    DEFAULT_ENV_NAME,
    DEFAULT_LOCAL_DB_PATH,
    DEFAULT_PAGE_SIZE,
    DEFAULT_VIEW_CACHE_MAX_ENTRIES,
    DEFAULT_VIEW_CACHE_TTL_SEC,
)
from vendor_request_app.core.env import (
    DATABRICKS_HTTP_PATH_KEYS,
    DATABRICKS_SERVER_HOSTNAME_KEYS,
    DATABRICKS_TOKEN,
    DATABRICKS_WAREHOUSE_ID_KEYS,
    VREQ_ALLOWED_WRITE_VERBS,
    VREQ_BLOB_BUCKET,
    VREQ_BLOB_PUBLIC_BASE_URL,
    VREQ_BLOB_ROOT,
    VREQ_CATALOG,
    VREQ_ENFORCE_PROD_SQL_POLICY,
    VREQ_ENV,
    VREQ_FQ_SCHEMA,
    VREQ_LOCAL_DB_PATH,
    VREQ_PAGE_SIZE,
    VREQ_SCHEMA,
    VREQ_USE_LOCAL_DB,
    VREQ_VIEW_CACHE_ENABLED,
    VREQ_VIEW_CACHE_MAX_ENTRIES,
    VREQ_VIEW_CACHE_TTL_SEC,
    get_env,
    get_env_bool,
    get_env_int,
    get_first_env,
)


DEV_ENV_NAMES = set(DEFAULT_DEV_ENV_NAMES)


def _clean_host(raw_host: str) -> str:
    value = str(raw_host or "").strip()
    if not value:
        return ""
    value = value.replace("https://", "").replace("http://", "").rstrip("/")
    return value


def _resolve_http_path() -> str:
    direct_path = get_first_env(DATABRICKS_HTTP_PATH_KEYS)
    if direct_path:
        return direct_path

    warehouse_id = get_first_env(DATABRICKS_WAREHOUSE_ID_KEYS)
    if warehouse_id:
        return f"/sql/1.0/warehouses/{warehouse_id}"
    return ""


def _repo_root() -> Path:
    # parents[0]=core, [1]=vendor_request_app, [2]=app, [3]=repo root
    return Path(__file__).resolve().parents[3]


def _resolve_repo_relative_path(raw_path: str) -> str:
    value = str(raw_path or "").strip()
    if not value:
        return value
    path = Path(value)
    if path.is_absolute():
        return str(path)
    return str((_repo_root() / path).resolve())


def _resolve_catalog_schema(env_name: str) -> tuple[str, str]:
    fq_schema = get_env(VREQ_FQ_SCHEMA)
    if fq_schema:
        parts = [item.strip() for item in fq_schema.split(".", 1)]
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise RuntimeError(
                "VREQ_FQ_SCHEMA must be in '<catalog>.<schema>' format."
            )
        return parts[0], parts[1]

    default_catalog = DEFAULT_DEV_CATALOG if env_name in DEV_ENV_NAMES else ""
    default_schema = DEFAULT_DEV_SCHEMA if env_name in DEV_ENV_NAMES else ""
    catalog = get_env(VREQ_CATALOG, default_catalog)
    schema = get_env(VREQ_SCHEMA, default_schema)

    if not catalog or not schema:
        raise RuntimeError(
            "VREQ_CATALOG and VREQ_SCHEMA are required outside local/dev mode "
            "(or set VREQ_FQ_SCHEMA)."
        )
    return catalog, schema


def _resolve_allowed_write_verbs() -> tuple[str, ...]:
    raw = get_env(VREQ_ALLOWED_WRITE_VERBS, DEFAULT_ALLOWED_WRITE_VERBS_CSV)
    values = [
        token.strip().upper()
        for token in raw.split(",")
        if token.strip()
    ]
    if not values:
        values = list(DEFAULT_ALLOWED_WRITE_VERBS)
    return tuple(dict.fromkeys(values))


@dataclass(frozen=True)
class AppConfig:
    databricks_server_hostname: str
    databricks_http_path: str
    databricks_token: str
    env: str = DEFAULT_ENV_NAME
    catalog: str = DEFAULT_DEV_CATALOG
    schema: str = DEFAULT_DEV_SCHEMA
    use_local_db: bool = False
    local_db_path: str = DEFAULT_LOCAL_DB_PATH
    enforce_prod_sql_policy: bool = True
    allowed_write_verbs: tuple[str, ...] = DEFAULT_ALLOWED_WRITE_VERBS
    blob_root: str = DEFAULT_BLOB_ROOT
    blob_bucket: str = DEFAULT_BLOB_BUCKET
    blob_public_base_url: str = DEFAULT_BLOB_PUBLIC_BASE_URL
    page_size: int = DEFAULT_PAGE_SIZE
    view_cache_enabled: bool = False
    view_cache_ttl_seconds: int = DEFAULT_VIEW_CACHE_TTL_SEC
    view_cache_max_entries: int = DEFAULT_VIEW_CACHE_MAX_ENTRIES

    @property
    def fq_schema(self) -> str:
        return f"{self.catalog}.{self.schema}"

    @property
    def is_dev_env(self) -> bool:
        return self.env in DEV_ENV_NAMES

    @staticmethod
    def from_env() -> "AppConfig":
        env_name = get_env(VREQ_ENV, DEFAULT_ENV_NAME).lower() or DEFAULT_ENV_NAME
        catalog, schema = _resolve_catalog_schema(env_name)
        default_local_db = env_name in DEV_ENV_NAMES
        requested_local_db = get_env_bool(VREQ_USE_LOCAL_DB, default=default_local_db)
        raw_host = get_first_env(DATABRICKS_SERVER_HOSTNAME_KEYS)
        if requested_local_db and env_name not in DEV_ENV_NAMES:
            raise RuntimeError(
                "VREQ_USE_LOCAL_DB=true is allowed only for dev/local environments. "
                "Set VREQ_ENV=dev (or local), or disable VREQ_USE_LOCAL_DB."
            )
        return AppConfig(
            databricks_server_hostname=_clean_host(raw_host),
            databricks_http_path=_resolve_http_path(),
            databricks_token=get_env(DATABRICKS_TOKEN),
            env=env_name,
            catalog=catalog,
            schema=schema,
            use_local_db=requested_local_db,
            local_db_path=_resolve_repo_relative_path(
                get_env(VREQ_LOCAL_DB_PATH, DEFAULT_LOCAL_DB_PATH)
            ),
            enforce_prod_sql_policy=get_env_bool(
                VREQ_ENFORCE_PROD_SQL_POLICY,
                default=True,
            ),
            allowed_write_verbs=_resolve_allowed_write_verbs(),
            blob_root=_resolve_repo_relative_path(get_env(VREQ_BLOB_ROOT, DEFAULT_BLOB_ROOT)),
            blob_bucket=get_env(VREQ_BLOB_BUCKET, DEFAULT_BLOB_BUCKET) or DEFAULT_BLOB_BUCKET,
            blob_public_base_url=(
                get_env(VREQ_BLOB_PUBLIC_BASE_URL, DEFAULT_BLOB_PUBLIC_BASE_URL).rstrip("/")
                or DEFAULT_BLOB_PUBLIC_BASE_URL
            ),
            page_size=get_env_int(VREQ_PAGE_SIZE, default=DEFAULT_PAGE_SIZE, min_value=1, max_value=500),
            view_cache_enabled=get_env_bool(VREQ_VIEW_CACHE_ENABLED, default=False),
            view_cache_ttl_seconds=get_env_int(
                VREQ_VIEW_CACHE_TTL_SEC,
                default=DEFAULT_VIEW_CACHE_TTL_SEC,
                min_value=0,
            ),
            view_cache_max_entries=get_env_int(
                VREQ_VIEW_CACHE_MAX_ENTRIES,
                default=DEFAULT_VIEW_CACHE_MAX_ENTRIES,
                min_value=1,
            ),
        )

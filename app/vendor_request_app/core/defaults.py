from __future__ import annotations

# Environment and config defaults
DEFAULT_ENV_NAME = "dev"
DEFAULT_DEV_ENV_NAMES = ("dev", "development", "local")
DEFAULT_DEV_CATALOG = "vendor_dev"
DEFAULT_DEV_SCHEMA = "vendor_requests"
DEFAULT_ALLOWED_WRITE_VERBS_CSV = "INSERT,UPDATE,DELETE"
DEFAULT_ALLOWED_WRITE_VERBS = ("INSERT", "UPDATE", "DELETE")
DEFAULT_LOCAL_DB_PATH = "setup/local_db/vendor_requests_local.db"
DEFAULT_BLOB_ROOT = "setup/local_db/blobs"
DEFAULT_BLOB_BUCKET = "vendor-documents"
DEFAULT_BLOB_PUBLIC_BASE_URL = "/documents"
DEFAULT_SESSION_SECRET = "vendor-request-dev-secret"
DEFAULT_UNKNOWN_USER = "unknown"

# Table/view defaults
DEFAULT_PAGE_SIZE = 10
DEFAULT_VIEW_CACHE_TTL_SEC = 30
DEFAULT_VIEW_CACHE_MAX_ENTRIES = 128
DEFAULT_DOCUMENT_PREFIX = "documents"

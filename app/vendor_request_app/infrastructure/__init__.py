"""Infrastructure adapters for SQL storage, document blobs, and logging."""

from vendor_request_app.infrastructure.blob_store import LocalBlobStore
from vendor_request_app.infrastructure.db import (
    DataConnectionError,
    DataExecutionError,
    DataQueryError,
    DatabricksSQLClient,
)

__all__ = [
    "DataConnectionError",
    "DataExecutionError",
    "DataQueryError",
    "DatabricksSQLClient",
    "LocalBlobStore",
]

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, timezone
from functools import lru_cache
import logging
from pathlib import Path
from typing import Any, Iterator, Mapping
import uuid

import pandas as pd

from vendor_request_app.core.config import AppConfig
from vendor_request_app.core.models import (
    COMPLETION_INCOMPLETE,
    EDITABLE_FIELDS,
    RECORD_COLUMNS,
    ROLE_USER,
    VendorRequest,
    as_approved_flag,
    normalize_completion,
)
from vendor_request_app.core.principal import normalize_role
from vendor_request_app.core.repository_errors import PersistenceError, SchemaBootstrapRequiredError
from vendor_request_app.core.util import clean_text
from vendor_request_app.infrastructure.db import (
    DataConnectionError,
    DataExecutionError,
    DataQueryError,
    DatabricksSQLClient,
)

LOGGER = logging.getLogger(__name__)
SQL_ROOT = Path(__file__).resolve().parents[1] / "sql"
TIMESTAMP_COLUMNS = ("start_date", "created_at", "updated_at")
_MISSING_TABLE_SIGNALS = ("no such table", "table_or_view_not_found", "table or view not found")


def _iso_text(value: Any) -> str | None:
    if value is None or pd.isna(value):
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = clean_text(value)
    return text or None


def _optional_text(value: Any) -> str | None:
    text = clean_text(value)
    return text or None


class VendorRequestRepository:
    """Record store for vendor requests.

    Reads return pandas frames (one row per request, ``RECORD_COLUMNS``
    order); store failures surface as :class:`PersistenceError`.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.client = DatabricksSQLClient(config)

    def close(self) -> None:
        self.client.close()

    @staticmethod
    @lru_cache(maxsize=64)
    def _read_sql_file(path_str: str) -> str:
        path = Path(path_str)
        if not path.exists():
            raise FileNotFoundError(f"SQL file not found: {path}")
        return path.read_text(encoding="utf-8")

    def _sql(self, relative_path: str, **format_args: Any) -> str:
        template = self._read_sql_file(str((SQL_ROOT / relative_path).resolve()))
        return template.format(fq_schema=self.config.fq_schema, **format_args)

    @contextmanager
    def _persisting(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (DataConnectionError, DataQueryError, DataExecutionError) as exc:
            cause = str(exc.__cause__ or exc).lower()
            if any(signal in cause for signal in _MISSING_TABLE_SIGNALS):
                raise SchemaBootstrapRequiredError(
                    f"Vendor request tables are missing in {self.config.fq_schema}. "
                    "Run the local DB bootstrap or provision the schema."
                ) from exc
            LOGGER.warning(
                "Record store %s failed: %s",
                operation,
                exc,
                extra={"event": "persistence_error", "operation": operation},
            )
            raise PersistenceError(f"Record store {operation} failed. Please retry.") from exc

    def _query_file(self, relative_path: str, *, params: tuple | None = None, **format_args: Any) -> pd.DataFrame:
        with self._persisting("read"):
            return self.client.query(self._sql(relative_path, **format_args), params)

    def _execute_file(self, relative_path: str, *, params: tuple | None = None, **format_args: Any) -> None:
        with self._persisting("write"):
            self.client.execute(self._sql(relative_path, **format_args), params)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _normalize_frame(frame: pd.DataFrame) -> pd.DataFrame:
        out = frame.copy()
        for column in RECORD_COLUMNS:
            if column not in out.columns:
                out[column] = None
        out = out[list(RECORD_COLUMNS)]
        out["approved"] = out["approved"].map(as_approved_flag).astype(bool)
        out["completion"] = out["completion"].map(normalize_completion)
        for column in TIMESTAMP_COLUMNS + ("requested_delivery",):
            out[column] = out[column].map(_iso_text).astype(object)
        return out.reset_index(drop=True)

    def list_requests(self, user_email: str | None = None) -> pd.DataFrame:
        owner = clean_text(user_email)
        if owner:
            frame = self._query_file(
                "ingestion/select_vendor_requests.sql",
                params=(owner,),
                where_clause="WHERE user_email = %s",
            )
        else:
            frame = self._query_file("ingestion/select_vendor_requests.sql", where_clause="")
        return self._normalize_frame(frame)

    def get_request(self, request_id: str) -> VendorRequest | None:
        frame = self._query_file("ingestion/select_vendor_request_by_id.sql", params=(clean_text(request_id),))
        if frame.empty:
            return None
        return VendorRequest.from_row(frame.iloc[0].to_dict())

    def insert_request(self, fields: Mapping[str, Any]) -> str:
        request_id = f"vrq-{uuid.uuid4().hex}"
        now = self._now()
        self._execute_file(
            "inserts/create_vendor_request.sql",
            params=(
                request_id,
                clean_text(fields.get("name")),
                clean_text(fields.get("contact")),
                clean_text(fields.get("email")),
                clean_text(fields.get("phone")),
                clean_text(fields.get("address")),
                clean_text(fields.get("city")),
                clean_text(fields.get("state")),
                _optional_text(fields.get("company_web")),
                clean_text(fields.get("supplies")),
                fields.get("requested_delivery"),
                _optional_text(fields.get("document_path")),
                COMPLETION_INCOMPLETE,
                False,
                None,
                clean_text(fields.get("user_email")),
                now,
                now,
            ),
        )
        return request_id

    def update_request(self, request_id: str, fields: Mapping[str, Any]) -> None:
        missing = [name for name in EDITABLE_FIELDS + ("document_path",) if name not in fields]
        if missing:
            raise ValueError(f"update_request requires every editable field; missing: {', '.join(missing)}")
        self._execute_file(
            "updates/update_vendor_request_fields.sql",
            params=(
                clean_text(fields["name"]),
                clean_text(fields["contact"]),
                clean_text(fields["email"]),
                clean_text(fields["phone"]),
                clean_text(fields["address"]),
                clean_text(fields["city"]),
                clean_text(fields["state"]),
                _optional_text(fields["company_web"]),
                clean_text(fields["supplies"]),
                fields["requested_delivery"],
                _optional_text(fields["document_path"]),
                self._now(),
                clean_text(request_id),
            ),
        )

    def set_completion(self, request_id: str, value: str) -> None:
        self._execute_file(
            "updates/set_vendor_request_completion.sql",
            params=(normalize_completion(value), clean_text(request_id)),
        )

    def set_approval(self, request_id: str, approved: bool, start_date: datetime | None) -> None:
        if bool(approved) != (start_date is not None):
            raise ValueError("start_date must be set exactly when the request is approved.")
        self._execute_file(
            "updates/set_vendor_request_approval.sql",
            params=(bool(approved), start_date, clean_text(request_id)),
        )

    def delete_request(self, request_id: str) -> None:
        self._execute_file("deletes/delete_vendor_request.sql", params=(clean_text(request_id),))

    def get_user_role(self, email: str) -> str:
        lookup = clean_text(email)
        if not lookup:
            return ROLE_USER
        try:
            frame = self._query_file("ingestion/select_user_role.sql", params=(lookup,))
        except (PersistenceError, SchemaBootstrapRequiredError):
            LOGGER.warning(
                "Role lookup failed; defaulting to user. email=%s",
                lookup,
                extra={"event": "role_lookup_failed", "user_email": lookup},
            )
            return ROLE_USER
        if frame.empty:
            return ROLE_USER
        return normalize_role(frame.iloc[0]["role"])

    def health_check(self) -> dict[str, Any]:
        frame = self._query_file("health/connectivity_check.sql")
        count = int(frame.iloc[0]["request_count"]) if not frame.empty else 0
        return {
            "backend": "sqlite" if self.config.use_local_db else "databricks",
            "schema": self.config.fq_schema,
            "request_count": count,
        }

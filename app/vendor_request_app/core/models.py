from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping

import pandas as pd

from vendor_request_app.core.util import clean_text

COMPLETION_INCOMPLETE = "incomplete"
COMPLETION_COMPLETE = "complete"

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_CHOICES = (ROLE_USER, ROLE_ADMIN)

REQUIRED_SUBMISSION_FIELDS = (
    "name",
    "contact",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "supplies",
)
EDITABLE_FIELDS = REQUIRED_SUBMISSION_FIELDS + ("company_web", "requested_delivery")

RECORD_COLUMNS = (
    "id",
    "name",
    "contact",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "company_web",
    "supplies",
    "requested_delivery",
    "document_path",
    "completion",
    "approved",
    "start_date",
    "user_email",
    "created_at",
    "updated_at",
)


def as_approved_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = clean_text(value).lower()
    return text in {"1", "true", "t", "yes", "y", "approved"}


def normalize_completion(value: Any) -> str:
    text = clean_text(value).lower()
    if text == COMPLETION_COMPLETE:
        return COMPLETION_COMPLETE
    return COMPLETION_INCOMPLETE


def _as_timestamp(value: Any) -> datetime | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _as_date(value: Any) -> date | None:
    parsed = _as_timestamp(value)
    return parsed.date() if parsed is not None else None


def _optional_text(value: Any) -> str | None:
    text = clean_text(value)
    return text or None


@dataclass(frozen=True)
class VendorRequest:
    id: str
    name: str
    contact: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    supplies: str
    user_email: str
    company_web: str | None = None
    requested_delivery: date | None = None
    document_path: str | None = None
    completion: str = COMPLETION_INCOMPLETE
    approved: bool = False
    start_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return self.completion == COMPLETION_COMPLETE

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "VendorRequest":
        return cls(
            id=clean_text(row.get("id")),
            name=clean_text(row.get("name")),
            contact=clean_text(row.get("contact")),
            email=clean_text(row.get("email")),
            phone=clean_text(row.get("phone")),
            address=clean_text(row.get("address")),
            city=clean_text(row.get("city")),
            state=clean_text(row.get("state")),
            supplies=clean_text(row.get("supplies")),
            user_email=clean_text(row.get("user_email")),
            company_web=_optional_text(row.get("company_web")),
            requested_delivery=_as_date(row.get("requested_delivery")),
            document_path=_optional_text(row.get("document_path")),
            completion=normalize_completion(row.get("completion")),
            approved=as_approved_flag(row.get("approved")),
            start_date=_as_timestamp(row.get("start_date")),
            created_at=_as_timestamp(row.get("created_at")),
            updated_at=_as_timestamp(row.get("updated_at")),
        )

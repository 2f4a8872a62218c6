from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import pandas as pd

from vendor_request_app.core.models import as_approved_flag, normalize_completion
from vendor_request_app.core.util import clean_text
from vendor_request_app.engine.derivation import MODE_IDENTITY, MODE_PER_EMAIL_METRICS

EMPTY_DISPLAY = "—"
NO_FILE_DISPLAY = "No File"
APPROVED_LABEL = "Approved"
NOT_APPROVED_LABEL = "Not Approved"
SORT_ASC = "asc"
SORT_DESC = "desc"

KIND_TEXT = "text"
KIND_DATE = "date"
KIND_TIMESTAMP = "timestamp"
KIND_START_DATE = "start_date"
KIND_WEBSITE = "website"
KIND_COMPLETION = "completion"
KIND_APPROVAL = "approval"
KIND_DOCUMENT = "document"
KIND_COUNT = "count"
KIND_RATE = "rate"


@dataclass(frozen=True)
class ColumnSpec:
    key: str
    label: str
    kind: str = KIND_TEXT
    sortable: bool = True
    tooltip: str | None = None
    export_label: str | None = None

    @property
    def header_label(self) -> str:
        return self.export_label or self.label


@dataclass(frozen=True)
class ViewSpec:
    """Static definition of one table view.

    ``filter_fields`` is the allow-list a caller may pick a single filter
    column from; when it is empty the search text is matched against every
    entry of ``search_fields`` instead.
    """

    name: str
    derivation_mode: str
    columns: tuple[ColumnSpec, ...]
    default_sort_key: str
    default_sort_dir: str
    export_filename: str
    numeric_keys: frozenset[str] = field(default_factory=frozenset)
    filter_fields: tuple[str, ...] = ()
    default_filter_field: str = ""
    search_fields: tuple[str, ...] = ()
    search_approval_token: bool = False
    aggregate_label: str | None = None
    owner_scoped: bool = False
    admin_only: bool = False

    @property
    def sortable_keys(self) -> frozenset[str]:
        return frozenset(column.key for column in self.columns if column.sortable)

    @property
    def header_labels(self) -> list[str]:
        return [column.header_label for column in self.columns]

    @property
    def has_aggregate_row(self) -> bool:
        return self.aggregate_label is not None

    def column(self, key: str) -> ColumnSpec | None:
        for column in self.columns:
            if column.key == key:
                return column
        return None


def website_url(value: Any) -> str | None:
    text = clean_text(value)
    if not text:
        return None
    return text if text.lower().startswith("http") else f"https://{text}"


def _timestamp(value: Any) -> pd.Timestamp | None:
    text = clean_text(value)
    if not text:
        return None
    parsed = pd.to_datetime(text, errors="coerce", utc=True)
    return None if pd.isna(parsed) else parsed


def format_date(value: Any) -> str:
    parsed = _timestamp(value)
    if parsed is None:
        return clean_text(value)
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def format_timestamp(value: Any) -> str:
    """en-US ``M/D/YYYY, h:mm:ss AM`` rendering in UTC, independent of host locale."""
    parsed = _timestamp(value)
    if parsed is None:
        return clean_text(value)
    hour = parsed.hour % 12 or 12
    meridiem = "AM" if parsed.hour < 12 else "PM"
    return f"{parsed.month}/{parsed.day}/{parsed.year}, {hour}:{parsed.minute:02d}:{parsed.second:02d} {meridiem}"


def format_rate(value: Any) -> str:
    number = pd.to_numeric(pd.Series([value]), errors="coerce").iloc[0]
    if pd.isna(number):
        return "0.00"
    return f"{float(number):.2f}"


def rate_band(value: Any) -> str:
    number = pd.to_numeric(pd.Series([value]), errors="coerce").iloc[0]
    number = 0.0 if pd.isna(number) else float(number)
    if number >= 75:
        return "high"
    if number >= 50:
        return "mid"
    return "low"


def render_cell(row: Mapping[str, Any], column: ColumnSpec, *, for_export: bool = False) -> str:
    """Display string of one cell; missing values are ``""`` in exports and ``EMPTY_DISPLAY`` on screen."""
    value = row.get(column.key)
    empty = "" if for_export else EMPTY_DISPLAY
    kind = column.kind

    if kind == KIND_APPROVAL:
        return APPROVED_LABEL if as_approved_flag(value) else NOT_APPROVED_LABEL
    if kind == KIND_COMPLETION:
        return normalize_completion(value)
    if kind == KIND_RATE:
        return format_rate(value)
    if kind == KIND_COUNT:
        number = pd.to_numeric(pd.Series([value]), errors="coerce").iloc[0]
        return "0" if pd.isna(number) else str(int(number))
    if kind == KIND_START_DATE:
        if not as_approved_flag(row.get("approved")):
            return empty
        return format_timestamp(value) or empty
    if kind == KIND_TIMESTAMP:
        return format_timestamp(value) or empty
    if kind == KIND_DATE:
        return format_date(value) or empty
    if kind == KIND_DOCUMENT:
        text = clean_text(value)
        if text:
            return text
        return "" if for_export else NO_FILE_DISPLAY
    return clean_text(value) or empty


REQUEST_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec("name", "Organization"),
    ColumnSpec("contact", "Contact"),
    ColumnSpec("email", "Email"),
    ColumnSpec("phone", "Phone"),
    ColumnSpec("address", "Address"),
    ColumnSpec("city", "City"),
    ColumnSpec("state", "State"),
    ColumnSpec("requested_delivery", "Delivery Date", kind=KIND_DATE),
    ColumnSpec("supplies", "Supplies"),
    ColumnSpec("company_web", "Website", kind=KIND_WEBSITE),
    ColumnSpec("completion", "Status", kind=KIND_COMPLETION, sortable=False),
    ColumnSpec("approved", "Approval", kind=KIND_APPROVAL, sortable=False),
    ColumnSpec("start_date", "Start Date", kind=KIND_START_DATE),
    ColumnSpec("document_path", "Document", kind=KIND_DOCUMENT, sortable=False),
    ColumnSpec("created_at", "Created At", kind=KIND_TIMESTAMP),
)

REVIEW_VIEW = ViewSpec(
    name="review",
    derivation_mode=MODE_IDENTITY,
    columns=REQUEST_COLUMNS,
    default_sort_key="created_at",
    default_sort_dir=SORT_DESC,
    export_filename="vendor_requests.csv",
    search_fields=(
        "name",
        "contact",
        "email",
        "phone",
        "address",
        "city",
        "state",
        "supplies",
        "company_web",
        "completion",
    ),
    search_approval_token=True,
    admin_only=True,
)

SUBMITTER_VIEW = ViewSpec(
    name="submitter",
    derivation_mode=MODE_IDENTITY,
    columns=REQUEST_COLUMNS,
    default_sort_key="created_at",
    default_sort_dir=SORT_DESC,
    export_filename="my_vendor_requests.csv",
    search_fields=("name", "email"),
    owner_scoped=True,
)

ANALYTICS_VIEW = ViewSpec(
    name="analytics",
    derivation_mode=MODE_PER_EMAIL_METRICS,
    columns=(
        ColumnSpec("email", "Email", sortable=False),
        ColumnSpec(
            "total_orders",
            "Total Orders",
            kind=KIND_COUNT,
            tooltip="Total number of requests submitted by this email.",
        ),
        ColumnSpec(
            "approval_rate",
            "Approval Rate",
            kind=KIND_RATE,
            tooltip="Percent of requests marked as approved.",
            export_label="Approval Rate (%)",
        ),
        ColumnSpec(
            "completion_rate",
            "Completion Rate",
            kind=KIND_RATE,
            tooltip="Percent of requests marked complete.",
            export_label="Completion Rate (%)",
        ),
    ),
    default_sort_key="approval_rate",
    default_sort_dir=SORT_ASC,
    export_filename="email_analytics.csv",
    numeric_keys=frozenset({"total_orders", "approval_rate", "completion_rate"}),
    filter_fields=("email", "approval_rate", "completion_rate", "total_orders"),
    default_filter_field="email",
    aggregate_label="Average",
    admin_only=True,
)

VIEWS: dict[str, ViewSpec] = {view.name: view for view in (REVIEW_VIEW, SUBMITTER_VIEW, ANALYTICS_VIEW)}

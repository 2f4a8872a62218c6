from __future__ import annotations

from dataclasses import asdict, dataclass, replace
import math
from typing import Any
import unicodedata

import pandas as pd

from vendor_request_app.core.defaults import DEFAULT_PAGE_SIZE
from vendor_request_app.core.models import as_approved_flag
from vendor_request_app.core.util import clean_text
from vendor_request_app.engine.views import (
    KIND_COUNT,
    KIND_RATE,
    SORT_ASC,
    SORT_DESC,
    ColumnSpec,
    ViewSpec,
    format_rate,
    rate_band,
    render_cell,
    website_url,
)

_RESETS_PAGE = ("search_text", "filter_field")


@dataclass(frozen=True)
class QueryControls:
    search_text: str = ""
    filter_field: str = ""
    sort_key: str = ""
    sort_dir: str = SORT_ASC
    page: int = 1

    @classmethod
    def defaults_for(cls, view: ViewSpec) -> "QueryControls":
        return cls(
            filter_field=view.default_filter_field,
            sort_key=view.default_sort_key,
            sort_dir=view.default_sort_dir,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, view: ViewSpec) -> "QueryControls":
        base = cls.defaults_for(view)
        if not data:
            return base
        known = {key: data[key] for key in asdict(base) if key in data}
        return _normalized(replace(base, **known))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _normalized(controls: QueryControls) -> QueryControls:
    direction = clean_text(controls.sort_dir).lower()
    try:
        page = int(controls.page)
    except (TypeError, ValueError):
        page = 1
    return replace(
        controls,
        search_text=str(controls.search_text or ""),
        filter_field=clean_text(controls.filter_field),
        sort_key=clean_text(controls.sort_key),
        sort_dir=SORT_DESC if direction == SORT_DESC else SORT_ASC,
        page=page,
    )


def apply_control_changes(previous: QueryControls, **changes: Any) -> QueryControls:
    """Return new controls with ``changes`` applied.

    This is the only way controls change: a different ``search_text`` or
    ``filter_field`` always lands on page 1, whatever page was requested.
    """
    updated = _normalized(replace(previous, **changes))
    if any(getattr(updated, name) != getattr(previous, name) for name in _RESETS_PAGE):
        updated = replace(updated, page=1)
    return updated


def toggle_sort(controls: QueryControls, key: str, view: ViewSpec) -> QueryControls:
    if key not in view.sortable_keys:
        return controls
    if key == controls.sort_key:
        flipped = SORT_DESC if controls.sort_dir == SORT_ASC else SORT_ASC
        return apply_control_changes(controls, sort_dir=flipped)
    return apply_control_changes(controls, sort_key=key, sort_dir=SORT_ASC)


def _search_column(view: ViewSpec, key: str) -> ColumnSpec:
    return view.column(key) or ColumnSpec(key, key)


def _active_filter_field(controls: QueryControls, view: ViewSpec) -> str:
    if controls.filter_field in view.filter_fields:
        return controls.filter_field
    return view.default_filter_field


def filter_rows(rows: pd.DataFrame, controls: QueryControls, view: ViewSpec) -> pd.DataFrame:
    needle = str(controls.search_text or "").strip().lower()
    if rows.empty or not needle:
        return rows.reset_index(drop=True)

    records = rows.to_dict(orient="records")
    if view.filter_fields:
        column = _search_column(view, _active_filter_field(controls, view))
        mask = [needle in render_cell(record, column, for_export=True).lower() for record in records]
    else:
        columns = [_search_column(view, key) for key in view.search_fields]
        mask = []
        for record in records:
            haystacks = [render_cell(record, column, for_export=True) for column in columns if column.key in record]
            if view.search_approval_token:
                haystacks.append("approved" if as_approved_flag(record.get("approved")) else "not approved")
            mask.append(any(needle in text.lower() for text in haystacks))
    return rows[pd.Series(mask, index=rows.index)].reset_index(drop=True)


def collation_key(value: Any) -> str:
    """Accent- and case-insensitive primary key for text ordering."""
    decomposed = unicodedata.normalize("NFKD", clean_text(value))
    return "".join(char for char in decomposed if not unicodedata.combining(char)).casefold()


def _raw_text(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return clean_text(value)


def sort_rows(rows: pd.DataFrame, controls: QueryControls, view: ViewSpec) -> pd.DataFrame:
    key = controls.sort_key
    if rows.empty or key not in view.sortable_keys or key not in rows.columns:
        return rows.reset_index(drop=True)
    ascending = controls.sort_dir != SORT_DESC

    work = rows.reset_index(drop=True)
    if key in view.numeric_keys:
        sort_frame = pd.DataFrame({"__primary": pd.to_numeric(work[key], errors="coerce")})
        order = sort_frame.sort_values("__primary", ascending=ascending, kind="stable", na_position="last").index
    else:
        raw = work[key].map(_raw_text)
        sort_frame = pd.DataFrame({"__primary": raw.map(collation_key), "__secondary": raw})
        order = sort_frame.sort_values(
            ["__primary", "__secondary"],
            ascending=[ascending, ascending],
            kind="stable",
        ).index
    return work.loc[order].reset_index(drop=True)


def page_count(filtered_count: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    if filtered_count <= 0:
        return 0
    return math.ceil(filtered_count / max(1, int(page_size)))


def paginate(rows: pd.DataFrame, page: int, page_size: int = DEFAULT_PAGE_SIZE) -> pd.DataFrame:
    size = max(1, int(page_size))
    if page < 1:
        return rows.iloc[0:0].reset_index(drop=True)
    start = (page - 1) * size
    return rows.iloc[start : start + size].reset_index(drop=True)


def aggregate_row(rows: pd.DataFrame, view: ViewSpec) -> dict[str, Any] | None:
    """Summary row over the full filtered set: counts summed, rates averaged."""
    if not view.has_aggregate_row:
        return None
    count = len(rows.index)
    out: dict[str, Any] = {}
    for index, column in enumerate(view.columns):
        values = (
            pd.to_numeric(rows[column.key], errors="coerce").fillna(0)
            if column.key in rows.columns
            else pd.Series(dtype=float)
        )
        if index == 0:
            out[column.key] = view.aggregate_label
        elif column.kind == KIND_COUNT:
            out[column.key] = int(values.sum())
        elif column.kind == KIND_RATE:
            out[column.key] = round(float(values.sum()) / max(count, 1), 2)
        else:
            out[column.key] = None
    return out


@dataclass(frozen=True)
class ViewResult:
    page_rows: pd.DataFrame
    total_pages: int
    filtered_count: int
    aggregate_row: dict[str, Any] | None
    filtered_rows: pd.DataFrame
    controls: QueryControls


def query_view(
    rows: pd.DataFrame,
    controls: QueryControls,
    view: ViewSpec,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ViewResult:
    """Filter, sort and paginate derived rows for one view.

    ``filtered_rows`` keeps the full filtered+sorted set for export; the
    aggregate row (when the view has one) is computed over that set, not the
    current page.
    """
    filtered = sort_rows(filter_rows(rows, controls, view), controls, view)
    count = len(filtered.index)
    return ViewResult(
        page_rows=paginate(filtered, controls.page, page_size),
        total_pages=page_count(count, page_size),
        filtered_count=count,
        aggregate_row=aggregate_row(filtered, view),
        filtered_rows=filtered,
        controls=controls,
    )


def row_bands(row: dict[str, Any], view: ViewSpec) -> dict[str, str]:
    return {column.key: rate_band(row.get(column.key)) for column in view.columns if column.kind == KIND_RATE}


def present_row(row: dict[str, Any], view: ViewSpec) -> dict[str, Any]:
    """JSON-ready row: raw values, display strings and rate bands."""
    payload: dict[str, Any] = {}
    for key, value in row.items():
        if isinstance(value, float) and math.isnan(value):
            value = None
        payload[key] = value
    for column in view.columns:
        if column.kind == KIND_RATE:
            payload[column.key] = format_rate(row.get(column.key))
    payload["display"] = {column.key: render_cell(row, column) for column in view.columns}
    website = view.column("company_web")
    if website is not None:
        payload["website_url"] = website_url(row.get(website.key))
    bands = row_bands(row, view)
    if bands:
        payload["bands"] = bands
    return payload

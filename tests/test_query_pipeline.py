from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from vendor_request_app.engine.derivation import MODE_PER_EMAIL_METRICS, derive_rows  # noqa: E402
from vendor_request_app.engine.memo import ViewBuilder, snapshot_fingerprint  # noqa: E402
from vendor_request_app.engine.query import (  # noqa: E402
    QueryControls,
    aggregate_row,
    apply_control_changes,
    page_count,
    paginate,
    present_row,
    query_view,
    toggle_sort,
)
from vendor_request_app.engine.views import ANALYTICS_VIEW, REVIEW_VIEW  # noqa: E402


def _request_rows(count: int) -> pd.DataFrame:
    rows = []
    for index in range(count):
        rows.append(
            {
                "id": f"vrq-{index:04d}",
                "name": f"Vendor {index:02d}",
                "contact": "Pat",
                "email": f"v{index % 4}@x.com",
                "phone": "555-0100",
                "address": "1 Main St",
                "city": "Springfield",
                "state": "IL",
                "company_web": None,
                "supplies": "gloves",
                "requested_delivery": None,
                "document_path": None,
                "completion": "complete" if index % 2 else "incomplete",
                "approved": index % 3 == 0,
                "start_date": "2026-02-01T10:00:00+00:00" if index % 3 == 0 else None,
                "user_email": "testuser@email.com",
                "created_at": f"2026-01-{index + 1:02d}T09:00:00+00:00",
                "updated_at": f"2026-01-{index + 1:02d}T09:00:00+00:00",
            }
        )
    return pd.DataFrame(rows)


def _metric_rows() -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"email": "a@x.com", "total_orders": 4, "approval_rate": 25.0, "completion_rate": 100.0},
            {"email": "b@x.com", "total_orders": 1, "approval_rate": 100.0, "completion_rate": 0.0},
            {"email": "c@y.com", "total_orders": 2, "approval_rate": 50.0, "completion_rate": 50.0},
        ]
    )


def test_empty_search_returns_full_count() -> None:
    rows = _request_rows(7)
    controls = QueryControls.defaults_for(REVIEW_VIEW)

    result = query_view(rows, controls, REVIEW_VIEW)

    assert result.filtered_count == 7
    assert result.total_pages == 1


def test_whitespace_only_search_is_treated_as_empty() -> None:
    rows = _request_rows(5)
    controls = apply_control_changes(QueryControls.defaults_for(REVIEW_VIEW), search_text="   ")

    assert query_view(rows, controls, REVIEW_VIEW).filtered_count == 5


def test_review_search_is_case_insensitive_across_fields_and_approval_token() -> None:
    rows = _request_rows(6)
    base = QueryControls.defaults_for(REVIEW_VIEW)

    by_name = query_view(rows, apply_control_changes(base, search_text="VENDOR 03"), REVIEW_VIEW)
    not_approved = query_view(rows, apply_control_changes(base, search_text="not approved"), REVIEW_VIEW)

    assert list(by_name.filtered_rows["id"]) == ["vrq-0003"]
    assert not_approved.filtered_count == 4


def test_pages_are_bounded_and_sum_to_filtered_count() -> None:
    rows = _request_rows(23)
    controls = QueryControls.defaults_for(REVIEW_VIEW)
    total_pages = page_count(len(rows.index))

    sizes = []
    for page in range(1, total_pages + 1):
        result = query_view(rows, apply_control_changes(controls, page=page), REVIEW_VIEW)
        sizes.append(len(result.page_rows.index))

    assert total_pages == 3
    assert all(size <= 10 for size in sizes)
    assert sum(sizes) == 23
    assert paginate(rows, 0).empty
    assert paginate(rows, 4).empty


def test_search_or_filter_change_resets_page() -> None:
    controls = apply_control_changes(QueryControls.defaults_for(ANALYTICS_VIEW), page=3)

    searched = apply_control_changes(controls, search_text="a@", page=3)
    refiltered = apply_control_changes(controls, filter_field="total_orders")
    resorted = apply_control_changes(controls, sort_key="total_orders")

    assert searched.page == 1
    assert refiltered.page == 1
    assert resorted.page == 3


def test_toggle_sort_flips_direction_and_ignores_unsortable_columns() -> None:
    controls = QueryControls.defaults_for(ANALYTICS_VIEW)

    flipped = toggle_sort(controls, "approval_rate", ANALYTICS_VIEW)
    switched = toggle_sort(flipped, "total_orders", ANALYTICS_VIEW)

    assert (controls.sort_key, controls.sort_dir) == ("approval_rate", "asc")
    assert (flipped.sort_key, flipped.sort_dir) == ("approval_rate", "desc")
    assert (switched.sort_key, switched.sort_dir) == ("total_orders", "asc")
    assert toggle_sort(controls, "email", ANALYTICS_VIEW) == controls
    assert toggle_sort(QueryControls.defaults_for(REVIEW_VIEW), "approved", REVIEW_VIEW).sort_key == "created_at"


def test_numeric_sort_flip_is_exact_reverse_without_ties() -> None:
    rows = _metric_rows()
    asc = apply_control_changes(QueryControls.defaults_for(ANALYTICS_VIEW), sort_key="total_orders", sort_dir="asc")
    desc = apply_control_changes(asc, sort_dir="desc")

    ascending = list(query_view(rows, asc, ANALYTICS_VIEW).filtered_rows["email"])
    descending = list(query_view(rows, desc, ANALYTICS_VIEW).filtered_rows["email"])

    assert ascending == ["b@x.com", "c@y.com", "a@x.com"]
    assert descending == list(reversed(ascending))


def test_numeric_sort_is_stable_on_ties() -> None:
    rows = pd.DataFrame(
        [
            {"email": "first@x.com", "total_orders": 1, "approval_rate": 50.0, "completion_rate": 0.0},
            {"email": "second@x.com", "total_orders": 1, "approval_rate": 50.0, "completion_rate": 0.0},
        ]
    )
    for direction in ("asc", "desc"):
        controls = apply_control_changes(QueryControls.defaults_for(ANALYTICS_VIEW), sort_dir=direction)
        assert list(query_view(rows, controls, ANALYTICS_VIEW).filtered_rows["email"]) == [
            "first@x.com",
            "second@x.com",
        ]


def test_text_sort_ignores_accents_and_case() -> None:
    rows = _request_rows(3)
    rows["name"] = ["beta", "Élan", "alpha"]
    controls = apply_control_changes(QueryControls.defaults_for(REVIEW_VIEW), sort_key="name", sort_dir="asc")

    assert list(query_view(rows, controls, REVIEW_VIEW).filtered_rows["name"]) == ["alpha", "beta", "Élan"]


def test_default_review_order_is_newest_first() -> None:
    rows = _request_rows(3)

    result = query_view(rows, QueryControls.defaults_for(REVIEW_VIEW), REVIEW_VIEW)

    assert list(result.page_rows["id"]) == ["vrq-0002", "vrq-0001", "vrq-0000"]


def test_analytics_filter_uses_selected_field_only() -> None:
    rows = _metric_rows()
    base = QueryControls.defaults_for(ANALYTICS_VIEW)

    by_email = query_view(rows, apply_control_changes(base, search_text="@y.com"), ANALYTICS_VIEW)
    by_rate = query_view(
        rows,
        apply_control_changes(base, filter_field="approval_rate", search_text="100.00"),
        ANALYTICS_VIEW,
    )
    not_allowed = query_view(
        rows,
        apply_control_changes(base, filter_field="phone", search_text="a@x"),
        ANALYTICS_VIEW,
    )

    assert list(by_email.filtered_rows["email"]) == ["c@y.com"]
    assert list(by_rate.filtered_rows["email"]) == ["b@x.com"]
    assert list(not_allowed.filtered_rows["email"]) == ["a@x.com"]


def test_aggregate_row_covers_filtered_set_not_page() -> None:
    rows = _metric_rows()
    result = query_view(rows, QueryControls.defaults_for(ANALYTICS_VIEW), ANALYTICS_VIEW, page_size=1)

    assert len(result.page_rows.index) == 1
    assert result.aggregate_row == {
        "email": "Average",
        "total_orders": 7,
        "approval_rate": 58.33,
        "completion_rate": 50.0,
    }


def test_empty_filtered_set_yields_zero_aggregate_and_no_pages() -> None:
    rows = _metric_rows()
    controls = apply_control_changes(QueryControls.defaults_for(ANALYTICS_VIEW), search_text="nobody")

    result = query_view(rows, controls, ANALYTICS_VIEW)
    presented = present_row(result.aggregate_row, ANALYTICS_VIEW)

    assert result.filtered_count == 0
    assert result.total_pages == 0
    assert presented["email"] == "Average"
    assert presented["total_orders"] == 0
    assert presented["approval_rate"] == "0.00"
    assert presented["completion_rate"] == "0.00"


def test_aggregate_row_on_empty_snapshot_never_raises() -> None:
    rows = derive_rows(pd.DataFrame(columns=["email", "approved", "completion"]), MODE_PER_EMAIL_METRICS)

    assert aggregate_row(rows, ANALYTICS_VIEW)["total_orders"] == 0
    assert aggregate_row(rows, REVIEW_VIEW) is None


def test_present_row_formats_rates_and_bands() -> None:
    row = _metric_rows().to_dict(orient="records")[0]

    presented = present_row(row, ANALYTICS_VIEW)

    assert presented["approval_rate"] == "25.00"
    assert presented["completion_rate"] == "100.00"
    assert presented["bands"] == {"approval_rate": "low", "completion_rate": "high"}


def test_view_builder_memoizes_per_snapshot_and_controls() -> None:
    builder = ViewBuilder(enabled=True, ttl_seconds=60, max_entries=8, page_size=10)
    rows = _request_rows(4)
    controls = QueryControls.defaults_for(REVIEW_VIEW)

    first = builder.build(rows, controls, REVIEW_VIEW)
    second = builder.build(rows.copy(), controls, REVIEW_VIEW)
    changed = rows.copy()
    changed.loc[0, "name"] = "Renamed"

    assert first.filtered_count == second.filtered_count == 4
    assert snapshot_fingerprint(rows) == snapshot_fingerprint(rows.copy())
    assert snapshot_fingerprint(rows) != snapshot_fingerprint(changed)
    assert "Renamed" in list(builder.build(changed, controls, REVIEW_VIEW).filtered_rows["name"])

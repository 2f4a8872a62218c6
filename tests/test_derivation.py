from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from vendor_request_app.engine.derivation import (  # noqa: E402
    MODE_IDENTITY,
    MODE_PER_EMAIL_METRICS,
    UNKNOWN_EMAIL,
    derive_rows,
    percentage,
)


def _records(rows: list[dict]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=["id", "name", "email", "approved", "completion"])


def test_identity_passes_records_through_without_mutating_input() -> None:
    records = _records(
        [
            {"id": "r1", "name": "Acme", "email": "a@x.com", "approved": True, "completion": "complete"},
            {"id": "r2", "name": "Beta", "email": "b@x.com", "approved": False, "completion": "incomplete"},
        ]
    )
    before = records.copy()

    rows = derive_rows(records, MODE_IDENTITY)
    rows.loc[0, "name"] = "changed"

    assert list(rows["id"]) == ["r1", "r2"]
    pd.testing.assert_frame_equal(records, before)


def test_per_email_metrics_groups_by_email_with_rates() -> None:
    records = _records(
        [
            {"id": "r1", "name": "Acme", "email": "a@x.com", "approved": True, "completion": "complete"},
            {"id": "r2", "name": "Acme", "email": "a@x.com", "approved": False, "completion": "incomplete"},
        ]
    )

    rows = derive_rows(records, MODE_PER_EMAIL_METRICS)

    assert rows.to_dict(orient="records") == [
        {"email": "a@x.com", "total_orders": 2, "approval_rate": 50.0, "completion_rate": 50.0}
    ]


def test_per_email_metrics_keeps_first_occurrence_order_and_unknown_bucket() -> None:
    records = _records(
        [
            {"id": "r1", "name": "A", "email": "z@x.com", "approved": False, "completion": "incomplete"},
            {"id": "r2", "name": "B", "email": "", "approved": True, "completion": "complete"},
            {"id": "r3", "name": "C", "email": None, "approved": False, "completion": "complete"},
            {"id": "r4", "name": "D", "email": "a@x.com", "approved": True, "completion": "incomplete"},
            {"id": "r5", "name": "E", "email": "z@x.com", "approved": True, "completion": "complete"},
        ]
    )

    rows = derive_rows(records, MODE_PER_EMAIL_METRICS)

    assert list(rows["email"]) == ["z@x.com", UNKNOWN_EMAIL, "a@x.com"]
    assert int(rows["total_orders"].sum()) == len(records.index)
    unknown = rows[rows["email"] == UNKNOWN_EMAIL].iloc[0]
    assert unknown["total_orders"] == 2
    assert unknown["approval_rate"] == 50.0
    assert unknown["completion_rate"] == 100.0


def test_rates_are_two_decimal_and_bounded() -> None:
    records = _records(
        [
            {"id": f"r{i}", "name": "A", "email": "a@x.com", "approved": i == 0, "completion": "incomplete"}
            for i in range(3)
        ]
    )

    rows = derive_rows(records, MODE_PER_EMAIL_METRICS)

    assert rows.iloc[0]["approval_rate"] == 33.33
    for column in ("approval_rate", "completion_rate"):
        assert rows[column].between(0, 100).all()
        assert not rows[column].isna().any()


def test_per_email_metrics_on_empty_snapshot_has_metric_columns() -> None:
    rows = derive_rows(_records([]), MODE_PER_EMAIL_METRICS)

    assert rows.empty
    assert list(rows.columns) == ["email", "total_orders", "approval_rate", "completion_rate"]


def test_unknown_derivation_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        derive_rows(_records([]), "per_city")


def test_percentage_with_zero_total_is_zero() -> None:
    assert percentage(0, 0) == 0.0
    assert percentage(1, 3) == 33.33

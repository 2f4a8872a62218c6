from __future__ import annotations

import csv
import io
import sys
from pathlib import Path

import pandas as pd

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from vendor_request_app.engine.export import export_view, serialize  # noqa: E402
from vendor_request_app.engine.query import QueryControls, apply_control_changes, query_view  # noqa: E402
from vendor_request_app.engine.views import ANALYTICS_VIEW, REVIEW_VIEW, SUBMITTER_VIEW  # noqa: E402


def _request(**overrides) -> dict:
    row = {
        "id": "vrq-1",
        "name": "Acme, Inc.",
        "contact": 'Pat "PJ" Jones',
        "email": "orders@acme.example",
        "phone": "555-0100",
        "address": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "company_web": None,
        "supplies": "gloves",
        "requested_delivery": "2026-03-04",
        "document_path": None,
        "completion": "incomplete",
        "approved": False,
        "start_date": None,
        "user_email": "testuser@email.com",
        "created_at": "2026-01-05T14:03:09+00:00",
        "updated_at": "2026-01-05T14:03:09+00:00",
    }
    row.update(overrides)
    return row


def test_serialize_quotes_every_field_and_doubles_embedded_quotes() -> None:
    text = serialize([["Acme, Inc.", 'say "hi"', 3]], ["Name", "Note", "Count"])

    assert text == '"Name","Note","Count"\n"Acme, Inc.","say ""hi""","3"'


def test_serialize_has_no_trailing_newline_and_header_only_when_empty() -> None:
    assert serialize([], ["A", "B"]) == '"A","B"'


def test_review_export_renders_display_strings() -> None:
    frame = pd.DataFrame([_request()])

    text = export_view(frame, REVIEW_VIEW)
    header, record = list(csv.reader(io.StringIO(text)))

    assert header == [
        "Organization",
        "Contact",
        "Email",
        "Phone",
        "Address",
        "City",
        "State",
        "Delivery Date",
        "Supplies",
        "Website",
        "Status",
        "Approval",
        "Start Date",
        "Document",
        "Created At",
    ]
    assert record[0] == "Acme, Inc."
    assert record[1] == 'Pat "PJ" Jones'
    assert record[7] == "3/4/2026"
    assert record[9] == ""
    assert record[10] == "incomplete"
    assert record[11] == "Not Approved"
    assert record[12] == ""
    assert record[13] == ""
    assert record[14] == "1/5/2026, 2:03:09 PM"


def test_start_date_exported_only_when_approved() -> None:
    frame = pd.DataFrame(
        [
            _request(approved=True, start_date="2026-02-01T09:30:00+00:00"),
            _request(id="vrq-2", approved=False, start_date="2026-02-01T09:30:00+00:00"),
        ]
    )

    rows = list(csv.reader(io.StringIO(export_view(frame, SUBMITTER_VIEW))))[1:]

    assert rows[0][11] == "Approved"
    assert rows[0][12] == "2/1/2026, 9:30:00 AM"
    assert rows[1][12] == ""


def test_analytics_export_uses_percent_headers_and_two_decimals() -> None:
    frame = pd.DataFrame([{"email": "a@x.com", "total_orders": 2, "approval_rate": 50.0, "completion_rate": 100}])

    text = export_view(frame, ANALYTICS_VIEW)

    assert text == (
        '"Email","Total Orders","Approval Rate (%)","Completion Rate (%)"\n'
        '"a@x.com","2","50.00","100.00"'
    )


def test_export_row_count_is_independent_of_page() -> None:
    frame = pd.DataFrame([_request(id=f"vrq-{index}", name=f"Vendor {index}") for index in range(25)])
    controls = apply_control_changes(QueryControls.defaults_for(REVIEW_VIEW), page=3)

    result = query_view(frame, controls, REVIEW_VIEW)
    lines = export_view(result.filtered_rows, REVIEW_VIEW).split("\n")

    assert len(result.page_rows.index) == 5
    assert len(lines) == 26

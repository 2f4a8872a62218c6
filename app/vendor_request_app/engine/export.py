from __future__ import annotations

import csv
from typing import Sequence

import pandas as pd

from vendor_request_app.engine.views import ViewSpec, render_cell

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def serialize(rows: Sequence[Sequence[object]] | pd.DataFrame, header_labels: Sequence[str]) -> str:
    """Header line plus one line per row, every field double-quoted.

    Embedded quotes are doubled, fields are comma-joined and lines are joined
    with ``\\n`` (no trailing newline). Values are written as given; use
    :func:`export_view` to render display strings first.
    """
    if isinstance(rows, pd.DataFrame):
        frame = rows.copy()
        frame.columns = list(header_labels)
    else:
        frame = pd.DataFrame(list(rows), columns=list(header_labels))
    text = frame.fillna("").to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return text[:-1] if text.endswith("\n") else text


def export_view(filtered_rows: pd.DataFrame, view: ViewSpec) -> str:
    """CSV of the filtered+sorted rows of ``view``, independent of the current page."""
    records = filtered_rows.to_dict(orient="records")
    body = [[render_cell(record, column, for_export=True) for column in view.columns] for record in records]
    return serialize(body, view.header_labels)

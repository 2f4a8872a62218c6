from __future__ import annotations

import pandas as pd

from vendor_request_app.core.models import COMPLETION_COMPLETE, as_approved_flag, normalize_completion
from vendor_request_app.core.util import clean_text

MODE_IDENTITY = "identity"
MODE_PER_EMAIL_METRICS = "per_email_metrics"
DERIVATION_MODES = (MODE_IDENTITY, MODE_PER_EMAIL_METRICS)

UNKNOWN_EMAIL = "Unknown"
METRIC_COLUMNS = ["email", "total_orders", "approval_rate", "completion_rate"]


def percentage(part: float, total: float) -> float:
    """Share of ``part`` in ``total`` as a 2-decimal percentage; a zero total yields 0.0."""
    return round(100.0 * float(part) / max(float(total), 1.0), 2)


def _email_metrics(records: pd.DataFrame) -> pd.DataFrame:
    if records.empty:
        return pd.DataFrame(columns=METRIC_COLUMNS)

    email = records["email"] if "email" in records.columns else pd.Series("", index=records.index)
    approved = records["approved"] if "approved" in records.columns else pd.Series(False, index=records.index)
    completion = records["completion"] if "completion" in records.columns else pd.Series(None, index=records.index)

    work = pd.DataFrame(
        {
            "email": email.map(lambda value: clean_text(value) or UNKNOWN_EMAIL),
            "approved": approved.map(as_approved_flag).astype(int),
            "complete": completion.map(lambda value: normalize_completion(value) == COMPLETION_COMPLETE).astype(int),
        }
    )
    grouped = (
        work.groupby("email", sort=False)
        .agg(total_orders=("email", "size"), approved=("approved", "sum"), complete=("complete", "sum"))
        .reset_index()
    )
    grouped["approval_rate"] = [
        percentage(part, total) for part, total in zip(grouped["approved"], grouped["total_orders"])
    ]
    grouped["completion_rate"] = [
        percentage(part, total) for part, total in zip(grouped["complete"], grouped["total_orders"])
    ]
    grouped["total_orders"] = grouped["total_orders"].astype(int)
    return grouped[METRIC_COLUMNS].reset_index(drop=True)


def derive_rows(records: pd.DataFrame, mode: str) -> pd.DataFrame:
    """Turn raw request records into the rows a view displays.

    ``identity`` passes records through one row each; ``per_email_metrics``
    reduces them to one row per distinct ``email`` field value, blank emails
    grouped under ``"Unknown"``, in first-occurrence order. The input frame is
    never modified.
    """
    if mode == MODE_IDENTITY:
        return records.copy().reset_index(drop=True)
    if mode == MODE_PER_EMAIL_METRICS:
        return _email_metrics(records)
    raise ValueError(f"Unknown derivation mode '{mode}'. Expected one of: {', '.join(DERIVATION_MODES)}.")

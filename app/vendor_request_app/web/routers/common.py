from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import Response
from starlette.datastructures import UploadFile

from vendor_request_app.backend.lifecycle import UploadedDocument
from vendor_request_app.core.principal import SessionPrincipal
from vendor_request_app.core.util import as_int, clean_text
from vendor_request_app.engine.export import CSV_MEDIA_TYPE, export_view
from vendor_request_app.engine.query import (
    QueryControls,
    ViewResult,
    apply_control_changes,
    present_row,
    toggle_sort,
)
from vendor_request_app.engine.views import ViewSpec
from vendor_request_app.web.core.runtime import get_repo, get_view_builder

CONTROLS_SESSION_PREFIX = "vreq_controls_"

# query parameter -> QueryControls field
_CONTROL_PARAMS = {
    "search": "search_text",
    "filter_field": "filter_field",
    "sort_by": "sort_key",
    "sort_dir": "sort_dir",
    "page": "page",
}


def _session(request: Request) -> dict | None:
    session = request.scope.get("session")
    return session if isinstance(session, dict) else None


def _stored_controls(request: Request, view: ViewSpec) -> QueryControls:
    session = _session(request)
    stored = session.get(f"{CONTROLS_SESSION_PREFIX}{view.name}") if session is not None else None
    return QueryControls.from_dict(stored if isinstance(stored, dict) else None, view)


def _store_controls(request: Request, view: ViewSpec, controls: QueryControls) -> None:
    session = _session(request)
    if session is not None:
        session[f"{CONTROLS_SESSION_PREFIX}{view.name}"] = controls.to_dict()


def resolve_controls(request: Request, view: ViewSpec) -> QueryControls:
    """Controls for ``view``: session state with this request's query changes applied."""
    params = request.query_params
    if str(params.get("reset", "")).strip().lower() in {"1", "true", "yes"}:
        previous = QueryControls.defaults_for(view)
    else:
        previous = _stored_controls(request, view)

    changes: dict[str, Any] = {}
    for param, field_name in _CONTROL_PARAMS.items():
        if param not in params:
            continue
        value = params.get(param)
        if field_name == "page":
            value = as_int(value, default=previous.page)
        changes[field_name] = value
    # an unsortable sort_by keeps the active sort
    if "sort_key" in changes and clean_text(changes["sort_key"]) not in view.sortable_keys:
        changes.pop("sort_key")
        changes.pop("sort_dir", None)
    controls = apply_control_changes(previous, **changes)

    toggle_key = str(params.get("toggle", "") or "").strip()
    if toggle_key:
        controls = toggle_sort(controls, toggle_key, view)
    _store_controls(request, view, controls)
    return controls


def load_records(view: ViewSpec, principal: SessionPrincipal):
    if view.owner_scoped:
        return get_repo().list_requests(user_email=principal.email)
    return get_repo().list_requests()


def build_view(request: Request, view: ViewSpec, principal: SessionPrincipal, *, apply_query: bool = True) -> ViewResult:
    controls = resolve_controls(request, view) if apply_query else _stored_controls(request, view)
    return get_view_builder().build(load_records(view, principal), controls, view)


def view_payload(view: ViewSpec, result: ViewResult, principal: SessionPrincipal) -> dict[str, Any]:
    page_size = get_view_builder().page_size
    controls = result.controls
    aggregate = present_row(result.aggregate_row, view) if result.aggregate_row is not None else None
    return {
        "ok": True,
        "view": view.name,
        "user": {"email": principal.email, "role": principal.role},
        "columns": [
            {
                "key": column.key,
                "label": column.label,
                "sortable": column.key in view.sortable_keys,
                "tooltip": column.tooltip,
            }
            for column in view.columns
        ],
        "rows": [present_row(row, view) for row in result.page_rows.to_dict(orient="records")],
        "aggregate_row": aggregate,
        "filtered_count": result.filtered_count,
        "total_pages": result.total_pages,
        "page": controls.page,
        "page_label": f"Page {controls.page} of {result.total_pages}",
        "show_pagination": result.filtered_count > page_size,
        "controls": controls.to_dict(),
        "filter_fields": list(view.filter_fields),
        "sort_links": _sort_links(controls, view),
    }


def _sort_links(controls: QueryControls, view: ViewSpec) -> dict[str, dict[str, str]]:
    links: dict[str, dict[str, str]] = {}
    for column in view.columns:
        if column.key not in view.sortable_keys:
            continue
        toggled = toggle_sort(controls, column.key, view)
        links[column.key] = {"sort_key": toggled.sort_key, "sort_dir": toggled.sort_dir}
    return links


def csv_download(view: ViewSpec, result: ViewResult) -> Response:
    return Response(
        content=export_view(result.filtered_rows, view),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{view.export_filename}"'},
    )


async def read_document(upload: UploadFile | None) -> UploadedDocument | None:
    if upload is None or not str(upload.filename or "").strip():
        return None
    content = await upload.read()
    return UploadedDocument(
        filename=str(upload.filename),
        content=content,
        content_type=upload.content_type or None,
    )

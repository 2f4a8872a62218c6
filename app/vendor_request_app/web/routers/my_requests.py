from __future__ import annotations

from typing import Any

from fastapi import APIRouter, File, Form, Request, UploadFile

from vendor_request_app.engine.views import SUBMITTER_VIEW
from vendor_request_app.web.core.runtime import get_controller
from vendor_request_app.web.core.user_context_service import get_session_principal, require_submitter
from vendor_request_app.web.routers.common import build_view, csv_download, read_document, view_payload

router = APIRouter(prefix="/api")


def _submitter(request: Request):
    principal = get_session_principal(request)
    require_submitter(principal)
    return principal


def _form_fields(**values: Any) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


@router.get("/my-requests")
def my_requests(request: Request):
    principal = _submitter(request)
    return view_payload(SUBMITTER_VIEW, build_view(request, SUBMITTER_VIEW, principal), principal)


@router.get("/my-requests/export")
def my_requests_export(request: Request):
    principal = _submitter(request)
    return csv_download(SUBMITTER_VIEW, build_view(request, SUBMITTER_VIEW, principal))


@router.post("/requests")
async def submit_request(
    request: Request,
    name: str = Form(""),
    contact: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    address: str = Form(""),
    city: str = Form(""),
    state: str = Form(""),
    supplies: str = Form(""),
    company_web: str = Form(""),
    requested_delivery: str = Form(""),
    document: UploadFile | None = File(None),
):
    principal = _submitter(request)
    fields = {
        "name": name,
        "contact": contact,
        "email": email,
        "phone": phone,
        "address": address,
        "city": city,
        "state": state,
        "supplies": supplies,
        "company_web": company_web,
        "requested_delivery": requested_delivery,
    }
    request_id = get_controller().submit(principal, fields, await read_document(document))
    payload = view_payload(
        SUBMITTER_VIEW,
        build_view(request, SUBMITTER_VIEW, principal, apply_query=False),
        principal,
    )
    payload["request_id"] = request_id
    return payload


@router.post("/requests/{request_id}")
async def edit_request(
    request: Request,
    request_id: str,
    name: str | None = Form(None),
    contact: str | None = Form(None),
    email: str | None = Form(None),
    phone: str | None = Form(None),
    address: str | None = Form(None),
    city: str | None = Form(None),
    state: str | None = Form(None),
    supplies: str | None = Form(None),
    company_web: str | None = Form(None),
    requested_delivery: str | None = Form(None),
    document: UploadFile | None = File(None),
):
    principal = _submitter(request)
    fields = _form_fields(
        name=name,
        contact=contact,
        email=email,
        phone=phone,
        address=address,
        city=city,
        state=state,
        supplies=supplies,
        company_web=company_web,
        requested_delivery=requested_delivery,
    )
    get_controller().update(principal, request_id, fields, await read_document(document))
    payload = view_payload(
        SUBMITTER_VIEW,
        build_view(request, SUBMITTER_VIEW, principal, apply_query=False),
        principal,
    )
    payload["request_id"] = request_id
    return payload


@router.delete("/requests/{request_id}")
def delete_request(request: Request, request_id: str):
    principal = _submitter(request)
    get_controller().delete(principal, request_id)
    payload = view_payload(
        SUBMITTER_VIEW,
        build_view(request, SUBMITTER_VIEW, principal, apply_query=False),
        principal,
    )
    payload["request_id"] = request_id
    return payload

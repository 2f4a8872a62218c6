from __future__ import annotations

from fastapi import APIRouter, Request

from vendor_request_app.engine.views import REVIEW_VIEW
from vendor_request_app.web.core.runtime import get_controller
from vendor_request_app.web.core.user_context_service import get_session_principal, require_admin
from vendor_request_app.web.routers.common import build_view, csv_download, view_payload

router = APIRouter(prefix="/api/review")


def _staff(request: Request):
    principal = get_session_principal(request)
    require_admin(principal)
    return principal


def _refreshed(request: Request, principal, request_id: str) -> dict:
    payload = view_payload(
        REVIEW_VIEW,
        build_view(request, REVIEW_VIEW, principal, apply_query=False),
        principal,
    )
    payload["request_id"] = request_id
    return payload


@router.get("/requests")
def review_requests(request: Request):
    principal = _staff(request)
    return view_payload(REVIEW_VIEW, build_view(request, REVIEW_VIEW, principal), principal)


@router.get("/requests/export")
def review_requests_export(request: Request):
    principal = _staff(request)
    return csv_download(REVIEW_VIEW, build_view(request, REVIEW_VIEW, principal))


@router.post("/requests/{request_id}/completion")
def review_toggle_completion(request: Request, request_id: str):
    principal = _staff(request)
    completion = get_controller().toggle_completion(request_id)
    payload = _refreshed(request, principal, request_id)
    payload["completion"] = completion
    return payload


@router.post("/requests/{request_id}/approval")
def review_toggle_approval(request: Request, request_id: str):
    principal = _staff(request)
    approved = get_controller().toggle_approval(request_id)
    payload = _refreshed(request, principal, request_id)
    payload["approved"] = approved
    return payload

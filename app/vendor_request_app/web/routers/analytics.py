from __future__ import annotations

from fastapi import APIRouter, Request

from vendor_request_app.engine.views import ANALYTICS_VIEW
from vendor_request_app.web.core.user_context_service import get_session_principal, require_admin
from vendor_request_app.web.routers.common import build_view, csv_download, view_payload

router = APIRouter(prefix="/api/analytics")


@router.get("/email-metrics")
def email_metrics(request: Request):
    principal = get_session_principal(request)
    require_admin(principal)
    payload = view_payload(ANALYTICS_VIEW, build_view(request, ANALYTICS_VIEW, principal), principal)
    payload["tooltips"] = {column.key: column.tooltip for column in ANALYTICS_VIEW.columns if column.tooltip}
    return payload


@router.get("/email-metrics/export")
def email_metrics_export(request: Request):
    principal = get_session_principal(request)
    require_admin(principal)
    return csv_download(ANALYTICS_VIEW, build_view(request, ANALYTICS_VIEW, principal))

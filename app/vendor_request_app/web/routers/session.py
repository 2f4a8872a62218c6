from __future__ import annotations

from fastapi import APIRouter, Request

from vendor_request_app.core.models import ROLE_CHOICES
from vendor_request_app.core.principal import SessionPrincipal
from vendor_request_app.web.core.runtime import get_config, role_override_enabled
from vendor_request_app.web.core.user_context_service import get_session_principal, set_role_override

router = APIRouter(prefix="/api/session")


def _session_payload(principal: SessionPrincipal) -> dict:
    return {
        "ok": True,
        "user": {
            "email": principal.email,
            "role": principal.role,
            "is_admin": principal.is_admin,
        },
        "role_choices": list(ROLE_CHOICES),
        "role_override_enabled": role_override_enabled(get_config()),
    }


@router.get("")
def session_info(request: Request):
    return _session_payload(get_session_principal(request))


@router.post("/role")
async def session_set_role(request: Request):
    content_type = str(request.headers.get("content-type", "")).lower()
    if content_type.startswith("application/json"):
        body = await request.json()
        role = body.get("role") if isinstance(body, dict) else None
    else:
        form = await request.form()
        role = form.get("role")
    principal = set_role_override(request, str(role or ""))
    return _session_payload(principal)

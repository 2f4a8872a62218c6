from __future__ import annotations

import logging

from fastapi import Request

from vendor_request_app.core.defaults import DEFAULT_UNKNOWN_USER
from vendor_request_app.core.env import VREQ_TEST_USER, get_env
from vendor_request_app.core.models import ROLE_CHOICES
from vendor_request_app.core.principal import SessionPrincipal, normalize_role
from vendor_request_app.web.core.runtime import (
    get_config,
    get_repo,
    role_override_enabled,
    trust_forwarded_identity_headers,
)

ROLE_OVERRIDE_SESSION_KEY = "vreq_role_override"
FORWARDED_IDENTITY_HEADERS = (
    "x-forwarded-email",
    "x-forwarded-preferred-username",
    "x-forwarded-user",
)
ADMIN_ONLY_MESSAGE = "Access restricted: Admins only"
SUBMITTER_ONLY_MESSAGE = "Admins are not allowed to access this page."

LOGGER = logging.getLogger(__name__)


def sanitize_header_identity_value(value: str | None) -> str:
    text = str(value or "").strip()
    if not text or len(text) > 320:
        return ""
    if any(ch in text for ch in ("\r", "\n", "\t", "\x00")):
        return ""
    return text


def _forwarded_email(request: Request) -> str:
    for name in FORWARDED_IDENTITY_HEADERS:
        value = sanitize_header_identity_value(request.headers.get(name))
        if value:
            return value
    return ""


def resolve_principal_email(request: Request) -> str:
    config = get_config()
    if config.use_local_db and config.is_dev_env:
        forced_user = sanitize_header_identity_value(request.query_params.get("as_user"))
        if forced_user:
            return forced_user
        test_user = get_env(VREQ_TEST_USER)
        if test_user:
            return test_user
    if trust_forwarded_identity_headers():
        forwarded = _forwarded_email(request)
        if forwarded:
            return forwarded
    return DEFAULT_UNKNOWN_USER


def _session(request: Request) -> dict | None:
    session = request.scope.get("session")
    return session if isinstance(session, dict) else None


def _session_role_override(request: Request) -> str | None:
    session = _session(request)
    if session is None:
        return None
    if not role_override_enabled(get_config()):
        session.pop(ROLE_OVERRIDE_SESSION_KEY, None)
        return None
    override = str(session.get(ROLE_OVERRIDE_SESSION_KEY, "") or "").strip().lower()
    if override not in ROLE_CHOICES:
        session.pop(ROLE_OVERRIDE_SESSION_KEY, None)
        return None
    return override


def get_session_principal(request: Request) -> SessionPrincipal:
    cached = getattr(request.state, "principal", None)
    if cached is not None:
        return cached

    email = resolve_principal_email(request)
    role = _session_role_override(request)
    if role is None:
        role = get_repo().get_user_role(email)
    principal = SessionPrincipal(email=email, role=normalize_role(role))
    request.state.principal = principal
    return principal


def set_role_override(request: Request, role: str) -> SessionPrincipal:
    if not role_override_enabled(get_config()):
        raise PermissionError("Role switching is disabled in this environment.")
    requested = str(role or "").strip().lower()
    if requested not in ROLE_CHOICES:
        raise ValueError(f"role must be one of: {', '.join(ROLE_CHOICES)}.")
    session = _session(request)
    if session is None:
        raise RuntimeError("Session middleware is not installed.")
    session[ROLE_OVERRIDE_SESSION_KEY] = requested
    principal = SessionPrincipal(email=resolve_principal_email(request), role=requested)
    request.state.principal = principal
    LOGGER.info(
        "Role override set. user=%s role=%s",
        principal.email,
        requested,
        extra={"event": "role_override_set", "user_email": principal.email, "role": requested},
    )
    return principal


def require_admin(principal: SessionPrincipal) -> None:
    if not principal.is_admin:
        raise PermissionError(ADMIN_ONLY_MESSAGE)


def require_submitter(principal: SessionPrincipal) -> None:
    if principal.is_admin:
        raise PermissionError(SUBMITTER_ONLY_MESSAGE)

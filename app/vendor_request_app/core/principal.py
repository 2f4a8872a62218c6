from __future__ import annotations

from dataclasses import dataclass

from vendor_request_app.core.models import ROLE_ADMIN, ROLE_CHOICES, ROLE_USER


def normalize_role(value: str | None) -> str:
    role = str(value or "").strip().lower()
    return role if role in ROLE_CHOICES else ROLE_USER


@dataclass(frozen=True)
class SessionPrincipal:
    """Identity attached to a session.

    The email scopes ownership of submitted requests; the role only decides
    which views are offered. Neither is an authenticated security principal.
    """

    email: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

from __future__ import annotations

from typing import Optional, Protocol

from flask import has_request_context, session

from ..core.enums import Role
from .model import CurrentUser


class AuthProvider(Protocol):
    """Supplies the current user identity and role, or None when signed out."""

    def current_user(self) -> Optional[CurrentUser]:
        raise NotImplementedError


class SessionAuthProvider(AuthProvider):
    """Reads the identity an upstream login flow stored in the Flask session.

    Expected keys: user_id, name, role. An unknown role is treated as member.
    """

    def current_user(self) -> Optional[CurrentUser]:
        if not has_request_context() or "user_id" not in session:
            return None

        raw_role = str(session.get("role") or Role.MEMBER.value)
        try:
            role = Role(raw_role)
        except ValueError:
            role = Role.MEMBER

        return CurrentUser(
            user_id=str(session["user_id"]),
            name=str(session.get("name") or ""),
            role=role,
        )

from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import Role


@dataclass(frozen=True)
class CurrentUser:
    """Domain entity: the signed-in user as supplied by the auth layer.

    Note: identity only; credentials live with the external AuthProvider.
    """

    user_id: str
    name: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

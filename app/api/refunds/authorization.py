from __future__ import annotations

import uuid

from app.api.refunds.ports import RoleDirectoryPort
from app.core.common.constants import ADMIN_ROLES, Roles
from app.core.exceptions import Forbidden
from app.core.middlewares import logger


def ensure_admin(role: Roles | str | None) -> None:
    """Admin-only operations accept ``admin`` and ``owner``; anything else is ``Forbidden``."""
    try:
        resolved = Roles(role) if role is not None else None
    except ValueError:
        resolved = None
    if resolved not in ADMIN_ROLES:
        logger.warning(f"Admin refund operation denied for role={role}")
        raise Forbidden()


class AuthorizationGate:
    """Resolves the caller's role through the role-lookup collaborator."""

    def __init__(self, roles: RoleDirectoryPort):
        self.roles = roles

    async def role_for(self, user_id: uuid.UUID) -> Roles:
        return await self.roles.get_role(user_id)

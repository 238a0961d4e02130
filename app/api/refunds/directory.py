from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession
from sqlmodel import select

from app.api.refunds.models import Profile, UserRole
from app.api.refunds.ports import UserIdentity
from app.core.common.constants import Roles
from app.core.middlewares import logger


class SqlRoleDirectory:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get_role(self, user_id: uuid.UUID) -> Roles:
        async with self.session_maker() as session:
            role = (
                await session.execute(select(UserRole.role).where(UserRole.user_id == user_id))
            ).scalar_one_or_none()

        if role is None:
            return Roles.USER
        try:
            return Roles(role)
        except ValueError:
            logger.warning(f"Unknown role {role!r} for user={user_id}, treating as user")
            return Roles.USER


class SqlProfileDirectory:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get_identities(self, user_ids: list[uuid.UUID]) -> dict[uuid.UUID, UserIdentity]:
        if not user_ids:
            return {}
        async with self.session_maker() as session:
            profiles = (
                await session.execute(select(Profile).where(Profile.user_id.in_(set(user_ids))))
            ).scalars().all()
        return {
            profile.user_id: UserIdentity(display_name=profile.display_name, email=profile.email)
            for profile in profiles
        }

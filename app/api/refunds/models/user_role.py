from __future__ import annotations

import uuid

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel


class UserRole(SQLModel, table=True):
    __tablename__ = "user_roles"

    user_id: uuid.UUID = Field(primary_key=True, nullable=False)
    role: str = Field(
        default="user", sa_column=Column(String(20), nullable=False, server_default="user")
    )

from __future__ import annotations

import uuid

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"

    user_id: uuid.UUID = Field(primary_key=True, nullable=False)
    display_name: str | None = Field(default=None, sa_column=Column(String(100)))
    email: str | None = Field(default=None, sa_column=Column(String(255)))

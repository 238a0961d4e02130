from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func
from sqlmodel import Field, SQLModel


class Subscription(SQLModel, table=True):
    """Billing store row; the refund workflow only ever cancels it."""

    __tablename__ = "subscriptions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, nullable=False)
    user_id: uuid.UUID = Field(nullable=False, unique=True)
    plan: str | None = Field(default=None, sa_column=Column(String(30)))
    status: str = Field(
        default="active", sa_column=Column(String(20), nullable=False, server_default="active")
    )
    canceled_at: datetime | None = Field(default=None, sa_column=Column(DateTime))
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(
            DateTime,
            nullable=False,
            server_default=func.now(),
            onupdate=func.now(),
        ),
    )

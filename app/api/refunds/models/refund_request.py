from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, Numeric, String, Text
from sqlalchemy.sql import func
from sqlmodel import Field, SQLModel


class RefundStatus(str, Enum):
    PENDING = "pending"
    AUTO_REFUNDED = "auto_refunded"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def refund_executed(self) -> bool:
        return self in (RefundStatus.AUTO_REFUNDED, RefundStatus.APPROVED)


class RefundRequest(SQLModel, table=True):
    __tablename__ = "refund_requests"
    __table_args__ = (
        Index("idx_refund_requests_user_id", "user_id"),
        Index("idx_refund_requests_status", "status"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, nullable=False)
    user_id: uuid.UUID = Field(nullable=False)

    # idempotency key, one request per gateway payment
    payment_reference: str = Field(
        sa_column=Column("payment_reference", String(100), unique=True, nullable=False)
    )

    amount: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))
    currency: str = Field(
        default="INR", sa_column=Column(String(10), nullable=False)
    )
    reason: str | None = Field(default=None, sa_column=Column(Text))

    status: str = Field(sa_column=Column(String(20), nullable=False))
    is_within_period: bool = Field(
        sa_column=Column(Boolean, nullable=False)
    )

    payment_date: datetime = Field(sa_column=Column(DateTime, nullable=False))
    request_date: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime, nullable=False, server_default=func.now()),
    )

    processed_at: datetime | None = Field(default=None, sa_column=Column(DateTime))
    processed_by: uuid.UUID | None = Field(default=None)
    admin_notes: str | None = Field(default=None, sa_column=Column(Text))
    gateway_refund_id: str | None = Field(default=None, sa_column=Column(String(100)))

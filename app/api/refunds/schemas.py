from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class RefundRequestCreate(BaseModel):
    payment_reference: Annotated[str, Field(alias="paymentReference", min_length=1, max_length=100)]
    reason: Annotated[str | None, Field(max_length=2000)] = None

    model_config = {"populate_by_name": True}

    @field_validator("payment_reference")
    @classmethod
    def strip_reference(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("paymentReference must not be blank")
        return value


class CompensationWarningItem(BaseModel):
    step: str
    detail: str


class RefundRequestResult(BaseModel):
    success: bool
    auto_refunded: Annotated[bool, Field(alias="autoRefunded")]
    message: str
    request_id: Annotated[UUID, Field(alias="requestId")]
    status: str
    warnings: list[CompensationWarningItem] = []

    model_config = {"populate_by_name": True}


class RefundRequestItem(BaseModel):
    id: UUID
    user_id: Annotated[UUID, Field(alias="userId")]
    payment_reference: Annotated[str, Field(alias="paymentReference")]
    amount: Decimal
    currency: str
    reason: str | None = None
    status: str
    payment_date: Annotated[datetime, Field(alias="paymentDate")]
    request_date: Annotated[datetime, Field(alias="requestDate")]
    is_within_period: Annotated[bool, Field(alias="isWithinPeriod")]
    processed_at: Annotated[datetime | None, Field(alias="processedAt")] = None
    processed_by: Annotated[UUID | None, Field(alias="processedBy")] = None
    admin_notes: Annotated[str | None, Field(alias="adminNotes")] = None

    model_config = {"populate_by_name": True}


class AdminRefundRequestItem(RefundRequestItem):
    display_name: Annotated[str | None, Field(alias="displayName")] = None
    user_email: Annotated[str, Field(alias="userEmail")]


class ResolveRequestBody(BaseModel):
    approve: bool
    admin_notes: Annotated[str | None, Field(alias="adminNotes", max_length=2000)] = None

    model_config = {"populate_by_name": True}


class ResolveRequestResult(BaseModel):
    request_id: Annotated[UUID, Field(alias="requestId")]
    status: str
    warnings: list[CompensationWarningItem] = []

    model_config = {"populate_by_name": True}


class RefundablePaymentItem(BaseModel):
    id: str
    amount: Decimal
    currency: str
    payment_date: Annotated[datetime, Field(alias="paymentDate")]
    days_since_payment: Annotated[int, Field(alias="daysSincePayment")]
    is_within_period: Annotated[bool, Field(alias="isWithinPeriod")]
    refund_status: Annotated[str | None, Field(alias="refundStatus")] = None
    description: str

    model_config = {"populate_by_name": True}


class QueueStatsResponse(BaseModel):
    pending: int
    refunded: int
    rejected: int
    refunded_totals: Annotated[dict[str, Decimal], Field(alias="refundedTotals")]

    model_config = {"populate_by_name": True}

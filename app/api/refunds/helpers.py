from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from app.api.refunds.models import RefundRequest
from app.api.refunds.schemas import (
    AdminRefundRequestItem,
    CompensationWarningItem,
    RefundRequestItem,
)


def money(value: Decimal | str | int | float | None) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"))


def amount_from_minor_units(value: int | str | None) -> Decimal:
    # gateways report amounts in paise / cents
    return money(Decimal(str(value or 0)) / Decimal(100))


def format_amount(amount: Decimal, currency: str) -> str:
    """German notation, e.g. ``1.234,50 €`` or ``99,00 ₹``."""
    quantized = money(amount)
    whole, _, cents = f"{quantized:,.2f}".partition(".")
    text = f"{whole.replace(',', '.')},{cents}"
    symbol = {"EUR": "€", "USD": "$", "GBP": "£", "INR": "₹"}.get(currency.upper(), currency.upper())
    return f"{text} {symbol}"


def to_request_item(record: RefundRequest) -> RefundRequestItem:
    return RefundRequestItem(
        id=record.id,
        userId=record.user_id,
        paymentReference=record.payment_reference,
        amount=money(record.amount),
        currency=record.currency,
        reason=record.reason,
        status=record.status,
        paymentDate=record.payment_date,
        requestDate=record.request_date,
        isWithinPeriod=record.is_within_period,
        processedAt=record.processed_at,
        processedBy=record.processed_by,
        adminNotes=record.admin_notes,
    )


def to_admin_request_item(
    record: RefundRequest, display_name: str | None, email: str
) -> AdminRefundRequestItem:
    return AdminRefundRequestItem(
        **to_request_item(record).model_dump(by_alias=True),
        displayName=display_name,
        userEmail=email,
    )


def to_warning_items(warnings: Iterable) -> list[CompensationWarningItem]:
    return [CompensationWarningItem(step=w.step, detail=w.detail) for w in warnings]

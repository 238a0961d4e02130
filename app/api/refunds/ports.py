"""
Collaborator protocols the refund workflow depends on.

The workflow only talks to these; adapters live in ``gateway.py``,
``ledger.py``, ``notifications.py`` and ``directory.py`` and tests swap in
fakes.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Protocol, runtime_checkable
import uuid

from app.core.common.constants import Roles


@dataclass(frozen=True)
class GatewayPayment:
    """Gateway-owned payment record, as seen at lookup time."""

    reference: str
    amount: Decimal
    currency: str
    created_at: datetime
    customer_id: str | None
    status: str
    description: str | None = None


@dataclass(frozen=True)
class RefundConfirmation:
    refund_id: str
    status: str


class NotificationKind(str, Enum):
    AUTO_REFUNDED = "auto_refunded"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class UserIdentity:
    display_name: str | None
    email: str | None


@runtime_checkable
class PaymentGatewayPort(Protocol):
    async def get_payment(self, reference: str) -> GatewayPayment | None: ...

    async def verify_ownership(self, payment: GatewayPayment, user_id: uuid.UUID) -> bool: ...

    async def refund(self, reference: str) -> RefundConfirmation:
        """Execute a full refund. Raises ``GatewayError`` on any failure."""
        ...

    async def list_payments(self, user_id: uuid.UUID) -> list[GatewayPayment]: ...


@runtime_checkable
class SubscriptionLedgerPort(Protocol):
    async def cancel_subscription(self, user_id: uuid.UUID) -> None: ...


@runtime_checkable
class NotificationPort(Protocol):
    async def notify(
        self,
        user_id: uuid.UUID,
        kind: NotificationKind,
        amount: Decimal,
        currency: str,
        notes: str | None = None,
    ) -> None: ...


@runtime_checkable
class RoleDirectoryPort(Protocol):
    async def get_role(self, user_id: uuid.UUID) -> Roles: ...


@runtime_checkable
class ProfileDirectoryPort(Protocol):
    async def get_identities(self, user_ids: list[uuid.UUID]) -> dict[uuid.UUID, UserIdentity]: ...

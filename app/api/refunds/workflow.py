"""
Refund / statutory-withdrawal workflow.

State machine per payment reference::

    (no request) -> pending -> approved | rejected
    (no request) -> auto_refunded

Within one operation the order is always verify -> classify ->
mutate gateway -> persist -> compensate -> notify. The duplicate check and
the "still pending" check run before any gateway mutation, so a retried or
concurrent call never refunds one payment twice.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable
import uuid

from app.api.refunds.authorization import ensure_admin
from app.api.refunds.eligibility import evaluate, to_utc_naive, utcnow
from app.api.refunds.models import RefundRequest, RefundStatus
from app.api.refunds.ports import (
    GatewayPayment,
    NotificationKind,
    NotificationPort,
    PaymentGatewayPort,
    ProfileDirectoryPort,
    RefundConfirmation,
    SubscriptionLedgerPort,
)
from app.api.refunds.store import QueueStats, RefundRequestStore
from app.core.common.constants import Roles
from app.core.config import Config
from app.core.exceptions import (
    AlreadyResolved,
    DuplicateRequest,
    GatewayError,
    NotAuthorized,
    PaymentNotFound,
    RefundRequestNotFound,
    ValidationException,
)
from app.core.messages import ErrorMessage, RefundMessage
from app.core.middlewares import logger

UNKNOWN_EMAIL = "Unbekannt"
DEFAULT_PAYMENT_DESCRIPTION = "Premium Zugang"


@dataclass(frozen=True)
class CompensationWarning:
    """A post-refund side effect that failed and needs manual reconciliation."""

    step: str
    request_id: uuid.UUID
    user_id: uuid.UUID
    detail: str


@dataclass
class RefundOutcome:
    success: bool
    auto_refunded: bool
    message: str
    request: RefundRequest
    warnings: list[CompensationWarning] = field(default_factory=list)


@dataclass
class ResolveOutcome:
    request: RefundRequest
    warnings: list[CompensationWarning] = field(default_factory=list)


@dataclass(frozen=True)
class AnnotatedRequest:
    request: RefundRequest
    display_name: str | None
    email: str


@dataclass(frozen=True)
class RefundablePayment:
    reference: str
    amount: Decimal
    currency: str
    payment_date: datetime
    days_since_payment: int
    is_within_period: bool
    refund_status: str | None
    description: str


class RefundWorkflow:
    def __init__(
        self,
        store: RefundRequestStore,
        gateway: PaymentGatewayPort,
        ledger: SubscriptionLedgerPort,
        notifier: NotificationPort,
        profiles: ProfileDirectoryPort,
        period_days: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.gateway = gateway
        self.ledger = ledger
        self.notifier = notifier
        self.profiles = profiles
        self.period_days = period_days if period_days is not None else Config.REFUND_PERIOD_DAYS
        self.clock = clock

    # ---------- End-user operations ----------

    async def request_refund(
        self,
        user_id: uuid.UUID,
        payment_reference: str,
        reason: str | None = None,
    ) -> RefundOutcome:
        payment = await self.gateway.get_payment(payment_reference)
        if payment is None:
            raise PaymentNotFound()

        if not await self.gateway.verify_ownership(payment, user_id):
            logger.warning(
                f"refund.not_authorized user={user_id} payment={payment_reference} owner={payment.customer_id}"
            )
            raise NotAuthorized()

        existing = await self.store.get_by_payment_reference(payment_reference)
        if existing:
            raise DuplicateRequest(existing.status)

        now = self.clock()
        eligibility = evaluate(payment.created_at, now, self.period_days)
        logger.info(
            f"Refund request check payment={payment_reference} "
            f"days_elapsed={eligibility.days_elapsed} within_period={eligibility.within_period}"
        )

        record = self._new_request(user_id, payment, reason, now, eligibility.within_period)

        if not eligibility.within_period:
            record.status = RefundStatus.PENDING.value
            await self.store.add(record)
            await self.store.commit()
            warnings = await self._notify(record, NotificationKind.PENDING)
            return RefundOutcome(
                success=True,
                auto_refunded=False,
                message=RefundMessage.SUBMITTED_FOR_REVIEW,
                request=record,
                warnings=warnings,
            )

        record.status = RefundStatus.AUTO_REFUNDED.value
        record.processed_at = to_utc_naive(now)
        # Flushing first claims the payment reference in the unique index, a
        # concurrent request for the same payment cannot reach the gateway.
        await self.store.add(record)
        confirmation = await self._refund_or_rollback(payment_reference)
        record.gateway_refund_id = confirmation.refund_id
        await self._commit_after_refund(record, confirmation)
        logger.info(f"Auto-refund processed refund={confirmation.refund_id} request={record.id}")

        warnings = await self._cancel_subscription(record)
        warnings += await self._notify(record, NotificationKind.AUTO_REFUNDED)
        return RefundOutcome(
            success=True,
            auto_refunded=True,
            message=RefundMessage.AUTO_REFUNDED,
            request=record,
            warnings=warnings,
        )

    async def list_own_requests(self, user_id: uuid.UUID) -> list[RefundRequest]:
        return await self.store.list_for_user(user_id)

    async def list_refundable_payments(self, user_id: uuid.UUID) -> list[RefundablePayment]:
        payments = await self.gateway.list_payments(user_id)
        statuses = await self.store.statuses_by_reference(user_id)
        now = self.clock()

        refundable = []
        for payment in sorted(payments, key=lambda p: p.created_at, reverse=True):
            eligibility = evaluate(payment.created_at, now, self.period_days)
            refundable.append(
                RefundablePayment(
                    reference=payment.reference,
                    amount=payment.amount,
                    currency=payment.currency,
                    payment_date=payment.created_at,
                    days_since_payment=eligibility.days_elapsed,
                    is_within_period=eligibility.within_period,
                    refund_status=statuses.get(payment.reference),
                    description=payment.description or DEFAULT_PAYMENT_DESCRIPTION,
                )
            )
        return refundable

    # ---------- Admin operations ----------

    async def list_requests(self, caller_role: Roles | str) -> list[AnnotatedRequest]:
        ensure_admin(caller_role)

        records = await self.store.list_all()
        identities = await self.profiles.get_identities(list({r.user_id for r in records}))
        annotated = []
        for record in records:
            identity = identities.get(record.user_id)
            annotated.append(
                AnnotatedRequest(
                    request=record,
                    display_name=identity.display_name if identity else None,
                    email=(identity.email if identity and identity.email else UNKNOWN_EMAIL),
                )
            )
        return annotated

    async def queue_stats(self, caller_role: Roles | str) -> QueueStats:
        ensure_admin(caller_role)
        return await self.store.stats()

    async def resolve_request(
        self,
        caller_id: uuid.UUID,
        caller_role: Roles | str,
        request_id: uuid.UUID,
        approve: bool,
        admin_notes: str | None = None,
    ) -> ResolveOutcome:
        ensure_admin(caller_role)

        record = await self.store.get_for_update(request_id)
        if record is None:
            await self.store.rollback()
            raise RefundRequestNotFound()
        current_status = record.status
        if current_status != RefundStatus.PENDING.value:
            await self.store.rollback()
            raise AlreadyResolved(current_status)

        notes = (admin_notes or "").strip() or None
        now = to_utc_naive(self.clock())

        if not approve:
            if not notes:
                await self.store.rollback()
                raise ValidationException(ErrorMessage.REJECTION_NOTES_REQUIRED)

            await self.store.mark_resolved(record, RefundStatus.REJECTED, now, caller_id, notes)
            await self.store.commit()
            logger.info(f"Admin rejected refund request={record.id} by={caller_id}")
            warnings = await self._notify(record, NotificationKind.REJECTED, notes)
            return ResolveOutcome(request=record, warnings=warnings)

        confirmation = await self._refund_or_rollback(record.payment_reference)
        await self.store.mark_resolved(
            record,
            RefundStatus.APPROVED,
            now,
            caller_id,
            notes,
            gateway_refund_id=confirmation.refund_id,
        )
        await self._commit_after_refund(record, confirmation)
        logger.info(
            f"Admin approved refund refund={confirmation.refund_id} request={record.id} by={caller_id}"
        )

        warnings = await self._cancel_subscription(record)
        warnings += await self._notify(record, NotificationKind.APPROVED, notes)
        return ResolveOutcome(request=record, warnings=warnings)

    # ---------- Internals ----------

    def _new_request(
        self,
        user_id: uuid.UUID,
        payment: GatewayPayment,
        reason: str | None,
        now: datetime,
        within_period: bool,
    ) -> RefundRequest:
        return RefundRequest(
            user_id=user_id,
            payment_reference=payment.reference,
            amount=payment.amount,
            currency=payment.currency,
            reason=(reason or "").strip() or None,
            status=RefundStatus.PENDING.value,
            payment_date=to_utc_naive(payment.created_at),
            request_date=to_utc_naive(now),
            is_within_period=within_period,
        )

    async def _refund_or_rollback(self, payment_reference: str) -> RefundConfirmation:
        try:
            return await self.gateway.refund(payment_reference)
        except GatewayError:
            await self.store.rollback()
            raise
        except Exception as exc:
            await self.store.rollback()
            logger.error(f"Gateway refund failed for payment={payment_reference}: {exc}")
            raise GatewayError() from exc

    async def _commit_after_refund(
        self, record: RefundRequest, confirmation: RefundConfirmation
    ) -> None:
        try:
            await self.store.commit()
        except Exception:
            # money already moved; the gateway refund id is the reconciliation handle
            logger.critical(
                f"refund.persist_failed payment={record.payment_reference} "
                f"gateway_refund={confirmation.refund_id} status={record.status}"
            )
            raise

    def _warn(self, step: str, record: RefundRequest, exc: Exception) -> CompensationWarning:
        warning = CompensationWarning(
            step=step,
            request_id=record.id,
            user_id=record.user_id,
            detail=str(exc) or exc.__class__.__name__,
        )
        logger.warning(
            f"refund.compensation_failed step={step} request={record.id} "
            f"user={record.user_id}: {warning.detail}"
        )
        return warning

    async def _cancel_subscription(self, record: RefundRequest) -> list[CompensationWarning]:
        try:
            await self.ledger.cancel_subscription(record.user_id)
        except Exception as exc:
            return [self._warn("cancel_subscription", record, exc)]
        return []

    async def _notify(
        self,
        record: RefundRequest,
        kind: NotificationKind,
        notes: str | None = None,
    ) -> list[CompensationWarning]:
        try:
            await self.notifier.notify(record.user_id, kind, record.amount, record.currency, notes)
        except Exception as exc:
            return [self._warn("notify", record, exc)]
        return []

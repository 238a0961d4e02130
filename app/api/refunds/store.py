from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, select

from app.api.refunds.helpers import money
from app.api.refunds.models import RefundRequest, RefundStatus
from app.core.exceptions import AlreadyResolved, DuplicateRequest
from app.core.middlewares import logger


@dataclass
class QueueStats:
    pending: int = 0
    refunded: int = 0
    rejected: int = 0
    refunded_totals: dict[str, Decimal] = field(default_factory=dict)


class RefundRequestStore:
    """Persistence boundary for ``refund_requests``.

    Bound to one session; each workflow operation runs in that session's
    transaction and ends it with :meth:`commit` or :meth:`rollback`.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, request_id: uuid.UUID) -> RefundRequest | None:
        stmt = select(RefundRequest).where(RefundRequest.id == request_id)
        return (await self.session.execute(stmt)).scalars().first()

    async def get_for_update(self, request_id: uuid.UUID) -> RefundRequest | None:
        # Row-level lock, a concurrent resolver waits here and then sees the terminal status
        stmt = (
            select(RefundRequest)
            .where(RefundRequest.id == request_id)
            .with_for_update()
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def get_by_payment_reference(self, payment_reference: str) -> RefundRequest | None:
        stmt = select(RefundRequest).where(
            RefundRequest.payment_reference == payment_reference
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def add(self, record: RefundRequest) -> RefundRequest:
        """Insert ``record`` inside the open transaction.

        The unique constraint on ``payment_reference`` decides races: the
        loser gets ``DuplicateRequest`` carrying the winner's status.
        """
        payment_reference = record.payment_reference
        self.session.add(record)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            existing = await self.get_by_payment_reference(payment_reference)
            current_status = existing.status if existing else RefundStatus.PENDING.value
            logger.warning(
                f"Refund request insert lost race for payment={payment_reference}, status={current_status}"
            )
            raise DuplicateRequest(current_status) from exc
        return record

    async def mark_resolved(
        self,
        record: RefundRequest,
        status: RefundStatus,
        processed_at: datetime,
        processed_by: uuid.UUID,
        admin_notes: str | None,
        gateway_refund_id: str | None = None,
    ) -> RefundRequest:
        if record.status != RefundStatus.PENDING.value:
            raise AlreadyResolved(record.status)
        if status not in (RefundStatus.APPROVED, RefundStatus.REJECTED):
            raise ValueError(f"{status.value} is not an admin resolution")

        record.status = status.value
        record.processed_at = processed_at
        record.processed_by = processed_by
        record.admin_notes = admin_notes
        if gateway_refund_id:
            record.gateway_refund_id = gateway_refund_id
        self.session.add(record)
        await self.session.flush()
        return record

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def list_all(self) -> list[RefundRequest]:
        stmt = select(RefundRequest).order_by(RefundRequest.request_date.desc())
        return list((await self.session.execute(stmt)).scalars().all())

    async def list_for_user(self, user_id: uuid.UUID) -> list[RefundRequest]:
        stmt = (
            select(RefundRequest)
            .where(RefundRequest.user_id == user_id)
            .order_by(RefundRequest.request_date.desc())
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def statuses_by_reference(self, user_id: uuid.UUID) -> dict[str, str]:
        stmt = select(RefundRequest.payment_reference, RefundRequest.status).where(
            RefundRequest.user_id == user_id
        )
        rows = (await self.session.execute(stmt)).all()
        return {reference: status for reference, status in rows}

    async def stats(self) -> QueueStats:
        stmt = (
            select(
                RefundRequest.status,
                RefundRequest.currency,
                func.count(RefundRequest.id),
                func.sum(RefundRequest.amount),
            )
            .group_by(RefundRequest.status, RefundRequest.currency)
        )
        stats = QueueStats()
        for status, currency, count, total in (await self.session.execute(stmt)).all():
            if status == RefundStatus.PENDING.value:
                stats.pending += count
            elif status == RefundStatus.REJECTED.value:
                stats.rejected += count
            elif RefundStatus(status).refund_executed:
                stats.refunded += count
                stats.refunded_totals[currency] = (
                    stats.refunded_totals.get(currency, Decimal("0.00")) + money(total)
                ).quantize(Decimal("0.01"))
        return stats

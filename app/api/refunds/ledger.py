from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession
from sqlalchemy import update

from app.api.refunds.eligibility import to_utc_naive, utcnow
from app.api.refunds.models import Subscription


class SqlSubscriptionLedger:
    """Cancels entitlements in the ``subscriptions`` table.

    Uses its own session so a failed cancellation never touches the
    refund request transaction.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def cancel_subscription(self, user_id: uuid.UUID) -> None:
        async with self.session_maker() as session:
            await session.execute(
                update(Subscription)
                .where(Subscription.user_id == user_id)
                .values(status="canceled", canceled_at=to_utc_naive(utcnow()))
            )
            await session.commit()

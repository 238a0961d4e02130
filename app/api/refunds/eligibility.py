from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class Eligibility:
    days_elapsed: int
    within_period: bool


def to_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_naive(value: datetime) -> datetime:
    return to_utc(value).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def evaluate(payment_date: datetime, now: datetime, period_days: int) -> Eligibility:
    """Classify a payment against the withdrawal window.

    Days are counted between UTC calendar dates, so the result does not
    depend on the caller's time zone. The boundary is inclusive: a payment
    exactly ``period_days`` days old is still within the period.
    """
    days_elapsed = (to_utc(now).date() - to_utc(payment_date).date()).days
    days_elapsed = max(days_elapsed, 0)
    return Eligibility(
        days_elapsed=days_elapsed,
        within_period=days_elapsed <= period_days,
    )

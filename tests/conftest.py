import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import uuid

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_AUTO_CREATE"] = "false"
os.environ["NOTIFICATIONS_ENABLED"] = "false"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.api.refunds.models  # noqa: F401
from app.api.refunds.ports import GatewayPayment, RefundConfirmation, UserIdentity
from app.api.refunds.store import RefundRequestStore
from app.api.refunds.workflow import RefundWorkflow
from app.core.common.constants import Roles
from app.core.exceptions import GatewayError


NOW = datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)
PERIOD_DAYS = 14


class FakeGateway:
    def __init__(self):
        self.payments: dict[str, GatewayPayment] = {}
        self.refund_calls: list[str] = []
        self.fail_refund = False

    def add_payment(
        self,
        reference: str,
        owner: uuid.UUID,
        created_at: datetime,
        amount: str = "9.99",
        currency: str = "EUR",
        description: str | None = None,
    ) -> GatewayPayment:
        payment = GatewayPayment(
            reference=reference,
            amount=Decimal(amount),
            currency=currency,
            created_at=created_at,
            customer_id=str(owner),
            status="captured",
            description=description,
        )
        self.payments[reference] = payment
        return payment

    async def get_payment(self, reference):
        return self.payments.get(reference)

    async def verify_ownership(self, payment, user_id):
        return payment.customer_id == str(user_id)

    async def refund(self, reference):
        self.refund_calls.append(reference)
        if self.fail_refund:
            raise GatewayError()
        return RefundConfirmation(refund_id=f"rfnd_{len(self.refund_calls)}", status="processed")

    async def list_payments(self, user_id):
        return [p for p in self.payments.values() if p.customer_id == str(user_id)]


class FakeLedger:
    def __init__(self):
        self.canceled: list[uuid.UUID] = []
        self.fail = False

    async def cancel_subscription(self, user_id):
        if self.fail:
            raise RuntimeError("subscriptions table unavailable")
        self.canceled.append(user_id)


class FakeNotifier:
    def __init__(self):
        self.sent: list[tuple] = []
        self.fail = False

    async def notify(self, user_id, kind, amount, currency, notes=None):
        if self.fail:
            raise RuntimeError("mail provider down")
        self.sent.append((user_id, kind, amount, currency, notes))


class FakeProfiles:
    def __init__(self):
        self.identities: dict[uuid.UUID, UserIdentity] = {}

    async def get_identities(self, user_ids):
        return {uid: self.identities[uid] for uid in user_ids if uid in self.identities}


class FakeRoles:
    def __init__(self):
        self.roles: dict[uuid.UUID, Roles] = {}

    async def get_role(self, user_id):
        return self.roles.get(user_id, Roles.USER)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def store(session):
    return RefundRequestStore(session)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def profiles():
    return FakeProfiles()


@pytest.fixture
def roles():
    return FakeRoles()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def admin_id():
    return uuid.uuid4()


@pytest.fixture
def workflow(store, gateway, ledger, notifier, profiles):
    return RefundWorkflow(
        store=store,
        gateway=gateway,
        ledger=ledger,
        notifier=notifier,
        profiles=profiles,
        period_days=PERIOD_DAYS,
        clock=lambda: NOW,
    )


def days_ago(days: int, base: datetime = NOW) -> datetime:
    return base - timedelta(days=days)

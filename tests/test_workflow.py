from datetime import datetime
from decimal import Decimal
import uuid

import pytest

from app.api.refunds.ports import NotificationKind, UserIdentity
from app.api.refunds.store import RefundRequestStore
from app.api.refunds.workflow import RefundWorkflow, UNKNOWN_EMAIL
from app.core.common.constants import Roles
from app.core.exceptions import (
    AlreadyResolved,
    DuplicateRequest,
    Forbidden,
    GatewayError,
    NotAuthorized,
    PaymentNotFound,
    RefundRequestNotFound,
    ValidationException,
)
from app.core.messages import RefundMessage

from tests.conftest import NOW, PERIOD_DAYS, days_ago


async def submit_pending(workflow, gateway, user_id, reference="pay_old"):
    gateway.add_payment(reference, user_id, days_ago(20))
    outcome = await workflow.request_refund(user_id, reference)
    return outcome.request.id


# ---------- request_refund ----------

async def test_recent_payment_is_refunded_automatically(workflow, gateway, ledger, notifier, user_id):
    gateway.add_payment("pay_recent", user_id, days_ago(3), amount="9.99")

    outcome = await workflow.request_refund(user_id, "pay_recent", "  changed my mind ")

    assert outcome.success is True
    assert outcome.auto_refunded is True
    assert outcome.message == RefundMessage.AUTO_REFUNDED
    assert outcome.warnings == []
    assert gateway.refund_calls == ["pay_recent"]
    assert ledger.canceled == [user_id]
    assert notifier.sent == [
        (user_id, NotificationKind.AUTO_REFUNDED, Decimal("9.99"), "EUR", None)
    ]

    record = await workflow.store.get_by_payment_reference("pay_recent")
    assert record.status == "auto_refunded"
    assert record.is_within_period is True
    assert record.reason == "changed my mind"
    assert record.processed_at == datetime(2025, 3, 20, 12, 0)
    assert record.processed_by is None
    assert record.gateway_refund_id == "rfnd_1"
    assert record.payment_date == datetime(2025, 3, 17, 12, 0)


async def test_payment_exactly_at_boundary_is_still_auto_refunded(workflow, gateway, user_id):
    gateway.add_payment("pay_edge", user_id, days_ago(PERIOD_DAYS))

    outcome = await workflow.request_refund(user_id, "pay_edge")

    assert outcome.auto_refunded is True


async def test_old_payment_goes_to_manual_review(workflow, gateway, ledger, notifier, user_id):
    gateway.add_payment("pay_old", user_id, days_ago(20), amount="19.99")

    outcome = await workflow.request_refund(user_id, "pay_old", "")

    assert outcome.success is True
    assert outcome.auto_refunded is False
    assert outcome.message == RefundMessage.SUBMITTED_FOR_REVIEW
    assert gateway.refund_calls == []
    assert ledger.canceled == []
    assert notifier.sent[0][1] is NotificationKind.PENDING

    record = await workflow.store.get_by_payment_reference("pay_old")
    assert record.status == "pending"
    assert record.is_within_period is False
    assert record.reason is None
    assert record.processed_at is None


async def test_unknown_payment_is_not_found(workflow, gateway, user_id):
    with pytest.raises(PaymentNotFound):
        await workflow.request_refund(user_id, "pay_missing")

    assert gateway.refund_calls == []


async def test_foreign_payment_is_rejected_before_any_side_effect(workflow, gateway, notifier, user_id):
    gateway.add_payment("pay_foreign", uuid.uuid4(), days_ago(2))

    with pytest.raises(NotAuthorized):
        await workflow.request_refund(user_id, "pay_foreign")

    assert gateway.refund_calls == []
    assert notifier.sent == []
    assert await workflow.store.get_by_payment_reference("pay_foreign") is None


async def test_repeated_request_is_a_duplicate_and_refunds_once(workflow, gateway, user_id):
    gateway.add_payment("pay_recent", user_id, days_ago(1))
    await workflow.request_refund(user_id, "pay_recent")

    with pytest.raises(DuplicateRequest) as exc_info:
        await workflow.request_refund(user_id, "pay_recent")

    assert exc_info.value.status == "auto_refunded"
    assert gateway.refund_calls == ["pay_recent"]


async def test_duplicate_of_pending_request_reports_pending(workflow, gateway, user_id):
    await submit_pending(workflow, gateway, user_id)

    with pytest.raises(DuplicateRequest) as exc_info:
        await workflow.request_refund(user_id, "pay_old")

    assert exc_info.value.status == "pending"


class RacingStore(RefundRequestStore):
    """Misses a concurrently committed row on the first lookup."""

    def __init__(self, session):
        super().__init__(session)
        self.missed = False

    async def get_by_payment_reference(self, payment_reference):
        if not self.missed:
            self.missed = True
            return None
        return await super().get_by_payment_reference(payment_reference)


async def test_concurrent_request_loses_on_insert_before_gateway(
    workflow, session, gateway, ledger, notifier, profiles, user_id
):
    gateway.add_payment("pay_recent", user_id, days_ago(1))
    await workflow.request_refund(user_id, "pay_recent")

    racing = RefundWorkflow(
        store=RacingStore(session),
        gateway=gateway,
        ledger=ledger,
        notifier=notifier,
        profiles=profiles,
        period_days=PERIOD_DAYS,
        clock=lambda: NOW,
    )
    with pytest.raises(DuplicateRequest) as exc_info:
        await racing.request_refund(user_id, "pay_recent")

    assert exc_info.value.status == "auto_refunded"
    assert gateway.refund_calls == ["pay_recent"]


async def test_gateway_failure_persists_nothing_and_can_be_retried(workflow, gateway, ledger, user_id):
    gateway.add_payment("pay_recent", user_id, days_ago(1))
    gateway.fail_refund = True

    with pytest.raises(GatewayError):
        await workflow.request_refund(user_id, "pay_recent")

    assert await workflow.store.get_by_payment_reference("pay_recent") is None
    assert ledger.canceled == []

    gateway.fail_refund = False
    outcome = await workflow.request_refund(user_id, "pay_recent")

    assert outcome.auto_refunded is True
    assert outcome.request.gateway_refund_id == "rfnd_2"


async def test_compensation_failures_become_warnings(workflow, gateway, ledger, notifier, user_id):
    gateway.add_payment("pay_recent", user_id, days_ago(1))
    ledger.fail = True
    notifier.fail = True

    outcome = await workflow.request_refund(user_id, "pay_recent")

    assert outcome.auto_refunded is True
    assert [w.step for w in outcome.warnings] == ["cancel_subscription", "notify"]
    assert outcome.warnings[0].user_id == user_id
    assert outcome.warnings[0].detail == "subscriptions table unavailable"

    record = await workflow.store.get_by_payment_reference("pay_recent")
    assert record.status == "auto_refunded"


# ---------- resolve_request ----------

async def test_admin_approval_refunds_and_cancels(
    workflow, gateway, ledger, notifier, user_id, admin_id
):
    request_id = await submit_pending(workflow, gateway, user_id)

    outcome = await workflow.resolve_request(admin_id, Roles.ADMIN, request_id, True, "  kulanz ")

    assert outcome.warnings == []
    assert gateway.refund_calls == ["pay_old"]
    assert ledger.canceled == [user_id]
    assert notifier.sent[-1] == (user_id, NotificationKind.APPROVED, Decimal("9.99"), "EUR", "kulanz")

    record = await workflow.store.get(request_id)
    assert record.status == "approved"
    assert record.processed_by == admin_id
    assert record.processed_at == datetime(2025, 3, 20, 12, 0)
    assert record.admin_notes == "kulanz"
    assert record.gateway_refund_id == "rfnd_1"


async def test_owner_role_may_resolve(workflow, gateway, user_id, admin_id):
    request_id = await submit_pending(workflow, gateway, user_id)

    outcome = await workflow.resolve_request(admin_id, "owner", request_id, True)

    assert outcome.request.status == "approved"


async def test_admin_rejection_records_notes_without_refund(
    workflow, gateway, ledger, notifier, user_id, admin_id
):
    request_id = await submit_pending(workflow, gateway, user_id)

    outcome = await workflow.resolve_request(
        admin_id, Roles.ADMIN, request_id, False, "Frist deutlich überschritten"
    )

    assert outcome.request.status == "rejected"
    assert gateway.refund_calls == []
    assert ledger.canceled == []
    assert notifier.sent[-1][1] is NotificationKind.REJECTED
    assert notifier.sent[-1][4] == "Frist deutlich überschritten"


@pytest.mark.parametrize("notes", [None, "", "   "])
async def test_rejection_requires_notes(workflow, gateway, user_id, admin_id, notes):
    request_id = await submit_pending(workflow, gateway, user_id)

    with pytest.raises(ValidationException):
        await workflow.resolve_request(admin_id, Roles.ADMIN, request_id, False, notes)

    record = await workflow.store.get(request_id)
    assert record.status == "pending"


async def test_regular_user_cannot_resolve(workflow, gateway, user_id):
    request_id = await submit_pending(workflow, gateway, user_id)

    with pytest.raises(Forbidden):
        await workflow.resolve_request(user_id, Roles.USER, request_id, True)

    assert gateway.refund_calls == []


async def test_unknown_role_is_forbidden(workflow):
    with pytest.raises(Forbidden):
        await workflow.queue_stats("superuser")


async def test_resolving_twice_fails_and_refunds_once(workflow, gateway, user_id, admin_id):
    request_id = await submit_pending(workflow, gateway, user_id)
    await workflow.resolve_request(admin_id, Roles.ADMIN, request_id, True)

    with pytest.raises(AlreadyResolved) as exc_info:
        await workflow.resolve_request(admin_id, Roles.ADMIN, request_id, False, "zu spät")

    assert exc_info.value.status == "approved"
    assert gateway.refund_calls == ["pay_old"]


async def test_auto_refunded_request_cannot_be_resolved(workflow, gateway, user_id, admin_id):
    gateway.add_payment("pay_recent", user_id, days_ago(1))
    outcome = await workflow.request_refund(user_id, "pay_recent")

    with pytest.raises(AlreadyResolved):
        await workflow.resolve_request(admin_id, Roles.ADMIN, outcome.request.id, True)


async def test_unknown_request_is_not_found(workflow, admin_id):
    with pytest.raises(RefundRequestNotFound):
        await workflow.resolve_request(admin_id, Roles.ADMIN, uuid.uuid4(), True)


async def test_gateway_failure_on_approval_leaves_request_pending(
    workflow, gateway, ledger, user_id, admin_id
):
    request_id = await submit_pending(workflow, gateway, user_id)
    gateway.fail_refund = True

    with pytest.raises(GatewayError):
        await workflow.resolve_request(admin_id, Roles.ADMIN, request_id, True)

    record = await workflow.store.get(request_id)
    assert record.status == "pending"
    assert record.processed_at is None
    assert ledger.canceled == []


async def test_approval_compensation_failure_is_reported(
    workflow, gateway, ledger, user_id, admin_id
):
    request_id = await submit_pending(workflow, gateway, user_id)
    ledger.fail = True

    outcome = await workflow.resolve_request(admin_id, Roles.ADMIN, request_id, True)

    assert outcome.request.status == "approved"
    assert [w.step for w in outcome.warnings] == ["cancel_subscription"]


# ---------- listings ----------

async def test_list_requests_annotates_identity(workflow, gateway, profiles, user_id):
    other = uuid.uuid4()
    profiles.identities[user_id] = UserIdentity(display_name="Mia", email="mia@example.com")
    await submit_pending(workflow, gateway, user_id, "pay_a")
    await submit_pending(workflow, gateway, other, "pay_b")

    annotated = await workflow.list_requests(Roles.ADMIN)

    by_ref = {a.request.payment_reference: a for a in annotated}
    assert by_ref["pay_a"].display_name == "Mia"
    assert by_ref["pay_a"].email == "mia@example.com"
    assert by_ref["pay_b"].display_name is None
    assert by_ref["pay_b"].email == UNKNOWN_EMAIL


async def test_list_requests_requires_admin(workflow):
    with pytest.raises(Forbidden):
        await workflow.list_requests(Roles.USER)


async def test_list_own_requests(workflow, gateway, user_id):
    await submit_pending(workflow, gateway, user_id, "pay_mine")
    await submit_pending(workflow, gateway, uuid.uuid4(), "pay_theirs")

    records = await workflow.list_own_requests(user_id)

    assert [r.payment_reference for r in records] == ["pay_mine"]


async def test_refundable_payments_carry_window_and_status(workflow, gateway, user_id):
    gateway.add_payment("pay_recent", user_id, days_ago(2), description="Premium Jahresabo")
    gateway.add_payment("pay_old", user_id, days_ago(30))
    gateway.add_payment("pay_foreign", uuid.uuid4(), days_ago(1))
    await workflow.request_refund(user_id, "pay_old")

    payments = await workflow.list_refundable_payments(user_id)

    assert [p.reference for p in payments] == ["pay_recent", "pay_old"]
    recent, old = payments
    assert recent.days_since_payment == 2
    assert recent.is_within_period is True
    assert recent.refund_status is None
    assert recent.description == "Premium Jahresabo"
    assert old.is_within_period is False
    assert old.refund_status == "pending"
    assert old.description == "Premium Zugang"


async def test_queue_stats(workflow, gateway, user_id, admin_id):
    gateway.add_payment("pay_recent", user_id, days_ago(1), amount="9.99")
    await workflow.request_refund(user_id, "pay_recent")
    await submit_pending(workflow, gateway, user_id, "pay_old")

    stats = await workflow.queue_stats(Roles.OWNER)

    assert stats.pending == 1
    assert stats.refunded == 1
    assert stats.rejected == 0
    assert stats.refunded_totals == {"EUR": Decimal("9.99")}

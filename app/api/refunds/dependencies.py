from __future__ import annotations

from functools import lru_cache
import uuid

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.refunds.authorization import AuthorizationGate, ensure_admin
from app.api.refunds.directory import SqlProfileDirectory, SqlRoleDirectory
from app.api.refunds.gateway import RazorpayPaymentGateway
from app.api.refunds.ledger import SqlSubscriptionLedger
from app.api.refunds.notifications import EmailNotifier
from app.api.refunds.ports import (
    NotificationPort,
    PaymentGatewayPort,
    ProfileDirectoryPort,
    RoleDirectoryPort,
    SubscriptionLedgerPort,
)
from app.api.refunds.store import RefundRequestStore
from app.api.refunds.workflow import RefundWorkflow
from app.core.common.constants import Roles
from app.core.exceptions import AccessDenied
from app.core.messages import ErrorMessage
from app.core.request_context import get_current_user_id
from app.db.main import async_session_maker, get_session


def get_current_user(request: Request) -> uuid.UUID:
    user_id = get_current_user_id(request)
    try:
        return uuid.UUID(user_id)
    except ValueError as exc:
        raise AccessDenied(ErrorMessage.USER_ID_MISSING) from exc


@lru_cache
def get_payment_gateway() -> PaymentGatewayPort:
    return RazorpayPaymentGateway()


@lru_cache
def get_profile_directory() -> ProfileDirectoryPort:
    return SqlProfileDirectory(async_session_maker)


@lru_cache
def get_role_directory() -> RoleDirectoryPort:
    return SqlRoleDirectory(async_session_maker)


@lru_cache
def get_subscription_ledger() -> SubscriptionLedgerPort:
    return SqlSubscriptionLedger(async_session_maker)


def get_notifier(
    profiles: ProfileDirectoryPort = Depends(get_profile_directory),
) -> NotificationPort:
    return EmailNotifier(profiles)


async def get_caller_role(
    user_id: uuid.UUID = Depends(get_current_user),
    roles: RoleDirectoryPort = Depends(get_role_directory),
) -> Roles:
    return await AuthorizationGate(roles).role_for(user_id)


async def require_admin(role: Roles = Depends(get_caller_role)) -> Roles:
    # sub-dependencies resolve before path and body validation
    ensure_admin(role)
    return role


def get_refund_workflow(
    session: AsyncSession = Depends(get_session),
    gateway: PaymentGatewayPort = Depends(get_payment_gateway),
    ledger: SubscriptionLedgerPort = Depends(get_subscription_ledger),
    notifier: NotificationPort = Depends(get_notifier),
    profiles: ProfileDirectoryPort = Depends(get_profile_directory),
) -> RefundWorkflow:
    return RefundWorkflow(
        store=RefundRequestStore(session),
        gateway=gateway,
        ledger=ledger,
        notifier=notifier,
        profiles=profiles,
    )

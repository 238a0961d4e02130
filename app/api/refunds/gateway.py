from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
import uuid

import razorpay
from razorpay.errors import BadRequestError

from app.api.refunds.helpers import amount_from_minor_units
from app.api.refunds.ports import GatewayPayment, RefundConfirmation
from app.core.config import Config
from app.core.exceptions import GatewayError
from app.core.messages import ErrorMessage
from app.core.middlewares import logger

SETTLED_STATUSES = frozenset({"captured"})
LIST_PAGE_SIZE = 100
LIST_LIMIT = 20
LIST_LOOKBACK_DAYS = 365


def build_razorpay_client() -> razorpay.Client:
    if not Config.RAZORPAY_KEY_ID or not Config.RAZORPAY_KEY_SECRET:
        raise GatewayError(ErrorMessage.GATEWAY_NOT_CONFIGURED)
    return razorpay.Client(auth=(Config.RAZORPAY_KEY_ID, Config.RAZORPAY_KEY_SECRET))


def to_gateway_payment(entity: dict[str, Any]) -> GatewayPayment:
    notes = entity.get("notes") or {}
    # notes come back as [] when empty
    owner = notes.get("user_id") if isinstance(notes, dict) else None
    return GatewayPayment(
        reference=entity["id"],
        amount=amount_from_minor_units(entity.get("amount")),
        currency=str(entity.get("currency") or "INR").upper(),
        created_at=datetime.fromtimestamp(int(entity.get("created_at") or 0), tz=timezone.utc),
        customer_id=owner or entity.get("customer_id"),
        status=entity.get("status") or "",
        description=entity.get("description"),
    )


class RazorpayPaymentGateway:
    """``PaymentGatewayPort`` over the Razorpay SDK.

    The SDK is synchronous, so every call runs in a worker thread under
    ``GATEWAY_TIMEOUT_SECONDS``. No retries happen here; a timeout or SDK
    error surfaces as ``GatewayError``.
    """

    def __init__(self, client: razorpay.Client | None = None, timeout: float | None = None):
        self._client = client
        self.timeout = timeout if timeout is not None else Config.GATEWAY_TIMEOUT_SECONDS

    @property
    def client(self) -> razorpay.Client:
        if self._client is None:
            self._client = build_razorpay_client()
        return self._client

    async def _call(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            async with asyncio.timeout(self.timeout):
                return await asyncio.to_thread(fn, *args)
        except TimeoutError as exc:
            logger.error(f"Razorpay {operation} timed out after {self.timeout}s")
            raise GatewayError() from exc

    async def get_payment(self, reference: str) -> GatewayPayment | None:
        try:
            entity = await self._call("payment.fetch", self.client.payment.fetch, reference)
        except BadRequestError:
            # Razorpay answers unknown ids with 400 BAD_REQUEST_ERROR
            return None
        except GatewayError:
            raise
        except Exception as exc:
            logger.error(f"Razorpay payment.fetch failed for payment={reference}: {exc}")
            raise GatewayError() from exc
        return to_gateway_payment(entity)

    async def verify_ownership(self, payment: GatewayPayment, user_id: uuid.UUID) -> bool:
        return payment.customer_id is not None and str(payment.customer_id) == str(user_id)

    async def refund(self, reference: str) -> RefundConfirmation:
        data = {"speed": "normal", "notes": {"reason": "requested_by_customer"}}
        try:
            refund = await self._call("payment.refund", self.client.payment.refund, reference, data)
        except GatewayError:
            raise
        except Exception as exc:
            logger.error(f"Razorpay refund failed for payment={reference}: {exc}")
            raise GatewayError() from exc

        if not refund or not refund.get("id"):
            raise GatewayError(f"Razorpay refund for {reference} returned no refund id")
        logger.info(f"Razorpay refund {refund['id']} created for payment={reference}")
        return RefundConfirmation(refund_id=refund["id"], status=refund.get("status") or "pending")

    async def list_payments(self, user_id: uuid.UUID) -> list[GatewayPayment]:
        """Captured payments owned by ``user_id`` in the lookback window, newest first.

        Razorpay cannot filter payments by customer, so the merchant's
        payments are paged with ``skip`` until the window is exhausted or
        ``LIST_LIMIT`` owned payments are found.
        """
        since = int((datetime.now(timezone.utc) - timedelta(days=LIST_LOOKBACK_DAYS)).timestamp())
        owned: list[GatewayPayment] = []
        skip = 0
        while len(owned) < LIST_LIMIT:
            params = {"count": LIST_PAGE_SIZE, "skip": skip, "from": since}
            try:
                response = await self._call("payment.all", self.client.payment.all, params)
            except GatewayError:
                raise
            except Exception as exc:
                logger.error(f"Razorpay payment.all failed at skip={skip}: {exc}")
                raise GatewayError() from exc

            items = response.get("items", [])
            for item in items:
                payment = to_gateway_payment(item)
                if payment.status in SETTLED_STATUSES and str(payment.customer_id) == str(user_id):
                    owned.append(payment)
            if len(items) < LIST_PAGE_SIZE:
                break
            skip += LIST_PAGE_SIZE
        return owned[:LIST_LIMIT]

from __future__ import annotations

import asyncio
from decimal import Decimal
from pathlib import Path
import uuid

import boto3
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.api.refunds.helpers import format_amount
from app.api.refunds.ports import NotificationKind, ProfileDirectoryPort
from app.core.config import Config
from app.core.middlewares import logger


TEMPLATES_DIR = Path(__file__).parent / "templates"
env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)

SUBJECTS = {
    NotificationKind.AUTO_REFUNDED: "Dein Widerruf wurde verarbeitet",
    NotificationKind.PENDING: "Dein Widerrufsantrag ist eingegangen",
    NotificationKind.APPROVED: "Dein Widerrufsantrag wurde genehmigt",
    NotificationKind.REJECTED: "Dein Widerrufsantrag wurde abgelehnt",
}


def render_email(
    kind: NotificationKind,
    amount: Decimal,
    currency: str,
    notes: str | None = None,
) -> tuple[str, str]:
    template = env.get_template(f"refund_{kind.value}.html")
    html = template.render(
        {
            "amount": format_amount(amount, currency),
            "notes": notes,
            "period_days": Config.REFUND_PERIOD_DAYS,
        }
    )
    return SUBJECTS[kind], html


def _build_ses_client():
    client_kwargs: dict[str, str] = {}
    if Config.AWS_REGION:
        client_kwargs["region_name"] = Config.AWS_REGION
    if Config.AWS_ACCESS_KEY and Config.AWS_SECRET_KEY:
        client_kwargs["aws_access_key_id"] = Config.AWS_ACCESS_KEY
        client_kwargs["aws_secret_access_key"] = Config.AWS_SECRET_KEY
    return boto3.client("ses", **client_kwargs)


class EmailNotifier:
    """``NotificationPort`` sending templated status mails through SES.

    Fire-and-forget: failures are logged and never raised.
    """

    def __init__(self, profiles: ProfileDirectoryPort, ses_client=None):
        self.profiles = profiles
        self._ses_client = ses_client

    def _send(self, recipient: str, subject: str, html: str) -> None:
        if self._ses_client is None:
            self._ses_client = _build_ses_client()
        self._ses_client.send_email(
            Source=Config.EMAIL_FROM,
            Destination={"ToAddresses": [recipient]},
            Message={
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {"Html": {"Data": html, "Charset": "UTF-8"}},
            },
        )

    async def notify(
        self,
        user_id: uuid.UUID,
        kind: NotificationKind,
        amount: Decimal,
        currency: str,
        notes: str | None = None,
    ) -> None:
        if not Config.NOTIFICATIONS_ENABLED or not Config.EMAIL_FROM:
            logger.warning(f"Email sender not configured, skipping {kind.value} mail for user={user_id}")
            return

        try:
            identity = (await self.profiles.get_identities([user_id])).get(user_id)
            if identity is None or not identity.email:
                logger.warning(f"No email address for user={user_id}, skipping {kind.value} mail")
                return

            subject, html = render_email(kind, amount, currency, notes)
            async with asyncio.timeout(Config.NOTIFICATION_TIMEOUT_SECONDS):
                await asyncio.to_thread(self._send, identity.email, subject, html)
        except TimeoutError:
            logger.error(
                f"Sending {kind.value} mail to user={user_id} timed out after "
                f"{Config.NOTIFICATION_TIMEOUT_SECONDS}s"
            )
            return
        except Exception as exc:
            logger.error(f"Sending {kind.value} mail to user={user_id} failed: {exc}")
            return

        logger.info(f"Refund mail sent: user={user_id}, kind={kind.value}")

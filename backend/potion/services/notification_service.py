"""Notification service - transactional email with delivery tracking."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, List
from uuid import UUID

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from potion.config import get_settings
from potion.database import AsyncSessionLocal
from potion.integrations.resend_client import ResendClient
from potion.models.notification import Notification, NotificationStatus
from potion.models.role import RoleType

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    body: str
    trigger_event: str
    user_role_id: Optional[UUID] = None


class EmailOutbox:
    """
    Emails queued by a service call.

    With ``background_tasks`` each message is handed to FastAPI to send
    after the response; without it messages are only collected (workers and
    tests read ``messages``).
    """

    def __init__(self, background_tasks: Optional[BackgroundTasks] = None):
        self.background_tasks = background_tasks
        self.messages: List[OutgoingEmail] = []

    def queue(self, email: OutgoingEmail) -> None:
        self.messages.append(email)
        if self.background_tasks is not None:
            self.background_tasks.add_task(dispatch_email, email)


async def dispatch_email(email: OutgoingEmail) -> None:
    """Send one queued email in its own session; failures never propagate."""
    try:
        async with AsyncSessionLocal() as db:
            await NotificationService(db).send_email(email)
    except Exception:
        logger.exception("Could not dispatch %s email to %s", email.trigger_event, email.to)


class NotificationService:
    """Service for sending and tracking emails."""

    def __init__(self, db: AsyncSession, client: Optional[ResendClient] = None):
        self.db = db
        self.client = client or ResendClient()

    async def send_email(self, email: OutgoingEmail) -> Notification:
        """Send a single email and track it."""
        notification = Notification(
            trigger_event=email.trigger_event,
            user_role_id=email.user_role_id,
            recipient_email=email.to,
            subject=email.subject,
            body=email.body,
            status=NotificationStatus.PENDING,
            max_retries=settings.NOTIFICATION_MAX_RETRIES,
        )
        self.db.add(notification)
        await self.db.flush()

        try:
            result = await self.client.send_email(email.to, email.subject, email.body)
            notification.external_id = result.get("id")
            notification.status = NotificationStatus.SENT
            notification.sent_at = datetime.utcnow()
        except Exception as e:
            logger.error("Email %s to %s failed: %s", email.trigger_event, email.to, e)
            notification.status = NotificationStatus.FAILED
            notification.error_message = str(e)
            notification.failed_at = datetime.utcnow()
            notification.next_retry_at = datetime.utcnow() + timedelta(minutes=5)

        await self.db.commit()
        await self.db.refresh(notification)

        return notification

    async def get_failed_notifications_for_retry(self) -> List[Notification]:
        """Get failed notifications that need retry."""
        result = await self.db.execute(
            select(Notification).where(
                Notification.status.in_([
                    NotificationStatus.FAILED,
                    NotificationStatus.RETRYING,
                ]),
                Notification.retry_count < Notification.max_retries,
                Notification.next_retry_at <= datetime.utcnow(),
            )
        )
        return list(result.scalars())

    async def retry_notification(self, notification_id: UUID) -> Optional[Notification]:
        """Retry a failed notification."""
        notification = await self.db.get(Notification, notification_id)
        if not notification:
            return None

        notification.status = NotificationStatus.RETRYING
        notification.retry_count = notification.retry_count + 1

        try:
            result = await self.client.send_email(
                notification.recipient_email,
                notification.subject,
                notification.body,
            )
            notification.external_id = result.get("id")
            notification.status = NotificationStatus.SENT
            notification.sent_at = datetime.utcnow()
            notification.error_message = None
        except Exception as e:
            logger.warning("Retry %s of notification %s failed: %s", notification.retry_count, notification.id, e)
            notification.error_message = str(e)
            notification.status = NotificationStatus.FAILED
            notification.failed_at = datetime.utcnow()
            notification.next_retry_at = datetime.utcnow() + timedelta(minutes=15)

        await self.db.commit()
        await self.db.refresh(notification)

        return notification


# =============================================================================
# Message builders
# =============================================================================

def _frame(body: str) -> str:
    return (
        '<div style="font-family: -apple-system,BlinkMacSystemFont,\'Segoe UI\',Roboto,sans-serif; '
        'max-width: 600px; margin: 0 auto;">'
        f"{body}</div>"
    )


def _button(link: str, label: str) -> str:
    return (
        f'<div style="text-align: center; margin: 30px 0;"><a href="{link}" '
        'style="background: #1EC64C; color: white; padding: 14px 28px; text-decoration: none; '
        f'border-radius: 8px; display: inline-block; font-weight: 600;">{label}</a></div>'
    )


def setup_link(token: str) -> str:
    return f"{settings.FRONTEND_URL}/setup-password/{token}"


def role_invitation_email(
    to: str,
    owner_name: str,
    role_type: RoleType,
    token: Optional[str],
    role_id: Optional[UUID] = None,
    needs_password: bool = True,
    trigger_event: str = "role_invited",
) -> OutgoingEmail:
    """Invitation for a new role; users who already have a password just sign in."""
    link = setup_link(token) if needs_password and token else settings.FRONTEND_URL
    label = "Accept Invitation & Set Password" if needs_password else "Accept Invitation"

    if role_type == RoleType.ACCOUNTANT:
        subject = f"Invitation: Join {owner_name}'s team as Accountant"
        intro = (
            f"<p><strong>{owner_name}</strong> has invited you to join their team as an "
            "<strong>Accountant</strong> on Potion.</p>"
            "<p>You'll have access to their financial data and can help manage their accounting needs.</p>"
        )
    elif role_type == RoleType.SUBCONTRACTOR:
        subject = f"Project Invitation: Join {owner_name}'s team"
        intro = (
            f"<p><strong>{owner_name}</strong> has invited you to join their project as a "
            "<strong>Subcontractor</strong> on Potion.</p>"
            "<p>You'll be able to collaborate on projects, track your time, and manage your work.</p>"
        )
    else:
        subject = f"Invitation: Join {owner_name}'s team"
        intro = f"<p><strong>{owner_name}</strong> has invited you to join their team on Potion.</p>"

    body = _frame(
        "<h1>Hello!</h1>"
        + intro
        + _button(link, label)
        + f'<p style="color: #666; font-size: 14px;">This invitation will expire in '
        f"{settings.INVITE_TOKEN_EXPIRE_DAYS} days.</p>"
    )
    return OutgoingEmail(to=to, subject=subject, body=body, trigger_event=trigger_event, user_role_id=role_id)


def password_reset_email(to: str, token: str, role_id: Optional[UUID] = None) -> OutgoingEmail:
    body = _frame(
        "<h1>Reset your password</h1>"
        "<p>We received a request to reset your Potion password.</p>"
        + _button(setup_link(token), "Set a new password")
        + f'<p style="color: #6b7280; font-size: 14px;">This link expires in '
        f"{settings.PASSWORD_SETUP_TOKEN_EXPIRE_HOURS} hours. If you didn't request this, "
        "you can ignore this email.</p>"
    )
    return OutgoingEmail(
        to=to,
        subject="Reset your Potion password",
        body=body,
        trigger_event="password_reset",
        user_role_id=role_id,
    )


def admin_code_email(to: str, code: str) -> OutgoingEmail:
    body = _frame(
        "<h1>Your admin sign-in code</h1>"
        f'<p style="font-size: 28px; letter-spacing: 6px; font-weight: 700;">{code}</p>'
        f'<p style="color: #6b7280; font-size: 14px;">The code expires in '
        f"{settings.ADMIN_CODE_EXPIRE_MINUTES} minutes.</p>"
    )
    return OutgoingEmail(to=to, subject="Potion admin sign-in code", body=body, trigger_event="admin_code")

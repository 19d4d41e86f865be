"""Email notification tracking models."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Column, String, Integer, DateTime, Text, Enum, Uuid

from potion.database import Base


class NotificationStatus(str, PyEnum):
    """Notification delivery status."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    RETRYING = "retrying"


class Notification(Base):
    """
    Track every email sent so failed deliveries can be retried.
    A failed email never rolls back the transition that triggered it.
    """

    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # What triggered this notification
    trigger_event = Column(String(100))  # 'role_invited', 'invite_resent', 'password_reset', ...
    user_role_id = Column(Uuid(as_uuid=True))

    # Recipient and content
    recipient_email = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)

    status = Column(Enum(NotificationStatus), default=NotificationStatus.PENDING, nullable=False)

    # External tracking
    external_id = Column(String(100))  # Resend message id

    # Error handling
    error_message = Column(Text)
    retry_count = Column(Integer, default=0, nullable=False)
    max_retries = Column(Integer, default=3, nullable=False)
    next_retry_at = Column(DateTime)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    sent_at = Column(DateTime)
    failed_at = Column(DateTime)

    def __repr__(self):
        return f"<Notification {self.trigger_event} to {self.recipient_email} ({self.status.value})>"

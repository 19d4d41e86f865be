"""User model - the login identity shared by every role a person holds."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Column, String, Boolean, DateTime, Enum, Uuid

from potion.database import Base


class AuthProvider(str, PyEnum):
    """How the user signs in."""
    PASSWORD = "password"
    GOOGLE = "google"


class User(Base):
    """User entity - one per email address, never physically removed."""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Auth
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255))  # Empty until an invitation is accepted
    is_password_set = Column(Boolean, default=False, nullable=False)
    password_setup_token = Column(String(1024))
    password_setup_token_expires_at = Column(DateTime)
    refresh_token = Column(String(1024))

    # OAuth linkage
    google_id = Column(String(255), unique=True)
    auth_provider = Column(Enum(AuthProvider), default=AuthProvider.PASSWORD, nullable=False)

    # Profile
    first_name = Column(String(100))
    last_name = Column(String(100))
    business_name = Column(String(255))

    # Status
    is_active = Column(Boolean, default=True, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login_at = Column(DateTime)

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.email

    def __repr__(self):
        return f"<User {self.email}>"

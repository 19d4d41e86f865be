"""Legacy accountant records (pre-unified roles)."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from potion.database import Base


class AccountantAccessLevel(str, PyEnum):
    READ = "read"
    EDIT = "edit"


class AccountantAccessStatus(str, PyEnum):
    PENDING = "pending"
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


class Accountant(Base):
    """Accountant login identity, separate from users."""

    __tablename__ = "accountants"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255))
    password_hash = Column(String(255))

    created_at = Column(DateTime, default=datetime.utcnow)
    last_login_at = Column(DateTime)

    accesses = relationship("AccountantAccess", back_populates="accountant")

    def __repr__(self):
        return f"<Accountant {self.email}>"


class AccountantAccess(Base):
    """Grant of one accountant onto one client (business owner)."""

    __tablename__ = "accountant_accesses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    accountant_id = Column(Uuid(as_uuid=True), ForeignKey("accountants.id"), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)  # the client

    access_level = Column(Enum(AccountantAccessLevel), default=AccountantAccessLevel.READ, nullable=False)
    status = Column(Enum(AccountantAccessStatus), default=AccountantAccessStatus.PENDING, nullable=False)

    invite_token = Column(String(1024))
    invite_token_expires_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    accountant = relationship("Accountant", back_populates="accesses")

    __table_args__ = (
        UniqueConstraint("accountant_id", "user_id", name="uq_accountant_accesses_accountant_user"),
    )

    def __repr__(self):
        return f"<AccountantAccess {self.accountant_id} -> {self.user_id} ({self.access_level.value})>"

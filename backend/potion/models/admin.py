"""Platform administrators (one-time-code login)."""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Uuid

from potion.database import Base


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255))

    # One-time login code
    otp_code = Column(String(6))
    otp_expires_at = Column(DateTime)
    otp_attempts = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    last_login_at = Column(DateTime)

    def __repr__(self):
        return f"<Admin {self.email}>"

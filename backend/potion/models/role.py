"""Role assignments - which user acts in which role for which business owner."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Enum,
    Text,
    JSON,
    Uuid,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from potion.database import Base


class RoleType(str, PyEnum):
    """Kinds of role a user can hold."""
    BUSINESS_OWNER = "business_owner"
    ACCOUNTANT = "accountant"
    SUBCONTRACTOR = "subcontractor"
    ADMIN = "admin"


class AccessLevel(str, PyEnum):
    """Strength of a role within the owner's tenant."""
    VIEWER = "viewer"
    CONTRIBUTOR = "contributor"
    EDITOR = "editor"
    ADMIN = "admin"


class RoleStatus(str, PyEnum):
    """Lifecycle state: invited -> active <-> deactivated."""
    INVITED = "invited"
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


# Roles an owner may hand out through the invitation workflow
INVITABLE_ROLE_TYPES = (RoleType.ACCOUNTANT, RoleType.SUBCONTRACTOR)


class UserRole(Base):
    """
    A single role assignment.

    A user may hold several of these (e.g. business owner of their own
    company and accountant for a client). ``business_owner_id`` names the
    tenant the role operates in; it is the user's own id for business
    owners and empty for platform admins.
    """

    __tablename__ = "user_roles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)

    role_type = Column(Enum(RoleType), nullable=False)
    access_level = Column(Enum(AccessLevel), default=AccessLevel.CONTRIBUTOR, nullable=False)
    business_owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), index=True)
    status = Column(Enum(RoleStatus), default=RoleStatus.INVITED, nullable=False)

    # Invitation
    invite_token = Column(String(1024))
    invite_token_expires_at = Column(DateTime)
    invited_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"))
    invited_at = Column(DateTime)
    note = Column(Text)

    # Role context: per-project grants {project_id: access_level} and profile overrides
    project_access = Column(JSON, default=dict)
    profile = Column(JSON, default=dict)

    # Activity
    last_login_at = Column(DateTime)
    last_accessed_at = Column(DateTime)

    # Soft delete
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime)
    deleted_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"))

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", foreign_keys=[user_id], lazy="joined")
    business_owner = relationship("User", foreign_keys=[business_owner_id], lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "role_type", "business_owner_id", name="uq_user_roles_user_type_owner"),
    )

    @property
    def project_ids(self) -> list[str]:
        return list((self.project_access or {}).keys())

    def __repr__(self):
        return f"<UserRole {self.email} {self.role_type.value} ({self.status.value})>"

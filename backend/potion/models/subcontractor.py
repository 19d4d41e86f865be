"""Legacy subcontractor records and their per-project grants."""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from potion.database import Base


class SubcontractorStatus(str, PyEnum):
    INVITED = "invited"
    ACTIVE = "active"
    INACTIVE = "inactive"


class ProjectAccessStatus(str, PyEnum):
    INVITED = "invited"
    ACTIVE = "active"
    COMPLETED = "completed"
    TERMINATED = "terminated"


class ProjectAccessLevel(str, PyEnum):
    VIEWER = "viewer"
    CONTRIBUTOR = "contributor"


class Subcontractor(Base):
    """Subcontractor login identity, created by a business owner."""

    __tablename__ = "subcontractors"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(255))
    business_name = Column(String(255))
    password_hash = Column(String(255))
    is_password_set = Column(Boolean, default=False, nullable=False)
    status = Column(Enum(SubcontractorStatus), default=SubcontractorStatus.INVITED, nullable=False)

    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"))
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project_accesses = relationship("SubcontractorProjectAccess", back_populates="subcontractor")

    def __repr__(self):
        return f"<Subcontractor {self.email}>"


class SubcontractorProjectAccess(Base):
    """Grant of a subcontractor onto one project owned by ``user_id``."""

    __tablename__ = "subcontractor_project_accesses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subcontractor_id = Column(Uuid(as_uuid=True), ForeignKey("subcontractors.id"), nullable=False)
    project_id = Column(Uuid(as_uuid=True), nullable=False, index=True)  # owned by the projects service
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)  # project owner

    status = Column(Enum(ProjectAccessStatus), default=ProjectAccessStatus.INVITED, nullable=False)
    access_level = Column(Enum(ProjectAccessLevel), default=ProjectAccessLevel.CONTRIBUTOR, nullable=False)

    invite_key = Column(String(255))
    invite_key_expires_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subcontractor = relationship("Subcontractor", back_populates="project_accesses")

    __table_args__ = (
        UniqueConstraint("subcontractor_id", "project_id", name="uq_subcontractor_project"),
    )

    def __repr__(self):
        return f"<SubcontractorProjectAccess {self.subcontractor_id} -> {self.project_id}>"

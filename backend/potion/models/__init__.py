"""SQLAlchemy models."""

from potion.database import Base
from potion.models.user import User, AuthProvider
from potion.models.role import UserRole, RoleType, AccessLevel, RoleStatus, INVITABLE_ROLE_TYPES
from potion.models.accountant import (
    Accountant,
    AccountantAccess,
    AccountantAccessLevel,
    AccountantAccessStatus,
)
from potion.models.subcontractor import (
    Subcontractor,
    SubcontractorStatus,
    SubcontractorProjectAccess,
    ProjectAccessStatus,
    ProjectAccessLevel,
)
from potion.models.admin import Admin
from potion.models.notification import Notification, NotificationStatus

__all__ = [
    "Base",
    "User",
    "AuthProvider",
    "UserRole",
    "RoleType",
    "AccessLevel",
    "RoleStatus",
    "INVITABLE_ROLE_TYPES",
    "Accountant",
    "AccountantAccess",
    "AccountantAccessLevel",
    "AccountantAccessStatus",
    "Subcontractor",
    "SubcontractorStatus",
    "SubcontractorProjectAccess",
    "ProjectAccessStatus",
    "ProjectAccessLevel",
    "Admin",
    "Notification",
    "NotificationStatus",
]

"""Business logic services."""

from potion.services.auth_service import AuthService
from potion.services.invitation_service import InvitationService
from potion.services.legacy_migration import LegacyRoleMigration
from potion.services.notification_service import NotificationService
from potion.services.role_resolver import RoleResolver

__all__ = [
    "AuthService",
    "InvitationService",
    "LegacyRoleMigration",
    "NotificationService",
    "RoleResolver",
]

"""One-time migration of legacy accountant/subcontractor records into unified roles."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from potion.models.accountant import Accountant, AccountantAccess, AccountantAccessStatus
from potion.models.role import AccessLevel, RoleStatus, RoleType, UserRole
from potion.models.subcontractor import ProjectAccessStatus, Subcontractor, SubcontractorProjectAccess
from potion.models.user import User
from potion.services.context import normalize_id
from potion.services.role_resolver import LEGACY_ACCOUNTANT_LEVELS, LEGACY_PROJECT_LEVELS

logger = logging.getLogger(__name__)

ACCOUNTANT_STATUS_MAP = {
    AccountantAccessStatus.PENDING: RoleStatus.INVITED,
    AccountantAccessStatus.ACTIVE: RoleStatus.ACTIVE,
    AccountantAccessStatus.DEACTIVATED: RoleStatus.DEACTIVATED,
}

PROJECT_STATUS_MAP = {
    ProjectAccessStatus.INVITED: RoleStatus.INVITED,
    ProjectAccessStatus.ACTIVE: RoleStatus.ACTIVE,
    ProjectAccessStatus.COMPLETED: RoleStatus.DEACTIVATED,
    ProjectAccessStatus.TERMINATED: RoleStatus.DEACTIVATED,
}

# Grants that still carry access after migration
OPEN_PROJECT_STATUSES = (ProjectAccessStatus.INVITED, ProjectAccessStatus.ACTIVE)

_LEVEL_RANK = [AccessLevel.VIEWER, AccessLevel.CONTRIBUTOR, AccessLevel.EDITOR, AccessLevel.ADMIN]


def _strongest(statuses) -> RoleStatus:
    if RoleStatus.ACTIVE in statuses:
        return RoleStatus.ACTIVE
    if RoleStatus.INVITED in statuses:
        return RoleStatus.INVITED
    return RoleStatus.DEACTIVATED


@dataclass
class MigrationReport:
    users_created: int = 0
    roles_created: int = 0
    roles_updated: int = 0
    skipped: int = 0


class LegacyRoleMigration:
    """
    Copy every legacy access relationship into ``UserRole`` rows.

    Running it twice is safe: roles are matched on (user, role type, owner)
    and updated in place. Soft-deleted unified roles are left alone.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.report = MigrationReport()

    async def run(self) -> MigrationReport:
        await self._migrate_accountants()
        await self._migrate_subcontractors()
        await self.db.commit()
        logger.info(
            "Legacy migration done: %s users created, %s roles created, %s updated, %s skipped",
            self.report.users_created,
            self.report.roles_created,
            self.report.roles_updated,
            self.report.skipped,
        )
        return self.report

    async def _user_for(self, email: str, password_hash: Optional[str], name: Optional[str] = None) -> User:
        email = email.lower()
        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            parts = (name or "").split()
            user = User(
                email=email,
                first_name=parts[0] if parts else None,
                last_name=" ".join(parts[1:]) or None,
                password_hash=password_hash,
                is_password_set=bool(password_hash),
                is_active=bool(password_hash),
            )
            self.db.add(user)
            await self.db.flush()
            self.report.users_created += 1
        elif not user.is_password_set and password_hash:
            user.password_hash = password_hash
            user.is_password_set = True
            user.is_active = True
        return user

    async def _upsert_role(
        self,
        user: User,
        role_type: RoleType,
        owner_id,
        access_level: AccessLevel,
        status: RoleStatus,
        project_access: Optional[dict] = None,
    ) -> None:
        result = await self.db.execute(
            select(UserRole).where(
                UserRole.user_id == user.id,
                UserRole.role_type == role_type,
                UserRole.business_owner_id == owner_id,
            )
        )
        role = result.scalar_one_or_none()

        if role is None:
            self.db.add(UserRole(
                user_id=user.id,
                email=user.email,
                role_type=role_type,
                business_owner_id=owner_id,
                access_level=access_level,
                status=status,
                project_access=project_access or {},
                profile={},
            ))
            self.report.roles_created += 1
            return

        if role.is_deleted:
            self.report.skipped += 1
            return

        role.access_level = access_level
        role.status = status
        if project_access is not None:
            role.project_access = project_access
        self.report.roles_updated += 1

    async def _migrate_accountants(self) -> None:
        result = await self.db.execute(select(AccountantAccess))
        for access in result.scalars().all():
            accountant = await self.db.get(Accountant, access.accountant_id)
            if accountant is None:
                self.report.skipped += 1
                continue
            user = await self._user_for(accountant.email, accountant.password_hash, accountant.name)
            await self._upsert_role(
                user,
                RoleType.ACCOUNTANT,
                access.user_id,
                LEGACY_ACCOUNTANT_LEVELS[access.access_level],
                ACCOUNTANT_STATUS_MAP[access.status],
            )

    async def _migrate_subcontractors(self) -> None:
        result = await self.db.execute(select(Subcontractor).where(Subcontractor.is_deleted == False))
        for subcontractor in result.scalars().all():
            accesses = await self.db.execute(
                select(SubcontractorProjectAccess).where(
                    SubcontractorProjectAccess.subcontractor_id == subcontractor.id
                )
            )
            by_owner = defaultdict(list)
            for access in accesses.scalars().all():
                by_owner[access.user_id].append(access)
            if not by_owner:
                continue

            user = await self._user_for(subcontractor.email, subcontractor.password_hash, subcontractor.full_name)
            for owner_id, owner_accesses in by_owner.items():
                project_access = {
                    normalize_id(a.project_id): LEGACY_PROJECT_LEVELS[a.access_level].value
                    for a in owner_accesses
                    if a.status in OPEN_PROJECT_STATUSES
                }
                levels = [LEGACY_PROJECT_LEVELS[a.access_level] for a in owner_accesses]
                await self._upsert_role(
                    user,
                    RoleType.SUBCONTRACTOR,
                    owner_id,
                    max(levels, key=_LEVEL_RANK.index),
                    _strongest({PROJECT_STATUS_MAP[a.status] for a in owner_accesses}),
                    project_access,
                )

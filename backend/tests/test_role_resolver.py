"""Resolving bearer tokens and context headers into an AuthContext."""
import uuid
from datetime import datetime, timedelta

import pytest
from jose import jwt

from potion.config import get_settings
from potion.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ErrorCode,
    MissingContextError,
)
from potion.models import (
    AccessLevel,
    Accountant,
    AccountantAccess,
    AccountantAccessLevel,
    AccountantAccessStatus,
    Admin,
    ProjectAccessLevel,
    ProjectAccessStatus,
    RoleStatus,
    RoleType,
    Subcontractor,
    SubcontractorProjectAccess,
    SubcontractorStatus,
)
from potion.security import (
    create_access_token,
    create_accountant_token,
    create_admin_token,
    create_role_token,
    create_setup_token,
    create_subcontractor_token,
    hash_password,
)
from potion.services.context import Principal
from potion.services.permissions import Capability
from potion.services.role_resolver import RoleResolver
from tests.helpers import role_token, unique_email

settings = get_settings()


async def _raises(resolver, exc_type, code, *args):
    with pytest.raises(exc_type) as exc_info:
        await resolver.resolve(*args)
    assert exc_info.value.code == code
    return exc_info.value


# =============================================================================
# Token shape
# =============================================================================

@pytest.mark.asyncio
async def test_missing_token(db_session):
    error = await _raises(RoleResolver(db_session), AuthenticationError, ErrorCode.NO_TOKEN, None)
    assert error.status_code == 401


@pytest.mark.asyncio
async def test_malformed_token(db_session):
    await _raises(RoleResolver(db_session), AuthenticationError, ErrorCode.INVALID_TOKEN, "abc.def.ghi")


@pytest.mark.asyncio
async def test_setup_token_is_not_a_session(db_session, make_user):
    user = await make_user()
    token = create_setup_token(user.id, RoleType.ACCOUNTANT.value, uuid.uuid4())

    await _raises(RoleResolver(db_session), AuthenticationError, ErrorCode.INVALID_TOKEN, token)


@pytest.mark.asyncio
async def test_unknown_claims_are_rejected(db_session):
    token = jwt.encode(
        {"sub": "someone", "exp": datetime.utcnow() + timedelta(hours=1)},
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )

    error = await _raises(RoleResolver(db_session), AuthenticationError, ErrorCode.INVALID_TOKEN, token)
    assert error.detail == "Invalid token format"


# =============================================================================
# Users and unified roles
# =============================================================================

@pytest.mark.asyncio
async def test_legacy_user_token_acts_on_own_data(db_session, make_user):
    user = await make_user()

    ctx = await RoleResolver(db_session).resolve(create_access_token(user.id))

    assert ctx.principal == Principal.USER
    assert ctx.target_user_id == str(user.id)
    assert Capability.INVITE_USERS in ctx.capabilities
    assert not ctx.is_unified


@pytest.mark.asyncio
async def test_deleted_user_is_rejected(db_session, make_user):
    user = await make_user()
    user.is_deleted = True
    await db_session.commit()

    await _raises(
        RoleResolver(db_session), AuthenticationError, ErrorCode.USER_NOT_FOUND, create_access_token(user.id)
    )


@pytest.mark.asyncio
async def test_owner_role_targets_itself(db_session, make_user, make_role):
    user = await make_user()
    role = await make_role(user, RoleType.BUSINESS_OWNER, access_level=AccessLevel.ADMIN)

    ctx = await RoleResolver(db_session).resolve(role_token(role))

    assert ctx.principal == Principal.USER
    assert ctx.role_id == str(role.id)
    assert ctx.role_type == RoleType.BUSINESS_OWNER
    assert ctx.target_user_id == str(user.id)
    assert [summary.id for summary in ctx.available_roles] == [str(role.id)]


@pytest.mark.asyncio
async def test_accountant_role_targets_business_owner(db_session, make_user, make_role):
    owner = await make_user(business_name="Acme Ltd")
    accountant = await make_user()
    await make_role(owner, RoleType.BUSINESS_OWNER)
    role = await make_role(accountant, RoleType.ACCOUNTANT, owner, AccessLevel.VIEWER)

    ctx = await RoleResolver(db_session).resolve(role_token(role))

    assert ctx.principal == Principal.ACCOUNTANT
    assert ctx.principal_id == str(accountant.id)
    assert ctx.target_user_id == str(owner.id)
    assert ctx.capabilities == {Capability.READ}
    assert ctx.legacy_user["userId"] == str(owner.id)

    refreshed = await db_session.get(type(role), role.id)
    assert refreshed.last_accessed_at is not None


@pytest.mark.asyncio
async def test_accountant_role_rejects_foreign_client_header(db_session, make_user, make_role):
    owner = await make_user()
    role = await make_role(await make_user(), RoleType.ACCOUNTANT, owner)
    resolver = RoleResolver(db_session)

    ctx = await resolver.resolve(role_token(role), str(owner.id))
    assert ctx.target_user_id == str(owner.id)

    await _raises(resolver, AccessDeniedError, ErrorCode.ACCESS_DENIED, role_token(role), str(uuid.uuid4()))


@pytest.mark.asyncio
async def test_deactivated_role_is_forbidden(db_session, make_user, make_role):
    role = await make_role(await make_user(), RoleType.ACCOUNTANT, await make_user(), status=RoleStatus.DEACTIVATED)

    error = await _raises(RoleResolver(db_session), AccessDeniedError, ErrorCode.ROLE_INACTIVE, role_token(role))
    assert error.status_code == 403


@pytest.mark.asyncio
async def test_invited_role_cannot_be_used_yet(db_session, make_user, make_role):
    role = await make_role(await make_user(), RoleType.ACCOUNTANT, await make_user(), status=RoleStatus.INVITED)

    await _raises(RoleResolver(db_session), AccessDeniedError, ErrorCode.ROLE_INACTIVE, role_token(role))


@pytest.mark.asyncio
async def test_deleted_role_is_unauthenticated(db_session, make_user, make_role):
    role = await make_role(await make_user(), RoleType.ACCOUNTANT, await make_user())
    role.is_deleted = True
    role.deleted_at = datetime.utcnow()
    await db_session.commit()

    error = await _raises(RoleResolver(db_session), AuthenticationError, ErrorCode.INVALID_TOKEN, role_token(role))
    assert error.status_code == 401


@pytest.mark.asyncio
async def test_role_of_another_user_is_rejected(db_session, make_user, make_role):
    owner = await make_user()
    role = await make_role(await make_user(), RoleType.ACCOUNTANT, owner)
    intruder = await make_user()
    token = create_role_token(intruder.id, role.id, intruder.email, RoleType.ACCOUNTANT.value, owner.id)

    await _raises(RoleResolver(db_session), AuthenticationError, ErrorCode.INVALID_TOKEN, token)


# =============================================================================
# Unified subcontractors
# =============================================================================

@pytest.mark.asyncio
async def test_subcontractor_with_several_projects_must_pick_one(db_session, make_user, make_role):
    owner = await make_user()
    viewer_project, contributor_project = str(uuid.uuid4()), str(uuid.uuid4())
    role = await make_role(
        await make_user(),
        RoleType.SUBCONTRACTOR,
        owner,
        project_access={viewer_project: "viewer", contributor_project: "contributor"},
    )
    resolver = RoleResolver(db_session)
    token = role_token(role)

    error = await _raises(resolver, MissingContextError, ErrorCode.PROJECT_ID_REQUIRED, token)
    assert error.status_code == 400

    ctx = await resolver.resolve(token, None, viewer_project)
    assert ctx.selected_project_id == viewer_project
    assert ctx.access_level == AccessLevel.VIEWER
    assert Capability.WRITE not in ctx.capabilities
    assert ctx.target_user_id == str(owner.id)

    ctx = await resolver.resolve(token, None, contributor_project)
    assert ctx.access_level == AccessLevel.CONTRIBUTOR
    assert len(ctx.project_grants) == 2

    await _raises(resolver, AccessDeniedError, ErrorCode.PROJECT_ACCESS_DENIED, token, None, str(uuid.uuid4()))


@pytest.mark.asyncio
async def test_subcontractor_with_one_project_needs_no_header(db_session, make_user, make_role):
    project = str(uuid.uuid4())
    role = await make_role(
        await make_user(), RoleType.SUBCONTRACTOR, await make_user(), project_access={project: "contributor"}
    )

    ctx = await RoleResolver(db_session).resolve(role_token(role))

    assert ctx.selected_project_id == project
    assert Capability.MANAGE_TASKS in ctx.capabilities


@pytest.mark.asyncio
async def test_subcontractor_without_projects(db_session, make_user, make_role):
    role = await make_role(await make_user(), RoleType.SUBCONTRACTOR, await make_user())

    await _raises(RoleResolver(db_session), AccessDeniedError, ErrorCode.NO_PROJECT_ACCESS, role_token(role))


@pytest.mark.asyncio
async def test_subcontractor_identity_resolves_without_project_selection(db_session, make_user, make_role):
    owner = await make_user()
    bare = await make_role(await make_user(), RoleType.SUBCONTRACTOR, owner)
    several = await make_role(
        await make_user(),
        RoleType.SUBCONTRACTOR,
        owner,
        project_access={str(uuid.uuid4()): "viewer", str(uuid.uuid4()): "contributor"},
    )
    resolver = RoleResolver(db_session)

    ctx = await resolver.resolve(role_token(bare), select_project=False)
    assert ctx.role_id == str(bare.id)
    assert ctx.project_grants == ()
    assert ctx.selected_project_id is None

    ctx = await resolver.resolve(role_token(several), select_project=False)
    assert ctx.target_user_id == str(owner.id)
    assert len(ctx.project_grants) == 2
    assert ctx.selected_project_id is None


# =============================================================================
# Legacy principals
# =============================================================================

async def _legacy_accountant(db_session, business, level=AccountantAccessLevel.READ, status=AccountantAccessStatus.ACTIVE):
    accountant = Accountant(email=unique_email("acct"), name="Ada Books", password_hash=hash_password("secret123"))
    db_session.add(accountant)
    await db_session.flush()
    db_session.add(AccountantAccess(
        accountant_id=accountant.id,
        user_id=business.id,
        access_level=level,
        status=status,
    ))
    await db_session.commit()
    return accountant


@pytest.mark.asyncio
async def test_legacy_accountant_needs_client_header(db_session, make_user):
    client = await make_user()
    accountant = await _legacy_accountant(db_session, client)
    token = create_accountant_token(accountant.id)
    resolver = RoleResolver(db_session)

    await _raises(resolver, MissingContextError, ErrorCode.MISSING_USER_ID_HEADER, token)

    ctx = await resolver.resolve(token, str(client.id))
    assert ctx.principal == Principal.ACCOUNTANT
    assert ctx.target_user_id == str(client.id)
    assert ctx.access_level == AccessLevel.VIEWER

    await _raises(resolver, AccessDeniedError, ErrorCode.ACCESS_DENIED, token, str(uuid.uuid4()))
    await _raises(resolver, AccessDeniedError, ErrorCode.ACCESS_DENIED, token, "not-a-uuid")


@pytest.mark.asyncio
async def test_legacy_accountant_pending_access_is_denied(db_session, make_user):
    client = await make_user()
    accountant = await _legacy_accountant(db_session, client, status=AccountantAccessStatus.PENDING)

    await _raises(
        RoleResolver(db_session),
        AccessDeniedError,
        ErrorCode.ACCESS_DENIED,
        create_accountant_token(accountant.id),
        str(client.id),
    )


@pytest.mark.asyncio
async def test_legacy_edit_accountant_maps_to_contributor(db_session, make_user):
    client = await make_user()
    accountant = await _legacy_accountant(db_session, client, level=AccountantAccessLevel.EDIT)

    ctx = await RoleResolver(db_session).resolve(create_accountant_token(accountant.id), str(client.id))

    assert ctx.access_level == AccessLevel.CONTRIBUTOR
    assert Capability.WRITE in ctx.capabilities


@pytest.mark.asyncio
async def test_legacy_subcontractor_uses_active_project_grants(db_session, make_user):
    owner = await make_user()
    subcontractor = Subcontractor(
        email=unique_email("sub"),
        full_name="Sam Sparks",
        password_hash=hash_password("secret123"),
        is_password_set=True,
        status=SubcontractorStatus.ACTIVE,
        created_by_id=owner.id,
    )
    db_session.add(subcontractor)
    await db_session.flush()
    active_project, finished_project = uuid.uuid4(), uuid.uuid4()
    db_session.add_all([
        SubcontractorProjectAccess(
            subcontractor_id=subcontractor.id,
            project_id=active_project,
            user_id=owner.id,
            status=ProjectAccessStatus.ACTIVE,
            access_level=ProjectAccessLevel.VIEWER,
        ),
        SubcontractorProjectAccess(
            subcontractor_id=subcontractor.id,
            project_id=finished_project,
            user_id=owner.id,
            status=ProjectAccessStatus.COMPLETED,
            access_level=ProjectAccessLevel.CONTRIBUTOR,
        ),
    ])
    await db_session.commit()

    ctx = await RoleResolver(db_session).resolve(create_subcontractor_token(subcontractor.id))

    assert ctx.principal == Principal.SUBCONTRACTOR
    assert ctx.selected_project_id == str(active_project)
    assert ctx.target_user_id == str(owner.id)
    assert ctx.access_level == AccessLevel.VIEWER
    assert len(ctx.project_grants) == 1


@pytest.mark.asyncio
async def test_admin_token_requires_admin_record(db_session):
    resolver = RoleResolver(db_session)
    await _raises(resolver, AuthenticationError, ErrorCode.USER_NOT_FOUND, create_admin_token(uuid.uuid4()))

    admin = Admin(email=unique_email("admin"), name="Root")
    db_session.add(admin)
    await db_session.commit()

    ctx = await resolver.resolve(create_admin_token(admin.id))
    assert ctx.principal == Principal.ADMIN
    assert Capability.SYSTEM_ADMIN in ctx.capabilities

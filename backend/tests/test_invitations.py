"""Invitation lifecycle: invite, accept, reset, update and remove."""
import uuid
from datetime import datetime, timedelta

import pytest

from potion.exceptions import (
    DuplicateRoleError,
    ErrorCode,
    InvalidTokenError,
    NotFoundError,
    ValidationFailedError,
)
from potion.models import AccessLevel, RoleStatus, RoleType
from potion.security import create_access_token, decode_token, verify_password
from potion.services.invitation_service import InvitationService
from potion.services.notification_service import EmailOutbox
from tests.helpers import PASSWORD, unique_email


@pytest.fixture
def outbox():
    return EmailOutbox()


@pytest.mark.asyncio
async def test_invite_creates_pending_role_and_user(db_session, make_user, outbox):
    owner = await make_user(first_name="Olive", last_name="Owner")
    email = unique_email("Accountant").upper()

    role, reactivated = await InvitationService(db_session, outbox).invite(
        owner.id, email, RoleType.ACCOUNTANT, AccessLevel.VIEWER, name="Ada Books"
    )

    assert not reactivated
    assert role.status == RoleStatus.INVITED
    assert role.email == email.lower()
    assert role.business_owner_id == owner.id
    assert role.invited_by_id == owner.id
    assert role.invite_token_expires_at > datetime.utcnow() + timedelta(days=6)
    assert decode_token(role.invite_token)["setup"] is True

    assert role.user.first_name == "Ada"
    assert role.user.last_name == "Books"
    assert not role.user.is_password_set

    [message] = outbox.messages
    assert message.to == email.lower()
    assert message.trigger_event == "role_invited"
    assert role.invite_token in message.body
    assert "Olive Owner" in message.subject


@pytest.mark.asyncio
async def test_invite_existing_user_skips_password_setup(db_session, make_user, outbox):
    owner = await make_user()
    existing = await make_user()

    role, _ = await InvitationService(db_session, outbox).invite(owner.id, existing.email, RoleType.SUBCONTRACTOR)

    assert role.user_id == existing.id
    [message] = outbox.messages
    assert "setup-password" not in message.body
    assert "Accept Invitation" in message.body


@pytest.mark.asyncio
@pytest.mark.parametrize("role_type", [RoleType.BUSINESS_OWNER, RoleType.ADMIN])
async def test_only_team_roles_can_be_invited(db_session, make_user, role_type):
    owner = await make_user()

    with pytest.raises(ValidationFailedError) as exc_info:
        await InvitationService(db_session).invite(owner.id, unique_email(), role_type)
    assert exc_info.value.code == ErrorCode.INVALID_ROLE_TYPE


@pytest.mark.asyncio
async def test_duplicate_invite_conflicts(db_session, make_user):
    owner = await make_user()
    email = unique_email()
    service = InvitationService(db_session)
    await service.invite(owner.id, email, RoleType.ACCOUNTANT)

    with pytest.raises(DuplicateRoleError) as exc_info:
        await service.invite(owner.id, email, RoleType.ACCOUNTANT)
    assert exc_info.value.status_code == 409

    # Same person, other role type or other business: allowed
    await service.invite(owner.id, email, RoleType.SUBCONTRACTOR)
    other_owner = await make_user()
    await service.invite(other_owner.id, email, RoleType.ACCOUNTANT)


@pytest.mark.asyncio
async def test_reinviting_removed_member_reactivates_the_row(db_session, make_user, outbox):
    owner = await make_user()
    email = unique_email()
    service = InvitationService(db_session, outbox)
    role, _ = await service.invite(owner.id, email, RoleType.ACCOUNTANT, AccessLevel.VIEWER)
    await service.remove_member(owner.id, role.id)

    again, reactivated = await service.invite(owner.id, email, RoleType.ACCOUNTANT, AccessLevel.EDITOR)

    assert reactivated
    assert again.id == role.id
    assert not again.is_deleted
    assert again.deleted_at is None
    assert again.status == RoleStatus.INVITED
    assert again.access_level == AccessLevel.EDITOR
    assert again.invite_token is not None


@pytest.mark.asyncio
async def test_activation_sets_password_and_burns_token(db_session, make_user):
    owner = await make_user()
    service = InvitationService(db_session)
    role, _ = await service.invite(owner.id, unique_email(), RoleType.ACCOUNTANT)
    token = role.invite_token

    validated = await service.validate_token(token)
    assert validated.id == role.id

    activated, session_token = await service.activate(token, PASSWORD, first_name="Ada")

    assert activated.status == RoleStatus.ACTIVE
    assert activated.invite_token is None
    assert activated.user.is_password_set
    assert activated.user.first_name == "Ada"
    assert verify_password(PASSWORD, activated.user.password_hash)

    claims = decode_token(session_token)
    assert claims["roleId"] == str(role.id)
    assert claims["businessOwnerId"] == str(owner.id)

    with pytest.raises(InvalidTokenError):
        await service.activate(token, "another-password")


@pytest.mark.asyncio
async def test_expired_invite_is_rejected(db_session, make_user):
    owner = await make_user()
    service = InvitationService(db_session)
    role, _ = await service.invite(owner.id, unique_email(), RoleType.ACCOUNTANT)
    role.invite_token_expires_at = datetime.utcnow() - timedelta(minutes=1)
    await db_session.commit()

    with pytest.raises(InvalidTokenError) as exc_info:
        await service.validate_token(role.invite_token)
    assert exc_info.value.code == ErrorCode.INVALID_OR_EXPIRED_TOKEN


@pytest.mark.asyncio
async def test_session_tokens_are_not_setup_tokens(db_session, make_user):
    user = await make_user()
    service = InvitationService(db_session)

    with pytest.raises(InvalidTokenError):
        await service.validate_token(create_access_token(user.id))
    with pytest.raises(InvalidTokenError):
        await service.validate_token("garbage")


@pytest.mark.asyncio
async def test_resend_invite_replaces_the_token(db_session, make_user, outbox):
    owner = await make_user()
    service = InvitationService(db_session, outbox)
    role, _ = await service.invite(owner.id, unique_email(), RoleType.SUBCONTRACTOR)
    old_token = role.invite_token

    resent = await service.resend_invite(owner.id, role.id)

    assert resent.invite_token != old_token
    assert outbox.messages[-1].trigger_event == "invite_resent"
    with pytest.raises(InvalidTokenError):
        await service.validate_token(old_token)


@pytest.mark.asyncio
async def test_resend_invite_requires_pending_role(db_session, make_user, make_role):
    owner = await make_user()
    role = await make_role(await make_user(), RoleType.ACCOUNTANT, owner)

    with pytest.raises(NotFoundError):
        await InvitationService(db_session).resend_invite(owner.id, role.id)


@pytest.mark.asyncio
async def test_forgot_password_reissues_a_short_lived_link(db_session, make_user, make_role, outbox):
    owner = await make_user()
    member = await make_user()
    role = await make_role(member, RoleType.ACCOUNTANT, owner)

    reset = await InvitationService(db_session, outbox).forgot_password(member.email.upper())

    assert reset.id == role.id
    assert reset.status == RoleStatus.ACTIVE
    assert reset.invite_token_expires_at < datetime.utcnow() + timedelta(hours=49)
    [message] = outbox.messages
    assert message.trigger_event == "password_reset"
    assert reset.invite_token in message.body


@pytest.mark.asyncio
async def test_forgot_password_for_unknown_email_or_wrong_role(db_session, make_user, make_role):
    service = InvitationService(db_session)
    with pytest.raises(NotFoundError):
        await service.forgot_password(unique_email())

    role = await make_role(await make_user(), RoleType.ACCOUNTANT, await make_user())
    with pytest.raises(NotFoundError):
        await service.forgot_password(unique_email(), role.id)


@pytest.mark.asyncio
async def test_forgot_password_skips_deactivated_roles(db_session, make_user, make_role):
    member = await make_user()
    role = await make_role(member, RoleType.ACCOUNTANT, await make_user(), status=RoleStatus.DEACTIVATED)

    with pytest.raises(NotFoundError):
        await InvitationService(db_session).forgot_password(member.email, role.id)
    with pytest.raises(NotFoundError):
        await InvitationService(db_session).forgot_password(member.email)


@pytest.mark.asyncio
async def test_reset_link_on_active_role_sets_new_password(db_session, make_user, make_role):
    member = await make_user()
    role = await make_role(member, RoleType.ACCOUNTANT, await make_user())
    service = InvitationService(db_session)

    reset = await service.forgot_password(member.email, role.id)
    activated, session_token = await service.activate(reset.invite_token, "a-brand-new-secret")

    assert activated.status == RoleStatus.ACTIVE
    assert activated.invite_token is None
    assert verify_password("a-brand-new-secret", activated.user.password_hash)
    assert decode_token(session_token)["roleId"] == str(role.id)


# =============================================================================
# Team management
# =============================================================================

@pytest.mark.asyncio
async def test_status_changes_are_limited(db_session, make_user, make_role):
    owner = await make_user()
    service = InvitationService(db_session)
    pending, _ = await service.invite(owner.id, unique_email(), RoleType.ACCOUNTANT)
    active = await make_role(await make_user(), RoleType.ACCOUNTANT, owner)

    with pytest.raises(ValidationFailedError) as exc_info:
        await service.update_member(owner.id, pending.id, status=RoleStatus.ACTIVE)
    assert exc_info.value.code == ErrorCode.INVALID_STATUS_TRANSITION

    with pytest.raises(ValidationFailedError):
        await service.update_member(owner.id, active.id, status=RoleStatus.INVITED)

    updated = await service.update_member(
        owner.id, active.id, access_level=AccessLevel.EDITOR, status=RoleStatus.DEACTIVATED
    )
    assert updated.status == RoleStatus.DEACTIVATED
    assert updated.access_level == AccessLevel.EDITOR

    updated = await service.update_member(owner.id, active.id, status=RoleStatus.ACTIVE)
    assert updated.status == RoleStatus.ACTIVE


@pytest.mark.asyncio
async def test_project_access_is_replaced(db_session, make_user, make_role):
    owner = await make_user()
    first, second = uuid.uuid4(), uuid.uuid4()
    role = await make_role(
        await make_user(), RoleType.SUBCONTRACTOR, owner, project_access={str(first): "contributor"}
    )

    updated = await InvitationService(db_session).update_member(
        owner.id, role.id, project_access={first.hex: AccessLevel.VIEWER, str(second): "contributor"}
    )

    assert updated.project_access == {str(first): "viewer", str(second): "contributor"}


@pytest.mark.asyncio
async def test_members_of_other_businesses_look_missing(db_session, make_user, make_role):
    owner = await make_user()
    stranger = await make_user()
    role = await make_role(await make_user(), RoleType.ACCOUNTANT, owner)
    own_role = await make_role(owner, RoleType.BUSINESS_OWNER)
    service = InvitationService(db_session)

    with pytest.raises(NotFoundError):
        await service.update_member(stranger.id, role.id, access_level=AccessLevel.ADMIN)
    with pytest.raises(NotFoundError):
        await service.remove_member(stranger.id, role.id)
    with pytest.raises(NotFoundError):
        await service.remove_member(owner.id, own_role.id)


@pytest.mark.asyncio
async def test_team_listing(db_session, make_user, make_role):
    owner = await make_user()
    await make_role(owner, RoleType.BUSINESS_OWNER)
    accountant = await make_role(await make_user(), RoleType.ACCOUNTANT, owner)
    deactivated = await make_role(
        await make_user(), RoleType.SUBCONTRACTOR, owner, status=RoleStatus.DEACTIVATED
    )
    removed = await make_role(await make_user(), RoleType.SUBCONTRACTOR, owner)
    await make_role(await make_user(), RoleType.ACCOUNTANT, await make_user())
    service = InvitationService(db_session)
    await service.remove_member(owner.id, removed.id)

    team = await service.list_team(owner.id)
    assert {role.id for role in team} == {accountant.id, deactivated.id}

    subcontractors = await service.list_team(owner.id, role_type=RoleType.SUBCONTRACTOR)
    assert [role.id for role in subcontractors] == [deactivated.id]

    active = await service.list_team(owner.id, status=RoleStatus.ACTIVE)
    assert [role.id for role in active] == [accountant.id]


@pytest.mark.asyncio
async def test_removal_is_a_soft_delete(db_session, make_user, make_role):
    owner = await make_user()
    role = await make_role(await make_user(), RoleType.ACCOUNTANT, owner)

    removed = await InvitationService(db_session).remove_member(owner.id, role.id)

    assert removed.is_deleted
    assert removed.deleted_by_id == owner.id
    assert removed.deleted_at is not None
    assert await db_session.get(type(role), role.id) is not None

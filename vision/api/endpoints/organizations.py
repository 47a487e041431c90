"""
Organizations API Endpoints

Organization creation and membership moderation: joining, role changes,
bans, unbans, removals and the audit trail.
"""

from typing import List, Optional, Union
from fastapi import APIRouter, Depends, status

from vision.api.dependencies import (
    authorize_or_raise,
    get_current_user,
    get_membership_store,
    get_mutator,
    get_status_resolver,
    require_org_permission,
)
from vision.core.config import settings
from vision.core.exceptions import DomainError, MembershipError
from vision.core.permissions import MemberStatus, MembershipAction, MembershipStatus
from vision.models.user import User
from vision.schemas.organization import OrganizationCreate, OrganizationOut
from vision.schemas.organization_member import (
    OrganizationBanOut,
    OrganizationMemberOut,
    OrganizationMemberUpdate,
    OrganizationMemberWithUser,
)
from vision.schemas.membership import AuditLogOut, MemberUserOut, MembershipStatusOut, MessageResponse
from vision.services.membership import MembershipMutator
from vision.services.membership_store import MembershipStore
from vision.services.status_resolver import StatusResolver

router = APIRouter()


async def get_org_membership(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    store: MembershipStore = Depends(get_membership_store),
    resolver: StatusResolver = Depends(get_status_resolver),
) -> MembershipStatus:
    """Resolve the caller's status on an existing organization."""
    await store.require_organization(organization_id)
    return await resolver.resolve_org_status(current_user.id, organization_id)


def _require_active_member(membership: MembershipStatus) -> None:
    if not membership.is_member:
        raise MembershipError(DomainError.NOT_AUTHORIZED, "You are not a member of this organization.")


def _member_with_user(member, user: Optional[User]) -> OrganizationMemberWithUser:
    return OrganizationMemberWithUser(
        **OrganizationMemberOut.model_validate(member).model_dump(),
        username=user.username if user else None,
        user_name=user.name if user else None,
        user=MemberUserOut.model_validate(user) if user else None,
    )


# ==================== Organization ====================

@router.post("/", response_model=OrganizationOut, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    current_user: User = Depends(get_current_user),
    mutator: MembershipMutator = Depends(get_mutator),
):
    """
    Create a new organization.

    The creator becomes its first ADMIN.
    """
    return await mutator.create_organization(
        name=org_data.name,
        creator_id=current_user.id,
        description=org_data.description,
        is_private=org_data.is_private,
    )


@router.get("/{organization_id}/membership", response_model=MembershipStatusOut)
async def get_my_membership(membership: MembershipStatus = Depends(get_org_membership)):
    """Resolved role and status of the current user in the organization."""
    return MembershipStatusOut.from_status(membership)


# ==================== Members ====================

@router.get("/{organization_id}/members", response_model=List[OrganizationMemberWithUser])
async def list_members(
    organization_id: int,
    membership: MembershipStatus = Depends(get_org_membership),
    store: MembershipStore = Depends(get_membership_store),
):
    """
    List all members of an organization.

    Only active members can see the member list.
    """
    _require_active_member(membership)

    members = await store.list_org_members(organization_id)
    return [_member_with_user(member, member.user) for member in members]


@router.post("/{organization_id}/members", response_model=OrganizationMemberOut, status_code=status.HTTP_201_CREATED)
async def join_organization(
    organization_id: int,
    current_user: User = Depends(get_current_user),
    mutator: MembershipMutator = Depends(get_mutator),
):
    """
    Join a public organization as MEMBER.

    Banned users get a 403 with `ban_details`; private organizations need an invite.
    """
    return await mutator.join_organization(organization_id, current_user.id)


@router.patch(
    "/{organization_id}/members/{user_id}",
    response_model=Union[OrganizationMemberWithUser, MessageResponse],
)
async def update_member(
    organization_id: int,
    user_id: int,
    update_data: OrganizationMemberUpdate,
    membership: MembershipStatus = Depends(get_org_membership),
    current_user: User = Depends(get_current_user),
    store: MembershipStore = Depends(get_membership_store),
    mutator: MembershipMutator = Depends(get_mutator),
):
    """
    Moderate an organization member (admins only, never on oneself).

    Body (exactly one):
    - `{"role": "ADMIN" | "MODERATOR" | "MEMBER"}`: change role, returns the member with its user profile
    - `{"status": "BANNED", "ban_reason": "..."}`: ban and remove from the organization
    - `{"status": "ACTIVE"}`: lift the ban (the user may rejoin)
    """
    if update_data.role is not None:
        authorize_or_raise(membership, MembershipAction.CHANGE_ROLE, current_user.id, user_id)
        member = await mutator.change_org_role(organization_id, user_id, update_data.role, current_user.id)
        return _member_with_user(member, await store.get_user(user_id))

    if update_data.status == MemberStatus.BANNED:
        authorize_or_raise(membership, MembershipAction.BAN, current_user.id, user_id)
        message = await mutator.ban_org_member(
            organization_id, user_id, current_user.id, update_data.ban_reason
        )
        return MessageResponse(message=message)

    authorize_or_raise(membership, MembershipAction.UNBAN, current_user.id, user_id)
    await mutator.unban_org_member(organization_id, user_id, current_user.id)
    return MessageResponse(message="User unbanned successfully. They can rejoin the organization.")


@router.delete("/{organization_id}/members/{user_id}", response_model=MessageResponse)
async def remove_member(
    organization_id: int,
    user_id: int,
    membership: MembershipStatus = Depends(require_org_permission(MembershipAction.REMOVE)),
    current_user: User = Depends(get_current_user),
    mutator: MembershipMutator = Depends(get_mutator),
):
    """
    Remove a member from an organization, or leave it (target is the caller).

    The last admin can neither leave nor be removed.
    """
    message = await mutator.remove_org_member(organization_id, user_id, current_user.id)
    return MessageResponse(message=message)


# ==================== Bans ====================

@router.get("/{organization_id}/bans", response_model=List[OrganizationBanOut])
async def list_bans(
    organization_id: int,
    membership: MembershipStatus = Depends(get_org_membership),
    store: MembershipStore = Depends(get_membership_store),
):
    """List users banned from the organization (admins only)."""
    if membership.is_banned or not membership.is_admin:
        raise MembershipError(DomainError.NOT_AUTHORIZED, "Forbidden: Administrator privileges required.")

    bans = await store.list_org_bans(organization_id)
    response = []
    for ban in bans:
        ban_data = OrganizationBanOut.model_validate(ban)
        ban_data.username = ban.user.username if ban.user else None
        ban_data.banned_by_username = ban.banned_by.username if ban.banned_by else None
        response.append(ban_data)
    return response


@router.delete("/{organization_id}/bans/{user_id}", response_model=MessageResponse)
async def unban_member(
    organization_id: int,
    user_id: int,
    membership: MembershipStatus = Depends(require_org_permission(MembershipAction.UNBAN)),
    current_user: User = Depends(get_current_user),
    mutator: MembershipMutator = Depends(get_mutator),
):
    """Lift a ban. No membership is restored."""
    await mutator.unban_org_member(organization_id, user_id, current_user.id)
    return MessageResponse(message="User successfully unbanned.")


# ==================== Audit ====================

@router.get("/{organization_id}/audit-log", response_model=List[AuditLogOut])
async def get_audit_log(
    organization_id: int,
    membership: MembershipStatus = Depends(get_org_membership),
    store: MembershipStore = Depends(get_membership_store),
):
    """Most recent audit entries of the organization, newest first."""
    _require_active_member(membership)
    return await store.list_audit_logs(organization_id=organization_id, limit=settings.AUDIT_LOG_PAGE_SIZE)

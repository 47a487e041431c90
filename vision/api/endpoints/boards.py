"""
Boards API Endpoints

Board creation and board-level moderation. Board bans keep the member row
with status BANNED; the creator is an implicit admin and cannot be banned.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, status

from vision.api.dependencies import (
    get_current_user,
    get_membership_store,
    get_mutator,
    get_status_resolver,
    require_board_permission,
)
from vision.core.config import settings
from vision.core.exceptions import DomainError, MembershipError
from vision.core.permissions import MembershipAction, MembershipStatus
from vision.models.user import User
from vision.schemas.board import BoardCreate, BoardOut
from vision.schemas.board_member import (
    BoardMemberBan,
    BoardMemberOut,
    BoardMemberRoleUpdate,
    BoardMemberWithUser,
)
from vision.schemas.membership import AuditLogOut, MemberUserOut, MembershipStatusOut
from vision.services.membership import MembershipMutator
from vision.services.membership_store import MembershipStore
from vision.services.status_resolver import StatusResolver

router = APIRouter()


async def get_board_membership(
    board_id: int,
    current_user: User = Depends(get_current_user),
    resolver: StatusResolver = Depends(get_status_resolver),
) -> MembershipStatus:
    return await resolver.resolve_board_status(current_user.id, board_id)


def _member_with_user(member, user: Optional[User]) -> BoardMemberWithUser:
    return BoardMemberWithUser(
        **BoardMemberOut.model_validate(member).model_dump(),
        username=user.username if user else None,
        user_name=user.name if user else None,
        user=MemberUserOut.model_validate(user) if user else None,
    )


@router.post("/", response_model=BoardOut, status_code=status.HTTP_201_CREATED)
async def create_board(
    board_data: BoardCreate,
    current_user: User = Depends(get_current_user),
    store: MembershipStore = Depends(get_membership_store),
    resolver: StatusResolver = Depends(get_status_resolver),
    mutator: MembershipMutator = Depends(get_mutator),
):
    """
    Create a board.

    Personal boards can be created by anyone. Boards inside an organization
    require the caller to be an ADMIN or MODERATOR of it.
    """
    if board_data.organization_id is not None:
        await store.require_organization(board_data.organization_id)
        membership = await resolver.resolve_org_status(current_user.id, board_data.organization_id)
        if membership.is_banned or not membership.is_moderator_or_above:
            raise MembershipError(
                DomainError.NOT_AUTHORIZED,
                "You must be an admin or moderator of the organization to create boards in it.",
            )

    return await mutator.create_board(
        name=board_data.name,
        creator_id=current_user.id,
        description=board_data.description,
        is_private=board_data.is_private,
        organization_id=board_data.organization_id,
    )


@router.get("/{board_id}/membership", response_model=MembershipStatusOut)
async def get_my_membership(membership: MembershipStatus = Depends(get_board_membership)):
    """
    Resolved role and status of the current user on the board.

    `source` tells where the role came from: the board row, the
    organization (fallback), or board ownership.
    """
    return MembershipStatusOut.from_status(membership)


@router.get("/{board_id}/members", response_model=List[BoardMemberWithUser])
async def list_members(
    board_id: int,
    current_user: User = Depends(get_current_user),
    store: MembershipStore = Depends(get_membership_store),
):
    """List explicit board members, banned ones included."""
    await store.require_board(board_id)

    members = await store.list_board_members(board_id)
    return [_member_with_user(member, member.user) for member in members]


@router.patch("/{board_id}/members/{user_id}/role", response_model=BoardMemberWithUser)
async def change_member_role(
    board_id: int,
    user_id: int,
    role_data: BoardMemberRoleUpdate,
    membership: MembershipStatus = Depends(require_board_permission(MembershipAction.CHANGE_ROLE)),
    current_user: User = Depends(get_current_user),
    store: MembershipStore = Depends(get_membership_store),
    mutator: MembershipMutator = Depends(get_mutator),
):
    """Change a board member's role (board admins only, never on oneself)."""
    member = await mutator.change_board_role(board_id, user_id, role_data.role, current_user.id)
    return _member_with_user(member, await store.get_user(user_id))


@router.patch("/{board_id}/members/{user_id}", response_model=BoardMemberWithUser)
async def ban_member(
    board_id: int,
    user_id: int,
    ban_data: BoardMemberBan,
    membership: MembershipStatus = Depends(require_board_permission(MembershipAction.BAN)),
    current_user: User = Depends(get_current_user),
    store: MembershipStore = Depends(get_membership_store),
    mutator: MembershipMutator = Depends(get_mutator),
):
    """
    Ban a board member.

    Body: `{"status": "BANNED", "ban_reason": "..."}`. The member row is kept.
    """
    member = await mutator.ban_board_member(board_id, user_id, current_user.id, ban_data.ban_reason)
    return _member_with_user(member, await store.get_user(user_id))


@router.delete("/{board_id}/members/{user_id}", response_model=BoardMemberWithUser)
async def unban_member(
    board_id: int,
    user_id: int,
    membership: MembershipStatus = Depends(require_board_permission(MembershipAction.UNBAN)),
    current_user: User = Depends(get_current_user),
    store: MembershipStore = Depends(get_membership_store),
    mutator: MembershipMutator = Depends(get_mutator),
):
    """Lift a board ban; the member is ACTIVE again with their previous role."""
    member = await mutator.unban_board_member(board_id, user_id, current_user.id)
    return _member_with_user(member, await store.get_user(user_id))


@router.get("/{board_id}/audit-log", response_model=List[AuditLogOut])
async def get_audit_log(
    board_id: int,
    membership: MembershipStatus = Depends(get_board_membership),
    store: MembershipStore = Depends(get_membership_store),
):
    """Most recent audit entries of the board, newest first (board admins only)."""
    if membership.is_banned or not membership.is_admin:
        raise MembershipError(DomainError.NOT_AUTHORIZED, "Forbidden: Administrator privileges required.")
    return await store.list_audit_logs(board_id=board_id, limit=settings.AUDIT_LOG_PAGE_SIZE)

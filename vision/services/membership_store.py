"""
Membership Store

Data access for organizations, boards, their membership rows, bans, invites
and audit entries. Holds no policy: callers decide what a row means.

All reads that inform a mutation take `for_update=True` so PostgreSQL holds a
row lock until the surrounding transaction ends (SQLite ignores the clause).
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, List, Optional, Sequence

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vision.core.exceptions import DomainError, MembershipError
from vision.core.permissions import MemberRole, MemberStatus, InviteStatus
from vision.models.user import User
from vision.models.organization import Organization
from vision.models.organization_member import OrganizationMember
from vision.models.organization_ban import OrganizationBan
from vision.models.board import Board
from vision.models.board_member import BoardMember
from vision.models.invite import Invite
from vision.models.notification import Notification
from vision.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class MembershipStore:
    """
    Relational access layer over one AsyncSession.

    A store is built per request; it never outlives the session it wraps.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Unit of work: commit on success, roll back on any exception.

        Usage:
            async with store.transaction():
                member = await store.get_org_member(org_id, user_id, for_update=True)
                ...
        """
        try:
            yield self.session
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    def add(self, instance) -> None:
        self.session.add(instance)

    async def flush(self) -> None:
        await self.session.flush()

    async def delete(self, instance) -> None:
        await self.session.delete(instance)

    # ==================== Users ====================

    async def get_user(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    # ==================== Organizations ====================

    async def get_organization(self, organization_id: int, for_update: bool = False) -> Optional[Organization]:
        query = select(Organization).where(Organization.id == organization_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def require_organization(self, organization_id: int, for_update: bool = False) -> Organization:
        organization = await self.get_organization(organization_id, for_update=for_update)
        if organization is None:
            raise MembershipError(DomainError.RESOURCE_NOT_FOUND, "Organization not found.")
        return organization

    async def get_org_member(
        self, organization_id: int, user_id: int, for_update: bool = False
    ) -> Optional[OrganizationMember]:
        query = select(OrganizationMember).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def count_org_admins(self, organization_id: int) -> int:
        """Number of ACTIVE ADMIN rows of an organization."""
        result = await self.session.execute(
            select(func.count(OrganizationMember.id)).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.role == MemberRole.ADMIN,
                OrganizationMember.status == MemberStatus.ACTIVE,
            )
        )
        return result.scalar_one()

    async def list_org_members(self, organization_id: int) -> Sequence[OrganizationMember]:
        result = await self.session.execute(
            select(OrganizationMember)
            .options(selectinload(OrganizationMember.user))
            .where(OrganizationMember.organization_id == organization_id)
            .order_by(OrganizationMember.joined_at, OrganizationMember.id)
        )
        return result.scalars().all()

    async def delete_org_member(self, organization_id: int, user_id: int) -> int:
        """Delete a membership row. Returns the number of rows removed (0 or 1)."""
        result = await self.session.execute(
            delete(OrganizationMember).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
            )
        )
        return result.rowcount

    async def get_org_ban(
        self, organization_id: int, user_id: int, for_update: bool = False
    ) -> Optional[OrganizationBan]:
        query = select(OrganizationBan).where(
            OrganizationBan.organization_id == organization_id,
            OrganizationBan.user_id == user_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_org_bans(self, organization_id: int) -> Sequence[OrganizationBan]:
        result = await self.session.execute(
            select(OrganizationBan)
            .options(selectinload(OrganizationBan.user), selectinload(OrganizationBan.banned_by))
            .where(OrganizationBan.organization_id == organization_id)
            .order_by(OrganizationBan.banned_at.desc())
        )
        return result.scalars().all()

    async def delete_org_ban(self, organization_id: int, user_id: int) -> int:
        result = await self.session.execute(
            delete(OrganizationBan).where(
                OrganizationBan.organization_id == organization_id,
                OrganizationBan.user_id == user_id,
            )
        )
        return result.rowcount

    # ==================== Boards ====================

    async def get_board(self, board_id: int, for_update: bool = False) -> Optional[Board]:
        query = select(Board).where(Board.id == board_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def require_board(self, board_id: int, for_update: bool = False) -> Board:
        board = await self.get_board(board_id, for_update=for_update)
        if board is None:
            raise MembershipError(DomainError.RESOURCE_NOT_FOUND, "Board not found.")
        return board

    async def get_board_member(
        self, board_id: int, user_id: int, for_update: bool = False
    ) -> Optional[BoardMember]:
        query = select(BoardMember).where(
            BoardMember.board_id == board_id,
            BoardMember.user_id == user_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def count_board_admins(
        self,
        board_id: int,
        exclude_user_ids: Iterable[int] = (),
        include_banned: bool = True,
    ) -> int:
        """
        Number of ADMIN rows on a board.

        Args:
            board_id: Board to count on
            exclude_user_ids: Users left out of the count (creator, target)
            include_banned: Count BANNED rows too
        """
        query = select(func.count(BoardMember.id)).where(
            BoardMember.board_id == board_id,
            BoardMember.role == MemberRole.ADMIN,
        )
        excluded = [user_id for user_id in exclude_user_ids if user_id is not None]
        if excluded:
            query = query.where(BoardMember.user_id.notin_(excluded))
        if not include_banned:
            query = query.where(BoardMember.status != MemberStatus.BANNED)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def list_board_members(self, board_id: int) -> Sequence[BoardMember]:
        result = await self.session.execute(
            select(BoardMember)
            .options(selectinload(BoardMember.user))
            .where(BoardMember.board_id == board_id)
            .order_by(BoardMember.joined_at, BoardMember.id)
        )
        return result.scalars().all()

    # ==================== Invites ====================

    async def get_invite(self, invite_id: int, for_update: bool = False) -> Optional[Invite]:
        query = (
            select(Invite)
            .options(selectinload(Invite.organization), selectinload(Invite.board))
            .where(Invite.id == invite_id)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_pending_invite(
        self,
        user_id: int,
        organization_id: Optional[int] = None,
        board_id: Optional[int] = None,
    ) -> Optional[Invite]:
        query = select(Invite).where(
            Invite.invited_user_id == user_id,
            Invite.status == InviteStatus.PENDING,
        )
        if organization_id is not None:
            query = query.where(Invite.organization_id == organization_id)
        else:
            query = query.where(Invite.board_id == board_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def list_pending_invites(self, user_id: int) -> Sequence[Invite]:
        result = await self.session.execute(
            select(Invite)
            .options(
                selectinload(Invite.invited_by),
                selectinload(Invite.organization),
                selectinload(Invite.board),
            )
            .where(
                Invite.invited_user_id == user_id,
                Invite.status == InviteStatus.PENDING,
            )
            .order_by(Invite.created_at.desc(), Invite.id.desc())
        )
        return result.scalars().all()

    async def get_invite_notification(self, invite_id: int) -> Optional[Notification]:
        result = await self.session.execute(
            select(Notification).where(Notification.invite_id == invite_id)
        )
        return result.scalar_one_or_none()

    # ==================== Audit ====================

    async def list_audit_logs(
        self,
        organization_id: Optional[int] = None,
        board_id: Optional[int] = None,
        limit: int = 100,
    ) -> List[AuditLog]:
        query = select(AuditLog)
        if board_id is not None:
            query = query.where(AuditLog.board_id == board_id)
        elif organization_id is not None:
            query = query.where(AuditLog.organization_id == organization_id)
        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

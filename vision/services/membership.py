"""
Membership Mutator

Atomic state transitions on organization and board membership:
role changes, bans, unbans, removals, public joins and invite responses.

Each operation runs in a single store transaction. The reads that decide the
outcome (target row, admin counts, bans) are made inside that transaction
after locking the parent organization or board row, so two concurrent
mutations on the same resource cannot both pass a last-admin check.
Callers are expected to have authorized the actor already (see
vision.core.permissions.authorize).
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError

from vision.core.exceptions import DomainError, MembershipError
from vision.core.permissions import MemberRole, MemberStatus, InviteStatus
from vision.models.board import Board
from vision.models.board_member import BoardMember
from vision.models.organization import Organization
from vision.models.organization_ban import OrganizationBan
from vision.models.organization_member import OrganizationMember
from vision.services.audit import AuditRecorder
from vision.services.membership_store import MembershipStore

logger = logging.getLogger(__name__)

BAN_APPEAL_INFO = "Please contact the organization staff to appeal this ban."


def _clean_reason(reason: Optional[str]) -> Optional[str]:
    if reason is None:
        return None
    reason = reason.strip()
    return reason or None


def _ban_details(reason: Optional[str], banned_at: Optional[datetime]) -> dict:
    return {
        "ban_details": {
            "reason": reason or "No reason provided.",
            "banned_at": banned_at.isoformat() if banned_at else "N/A",
            "appeal_info": BAN_APPEAL_INFO,
        }
    }


class MembershipMutator:

    def __init__(self, store: MembershipStore, audit: AuditRecorder):
        self.store = store
        self.audit = audit

    # ==================== Creation ====================

    async def create_organization(
        self,
        name: str,
        creator_id: int,
        description: Optional[str] = None,
        is_private: bool = False,
    ) -> Organization:
        """Create an organization with its creator as the first ADMIN."""
        async with self.store.transaction():
            organization = Organization(name=name, description=description, is_private=is_private)
            self.store.add(organization)
            await self.store.flush()  # Get organization.id

            self.store.add(OrganizationMember(
                organization_id=organization.id,
                user_id=creator_id,
                role=MemberRole.ADMIN,
                status=MemberStatus.ACTIVE,
            ))
            await self.store.flush()

            await self.audit.record(
                "CREATE_ORGANIZATION", "ORGANIZATION", organization.id, creator_id,
                organization_id=organization.id,
                details={"name": name},
            )

        logger.info(f"Organization {organization.id} created by user {creator_id}")
        return organization

    async def create_board(
        self,
        name: str,
        creator_id: int,
        description: Optional[str] = None,
        is_private: bool = False,
        organization_id: Optional[int] = None,
    ) -> Board:
        """Create a board. The creator is an implicit admin, no member row is written."""
        async with self.store.transaction():
            if organization_id is not None:
                await self.store.require_organization(organization_id)

            board = Board(
                name=name,
                description=description,
                is_private=is_private,
                organization_id=organization_id,
                created_by_id=creator_id,
            )
            self.store.add(board)
            await self.store.flush()

        logger.info(f"Board {board.id} created by user {creator_id} (organization={organization_id})")
        return board

    # ==================== Organization members ====================

    async def change_org_role(
        self, organization_id: int, target_user_id: int, new_role: MemberRole, actor_id: int
    ) -> OrganizationMember:
        """
        Change the role of an ACTIVE organization member.

        Raises:
            MembershipError NOT_A_MEMBER: Target has no membership row
            MembershipError BANNED_MEMBER: Target row is not ACTIVE
            MembershipError LAST_ADMIN: Demoting the only ACTIVE ADMIN
        """
        new_role = MemberRole(new_role)

        async with self.store.transaction():
            await self.store.require_organization(organization_id, for_update=True)

            member = await self.store.get_org_member(organization_id, target_user_id, for_update=True)
            if member is None:
                raise MembershipError(DomainError.NOT_A_MEMBER, "Member not found.")
            if member.status != MemberStatus.ACTIVE:
                raise MembershipError(DomainError.BANNED_MEMBER, "Cannot change the role of a banned member.")

            old_role = member.role
            if old_role == MemberRole.ADMIN and new_role != MemberRole.ADMIN:
                if await self.store.count_org_admins(organization_id) <= 1:
                    raise MembershipError(DomainError.LAST_ADMIN, "Cannot change the role of the last admin.")

            member.role = new_role
            await self.store.flush()

            await self.audit.record(
                "UPDATE_ORGANIZATION_MEMBER_ROLE", "USER", target_user_id, actor_id,
                organization_id=organization_id,
                details={"oldRole": old_role.value, "newRole": new_role.value},
            )

        logger.info(
            f"User {actor_id} changed role of user {target_user_id} in organization "
            f"{organization_id}: {old_role.value} -> {new_role.value}"
        )
        return member

    async def ban_org_member(
        self, organization_id: int, target_user_id: int, actor_id: int, reason: Optional[str] = None
    ) -> str:
        """
        Ban a member: record an OrganizationBan and delete the membership row.

        A concurrent ban that got there first is reported as a successful ban.

        Returns:
            Outcome message
        """
        reason = _clean_reason(reason)

        try:
            async with self.store.transaction():
                await self.store.require_organization(organization_id, for_update=True)

                if await self.store.get_org_ban(organization_id, target_user_id, for_update=True):
                    raise MembershipError(DomainError.ALREADY_BANNED, "User is already banned from this organization.")

                member = await self.store.get_org_member(organization_id, target_user_id, for_update=True)
                if member is None:
                    raise MembershipError(DomainError.NOT_A_MEMBER, "User is not a member of this organization.")

                if member.role == MemberRole.ADMIN:
                    if await self.store.count_org_admins(organization_id) <= 1:
                        raise MembershipError(DomainError.LAST_ADMIN, "Cannot ban the last admin.")

                self.store.add(OrganizationBan(
                    organization_id=organization_id,
                    user_id=target_user_id,
                    ban_reason=reason,
                    banned_by_id=actor_id,
                ))
                await self.store.flush()

                removed = await self.store.delete_org_member(organization_id, target_user_id)

                await self.audit.record(
                    "BAN_ORGANIZATION_MEMBER", "USER", target_user_id, actor_id,
                    organization_id=organization_id,
                    details={"banReason": reason},
                )
        except IntegrityError:
            if await self.store.get_org_ban(organization_id, target_user_id) is None:
                raise
            logger.info(f"User {target_user_id} was banned concurrently from organization {organization_id}")
            return "User banned successfully (was already removed)."

        logger.info(f"User {actor_id} banned user {target_user_id} from organization {organization_id}")
        if not removed:
            return "User banned successfully (was already removed)."
        return "User banned and removed successfully."

    async def unban_org_member(self, organization_id: int, target_user_id: int, actor_id: int) -> None:
        """Lift an organization ban. The membership is not restored."""
        async with self.store.transaction():
            await self.store.require_organization(organization_id, for_update=True)

            if not await self.store.delete_org_ban(organization_id, target_user_id):
                raise MembershipError(DomainError.NOT_BANNED, "User is not banned from this organization.")

            await self.audit.record(
                "UNBAN_ORGANIZATION_MEMBER", "USER", target_user_id, actor_id,
                organization_id=organization_id,
            )

        logger.info(f"User {actor_id} unbanned user {target_user_id} from organization {organization_id}")

    async def remove_org_member(self, organization_id: int, target_user_id: int, actor_id: int) -> str:
        """
        Remove a member, or leave when actor and target are the same user.

        Raises:
            MembershipError NOT_A_MEMBER: Target has no membership row
            MembershipError LAST_ADMIN: Target is the only ACTIVE ADMIN
        """
        is_self = actor_id == target_user_id

        async with self.store.transaction():
            await self.store.require_organization(organization_id, for_update=True)

            member = await self.store.get_org_member(organization_id, target_user_id, for_update=True)
            if member is None:
                raise MembershipError(DomainError.NOT_A_MEMBER, "Member not found.")

            if member.role == MemberRole.ADMIN and member.status == MemberStatus.ACTIVE:
                if await self.store.count_org_admins(organization_id) <= 1:
                    raise MembershipError(
                        DomainError.LAST_ADMIN,
                        "Cannot remove the last admin. Transfer ownership first.",
                    )

            await self.store.delete(member)
            await self.store.flush()

            await self.audit.record(
                "LEAVE_ORGANIZATION" if is_self else "REMOVE_ORGANIZATION_MEMBER",
                "USER", target_user_id, actor_id,
                organization_id=organization_id,
            )

        if is_self:
            logger.info(f"User {actor_id} left organization {organization_id}")
            return "Successfully left the organization."
        logger.info(f"User {actor_id} removed user {target_user_id} from organization {organization_id}")
        return "Member removed successfully."

    async def join_organization(self, organization_id: int, user_id: int) -> OrganizationMember:
        """
        Join a public organization as MEMBER.

        Raises:
            MembershipError RESOURCE_NOT_FOUND: Organization does not exist
            MembershipError PRIVATE_RESOURCE: Organization is private
            MembershipError BANNED: User is banned (carries ban details)
            MembershipError ALREADY_MEMBER: User already has a membership row
        """
        try:
            async with self.store.transaction():
                organization = await self.store.require_organization(organization_id, for_update=True)
                if organization.is_private:
                    raise MembershipError(
                        DomainError.PRIVATE_RESOURCE,
                        "This organization is private. You need an invitation to join.",
                    )

                ban = await self.store.get_org_ban(organization_id, user_id)
                if ban is not None:
                    raise MembershipError(
                        DomainError.BANNED,
                        "You are banned from this organization.",
                        _ban_details(ban.ban_reason, ban.banned_at),
                    )

                existing = await self.store.get_org_member(organization_id, user_id, for_update=True)
                if existing is not None:
                    raise self._existing_member_error(existing)

                member = OrganizationMember(
                    organization_id=organization_id,
                    user_id=user_id,
                    role=MemberRole.MEMBER,
                    status=MemberStatus.ACTIVE,
                )
                self.store.add(member)
                await self.store.flush()

                await self.audit.record(
                    "JOIN_ORGANIZATION", "USER", user_id, user_id,
                    organization_id=organization_id,
                )
        except IntegrityError:
            existing = await self.store.get_org_member(organization_id, user_id)
            if existing is None:
                raise
            raise self._existing_member_error(existing)

        logger.info(f"User {user_id} joined organization {organization_id}")
        return member

    @staticmethod
    def _existing_member_error(member: OrganizationMember) -> MembershipError:
        if member.status == MemberStatus.BANNED:
            return MembershipError(
                DomainError.BANNED,
                "You are banned from this organization.",
                _ban_details(None, None),
            )
        return MembershipError(DomainError.ALREADY_MEMBER, "You are already a member of this organization.")

    # ==================== Board members ====================

    async def change_board_role(
        self, board_id: int, target_user_id: int, new_role: MemberRole, actor_id: int
    ) -> BoardMember:
        """
        Change the role of a board member.

        Demoting an explicit ADMIN requires another non-banned ADMIN row besides
        the creator and the target. The creator keeps implicit admin rights
        whatever their row says, so demoting them is never blocked.
        """
        new_role = MemberRole(new_role)

        async with self.store.transaction():
            board = await self.store.require_board(board_id, for_update=True)

            member = await self.store.get_board_member(board_id, target_user_id, for_update=True)
            if member is None:
                raise MembershipError(DomainError.NOT_A_MEMBER, "Target user is not a member of this board.")
            if member.status == MemberStatus.BANNED:
                raise MembershipError(DomainError.BANNED_MEMBER, "Cannot change the role of a banned member.")

            old_role = member.role
            is_creator = board.created_by_id == target_user_id
            if not is_creator and old_role == MemberRole.ADMIN and new_role != MemberRole.ADMIN:
                remaining = await self.store.count_board_admins(
                    board_id,
                    exclude_user_ids=(board.created_by_id, target_user_id),
                    include_banned=False,
                )
                if remaining < 1:
                    raise MembershipError(DomainError.LAST_ADMIN, "Cannot change the role of the last admin.")

            member.role = new_role
            await self.store.flush()

            await self.audit.record(
                "UPDATE_BOARD_MEMBER_ROLE", "USER", target_user_id, actor_id,
                organization_id=board.organization_id,
                board_id=board_id,
                details={"oldRole": old_role.value, "newRole": new_role.value},
            )

        logger.info(
            f"User {actor_id} changed role of user {target_user_id} on board "
            f"{board_id}: {old_role.value} -> {new_role.value}"
        )
        return member

    async def ban_board_member(
        self, board_id: int, target_user_id: int, actor_id: int, reason: Optional[str] = None
    ) -> BoardMember:
        """
        Ban a board member in place (the row is kept with status BANNED).

        The last-admin count covers every ADMIN row on the board, banned or
        not, and does not credit the creator's implicit admin rights.
        """
        reason = _clean_reason(reason)

        async with self.store.transaction():
            board = await self.store.require_board(board_id, for_update=True)

            member = await self.store.get_board_member(board_id, target_user_id, for_update=True)
            if member is None:
                raise MembershipError(DomainError.NOT_A_MEMBER, "Target user is not a member of this board.")
            if member.status == MemberStatus.BANNED:
                raise MembershipError(DomainError.ALREADY_BANNED, "User is already banned from this board.")
            if board.created_by_id == target_user_id:
                raise MembershipError(DomainError.CREATOR_PROTECTED, "The board creator cannot be banned.")

            if member.role == MemberRole.ADMIN:
                if await self.store.count_board_admins(board_id) <= 1:
                    raise MembershipError(DomainError.LAST_ADMIN, "Cannot ban the last admin of the board.")

            member.status = MemberStatus.BANNED
            member.banned_at = datetime.now(timezone.utc)
            member.ban_reason = reason
            member.banned_by_user_id = actor_id
            await self.store.flush()

            await self.audit.record(
                "BAN_BOARD_MEMBER", "USER", target_user_id, actor_id,
                organization_id=board.organization_id,
                board_id=board_id,
                details={"banReason": reason},
            )

        logger.info(f"User {actor_id} banned user {target_user_id} from board {board_id}")
        return member

    async def unban_board_member(self, board_id: int, target_user_id: int, actor_id: int) -> BoardMember:
        async with self.store.transaction():
            board = await self.store.require_board(board_id, for_update=True)

            member = await self.store.get_board_member(board_id, target_user_id, for_update=True)
            if member is None:
                raise MembershipError(DomainError.NOT_A_MEMBER, "User not found in this board.")
            if member.status != MemberStatus.BANNED:
                raise MembershipError(DomainError.NOT_BANNED, "User is not currently banned from this board.")

            member.status = MemberStatus.ACTIVE
            member.banned_at = None
            member.ban_reason = None
            member.banned_by_user_id = None
            await self.store.flush()

            await self.audit.record(
                "UNBAN_BOARD_MEMBER", "USER", target_user_id, actor_id,
                organization_id=board.organization_id,
                board_id=board_id,
            )

        logger.info(f"User {actor_id} unbanned user {target_user_id} from board {board_id}")
        return member

    # ==================== Invites ====================

    async def accept_invite(self, invite_id: int, user_id: int) -> str:
        return await self._respond_to_invite(invite_id, user_id, InviteStatus.ACCEPTED)

    async def decline_invite(self, invite_id: int, user_id: int) -> str:
        return await self._respond_to_invite(invite_id, user_id, InviteStatus.DECLINED)

    async def _respond_to_invite(self, invite_id: int, user_id: int, decision: InviteStatus) -> str:
        """
        Answer a pending invite.

        Accepting admits the user with role MEMBER; a user who is already an
        active member keeps their current role. The linked notification is
        marked read and detached, then the invite row is deleted.
        """
        try:
            async with self.store.transaction():
                invite = await self.store.get_invite(invite_id, for_update=True)
                if invite is None:
                    raise MembershipError(DomainError.INVITE_NOT_FOUND, "Invite not found.")
                if invite.invited_user_id != user_id:
                    raise MembershipError(
                        DomainError.INVITE_MISMATCH,
                        "You are not authorized to respond to this invite.",
                    )
                if invite.status != InviteStatus.PENDING:
                    raise MembershipError(
                        DomainError.INVITE_NOT_PENDING,
                        f"Invite has already been {invite.status.value.lower()}.",
                    )

                organization_id = invite.organization_id
                board_id = invite.board_id
                if invite.organization is not None:
                    resource_name = invite.organization.name
                elif invite.board is not None:
                    resource_name = invite.board.name
                else:
                    resource_name = "the entity"

                if decision == InviteStatus.ACCEPTED:
                    if organization_id is not None:
                        await self._admit_to_organization(organization_id, user_id)
                    else:
                        await self._admit_to_board(board_id, user_id)

                notification = await self.store.get_invite_notification(invite.id)
                if notification is not None:
                    notification.read = True
                    notification.content = (
                        f"You {decision.value.lower()} the invitation to join {resource_name}."
                    )
                    notification.invite_id = None
                    await self.store.flush()

                await self.store.delete(invite)
                await self.store.flush()

                await self.audit.record(
                    "ACCEPT_INVITE" if decision == InviteStatus.ACCEPTED else "DECLINE_INVITE",
                    "INVITE", invite_id, user_id,
                    organization_id=organization_id,
                    board_id=board_id,
                )
        except IntegrityError:
            raise MembershipError(DomainError.ALREADY_MEMBER, "You are already a member of this resource.")

        logger.info(f"User {user_id} {decision.value.lower()} invite {invite_id}")
        if decision == InviteStatus.ACCEPTED:
            return "Invitation accepted successfully."
        return "Invitation declined."

    async def _admit_to_organization(self, organization_id: int, user_id: int) -> None:
        if await self.store.get_org_ban(organization_id, user_id) is not None:
            raise MembershipError(
                DomainError.BANNED,
                "Cannot accept invite: You are banned from this organization.",
            )

        member = await self.store.get_org_member(organization_id, user_id, for_update=True)
        if member is not None:
            if member.status == MemberStatus.BANNED:
                raise MembershipError(
                    DomainError.BANNED,
                    "Cannot accept invite: You are banned from this organization.",
                )
            return

        self.store.add(OrganizationMember(
            organization_id=organization_id,
            user_id=user_id,
            role=MemberRole.MEMBER,
            status=MemberStatus.ACTIVE,
        ))
        await self.store.flush()

    async def _admit_to_board(self, board_id: int, user_id: int) -> None:
        member = await self.store.get_board_member(board_id, user_id, for_update=True)
        if member is not None:
            if member.status == MemberStatus.BANNED:
                raise MembershipError(
                    DomainError.BANNED,
                    "Cannot accept invite: You are banned from this board.",
                )
            return

        self.store.add(BoardMember(
            board_id=board_id,
            user_id=user_id,
            role=MemberRole.MEMBER,
            status=MemberStatus.ACTIVE,
        ))
        await self.store.flush()

"""
Invite Workflow

Creation and listing of invitations to organizations and boards. Responding
to an invite is delegated to the MembershipMutator.
"""

import logging
from typing import Optional, Sequence

from vision.core.exceptions import DomainError, MembershipError
from vision.core.permissions import (
    InviteStatus,
    MemberStatus,
    MembershipAction,
    authorize,
    require,
)
from vision.models.invite import Invite
from vision.models.notification import Notification
from vision.services.audit import AuditRecorder
from vision.services.membership import MembershipMutator
from vision.services.membership_store import MembershipStore
from vision.services.status_resolver import StatusResolver

logger = logging.getLogger(__name__)


class InviteWorkflow:

    def __init__(
        self,
        store: MembershipStore,
        resolver: StatusResolver,
        mutator: MembershipMutator,
        audit: AuditRecorder,
    ):
        self.store = store
        self.resolver = resolver
        self.mutator = mutator
        self.audit = audit

    async def create_invite(
        self,
        inviter_id: int,
        username: str,
        organization_id: Optional[int] = None,
        board_id: Optional[int] = None,
    ) -> Invite:
        """
        Invite a user, by username, to one organization or one board.

        Checks run in this order: invitee exists, not self, resource exists,
        inviter may invite, invitee is eligible, no pending invite. The invite
        and its notification are written in one transaction.

        The pending-invite check is a pre-check; two concurrent requests can
        both pass it.
        """
        username = username.strip()

        async with self.store.transaction():
            invitee = await self.store.get_user_by_username(username)
            if invitee is None:
                raise MembershipError(DomainError.USER_NOT_FOUND, f"User with username '{username}' not found.")
            if invitee.id == inviter_id:
                raise MembershipError(DomainError.SELF_INVITE, "You cannot invite yourself.")

            if organization_id is not None:
                resource = await self.store.require_organization(organization_id)
                inviter_status = await self.resolver.resolve_org_status(inviter_id, organization_id)
                resource_label = "organization"
            else:
                resource = await self.store.require_board(board_id)
                inviter_status = await self.resolver.resolve_board_status(inviter_id, board_id)
                resource_label = "board"

            decision = authorize(inviter_status, MembershipAction.INVITE, inviter_id)
            if not decision.allowed:
                logger.info(f"User {inviter_id} denied inviting to {resource_label} {resource.id}: {decision.reason.value}")
            require(decision)

            if organization_id is not None:
                await self._check_org_invitee(organization_id, invitee.id, username)
            else:
                await self._check_board_invitee(board_id, invitee.id, username)

            pending = await self.store.find_pending_invite(invitee.id, organization_id=organization_id, board_id=board_id)
            if pending is not None:
                raise MembershipError(
                    DomainError.INVITE_PENDING,
                    f"An invitation is already pending for user '{username}' for this resource.",
                )

            invite = Invite(
                invited_username=username,
                invited_user=invitee,
                invited_by_id=inviter_id,
                organization_id=organization_id,
                board_id=board_id,
                status=InviteStatus.PENDING,
            )
            self.store.add(invite)
            await self.store.flush()

            if organization_id is not None:
                link = f"/organization/{organization_id}"
            else:
                link = f"/board/{board_id}"
            self.store.add(Notification(
                user_id=invitee.id,
                type="INVITE",
                content=f"You have been invited to join the {resource_label} {resource.name}.",
                link=link,
                invite_id=invite.id,
                inviter_id=inviter_id,
                organization_id=organization_id,
                board_id=board_id,
            ))
            await self.store.flush()

            await self.audit.record(
                "CREATE_INVITE", "INVITE", invite.id, inviter_id,
                organization_id=organization_id,
                board_id=board_id,
                details={"invitedUserId": invitee.id, "invitedUsername": username},
            )

        logger.info(f"User {inviter_id} invited user {invitee.id} to {resource_label} {resource.id}")
        return invite

    async def _check_org_invitee(self, organization_id: int, invitee_id: int, username: str) -> None:
        member = await self.store.get_org_member(organization_id, invitee_id)
        if member is not None and member.status == MemberStatus.ACTIVE:
            raise MembershipError(
                DomainError.ALREADY_MEMBER,
                f"User '{username}' is already a member of this organization.",
            )
        if member is not None or await self.store.get_org_ban(organization_id, invitee_id) is not None:
            raise MembershipError(
                DomainError.INVITEE_BANNED,
                f"User '{username}' is banned from this organization.",
            )

    async def _check_board_invitee(self, board_id: int, invitee_id: int, username: str) -> None:
        status = await self.resolver.resolve_board_status(invitee_id, board_id)
        if status.is_banned:
            raise MembershipError(
                DomainError.INVITEE_BANNED,
                f"User '{username}' is banned from this board.",
            )
        if status.role is not None or status.is_creator:
            raise MembershipError(
                DomainError.ALREADY_MEMBER,
                f"User '{username}' is already involved with this board (directly or via organization).",
            )

    async def list_pending(self, user_id: int) -> Sequence[Invite]:
        """The user's PENDING invites, newest first, with inviter and resource loaded."""
        return await self.store.list_pending_invites(user_id)

    async def respond(self, invite_id: int, responder_id: int, decision: InviteStatus) -> str:
        decision = InviteStatus(decision)
        if decision == InviteStatus.ACCEPTED:
            return await self.mutator.accept_invite(invite_id, responder_id)
        if decision == InviteStatus.DECLINED:
            return await self.mutator.decline_invite(invite_id, responder_id)
        raise MembershipError(
            DomainError.INVALID_REQUEST,
            "Invalid status provided. Must be ACCEPTED or DECLINED.",
        )

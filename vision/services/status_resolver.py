"""
Status Resolver

Turns membership rows into a normalized MembershipStatus for a user on an
organization or a board.
"""

from vision.core.permissions import GUEST, MemberRole, MemberStatus, MembershipStatus
from vision.services.membership_store import MembershipStore


class StatusResolver:

    def __init__(self, store: MembershipStore):
        self.store = store

    async def resolve_org_status(self, user_id: int, organization_id: int) -> MembershipStatus:
        """
        Status of a user in an organization.

        No row means guest. Any non-ACTIVE status counts as banned.
        """
        member = await self.store.get_org_member(organization_id, user_id)
        if member is None:
            return GUEST

        return MembershipStatus(
            role=member.role,
            status=member.status,
            is_member=member.status == MemberStatus.ACTIVE,
            is_banned=member.status != MemberStatus.ACTIVE,
            is_admin=member.role == MemberRole.ADMIN,
            source="organization",
        )

    async def resolve_board_status(self, user_id: int, board_id: int) -> MembershipStatus:
        """
        Status of a user on a board.

        Resolution order:
        1. The user's BoardMember row
        2. For organization boards, the user's OrganizationMember row
        3. Guest

        The board creator is an admin and a member whatever the rows say.

        Raises:
            MembershipError RESOURCE_NOT_FOUND: If the board does not exist
        """
        board = await self.store.require_board(board_id)
        is_creator = board.created_by_id == user_id

        member = await self.store.get_board_member(board_id, user_id)
        if member is not None:
            return MembershipStatus(
                role=member.role,
                status=member.status,
                is_member=member.status == MemberStatus.ACTIVE or is_creator,
                is_banned=member.status == MemberStatus.BANNED,
                is_admin=member.role == MemberRole.ADMIN or is_creator,
                is_creator=is_creator,
                source="board",
            )

        if board.organization_id is not None:
            org_member = await self.store.get_org_member(board.organization_id, user_id)
            if org_member is not None:
                return MembershipStatus(
                    role=org_member.role,
                    status=org_member.status,
                    is_member=org_member.status == MemberStatus.ACTIVE or is_creator,
                    is_banned=org_member.status == MemberStatus.BANNED,
                    is_admin=org_member.role == MemberRole.ADMIN or is_creator,
                    is_creator=is_creator,
                    source="organization_fallback",
                )

        if is_creator:
            return MembershipStatus(is_member=True, is_admin=True, is_creator=True, source="creator")

        return GUEST

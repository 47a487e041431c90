"""
Integration tests for invitations.

Endpoints:
- POST /api/invites/ - Invite a user to an organization or a board
- GET /api/invites/ - List the caller's pending invites
- PATCH /api/invites/{invite_id} - Accept or decline
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vision.core.permissions import InviteStatus, MemberRole, MemberStatus
from vision.models.audit_log import AuditLog
from vision.models.board_member import BoardMember
from vision.models.invite import Invite
from vision.models.notification import Notification
from vision.models.organization_member import OrganizationMember
from tests.factories import (
    BoardFactory,
    BoardMemberFactory,
    InviteFactory,
    OrganizationBanFactory,
    OrganizationFactory,
    OrganizationMemberFactory,
    UserFactory,
)


async def create_org_invite(db_session: AsyncSession, organization, inviter, invitee, **kwargs):
    return await InviteFactory.create_async(
        db_session,
        invited_username=invitee.username,
        invited_user_id=invitee.id,
        invited_by_id=inviter.id,
        organization_id=organization.id,
        **kwargs
    )


async def get_org_member(db_session: AsyncSession, organization_id: int, user_id: int):
    result = await db_session.execute(
        select(OrganizationMember)
        .filter(OrganizationMember.organization_id == organization_id, OrganizationMember.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_invite(db_session: AsyncSession, invite_id: int):
    result = await db_session.execute(
        select(Invite).filter(Invite.id == invite_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@pytest.mark.asyncio
class TestCreateOrganizationInvite:
    """Test POST /api/invites/ for organizations."""

    async def test_admin_invites_user(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers
    ):
        invitee = await UserFactory.create_async(db_session, username="dana", name="Dana Scully")
        await db_session.commit()

        response = await client.post(
            "/api/invites/",
            json={"username": "  dana ", "organization_id": organization.id},
            headers=auth_headers
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Invitation sent successfully to Dana Scully"

        invite = await get_invite(db_session, data["invite_id"])
        assert invite.invited_user_id == invitee.id
        assert invite.invited_username == "dana"
        assert invite.invited_by_id == user.id
        assert invite.status == InviteStatus.PENDING
        assert invite.board_id is None

        result = await db_session.execute(select(Notification).filter(Notification.invite_id == invite.id))
        notification = result.scalar_one()
        assert notification.user_id == invitee.id
        assert notification.type == "INVITE"
        assert notification.link == f"/organization/{organization.id}"
        assert notification.read is False

        audit = await db_session.execute(select(AuditLog).filter(AuditLog.action == "CREATE_INVITE"))
        entry = audit.scalar_one()
        assert entry.entity_type == "INVITE"
        assert entry.details == {"invitedUserId": invitee.id, "invitedUsername": "dana"}

    async def test_moderator_can_invite(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        auth_headers_for
    ):
        moderator = await UserFactory.create_async(db_session)
        await OrganizationMemberFactory.create_async(
            db_session, organization_id=organization.id, user_id=moderator.id, role=MemberRole.MODERATOR
        )
        invitee = await UserFactory.create_async(db_session)
        await db_session.commit()

        response = await client.post(
            "/api/invites/",
            json={"username": invitee.username, "organization_id": organization.id},
            headers=auth_headers_for(moderator)
        )

        assert response.status_code == 201

    async def test_member_cannot_invite(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        auth_headers_for
    ):
        member_user = await UserFactory.create_async(db_session)
        await OrganizationMemberFactory.create_async(
            db_session, organization_id=organization.id, user_id=member_user.id
        )
        invitee = await UserFactory.create_async(db_session)
        await db_session.commit()

        response = await client.post(
            "/api/invites/",
            json={"username": invitee.username, "organization_id": organization.id},
            headers=auth_headers_for(member_user)
        )

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_AUTHORIZED"

    async def test_unknown_username(self, client: AsyncClient, organization, auth_headers):
        response = await client.post(
            "/api/invites/",
            json={"username": "nobody", "organization_id": organization.id},
            headers=auth_headers
        )

        assert response.status_code == 404
        data = response.json()
        assert data["code"] == "USER_NOT_FOUND"
        assert data["detail"] == "User with username 'nobody' not found."

    async def test_invite_self(self, client: AsyncClient, organization, user, auth_headers):
        response = await client.post(
            "/api/invites/",
            json={"username": user.username, "organization_id": organization.id},
            headers=auth_headers
        )

        assert response.status_code == 400
        assert response.json()["code"] == "SELF_INVITE"

    async def test_missing_organization(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        auth_headers
    ):
        invitee = await UserFactory.create_async(db_session)
        await db_session.commit()

        response = await client.post(
            "/api/invites/",
            json={"username": invitee.username, "organization_id": 99999},
            headers=auth_headers
        )

        assert response.status_code == 404
        assert response.json()["code"] == "RESOURCE_NOT_FOUND"

    async def test_invitee_already_member(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        auth_headers
    ):
        invitee = await UserFactory.create_async(db_session)
        await OrganizationMemberFactory.create_async(
            db_session, organization_id=organization.id, user_id=invitee.id
        )
        await db_session.commit()

        response = await client.post(
            "/api/invites/",
            json={"username": invitee.username, "organization_id": organization.id},
            headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_MEMBER"

    async def test_invitee_banned(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers
    ):
        invitee = await UserFactory.create_async(db_session)
        await OrganizationBanFactory.create_async(
            db_session, organization_id=organization.id, user_id=invitee.id, banned_by_id=user.id
        )
        await db_session.commit()

        response = await client.post(
            "/api/invites/",
            json={"username": invitee.username, "organization_id": organization.id},
            headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVITEE_BANNED"

    async def test_invite_already_pending(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        auth_headers
    ):
        invitee = await UserFactory.create_async(db_session)
        await db_session.commit()
        body = {"username": invitee.username, "organization_id": organization.id}

        first = await client.post("/api/invites/", json=body, headers=auth_headers)
        second = await client.post("/api/invites/", json=body, headers=auth_headers)

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["code"] == "INVITE_PENDING"

        result = await db_session.execute(select(Invite).filter(Invite.invited_user_id == invitee.id))
        assert len(result.scalars().all()) == 1

    async def test_invalid_body(self, client: AsyncClient, auth_headers):
        for body in [
            {"username": "alice"},
            {"username": "alice", "organization_id": 1, "board_id": 1},
            {"username": "   ", "organization_id": 1},
        ]:
            response = await client.post("/api/invites/", json=body, headers=auth_headers)
            assert response.status_code == 400
            assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
class TestCreateBoardInvite:
    """Test POST /api/invites/ for boards."""

    async def test_creator_invites_to_board(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        board,
        auth_headers
    ):
        invitee = await UserFactory.create_async(db_session)
        await db_session.commit()

        response = await client.post(
            "/api/invites/",
            json={"username": invitee.username, "board_id": board.id},
            headers=auth_headers
        )

        assert response.status_code == 201
        invite = await get_invite(db_session, response.json()["invite_id"])
        assert invite.board_id == board.id
        assert invite.organization_id is None

        result = await db_session.execute(select(Notification).filter(Notification.invite_id == invite.id))
        assert result.scalar_one().link == f"/board/{board.id}"

    async def test_invitee_banned_from_board(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        board,
        auth_headers
    ):
        invitee = await UserFactory.create_async(db_session)
        await BoardMemberFactory.create_async(
            db_session, board_id=board.id, user_id=invitee.id, status=MemberStatus.BANNED
        )
        await db_session.commit()

        response = await client.post(
            "/api/invites/",
            json={"username": invitee.username, "board_id": board.id},
            headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVITEE_BANNED"

    async def test_invitee_covered_by_organization(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers
    ):
        org_board = await BoardFactory.create_async(
            db_session, created_by_id=user.id, organization_id=organization.id
        )
        invitee = await UserFactory.create_async(db_session)
        await OrganizationMemberFactory.create_async(
            db_session, organization_id=organization.id, user_id=invitee.id
        )
        await db_session.commit()

        response = await client.post(
            "/api/invites/",
            json={"username": invitee.username, "board_id": org_board.id},
            headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_MEMBER"

    async def test_board_guest_cannot_invite(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        board,
        auth_headers_for
    ):
        outsider = await UserFactory.create_async(db_session)
        invitee = await UserFactory.create_async(db_session)
        await db_session.commit()

        response = await client.post(
            "/api/invites/",
            json={"username": invitee.username, "board_id": board.id},
            headers=auth_headers_for(outsider)
        )

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_AUTHORIZED"


@pytest.mark.asyncio
class TestListInvites:
    """Test GET /api/invites/."""

    async def test_list_pending_invites(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        board,
        user,
        auth_headers_for
    ):
        invitee = await UserFactory.create_async(db_session)
        await create_org_invite(db_session, organization, user, invitee)
        await InviteFactory.create_async(
            db_session,
            invited_username=invitee.username,
            invited_user_id=invitee.id,
            invited_by_id=user.id,
            board_id=board.id
        )
        other_org = await OrganizationFactory.create_async(db_session)
        await create_org_invite(db_session, other_org, user, invitee, status=InviteStatus.DECLINED)
        await db_session.commit()

        response = await client.get("/api/invites/", headers=auth_headers_for(invitee))

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 2
        assert all(item["status"] == "PENDING" for item in data)
        assert all(item["inviter_name"] == user.name for item in data)
        names = {(item["organization_name"], item["board_name"]) for item in data}
        assert names == {(organization.name, None), (None, board.name)}

    async def test_list_only_own_invites(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers
    ):
        invitee = await UserFactory.create_async(db_session)
        await create_org_invite(db_session, organization, user, invitee)
        await db_session.commit()

        response = await client.get("/api/invites/", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == []


@pytest.mark.asyncio
class TestRespondToInvite:
    """Test PATCH /api/invites/{invite_id}."""

    async def test_accept_organization_invite(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers_for
    ):
        invitee = await UserFactory.create_async(db_session)
        invite = await create_org_invite(db_session, organization, user, invitee)
        await db_session.commit()
        invite_id, org_id, invitee_id = invite.id, organization.id, invitee.id

        response = await client.patch(
            f"/api/invites/{invite_id}",
            json={"status": "ACCEPTED"},
            headers=auth_headers_for(invitee)
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Invitation accepted successfully."

        member = await get_org_member(db_session, org_id, invitee_id)
        assert member.role == MemberRole.MEMBER
        assert member.status == MemberStatus.ACTIVE
        assert await get_invite(db_session, invite_id) is None

        result = await db_session.execute(
            select(Notification)
            .filter(Notification.user_id == invitee_id)
            .execution_options(populate_existing=True)
        )
        notification = result.scalar_one()
        assert notification.read is True
        assert notification.invite_id is None
        assert notification.content == f"You accepted the invitation to join {organization.name}."

        audit = await db_session.execute(select(AuditLog).filter(AuditLog.action == "ACCEPT_INVITE"))
        entry = audit.scalar_one()
        assert entry.entity_id == str(invite_id)
        assert entry.organization_id == org_id

    async def test_decline_invite(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers_for
    ):
        invitee = await UserFactory.create_async(db_session)
        invite = await create_org_invite(db_session, organization, user, invitee)
        await db_session.commit()

        response = await client.patch(
            f"/api/invites/{invite.id}",
            json={"status": "DECLINED"},
            headers=auth_headers_for(invitee)
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Invitation declined."
        assert await get_org_member(db_session, organization.id, invitee.id) is None
        assert await get_invite(db_session, invite.id) is None

        audit = await db_session.execute(select(AuditLog).filter(AuditLog.action == "DECLINE_INVITE"))
        assert audit.scalar_one() is not None

    async def test_accept_board_invite(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        board,
        user,
        auth_headers_for
    ):
        invitee = await UserFactory.create_async(db_session)
        invite = await InviteFactory.create_async(
            db_session,
            invited_username=invitee.username,
            invited_user_id=invitee.id,
            invited_by_id=user.id,
            board_id=board.id
        )
        await db_session.commit()

        response = await client.patch(
            f"/api/invites/{invite.id}",
            json={"status": "ACCEPTED"},
            headers=auth_headers_for(invitee)
        )

        assert response.status_code == 200
        result = await db_session.execute(
            select(BoardMember).filter(BoardMember.board_id == board.id, BoardMember.user_id == invitee.id)
        )
        member = result.scalar_one()
        assert member.role == MemberRole.MEMBER
        assert member.status == MemberStatus.ACTIVE

    async def test_accept_keeps_existing_role(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers_for
    ):
        invitee = await UserFactory.create_async(db_session)
        await OrganizationMemberFactory.create_async(
            db_session, organization_id=organization.id, user_id=invitee.id, role=MemberRole.MODERATOR
        )
        invite = await create_org_invite(db_session, organization, user, invitee)
        await db_session.commit()

        response = await client.patch(
            f"/api/invites/{invite.id}",
            json={"status": "ACCEPTED"},
            headers=auth_headers_for(invitee)
        )

        assert response.status_code == 200
        member = await get_org_member(db_session, organization.id, invitee.id)
        assert member.role == MemberRole.MODERATOR

    async def test_accept_when_banned_meanwhile(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers_for
    ):
        invitee = await UserFactory.create_async(db_session)
        invite = await create_org_invite(db_session, organization, user, invitee)
        await OrganizationBanFactory.create_async(
            db_session, organization_id=organization.id, user_id=invitee.id, banned_by_id=user.id
        )
        await db_session.commit()

        response = await client.patch(
            f"/api/invites/{invite.id}",
            json={"status": "ACCEPTED"},
            headers=auth_headers_for(invitee)
        )

        assert response.status_code == 403
        assert response.json()["code"] == "BANNED"
        assert await get_org_member(db_session, organization.id, invitee.id) is None
        # The failed acceptance leaves the invite untouched
        assert await get_invite(db_session, invite.id) is not None

    async def test_respond_to_someone_elses_invite(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers_for
    ):
        invitee = await UserFactory.create_async(db_session)
        intruder = await UserFactory.create_async(db_session)
        invite = await create_org_invite(db_session, organization, user, invitee)
        await db_session.commit()

        response = await client.patch(
            f"/api/invites/{invite.id}",
            json={"status": "ACCEPTED"},
            headers=auth_headers_for(intruder)
        )

        assert response.status_code == 403
        assert response.json()["code"] == "INVITE_MISMATCH"
        assert await get_org_member(db_session, organization.id, intruder.id) is None

    async def test_invite_not_found(self, client: AsyncClient, auth_headers):
        response = await client.patch("/api/invites/99999", json={"status": "ACCEPTED"}, headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "INVITE_NOT_FOUND"

    async def test_invite_not_pending(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers_for
    ):
        invitee = await UserFactory.create_async(db_session)
        invite = await create_org_invite(
            db_session, organization, user, invitee, status=InviteStatus.DECLINED, with_notification=False
        )
        await db_session.commit()

        response = await client.patch(
            f"/api/invites/{invite.id}",
            json={"status": "ACCEPTED"},
            headers=auth_headers_for(invitee)
        )

        assert response.status_code == 409
        data = response.json()
        assert data["code"] == "INVITE_NOT_PENDING"
        assert data["detail"] == "Invite has already been declined."

    async def test_invalid_decision(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        organization,
        user,
        auth_headers_for
    ):
        invitee = await UserFactory.create_async(db_session)
        invite = await create_org_invite(db_session, organization, user, invitee)
        await db_session.commit()

        response = await client.patch(
            f"/api/invites/{invite.id}",
            json={"status": "PENDING"},
            headers=auth_headers_for(invitee)
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"

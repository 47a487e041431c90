"""
Invites API Endpoints

Invite users to organizations and boards, list and answer one's own invites.
"""

from typing import List
from fastapi import APIRouter, Depends, status

from vision.api.dependencies import get_current_user, get_invite_workflow
from vision.models.user import User
from vision.schemas.invite import InviteCreate, InviteCreated, InviteOut, InviteResponse
from vision.schemas.membership import MessageResponse
from vision.services.invites import InviteWorkflow

router = APIRouter()


@router.post("/", response_model=InviteCreated, status_code=status.HTTP_201_CREATED)
async def create_invite(
    invite_data: InviteCreate,
    current_user: User = Depends(get_current_user),
    workflow: InviteWorkflow = Depends(get_invite_workflow),
):
    """
    Invite a user by username to an organization or a board.

    Requires ADMIN or MODERATOR on the resource (board creators count as ADMIN,
    organization roles apply to organization boards). The invitee receives a
    notification.
    """
    invite = await workflow.create_invite(
        inviter_id=current_user.id,
        username=invite_data.username,
        organization_id=invite_data.organization_id,
        board_id=invite_data.board_id,
    )
    display_name = invite.invited_user.name or invite.invited_username
    return InviteCreated(
        message=f"Invitation sent successfully to {display_name}",
        invite_id=invite.id,
    )


@router.get("/", response_model=List[InviteOut])
async def list_invites(
    current_user: User = Depends(get_current_user),
    workflow: InviteWorkflow = Depends(get_invite_workflow),
):
    """Pending invites of the current user, newest first."""
    invites = await workflow.list_pending(current_user.id)
    response = []
    for invite in invites:
        invite_data = InviteOut.model_validate(invite)
        invite_data.inviter_name = invite.invited_by.name if invite.invited_by else None
        invite_data.organization_name = invite.organization.name if invite.organization else None
        invite_data.board_name = invite.board.name if invite.board else None
        response.append(invite_data)
    return response


@router.patch("/{invite_id}", response_model=MessageResponse)
async def respond_to_invite(
    invite_id: int,
    response_data: InviteResponse,
    current_user: User = Depends(get_current_user),
    workflow: InviteWorkflow = Depends(get_invite_workflow),
):
    """
    Accept or decline an invite addressed to the current user.

    Body: `{"status": "ACCEPTED" | "DECLINED"}`. The invite is removed once answered.
    """
    message = await workflow.respond(invite_id, current_user.id, response_data.status)
    return MessageResponse(message=message)

"""
Pydantic schemas for Invites.
"""

from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field, field_validator, model_validator

from vision.core.permissions import InviteStatus


class InviteCreate(BaseModel):
    """
    Schema for inviting a user by username.

    Exactly one of `organization_id` or `board_id` must be given.
    """
    username: str = Field(..., max_length=50)
    organization_id: Optional[int] = Field(None, gt=0)
    board_id: Optional[int] = Field(None, gt=0)

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username is required")
        return value

    @model_validator(mode="after")
    def check_single_resource(self):
        if self.organization_id is None and self.board_id is None:
            raise ValueError("Either organization_id or board_id is required")
        if self.organization_id is not None and self.board_id is not None:
            raise ValueError("Cannot invite to both an organization and a board simultaneously")
        return self


class InviteResponse(BaseModel):
    """Schema for answering an invite"""
    status: Literal["ACCEPTED", "DECLINED"]


class InviteCreated(BaseModel):
    message: str
    invite_id: int


class InviteOut(BaseModel):
    """Pending invite as shown to the invitee"""
    id: int
    invited_username: str
    invited_by_id: Optional[int] = None
    inviter_name: Optional[str] = None
    organization_id: Optional[int] = None
    organization_name: Optional[str] = None
    board_id: Optional[int] = None
    board_name: Optional[str] = None
    status: InviteStatus
    created_at: datetime

    class Config:
        from_attributes = True

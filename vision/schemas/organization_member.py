"""
Pydantic schemas for Organization Members and bans.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from vision.core.permissions import MemberRole, MemberStatus
from vision.schemas.membership import MemberUserOut


class OrganizationMemberUpdate(BaseModel):
    """
    Schema for updating an organization member.

    Exactly one of:
    - `role`: change the member's role
    - `status: BANNED` (with optional `ban_reason`): ban the member
    - `status: ACTIVE`: lift an existing ban
    """
    role: Optional[MemberRole] = None
    status: Optional[MemberStatus] = None
    ban_reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_single_change(self):
        if (self.role is None) == (self.status is None):
            raise ValueError("Invalid request. Provide 'role' or 'status' ('ACTIVE'/'BANNED').")
        return self


class OrganizationMemberOut(BaseModel):
    """Schema for organization member output"""
    id: int
    organization_id: int
    user_id: int
    role: MemberRole
    status: MemberStatus
    joined_at: datetime

    class Config:
        from_attributes = True


class OrganizationMemberWithUser(OrganizationMemberOut):
    """Organization member with user details"""
    username: Optional[str] = None
    user_name: Optional[str] = None
    user: Optional[MemberUserOut] = None


class OrganizationBanOut(BaseModel):
    """Schema for an organization ban"""
    id: int
    organization_id: int
    user_id: int
    username: Optional[str] = None
    ban_reason: Optional[str] = None
    banned_by_id: Optional[int] = None
    banned_by_username: Optional[str] = None
    banned_at: datetime

    class Config:
        from_attributes = True

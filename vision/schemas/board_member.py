"""
Pydantic schemas for Board Members.
"""

from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field

from vision.core.permissions import MemberRole, MemberStatus
from vision.schemas.membership import MemberUserOut


class BoardMemberRoleUpdate(BaseModel):
    """Schema for changing a board member's role"""
    role: MemberRole


class BoardMemberBan(BaseModel):
    """Schema for banning a board member. Only 'BANNED' is accepted."""
    status: Literal["BANNED"]
    ban_reason: Optional[str] = Field(None, max_length=500)


class BoardMemberOut(BaseModel):
    """Schema for board member output"""
    id: int
    board_id: int
    user_id: int
    role: MemberRole
    status: MemberStatus
    banned_at: Optional[datetime] = None
    ban_reason: Optional[str] = None
    banned_by_user_id: Optional[int] = None
    joined_at: datetime

    class Config:
        from_attributes = True


class BoardMemberWithUser(BoardMemberOut):
    """Board member with user details"""
    username: Optional[str] = None
    user_name: Optional[str] = None
    user: Optional[MemberUserOut] = None

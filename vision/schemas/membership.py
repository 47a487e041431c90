"""
Pydantic schemas shared by the organization and board membership endpoints.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel

from vision.core.permissions import MemberRole, MemberStatus, MembershipStatus


class MessageResponse(BaseModel):
    message: str


class MembershipStatusOut(BaseModel):
    """Resolved membership of the current user on a resource"""
    role: Optional[MemberRole] = None
    effective_role: Optional[MemberRole] = None
    status: Optional[MemberStatus] = None
    is_member: bool
    is_banned: bool
    is_admin: bool
    is_creator: bool
    is_moderator_or_above: bool
    source: Optional[str] = None

    @classmethod
    def from_status(cls, status: MembershipStatus) -> "MembershipStatusOut":
        return cls(
            role=status.role,
            effective_role=status.effective_role,
            status=status.status,
            is_member=status.is_member,
            is_banned=status.is_banned,
            is_admin=status.is_admin,
            is_creator=status.is_creator,
            is_moderator_or_above=status.is_moderator_or_above,
            source=status.source,
        )


class AuditLogOut(BaseModel):
    """Audit entry as listed to admins"""
    id: int
    organization_id: Optional[int] = None
    board_id: Optional[int] = None
    user_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MemberUserOut(BaseModel):
    """Public profile of a member"""
    id: int
    username: str
    name: Optional[str] = None
    email: str

    class Config:
        from_attributes = True

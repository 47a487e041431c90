"""
Permission system for organization and board membership.

Defines roles, statuses, membership actions, the role permission matrix and
the policy guard that turns a resolved membership status into an
authorization decision.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union

from vision.core.exceptions import DomainError, MembershipError


class MemberRole(str, Enum):
    """Roles for organization and board members"""
    ADMIN = "ADMIN"          # Full control of the resource and its members
    MODERATOR = "MODERATOR"  # Can invite new members
    MEMBER = "MEMBER"        # Baseline participation


class MemberStatus(str, Enum):
    """Status of a membership row"""
    ACTIVE = "ACTIVE"
    BANNED = "BANNED"


class InviteStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class MembershipAction(str, Enum):
    """Mutating actions on another member (or on oneself for REMOVE)"""
    CHANGE_ROLE = "CHANGE_ROLE"
    BAN = "BAN"
    UNBAN = "UNBAN"
    REMOVE = "REMOVE"
    INVITE = "INVITE"


MODERATOR_OR_ABOVE = frozenset({MemberRole.ADMIN, MemberRole.MODERATOR})

# Actions a member may perform on *other* members of the same resource
ROLE_PERMISSIONS: Dict[MemberRole, FrozenSet[MembershipAction]] = {
    MemberRole.ADMIN: frozenset({
        MembershipAction.CHANGE_ROLE,
        MembershipAction.BAN,
        MembershipAction.UNBAN,
        MembershipAction.REMOVE,
        MembershipAction.INVITE,
    }),
    MemberRole.MODERATOR: frozenset({
        MembershipAction.INVITE,
    }),
    MemberRole.MEMBER: frozenset(),
}

# Actions that can never target the caller through member management
SELF_FORBIDDEN_ACTIONS = frozenset({
    MembershipAction.CHANGE_ROLE,
    MembershipAction.BAN,
    MembershipAction.UNBAN,
})


@dataclass(frozen=True)
class MembershipStatus:
    """
    Normalized membership of a user in an organization or board.

    Attributes:
        role: Stored role, or the organization role when a board falls back to it
        status: Stored status of the row the role came from
        is_member: Row exists and is ACTIVE (board creators always count)
        is_banned: Row exists with a non-active status
        is_admin: Role is ADMIN, or the user created the board
        is_creator: User created the board (always False for organizations)
        source: Where the role came from ('organization', 'board',
            'organization_fallback', 'creator') or None for guests
    """
    role: Optional[MemberRole] = None
    status: Optional[MemberStatus] = None
    is_member: bool = False
    is_banned: bool = False
    is_admin: bool = False
    is_creator: bool = False
    source: Optional[str] = None

    @property
    def effective_role(self) -> Optional[MemberRole]:
        """Role used for authorization: ownership implies ADMIN."""
        if self.is_creator:
            return MemberRole.ADMIN
        return self.role

    @property
    def is_moderator_or_above(self) -> bool:
        return self.effective_role in MODERATOR_OR_ABOVE

    @property
    def is_guest(self) -> bool:
        return self.role is None and not self.is_creator


GUEST = MembershipStatus()


@dataclass(frozen=True)
class Authorized:
    status: MembershipStatus

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    reason: DomainError
    message: str

    @property
    def allowed(self) -> bool:
        return False

    def to_error(self) -> MembershipError:
        return MembershipError(self.reason, self.message)


Decision = Union[Authorized, Denied]


def has_permission(role: Optional[MemberRole], action: MembershipAction) -> bool:
    """
    Check if a role may perform a membership action on other members.

    Args:
        role: Effective role (None for guests)
        action: Membership action being performed

    Returns:
        True if the role matrix grants the action
    """
    if role is None:
        return False
    return action in ROLE_PERMISSIONS.get(role, frozenset())


def authorize(
    status: MembershipStatus,
    action: MembershipAction,
    actor_id: int,
    target_id: Optional[int] = None,
) -> Decision:
    """
    Decide whether the caller may perform `action` on `target_id`.

    Args:
        status: Caller's resolved status on the resource
        action: Membership action being attempted
        actor_id: Caller's user id
        target_id: Member being acted upon (None for INVITE)

    Returns:
        Authorized(status) or Denied(reason, message)
    """
    is_self = target_id is not None and target_id == actor_id

    if action == MembershipAction.REMOVE and is_self:
        # Leaving is always allowed here; the last-admin rule lives in the mutator
        return Authorized(status)

    if status.is_banned:
        return Denied(DomainError.BANNED_CALLER, "Forbidden: You are banned from this resource.")

    if is_self and action in SELF_FORBIDDEN_ACTIONS:
        return Denied(
            DomainError.SELF_ACTION,
            "Forbidden: Admins cannot modify their own role or status here.",
        )

    if not has_permission(status.effective_role, action):
        if action == MembershipAction.INVITE:
            message = "You do not have permission to invite members to this resource."
        else:
            message = "Forbidden: Administrator privileges required."
        return Denied(DomainError.NOT_AUTHORIZED, message)

    return Authorized(status)


def require(decision: Decision) -> MembershipStatus:
    """Return the authorized status or raise the denial as a MembershipError."""
    if isinstance(decision, Denied):
        raise decision.to_error()
    return decision.status

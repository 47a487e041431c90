"""
Domain errors raised by the membership core.

Every failure the core can report is an enumerated DomainError. Mutations
raise MembershipError inside their transaction so the store rolls back, and a
single exception handler maps the code to an HTTP status.
"""

from enum import Enum
from typing import Any, Dict, Optional


class DomainError(str, Enum):
    # Authorization
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    SELF_ACTION = "SELF_ACTION"
    BANNED_CALLER = "BANNED_CALLER"
    CREATOR_PROTECTED = "CREATOR_PROTECTED"
    # Invariants / preconditions
    LAST_ADMIN = "LAST_ADMIN"
    ALREADY_BANNED = "ALREADY_BANNED"
    NOT_BANNED = "NOT_BANNED"
    BANNED_MEMBER = "BANNED_MEMBER"
    NOT_A_MEMBER = "NOT_A_MEMBER"
    ALREADY_MEMBER = "ALREADY_MEMBER"
    BANNED = "BANNED"
    PRIVATE_RESOURCE = "PRIVATE_RESOURCE"
    # Invites
    SELF_INVITE = "SELF_INVITE"
    INVITEE_BANNED = "INVITEE_BANNED"
    INVITE_PENDING = "INVITE_PENDING"
    INVITE_NOT_FOUND = "INVITE_NOT_FOUND"
    INVITE_NOT_PENDING = "INVITE_NOT_PENDING"
    INVITE_MISMATCH = "INVITE_MISMATCH"
    # Lookups / input
    USER_NOT_FOUND = "USER_NOT_FOUND"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"


DOMAIN_ERROR_STATUS: Dict[DomainError, int] = {
    DomainError.LAST_ADMIN: 400,
    DomainError.ALREADY_BANNED: 400,
    DomainError.NOT_BANNED: 400,
    DomainError.SELF_INVITE: 400,
    DomainError.INVALID_REQUEST: 400,
    DomainError.NOT_AUTHORIZED: 403,
    DomainError.SELF_ACTION: 403,
    DomainError.BANNED_CALLER: 403,
    DomainError.CREATOR_PROTECTED: 403,
    DomainError.INVITE_MISMATCH: 403,
    DomainError.PRIVATE_RESOURCE: 403,
    DomainError.BANNED: 403,
    DomainError.NOT_A_MEMBER: 404,
    DomainError.BANNED_MEMBER: 404,
    DomainError.USER_NOT_FOUND: 404,
    DomainError.RESOURCE_NOT_FOUND: 404,
    DomainError.INVITE_NOT_FOUND: 404,
    DomainError.ALREADY_MEMBER: 409,
    DomainError.INVITEE_BANNED: 409,
    DomainError.INVITE_PENDING: 409,
    DomainError.INVITE_NOT_PENDING: 409,
}


class MembershipError(Exception):
    """
    A domain or authorization failure.

    Args:
        code: Enumerated reason
        message: User-facing message
        details: Optional structured payload (e.g. ban details)
    """

    def __init__(self, code: DomainError, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    @property
    def status_code(self) -> int:
        return DOMAIN_ERROR_STATUS.get(self.code, 400)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code.value}
        if self.details:
            body.update(self.details)
        return body

    def __repr__(self):
        return f"<MembershipError(code='{self.code.value}', message='{self.message}')>"

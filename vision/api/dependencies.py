import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from vision.db.session import SessionAsync
from vision.models.user import User
from vision.core.security import decode_access_token

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/token",
    description="Bearer token issued by the Project Vision auth service"
)

async def get_db():
    async with SessionAsync() as session:
        yield session


async def get_current_user(
        token: str = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db),
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        user_id: str = payload.get("sub")
        tv = payload.get("tv")
        if user_id is None or tv is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if not user or int(tv) != int(user.token_version or 1):
        raise credentials_exception
    return user

# ==================== Service Providers ====================

from vision.core.permissions import (  # noqa: E402
    MembershipAction,
    MembershipStatus,
    authorize,
    require,
)
from vision.services.audit import AuditRecorder  # noqa: E402
from vision.services.invites import InviteWorkflow  # noqa: E402
from vision.services.membership import MembershipMutator  # noqa: E402
from vision.services.membership_store import MembershipStore  # noqa: E402
from vision.services.status_resolver import StatusResolver  # noqa: E402


def get_membership_store(db: AsyncSession = Depends(get_db)) -> MembershipStore:
    return MembershipStore(db)


def get_status_resolver(store: MembershipStore = Depends(get_membership_store)) -> StatusResolver:
    return StatusResolver(store)


def get_audit_recorder(db: AsyncSession = Depends(get_db)) -> AuditRecorder:
    return AuditRecorder(db)


def get_mutator(
    store: MembershipStore = Depends(get_membership_store),
    audit: AuditRecorder = Depends(get_audit_recorder),
) -> MembershipMutator:
    return MembershipMutator(store, audit)


def get_invite_workflow(
    store: MembershipStore = Depends(get_membership_store),
    resolver: StatusResolver = Depends(get_status_resolver),
    mutator: MembershipMutator = Depends(get_mutator),
    audit: AuditRecorder = Depends(get_audit_recorder),
) -> InviteWorkflow:
    return InviteWorkflow(store, resolver, mutator, audit)


# ==================== Permission Dependencies ====================

def authorize_or_raise(
    membership: MembershipStatus,
    action: MembershipAction,
    actor_id: int,
    target_id: int = None,
) -> MembershipStatus:
    """
    Run the policy guard and raise its denial as a MembershipError.

    Denials are logged at INFO; they never reach the mutator.
    """
    decision = authorize(membership, action, actor_id, target_id)
    if not decision.allowed:
        logger.info(
            f"Denied {action.value} by user {actor_id} on user {target_id}: {decision.reason.value}"
        )
    return require(decision)


def require_org_permission(action: MembershipAction):
    """
    Factory to create a dependency that checks the caller may perform
    `action` on the member `user_id` of organization `organization_id`.

    Usage:
        @router.delete("/{organization_id}/bans/{user_id}")
        async def unban_member(
            organization_id: int,
            user_id: int,
            membership = Depends(require_org_permission(MembershipAction.UNBAN)),
        ):
            ...

    Raises:
        MembershipError RESOURCE_NOT_FOUND: If the organization does not exist
        MembershipError (403): If the guard denies the action
    """
    async def permission_checker(
        organization_id: int,
        user_id: int,
        current_user: User = Depends(get_current_user),
        store: MembershipStore = Depends(get_membership_store),
        resolver: StatusResolver = Depends(get_status_resolver),
    ) -> MembershipStatus:
        await store.require_organization(organization_id)
        membership = await resolver.resolve_org_status(current_user.id, organization_id)
        return authorize_or_raise(membership, action, current_user.id, user_id)

    return permission_checker


def require_board_permission(action: MembershipAction):
    """
    Same as require_org_permission, for the member `user_id` of board `board_id`.

    The board creator is authorized as ADMIN; without a board row the
    caller's organization role applies.
    """
    async def permission_checker(
        board_id: int,
        user_id: int,
        current_user: User = Depends(get_current_user),
        resolver: StatusResolver = Depends(get_status_resolver),
    ) -> MembershipStatus:
        membership = await resolver.resolve_board_status(current_user.id, board_id)
        return authorize_or_raise(membership, action, current_user.id, user_id)

    return permission_checker

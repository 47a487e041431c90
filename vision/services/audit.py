"""
Audit Recorder

Append-only audit trail for membership mutations. Entries are written inside
a SAVEPOINT so a failed insert never takes the surrounding mutation with it.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vision.core.logging import capture_error
from vision.models.audit_log import AuditLog
from vision.models.board import Board

logger = logging.getLogger(__name__)


class AuditRecorder:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[Any],
        actor_id: Optional[int],
        organization_id: Optional[int] = None,
        board_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """
        Write one audit entry in the caller's transaction.

        Board-scoped entries get the board's organization when none is given.

        Returns:
            The AuditLog row, or None when writing it failed (the failure is
            logged and reported, never raised)
        """
        try:
            if board_id is not None and organization_id is None:
                board = await self.session.get(Board, board_id)
                if board is not None:
                    organization_id = board.organization_id

            async with self.session.begin_nested():
                entry = AuditLog(
                    organization_id=organization_id,
                    board_id=board_id,
                    user_id=actor_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=str(entity_id) if entity_id is not None else None,
                    details=details,
                )
                self.session.add(entry)
            return entry
        except SQLAlchemyError as e:
            logger.error(f"Failed to write audit entry {action}: {e}", exc_info=True)
            capture_error(
                e,
                context={
                    "action": action,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "organization_id": organization_id,
                    "board_id": board_id,
                },
                user={"id": actor_id} if actor_id is not None else None,
                tags={"component": "audit"},
            )
            return None

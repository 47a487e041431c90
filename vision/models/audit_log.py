from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, BigInteger, ForeignKey, DateTime, JSON
from vision.db.base import Base


class AuditLog(Base):
    """
    Append-only record of a membership mutation.

    Written by the AuditRecorder after every successful mutation; the core
    never reads it back except for the audit-log listing endpoints.
    """
    __tablename__ = "audit_logs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, index=True)

    # Scope
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True)
    board_id = Column(Integer, ForeignKey("boards.id", ondelete="CASCADE"), nullable=True, index=True)

    # Actor
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # What happened
    action = Column(String(64), nullable=False, index=True)  # 'BAN_BOARD_MEMBER', ...
    entity_type = Column(String(32), nullable=False)  # 'USER', 'INVITE', 'ORGANIZATION', ...
    entity_id = Column(String(64), nullable=True)
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity='{self.entity_type}:{self.entity_id}')>"

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from vision.core.permissions import InviteStatus
from vision.db.base import Base


class Invite(Base):
    """
    Invitation of a user to exactly one organization or board.

    Invites are deleted once answered, so only PENDING rows are normally stored.
    """
    __tablename__ = "invites"

    id = Column(Integer, primary_key=True, index=True)
    invited_username = Column(String(50), nullable=False)
    invited_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    invited_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True)
    board_id = Column(Integer, ForeignKey("boards.id", ondelete="CASCADE"), nullable=True, index=True)
    status = Column(
        Enum(InviteStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=InviteStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    # Relationships
    invited_user = relationship("User", foreign_keys=[invited_user_id])
    invited_by = relationship("User", foreign_keys=[invited_by_id])
    organization = relationship("Organization", back_populates="invites")
    board = relationship("Board", back_populates="invites")

    __table_args__ = (
        CheckConstraint(
            "(organization_id IS NULL) <> (board_id IS NULL)",
            name="ck_invite_single_resource",
        ),
    )

    def __repr__(self):
        return f"<Invite(id={self.id}, user_id={self.invited_user_id}, org_id={self.organization_id}, board_id={self.board_id}, status='{self.status}')>"

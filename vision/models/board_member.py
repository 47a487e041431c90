from datetime import datetime, timezone
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Text, UniqueConstraint, Enum
from sqlalchemy.orm import relationship
from vision.core.permissions import MemberRole, MemberStatus
from vision.db.base import Base


class BoardMember(Base):
    """
    Association table linking Users to Boards.

    Attributes:
        role: Member's role on the board ('ADMIN', 'MODERATOR', 'MEMBER')
        status: 'ACTIVE' or 'BANNED'. Board bans are kept in place on this row
        banned_at, ban_reason, banned_by_user_id: set while BANNED, cleared on unban
    """
    __tablename__ = "board_members"

    id = Column(Integer, primary_key=True, index=True)
    board_id = Column(Integer, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    role = Column(
        Enum(MemberRole, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MemberRole.MEMBER,
    )
    status = Column(
        Enum(MemberStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MemberStatus.ACTIVE,
    )

    # Ban fields
    banned_at = Column(DateTime(timezone=True), nullable=True)
    ban_reason = Column(Text, nullable=True)
    banned_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    board = relationship("Board", back_populates="members")
    user = relationship("User", foreign_keys=[user_id], back_populates="board_memberships")
    banned_by = relationship("User", foreign_keys=[banned_by_user_id])

    # Constraints
    __table_args__ = (
        UniqueConstraint('board_id', 'user_id', name='uq_board_user'),
    )

    def __repr__(self):
        return f"<BoardMember(board_id={self.board_id}, user_id={self.user_id}, role='{self.role}', status='{self.status}')>"

    @property
    def is_banned(self):
        return self.status == MemberStatus.BANNED

from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from vision.db.base import Base


class Board(Base):
    """
    Feedback board, either personal (no organization) or owned by an organization.

    The creator is always an implicit admin, whatever the BoardMember rows say.
    """
    __tablename__ = "boards"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), index=True, nullable=False)
    description = Column(Text, nullable=True)
    is_private = Column(Boolean, default=False, nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    organization = relationship("Organization", back_populates="boards")
    created_by = relationship("User", foreign_keys=[created_by_id])
    members = relationship("BoardMember", back_populates="board", cascade="all, delete-orphan")
    invites = relationship("Invite", back_populates="board", cascade="all, delete-orphan")

    @property
    def is_personal(self):
        return self.organization_id is None

    def __repr__(self):
        return f"<Board(id={self.id}, name='{self.name}', org_id={self.organization_id})>"

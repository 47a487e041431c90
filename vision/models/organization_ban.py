from datetime import datetime, timezone
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from vision.db.base import Base


class OrganizationBan(Base):
    """
    Exclusion of a user from an organization, independent of membership.

    Created by a ban (which deletes the OrganizationMember row) and deleted
    by an unban. Unbanning does not recreate the membership.
    """
    __tablename__ = "organization_bans"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ban_reason = Column(Text, nullable=True)
    banned_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    banned_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    organization = relationship("Organization", back_populates="bans")
    user = relationship("User", foreign_keys=[user_id])
    banned_by = relationship("User", foreign_keys=[banned_by_id])

    __table_args__ = (
        UniqueConstraint('organization_id', 'user_id', name='uq_organization_ban_user'),
    )

    def __repr__(self):
        return f"<OrganizationBan(org_id={self.organization_id}, user_id={self.user_id})>"

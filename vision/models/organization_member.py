from datetime import datetime, timezone
from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint, Enum
from sqlalchemy.orm import relationship
from vision.core.permissions import MemberRole, MemberStatus
from vision.db.base import Base


class OrganizationMember(Base):
    """
    Association table linking Users to Organizations.

    At most one row per (user, organization). Banning deletes the row and
    records an OrganizationBan instead.
    """
    __tablename__ = "organization_members"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
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
    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="organization_memberships")

    # Constraints
    __table_args__ = (
        UniqueConstraint('organization_id', 'user_id', name='uq_organization_user'),
    )

    def __repr__(self):
        return f"<OrganizationMember(org_id={self.organization_id}, user_id={self.user_id}, role='{self.role}')>"

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from vision.db.base import Base


class User(Base):
    """
    Identity mirrored from the external auth system.

    Only the fields the membership core needs are kept here; passwords and
    OAuth tokens live with the auth provider.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=True)
    email = Column(String(100), unique=True, index=True, nullable=False)
    token_version = Column(Integer, default=1, nullable=False)  # invalidate old JWTs
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    organization_memberships = relationship("OrganizationMember", back_populates="user")
    board_memberships = relationship(
        "BoardMember", foreign_keys="[BoardMember.user_id]", back_populates="user"
    )

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"

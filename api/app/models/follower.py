"""Follower model."""

from uuid import uuid4

from sqlalchemy import TIMESTAMP, Column, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import relationship

from app.database import Base, utcnow


class Follower(Base):
    """A visitor who asked to receive updates about a profile. Write-once."""

    __tablename__ = "profile_followers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    profile_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    follower_name = Column(Text, nullable=False)
    follower_email = Column(String, nullable=False)
    follower_message = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (Index("idx_profile_followers_profile", profile_id, created_at.desc()),)

    profile = relationship("Profile", back_populates="followers")

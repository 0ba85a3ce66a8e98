"""Recommendation model for visitor-written endorsements."""

from uuid import uuid4

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import relationship

from app.database import Base, utcnow

RECOMMENDATION_STATUSES = ("pending", "approved", "rejected")


class Recommendation(Base):
    """
    Recommendation left on a profile.

    Created as ``pending`` by any visitor; only the profile owner moves it to
    ``approved`` or ``rejected``.
    """

    __tablename__ = "profile_recommendations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    profile_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    recommender_name = Column(Text, nullable=False)
    recommender_email = Column(String)
    recommender_title = Column(Text)
    content = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="pending", server_default=text("'pending'"))
    is_public = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_recommendation_status",
        ),
        CheckConstraint("length(content) <= 10000", name="ck_recommendation_content_length"),
        Index("idx_recommendations_profile_status", profile_id, status),
    )

    profile = relationship("Profile", back_populates="recommendations")

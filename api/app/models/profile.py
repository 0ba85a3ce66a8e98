"""Profile model for owner-editable profile content."""

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    CheckConstraint,
    Column,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.database import Base, utcnow


class Profile(Base):
    """
    User profile.

    The id is the auth principal id. ``profile_sections`` is a denormalized
    projection of the section/field rows, rebuilt after every row-level write.
    """

    __tablename__ = "profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True)
    username = Column(String(32), unique=True)
    full_name = Column(Text)
    bio = Column(Text)
    avatar_url = Column(Text)
    background_url = Column(Text)
    website = Column(Text)
    email = Column(String)
    profile_sections = Column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
        server_default=text("'{}'"),
    )
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint("length(username) >= 3", name="ck_profile_username_length"),
    )

    sections = relationship(
        "ProfileSection",
        back_populates="profile",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProfileSection.display_order",
    )
    recommendations = relationship(
        "Recommendation",
        back_populates="profile",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    followers = relationship(
        "Follower",
        back_populates="profile",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

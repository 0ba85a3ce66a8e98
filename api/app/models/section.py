"""Profile section and section field models."""

from uuid import uuid4

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import relationship

from app.database import Base, utcnow

FIELD_TYPES = ("text", "url", "email", "date", "textarea")


class ProfileSection(Base):
    """A titled, ordered group of fields owned by one profile."""

    __tablename__ = "profile_sections"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    profile_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    title = Column(Text, nullable=False)
    # Not unique: duplicates are disambiguated by title
    section_key = Column(Text, nullable=False)
    display_order = Column(Integer, nullable=False, default=0, server_default=text("0"))
    is_public = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_profile_sections_profile_order", profile_id, display_order),
        Index("idx_profile_sections_profile_key", profile_id, section_key),
    )

    profile = relationship("Profile", back_populates="sections")
    fields = relationship(
        "ProfileSectionField",
        back_populates="section",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProfileSectionField.display_order",
    )


class ProfileSectionField(Base):
    """A typed label/value pair inside a section."""

    __tablename__ = "profile_section_fields"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    section_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profile_sections.id", ondelete="CASCADE"),
        nullable=False,
    )
    field_key = Column(Text, nullable=False)
    field_label = Column(Text, nullable=False)
    field_value = Column(Text, nullable=False, default="", server_default=text("''"))
    field_type = Column(Text, nullable=False, default="text", server_default=text("'text'"))
    display_order = Column(Integer, nullable=False, default=0, server_default=text("0"))
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "field_type IN ('text', 'url', 'email', 'date', 'textarea')",
            name="ck_profile_section_field_type",
        ),
        Index("idx_profile_section_fields_section_order", section_id, display_order),
    )

    section = relationship("ProfileSection", back_populates="fields")

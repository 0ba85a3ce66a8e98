"""Profile-related Pydantic schemas."""

import re
from typing import Any, Literal

from pydantic import BaseModel, EmailStr, field_validator

from app.schemas.sections import SectionResponse

ModalType = Literal["profile", "bio", "work", "work-item", "sections", "section-edit"]


class CreateProfileRequest(BaseModel):
    """Request to create the signed-in principal's profile."""

    username: str
    full_name: str | None = None
    email: EmailStr | None = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Validate username format: 3-32 chars, lowercase alphanumeric, underscore and hyphen."""
        if not re.match(r"^[a-z0-9_-]{3,32}$", v):
            raise ValueError(
                "Username must be 3-32 characters: lowercase letters, numbers, underscores and hyphens"
            )
        return v


class ProfileResponse(BaseModel):
    """Owner view of a profile, including the raw section cache."""

    id: str
    username: str | None
    full_name: str | None
    bio: str | None
    avatar_url: str | None
    background_url: str | None
    website: str | None
    email: str | None
    profile_sections: dict[str, Any]
    created_at: str
    updated_at: str


class PublicProfileResponse(BaseModel):
    """Visitor view of a profile."""

    id: str
    username: str | None
    full_name: str | None
    bio: str | None
    avatar_url: str | None
    background_url: str | None
    website: str | None
    sections: list[SectionResponse]
    # Note: email is NOT included - it's private


class ProfileUpdateRequest(BaseModel):
    """One editor submission, dispatched on ``modal_type``."""

    modal_type: ModalType
    payload: dict[str, Any]
    work_item_index: int | None = None
    section_key: str | None = None

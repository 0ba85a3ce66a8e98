"""Follower schemas."""

from pydantic import BaseModel, EmailStr, field_validator


class CreateFollowerRequest(BaseModel):
    name: str
    email: EmailStr
    message: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty")
        if len(v) > 100:
            raise ValueError("Name must be 100 characters or less")
        return v.strip()

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str | None) -> str | None:
        if v is not None and len(v) > 1000:
            raise ValueError("Message must be 1000 characters or less")
        return v


class FollowerResponse(BaseModel):
    id: str
    profile_id: str
    follower_name: str
    follower_email: str
    follower_message: str | None
    created_at: str


class ListFollowersResponse(BaseModel):
    followers: list[FollowerResponse]

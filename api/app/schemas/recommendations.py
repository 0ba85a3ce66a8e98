"""Recommendation schemas."""

from typing import Literal

from pydantic import BaseModel, EmailStr, field_validator

RecommendationStatus = Literal["pending", "approved", "rejected"]


class CreateRecommendationRequest(BaseModel):
    """A visitor's recommendation; always stored as pending."""

    recommender_name: str
    recommender_email: EmailStr | None = None
    recommender_title: str | None = None
    content: str

    @field_validator("recommender_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty")
        if len(v) > 100:
            raise ValueError("Name must be 100 characters or less")
        return v.strip()

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Validate content length."""
        if not v.strip():
            raise ValueError("Recommendation cannot be empty")
        if len(v) > 5000:
            raise ValueError("Recommendation must be 5000 characters or less")
        return v


class UpdateRecommendationRequest(BaseModel):
    """Owner moderation: decide a pending recommendation and/or toggle visibility."""

    status: Literal["approved", "rejected"] | None = None
    is_public: bool | None = None


class RecommendationResponse(BaseModel):
    id: str
    profile_id: str
    recommender_name: str
    recommender_title: str | None
    content: str
    status: str
    is_public: bool
    created_at: str


class ListRecommendationsResponse(BaseModel):
    recommendations: list[RecommendationResponse]

"""Pydantic schemas for request/response validation."""

from app.schemas.followers import CreateFollowerRequest, FollowerResponse, ListFollowersResponse
from app.schemas.profiles import (
    CreateProfileRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    PublicProfileResponse,
)
from app.schemas.recommendations import (
    CreateRecommendationRequest,
    ListRecommendationsResponse,
    RecommendationResponse,
    UpdateRecommendationRequest,
)
from app.schemas.sections import (
    CreateSectionRequest,
    FieldResponse,
    SectionResponse,
    UpdateSectionRequest,
)

__all__ = [
    "CreateFollowerRequest",
    "FollowerResponse",
    "ListFollowersResponse",
    "CreateProfileRequest",
    "ProfileResponse",
    "ProfileUpdateRequest",
    "PublicProfileResponse",
    "CreateRecommendationRequest",
    "ListRecommendationsResponse",
    "RecommendationResponse",
    "UpdateRecommendationRequest",
    "CreateSectionRequest",
    "FieldResponse",
    "SectionResponse",
    "UpdateSectionRequest",
]

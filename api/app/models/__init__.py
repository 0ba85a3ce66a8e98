"""Database models for the profile sections API."""

from app.models.follower import Follower
from app.models.profile import Profile
from app.models.recommendation import RECOMMENDATION_STATUSES, Recommendation
from app.models.section import FIELD_TYPES, ProfileSection, ProfileSectionField

__all__ = [
    "Profile",
    "ProfileSection",
    "ProfileSectionField",
    "FIELD_TYPES",
    "Recommendation",
    "RECOMMENDATION_STATUSES",
    "Follower",
]

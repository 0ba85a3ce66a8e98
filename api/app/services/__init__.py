"""Services for the Profile Sections API."""

from app.services.invalidation import InvalidationBus, ProfileViewCache
from app.services.profile_updates import ProfileUpdateService
from app.services.reconciliation import SectionEditor
from app.services.section_store import SectionStore, StoreResult

__all__ = [
    "InvalidationBus",
    "ProfileViewCache",
    "ProfileUpdateService",
    "SectionEditor",
    "SectionStore",
    "StoreResult",
]

"""Profile router: signup, owner reads, public lookups and editor submissions."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import Principal, get_current_principal
from app.database import get_db
from app.errors import ConflictError, NotFoundError
from app.models.profile import Profile
from app.schemas.profiles import (
    CreateProfileRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    PublicProfileResponse,
)
from app.schemas.sections import SectionResponse
from app.services.invalidation import ProfileViewCache, get_profile_view_cache
from app.services.profile_updates import ProfileUpdateService, get_update_service
from app.services.section_store import SectionStore, as_uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def _profile_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=str(profile.id),
        username=profile.username,
        full_name=profile.full_name,
        bio=profile.bio,
        avatar_url=profile.avatar_url,
        background_url=profile.background_url,
        website=profile.website,
        email=profile.email,
        profile_sections=profile.profile_sections or {},
        created_at=_iso(profile.created_at),
        updated_at=_iso(profile.updated_at),
    )


async def _public_profile(
    db: AsyncSession, profile: Profile, cache: ProfileViewCache
) -> PublicProfileResponse:
    sections = (await SectionStore(db).list_sections_with_fields(profile.id)).unwrap()
    response = PublicProfileResponse(
        id=str(profile.id),
        username=profile.username,
        full_name=profile.full_name,
        bio=profile.bio,
        avatar_url=profile.avatar_url,
        background_url=profile.background_url,
        website=profile.website,
        sections=[SectionResponse.model_validate(s) for s in sections if s.is_public],
    )
    cache.store(response.model_dump())
    return response


# --- Signup ---


@router.post(
    "",
    response_model=ProfileResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_profile(
    data: CreateProfileRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> ProfileResponse:
    """
    Create the signed-in principal's profile.

    The profile id is the principal id, so each principal owns at most one.
    """
    if await db.get(Profile, principal.id) is not None:
        raise ConflictError("Profile already exists")

    result = await db.execute(
        select(Profile.id).where(func.lower(Profile.username) == data.username.lower())
    )
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Username already taken", field="username")

    profile = Profile(
        id=principal.id,
        username=data.username,
        full_name=data.full_name,
        email=data.email,
        profile_sections={},
    )
    db.add(profile)
    await db.commit()
    logger.info("Created profile %s (%s)", profile.id, profile.username)
    return _profile_response(profile)


# --- Owner view ---


@router.get(
    "/me",
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK,
)
async def get_my_profile(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> ProfileResponse:
    profile = await db.get(Profile, principal.id, populate_existing=True)
    if profile is None:
        raise NotFoundError("Profile not found")
    return _profile_response(profile)


# --- Public views ---


@router.get(
    "/by-username/{username}",
    response_model=PublicProfileResponse,
    status_code=status.HTTP_200_OK,
)
async def get_profile_by_username(
    username: str,
    db: AsyncSession = Depends(get_db),
    cache: ProfileViewCache = Depends(get_profile_view_cache),
) -> PublicProfileResponse:
    """Public profile with its public sections. Username lookup is case-insensitive."""
    cached = cache.get_by_username(username)
    if cached is not None:
        return PublicProfileResponse(**cached)

    result = await db.execute(
        select(Profile).where(func.lower(Profile.username) == username.lower())
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        raise NotFoundError("Profile not found")
    return await _public_profile(db, profile, cache)


@router.get(
    "/{profile_id}",
    response_model=PublicProfileResponse,
    status_code=status.HTTP_200_OK,
)
async def get_profile(
    profile_id: str,
    db: AsyncSession = Depends(get_db),
    cache: ProfileViewCache = Depends(get_profile_view_cache),
) -> PublicProfileResponse:
    cached = cache.get_by_id(profile_id)
    if cached is not None:
        return PublicProfileResponse(**cached)

    pid = as_uuid(profile_id)
    profile = await db.get(Profile, pid) if pid else None
    if profile is None:
        raise NotFoundError("Profile not found")
    return await _public_profile(db, profile, cache)


# --- Editor submissions ---


@router.patch(
    "/{profile_id}",
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK,
)
async def update_profile(
    profile_id: str,
    data: ProfileUpdateRequest,
    service: ProfileUpdateService = Depends(get_update_service),
) -> ProfileResponse:
    """
    Apply one editor submission to the caller's own profile.

    ``modal_type`` selects the editor: profile, bio, work, work-item, sections
    or section-edit (which needs ``section_key``).
    """
    profile = await service.apply_profile_update(
        profile_id,
        data.modal_type,
        data.payload,
        work_item_index=data.work_item_index,
        section_key=data.section_key,
    )
    return _profile_response(profile)

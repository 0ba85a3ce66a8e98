"""Follower router: visitor sign-ups and the owner's follower list."""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.errors import NotFoundError
from app.middleware.rate_limit import limiter
from app.models.follower import Follower
from app.models.profile import Profile
from app.schemas.followers import CreateFollowerRequest, FollowerResponse, ListFollowersResponse
from app.services.profile_updates import ProfileUpdateService, get_update_service
from app.services.section_store import as_uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/profiles/{profile_id}/followers", tags=["Followers"])


def _follower_response(follower: Follower) -> FollowerResponse:
    return FollowerResponse(
        id=str(follower.id),
        profile_id=str(follower.profile_id),
        follower_name=follower.follower_name,
        follower_email=follower.follower_email,
        follower_message=follower.follower_message,
        created_at=follower.created_at.isoformat() if follower.created_at else "",
    )


@router.post(
    "",
    response_model=FollowerResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.follower_rate_limit)
async def follow_profile(
    request: Request,
    profile_id: str,
    data: CreateFollowerRequest,
    db: AsyncSession = Depends(get_db),
) -> FollowerResponse:
    pid = as_uuid(profile_id)
    if pid is None or await db.get(Profile, pid) is None:
        raise NotFoundError("Profile not found")

    follower = Follower(
        profile_id=pid,
        follower_name=data.name,
        follower_email=data.email,
        follower_message=data.message,
    )
    db.add(follower)
    await db.commit()
    logger.info("New follower %s for profile %s", follower.id, pid)
    return _follower_response(follower)


@router.get(
    "",
    response_model=ListFollowersResponse,
    status_code=status.HTTP_200_OK,
)
async def list_followers(
    profile_id: str,
    service: ProfileUpdateService = Depends(get_update_service),
) -> ListFollowersResponse:
    """The owner's followers, newest first."""
    profile = await service.authorize(profile_id)
    result = await service.db.execute(
        select(Follower)
        .where(Follower.profile_id == profile.id)
        .order_by(Follower.created_at.desc())
    )
    return ListFollowersResponse(followers=[_follower_response(f) for f in result.scalars().all()])

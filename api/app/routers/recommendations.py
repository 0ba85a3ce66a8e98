"""Recommendation router: visitor submissions and owner moderation."""

import logging

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.errors import ConflictError, NotFoundError
from app.middleware.rate_limit import limiter
from app.models.profile import Profile
from app.models.recommendation import Recommendation
from app.schemas.recommendations import (
    CreateRecommendationRequest,
    ListRecommendationsResponse,
    RecommendationResponse,
    RecommendationStatus,
    UpdateRecommendationRequest,
)
from app.services.profile_updates import ProfileUpdateService, get_update_service
from app.services.section_store import as_uuid

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/profiles/{profile_id}/recommendations", tags=["Recommendations"]
)


def _recommendation_response(rec: Recommendation) -> RecommendationResponse:
    return RecommendationResponse(
        id=str(rec.id),
        profile_id=str(rec.profile_id),
        recommender_name=rec.recommender_name,
        recommender_title=rec.recommender_title,
        content=rec.content,
        status=rec.status,
        is_public=rec.is_public,
        created_at=rec.created_at.isoformat() if rec.created_at else "",
    )


@router.post(
    "",
    response_model=RecommendationResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.recommendation_rate_limit)
async def create_recommendation(
    request: Request,
    profile_id: str,
    data: CreateRecommendationRequest,
    db: AsyncSession = Depends(get_db),
) -> RecommendationResponse:
    """Leave a recommendation on a profile. It stays hidden until the owner approves it."""
    pid = as_uuid(profile_id)
    if pid is None or await db.get(Profile, pid) is None:
        raise NotFoundError("Profile not found")

    rec = Recommendation(
        profile_id=pid,
        recommender_name=data.recommender_name,
        recommender_email=data.recommender_email,
        recommender_title=data.recommender_title,
        content=data.content,
        status="pending",
        is_public=True,
    )
    db.add(rec)
    await db.commit()
    logger.info("Recommendation %s submitted for profile %s", rec.id, pid)
    return _recommendation_response(rec)


@router.get(
    "",
    response_model=ListRecommendationsResponse,
    status_code=status.HTTP_200_OK,
)
async def list_public_recommendations(
    profile_id: str,
    db: AsyncSession = Depends(get_db),
) -> ListRecommendationsResponse:
    """Approved, public recommendations, newest first."""
    pid = as_uuid(profile_id)
    if pid is None:
        raise NotFoundError("Profile not found")
    result = await db.execute(
        select(Recommendation)
        .where(Recommendation.profile_id == pid)
        .where(Recommendation.status == "approved")
        .where(Recommendation.is_public.is_(True))
        .order_by(Recommendation.created_at.desc())
    )
    return ListRecommendationsResponse(
        recommendations=[_recommendation_response(r) for r in result.scalars().all()]
    )


@router.get(
    "/manage",
    response_model=ListRecommendationsResponse,
    status_code=status.HTTP_200_OK,
)
async def list_recommendations_for_owner(
    profile_id: str,
    status_filter: RecommendationStatus | None = Query(default=None, alias="status"),
    service: ProfileUpdateService = Depends(get_update_service),
) -> ListRecommendationsResponse:
    """Every recommendation on the caller's profile, optionally filtered by status."""
    profile = await service.authorize(profile_id)
    query = select(Recommendation).where(Recommendation.profile_id == profile.id)
    if status_filter:
        query = query.where(Recommendation.status == status_filter)
    result = await service.db.execute(query.order_by(Recommendation.created_at.desc()))
    return ListRecommendationsResponse(
        recommendations=[_recommendation_response(r) for r in result.scalars().all()]
    )


@router.patch(
    "/{recommendation_id}",
    response_model=RecommendationResponse,
    status_code=status.HTTP_200_OK,
)
async def moderate_recommendation(
    profile_id: str,
    recommendation_id: str,
    data: UpdateRecommendationRequest,
    service: ProfileUpdateService = Depends(get_update_service),
) -> RecommendationResponse:
    """
    Approve or reject a pending recommendation, or toggle its visibility.

    A decided recommendation cannot change status again.
    """
    profile = await service.authorize(profile_id)
    rid = as_uuid(recommendation_id)
    rec = await service.db.get(Recommendation, rid) if rid else None
    if rec is None or rec.profile_id != profile.id:
        raise NotFoundError("Recommendation not found")

    if data.status is not None and data.status != rec.status:
        if rec.status != "pending":
            raise ConflictError(f"Recommendation is already {rec.status}", field="status")
        rec.status = data.status
    if data.is_public is not None:
        rec.is_public = data.is_public

    await service.db.commit()
    logger.info("Recommendation %s is now %s", rec.id, rec.status)
    return _recommendation_response(rec)

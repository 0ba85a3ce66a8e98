"""Section template catalog and duplicate lookups."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.errors import NotFoundError, ValidationError
from app.schemas.sections import DuplicateCheckResponse
from app.schemas.templates import ListTemplatesResponse, SectionTemplateResponse
from app.services.duplicate_guard import check_duplicate
from app.services.section_store import SectionStore
from app.services.templates import all_section_templates, get_template_by_key

router = APIRouter(prefix="/api/v1", tags=["Section Templates"])


@router.get(
    "/section-templates",
    response_model=ListTemplatesResponse,
    status_code=status.HTTP_200_OK,
)
async def list_section_templates() -> ListTemplatesResponse:
    return ListTemplatesResponse(
        templates=[SectionTemplateResponse.model_validate(t) for t in all_section_templates()]
    )


@router.get(
    "/section-templates/{template_key}",
    response_model=SectionTemplateResponse,
    status_code=status.HTTP_200_OK,
)
async def get_section_template(template_key: str) -> SectionTemplateResponse:
    template = get_template_by_key(template_key)
    if template is None:
        raise NotFoundError(f"Template '{template_key}' not found")
    return SectionTemplateResponse.model_validate(template)


@router.get(
    "/profile-sections/check-duplicate",
    response_model=DuplicateCheckResponse,
    status_code=status.HTTP_200_OK,
)
async def check_duplicate_section(
    db: AsyncSession = Depends(get_db),
    profile_id: str | None = Query(default=None, alias="profileId"),
    section_key: str | None = Query(default=None, alias="sectionKey"),
) -> DuplicateCheckResponse:
    """How many sections of a profile already use a section key."""
    if not profile_id or not section_key:
        raise ValidationError("profileId and sectionKey are required")
    check = (await check_duplicate(SectionStore(db), profile_id, section_key)).unwrap()
    return DuplicateCheckResponse(exists=check.exists, count=check.count)

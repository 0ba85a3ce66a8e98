"""Section router: section and field CRUD, ordering and collection saves."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import Principal, get_optional_principal
from app.database import get_db
from app.errors import NotFoundError
from app.models.profile import Profile
from app.schemas.sections import (
    CreateFromTemplateRequest,
    CreateFromTemplateResponse,
    CreateSectionRequest,
    FieldInput,
    FieldResponse,
    FieldUpdateInput,
    ListSectionsResponse,
    ReorderRequest,
    ReorderResponse,
    SaveSectionsRequest,
    SectionResponse,
    UpdateSectionRequest,
)
from app.services.profile_updates import ProfileUpdateService, get_update_service
from app.services.section_store import (
    FieldPatch,
    NewField,
    NewSection,
    SectionPatch,
    SectionStore,
    as_uuid,
)

router = APIRouter(prefix="/api/v1/profiles/{profile_id}/sections", tags=["Sections"])


def _new_field(data: FieldInput) -> NewField:
    return NewField(
        field_label=data.field_label,
        field_key=data.field_key,
        field_value=data.field_value,
        field_type=data.field_type,
        display_order=data.display_order,
    )


def _field_patch(data: FieldUpdateInput) -> FieldPatch:
    return FieldPatch(
        id=data.id,
        field_key=data.field_key,
        field_label=data.field_label,
        field_value=data.field_value,
        field_type=data.field_type,
        display_order=data.display_order,
    )


async def _require_profile(db: AsyncSession, profile_id: str) -> Profile:
    pid = as_uuid(profile_id)
    profile = await db.get(Profile, pid) if pid else None
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


def _is_owner(profile: Profile, principal: Principal | None) -> bool:
    return principal is not None and principal.id == profile.id


# --- Reads ---


@router.get(
    "",
    response_model=ListSectionsResponse,
    status_code=status.HTTP_200_OK,
)
async def list_sections(
    profile_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
) -> ListSectionsResponse:
    """Sections in display order; visitors only see public ones."""
    profile = await _require_profile(db, profile_id)
    sections = (await SectionStore(db).list_sections_with_fields(profile.id)).unwrap()
    if not _is_owner(profile, principal):
        sections = [s for s in sections if s.is_public]
    return ListSectionsResponse(sections=[SectionResponse.model_validate(s) for s in sections])


@router.get(
    "/{section_id}",
    response_model=SectionResponse,
    status_code=status.HTTP_200_OK,
)
async def get_section(
    profile_id: str,
    section_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal | None = Depends(get_optional_principal),
) -> SectionResponse:
    profile = await _require_profile(db, profile_id)
    section = (await SectionStore(db).get_section_with_fields(section_id)).unwrap()
    if section.profile_id != str(profile.id) or (
        not section.is_public and not _is_owner(profile, principal)
    ):
        raise NotFoundError(f"Section '{section_id}' not found")
    return SectionResponse.model_validate(section)


# --- Section writes ---


@router.post(
    "",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_section(
    profile_id: str,
    data: CreateSectionRequest,
    service: ProfileUpdateService = Depends(get_update_service),
) -> SectionResponse:
    section = await service.create_section(
        profile_id,
        NewSection(
            title=data.title,
            section_key=data.section_key,
            display_order=data.display_order,
            is_public=data.is_public,
            fields=[_new_field(f) for f in data.fields],
        ),
    )
    return SectionResponse.model_validate(section)


@router.put(
    "",
    response_model=ListSectionsResponse,
    status_code=status.HTTP_200_OK,
)
async def save_sections(
    profile_id: str,
    data: SaveSectionsRequest,
    service: ProfileUpdateService = Depends(get_update_service),
) -> ListSectionsResponse:
    """
    Save a whole edited section collection.

    Sections carrying a ``section_id`` are updated, the rest created, and
    stored sections missing from the collection deleted.
    """
    await service.save_sections(profile_id, data.sections)
    sections = (await service.store.list_sections_with_fields(profile_id)).unwrap()
    return ListSectionsResponse(sections=[SectionResponse.model_validate(s) for s in sections])


@router.post(
    "/from-template",
    response_model=CreateFromTemplateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_section_from_template(
    profile_id: str,
    data: CreateFromTemplateRequest,
    service: ProfileUpdateService = Depends(get_update_service),
) -> CreateFromTemplateResponse:
    """Add a template section; a duplicate gets a numbered title and a notice."""
    creation = await service.create_section_from_template(profile_id, data.template_key)
    return CreateFromTemplateResponse(
        section=SectionResponse.model_validate(creation.section),
        notice=creation.notice,
    )


@router.put(
    "/order",
    response_model=ReorderResponse,
    status_code=status.HTTP_200_OK,
)
async def reorder_sections(
    profile_id: str,
    data: ReorderRequest,
    service: ProfileUpdateService = Depends(get_update_service),
) -> ReorderResponse:
    updated = await service.reorder_sections(profile_id, data.ordered_ids)
    return ReorderResponse(updated=updated)


@router.patch(
    "/{section_id}",
    response_model=SectionResponse,
    status_code=status.HTTP_200_OK,
)
async def update_section(
    profile_id: str,
    section_id: str,
    data: UpdateSectionRequest,
    service: ProfileUpdateService = Depends(get_update_service),
) -> SectionResponse:
    """Update section attributes and upsert the given fields; omitted fields are kept."""
    section = await service.update_section(
        profile_id,
        section_id,
        SectionPatch(
            title=data.title,
            section_key=data.section_key,
            display_order=data.display_order,
            is_public=data.is_public,
        ),
        [_field_patch(f) for f in data.fields] if data.fields is not None else None,
    )
    return SectionResponse.model_validate(section)


@router.delete(
    "/{section_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_section(
    profile_id: str,
    section_id: str,
    service: ProfileUpdateService = Depends(get_update_service),
) -> None:
    """Delete a section and its fields. Deleting a missing section succeeds."""
    await service.delete_section(profile_id, section_id)


# --- Field writes ---


@router.post(
    "/{section_id}/fields",
    response_model=FieldResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_field(
    profile_id: str,
    section_id: str,
    data: FieldInput,
    service: ProfileUpdateService = Depends(get_update_service),
) -> FieldResponse:
    created = await service.create_field(profile_id, section_id, _new_field(data))
    return FieldResponse.model_validate(created)


@router.put(
    "/{section_id}/fields/order",
    response_model=ReorderResponse,
    status_code=status.HTTP_200_OK,
)
async def reorder_fields(
    profile_id: str,
    section_id: str,
    data: ReorderRequest,
    service: ProfileUpdateService = Depends(get_update_service),
) -> ReorderResponse:
    updated = await service.reorder_fields(profile_id, section_id, data.ordered_ids)
    return ReorderResponse(updated=updated)


@router.patch(
    "/{section_id}/fields/{field_id}",
    response_model=FieldResponse,
    status_code=status.HTTP_200_OK,
)
async def update_field(
    profile_id: str,
    section_id: str,
    field_id: str,
    data: FieldUpdateInput,
    service: ProfileUpdateService = Depends(get_update_service),
) -> FieldResponse:
    updated = await service.update_field(profile_id, section_id, field_id, _field_patch(data))
    return FieldResponse.model_validate(updated)


@router.delete(
    "/{section_id}/fields/{field_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_field(
    profile_id: str,
    section_id: str,
    field_id: str,
    service: ProfileUpdateService = Depends(get_update_service),
) -> None:
    await service.delete_field(profile_id, section_id, field_id)

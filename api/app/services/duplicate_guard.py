"""Duplicate detection for template-based section creation."""

import logging
from dataclasses import dataclass
from uuid import UUID

from app.errors import NotFoundError
from app.services.section_store import NewField, NewSection, SectionData, SectionStore, StoreResult
from app.services.templates import create_section_from_template

logger = logging.getLogger(__name__)


@dataclass
class DuplicateCheck:
    exists: bool
    count: int


@dataclass
class TemplateCreation:
    section: SectionData
    notice: str | None = None


async def check_duplicate(
    store: SectionStore, profile_id: UUID | str, section_key: str
) -> StoreResult[DuplicateCheck]:
    """How many sections of the profile already use ``section_key``."""
    result = await store.count_sections_by_key(profile_id, section_key)
    if not result.ok:
        return StoreResult(error=result.error)
    return StoreResult(data=DuplicateCheck(exists=result.data > 0, count=result.data))


def disambiguate_title(title: str, count: int) -> str:
    """``Work Experience`` becomes ``Work Experience 2`` when one already exists."""
    return f"{title} {count + 1}" if count > 0 else title


async def create_from_template(
    store: SectionStore, profile_id: UUID | str, template_key: str
) -> TemplateCreation:
    """
    Persist a section from a template, numbering the title on duplicates.

    A failed duplicate lookup is treated as "no duplicates". Duplicates keep
    the template's ``section_key``.
    """
    draft = create_section_from_template(template_key, str(profile_id))
    if draft is None:
        raise NotFoundError(f"Template '{template_key}' not found", field="template_key")

    count = 0
    check = await check_duplicate(store, profile_id, draft.section.section_key)
    if check.ok:
        count = check.data.count
    else:
        logger.warning(
            "Duplicate check failed for %s on profile %s; assuming none",
            template_key,
            profile_id,
        )

    title = disambiguate_title(draft.section.title, count)
    notice = None
    if count > 0:
        notice = (
            f'You already have {count} "{draft.section.title}" '
            f"section{'s' if count > 1 else ''}. This one was added as \"{title}\"."
        )

    result = await store.create_section(
        profile_id,
        NewSection(
            title=title,
            section_key=draft.section.section_key,
            fields=[
                NewField(
                    field_label=f.field_label,
                    field_key=f.field_key,
                    field_value=f.field_value,
                    field_type=f.field_type,
                    display_order=f.display_order,
                )
                for f in draft.fields
            ],
        ),
    )
    return TemplateCreation(section=result.unwrap(), notice=notice)

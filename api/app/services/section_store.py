"""Section/field persistence.

``SectionStore`` is the only code that reads or writes ``profile_sections``
and ``profile_section_fields`` rows. Public methods never raise for database
failures: they roll the session back and return a ``StoreResult`` whose
``error`` the caller must check before touching ``data``.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import utcnow
from app.errors import NotFoundError, ProfileError, StoreError, ValidationError
from app.models.section import FIELD_TYPES, ProfileSection, ProfileSectionField

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9_]")
_WHITESPACE = re.compile(r"\s+")


def slugify(value: str) -> str:
    """Lowercase, whitespace to underscores, drop everything else non-alphanumeric."""
    return _NON_SLUG_CHARS.sub("", _WHITESPACE.sub("_", value.strip().lower()))


def as_uuid(value: Any) -> UUID | None:
    """Parse an id, returning None for anything that is not a UUID."""
    if isinstance(value, UUID):
        return value
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


@dataclass
class StoreResult(Generic[T]):
    """Outcome of a store call: exactly one of ``data`` / ``error`` is meaningful."""

    data: T | None = None
    error: ProfileError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return ``data`` or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.data


# --- Value objects ---


@dataclass
class FieldData:
    id: str
    section_id: str
    field_key: str
    field_label: str
    field_value: str
    field_type: str
    display_order: int


@dataclass
class SectionData:
    id: str
    profile_id: str
    title: str
    section_key: str
    display_order: int
    is_public: bool = True
    fields: list[FieldData] = field(default_factory=list)

    def to_cache_entry(self) -> dict[str, Any]:
        """Canonical ``profile_sections`` cache shape for this section."""
        return {
            "section_id": self.id,
            "section_key": self.section_key,
            "title": self.title,
            "display_order": self.display_order,
            "fields": [
                {
                    "field_id": f.id,
                    "field_key": f.field_key,
                    "field_label": f.field_label,
                    "field_value": f.field_value,
                    "field_type": f.field_type,
                }
                for f in self.fields
            ],
        }


@dataclass
class NewField:
    field_label: str
    field_key: str | None = None
    field_value: str | None = ""
    field_type: str | None = "text"
    display_order: int | None = None


@dataclass
class NewSection:
    title: str
    section_key: str | None = None
    display_order: int | None = None
    is_public: bool = True
    fields: list[NewField] = field(default_factory=list)


@dataclass
class SectionPatch:
    title: str | None = None
    section_key: str | None = None
    display_order: int | None = None
    is_public: bool | None = None


@dataclass
class FieldPatch:
    """A field as sent by an editor; ``id`` set only for rows known to exist."""

    id: str | None = None
    field_key: str | None = None
    field_label: str | None = None
    field_value: str | None = None
    field_type: str | None = None
    display_order: int | None = None


def _field_data(row: ProfileSectionField) -> FieldData:
    return FieldData(
        id=str(row.id),
        section_id=str(row.section_id),
        field_key=row.field_key,
        field_label=row.field_label,
        field_value=row.field_value if row.field_value is not None else "",
        field_type=row.field_type,
        display_order=row.display_order,
    )


def _section_data(row: ProfileSection, fields: list[FieldData] | None = None) -> SectionData:
    return SectionData(
        id=str(row.id),
        profile_id=str(row.profile_id),
        title=row.title,
        section_key=row.section_key,
        display_order=row.display_order if row.display_order is not None else 0,
        is_public=bool(row.is_public),
        fields=fields or [],
    )


def check_field_type(field_type: str | None) -> str:
    """Default a missing type to ``text``; reject anything outside the fixed set."""
    if not field_type:
        return "text"
    if field_type not in FIELD_TYPES:
        raise ValidationError(
            f"Unsupported field type '{field_type}'. Expected one of: {', '.join(FIELD_TYPES)}",
            field="field_type",
        )
    return field_type


class SectionStore:
    """Persistence operations over sections and their fields."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _fail(self, action: str, exc: Exception) -> StoreResult:
        await self.db.rollback()
        if isinstance(exc, ProfileError):
            return StoreResult(error=exc)
        logger.exception("Store failure while %s", action)
        return StoreResult(error=StoreError(f"Failed {action}: {exc.__class__.__name__}"))

    # --- Reads ---

    async def list_sections_with_fields(self, profile_id: UUID | str) -> StoreResult[list[SectionData]]:
        """All sections of a profile in display order, each with ordered fields."""
        pid = as_uuid(profile_id)
        if pid is None:
            return StoreResult(data=[])
        try:
            result = await self.db.execute(
                select(ProfileSection)
                .where(ProfileSection.profile_id == pid)
                .order_by(ProfileSection.display_order, ProfileSection.created_at)
                .execution_options(populate_existing=True)
            )
            sections = list(result.scalars().all())
            if not sections:
                return StoreResult(data=[])

            result = await self.db.execute(
                select(ProfileSectionField)
                .where(ProfileSectionField.section_id.in_([s.id for s in sections]))
                .order_by(ProfileSectionField.display_order, ProfileSectionField.created_at)
                .execution_options(populate_existing=True)
            )
            grouped: dict[UUID, list[FieldData]] = {s.id: [] for s in sections}
            for row in result.scalars().all():
                grouped[row.section_id].append(_field_data(row))
        except SQLAlchemyError as exc:
            return await self._fail("listing sections", exc)

        return StoreResult(data=[_section_data(s, grouped[s.id]) for s in sections])

    async def get_section_with_fields(self, section_id: UUID | str) -> StoreResult[SectionData]:
        sid = as_uuid(section_id)
        try:
            section = await self.db.get(ProfileSection, sid, populate_existing=True) if sid else None
            if section is None:
                return StoreResult(error=NotFoundError(f"Section '{section_id}' not found"))
            fields = await self._field_rows(section.id)
        except SQLAlchemyError as exc:
            return await self._fail("loading section", exc)
        return StoreResult(data=_section_data(section, [_field_data(f) for f in fields]))

    async def list_fields(self, section_id: UUID | str) -> StoreResult[list[FieldData]]:
        sid = as_uuid(section_id)
        if sid is None:
            return StoreResult(data=[])
        try:
            rows = await self._field_rows(sid)
        except SQLAlchemyError as exc:
            return await self._fail("listing fields", exc)
        return StoreResult(data=[_field_data(f) for f in rows])

    async def list_section_ids(self, profile_id: UUID | str) -> StoreResult[list[tuple[str, str, str]]]:
        """(id, section_key, title) for every section of the profile."""
        pid = as_uuid(profile_id)
        if pid is None:
            return StoreResult(data=[])
        try:
            result = await self.db.execute(
                select(ProfileSection.id, ProfileSection.section_key, ProfileSection.title)
                .where(ProfileSection.profile_id == pid)
                .order_by(ProfileSection.display_order)
            )
            rows = [(str(r.id), r.section_key, r.title) for r in result.all()]
        except SQLAlchemyError as exc:
            return await self._fail("listing section ids", exc)
        return StoreResult(data=rows)

    async def count_sections_by_key(self, profile_id: UUID | str, section_key: str) -> StoreResult[int]:
        pid = as_uuid(profile_id)
        if pid is None:
            return StoreResult(data=0)
        try:
            result = await self.db.execute(
                select(func.count(ProfileSection.id))
                .where(ProfileSection.profile_id == pid)
                .where(ProfileSection.section_key == section_key)
            )
            count = result.scalar_one()
        except SQLAlchemyError as exc:
            return await self._fail("counting sections", exc)
        return StoreResult(data=int(count or 0))

    # --- Section writes ---

    async def create_section(self, profile_id: UUID | str, data: NewSection) -> StoreResult[SectionData]:
        """
        Insert a section, then its fields.

        The section row is committed before the fields are inserted. If the
        field insert fails the section stays in place and the error is
        returned with the partially created section as ``data``.
        """
        pid = as_uuid(profile_id)
        if pid is None:
            return StoreResult(error=NotFoundError(f"Profile '{profile_id}' not found"))
        if not data.title or not data.title.strip():
            return StoreResult(error=ValidationError("Section title is required", field="title"))

        section_key = data.section_key or slugify(data.title)
        if not section_key:
            return StoreResult(error=ValidationError("Section key is required", field="section_key"))

        try:
            new_fields = [
                self._new_field_row(None, f, index) for index, f in enumerate(data.fields)
            ]
        except ValidationError as exc:
            return StoreResult(error=exc)

        try:
            display_order = data.display_order
            if display_order is None:
                display_order = await self._next_section_order(pid)
            section = ProfileSection(
                profile_id=pid,
                title=data.title,
                section_key=section_key,
                display_order=display_order,
                is_public=data.is_public,
            )
            self.db.add(section)
            await self.db.commit()
        except SQLAlchemyError as exc:
            return await self._fail("creating section", exc)

        created = _section_data(section)
        logger.info("Created section %s (%s) for profile %s", section.id, section_key, pid)

        if not new_fields:
            return StoreResult(data=created)

        try:
            for row in new_fields:
                row.section_id = section.id
                self.db.add(row)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("Section %s created but its fields failed to insert", created.id)
            return StoreResult(
                data=created,
                error=StoreError(
                    f"Section '{created.id}' was created but its fields could not be saved"
                ),
            )

        created.fields = [_field_data(row) for row in new_fields]
        return StoreResult(data=created)

    async def update_section(
        self,
        section_id: UUID | str,
        patch: SectionPatch,
        fields: list[FieldPatch] | None = None,
    ) -> StoreResult[SectionData]:
        """
        Update a section row and upsert its fields.

        Incoming fields whose id matches an existing row of this section are
        updated in place; every other field is inserted. Existing rows absent
        from ``fields`` are left alone: removals go through ``delete_field``.
        """
        sid = as_uuid(section_id)
        try:
            section = await self.db.get(ProfileSection, sid, populate_existing=True) if sid else None
            if section is None:
                return StoreResult(error=NotFoundError(f"Section '{section_id}' not found"))

            if patch.title is not None:
                section.title = patch.title
            if patch.section_key is not None:
                section.section_key = patch.section_key
            if patch.display_order is not None:
                section.display_order = patch.display_order
            if patch.is_public is not None:
                section.is_public = patch.is_public
            section.updated_at = utcnow()

            if fields:
                existing = {str(row.id): row for row in await self._field_rows(section.id)}
                next_order = max((row.display_order for row in existing.values()), default=-1) + 1
                updated = inserted = 0

                for incoming in fields:
                    row = existing.get(str(incoming.id)) if incoming.id else None
                    if row is not None:
                        self._apply_field_patch(row, incoming)
                        updated += 1
                        continue
                    order = incoming.display_order
                    if order is None:
                        order = next_order
                        next_order += 1
                    self.db.add(
                        self._new_field_row(
                            section.id,
                            NewField(
                                field_label=incoming.field_label or "Untitled Field",
                                field_key=incoming.field_key,
                                field_value=incoming.field_value,
                                field_type=incoming.field_type,
                            ),
                            order,
                        )
                    )
                    inserted += 1
                logger.info(
                    "Section %s: %d field(s) updated, %d inserted", section.id, updated, inserted
                )

            await self.db.commit()
        except (SQLAlchemyError, ValidationError) as exc:
            return await self._fail("updating section", exc)

        return await self.get_section_with_fields(section.id)

    async def replace_section_fields(
        self, section_id: UUID | str, fields: list[FieldPatch]
    ) -> StoreResult[SectionData]:
        """Swap the whole field list of a section in a single transaction."""
        sid = as_uuid(section_id)
        try:
            section = await self.db.get(ProfileSection, sid, populate_existing=True) if sid else None
            if section is None:
                return StoreResult(error=NotFoundError(f"Section '{section_id}' not found"))

            rows = [
                self._new_field_row(
                    section.id,
                    NewField(
                        field_label=f.field_label or "Untitled Field",
                        field_key=f.field_key,
                        field_value=f.field_value,
                        field_type=f.field_type,
                    ),
                    index,
                )
                for index, f in enumerate(fields)
            ]
            await self.db.execute(
                delete(ProfileSectionField).where(ProfileSectionField.section_id == section.id)
            )
            self.db.add_all(rows)
            section.updated_at = utcnow()
            await self.db.commit()
        except (SQLAlchemyError, ValidationError) as exc:
            return await self._fail("replacing section fields", exc)

        return await self.get_section_with_fields(section.id)

    async def delete_section(self, section_id: UUID | str) -> StoreResult[int]:
        """Delete a section; fields cascade. A missing id affects zero rows."""
        sid = as_uuid(section_id)
        if sid is None:
            return StoreResult(data=0)
        try:
            section = await self.db.get(ProfileSection, sid, populate_existing=True)
            if section is None:
                return StoreResult(data=0)
            profile_id = section.profile_id
            await self.db.execute(delete(ProfileSection).where(ProfileSection.id == sid))
            self.db.expunge(section)
            await self._densify_sections(profile_id)
            await self.db.commit()
        except SQLAlchemyError as exc:
            return await self._fail("deleting section", exc)
        logger.info("Deleted section %s of profile %s", sid, profile_id)
        return StoreResult(data=1)

    async def reorder_sections(self, profile_id: UUID | str, ordered_ids: list[str]) -> StoreResult[int]:
        """Set ``display_order`` to the list position; ids of other profiles are ignored."""
        pid = as_uuid(profile_id)
        if pid is None:
            return StoreResult(data=0)
        try:
            touched = 0
            for index, raw_id in enumerate(ordered_ids):
                sid = as_uuid(raw_id)
                if sid is None:
                    continue
                result = await self.db.execute(
                    update(ProfileSection)
                    .where(ProfileSection.id == sid)
                    .where(ProfileSection.profile_id == pid)
                    .values(display_order=index)
                )
                touched += result.rowcount or 0
            await self.db.commit()
        except SQLAlchemyError as exc:
            return await self._fail("reordering sections", exc)
        return StoreResult(data=touched)

    # --- Field writes ---

    async def create_field(self, section_id: UUID | str, data: NewField) -> StoreResult[FieldData]:
        sid = as_uuid(section_id)
        try:
            section = await self.db.get(ProfileSection, sid, populate_existing=True) if sid else None
            if section is None:
                return StoreResult(error=NotFoundError(f"Section '{section_id}' not found"))
            order = data.display_order
            if order is None:
                result = await self.db.execute(
                    select(func.max(ProfileSectionField.display_order))
                    .where(ProfileSectionField.section_id == section.id)
                )
                current = result.scalar_one_or_none()
                order = 0 if current is None else current + 1
            row = self._new_field_row(section.id, data, order)
            self.db.add(row)
            await self.db.commit()
        except (SQLAlchemyError, ValidationError) as exc:
            return await self._fail("creating field", exc)
        return StoreResult(data=_field_data(row))

    async def update_field(self, field_id: UUID | str, patch: FieldPatch) -> StoreResult[FieldData]:
        fid = as_uuid(field_id)
        try:
            row = await self.db.get(ProfileSectionField, fid, populate_existing=True) if fid else None
            if row is None:
                return StoreResult(error=NotFoundError(f"Field '{field_id}' not found"))
            self._apply_field_patch(row, patch, clear_missing_value=False)
            await self.db.commit()
        except (SQLAlchemyError, ValidationError) as exc:
            return await self._fail("updating field", exc)
        return StoreResult(data=_field_data(row))

    async def delete_field(self, field_id: UUID | str) -> StoreResult[int]:
        """Delete one field; a missing id affects zero rows."""
        fid = as_uuid(field_id)
        if fid is None:
            return StoreResult(data=0)
        try:
            row = await self.db.get(ProfileSectionField, fid, populate_existing=True)
            if row is None:
                return StoreResult(data=0)
            section_id = row.section_id
            await self.db.execute(delete(ProfileSectionField).where(ProfileSectionField.id == fid))
            self.db.expunge(row)
            await self._densify_fields(section_id)
            await self.db.commit()
        except SQLAlchemyError as exc:
            return await self._fail("deleting field", exc)
        return StoreResult(data=1)

    async def reorder_fields(self, section_id: UUID | str, ordered_ids: list[str]) -> StoreResult[int]:
        """Set ``display_order`` to the list position; ids of other sections are ignored."""
        sid = as_uuid(section_id)
        if sid is None:
            return StoreResult(data=0)
        try:
            touched = 0
            for index, raw_id in enumerate(ordered_ids):
                fid = as_uuid(raw_id)
                if fid is None:
                    continue
                result = await self.db.execute(
                    update(ProfileSectionField)
                    .where(ProfileSectionField.id == fid)
                    .where(ProfileSectionField.section_id == sid)
                    .values(display_order=index)
                )
                touched += result.rowcount or 0
            await self.db.commit()
        except SQLAlchemyError as exc:
            return await self._fail("reordering fields", exc)
        return StoreResult(data=touched)

    # --- Helpers ---

    async def _field_rows(self, section_id: UUID) -> list[ProfileSectionField]:
        result = await self.db.execute(
            select(ProfileSectionField)
            .where(ProfileSectionField.section_id == section_id)
            .order_by(ProfileSectionField.display_order, ProfileSectionField.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _next_section_order(self, profile_id: UUID) -> int:
        result = await self.db.execute(
            select(func.max(ProfileSection.display_order)).where(ProfileSection.profile_id == profile_id)
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    async def _densify_sections(self, profile_id: UUID) -> None:
        result = await self.db.execute(
            select(ProfileSection.id, ProfileSection.display_order)
            .where(ProfileSection.profile_id == profile_id)
            .order_by(ProfileSection.display_order, ProfileSection.created_at)
        )
        for index, row in enumerate(result.all()):
            if row.display_order != index:
                await self.db.execute(
                    update(ProfileSection).where(ProfileSection.id == row.id).values(display_order=index)
                )

    async def _densify_fields(self, section_id: UUID) -> None:
        result = await self.db.execute(
            select(ProfileSectionField.id, ProfileSectionField.display_order)
            .where(ProfileSectionField.section_id == section_id)
            .order_by(ProfileSectionField.display_order, ProfileSectionField.created_at)
        )
        for index, row in enumerate(result.all()):
            if row.display_order != index:
                await self.db.execute(
                    update(ProfileSectionField)
                    .where(ProfileSectionField.id == row.id)
                    .values(display_order=index)
                )

    @staticmethod
    def _new_field_row(section_id: UUID | None, data: NewField, order: int) -> ProfileSectionField:
        label = data.field_label or "Untitled Field"
        if data.display_order is not None:
            order = data.display_order
        return ProfileSectionField(
            id=uuid4(),
            section_id=section_id,
            field_key=data.field_key or slugify(label) or uuid4().hex,
            field_label=label,
            field_value=data.field_value if data.field_value is not None else "",
            field_type=check_field_type(data.field_type),
            display_order=order,
        )

    @staticmethod
    def _apply_field_patch(
        row: ProfileSectionField, patch: FieldPatch, clear_missing_value: bool = True
    ) -> None:
        # Editors always send the full value, so a missing one means blank
        if patch.field_value is not None:
            row.field_value = patch.field_value
        elif clear_missing_value:
            row.field_value = ""
        if patch.field_label is not None:
            row.field_label = patch.field_label
        if patch.field_key is not None:
            row.field_key = patch.field_key
        if patch.field_type is not None:
            row.field_type = check_field_type(patch.field_type)
        if patch.display_order is not None:
            row.display_order = patch.display_order
        row.updated_at = utcnow()

"""
Profile update orchestration.

``ProfileUpdateService`` is the single entry point for owner writes: it checks
the acting principal, turns the request into a profile patch or a sequence of
section/field row operations, rebuilds the ``profile_sections`` cache from the
rows, and publishes invalidation events once everything succeeded.
"""

import copy
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import UUID

from fastapi import Depends
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import Principal, get_principal_resolver
from app.database import get_db, utcnow
from app.errors import AuthorizationError, NotFoundError, UnauthenticatedError, ValidationError
from app.models.profile import Profile
from app.services.duplicate_guard import TemplateCreation, create_from_template
from app.services.invalidation import PROFILE_SCOPE, USERNAME_SCOPE, InvalidationBus, get_bus
from app.services.reconciliation import (
    EditableSection,
    SectionEditor,
    build_sections_cache,
    humanize_key,
    normalize,
    to_sections_map,
)
from app.services.section_store import (
    FieldData,
    FieldPatch,
    NewField,
    NewSection,
    SectionData,
    SectionPatch,
    SectionStore,
    as_uuid,
    slugify,
)

logger = logging.getLogger(__name__)

PrincipalResolver = Callable[[], Awaitable[Principal | None]]

MODAL_TYPES = ("profile", "bio", "work", "work-item", "sections", "section-edit")

_email_adapter = TypeAdapter(EmailStr)


# --- Patch builders ---


def _text(payload: dict[str, Any], *keys: str, default: Any = "") -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


def _check_email(value: str) -> str:
    if not value:
        return value
    try:
        return _email_adapter.validate_python(value)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid email address", field="email") from exc


def build_profile_patch(payload: dict[str, Any]) -> dict[str, Any]:
    """Identity fields; missing text fields clear to ``""``, missing images to ``None``."""
    return {
        "full_name": _text(payload, "name", "full_name"),
        "website": _text(payload, "website"),
        "email": _check_email(_text(payload, "email")),
        "avatar_url": _text(payload, "avatar_url", "avatar", default=None),
        "background_url": _text(payload, "background_url", "background", default=None),
    }


def build_bio_patch(payload: dict[str, Any]) -> dict[str, Any]:
    return {"bio": payload["bio"] if "bio" in payload else ""}


def build_work_patch(current: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
    work = payload.get("work")
    if work is not None and not isinstance(work, list):
        raise ValidationError("work must be a list", field="work")
    return {"profile_sections": {**current, "work": list(work or [])}}


def build_work_item_patch(
    current: dict[str, Any], payload: dict[str, Any], index: int | None
) -> dict[str, Any]:
    """Replace ``work[index]`` when it exists, otherwise append."""
    existing = current.get("work")
    items = copy.deepcopy(existing) if isinstance(existing, list) else []
    if index is not None and 0 <= index < len(items):
        items[index] = payload
    else:
        items.append(payload)
    return {"profile_sections": {**current, "work": items}}


def build_sections_patch(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError("sections payload must be an object", field="payload")
    return {"profile_sections": copy.deepcopy(payload)}


def _canonical_entry(section_key: str, entry: Any) -> dict[str, Any] | None:
    """Bring a legacy list or scalar-map entry into the canonical ``fields`` shape."""
    if isinstance(entry, dict) and isinstance(entry.get("fields"), list):
        return entry
    if not isinstance(entry, (dict, list)):
        return None
    return to_sections_map(normalize({section_key: entry})).get(section_key)


def merge_section_entry(
    current: dict[str, Any], payload: dict[str, Any], section_key: str | None
) -> dict[str, Any]:
    """
    Merge an edit of one section into a copy of its cache entry.

    Legacy entries are first converted to the canonical shape. The existing
    ``section_id`` survives; the payload's ``fields`` list replaces the old one
    outright, old fields are kept when the payload has none, and a section
    with no fields at all gets ``[]``. A payload without ``fields`` may carry
    its data under ``sectionData``.
    """
    if not section_key:
        raise ValidationError("section_key is required for section-edit", field="section_key")

    data = payload
    if "fields" not in data and isinstance(data.get("sectionData"), dict):
        data = data["sectionData"]

    existing = _canonical_entry(section_key, current.get(section_key))
    merged = copy.deepcopy(existing) if existing is not None else {}
    for key, value in data.items():
        if key != "sectionData":
            merged[key] = copy.deepcopy(value)
    if existing is not None and existing.get("section_id") and not data.get("section_id"):
        merged["section_id"] = existing["section_id"]
    if not isinstance(merged.get("fields"), list):
        merged["fields"] = []
    return merged


def build_section_edit_patch(
    current: dict[str, Any], payload: dict[str, Any], section_key: str | None
) -> dict[str, Any]:
    merged = merge_section_entry(current, payload, section_key)
    return {"profile_sections": {**current, section_key: merged}}


def build_patch(
    modal_type: str,
    current_sections: dict[str, Any],
    payload: Any,
    work_item_index: int | None = None,
    section_key: str | None = None,
) -> dict[str, Any]:
    """Pure dispatch from a modal type to its profile patch."""
    if modal_type == "sections":
        return build_sections_patch(payload)
    if not isinstance(payload, dict):
        raise ValidationError("payload must be an object", field="payload")
    if modal_type == "profile":
        return build_profile_patch(payload)
    if modal_type == "bio":
        return build_bio_patch(payload)
    if modal_type == "work":
        return build_work_patch(current_sections, payload)
    if modal_type == "work-item":
        return build_work_item_patch(current_sections, payload, work_item_index)
    if modal_type == "section-edit":
        return build_section_edit_patch(current_sections, payload, section_key)
    raise ValidationError(f"Unknown modal type '{modal_type}'", field="modal_type")


def _field_patch_from_payload(item: dict[str, Any], index: int) -> FieldPatch:
    label = _text(item, "field_label", "label", default=None)
    value = _text(item, "field_value", "value")
    return FieldPatch(
        field_key=item.get("field_key") or None,
        field_label=str(label) if label is not None else f"Field {index + 1}",
        field_value=value if isinstance(value, str) else str(value),
        field_type=_text(item, "field_type", "type", default=None),
        display_order=index,
    )


class ProfileUpdateService:
    """Owner-only profile and section writes."""

    def __init__(
        self,
        db: AsyncSession,
        resolve_principal: PrincipalResolver,
        bus: InvalidationBus | None = None,
    ):
        self.db = db
        self.store = SectionStore(db)
        self.resolve_principal = resolve_principal
        self.bus = bus or get_bus()

    # --- Guards ---

    async def get_profile(self, profile_id: UUID | str) -> Profile:
        pid = as_uuid(profile_id)
        profile = await self.db.get(Profile, pid, populate_existing=True) if pid else None
        if profile is None:
            raise NotFoundError(f"Profile '{profile_id}' not found")
        return profile

    async def authorize(self, profile_id: UUID | str) -> Profile:
        """Resolve the principal afresh and require it to own the profile."""
        principal = await self.resolve_principal()
        if principal is None:
            raise UnauthenticatedError("Sign in to edit this profile")
        profile = await self.get_profile(profile_id)
        if str(principal.id) != str(profile.id):
            logger.warning("Principal %s denied write to profile %s", principal.id, profile.id)
            raise AuthorizationError("You can only edit your own profile")
        return profile

    async def _owned_section(self, profile: Profile, section_id: str) -> SectionData:
        section = (await self.store.get_section_with_fields(section_id)).unwrap()
        if section.profile_id != str(profile.id):
            raise NotFoundError(f"Section '{section_id}' not found")
        return section

    @staticmethod
    def _section_field(section: SectionData, field_id: str) -> FieldData | None:
        for f in section.fields:
            if f.id == str(field_id):
                return f
        return None

    # --- Cache and notifications ---

    async def rebuild_sections_cache(
        self, profile: Profile, drop_keys: tuple[str, ...] = ()
    ) -> dict[str, Any]:
        """Re-project the section rows into ``profile.profile_sections`` and commit."""
        rows = (await self.store.list_sections_with_fields(profile.id)).unwrap()
        existing = {
            key: value
            for key, value in (profile.profile_sections or {}).items()
            if key not in drop_keys
        }
        profile.profile_sections = build_sections_cache(rows, existing)
        profile.updated_at = utcnow()
        await self.db.commit()
        return profile.profile_sections

    def publish(self, profile: Profile) -> None:
        self.bus.publish(PROFILE_SCOPE, str(profile.id))
        if profile.username:
            self.bus.publish(USERNAME_SCOPE, profile.username)

    async def _finish(self, profile: Profile, drop_keys: tuple[str, ...] = ()) -> None:
        await self.rebuild_sections_cache(profile, drop_keys)
        self.publish(profile)

    # --- Modal updates ---

    async def apply_profile_update(
        self,
        profile_id: UUID | str,
        modal_type: str,
        payload: Any,
        work_item_index: int | None = None,
        section_key: str | None = None,
    ) -> Profile:
        """
        Apply one editor submission.

        ``profile`` and ``bio`` patch identity columns. ``work`` and
        ``work-item`` edit the legacy work list inside the cache. ``sections``
        saves the whole section collection through the rows, and
        ``section-edit`` rewrites one section's rows. The cache is rebuilt from
        the rows afterwards in every case.
        """
        if modal_type not in MODAL_TYPES:
            raise ValidationError(f"Unknown modal type '{modal_type}'", field="modal_type")

        profile = await self.authorize(profile_id)
        current = dict(profile.profile_sections or {})

        if modal_type == "sections":
            patch = build_sections_patch(payload)
            await self.save_sections(profile.id, patch["profile_sections"], profile=profile)
            return profile

        if modal_type == "section-edit":
            if not isinstance(payload, dict):
                raise ValidationError("payload must be an object", field="payload")
            await self._apply_section_edit(profile, current, payload, section_key)
            return profile

        patch = build_patch(modal_type, current, payload, work_item_index, section_key)
        for column, value in patch.items():
            setattr(profile, column, value)
        profile.updated_at = utcnow()
        await self.db.commit()
        logger.info("Applied %s update to profile %s", modal_type, profile.id)

        await self._finish(profile)
        return profile

    async def _apply_section_edit(
        self,
        profile: Profile,
        current: dict[str, Any],
        payload: dict[str, Any],
        section_key: str | None,
    ) -> None:
        merged = merge_section_entry(current, payload, section_key)
        title = merged.get("title") or humanize_key(section_key)
        fields = [
            _field_patch_from_payload(item, index)
            for index, item in enumerate(merged["fields"])
            if isinstance(item, dict)
        ]

        section_id = merged.get("section_id")
        if section_id:
            await self._owned_section(profile, section_id)
            (await self.store.update_section(section_id, SectionPatch(title=title))).unwrap()
            (await self.store.replace_section_fields(section_id, fields)).unwrap()
            logger.info("Replaced fields of section %s (%s)", section_id, section_key)
            await self._finish(profile)
            return

        created = await self.store.create_section(
            profile.id,
            NewSection(
                title=title,
                section_key=merged.get("section_key") or slugify(section_key) or None,
                fields=[
                    NewField(
                        field_label=f.field_label,
                        field_key=f.field_key,
                        field_value=f.field_value,
                        field_type=f.field_type,
                        display_order=f.display_order,
                    )
                    for f in fields
                ],
            ),
        )
        created.unwrap()
        logger.info("Promoted cache entry %s to section %s", section_key, created.data.id)
        await self._finish(profile, drop_keys=(section_key,))

    # --- Section operations ---

    async def create_section(self, profile_id: UUID | str, data: NewSection) -> SectionData:
        profile = await self.authorize(profile_id)
        section = (await self.store.create_section(profile.id, data)).unwrap()
        await self._finish(profile)
        return section

    async def create_section_from_template(
        self, profile_id: UUID | str, template_key: str
    ) -> TemplateCreation:
        profile = await self.authorize(profile_id)
        creation = await create_from_template(self.store, profile.id, template_key)
        await self._finish(profile)
        return creation

    async def update_section(
        self,
        profile_id: UUID | str,
        section_id: str,
        patch: SectionPatch,
        fields: list[FieldPatch] | None = None,
    ) -> SectionData:
        profile = await self.authorize(profile_id)
        await self._owned_section(profile, section_id)
        section = (await self.store.update_section(section_id, patch, fields)).unwrap()
        await self._finish(profile)
        return section

    async def delete_section(self, profile_id: UUID | str, section_id: str) -> int:
        """Idempotent: deleting a missing section reports zero rows."""
        profile = await self.authorize(profile_id)
        found = await self.store.get_section_with_fields(section_id)
        if not found.ok:
            if isinstance(found.error, NotFoundError):
                return 0
            raise found.error
        if found.data.profile_id != str(profile.id):
            raise AuthorizationError("You can only edit your own profile")
        deleted = (await self.store.delete_section(section_id)).unwrap()
        await self._finish(profile)
        return deleted

    async def reorder_sections(self, profile_id: UUID | str, ordered_ids: list[str]) -> int:
        profile = await self.authorize(profile_id)
        touched = (await self.store.reorder_sections(profile.id, ordered_ids)).unwrap()
        await self._finish(profile)
        return touched

    # --- Field operations ---

    async def create_field(self, profile_id: UUID | str, section_id: str, data: NewField) -> FieldData:
        profile = await self.authorize(profile_id)
        await self._owned_section(profile, section_id)
        created = (await self.store.create_field(section_id, data)).unwrap()
        await self._finish(profile)
        return created

    async def update_field(
        self, profile_id: UUID | str, section_id: str, field_id: str, patch: FieldPatch
    ) -> FieldData:
        profile = await self.authorize(profile_id)
        section = await self._owned_section(profile, section_id)
        if self._section_field(section, field_id) is None:
            raise NotFoundError(f"Field '{field_id}' not found")
        updated = (await self.store.update_field(field_id, patch)).unwrap()
        await self._finish(profile)
        return updated

    async def delete_field(self, profile_id: UUID | str, section_id: str, field_id: str) -> int:
        """Idempotent: a field that is already gone reports zero rows."""
        profile = await self.authorize(profile_id)
        section = await self._owned_section(profile, section_id)
        if self._section_field(section, field_id) is None:
            return 0
        deleted = (await self.store.delete_field(field_id)).unwrap()
        await self._finish(profile)
        return deleted

    async def reorder_fields(
        self, profile_id: UUID | str, section_id: str, ordered_ids: list[str]
    ) -> int:
        profile = await self.authorize(profile_id)
        await self._owned_section(profile, section_id)
        touched = (await self.store.reorder_fields(section_id, ordered_ids)).unwrap()
        await self._finish(profile)
        return touched

    # --- Collection save ---

    async def save_sections(
        self,
        profile_id: UUID | str,
        sections: dict[str, Any] | list[EditableSection],
        profile: Profile | None = None,
    ) -> list[EditableSection]:
        """
        Save an edited section collection.

        The submitted collection is authoritative: persisted sections are
        updated, unsaved ones created and row-backed sections missing from it
        deleted. Every legacy cache entry it covers is promoted to rows and
        legacy entries it leaves out are dropped, so afterwards the cache holds
        exactly the saved rows.
        """
        if profile is None:
            profile = await self.authorize(profile_id)

        editor = await SectionEditor.load(self.store, str(profile.id))
        editor.sections = normalize(sections)

        saved = await editor.save(self.store)
        if saved is None:
            return editor.sections

        await self._finish(profile, drop_keys=tuple(profile.profile_sections or {}))
        logger.info("Saved %d section(s) for profile %s", len(saved), profile.id)
        return saved


def get_update_service(
    db: AsyncSession = Depends(get_db),
    resolve_principal: PrincipalResolver = Depends(get_principal_resolver),
) -> ProfileUpdateService:
    """Dependency that wires the update service to the request's session and token."""
    return ProfileUpdateService(db, resolve_principal)

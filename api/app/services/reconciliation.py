"""
Editable section state and save reconciliation.

Profile section data reaches the editor in three historical shapes under the
``profile_sections`` map (keyed by section name):

1. canonical ``{"section_id": ..., "fields": [{"field_id": ..., ...}]}``
2. a bare list of field-like dicts (legacy)
3. a bare dict of scalar ``label -> value`` pairs (oldest legacy)

``normalize`` folds all three into a list of ``EditableSection``. Every
section and field carries a ``persisted`` tag, set once at hydration: ``True``
for rows known to exist in the store, ``False`` for anything made up on the
client. Saving sends ids only for persisted fields, so placeholders are
always inserted and real rows are always updated.

The mutation helpers are pure: they take a section list and return a new
one, leaving the input untouched. ``plan_save`` diffs an edited list against
the list it started from and ``SectionEditor`` runs the resulting plan
against a ``SectionStore``.
"""

import copy
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Literal
from uuid import uuid4

from app.errors import NotFoundError
from app.models.section import FIELD_TYPES
from app.services.section_store import (
    FieldPatch,
    NewField,
    NewSection,
    SectionData,
    SectionPatch,
    SectionStore,
    slugify,
)
from app.services.templates import SectionDraft

logger = logging.getLogger(__name__)

IdKind = Literal["existing", "temporary"]
Direction = Literal["up", "down"]

EXISTING: IdKind = "existing"
TEMPORARY: IdKind = "temporary"

_UUID_V4 = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_NUMERIC = re.compile(r"^[0-9]+$")


def classify_field_id(field_id: Any) -> IdKind:
    """
    Decide whether an id from a legacy payload names a stored row.

    UUID v4 and purely numeric ids are treated as stored rows. Long hyphenated
    ids (client timestamp/random composites), empty ids and anything else are
    placeholders.
    """
    if field_id is None:
        return TEMPORARY
    value = str(field_id)
    if not value:
        return TEMPORARY
    if _UUID_V4.match(value):
        return EXISTING
    if "-" in value and len(value) > 30:
        return TEMPORARY
    if _NUMERIC.match(value):
        return EXISTING
    return TEMPORARY


def is_existing_id(field_id: Any) -> bool:
    return classify_field_id(field_id) == EXISTING


def new_placeholder_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex}"


def humanize_key(key: str) -> str:
    """``work_experience`` -> ``Work experience``."""
    if not key:
        return key
    return key[0].upper() + key[1:].replace("_", " ")


# --- Editable model ---


@dataclass
class EditableField:
    id: str
    label: str
    value: str = ""
    type: str = "text"
    persisted: bool = False


@dataclass
class EditableSection:
    id: str
    key: str
    title: str
    fields: list[EditableField] = field(default_factory=list)
    persisted: bool = False
    section_key: str | None = None


# --- Normalization ---


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _coerce_type(value: Any) -> str:
    return value if value in FIELD_TYPES else "text"


def _first_present(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def _canonical_field(section_key: str, index: int, item: dict[str, Any]) -> EditableField:
    field_id = _first_present(item, "field_id", "id")
    persisted = field_id is not None and str(field_id) != ""
    label = _first_present(item, "field_label", "label")
    return EditableField(
        id=str(field_id) if persisted else f"{section_key}-field-{index}",
        label=_as_text(label) if label is not None else f"Field {index + 1}",
        value=_as_text(_first_present(item, "field_value", "value")),
        type=_coerce_type(_first_present(item, "field_type", "type")),
        persisted=persisted,
    )


def _legacy_list_field(section_key: str, index: int, item: Any) -> EditableField:
    if not isinstance(item, dict):
        return EditableField(
            id=f"{section_key}-field-{index}",
            label=f"Field {index + 1}",
            value=_as_text(item),
        )
    field_id = _first_present(item, "field_id", "id")
    label = _first_present(item, "label", "field_label")
    return EditableField(
        id=str(field_id) if field_id not in (None, "") else f"{section_key}-field-{index}",
        label=_as_text(label) if label is not None else f"Field {index + 1}",
        value=_as_text(_first_present(item, "value", "field_value")),
        type=_coerce_type(_first_present(item, "type", "field_type")),
        persisted=is_existing_id(field_id),
    )


def _normalize_entry(key: str, value: Any) -> EditableSection | None:
    if isinstance(value, dict) and isinstance(value.get("fields"), list):
        section_id = value.get("section_id")
        persisted = section_id is not None and str(section_id) != ""
        return EditableSection(
            id=str(section_id) if persisted else key,
            key=key,
            title=_as_text(value.get("title")) or humanize_key(key),
            fields=[
                _canonical_field(key, index, item)
                for index, item in enumerate(value["fields"])
                if isinstance(item, dict)
            ],
            persisted=persisted,
            section_key=value.get("section_key") or None,
        )

    if isinstance(value, list):
        return EditableSection(
            id=key,
            key=key,
            title=humanize_key(key),
            fields=[_legacy_list_field(key, index, item) for index, item in enumerate(value)],
        )

    if isinstance(value, dict):
        return EditableSection(
            id=key,
            key=key,
            title=humanize_key(key),
            fields=[
                EditableField(id=f"{key}-field-{index}", label=str(label), value=_as_text(raw))
                for index, (label, raw) in enumerate(value.items())
            ],
        )

    return None


def normalize(raw_sections: Any) -> list[EditableSection]:
    """
    Fold a ``profile_sections`` map into editable sections.

    Deterministic and idempotent: a list of ``EditableSection`` comes back as
    an equal deep copy, and ``normalize(to_sections_map(normalize(s)))``
    equals ``normalize(s)`` up to regenerated placeholder ids.
    """
    if not raw_sections:
        return []
    if isinstance(raw_sections, (list, tuple)):
        return [copy.deepcopy(s) for s in raw_sections if isinstance(s, EditableSection)]
    if not isinstance(raw_sections, dict):
        return []

    sections = []
    for key, value in raw_sections.items():
        section = _normalize_entry(str(key), value)
        if section is not None:
            sections.append(section)
    return sections


def to_sections_map(sections: list[EditableSection]) -> dict[str, Any]:
    """Write editable sections back in the canonical map shape."""
    result: dict[str, Any] = {}
    for section in sections:
        entry: dict[str, Any] = {"title": section.title}
        if section.persisted:
            entry["section_id"] = section.id
        if section.section_key:
            entry["section_key"] = section.section_key
        fields = []
        for f in section.fields:
            item = {"field_label": f.label, "field_value": f.value, "field_type": f.type}
            if f.persisted:
                item["field_id"] = f.id
            fields.append(item)
        entry["fields"] = fields
        result[section.key] = entry
    return result


def build_sections_cache(
    sections: list[SectionData], existing: dict[str, Any] | None = None
) -> dict[str, Any]:
    """
    Project section rows into the ``profile_sections`` cache.

    Legacy entries of ``existing`` that are not backed by a row are kept.
    Entries carrying a ``section_id`` are dropped and rebuilt from ``sections``,
    keyed by ``section_key`` with ``_2``, ``_3``... suffixes for duplicates.
    """
    cache: dict[str, Any] = {}
    for key, value in (existing or {}).items():
        if isinstance(value, dict) and value.get("section_id"):
            continue
        cache[key] = copy.deepcopy(value)

    for section in sections:
        base = section.section_key or slugify(section.title) or "section"
        key = base
        suffix = 2
        while key in cache:
            key = f"{base}_{suffix}"
            suffix += 1
        cache[key] = section.to_cache_entry()
    return cache


# --- Pure mutations ---


def _index_of(items: list, item_id: str) -> int:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    return -1


def _swap(items: list, index: int, direction: Direction) -> list:
    if direction not in ("up", "down"):
        raise ValueError(f"Unknown direction '{direction}'")
    target = index - 1 if direction == "up" else index + 1
    if index < 0 or target < 0 or target >= len(items):
        return list(items)
    moved = list(items)
    moved[index], moved[target] = moved[target], moved[index]
    return moved


def _unique_key(sections: list[EditableSection], base: str) -> str:
    taken = {s.key for s in sections}
    key = base or "section"
    suffix = 2
    while key in taken:
        key = f"{base or 'section'}_{suffix}"
        suffix += 1
    return key


def _map_section(sections, section_id, change) -> list[EditableSection]:
    return [change(s) if s.id == section_id else s for s in sections]


def add_section(
    sections: list[EditableSection],
    title: str = "New Section",
    fields: list[EditableField] | None = None,
) -> list[EditableSection]:
    """Append an unsaved section; it starts with one blank field unless ``fields`` is given."""
    if fields is None:
        fields = [EditableField(id=new_placeholder_id("field"), label="New Field")]
    section = EditableSection(
        id=new_placeholder_id("section"),
        key=_unique_key(sections, slugify(title)),
        title=title,
        fields=list(fields),
    )
    return [*sections, section]


def add_section_from_template(
    sections: list[EditableSection], draft: SectionDraft
) -> list[EditableSection]:
    """Append an unsaved section built from a template draft."""
    section = EditableSection(
        id=draft.section.id,
        key=_unique_key(sections, draft.section.section_key),
        title=draft.section.title,
        section_key=draft.section.section_key,
        fields=[
            EditableField(id=f.id, label=f.field_label, value=f.field_value, type=f.field_type)
            for f in draft.fields
        ],
    )
    return [*sections, section]


def remove_section(sections: list[EditableSection], section_id: str) -> list[EditableSection]:
    return [s for s in sections if s.id != section_id]


def rename_section(
    sections: list[EditableSection], section_id: str, title: str
) -> list[EditableSection]:
    return _map_section(sections, section_id, lambda s: replace(s, title=title))


def move_section(
    sections: list[EditableSection], section_id: str, direction: Direction
) -> list[EditableSection]:
    """Swap with the neighbour; a no-op at either end."""
    return _swap(sections, _index_of(sections, section_id), direction)


def add_field(
    sections: list[EditableSection],
    section_id: str,
    label: str = "New Field",
    value: str = "",
    type: str = "text",
) -> list[EditableSection]:
    new = EditableField(
        id=new_placeholder_id("field"), label=label, value=value, type=_coerce_type(type)
    )
    return _map_section(sections, section_id, lambda s: replace(s, fields=[*s.fields, new]))


def remove_field(
    sections: list[EditableSection], section_id: str, field_id: str
) -> list[EditableSection]:
    return _map_section(
        sections,
        section_id,
        lambda s: replace(s, fields=[f for f in s.fields if f.id != field_id]),
    )


def update_field(
    sections: list[EditableSection],
    section_id: str,
    field_id: str,
    *,
    label: str | None = None,
    value: str | None = None,
    type: str | None = None,
) -> list[EditableSection]:
    """Relabel, revalue or retype one field. ``value=""`` clears it."""
    changes: dict[str, Any] = {}
    if label is not None:
        changes["label"] = label
    if value is not None:
        changes["value"] = value
    if type is not None:
        changes["type"] = _coerce_type(type)

    def change(section: EditableSection) -> EditableSection:
        return replace(
            section,
            fields=[replace(f, **changes) if f.id == field_id else f for f in section.fields],
        )

    return _map_section(sections, section_id, change)


def move_field(
    sections: list[EditableSection], section_id: str, field_id: str, direction: Direction
) -> list[EditableSection]:
    """Swap a field with its neighbour inside its section; a no-op at either end."""

    def change(section: EditableSection) -> EditableSection:
        return replace(section, fields=_swap(section.fields, _index_of(section.fields, field_id), direction))

    return _map_section(sections, section_id, change)


# --- Save transformation ---


def to_persistable_fields(section: EditableSection) -> list[FieldPatch]:
    """
    Map editable fields to store patches.

    Order is the list position. Only persisted fields keep their id. A blank
    value stays ``""`` so clearing a field persists as blank.
    """
    return [
        FieldPatch(
            id=f.id if f.persisted else None,
            field_key=slugify(f.label) or None,
            field_label=f.label,
            field_value=f.value if f.value is not None else "",
            field_type=_coerce_type(f.type),
            display_order=index,
        )
        for index, f in enumerate(section.fields)
    ]


@dataclass
class SectionUpdate:
    section_id: str
    patch: SectionPatch
    fields: list[FieldPatch]


@dataclass
class SectionCreate:
    placeholder_id: str
    data: NewSection


@dataclass
class SavePlan:
    section_deletes: list[str] = field(default_factory=list)
    field_deletes: list[str] = field(default_factory=list)
    updates: list[SectionUpdate] = field(default_factory=list)
    creates: list[SectionCreate] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.section_deletes or self.field_deletes or self.updates or self.creates)


def _changed_fields(base: EditableSection, patches: list[FieldPatch]) -> list[FieldPatch]:
    before = {
        f.id: (index, f.label, f.value, f.type)
        for index, f in enumerate(base.fields)
        if f.persisted
    }
    changed = []
    for patch in patches:
        previous = before.get(patch.id) if patch.id else None
        current = (patch.display_order, patch.field_label, patch.field_value, patch.field_type)
        if previous != current:
            changed.append(patch)
    return changed


def plan_save(baseline: list[EditableSection], current: list[EditableSection]) -> SavePlan:
    """
    Diff the edited sections against the state they were loaded from.

    Persisted sections become updates carrying only the fields that were
    added or changed; persisted fields and sections that disappeared become
    explicit deletes; unsaved sections become creates. Section order is the
    list position. A persisted section missing from the baseline raises
    ``NotFoundError``: it belongs to another profile or no longer exists.
    """
    plan = SavePlan()
    base_sections = {s.id: s for s in baseline if s.persisted}
    current_ids = {s.id for s in current if s.persisted}

    plan.section_deletes = [sid for sid in base_sections if sid not in current_ids]

    for index, section in enumerate(current):
        if not section.persisted:
            plan.creates.append(
                SectionCreate(
                    placeholder_id=section.id,
                    data=NewSection(
                        title=section.title,
                        section_key=section.section_key or slugify(section.title) or None,
                        display_order=index,
                        fields=[
                            NewField(
                                field_label=p.field_label,
                                field_key=p.field_key,
                                field_value=p.field_value,
                                field_type=p.field_type,
                                display_order=p.display_order,
                            )
                            for p in to_persistable_fields(section)
                        ],
                    ),
                )
            )
            continue

        base = base_sections.get(section.id)
        if base is None:
            # Only sections loaded into this baseline may be written
            raise NotFoundError(f"Section '{section.id}' not found")
        kept = {f.id for f in section.fields if f.persisted}
        plan.field_deletes.extend(
            f.id for f in base.fields if f.persisted and f.id not in kept
        )

        fields = _changed_fields(base, to_persistable_fields(section))
        base_index = _index_of(baseline, section.id)
        if fields or base.title != section.title or base_index != index:
            plan.updates.append(
                SectionUpdate(
                    section_id=section.id,
                    patch=SectionPatch(title=section.title, display_order=index),
                    fields=fields,
                )
            )
    return plan


async def execute_plan(store: SectionStore, profile_id: str, plan: SavePlan) -> None:
    """
    Apply a save plan step by step.

    Steps run in order (section deletes, field deletes, updates, creates) and
    the first failing step raises, leaving earlier steps in place.
    """
    for section_id in plan.section_deletes:
        (await store.delete_section(section_id)).unwrap()
    for field_id in plan.field_deletes:
        (await store.delete_field(field_id)).unwrap()
    for update in plan.updates:
        (await store.update_section(update.section_id, update.patch, update.fields)).unwrap()
    for create in plan.creates:
        (await store.create_section(profile_id, create.data)).unwrap()


class SectionEditor:
    """
    Editing session over one profile's sections.

    Holds the working list, the baseline it was loaded from, and an in-flight
    flag so that a second ``save`` issued while one is running is dropped.
    """

    def __init__(self, profile_id: str, raw_sections: Any = None):
        self.profile_id = str(profile_id)
        self.sections = normalize(raw_sections)
        self._baseline = normalize(self.sections)
        self._saving = False

    @classmethod
    async def load(cls, store: SectionStore, profile_id: str) -> "SectionEditor":
        rows = (await store.list_sections_with_fields(profile_id)).unwrap()
        return cls(profile_id, build_sections_cache(rows))

    @property
    def saving(self) -> bool:
        return self._saving

    @property
    def baseline(self) -> list[EditableSection]:
        return normalize(self._baseline)

    def apply(self, mutation, *args, **kwargs) -> list[EditableSection]:
        """Run a pure mutation (``add_field``, ``move_section``...) on the working list."""
        self.sections = mutation(self.sections, *args, **kwargs)
        return self.sections

    def plan(self) -> SavePlan:
        return plan_save(self._baseline, self.sections)

    async def save(self, store: SectionStore) -> list[EditableSection] | None:
        """
        Persist the working list and reload it from the store.

        Returns ``None`` without touching the store when a save is already in
        flight. Store errors propagate; steps already applied stay applied.
        """
        if self._saving:
            logger.debug("Save already in flight for profile %s; dropping", self.profile_id)
            return None

        self._saving = True
        try:
            plan = self.plan()
            logger.info(
                "Saving sections for profile %s: %d delete(s), %d field delete(s), "
                "%d update(s), %d create(s)",
                self.profile_id,
                len(plan.section_deletes),
                len(plan.field_deletes),
                len(plan.updates),
                len(plan.creates),
            )
            await execute_plan(store, self.profile_id, plan)
            rows = (await store.list_sections_with_fields(self.profile_id)).unwrap()
            self.sections = normalize(build_sections_cache(rows))
            self._baseline = normalize(self.sections)
            return self.sections
        finally:
            self._saving = False

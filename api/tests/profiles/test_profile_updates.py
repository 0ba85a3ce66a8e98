"""
Tests for ProfileUpdateService:
- authorization before any write
- modal patch builders
- section-edit through rows
- cache rebuilds and invalidation events
"""

from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import Principal
from app.errors import AuthorizationError, NotFoundError, UnauthenticatedError, ValidationError
from app.models.profile import Profile
from app.services.invalidation import InvalidationBus
from app.services.profile_updates import (
    ProfileUpdateService,
    build_patch,
    build_section_edit_patch,
    build_work_item_patch,
)
from app.services.section_store import FieldPatch, NewField, NewSection, SectionStore


@pytest.fixture
def bus() -> InvalidationBus:
    return InvalidationBus()


@pytest.fixture
def events(bus: InvalidationBus) -> list[tuple[str, str]]:
    received: list[tuple[str, str]] = []
    bus.subscribe("profile", lambda scope, key: received.append((scope, key)))
    bus.subscribe("username", lambda scope, key: received.append((scope, key)))
    return received


@pytest.fixture
def service_for(db_session: AsyncSession, resolver_for, bus: InvalidationBus):
    """Build a service acting as the given principal."""

    def _service_for(principal_id) -> ProfileUpdateService:
        return ProfileUpdateService(db_session, resolver_for(principal_id), bus)

    return _service_for


async def _reload(db_session: AsyncSession, profile_id: str) -> Profile:
    return await db_session.get(Profile, UUID(profile_id), populate_existing=True)


class TestPatchBuilders:
    """Pure modal patch builders."""

    def test_profile_patch_defaults(self):
        patch = build_patch("profile", {}, {"name": "Ada"})
        assert patch == {
            "full_name": "Ada",
            "website": "",
            "email": "",
            "avatar_url": None,
            "background_url": None,
        }

    def test_profile_patch_rejects_bad_email(self):
        with pytest.raises(ValidationError):
            build_patch("profile", {}, {"name": "Ada", "email": "not-an-email"})

    def test_bio_patch_defaults_to_blank(self):
        assert build_patch("bio", {}, {}) == {"bio": ""}

    def test_work_patch_replaces_list(self):
        current = {"work": [{"company": "Old"}], "hobbies": {"a": "b"}}
        patch = build_patch("work", current, {"work": [{"company": "New"}]})
        assert patch["profile_sections"] == {"work": [{"company": "New"}], "hobbies": {"a": "b"}}

    def test_work_item_replaces_in_range_and_appends_otherwise(self):
        current = {"work": [{"company": "A"}, {"company": "B"}]}

        replaced = build_work_item_patch(current, {"company": "C"}, 1)
        assert replaced["profile_sections"]["work"] == [{"company": "A"}, {"company": "C"}]

        for index in (None, 2, -1):
            appended = build_work_item_patch(current, {"company": "C"}, index)
            assert appended["profile_sections"]["work"][-1] == {"company": "C"}
            assert len(appended["profile_sections"]["work"]) == 3

        assert current["work"] == [{"company": "A"}, {"company": "B"}]

    def test_section_edit_keeps_section_id_and_replaces_fields(self):
        current = {
            "education": {
                "section_id": "s1",
                "title": "Education",
                "fields": [{"field_id": "f1", "field_label": "School"}],
            }
        }
        patch = build_section_edit_patch(
            current, {"fields": [{"field_label": "Degree", "field_value": "BSc"}]}, "education"
        )
        entry = patch["profile_sections"]["education"]

        assert entry["section_id"] == "s1"
        assert entry["title"] == "Education"
        assert entry["fields"] == [{"field_label": "Degree", "field_value": "BSc"}]
        assert current["education"]["fields"][0]["field_id"] == "f1"

    def test_section_edit_reads_nested_section_data(self):
        patch = build_section_edit_patch(
            {}, {"sectionData": {"title": "Links", "fields": [{"label": "Site"}]}}, "links"
        )
        assert patch["profile_sections"]["links"] == {
            "title": "Links",
            "fields": [{"label": "Site"}],
        }

    def test_section_edit_without_fields_gets_empty_list(self):
        patch = build_section_edit_patch({}, {"title": "Links"}, "links")
        assert patch["profile_sections"]["links"]["fields"] == []

    def test_section_edit_requires_key(self):
        with pytest.raises(ValidationError):
            build_section_edit_patch({}, {"fields": []}, None)

    def test_unknown_modal_type(self):
        with pytest.raises(ValidationError):
            build_patch("avatar", {}, {})


class TestAuthorization:
    """Writes require the owning principal."""

    async def test_other_principal_is_rejected_before_writes(
        self,
        db_session: AsyncSession,
        service_for,
        test_profile: dict,
        second_profile: dict,
        events: list,
    ):
        service = service_for(second_profile["profile_id"])

        with pytest.raises(AuthorizationError):
            await service.apply_profile_update(test_profile["profile_id"], "bio", {"bio": "hacked"})

        profile = await _reload(db_session, test_profile["profile_id"])
        assert profile.bio is None
        assert events == []

    async def test_missing_principal_is_unauthenticated(self, service_for, test_profile: dict):
        service = service_for(None)
        with pytest.raises(UnauthenticatedError):
            await service.create_section(test_profile["profile_id"], NewSection(title="Work"))

    async def test_unauthenticated_is_an_authorization_error(self):
        assert issubclass(UnauthenticatedError, AuthorizationError)

    async def test_no_rows_written_for_foreign_section_create(
        self, db_session: AsyncSession, service_for, test_profile: dict, second_profile: dict
    ):
        service = service_for(second_profile["profile_id"])
        with pytest.raises(AuthorizationError):
            await service.create_section(test_profile["profile_id"], NewSection(title="Work"))

        rows = (await SectionStore(db_session).list_sections_with_fields(test_profile["profile_id"])).data
        assert rows == []

    async def test_principal_is_resolved_on_every_call(self, db_session: AsyncSession, bus, test_profile: dict):
        calls = []

        async def resolve():
            calls.append(1)
            return None if len(calls) > 1 else Principal(id=UUID(test_profile["profile_id"]))

        service = ProfileUpdateService(db_session, resolve, bus)
        await service.apply_profile_update(test_profile["profile_id"], "bio", {"bio": "first"})
        with pytest.raises(UnauthenticatedError):
            await service.apply_profile_update(test_profile["profile_id"], "bio", {"bio": "second"})
        assert len(calls) == 2

    async def test_unknown_profile(self, service_for):
        profile_id = str(uuid4())
        with pytest.raises(NotFoundError):
            await service_for(profile_id).apply_profile_update(profile_id, "bio", {"bio": "x"})


class TestModalUpdates:
    """apply_profile_update for identity and legacy modals."""

    async def test_profile_update_and_events(
        self, db_session: AsyncSession, service_for, test_profile: dict, events: list
    ):
        service = service_for(test_profile["profile_id"])
        await service.apply_profile_update(
            test_profile["profile_id"],
            "profile",
            {"name": "Test User", "website": "https://example.com", "email": "new@example.com"},
        )

        profile = await _reload(db_session, test_profile["profile_id"])
        assert profile.full_name == "Test User"
        assert profile.website == "https://example.com"
        assert profile.email == "new@example.com"
        assert profile.avatar_url is None
        assert events == [("profile", test_profile["profile_id"]), ("username", "testuser")]

    async def test_invalid_email_writes_nothing(
        self, db_session: AsyncSession, service_for, test_profile: dict, events: list
    ):
        service = service_for(test_profile["profile_id"])
        with pytest.raises(ValidationError):
            await service.apply_profile_update(
                test_profile["profile_id"], "profile", {"name": "X", "email": "nope"}
            )
        profile = await _reload(db_session, test_profile["profile_id"])
        assert profile.full_name == "Testuser"
        assert events == []

    async def test_work_item_on_legacy_profile(
        self, db_session: AsyncSession, service_for, legacy_profile: dict
    ):
        service = service_for(legacy_profile["profile_id"])
        await service.apply_profile_update(
            legacy_profile["profile_id"],
            "work-item",
            {"position": "Lead", "company": "Globex", "years": "2022-"},
            work_item_index=None,
        )

        profile = await _reload(db_session, legacy_profile["profile_id"])
        work = profile.profile_sections["work"]
        assert [w["company"] for w in work] == ["Acme", "Globex"]
        assert profile.profile_sections["hobbies"] == {"sport": "climbing", "music": "jazz"}


class TestSectionEdit:
    """section-edit goes through section rows."""

    async def test_legacy_entry_is_promoted_to_rows(
        self, db_session: AsyncSession, service_for, legacy_profile: dict
    ):
        profile_id = legacy_profile["profile_id"]
        service = service_for(profile_id)

        await service.apply_profile_update(
            profile_id,
            "section-edit",
            {
                "title": "Hobbies",
                "fields": [
                    {"label": "sport", "value": "bouldering", "type": "text"},
                    {"label": "music", "value": "jazz", "type": "text"},
                ],
            },
            section_key="hobbies",
        )

        rows = (await SectionStore(db_session).list_sections_with_fields(profile_id)).unwrap()
        assert [(r.title, r.section_key) for r in rows] == [("Hobbies", "hobbies")]
        assert [f.field_value for f in rows[0].fields] == ["bouldering", "jazz"]

        profile = await _reload(db_session, profile_id)
        entry = profile.profile_sections["hobbies"]
        assert entry["section_id"] == rows[0].id
        assert "work" in profile.profile_sections

    async def test_existing_section_fields_are_replaced(
        self, db_session: AsyncSession, service_for, test_profile: dict
    ):
        profile_id = test_profile["profile_id"]
        service = service_for(profile_id)
        created = await service.create_section(
            profile_id,
            NewSection(
                title="Education",
                section_key="education",
                fields=[NewField(field_label="Institution", field_value="MIT")],
            ),
        )

        await service.apply_profile_update(
            profile_id,
            "section-edit",
            {
                "fields": [
                    {"field_label": "Institution", "field_value": "Stanford"},
                    {"field_label": "Degree", "field_value": "PhD", "field_type": "text"},
                ]
            },
            section_key="education",
        )

        section = (await SectionStore(db_session).get_section_with_fields(created.id)).unwrap()
        assert section.title == "Education"
        assert [(f.field_label, f.field_value) for f in section.fields] == [
            ("Institution", "Stanford"),
            ("Degree", "PhD"),
        ]
        profile = await _reload(db_session, profile_id)
        cached = profile.profile_sections["education"]["fields"]
        assert [f["field_value"] for f in cached] == ["Stanford", "PhD"]

    async def test_unknown_section_id_is_not_found(self, service_for, test_profile: dict, events: list):
        service = service_for(test_profile["profile_id"])
        with pytest.raises(NotFoundError):
            await service.apply_profile_update(
                test_profile["profile_id"],
                "section-edit",
                {"section_id": str(uuid4()), "fields": []},
                section_key="ghost",
            )
        assert events == []


class TestSectionOperations:
    """Row-level operations keep the cache in step."""

    async def test_template_duplicates_get_numbered_cache_keys(
        self, db_session: AsyncSession, service_for, test_profile: dict
    ):
        profile_id = test_profile["profile_id"]
        service = service_for(profile_id)

        await service.create_section_from_template(profile_id, "work_experience")
        second = await service.create_section_from_template(profile_id, "work_experience")

        assert second.section.title == "Work Experience 2"
        assert second.notice
        profile = await _reload(db_session, profile_id)
        assert list(profile.profile_sections) == ["work_experience", "work_experience_2"]

    async def test_delete_section_is_idempotent_and_updates_cache(
        self, db_session: AsyncSession, service_for, test_profile: dict
    ):
        profile_id = test_profile["profile_id"]
        service = service_for(profile_id)
        section = await service.create_section(profile_id, NewSection(title="Skills"))

        assert await service.delete_section(profile_id, section.id) == 1
        assert await service.delete_section(profile_id, section.id) == 0

        profile = await _reload(db_session, profile_id)
        assert profile.profile_sections == {}

    async def test_cannot_touch_another_profiles_section(
        self, service_for, test_profile: dict, second_profile: dict
    ):
        owner = service_for(second_profile["profile_id"])
        theirs = await owner.create_section(second_profile["profile_id"], NewSection(title="Theirs"))

        me = service_for(test_profile["profile_id"])
        with pytest.raises(AuthorizationError):
            await me.delete_section(test_profile["profile_id"], theirs.id)
        with pytest.raises(NotFoundError):
            await me.reorder_fields(test_profile["profile_id"], theirs.id, [])

    async def test_field_operations(self, db_session: AsyncSession, service_for, test_profile: dict):
        profile_id = test_profile["profile_id"]
        service = service_for(profile_id)
        section = await service.create_section(
            profile_id,
            NewSection(title="Links", fields=[NewField(field_label="Site", field_type="url")]),
        )
        site = section.fields[0]

        added = await service.create_field(profile_id, section.id, NewField(field_label="Email", field_type="email"))
        assert added.display_order == 1

        updated = await service.update_field(
            profile_id, section.id, site.id, FieldPatch(field_value="https://example.com")
        )
        assert updated.field_value == "https://example.com"

        assert await service.reorder_fields(profile_id, section.id, [added.id, site.id]) == 2
        assert await service.delete_field(profile_id, section.id, added.id) == 1
        assert await service.delete_field(profile_id, section.id, added.id) == 0

        profile = await _reload(db_session, profile_id)
        cached = profile.profile_sections["links"]["fields"]
        assert [(f["field_label"], f["field_value"]) for f in cached] == [
            ("Site", "https://example.com")
        ]

    async def test_save_sections_collection(
        self, db_session: AsyncSession, service_for, legacy_profile: dict
    ):
        """The submitted collection becomes the stored sections."""
        profile_id = legacy_profile["profile_id"]
        service = service_for(profile_id)
        kept = await service.create_section(
            profile_id,
            NewSection(title="Skills", fields=[NewField(field_label="Languages", field_value="Python")]),
        )
        dropped = await service.create_section(profile_id, NewSection(title="Old"))

        profile = await _reload(db_session, profile_id)
        sections = {
            "skills": {
                **profile.profile_sections["skills"],
                "fields": [
                    {**profile.profile_sections["skills"]["fields"][0], "field_value": "Python, Go"},
                    {"field_label": "Tools", "field_value": "git"},
                ],
            },
            "hobbies": profile.profile_sections["hobbies"],
        }

        await service.apply_profile_update(profile_id, "sections", sections)

        rows = (await SectionStore(db_session).list_sections_with_fields(profile_id)).unwrap()
        assert [r.title for r in rows] == ["Skills", "Hobbies"]
        assert rows[0].id == kept.id
        assert [(f.field_label, f.field_value) for f in rows[0].fields] == [
            ("Languages", "Python, Go"),
            ("Tools", "git"),
        ]
        assert all(r.id != dropped.id for r in rows)

        profile = await _reload(db_session, profile_id)
        assert profile.profile_sections["hobbies"]["section_id"] == rows[1].id
        assert "old" not in profile.profile_sections


class TestLegacyEntries:
    """Legacy cache shapes keep their data through edits and saves."""

    def test_section_edit_converts_scalar_map_before_merging(self):
        current = {"hobbies": {"sport": "climbing", "music": "jazz"}}
        patch = build_section_edit_patch(current, {"title": "Hobbies & Fun"}, "hobbies")
        entry = patch["profile_sections"]["hobbies"]

        assert entry["title"] == "Hobbies & Fun"
        assert [(f["field_label"], f["field_value"]) for f in entry["fields"]] == [
            ("sport", "climbing"),
            ("music", "jazz"),
        ]
        assert "sport" not in entry

    def test_section_edit_converts_legacy_list(self):
        current = {"links": [{"label": "Site", "value": "https://example.com"}]}
        patch = build_section_edit_patch(current, {"title": "Links"}, "links")
        fields = patch["profile_sections"]["links"]["fields"]
        assert [(f["field_label"], f["field_value"]) for f in fields] == [
            ("Site", "https://example.com")
        ]

    async def test_rename_keeps_legacy_fields(
        self, db_session: AsyncSession, service_for, legacy_profile: dict
    ):
        profile_id = legacy_profile["profile_id"]
        service = service_for(profile_id)

        await service.apply_profile_update(
            profile_id, "section-edit", {"title": "Hobbies & Fun"}, section_key="hobbies"
        )

        rows = (await SectionStore(db_session).list_sections_with_fields(profile_id)).unwrap()
        assert [r.title for r in rows] == ["Hobbies & Fun"]
        assert [(f.field_label, f.field_value) for f in rows[0].fields] == [
            ("sport", "climbing"),
            ("music", "jazz"),
        ]
        profile = await _reload(db_session, profile_id)
        assert len(profile.profile_sections["hobbies"]["fields"]) == 2

    async def test_sections_save_drops_left_out_legacy_entries(
        self, db_session: AsyncSession, service_for, legacy_profile: dict
    ):
        profile_id = legacy_profile["profile_id"]
        service = service_for(profile_id)

        await service.apply_profile_update(profile_id, "sections", {})

        profile = await _reload(db_session, profile_id)
        assert profile.profile_sections == {}

    async def test_sections_save_keeps_only_submitted_entries(
        self, db_session: AsyncSession, service_for, legacy_profile: dict
    ):
        profile_id = legacy_profile["profile_id"]
        service = service_for(profile_id)

        await service.apply_profile_update(
            profile_id, "sections", {"hobbies": {"sport": "climbing", "music": "jazz"}}
        )

        profile = await _reload(db_session, profile_id)
        assert list(profile.profile_sections) == ["hobbies"]
        assert profile.profile_sections["hobbies"]["section_id"]


class TestCollectionSaveOwnership:
    """A collection save only writes sections of the acting profile."""

    async def test_foreign_section_id_is_not_found(
        self,
        db_session: AsyncSession,
        service_for,
        test_profile: dict,
        second_profile: dict,
        events: list,
    ):
        theirs = await service_for(second_profile["profile_id"]).create_section(
            second_profile["profile_id"],
            NewSection(title="Theirs", fields=[NewField(field_label="Note", field_value="mine")]),
        )
        events.clear()

        me = service_for(test_profile["profile_id"])
        with pytest.raises(NotFoundError):
            await me.save_sections(
                test_profile["profile_id"],
                {
                    "x": {
                        "section_id": theirs.id,
                        "title": "Hacked",
                        "fields": [{"field_id": theirs.fields[0].id, "field_value": "pwned"}],
                    }
                },
            )

        section = (await SectionStore(db_session).get_section_with_fields(theirs.id)).unwrap()
        assert section.title == "Theirs"
        assert section.fields[0].field_value == "mine"
        assert (await SectionStore(db_session).list_sections_with_fields(test_profile["profile_id"])).data == []
        assert events == []

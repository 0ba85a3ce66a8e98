"""
Tests for the section template catalog:
- lookups
- draft materialization
- GET /api/v1/section-templates
"""

from uuid import UUID, uuid4

from httpx import AsyncClient

from app.models.section import FIELD_TYPES
from app.services.templates import (
    all_section_templates,
    create_section_from_template,
    get_template_by_key,
)


class TestCatalog:
    """Template lookups."""

    def test_catalog_has_nine_templates(self):
        keys = [t.section_key for t in all_section_templates()]
        assert keys == [
            "work_experience",
            "education",
            "projects",
            "skills",
            "certifications",
            "publications",
            "volunteer_experience",
            "awards",
            "bio",
        ]

    def test_template_field_types_are_supported(self):
        for template in all_section_templates():
            assert template.fields
            assert all(f.field_type in FIELD_TYPES for f in template.fields)

    def test_lookup_by_key(self):
        template = get_template_by_key("awards")
        assert template is not None
        assert template.title == "Awards & Honors"

    def test_unknown_key_returns_none(self):
        assert get_template_by_key("nope") is None
        assert get_template_by_key(None) is None


class TestCreateSectionFromTemplate:
    """Draft materialization."""

    def test_education_draft(self):
        profile_id = str(uuid4())
        draft = create_section_from_template("education", profile_id)

        assert draft is not None
        assert draft.section.profile_id == profile_id
        assert draft.section.section_key == "education"
        assert [f.field_key for f in draft.fields] == [
            "institution",
            "degree",
            "start_date",
            "end_date",
            "description",
            "gpa",
        ]
        assert [f.display_order for f in draft.fields] == list(range(6))
        assert all(f.field_value == "" for f in draft.fields)
        assert all(f.section_id == draft.section.id for f in draft.fields)

    def test_ids_are_fresh_uuid4(self):
        first = create_section_from_template("skills", "p")
        second = create_section_from_template("skills", "p")

        assert UUID(first.section.id).version == 4
        assert first.section.id != second.section.id
        assert first.fields[0].id != second.fields[0].id

    def test_unknown_template_returns_none(self):
        assert create_section_from_template("nope", "p") is None


class TestTemplateEndpoints:
    """GET /api/v1/section-templates tests."""

    async def test_list_templates(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/section-templates")
        assert response.status_code == 200
        templates = response.json()["templates"]
        assert len(templates) == 9
        assert templates[0]["fields"][0]["field_key"] == "company_name"

    async def test_get_template(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/section-templates/bio")
        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "About Me"
        assert data["fields"][0]["required"] is True

    async def test_get_unknown_template_returns_404(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/section-templates/nope")
        assert response.status_code == 404

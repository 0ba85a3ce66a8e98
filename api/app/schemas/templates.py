"""Section template schemas."""

from pydantic import BaseModel, ConfigDict


class FieldTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    field_key: str
    field_label: str
    field_type: str
    placeholder: str | None
    required: bool


class SectionTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    section_key: str
    title: str
    description: str
    fields: list[FieldTemplateResponse]


class ListTemplatesResponse(BaseModel):
    templates: list[SectionTemplateResponse]

"""Section and field schemas."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

FieldType = Literal["text", "url", "email", "date", "textarea"]


class FieldInput(BaseModel):
    """A new field."""

    field_label: str
    field_key: str | None = None
    field_value: str | None = ""
    field_type: FieldType = "text"
    display_order: int | None = None

    @field_validator("field_label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field label cannot be empty")
        return v


class FieldUpdateInput(BaseModel):
    """A field patch; ``id`` names an existing row, otherwise the field is inserted."""

    id: str | None = None
    field_label: str | None = None
    field_key: str | None = None
    field_value: str | None = None
    field_type: FieldType | None = None
    display_order: int | None = None


class CreateSectionRequest(BaseModel):
    title: str
    section_key: str | None = None
    display_order: int | None = None
    is_public: bool = True
    fields: list[FieldInput] = []

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate title length."""
        if len(v) > 200:
            raise ValueError("Title must be 200 characters or less")
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v


class UpdateSectionRequest(BaseModel):
    title: str | None = None
    section_key: str | None = None
    display_order: int | None = None
    is_public: bool | None = None
    fields: list[FieldUpdateInput] | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        """Validate title length."""
        if v is not None:
            if len(v) > 200:
                raise ValueError("Title must be 200 characters or less")
            if not v.strip():
                raise ValueError("Title cannot be empty")
        return v


class FieldResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    section_id: str
    field_key: str
    field_label: str
    field_value: str
    field_type: str
    display_order: int


class SectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    profile_id: str
    title: str
    section_key: str
    display_order: int
    is_public: bool
    fields: list[FieldResponse]


class ListSectionsResponse(BaseModel):
    sections: list[SectionResponse]


class ReorderRequest(BaseModel):
    """Ids in their new order; ids not owned by the target are ignored."""

    ordered_ids: list[str]


class ReorderResponse(BaseModel):
    updated: int


class CreateFromTemplateRequest(BaseModel):
    template_key: str


class CreateFromTemplateResponse(BaseModel):
    section: SectionResponse
    notice: str | None


class SaveSectionsRequest(BaseModel):
    """A whole section collection in ``profile_sections`` map shape."""

    sections: dict[str, Any]


class DuplicateCheckResponse(BaseModel):
    exists: bool
    count: int

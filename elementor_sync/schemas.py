from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from elementor_sync.widgets import DEFAULT_WIDGET_TYPES, clean_widget_types


class TargetFields(BaseModel):
    """Which document a request edits: a page URL or a library template."""

    model_config = ConfigDict(extra="ignore")

    url: str | None = None
    template_id: int | None = Field(default=None, ge=0)
    document_type: str | None = None
    slug: str | None = None


class WidgetScopedRequest(TargetFields):
    widget_types: list[str] = Field(default_factory=lambda: list(DEFAULT_WIDGET_TYPES))

    @field_validator("widget_types", mode="before")
    @classmethod
    def parse_widget_types(cls, value: Any) -> list[str]:
        return list(clean_widget_types(value))


class ReplaceTextRequest(WidgetScopedRequest):
    find: str
    replace: str


class LlmEditRequest(WidgetScopedRequest):
    instruction: str = Field(min_length=1)

    @field_validator("instruction")
    @classmethod
    def require_instruction(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("instruction must not be blank")
        return value.strip()


class ApplyEditsRequest(WidgetScopedRequest):
    # Items are validated one by one when applied so a bad item fails alone.
    edits: list[Any]


class KitSettingsUpdateRequest(BaseModel):
    colors: list[dict[str, Any]] | None = None
    typography: list[dict[str, Any]] | None = None
    settings: dict[str, Any] | None = None


class TemplateSummary(BaseModel):
    id: int
    name: str
    document_type: str
    slug: str


class TemplateListResponse(BaseModel):
    templates: list[TemplateSummary]


class KitSettingsResponse(BaseModel):
    kit_id: int
    colors: list[Any]
    typography: list[Any]
    raw_settings: dict[str, Any]

"""
Data model for one analysis and its Webflow export.

JSON keys are camelCase on the wire (that is what the completion service
returns and what the frontend consumes); attributes are snake_case.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _unique(names: list[str], what: str) -> None:
    seen = set()
    for name in names:
        if name in seen:
            raise ValueError(f"duplicate {what} name: {name!r}")
        seen.add(name)


# ---------------------------------------------------------------------------
# Content models
# ---------------------------------------------------------------------------

class ContentField(_Model):
    name: str = Field(min_length=1)
    # Unknown types are kept; the exporter maps them to PlainText
    type: str = "string"
    description: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class ContentModel(_Model):
    name: str = Field(min_length=1)
    fields: list[ContentField] = []
    description: Optional[str] = None

    @model_validator(mode="after")
    def _unique_fields(self):
        _unique([f.name for f in self.fields], "field")
        return self


# ---------------------------------------------------------------------------
# UI components
# ---------------------------------------------------------------------------

class ComponentSlot(_Model):
    name: str = Field(min_length=1)
    selector: str = ""
    type: str = "text"
    description: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class UIComponent(_Model):
    name: str = Field(min_length=1)
    selector: str = ""
    slots: list[ComponentSlot] = []
    variants: Optional[list[str]] = None
    description: Optional[str] = None

    @model_validator(mode="after")
    def _unique_slots(self):
        _unique([s.name for s in self.slots], "slot")
        return self


# ---------------------------------------------------------------------------
# Mappings
# ---------------------------------------------------------------------------

class ComponentMapping(_Model):
    component_name: str = Field(min_length=1)
    # slot name -> raw field-path value, see response_parser.normalize_mapping_value
    slot_mappings: dict[str, Any] = {}

    @field_validator("slot_mappings", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return {} if v is None else v


class PageMapping(_Model):
    page_name: str = Field(min_length=1)
    component_mappings: list[ComponentMapping] = []


class AnalysisMetadata(_Model):
    url: str
    timestamp: str
    screenshot_path: Optional[str] = None


class AnalysisResult(_Model):
    content_models: list[ContentModel]
    ui_components: list[UIComponent]
    mappings: list[PageMapping]
    metadata: AnalysisMetadata

    @model_validator(mode="after")
    def _unique_names(self):
        _unique([m.name for m in self.content_models], "content model")
        _unique([c.name for c in self.ui_components], "component")
        return self


# ---------------------------------------------------------------------------
# Webflow export
# ---------------------------------------------------------------------------

class CollectionField(_Model):
    name: str
    type: str
    slug: str


class Collection(_Model):
    name: str
    slug: str
    fields: list[CollectionField]


class Symbol(_Model):
    name: str
    component_name: str
    bindings: dict[str, str]


class SymbolInstance(_Model):
    symbol_name: str
    collection_binding: Optional[str] = None


class ExportPage(_Model):
    name: str
    slug: str
    symbol_instances: list[SymbolInstance]


class ExportDocument(_Model):
    collections: list[Collection]
    symbols: list[Symbol]
    pages: list[ExportPage]
    csv_data: Optional[dict[str, list[dict[str, Any]]]] = None

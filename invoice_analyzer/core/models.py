"""Canonical data models for invoice analysis configuration and results."""
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Field keys superseded by the tag mechanism once any tag is enabled
TAG_REPLACED_FIELDS = ("documentTypes", "isPrivate")

DEFAULT_MODEL = "gemini-3-flash-preview"


class FieldType(str, Enum):
    """Declared value types for extraction fields."""
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    DATE = "date"


class CamelModel(BaseModel):
    """Base model reading and writing the camelCase JSON documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class FieldDefinition(CamelModel):
    """A single extraction field."""
    key: str = Field(..., min_length=1, description="Stable field identifier")
    label: str = Field(..., min_length=1, description="Display name")
    type: FieldType = Field(..., description="Declared value type")
    schema_hint: str = Field(..., min_length=1, description="Expected value shape shown to the model")
    instruction: str = Field(..., min_length=1, description="Extraction guidance")
    enabled: bool = Field(..., description="Whether the field is extracted")
    format: Optional[str] = Field(None, description="Format standard key, e.g. iso8601")


class TagParameter(CamelModel):
    """Configurable value substituted into a tag instruction."""
    label: str = Field(..., min_length=1, description="Display name")
    default: Union[str, bool, int, float] = Field(..., description="Value used when no override is given")


class TagDefinition(CamelModel):
    """A boolean classification emitted under ``tags.<id>``."""
    id: str = Field(..., min_length=1, description="Stable tag identifier")
    label: str = Field(..., min_length=1, description="Display name")
    instruction: str = Field(..., min_length=1, description="Instruction, may contain {{name}} placeholders")
    parameters: Optional[Dict[str, TagParameter]] = Field(None, description="Placeholder parameters")
    enabled: bool = Field(..., description="Whether the tag is evaluated")


class EnabledToggle(CamelModel):
    """Client override that only flips ``enabled`` on a global definition."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool


class DocumentTypeDefinition(CamelModel):
    """Known document classification."""
    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    description: str = Field(default="")


DEFAULT_DOCUMENT_TYPES = [
    DocumentTypeDefinition(id="commercial_invoice", label="Commercial Invoice", description="Standard invoice for goods/services"),
    DocumentTypeDefinition(id="proforma_invoice", label="Proforma Invoice", description="Preliminary invoice"),
    DocumentTypeDefinition(id="receipt", label="Receipt", description="Payment confirmation"),
    DocumentTypeDefinition(id="order_confirmation", label="Order Confirmation", description="Order confirmation"),
    DocumentTypeDefinition(id="purchase_order", label="Purchase Order", description="Purchase request"),
    DocumentTypeDefinition(id="government_taxes", label="Government/Taxes", description="Tax documents"),
]


class PromptTemplate(CamelModel):
    """Static prompt sections surrounding the generated rules."""
    preamble: Optional[str] = None
    general_rules: Optional[str] = None
    suffix: Optional[str] = None


class ExtractionOptions(CamelModel):
    """Extraction switches from the global config."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")

    fields: Optional[List[str]] = Field(None, description="Legacy field selection, used as default field filter")
    include_summary: bool = Field(default=False, description="Ask the model for a short summary")
    use_json_mode: bool = Field(default=False, description="Request structured JSON output")


class AnalysisConfig(CamelModel):
    """Global configuration document (or its resolved, per-client copy)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")

    field_definitions: List[FieldDefinition] = Field(default_factory=list)
    tag_definitions: List[TagDefinition] = Field(default_factory=list)
    extraction: ExtractionOptions = Field(default_factory=ExtractionOptions)
    prompt_template: PromptTemplate = Field(default_factory=PromptTemplate)
    raw_prompt: Optional[str] = Field(None, description="Fully custom prompt bypassing all rendering")
    model: Optional[str] = Field(None, description="Gemini model name")
    document_types: List[DocumentTypeDefinition] = Field(default_factory=lambda: list(DEFAULT_DOCUMENT_TYPES))

    @model_validator(mode="after")
    def keys_must_be_unique(self):
        """Reject duplicate field keys and tag ids."""
        _ensure_unique([f.key for f in self.field_definitions], "fieldDefinitions", "key")
        _ensure_unique([t.id for t in self.tag_definitions], "tagDefinitions", "id")
        return self


FieldOverride = Union[EnabledToggle, FieldDefinition]
TagOverride = Union[EnabledToggle, TagDefinition]


class ClientConfig(CamelModel):
    """Per-client document holding sparse field and tag overrides."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")

    name: str = Field(..., min_length=1)
    enabled: bool = Field(...)
    folder_path: str = Field(..., min_length=1)
    api_key_env_var: Optional[str] = Field(None, description="Environment variable holding this client's API key")
    model: Optional[str] = Field(None, description="Model override for this client")
    field_overrides: Dict[str, FieldOverride] = Field(default_factory=dict)
    tag_overrides: Dict[str, TagOverride] = Field(default_factory=dict)

    @field_validator("field_overrides", mode="before")
    @classmethod
    def attach_field_keys(cls, v):
        """Fill in ``key`` on custom field bodies from the map key."""
        return _attach_identity(v, "key")

    @field_validator("tag_overrides", mode="before")
    @classmethod
    def attach_tag_ids(cls, v):
        """Fill in ``id`` on custom tag bodies from the map key."""
        return _attach_identity(v, "id")


class PromptOptions(BaseModel):
    """Per-call prompt rendering options; never persisted."""

    model_config = ConfigDict(frozen=True)

    field_filter: Optional[List[str]] = None
    tag_filter: Optional[List[str]] = None
    include_summary: Optional[bool] = None
    param_overrides: Optional[Dict[str, str]] = None


class TokenUsage(CamelModel):
    """Token counters reported by the model for one call."""
    prompt_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cached_tokens: int = 0
    thoughts_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            cached_tokens=self.cached_tokens + other.cached_tokens,
            thoughts_tokens=self.thoughts_tokens + other.thoughts_tokens,
        )


def _ensure_unique(identifiers: List[str], section: str, attribute: str) -> None:
    seen = set()
    for identifier in identifiers:
        if identifier in seen:
            raise ValueError(f"{section}: duplicate {attribute} '{identifier}'")
        seen.add(identifier)


def _attach_identity(overrides, id_attr: str):
    if not isinstance(overrides, dict):
        return overrides

    attached = {}
    for name, body in overrides.items():
        if isinstance(body, dict) and set(body) - {"enabled"}:
            if body.get(id_attr, name) != name:
                raise ValueError(f"override '{name}' declares mismatching {id_attr} '{body[id_attr]}'")
            body = {**body, id_attr: name}
        attached[name] = body
    return attached

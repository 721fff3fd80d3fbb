"""Render the effective extraction schema into the Gemini system prompt."""
import json
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from .models import (
    DEFAULT_DOCUMENT_TYPES,
    TAG_REPLACED_FIELDS,
    AnalysisConfig,
    DocumentTypeDefinition,
    PromptOptions,
    PromptTemplate,
    TagDefinition,
)
from .schema import enabled_fields, enabled_tags

DEFAULT_PREAMBLE = "Analyze this invoice PDF and extract the following information in JSON format:"
DEFAULT_GENERAL_RULES = (
    'If any field cannot be determined, use "Unknown" for text fields, "0" for amounts, '
    "false for booleans, or [] for arrays."
)
DEFAULT_SUFFIX = "Always return valid JSON that can be parsed directly."

SUMMARY_SCHEMA_HINT = "Brief summary of the invoice including key items, services, or products"
SUMMARY_INSTRUCTION = "- For summary, provide a concise description of what this invoice is for (2-3 sentences max)"
TAG_RULES_HEADER = "For each tag below, set to true if the condition applies, false otherwise:"


def resolve_tag_instruction(tag: TagDefinition, param_overrides: Optional[Mapping[str, Any]] = None) -> str:
    """Substitute ``{{name}}`` placeholders in a tag instruction.

    Each declared parameter takes the call-level override when one is given,
    otherwise its configured default. Placeholders without a declared
    parameter are left as they are.

    Args:
        tag: Tag definition
        param_overrides: Optional parameter name -> value mapping

    Returns:
        The resolved instruction text
    """
    instruction = tag.instruction
    if not tag.parameters:
        return instruction

    for name, parameter in tag.parameters.items():
        value = parameter.default
        if param_overrides and param_overrides.get(name) is not None:
            value = param_overrides[name]
        instruction = instruction.replace("{{" + name + "}}", str(value))
    return instruction


def build_extraction_prompt(config: AnalysisConfig, options: Optional[PromptOptions] = None) -> str:
    """Build the extraction prompt for one analysis call.

    A configured raw prompt is returned verbatim and nothing else is rendered.
    Otherwise the prompt is: preamble, JSON schema example, per-field rules,
    per-tag rules, general rules, optional summary rule, suffix.

    Args:
        config: Effective (already resolved) configuration
        options: Optional filters, summary switch and parameter overrides

    Returns:
        The prompt text, identical for identical inputs
    """
    if config.raw_prompt:
        return config.raw_prompt

    options = options or PromptOptions()
    include_summary = (
        options.include_summary if options.include_summary is not None else config.extraction.include_summary
    )
    field_filter = options.field_filter if options.field_filter is not None else config.extraction.fields

    fields = enabled_fields(config.field_definitions)
    if field_filter:
        wanted = set(field_filter)
        fields = [f for f in fields if f.key in wanted]

    tags = enabled_tags(config.tag_definitions)
    if options.tag_filter is not None:
        wanted = set(options.tag_filter)
        tags = [t for t in tags if t.id in wanted]

    json_structure: dict[str, Any] = {}
    instructions = []
    for field in fields:
        json_structure[field.key] = field.schema_hint
        if tags and field.key in TAG_REPLACED_FIELDS:
            continue
        instructions.append(f"- For {field.key} ({field.schema_hint}), {field.instruction}")

    if include_summary:
        json_structure["summary"] = SUMMARY_SCHEMA_HINT

    tag_instructions = []
    if tags:
        json_structure["tags"] = {tag.id: "boolean" for tag in tags}
        for tag in tags:
            resolved = resolve_tag_instruction(tag, options.param_overrides)
            tag_instructions.append(f"- For tags.{tag.id} ({tag.label}): {resolved}")

    rules_text = "\n".join(instructions)
    if tag_instructions:
        rules_text += f"\n\n{TAG_RULES_HEADER}\n" + "\n".join(tag_instructions)

    template = config.prompt_template
    preamble = template.preamble or DEFAULT_PREAMBLE
    general_rules = template.general_rules or DEFAULT_GENERAL_RULES
    suffix = template.suffix or DEFAULT_SUFFIX

    json_example = json.dumps(json_structure, indent=2, ensure_ascii=False)

    sections = [
        preamble,
        json_example,
        "",
        "Important extraction rules:",
        rules_text,
        "",
        general_rules,
    ]
    if include_summary:
        sections.append(SUMMARY_INSTRUCTION)
    sections.append(suffix)

    return "\n".join(sections)


def build_prompt_preview(config: AnalysisConfig, template_override: Optional[PromptTemplate] = None) -> str:
    """Assemble the structured prompt ignoring any raw prompt.

    Used to preview edits to the template parts before saving them.
    """
    template = config.prompt_template.model_dump()
    if template_override is not None:
        template.update(template_override.model_dump(exclude_none=True))

    preview = config.model_copy(update={
        "raw_prompt": None,
        "prompt_template": PromptTemplate(**template),
    })
    return build_extraction_prompt(preview)


def get_active_tags(tags: Any) -> list[str]:
    """Return the ids of tags whose value is exactly ``True``."""
    if not isinstance(tags, Mapping):
        return []
    return [tag_id for tag_id, value in tags.items() if value is True]


def format_document_types(
    type_ids: Optional[Sequence[str]],
    document_types: Optional[Sequence[DocumentTypeDefinition]] = None,
) -> str:
    """Map document type ids to their labels, comma separated."""
    if not type_ids:
        return "Unknown"
    if isinstance(type_ids, str):
        type_ids = [type_ids]

    labels = {dt.id: dt.label for dt in (document_types or DEFAULT_DOCUMENT_TYPES)}
    return ", ".join(labels.get(type_id, type_id) for type_id in type_ids)

"""Tests for prompt construction."""
import json

import pytest
from conftest import make_field, make_tag

from invoice_analyzer.core.models import (
    AnalysisConfig,
    DocumentTypeDefinition,
    ExtractionOptions,
    PromptOptions,
    PromptTemplate,
    TagDefinition,
    TagParameter,
)
from invoice_analyzer.core.prompt_builder import (
    DEFAULT_GENERAL_RULES,
    DEFAULT_PREAMBLE,
    DEFAULT_SUFFIX,
    SUMMARY_INSTRUCTION,
    TAG_RULES_HEADER,
    build_extraction_prompt,
    build_prompt_preview,
    format_document_types,
    get_active_tags,
    resolve_tag_instruction,
)


def schema_of(prompt: str) -> dict:
    """Pull the JSON schema example out of a rendered prompt."""
    start = prompt.index("{")
    end = prompt.index("\n\nImportant extraction rules:")
    return json.loads(prompt[start:end])


@pytest.fixture
def address_tag():
    return TagDefinition(
        id="private",
        label="Private",
        instruction='Check "{{address}}"',
        enabled=True,
        parameters={"address": TagParameter(label="Address", default="123 Main St")},
    )


class TestResolveTagInstruction:
    """Test placeholder substitution in tag instructions."""

    def test_default_value(self, address_tag):
        assert resolve_tag_instruction(address_tag) == 'Check "123 Main St"'

    def test_override_value(self, address_tag):
        assert resolve_tag_instruction(address_tag, {"address": "456 Oak Ave"}) == 'Check "456 Oak Ave"'

    def test_no_parameters_passes_through(self):
        tag = make_tag("urgent", instruction="Set true if {{deadline}} is near")
        assert resolve_tag_instruction(tag, {"deadline": "tomorrow"}) == "Set true if {{deadline}} is near"

    def test_undeclared_placeholder_untouched(self, address_tag):
        tag = address_tag.model_copy(update={"instruction": "{{address}} or {{city}}"})
        assert resolve_tag_instruction(tag, {"city": "Berlin"}) == "123 Main St or {{city}}"

    def test_every_occurrence_replaced(self, address_tag):
        tag = address_tag.model_copy(update={"instruction": "{{address}} / {{address}}"})
        assert resolve_tag_instruction(tag) == "123 Main St / 123 Main St"


class TestBuildExtractionPrompt:
    """Test rendering of the structured prompt."""

    def test_default_sections_in_order(self, base_config):
        prompt = build_extraction_prompt(base_config)

        assert prompt.startswith(DEFAULT_PREAMBLE + "\n{")
        assert prompt.endswith(DEFAULT_SUFFIX)
        rules_at = prompt.index("Important extraction rules:")
        first_field_at = prompt.index("- For supplierName (string), extract the supplier's legal name")
        general_at = prompt.index(DEFAULT_GENERAL_RULES)
        assert rules_at < first_field_at < general_at

    def test_field_lines_follow_definition_order(self, base_config):
        prompt = build_extraction_prompt(base_config)

        positions = [prompt.index(f"- For {f.key} (") for f in base_config.field_definitions]
        assert positions == sorted(positions)
        assert list(schema_of(prompt)) == [f.key for f in base_config.field_definitions]

    def test_disabled_fields_skipped(self):
        config = AnalysisConfig(field_definitions=[make_field("a"), make_field("b", enabled=False)])

        prompt = build_extraction_prompt(config)

        assert "- For a (" in prompt
        assert "- For b (" not in prompt
        assert list(schema_of(prompt)) == ["a"]

    def test_custom_template(self, base_config):
        config = base_config.model_copy(update={
            "prompt_template": PromptTemplate(preamble="Read this:", general_rules="Be exact.", suffix="Only JSON.")
        })

        prompt = build_extraction_prompt(config)

        assert prompt.startswith("Read this:\n")
        assert "\nBe exact.\n" in prompt
        assert prompt.endswith("\nOnly JSON.")
        assert DEFAULT_PREAMBLE not in prompt

    def test_raw_prompt_returned_verbatim(self, base_config, address_tag):
        config = base_config.model_copy(update={
            "raw_prompt": "Just return {} please",
            "tag_definitions": [address_tag],
            "extraction": ExtractionOptions(include_summary=True, use_json_mode=True),
        })

        prompt = build_extraction_prompt(config, PromptOptions(field_filter=["supplierName"]))

        assert prompt == "Just return {} please"

    def test_tag_section(self, base_config, address_tag):
        config = base_config.model_copy(update={"tag_definitions": [address_tag, make_tag("urgent")]})

        prompt = build_extraction_prompt(config, PromptOptions(param_overrides={"address": "456 Oak Ave"}))

        assert TAG_RULES_HEADER in prompt
        assert '- For tags.private (Private): Check "456 Oak Ave"' in prompt
        assert "- For tags.urgent (Urgent): Set true if urgent" in prompt
        assert schema_of(prompt)["tags"] == {"private": "boolean", "urgent": "boolean"}

    def test_tag_replaced_fields_omitted_with_enabled_tags(self, base_config, address_tag):
        config = base_config.model_copy(update={"tag_definitions": [address_tag]})

        prompt = build_extraction_prompt(config)

        assert "- For documentTypes (" not in prompt
        assert "- For isPrivate (" not in prompt
        assert "- For supplierName (" in prompt
        schema = schema_of(prompt)
        assert "documentTypes" in schema
        assert "isPrivate" in schema

    def test_tag_replaced_fields_kept_without_enabled_tags(self, base_config, address_tag):
        disabled = address_tag.model_copy(update={"enabled": False})
        config = base_config.model_copy(update={"tag_definitions": [disabled]})

        prompt = build_extraction_prompt(config)

        assert "- For documentTypes (" in prompt
        assert "- For isPrivate (" in prompt
        assert TAG_RULES_HEADER not in prompt
        assert "tags" not in schema_of(prompt)

    def test_summary_requested_by_config(self, base_config):
        config = base_config.model_copy(update={"extraction": ExtractionOptions(include_summary=True)})

        prompt = build_extraction_prompt(config)

        assert "summary" in schema_of(prompt)
        assert prompt.index(DEFAULT_GENERAL_RULES) < prompt.index(SUMMARY_INSTRUCTION) < prompt.index(DEFAULT_SUFFIX)

    def test_summary_option_overrides_config(self, base_config):
        config = base_config.model_copy(update={"extraction": ExtractionOptions(include_summary=True)})

        assert SUMMARY_INSTRUCTION not in build_extraction_prompt(config, PromptOptions(include_summary=False))
        assert SUMMARY_INSTRUCTION in build_extraction_prompt(base_config, PromptOptions(include_summary=True))
        assert SUMMARY_INSTRUCTION not in build_extraction_prompt(base_config)

    def test_field_filter(self, base_config):
        prompt = build_extraction_prompt(base_config, PromptOptions(field_filter=["totalAmount", "supplierName"]))

        assert list(schema_of(prompt)) == ["supplierName", "totalAmount"]

    def test_extraction_fields_used_as_default_filter(self, base_config):
        config = base_config.model_copy(update={"extraction": ExtractionOptions(fields=["invoiceDate"])})

        assert list(schema_of(build_extraction_prompt(config))) == ["invoiceDate"]

    def test_tag_filter(self, base_config, address_tag):
        config = base_config.model_copy(update={"tag_definitions": [address_tag, make_tag("urgent")]})

        prompt = build_extraction_prompt(config, PromptOptions(tag_filter=["urgent"]))

        assert schema_of(prompt)["tags"] == {"urgent": "boolean"}
        assert "tags.private" not in prompt

    def test_deterministic(self, base_config, address_tag):
        config = base_config.model_copy(update={"tag_definitions": [address_tag]})
        options = PromptOptions(include_summary=True, param_overrides={"address": "Elm St"})

        assert build_extraction_prompt(config, options) == build_extraction_prompt(config, options)


def test_prompt_preview_ignores_raw_prompt(base_config):
    """Test previews render the structured prompt with template edits."""
    config = base_config.model_copy(update={
        "raw_prompt": "custom",
        "prompt_template": PromptTemplate(preamble="Old preamble", suffix="Old suffix"),
    })

    preview = build_prompt_preview(config, PromptTemplate(preamble="New preamble"))

    assert preview.startswith("New preamble\n")
    assert preview.endswith("\nOld suffix")
    assert "custom" not in preview


def test_get_active_tags():
    """Test only tags that are exactly true are active."""
    assert get_active_tags({"a": True, "b": False, "c": "true", "d": True}) == ["a", "d"]
    assert get_active_tags(None) == []
    assert get_active_tags(["a"]) == []


def test_format_document_types():
    """Test type ids map to labels."""
    assert format_document_types(["commercial_invoice", "receipt"]) == "Commercial Invoice, Receipt"
    assert format_document_types(["mystery"]) == "mystery"
    assert format_document_types([]) == "Unknown"
    assert format_document_types(None) == "Unknown"

    custom = [DocumentTypeDefinition(id="credit_note", label="Credit Note")]
    assert format_document_types(["credit_note"], custom) == "Credit Note"

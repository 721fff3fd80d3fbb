"""Parse Gemini answers and normalize them into complete analysis records."""
import copy
import json
import logging
import re
from typing import Any

from .exceptions import ParseError
from .models import AnalysisConfig, FieldType
from .schema import enabled_fields, enabled_tags

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

# Value inserted for an enabled field the model did not return
FIELD_TYPE_DEFAULTS: dict[FieldType, Any] = {
    FieldType.TEXT: UNKNOWN,
    FieldType.DATE: UNKNOWN,
    FieldType.NUMBER: 0,
    FieldType.BOOLEAN: False,
    FieldType.ARRAY: [],
}

_FENCED_RE = re.compile(r"\A```(?:json)?[^\S\n]*\n?(.*?)\n?```\Z", re.DOTALL | re.IGNORECASE)
_OPENING_FENCE_RE = re.compile(r"\A```(?:json)?[^\S\n]*\n?", re.IGNORECASE)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, keeping the inner content."""
    text = text.strip()
    match = _FENCED_RE.match(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```"):
        # Truncated answer: opening fence without a closing one
        return _OPENING_FENCE_RE.sub("", text, count=1).strip()
    return text


def parse_gemini_response(response_text: str, use_json_mode: bool = False) -> dict[str, Any]:
    """Parse the model's text answer into a dictionary.

    Args:
        response_text: Raw text returned by Gemini
        use_json_mode: Whether structured JSON output was requested for the call

    Returns:
        Parsed JSON object

    Raises:
        ParseError: If the answer is not a JSON object
    """
    if use_json_mode:
        logger.debug("[PARSE] Response requested in JSON mode")

    json_text = strip_code_fence(response_text or "")

    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise ParseError(
            f"Failed to parse Gemini response as JSON: {e}\nResponse was: {json_text[:200]}...",
            response_text or "",
            e,
        ) from e

    if not isinstance(parsed, dict):
        raise ParseError(
            f"Failed to parse Gemini response as JSON: expected an object, got {type(parsed).__name__}\n"
            f"Response was: {json_text[:200]}...",
            response_text or "",
        )
    return parsed


def default_for(field_type: FieldType) -> Any:
    """Type-appropriate placeholder for a missing field value."""
    return copy.copy(FIELD_TYPE_DEFAULTS.get(field_type, UNKNOWN))


def _fallback_payment_date(validated: dict[str, Any]) -> None:
    """Use the invoice date when no payment date was found."""
    invoice_date = validated.get("invoiceDate")
    if validated.get("paymentDate") == UNKNOWN and invoice_date and invoice_date != UNKNOWN:
        validated["paymentDate"] = invoice_date


def validate_analysis(analysis: dict[str, Any], config: AnalysisConfig) -> dict[str, Any]:
    """Fill in defaults so every enabled field and tag is present.

    Present values are kept as returned. Missing (absent or null) enabled
    fields get their type default, ``paymentDate`` falls back to
    ``invoiceDate``, and each enabled tag gets a boolean under ``tags``.
    Never raises for individual field problems.

    Args:
        analysis: Parsed model answer
        config: Effective configuration

    Returns:
        A new, completed record
    """
    validated = dict(analysis)

    for field in enabled_fields(config.field_definitions):
        if validated.get(field.key) is None:
            validated[field.key] = default_for(field.type)

    _fallback_payment_date(validated)

    if config.tag_definitions:
        tags = validated.get("tags")
        tags = dict(tags) if isinstance(tags, dict) else {}
        for tag in enabled_tags(config.tag_definitions):
            if not isinstance(tags.get(tag.id), bool):
                tags[tag.id] = False
        validated["tags"] = tags

    return validated

"""Post-extraction checks of values against their declared format standards."""
import re
from collections.abc import Callable, Sequence
from typing import Any, Optional

from pydantic import BaseModel

from .models import FieldDefinition

FORMAT_NONE = "none"

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ALPHA2_RE = re.compile(r"^[A-Z]{2}$")
_ALPHA3_RE = re.compile(r"^[A-Z]{3}$")
_BIC_RE = re.compile(r"^[A-Z]{6}[A-Z0-9]{2}([A-Z0-9]{3})?$", re.IGNORECASE)
_IBAN_RE = re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]{1,30}$", re.IGNORECASE)
_CREDITOR_REF_RE = re.compile(r"^RF\d{2}[A-Z0-9]{1,21}$", re.IGNORECASE)
_LEI_RE = re.compile(r"^[A-Z0-9]{20}$", re.IGNORECASE)


class FormatCheck(BaseModel):
    """Outcome of checking one value."""
    valid: bool
    corrected: Optional[str] = None
    error: Optional[str] = None


class FormatWarning(BaseModel):
    """A field whose value does not match its declared format."""
    field: str
    format: str
    value: Any
    error: str


def _iso8601(value: str) -> FormatCheck:
    date_only = re.sub(r"T.*$", "", value)
    if not _ISO_DATE_RE.match(date_only):
        return FormatCheck(valid=False, error=f"Does not match YYYY-MM-DD pattern: {value}")

    _, month, day = (int(part) for part in date_only.split("-"))
    if not (1 <= month <= 12 and 1 <= day <= 31):
        return FormatCheck(valid=False, error=f"Invalid date values: {value}")
    if date_only != value:
        return FormatCheck(valid=True, corrected=date_only)
    return FormatCheck(valid=True)


def _uppercase_code(pattern: re.Pattern, description: str) -> Callable[[str], FormatCheck]:
    def check(value: str) -> FormatCheck:
        upper = value.upper()
        if not pattern.match(upper):
            return FormatCheck(valid=False, error=f"Not a valid {description}: {value}")
        if upper != value:
            return FormatCheck(valid=True, corrected=upper)
        return FormatCheck(valid=True)
    return check


def _pattern(pattern: re.Pattern, description: str, strip_spaces: bool = False) -> Callable[[str], FormatCheck]:
    def check(value: str) -> FormatCheck:
        candidate = re.sub(r"\s", "", value) if strip_spaces else value
        if pattern.match(candidate):
            return FormatCheck(valid=True)
        return FormatCheck(valid=False, error=f"Not a valid {description}: {value}")
    return check


VALIDATORS: dict[str, Callable[[str], FormatCheck]] = {
    "iso8601": _iso8601,
    "iso4217": _uppercase_code(_ALPHA3_RE, "3-letter currency code"),
    "iso3166_alpha2": _uppercase_code(_ALPHA2_RE, "2-letter country code"),
    "iso3166_alpha3": _uppercase_code(_ALPHA3_RE, "3-letter country code"),
    "iso9362": _pattern(_BIC_RE, "BIC/SWIFT code"),
    "iso13616": _pattern(_IBAN_RE, "IBAN format", strip_spaces=True),
    "iso11649": _pattern(_CREDITOR_REF_RE, "creditor reference (RF format)", strip_spaces=True),
    "iso17442": _pattern(_LEI_RE, "LEI (20 alphanumeric chars required)"),
}


def validate_field_format(value: Any, fmt: Optional[str]) -> FormatCheck:
    """Check a single value against a format key.

    Empty, null and "Unknown" values, as well as unknown format keys, are
    always valid.
    """
    if value is None or value == "" or value == "Unknown":
        return FormatCheck(valid=True)

    validator = VALIDATORS.get(fmt or FORMAT_NONE)
    if validator is None:
        return FormatCheck(valid=True)
    return validator(str(value))


def validate_all_formats(
    analysis: dict[str, Any],
    field_definitions: Sequence[FieldDefinition],
) -> tuple[dict[str, Any], list[FormatWarning]]:
    """Check every enabled field that declares a format.

    Returns:
        Tuple of (record with auto-corrections applied, list of warnings)
    """
    corrected = dict(analysis)
    warnings: list[FormatWarning] = []

    for field in field_definitions:
        if not field.enabled or not field.format or field.format == FORMAT_NONE:
            continue

        value = corrected.get(field.key)
        result = validate_field_format(value, field.format)

        if result.corrected is not None:
            corrected[field.key] = result.corrected
        if not result.valid:
            warnings.append(FormatWarning(field=field.key, format=field.format, value=value, error=result.error or ""))

    return corrected, warnings

"""Tests for format standard checks."""
import pytest
from conftest import make_field

from invoice_analyzer.core.format_validator import validate_all_formats, validate_field_format


@pytest.mark.parametrize("value,fmt", [
    ("2024-01-15", "iso8601"),
    ("EUR", "iso4217"),
    ("DE", "iso3166_alpha2"),
    ("DEU", "iso3166_alpha3"),
    ("DEUTDEFF", "iso9362"),
    ("DEUTDEFF500", "iso9362"),
    ("DE89 3704 0044 0532 0130 00", "iso13616"),
    ("RF18 5390 0754 7034", "iso11649"),
    ("529900T8BM49AURSDO55", "iso17442"),
])
def test_valid_values(value, fmt):
    """Test well-formed values pass unchanged."""
    result = validate_field_format(value, fmt)

    assert result.valid is True
    assert result.corrected is None


@pytest.mark.parametrize("value,fmt", [
    ("15.01.2024", "iso8601"),
    ("2024-13-01", "iso8601"),
    ("Euro", "iso4217"),
    ("GER", "iso3166_alpha2"),
    ("DEUT", "iso9362"),
    ("12345", "iso13616"),
    ("RX18539", "iso11649"),
    ("SHORTLEI", "iso17442"),
])
def test_invalid_values(value, fmt):
    """Test malformed values are reported with an error."""
    result = validate_field_format(value, fmt)

    assert result.valid is False
    assert value in result.error


@pytest.mark.parametrize("value,fmt,corrected", [
    ("2024-01-15T10:30:00Z", "iso8601", "2024-01-15"),
    ("eur", "iso4217", "EUR"),
    ("de", "iso3166_alpha2", "DE"),
    ("deu", "iso3166_alpha3", "DEU"),
])
def test_auto_corrections(value, fmt, corrected):
    """Test fixable values come back corrected."""
    result = validate_field_format(value, fmt)

    assert result.valid is True
    assert result.corrected == corrected


@pytest.mark.parametrize("value", [None, "", "Unknown"])
def test_missing_values_always_valid(value):
    """Test placeholders are never flagged."""
    assert validate_field_format(value, "iso4217").valid is True


def test_unknown_format_always_valid():
    """Test unrecognized and empty format keys skip checking."""
    assert validate_field_format("anything", "iso99999").valid is True
    assert validate_field_format("anything", "none").valid is True
    assert validate_field_format("anything", None).valid is True


def test_validate_all_formats():
    """Test corrections are applied and warnings collected per field."""
    fields = [
        make_field("currency", format="iso4217"),
        make_field("invoiceDate", "date", format="iso8601"),
        make_field("iban", format="iso13616"),
        make_field("country", format="iso3166_alpha2", enabled=False),
        make_field("notes", format="none"),
        make_field("supplierName"),
    ]
    analysis = {
        "currency": "usd",
        "invoiceDate": "01/15/2024",
        "iban": "DE89370400440532013000",
        "country": "Germany",
        "notes": "anything",
        "supplierName": "Acme",
    }

    corrected, warnings = validate_all_formats(analysis, fields)

    assert corrected["currency"] == "USD"
    assert corrected["invoiceDate"] == "01/15/2024"
    assert corrected["country"] == "Germany"
    assert analysis["currency"] == "usd"

    assert len(warnings) == 1
    assert warnings[0].field == "invoiceDate"
    assert warnings[0].format == "iso8601"
    assert warnings[0].value == "01/15/2024"

"""Shared fixtures for invoice analyzer tests."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from invoice_analyzer.core.client_cache import GenAIClientCache
from invoice_analyzer.core.models import AnalysisConfig, FieldDefinition, TagDefinition


def make_field(key: str, type_: str = "text", enabled: bool = True, **extra) -> FieldDefinition:
    """Field definition with filler label/hint/instruction."""
    return FieldDefinition(
        key=key,
        label=extra.pop("label", key.title()),
        type=type_,
        schema_hint=extra.pop("schema_hint", "string"),
        instruction=extra.pop("instruction", f"extract the {key}"),
        enabled=enabled,
        **extra,
    )


def make_tag(tag_id: str, enabled: bool = True, **extra) -> TagDefinition:
    """Tag definition with filler label/instruction."""
    return TagDefinition(
        id=tag_id,
        label=extra.pop("label", tag_id.title()),
        instruction=extra.pop("instruction", f"Set true if {tag_id}"),
        enabled=enabled,
        **extra,
    )


def make_response(text: str, **usage) -> SimpleNamespace:
    """Stand-in for a google-genai GenerateContentResponse."""
    counters = {
        "prompt_token_count": 10,
        "candidates_token_count": 5,
        "total_token_count": 15,
    }
    counters.update(usage)
    return SimpleNamespace(text=text, usage_metadata=SimpleNamespace(**counters))


@pytest.fixture
def invoice_fields():
    """Typical invoice field set."""
    return [
        make_field("supplierName", instruction="extract the supplier's legal name"),
        make_field("totalAmount", "number", schema_hint="number", instruction="extract the gross total"),
        make_field("invoiceDate", "date", schema_hint="YYYYMMDD", instruction="extract the invoice date"),
        make_field("paymentDate", "date", schema_hint="YYYYMMDD", instruction="extract the payment due date"),
        make_field("documentTypes", "array", schema_hint="array of type ids", instruction="classify the document"),
        make_field("isPrivate", "boolean", schema_hint="boolean", instruction="detect private purchases"),
    ]


@pytest.fixture
def base_config(invoice_fields):
    """Global configuration without tags."""
    return AnalysisConfig(field_definitions=invoice_fields)


@pytest.fixture
def sample_pdf(tmp_path):
    """Small file standing in for an invoice PDF."""
    path = tmp_path / "invoice.pdf"
    path.write_bytes(b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF")
    return path


@pytest.fixture
def mock_genai_client():
    """Mock Gemini client answering with a fixed JSON body."""
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(
        return_value=make_response('{"supplierName": "Acme"}')
    )
    return client


@pytest.fixture
def client_cache(mock_genai_client):
    """Client cache that always hands out the mock client."""
    return GenAIClientCache(factory=lambda api_key: mock_genai_client)

"""Single-document analysis: prompt, Gemini call, parse, validate."""
import logging
from pathlib import Path
from typing import Any, Optional

from google.genai import types

from .client_cache import GenAIClientCache, default_client_cache
from .exceptions import ModelInvocationError, ParseError
from .format_validator import validate_all_formats
from .models import DEFAULT_MODEL, AnalysisConfig, ClientConfig, PromptOptions, TokenUsage
from .pdf_utils import DEFAULT_MAX_SIZE_MB, load_document
from .prompt_builder import build_extraction_prompt
from .response import parse_gemini_response, validate_analysis
from .schema import resolve_config

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
JSON_MIME_TYPE = "application/json"
# Raw responses attached to parse errors are cut to this many characters
MAX_RAW_RESPONSE_LENGTH = 5120


def json_mode_active(config: AnalysisConfig) -> bool:
    """Structured output is requested only without a raw prompt."""
    if config.raw_prompt:
        return False
    return config.extraction.use_json_mode


def build_generation_config(config: AnalysisConfig, system_instruction: str) -> types.GenerateContentConfig:
    """Generation options for an extraction call.

    Temperature is always 0 and thinking is kept low. The JSON response MIME
    type is added only when JSON mode is on and no raw prompt is configured.
    """
    options: dict[str, Any] = {
        "system_instruction": system_instruction,
        "temperature": 0,
        "thinking_config": types.ThinkingConfig(thinking_level=types.ThinkingLevel.LOW),
    }
    if json_mode_active(config):
        options["response_mime_type"] = JSON_MIME_TYPE
    return types.GenerateContentConfig(**options)


def build_contents(pdf_bytes: bytes) -> list[types.Content]:
    """User content: exactly one part, the inline PDF."""
    return [
        types.Content(
            role="user",
            parts=[types.Part.from_bytes(data=pdf_bytes, mime_type=PDF_MIME_TYPE)],
        )
    ]


def extract_token_usage(response: Any) -> TokenUsage:
    """Read token counters from the response's usage metadata.

    Counters missing from the metadata (commonly cached and thoughts tokens)
    are reported as 0.
    """
    usage = getattr(response, "usage_metadata", None)

    def count(name: str) -> int:
        return getattr(usage, name, None) or 0

    return TokenUsage(
        prompt_tokens=count("prompt_token_count"),
        output_tokens=count("candidates_token_count"),
        total_tokens=count("total_token_count"),
        cached_tokens=count("cached_content_token_count"),
        thoughts_tokens=count("thoughts_token_count"),
    )


async def analyze_invoice(
    pdf_path: Path | str,
    config: AnalysisConfig,
    api_key: Optional[str] = None,
    *,
    client_config: Optional[ClientConfig] = None,
    prompt_options: Optional[PromptOptions] = None,
    model: Optional[str] = None,
    client_cache: Optional[GenAIClientCache] = None,
    max_size_mb: float = DEFAULT_MAX_SIZE_MB,
) -> dict[str, Any]:
    """Analyze one invoice PDF with Gemini.

    The model is called exactly once; retries belong to the caller.

    Args:
        pdf_path: Path to the PDF file
        config: Global configuration
        api_key: Gemini API key (falls back to GEMINI_API_KEY)
        client_config: Optional client document with sparse overrides
        prompt_options: Per-call filters and tag parameter overrides
        model: Model name overriding the configured one
        client_cache: Client cache to use instead of the process-wide one
        max_size_mb: Largest document accepted

    Returns:
        The validated record with ``_tokenUsage`` attached, and
        ``_formatWarnings`` when declared formats did not match

    Raises:
        DocumentReadError: If the document cannot be read
        ConfigError: If no API key is available
        ModelInvocationError: If the Gemini call fails
        ParseError: If the answer is not a JSON object
    """
    pdf_path = Path(pdf_path)
    pdf_bytes = await load_document(pdf_path, max_size_mb)

    effective = resolve_config(config, client_config)
    model_name = model or effective.model or DEFAULT_MODEL
    prompt = build_extraction_prompt(effective, prompt_options)
    use_json_mode = json_mode_active(effective)
    generation_config = build_generation_config(effective, prompt)

    cache = client_cache if client_cache is not None else default_client_cache
    genai_client = cache.get(api_key)

    logger.info(
        f"[ANALYZE] {pdf_path.name} - Calling {model_name} "
        f"({len(pdf_bytes)} bytes, json_mode={use_json_mode})"
    )
    try:
        response = await genai_client.aio.models.generate_content(
            model=model_name,
            contents=build_contents(pdf_bytes),
            config=generation_config,
        )
    except Exception as exc:
        logger.error(f"[ANALYZE] {pdf_path.name} - Model call failed: {str(exc)[:150]}")
        raise ModelInvocationError(pdf_path, exc, model_name) from exc

    text = response.text or ""
    token_usage = extract_token_usage(response)

    try:
        analysis = parse_gemini_response(text, use_json_mode=use_json_mode)
    except ParseError as e:
        logger.error(f"[ANALYZE] {pdf_path.name} - Unparsable response: {text[:120]}")
        e.raw_response = text[:MAX_RAW_RESPONSE_LENGTH]
        e.token_usage = token_usage.model_dump(by_alias=True)
        raise

    validated = validate_analysis(analysis, effective)
    # Format checks only report; returned values are kept as the model gave them
    _, warnings = validate_all_formats(validated, effective.field_definitions)
    for warning in warnings:
        logger.warning(f"[ANALYZE] {pdf_path.name} - {warning.field}: {warning.error}")

    validated["_tokenUsage"] = token_usage.model_dump(by_alias=True)
    if warnings:
        validated["_formatWarnings"] = [w.model_dump() for w in warnings]

    logger.info(f"[ANALYZE] {pdf_path.name} - Success ({token_usage.total_tokens} tokens)")
    return validated

"""Analyze many invoices concurrently, retrying failed documents."""
import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, Dict, List, Optional

import anyio
from pydantic import BaseModel, Field

from .analyzer import analyze_invoice
from .client_cache import GenAIClientCache
from .exceptions import ModelInvocationError, ParseError
from .models import AnalysisConfig, ClientConfig, PromptOptions, TokenUsage
from .pdf_utils import DEFAULT_MAX_SIZE_MB
from .rate_limit import BackoffPolicy, RetryError, retry_with_backoff

logger = logging.getLogger(__name__)

# Document and configuration errors fail the same way on every attempt
RETRYABLE_ERRORS = (ModelInvocationError, ParseError)


class InvoiceResult(BaseModel):
    """Outcome of analyzing one document."""
    success: bool = Field(..., description="Whether a record was produced")
    file_name: str = Field(..., description="PDF file name")
    file_path: str = Field(..., description="Full path to PDF file")
    analysis: Optional[Dict[str, Any]] = Field(None, description="Validated record without _tokenUsage")
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    error: Optional[str] = Field(None, description="Error description on failure")
    raw_response: Optional[str] = Field(None, description="Model answer that failed to parse")
    attempts: int = Field(default=1, ge=1)
    duration: float = Field(default=0.0, ge=0.0, description="Seconds spent including retries")


class BatchResult(BaseModel):
    """Summary of a batch run, results in input order."""
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    results: List[InvoiceResult] = Field(default_factory=list)
    token_usage: TokenUsage = Field(default_factory=TokenUsage)


def find_pdf_files(folder: Path | str) -> list[Path]:
    """List PDF files directly inside ``folder``, sorted by name."""
    folder = Path(folder)
    return sorted(p for p in folder.iterdir() if p.is_file() and p.suffix.lower() == ".pdf")


def _failure(pdf_path: Path, error: Exception, attempts: int, duration: float) -> InvoiceResult:
    token_usage = TokenUsage()
    raw_response = None
    if isinstance(error, ParseError):
        raw_response = error.raw_response
        if error.token_usage:
            token_usage = TokenUsage.model_validate(error.token_usage)

    return InvoiceResult(
        success=False,
        file_name=pdf_path.name,
        file_path=str(pdf_path),
        token_usage=token_usage,
        error=str(error),
        raw_response=raw_response,
        attempts=attempts,
        duration=duration,
    )


async def analyze_many(
    pdf_paths: Iterable[Path | str],
    config: AnalysisConfig,
    api_key: Optional[str] = None,
    *,
    client_config: Optional[ClientConfig] = None,
    prompt_options: Optional[PromptOptions] = None,
    model: Optional[str] = None,
    client_cache: Optional[GenAIClientCache] = None,
    concurrency: int = 3,
    retry_attempts: int = 0,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    jitter_range: float = 1.0,
    max_size_mb: float = DEFAULT_MAX_SIZE_MB,
    on_result: Optional[Callable[[InvoiceResult], None]] = None,
) -> BatchResult:
    """Analyze documents with at most ``concurrency`` calls in flight.

    Each document gets ``retry_attempts`` extra attempts after a model or
    parse failure. Failures are reported per document, never raised.

    Args:
        pdf_paths: Documents to analyze
        config: Global configuration
        api_key: Gemini API key shared by the batch
        client_config: Optional client overrides
        prompt_options: Per-call prompt options
        model: Model name override
        client_cache: Client cache to use instead of the process-wide one
        concurrency: Maximum concurrent analyses
        retry_attempts: Extra attempts per document
        base_delay: Base delay for exponential backoff
        max_delay: Maximum delay between retries
        jitter_range: Random jitter added to each delay
        max_size_mb: Largest document accepted
        on_result: Called with each result as it completes

    Returns:
        BatchResult with per-document results and summed token usage
    """
    paths = [Path(p) for p in pdf_paths]
    if not paths:
        return BatchResult()

    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    limiter = anyio.CapacityLimiter(concurrency)
    policy = BackoffPolicy(
        attempts=retry_attempts + 1,
        base_delay=base_delay,
        max_delay=max_delay,
        jitter_range=jitter_range,
    )
    results: list[Optional[InvoiceResult]] = [None] * len(paths)

    logger.info(f"[BATCH] Starting {len(paths)} documents (concurrency: {concurrency})")

    async def run_one(index: int, pdf_path: Path) -> None:
        attempts = 0

        async def operation() -> dict[str, Any]:
            nonlocal attempts
            attempts += 1
            return await analyze_invoice(
                pdf_path,
                config,
                api_key,
                client_config=client_config,
                prompt_options=prompt_options,
                model=model,
                client_cache=client_cache,
                max_size_mb=max_size_mb,
            )

        start = time.monotonic()
        async with limiter:
            try:
                record = await retry_with_backoff(
                    operation,
                    policy,
                    retry_on=RETRYABLE_ERRORS,
                    operation_name=pdf_path.name,
                    logger=logger,
                )
            except RetryError as e:
                result = _failure(pdf_path, e.last_exception, attempts, time.monotonic() - start)
            else:
                token_usage = TokenUsage.model_validate(record.pop("_tokenUsage", {}))
                result = InvoiceResult(
                    success=True,
                    file_name=pdf_path.name,
                    file_path=str(pdf_path),
                    analysis=record,
                    token_usage=token_usage,
                    attempts=attempts,
                    duration=time.monotonic() - start,
                )

        results[index] = result
        if on_result:
            on_result(result)

    async with anyio.create_task_group() as tg:
        for index, pdf_path in enumerate(paths):
            tg.start_soon(run_one, index, pdf_path)

    completed = [r for r in results if r is not None]
    token_usage = TokenUsage()
    for result in completed:
        token_usage = token_usage + result.token_usage

    succeeded = sum(1 for r in completed if r.success)
    logger.info(f"[BATCH] Finished: {succeeded}/{len(completed)} succeeded, {token_usage.total_tokens} tokens")

    return BatchResult(
        total=len(completed),
        succeeded=succeeded,
        failed=len(completed) - succeeded,
        results=completed,
        token_usage=token_usage,
    )

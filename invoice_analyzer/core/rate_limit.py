"""Backoff and retry helpers for batch analysis."""
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

import anyio
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

module_logger = logging.getLogger(__name__)


class RetryError(Exception):
    """A retried operation gave up; ``last_exception`` holds the final failure."""

    def __init__(self, operation_name: str, last_exception: Exception, attempts: int):
        self.operation_name = operation_name
        self.last_exception = last_exception
        self.attempts = attempts
        super().__init__(f"{operation_name} gave up after {attempts} attempt(s): {last_exception}")


class BackoffPolicy(BaseModel):
    """Exponential backoff settings shared by every document of a batch."""

    model_config = ConfigDict(frozen=True)

    attempts: int = Field(default=1, ge=1, description="Total attempts, first call included")
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=10.0, ge=0)
    jitter_range: float = Field(default=1.0, ge=0)

    def delay(self, retry_number: int) -> float:
        """Seconds to wait before retry ``retry_number`` (zero-based)."""
        return backoff_delay(retry_number, self.base_delay, self.max_delay, self.jitter_range)


def backoff_delay(attempt: int, base_delay: float, max_delay: float, jitter_range: float) -> float:
    """Exponential backoff delay for a zero-based attempt number, plus jitter."""
    capped = min(max_delay, base_delay * 2 ** attempt)
    return capped + random.uniform(0, jitter_range)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[BackoffPolicy] = None,
    *,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    operation_name: str = "operation",
    logger: Optional[logging.Logger] = None,
) -> T:
    """Await ``operation`` until it succeeds or the policy runs out of attempts.

    Only exceptions listed in ``retry_on`` trigger another attempt; anything
    else stops immediately.

    Raises:
        RetryError: Wrapping the exception of the last attempt
    """
    policy = policy or BackoffPolicy()
    log = logger or module_logger

    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= policy.attempts:
                log.error(f"[RETRY] {operation_name} - Giving up after {attempt} attempt(s): {str(exc)[:150]}")
                raise RetryError(operation_name, exc, attempt) from exc

            wait = policy.delay(attempt - 1)
            log.warning(
                f"[RETRY] {operation_name} - Attempt {attempt}/{policy.attempts} failed "
                f"({str(exc)[:100]}), next try in {wait:.1f}s"
            )
            await anyio.sleep(wait)
        except Exception as exc:
            log.error(f"[RETRY] {operation_name} - Not retrying {type(exc).__name__}: {str(exc)[:150]}")
            raise RetryError(operation_name, exc, attempt) from exc

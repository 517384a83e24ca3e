"""
Retry policy shared by the PubMed client and the LLM calls.

``RetryConfig.delay_for`` gives the exponential backoff schedule;
``retry_async`` applies it to an arbitrary coroutine factory.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel

from anesthesia_hub.constants import DEFAULT_MAX_RETRIES

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryConfig(BaseModel):
    """Retry behaviour for failed requests."""

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    backoff_factor: float = 2.0
    retryable_status_codes: set[int] = {429, 500, 502, 503, 504}

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt + 1`` (attempt is zero-based)."""
        return min(self.base_delay * (self.backoff_factor**attempt), self.max_delay)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    config: RetryConfig,
    retry_on: tuple[type[BaseException], ...],
    label: str = "call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``func()``, retrying on ``retry_on`` exceptions with exponential backoff.

    The last exception is re-raised once ``config.max_retries`` retries are spent.
    Exceptions outside ``retry_on`` propagate immediately.
    """
    attempt = 0
    while True:
        try:
            return await func()
        except retry_on as e:
            if attempt >= config.max_retries:
                logger.error(
                    "All retries exhausted [%s] after %d attempts: %s",
                    label,
                    attempt + 1,
                    e,
                )
                raise
            delay = config.delay_for(attempt)
            logger.warning(
                "Retrying [%s] attempt=%d in %.1fs: %s", label, attempt + 1, delay, e
            )
            await sleep(delay)
            attempt += 1

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    backoff_seconds: float,
    description: str,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """
    Run an idempotent read with bounded retries and linear backoff.
    Only used for prompt and secret fetches, never for generation calls.
    """
    total = max(1, attempts)
    for attempt_idx in range(1, total + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt_idx >= total:
                raise
            logger.warning(
                "%s failed on attempt %s/%s: %s. Retrying...",
                description,
                attempt_idx,
                total,
                e,
            )
            if backoff_seconds > 0:
                await asyncio.sleep(backoff_seconds * attempt_idx)

    raise RuntimeError(f"{description} failed without a captured error")

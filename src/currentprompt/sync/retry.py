"""Tenacity retry policy shared by the store adapters."""

from __future__ import annotations

from collections.abc import Callable

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from src.currentprompt.config import SyncConfig


def build_retrying(
    config: SyncConfig, is_retryable: Callable[[BaseException], bool]
) -> AsyncRetrying:
    """Build an AsyncRetrying with exponential backoff from SyncConfig.

    The last exception is re-raised once attempts are exhausted so callers
    can translate it into a typed sync error.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(config.max_retries),
        wait=wait_exponential(
            multiplier=1,
            min=config.retry_backoff_min,
            max=config.retry_backoff_max,
        ),
        retry=retry_if_exception(is_retryable),
        reraise=True,
    )

# SPDX-License-Identifier: Apache-2.0
"""Exponential backoff retry loop."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .errors import NON_RETRYABLE_STATUS, ConfigurationError, RetryExhaustedError, status_of

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY = 1.0


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY

    @classmethod
    def from_sop(cls, sop, defaults: "RetryPolicy | None" = None) -> "RetryPolicy":
        base = defaults or cls()
        if sop is None:
            return base
        timeout = sop.timeout_seconds if sop.timeout_seconds is not None else base.timeout
        retries = sop.max_retries if sop.max_retries is not None else base.max_retries
        return cls(timeout=float(timeout), max_retries=int(retries), retry_delay=base.retry_delay)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, ConfigurationError):
        return False
    return status_of(exc) not in NON_RETRYABLE_STATUS


def backoff_delay(base_delay: float, attempt: int) -> float:
    return base_delay * (2 ** attempt)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_RETRY_DELAY,
    *,
    label: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> T:
    """Run ``operation`` up to ``max_retries + 1`` times, strictly one after another.

    ``operation`` is a zero-argument factory so each attempt gets a fresh
    awaitable. Client errors (400/401/403/404) and configuration errors are
    re-raised on the spot without consuming a retry.
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            if attempt >= max_retries:
                raise RetryExhaustedError(exc, attempt + 1) from exc
            delay = backoff_delay(base_delay, attempt)
            log.warning(
                "%s attempt %d/%d failed (%s); retrying in %.2fs",
                label,
                attempt + 1,
                max_retries + 1,
                exc,
                delay,
            )
            if on_retry is not None:
                on_retry(attempt, exc, delay)
        await sleep(delay)
        attempt += 1

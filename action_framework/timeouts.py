# SPDX-License-Identifier: Apache-2.0
"""Timeout guard for handler invocations.

The guard abandons the *wait* when the deadline passes; it does not cancel
the operation itself. A network call that is already in flight may still
finish after the caller has been told it timed out, so a door can unlock
after a reported failure. Callers downstream must tolerate such a stray
side effect. Handlers that want to stop early can watch the optional
``cancel_event`` between sub-steps.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Optional, Set, TypeVar

from .errors import ActionTimeoutError

log = logging.getLogger(__name__)

T = TypeVar("T")

# Abandoned attempts are kept referenced until they settle so they are not
# garbage collected mid-flight and their late outcome still gets logged.
_ABANDONED: Set[asyncio.Future] = set()


def _settle_abandoned(label: str):
    def _callback(task: asyncio.Future) -> None:
        _ABANDONED.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.warning("%s finished after its timeout with error: %s", label, exc)
        else:
            log.warning("%s finished after its timeout; result discarded", label)

    return _callback


def abandoned_count() -> int:
    return len(_ABANDONED)


async def run_with_timeout(
    operation: Awaitable[T],
    timeout: Optional[float],
    *,
    label: str = "operation",
    cancel_event: Optional[asyncio.Event] = None,
) -> T:
    """Await ``operation`` for at most ``timeout`` seconds; ``None`` means no deadline."""
    if timeout is not None and timeout <= 0:
        if inspect.iscoroutine(operation):
            operation.close()
        raise ValueError(f"{label}: timeout must be positive, got {timeout!r}")
    task = asyncio.ensure_future(operation)
    if timeout is None:
        return await task
    start = time.perf_counter()
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if task in done:
        return task.result()
    elapsed = time.perf_counter() - start
    if cancel_event is not None:
        cancel_event.set()
    _ABANDONED.add(task)
    task.add_done_callback(_settle_abandoned(label))
    raise ActionTimeoutError(label, timeout, elapsed)

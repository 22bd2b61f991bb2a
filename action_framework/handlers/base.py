# SPDX-License-Identifier: Apache-2.0
"""Action handler primitives.

Both handler variants run their work through the same guarded loop
(timeout guard inside the retry policy); they differ only in where the
policy comes from. Legacy handlers obey the SOP's limits, framework
handlers carry their own.
"""
from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from action_framework.context import ActionContext
from action_framework.errors import ActionTimeoutError, RetryExhaustedError
from action_framework.metrics import ACTION_RETRIES, ACTION_TIMEOUTS
from action_framework.outcomes import ActionResult
from action_framework.retry import RetryPolicy, with_retry
from action_framework.timeouts import run_with_timeout

log = logging.getLogger(__name__)

HandlerFn = Callable[[ActionContext], Awaitable[Any]]


class ActionHandler(abc.ABC):
    variant = "handler"

    def __init__(
        self,
        action_type: str,
        fn: HandlerFn,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.action_type = action_type
        self._fn = fn
        self._sleep = sleep

    @abc.abstractmethod
    def policy_for(self, context: ActionContext) -> RetryPolicy:
        raise NotImplementedError

    def _exhausted_note(self, exc: RetryExhaustedError) -> str:
        return str(exc.last_error)

    async def execute(self, context: ActionContext) -> ActionResult:
        """Run the handler under its policy; always returns a result."""
        policy = self.policy_for(context)
        label = f"{self.action_type}[{context.correlation_id}]"
        attempts = 0

        async def attempt() -> ActionResult:
            nonlocal attempts
            attempts += 1
            # Each attempt gets its own cancel signal so a late, abandoned
            # attempt stays cancelled while the next one runs.
            attempt_ctx = context.for_attempt()
            try:
                raw = await run_with_timeout(
                    self._fn(attempt_ctx),
                    policy.timeout,
                    label=label,
                    cancel_event=attempt_ctx.cancel_event,
                )
            except ActionTimeoutError:
                ACTION_TIMEOUTS.labels(self.action_type).inc()
                log.warning("attempt %d of %s timed out after %gs", attempts, label, policy.timeout)
                raise
            return ActionResult.from_value(raw)

        try:
            result = await with_retry(
                attempt,
                policy.max_retries,
                policy.retry_delay,
                label=label,
                sleep=self._sleep,
                on_retry=lambda *_: ACTION_RETRIES.labels(self.action_type).inc(),
            )
        except RetryExhaustedError as exc:
            details = {"attempts": exc.attempts, "error": type(exc.last_error).__name__}
            if isinstance(exc.last_error, ActionTimeoutError):
                return ActionResult.failed(
                    f"Action timed out after {policy.timeout:g}s ({exc.attempts} attempts)",
                    timeout_seconds=policy.timeout,
                    **details,
                )
            return ActionResult.failed(self._exhausted_note(exc), **details)
        except Exception as exc:
            log.warning("%s failed without retry: %s", label, exc)
            return ActionResult.failed(str(exc), attempts=attempts, error=type(exc).__name__)
        if attempts > 1:
            result = result.with_details(attempts=attempts)
        return result

    def describe(self) -> Dict[str, Any]:
        return {"action_type": self.action_type, "variant": self.variant}


class LegacyHandler(ActionHandler):
    """Pre-framework handler bounded by the SOP's timeout and retry count."""

    variant = "legacy"

    def __init__(self, action_type: str, fn: HandlerFn, defaults: Optional[RetryPolicy] = None, **kwargs):
        super().__init__(action_type, fn, **kwargs)
        self.defaults = defaults or RetryPolicy()

    def policy_for(self, context: ActionContext) -> RetryPolicy:
        return RetryPolicy.from_sop(context.sop, self.defaults)


class FrameworkHandler(ActionHandler):
    """Vendor-backed handler that owns its resilience policy."""

    variant = "framework"

    def __init__(self, action_type: str, fn: HandlerFn, vendor: str, policy: RetryPolicy, **kwargs):
        super().__init__(action_type, fn, **kwargs)
        self.vendor = vendor
        self.policy = policy

    def policy_for(self, context: ActionContext) -> RetryPolicy:
        return self.policy

    def _exhausted_note(self, exc: RetryExhaustedError) -> str:
        return f"Action failed after {exc.attempts} attempts: {exc.last_error}"

    def describe(self) -> Dict[str, Any]:
        return {
            **super().describe(),
            "vendor": self.vendor,
            "timeout_seconds": self.policy.timeout,
            "max_retries": self.policy.max_retries,
        }

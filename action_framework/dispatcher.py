# SPDX-License-Identifier: Apache-2.0
"""Public entry point: resolve, run, normalise and announce one action."""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from .booking import BookingValidator, StaticBookingValidator
from .breaker import BreakerRegistry
from .config import FrameworkConfig, default_config
from .context import ActionContext, ActionRequest
from .crm import CrmService, create_crm_service
from .devices import RemoteDeviceAdapter, create_adapter
from .escalation import EscalationTransport, SlackEscalationTransport
from .handlers import HandlerRegistry, build_registry
from .messaging import SmsService, create_sms_service
from .metrics import ACTION_DISPATCHED, ACTION_LATENCY
from .outcomes import ActionResult, ThreadTransition, coerce_outcome, requires_escalation, transition_for

log = logging.getLogger(__name__)

ESCALATE_ACTION = "escalate"
UNKNOWN_ACTION_LABEL = "unknown"


@dataclass(frozen=True, slots=True)
class DispatchEvent:
    action_type: str
    result: ActionResult
    transition: ThreadTransition
    duration_ms: float
    correlation_id: str
    thread_id: str

    @property
    def requires_escalation(self) -> bool:
        return self.action_type != ESCALATE_ACTION and requires_escalation(self.result.outcome)


Subscriber = Callable[[DispatchEvent], Any]


class ActionDispatcher:
    """Runs actions; never lets an error escape to the caller.

    Dispatches are independent. Two dispatches for the same thread may run
    at once; callers needing one action per thread at a time must lock
    around :meth:`execute` themselves.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        breakers: BreakerRegistry,
        *,
        auto_escalate: bool = False,
        resources: Iterable[Any] = (),
    ):
        self.registry = registry
        self.breakers = breakers
        self.auto_escalate = auto_escalate
        self._resources = list(resources)
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    async def _emit(self, event: DispatchEvent) -> None:
        for callback in self._subscribers:
            try:
                outcome = callback(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                log.exception("dispatch subscriber %r failed", callback)

    async def _run(self, action_type: str, context: ActionContext) -> ActionResult:
        handler = self.registry.get(action_type)
        if handler is None:
            return ActionResult.failed(f"Unknown action type: {action_type}")
        try:
            return await handler.execute(context)
        except Exception as exc:
            log.exception("handler %s raised for thread %s", action_type, context.thread.id)
            return ActionResult.failed(f"Action execution error: {exc}", error=type(exc).__name__)

    async def execute(self, action_type: str, context: ActionContext) -> ActionResult:
        start = time.perf_counter()
        result = await self._run(action_type, context)
        result.outcome = coerce_outcome(result.outcome)
        duration_ms = (time.perf_counter() - start) * 1000
        # Caller-supplied types must not grow the label set.
        metric_type = action_type if action_type in self.registry else UNKNOWN_ACTION_LABEL
        ACTION_DISPATCHED.labels(metric_type, result.outcome.value).inc()
        ACTION_LATENCY.labels(metric_type).observe(duration_ms)
        log.info(
            "action %s thread=%s correlation=%s outcome=%s duration=%.1fms",
            action_type,
            context.thread.id,
            context.correlation_id,
            result.outcome.value,
            duration_ms,
        )
        event = DispatchEvent(
            action_type=action_type,
            result=result,
            transition=transition_for(result),
            duration_ms=duration_ms,
            correlation_id=context.correlation_id,
            thread_id=context.thread.id,
        )
        await self._emit(event)
        if self.auto_escalate and event.requires_escalation and ESCALATE_ACTION in self.registry:
            reason = f"Action {action_type} {result.outcome.value}: {result.notes}"
            await self.execute(ESCALATE_ACTION, context.derive(reason=reason))
        return result

    async def execute_request(self, request: ActionRequest) -> ActionResult:
        return await self.execute(request.action_type, request.context)

    def health(self) -> Dict[str, Any]:
        return {"actions": self.registry.describe(), "breakers": self.breakers.snapshot()}

    async def aclose(self) -> None:
        """Close every vendor client the dispatcher was built with."""
        await asyncio.gather(*(resource.close() for resource in self._resources))


def build_dispatcher(
    cfg: Optional[FrameworkConfig] = None,
    *,
    bookings: Optional[BookingValidator] = None,
    escalation: Optional[EscalationTransport] = None,
    breakers: Optional[BreakerRegistry] = None,
    adapter: Optional[RemoteDeviceAdapter] = None,
    sms: Optional[SmsService] = None,
    crm: Optional[CrmService] = None,
    **handler_kwargs,
) -> ActionDispatcher:
    cfg = cfg or default_config()
    breakers = breakers or BreakerRegistry(cfg.breaker.failure_threshold, cfg.breaker.reset_timeout)
    adapter = adapter or create_adapter(cfg, breakers)
    bookings = bookings or StaticBookingValidator.from_config(cfg.bookings)
    escalation = escalation or SlackEscalationTransport(cfg.vendors.slack)
    sms = sms or create_sms_service(cfg.vendors.openphone, breakers)
    crm = crm or create_crm_service(cfg.vendors.hubspot, breakers)
    registry = build_registry(cfg, adapter, bookings, escalation, sms=sms, crm=crm, **handler_kwargs)
    return ActionDispatcher(
        registry,
        breakers,
        auto_escalate=cfg.dispatcher.auto_escalate,
        resources=(adapter, escalation, sms, crm),
    )

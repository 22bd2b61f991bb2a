# SPDX-License-Identifier: Apache-2.0
"""Action type -> handler lookup, read-only once built."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from action_framework.booking import BookingValidator
from action_framework.config import FrameworkConfig
from action_framework.crm import CrmService
from action_framework.devices import RemoteDeviceAdapter
from action_framework.escalation import EscalationTransport
from action_framework.errors import ConfigurationError
from action_framework.messaging import SmsService
from action_framework.retry import RetryPolicy

from .base import ActionHandler
from .framework import FrameworkActions, build_framework_handlers
from .legacy import LegacyActions, build_legacy_handlers

log = logging.getLogger(__name__)


class HandlerRegistry:
    def __init__(self, handlers: Iterable[ActionHandler] = ()):
        self._handlers: Dict[str, ActionHandler] = {}
        for handler in handlers:
            self.register(handler)

    def register(self, handler: ActionHandler) -> None:
        if handler.action_type in self._handlers:
            raise ValueError(f"handler for '{handler.action_type}' already registered")
        self._handlers[handler.action_type] = handler

    def get(self, action_type: str) -> Optional[ActionHandler]:
        return self._handlers.get(action_type)

    def resolve(self, action_type: str) -> ActionHandler:
        handler = self.get(action_type)
        if handler is None:
            raise ConfigurationError(f"Unknown action type: {action_type}")
        return handler

    def __contains__(self, action_type: str) -> bool:
        return action_type in self._handlers

    def action_types(self) -> List[str]:
        return sorted(self._handlers)

    def describe(self) -> Dict[str, Dict[str, Any]]:
        return {name: self._handlers[name].describe() for name in self.action_types()}


def build_registry(
    cfg: FrameworkConfig,
    adapter: RemoteDeviceAdapter,
    bookings: BookingValidator,
    escalation: EscalationTransport,
    *,
    sms: SmsService,
    crm: CrmService,
    **handler_kwargs,
) -> HandlerRegistry:
    """Framework variants win wherever one exists.

    Types listed in ``dispatcher.legacy_actions`` are pinned to their
    legacy variant; types with only a legacy variant use it regardless.
    """
    defaults = RetryPolicy(
        timeout=cfg.dispatcher.timeout_seconds,
        max_retries=cfg.dispatcher.max_retries,
        retry_delay=cfg.dispatcher.retry_delay,
    )
    actions = FrameworkActions(adapter, bookings, escalation, sms, crm)
    framework = {h.action_type: h for h in build_framework_handlers(actions, cfg, **handler_kwargs)}
    legacy = {
        h.action_type: h
        for h in build_legacy_handlers(LegacyActions(adapter, bookings, escalation), defaults, **handler_kwargs)
    }
    pinned = set(cfg.dispatcher.legacy_actions)
    unknown = pinned - set(legacy)
    if unknown:
        raise ValueError(f"legacy_actions without a legacy handler: {sorted(unknown)}")
    chosen: Dict[str, ActionHandler] = dict(legacy)
    for action_type, handler in framework.items():
        if action_type not in pinned:
            chosen[action_type] = handler
    registry = HandlerRegistry(chosen.values())
    log.info(
        "registered %d action handlers (%d legacy)",
        len(chosen),
        sum(1 for h in chosen.values() if h.variant == "legacy"),
    )
    return registry

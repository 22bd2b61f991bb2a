# SPDX-License-Identifier: Apache-2.0
"""Framework handlers backed by vendor integrations."""
from __future__ import annotations

from typing import List

from action_framework.booking import BookingValidator
from action_framework.config import FrameworkConfig
from action_framework.context import ActionContext
from action_framework.crm import CrmService
from action_framework.devices import RemoteDeviceAdapter
from action_framework.devices.adapter import (
    PROJECTOR_INPUT_SETTLE_S,
    PROJECTOR_OFF_REPEAT_S,
    PROJECTOR_WARMUP_S,
    WAKE_POLL_ATTEMPTS,
    WAKE_POLL_INTERVAL_S,
)
from action_framework.escalation import EscalationTransport
from action_framework.messaging import SmsService
from action_framework.outcomes import ActionResult
from action_framework.retry import RetryPolicy

from .base import FrameworkHandler
from .legacy import escalate_thread, unlock_for_customer


class FrameworkActions:
    def __init__(
        self,
        adapter: RemoteDeviceAdapter,
        bookings: BookingValidator,
        escalation: EscalationTransport,
        sms: SmsService,
        crm: CrmService,
    ):
        self.adapter = adapter
        self.bookings = bookings
        self.escalation = escalation
        self.sms = sms
        self.crm = crm

    async def reset_trackman(self, context: ActionContext) -> ActionResult:
        return await self.adapter.reset_device(context.thread.bay_id, context.thread.location)

    async def reboot_pc(self, context: ActionContext) -> ActionResult:
        return await self.adapter.reboot_device(context.thread.bay_id, context.thread.location)

    async def wake_pc(self, context: ActionContext) -> ActionResult:
        return await self.adapter.wake_device(
            context.thread.bay_id, context.thread.location, cancel_event=context.cancel_event
        )

    async def lock_pc(self, context: ActionContext) -> ActionResult:
        return await self.adapter.lock_device(context.thread.bay_id, context.thread.location)

    async def unlock_door(self, context: ActionContext) -> ActionResult:
        return await unlock_for_customer(self.adapter, self.bookings, context)

    async def lock_door(self, context: ActionContext) -> ActionResult:
        return await self.adapter.lock_door(context.thread.bay_id, context.thread.location)

    async def check_door_status(self, context: ActionContext) -> ActionResult:
        return await self.adapter.door_status(context.thread.bay_id, context.thread.location)

    async def escalate(self, context: ActionContext) -> ActionResult:
        return await escalate_thread(self.escalation, context)

    async def notify_team(self, context: ActionContext) -> ActionResult:
        text = context.reason or f"Team attention requested for thread #{context.thread.id}"
        receipt = await self.escalation.notify(text, priority="medium", thread=context.thread)
        if receipt.success:
            return ActionResult.success("Team notified on Slack")
        return ActionResult.partial(receipt.reason or "Slack not configured")

    async def projector_on(self, context: ActionContext) -> ActionResult:
        return await self.adapter.projector_power(context.thread.bay_id, context.thread.location, on=True)

    async def projector_off(self, context: ActionContext) -> ActionResult:
        return await self.adapter.projector_power(context.thread.bay_id, context.thread.location, on=False)

    async def projector_input(self, context: ActionContext) -> ActionResult:
        return await self.adapter.projector_input(
            context.thread.bay_id, context.thread.location, context.params.get("input")
        )

    async def send_sms(self, context: ActionContext) -> ActionResult:
        return await self.sms.send_sms(
            context.params, location=context.thread.location, correlation_id=context.correlation_id
        )

    async def send_message(self, context: ActionContext) -> ActionResult:
        """Plain text from the thread location's main line; no templates."""
        params = {key: context.params[key] for key in ("to", "message", "reference") if key in context.params}
        return await self.sms.send_sms(params, location=context.thread.location, correlation_id=context.correlation_id)

    async def update_contact(self, context: ActionContext) -> ActionResult:
        return await self.crm.update_contact(context.params)

    async def create_ticket(self, context: ActionContext) -> ActionResult:
        return await self.crm.create_ticket(context.params)

    async def log_activity(self, context: ActionContext) -> ActionResult:
        return await self.crm.log_activity(context.params)


def build_framework_handlers(actions: FrameworkActions, cfg: FrameworkConfig, **kwargs) -> List[FrameworkHandler]:
    retries = cfg.dispatcher.max_retries
    delay = cfg.dispatcher.retry_delay
    ninja = RetryPolicy(cfg.vendors.ninjaone.timeout, retries, delay)
    wake = RetryPolicy(cfg.vendors.ninjaone.timeout + WAKE_POLL_ATTEMPTS * WAKE_POLL_INTERVAL_S, retries, delay)
    ubnt = RetryPolicy(cfg.vendors.ubiquiti.timeout, retries, delay)
    slack = RetryPolicy(cfg.vendors.slack.timeout, retries, delay)
    # Power changes make up to three projector calls plus the settle wait.
    benq_call = cfg.vendors.benq.timeout
    power = RetryPolicy(3 * benq_call + max(PROJECTOR_WARMUP_S, PROJECTOR_OFF_REPEAT_S), retries, delay)
    source = RetryPolicy(benq_call + PROJECTOR_INPUT_SETTLE_S, retries, delay)
    sms = RetryPolicy(cfg.vendors.openphone.timeout, retries, delay)
    crm = RetryPolicy(2 * cfg.vendors.hubspot.timeout, retries, delay)
    return [
        FrameworkHandler("reset_trackman", actions.reset_trackman, "ninjaone", ninja, **kwargs),
        FrameworkHandler("reboot_pc", actions.reboot_pc, "ninjaone", ninja, **kwargs),
        FrameworkHandler("wake_pc", actions.wake_pc, "ninjaone", wake, **kwargs),
        FrameworkHandler("lock_pc", actions.lock_pc, "ninjaone", ninja, **kwargs),
        FrameworkHandler("unlock_door", actions.unlock_door, "ubiquiti", ubnt, **kwargs),
        FrameworkHandler("lock_door", actions.lock_door, "ubiquiti", ubnt, **kwargs),
        FrameworkHandler("check_door_status", actions.check_door_status, "ubiquiti", ubnt, **kwargs),
        FrameworkHandler("escalate", actions.escalate, "slack", slack, **kwargs),
        FrameworkHandler("notify_team", actions.notify_team, "slack", slack, **kwargs),
        FrameworkHandler("projector_on", actions.projector_on, "benq", power, **kwargs),
        FrameworkHandler("projector_off", actions.projector_off, "benq", power, **kwargs),
        FrameworkHandler("projector_input", actions.projector_input, "benq", source, **kwargs),
        FrameworkHandler("send_sms", actions.send_sms, "openphone", sms, **kwargs),
        FrameworkHandler("send_message", actions.send_message, "openphone", sms, **kwargs),
        FrameworkHandler("update_contact", actions.update_contact, "hubspot", crm, **kwargs),
        FrameworkHandler("create_ticket", actions.create_ticket, "hubspot", crm, **kwargs),
        FrameworkHandler("log_activity", actions.log_activity, "hubspot", crm, **kwargs),
    ]

# SPDX-License-Identifier: Apache-2.0
"""Legacy action handlers kept alive while types migrate to the framework."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from action_framework.booking import BookingValidator
from action_framework.context import ActionContext
from action_framework.devices import RemoteDeviceAdapter
from action_framework.escalation import EscalationTransport
from action_framework.outcomes import ActionResult
from action_framework.retry import RetryPolicy

from .base import LegacyHandler

log = logging.getLogger(__name__)

DEFAULT_ESCALATION_REASON = "Automated escalation - action failed or manual review required"


async def unlock_for_customer(adapter: RemoteDeviceAdapter, bookings: BookingValidator, context: ActionContext) -> ActionResult:
    """Unlock the customer's door once their booking allows it.

    A refused validation is reported as ``failed`` with the validator's own
    reason, untouched.
    """
    thread = context.thread
    validation = await bookings.validate_customer_action(thread.customer_id, "unlock_door")
    if not validation.allowed:
        return ActionResult.failed(validation.reason or "Booking validation refused the unlock")
    booking = validation.booking
    location = thread.location or (booking.location if booking else None)
    bay = (booking.bay_id if booking else None) or thread.bay_id
    result = await adapter.unlock_door(bay, location)
    return result.with_details(
        unlock_duration=result.details.get("duration"),
        booking_id=booking.id if booking else context.booking_id,
    )


async def escalate_thread(transport: EscalationTransport, context: ActionContext) -> ActionResult:
    """Hand the thread to staff. Never raises; escalation is the last resort."""
    try:
        receipt = await transport.send_escalation(
            context.thread, context.sop, context.reason or DEFAULT_ESCALATION_REASON
        )
    except Exception as exc:
        log.error("escalation for thread %s failed: %s", context.thread.id, exc)
        return ActionResult.failed(f"Slack escalation error: {exc}")
    if receipt.success:
        return ActionResult.success("Escalated to Slack successfully")
    return ActionResult.unconfirmed(receipt.reason or "Escalation attempted but status unknown")


class LegacyActions:
    def __init__(self, adapter: RemoteDeviceAdapter, bookings: BookingValidator, escalation: EscalationTransport):
        self.adapter = adapter
        self.bookings = bookings
        self.escalation = escalation

    async def reset_trackman(self, context: ActionContext) -> ActionResult:
        thread = context.thread
        log.info("resetting TrackMan for thread %s", thread.id)
        result = await self.adapter.reset_device(thread.bay_id, thread.location)
        return result.with_details(reset_time=datetime.now(timezone.utc).isoformat())

    async def unlock_door(self, context: ActionContext) -> ActionResult:
        log.info("unlocking door for thread %s", context.thread.id)
        return await unlock_for_customer(self.adapter, self.bookings, context)

    async def escalate(self, context: ActionContext) -> ActionResult:
        return await escalate_thread(self.escalation, context)

    async def send_message(self, context: ActionContext) -> ActionResult:
        log.info("queueing message for thread %s", context.thread.id)
        return ActionResult.success("Message queued for sending")


def build_legacy_handlers(actions: LegacyActions, defaults: RetryPolicy, **kwargs) -> List[LegacyHandler]:
    return [
        LegacyHandler("reset_trackman", actions.reset_trackman, defaults, **kwargs),
        LegacyHandler("unlock_door", actions.unlock_door, defaults, **kwargs),
        LegacyHandler("escalate", actions.escalate, defaults, **kwargs),
        LegacyHandler("send_message", actions.send_message, defaults, **kwargs),
    ]

# SPDX-License-Identifier: Apache-2.0
"""Customer SMS through OpenPhone.

Messages go out from one of the facility's phone lines, chosen from the
message kind and location. Without an API key the service runs simulated
and flags its results ``simulated=True``.
"""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .breaker import BreakerRegistry
from .config import OpenPhoneConfig
from .devices.base import VendorClient
from .errors import ActionFrameworkError
from .outcomes import ActionResult

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PhoneLine:
    key: str
    number: str
    name: str


DEFAULT_LINES = {
    "bedford_main": ("+1902123XXXX", "Bedford Main Line"),
    "dartmouth_main": ("+1902456XXXX", "Dartmouth Main Line"),
    "booking_notifications": ("+1902789XXXX", "Booking Notifications"),
    "emergency_alerts": ("+1902000XXXX", "Emergency Alerts"),
}

MESSAGE_TEMPLATES = {
    "booking_confirmation": (
        "Hi {customer_name}! Your booking for {bay_name} on {date} at {time} is confirmed. "
        "Bay #{bay_number} at {location}. Need help? Reply to this message."
    ),
    "booking_reminder": (
        "Reminder: Your booking at {location} Bay #{bay_number} starts in {time_until}. Address: {address}"
    ),
    "booking_cancellation": (
        "Your booking for {date} at {time} has been cancelled. You will receive a full refund. Questions? Reply here."
    ),
    "access_code": "Your access code for Bay #{bay_number} is: {access_code}. Valid for your booking time only.",
    "emergency_alert": "ALERT: {alert_message}. Please respond if you receive this message.",
    "system_notification": "{message} - ClubOS Notification System",
}

_PLACEHOLDER = re.compile(r"\{([a-z_]+)\}")


def render_template(name: str, values: Mapping[str, Any]) -> str:
    """Fill ``{key}`` placeholders; keys without a value are left as written."""
    template = MESSAGE_TEMPLATES[name]
    return _PLACEHOLDER.sub(lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0), template)


def build_lines(overrides: Optional[Mapping[str, str]] = None) -> Dict[str, PhoneLine]:
    lines = {key: PhoneLine(key, number, name) for key, (number, name) in DEFAULT_LINES.items()}
    for key, number in (overrides or {}).items():
        name = lines[key].name if key in lines else key.replace("_", " ").title()
        lines[key] = PhoneLine(key, number, name)
    return lines


def choose_line(
    lines: Mapping[str, PhoneLine],
    *,
    explicit: Optional[str] = None,
    template: Optional[str] = None,
    kind: Optional[str] = None,
    location: Optional[str] = None,
) -> PhoneLine:
    if explicit and explicit in lines:
        return lines[explicit]
    if (template and "booking" in template) or kind == "booking":
        return lines["booking_notifications"]
    if (template and "emergency" in template) or kind == "emergency":
        return lines["emergency_alerts"]
    if location and f"{location.lower()}_main" in lines:
        return lines[f"{location.lower()}_main"]
    return next(iter(lines.values()))


class OpenPhoneClient(VendorClient):
    vendor = "openphone"

    def __init__(self, cfg: OpenPhoneConfig):
        super().__init__(cfg.api_url, cfg.timeout)
        self.cfg = cfg

    @property
    def configured(self) -> bool:
        return self.cfg.live

    async def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.cfg.api_key}"}

    async def send_message(self, sender: str, to: str, text: str, reference: str) -> Dict[str, Any]:
        return await self.request(
            "POST", "/messages", json={"from": sender, "to": to, "text": text, "reference": reference}
        )


class SmsService:
    def __init__(self, client: OpenPhoneClient, breakers: BreakerRegistry):
        self.client = client
        self.breakers = breakers
        self.lines = build_lines(client.cfg.numbers)

    async def send_sms(
        self,
        params: Mapping[str, Any],
        *,
        location: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> ActionResult:
        """Send ``message`` (or a rendered ``template``) to ``to``."""
        to = params.get("to")
        if not to:
            return ActionResult.failed("Missing required parameter: to")
        template = params.get("template")
        if template is not None and template not in MESSAGE_TEMPLATES:
            return ActionResult.failed(f"Unknown message template: {template}")
        values = dict(params)
        if location:
            values.setdefault("location", location)
        text = render_template(template, values) if template else params.get("message")
        if not text:
            return ActionResult.failed("Missing required parameter: message")
        line = choose_line(
            self.lines,
            explicit=params.get("from"),
            template=template,
            kind=params.get("type"),
            location=params.get("location") or location,
        )
        details = {"from_number": line.number, "from_name": line.name, "to": str(to), "message": text}
        if not self.client.configured:
            log.info("[simulated] SMS from %s to %s", line.name, to)
            return ActionResult.success(
                "SMS sent successfully", message_id=f"sim-{uuid.uuid4().hex[:12]}", simulated=True, **details
            )
        reference = str(params.get("reference") or f"clubos-{correlation_id or uuid.uuid4().hex}")
        try:
            sent = await self.breakers.get("openphone:send_sms").call(
                lambda: self.client.send_message(line.number, str(to), text, reference)
            )
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to send SMS: {exc}", simulated=False, **details)
        return ActionResult.success(
            "SMS sent successfully",
            message_id=sent.get("id"),
            cost=sent.get("cost", "unknown"),
            simulated=False,
            **details,
        )

    async def close(self) -> None:
        await self.client.close()


def create_sms_service(cfg: OpenPhoneConfig, breakers: BreakerRegistry) -> SmsService:
    return SmsService(OpenPhoneClient(cfg), breakers)

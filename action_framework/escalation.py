# SPDX-License-Identifier: Apache-2.0
"""Escalation transport: hands unresolved threads to staff over Slack."""
from __future__ import annotations

import abc
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from .config import SlackConfig
from .context import SopConfig, ThreadRef
from .errors import EscalationDeliveryError

log = logging.getLogger(__name__)

PRIORITY_COLOURS = {
    "low": "#36a64f",
    "medium": "#ff9f00",
    "high": "#ff6b6b",
    "urgent": "#8b0000",
}


@dataclass(frozen=True, slots=True)
class EscalationReceipt:
    success: bool
    reason: Optional[str] = None


class EscalationTransport(abc.ABC):
    @abc.abstractmethod
    async def send_escalation(self, thread: ThreadRef, sop: Optional[SopConfig], reason: str) -> EscalationReceipt:
        raise NotImplementedError

    @abc.abstractmethod
    async def notify(self, text: str, *, priority: str = "medium", thread: Optional[ThreadRef] = None) -> EscalationReceipt:
        raise NotImplementedError

    async def close(self) -> None:
        """Optional async teardown."""


def escalation_text(thread: ThreadRef, sop: Optional[SopConfig], reason: str) -> str:
    return "\n".join(
        [
            f"Thread: #{thread.id}",
            f"Customer: {thread.customer_id}",
            f"Intent: {thread.intent}",
            f"Failed SOP: {sop.title if sop and sop.title else 'None'}",
            f"Reason: {reason}",
            "",
            "Please review and take action.",
        ]
    )


class SlackEscalationTransport(EscalationTransport):
    def __init__(self, cfg: SlackConfig):
        self.cfg = cfg
        self._session: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.cfg.webhook_url)

    async def _ensure(self) -> aiohttp.ClientSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.cfg.timeout))
            return self._session

    def _message(self, text: str, priority: str, thread: Optional[ThreadRef], action_type: Optional[str]) -> Dict[str, Any]:
        fields = [{"title": "Priority", "value": priority, "short": True}]
        if thread is not None:
            fields.insert(0, {"title": "Thread ID", "value": thread.id, "short": True})
            if thread.customer_id:
                fields.append({"title": "Customer", "value": thread.customer_id, "short": True})
            if thread.location:
                fields.append({"title": "Location", "value": thread.location, "short": True})
        if action_type:
            fields.append({"title": "Action", "value": action_type, "short": True})
        if thread is not None:
            fields.append({"title": "Correlation ID", "value": thread.correlation_id, "short": False})
        return {
            "channel": self.cfg.channel,
            "username": "ClubOS",
            "icon_emoji": ":robot_face:",
            "text": f"{priority.upper()} Priority Alert",
            "attachments": [
                {
                    "color": PRIORITY_COLOURS.get(priority, "#808080"),
                    "title": "Alert Details",
                    "text": text,
                    "fields": fields,
                    "footer": "ClubOS",
                    "ts": int(time.time()),
                }
            ],
        }

    async def _post(self, message: Dict[str, Any]) -> EscalationReceipt:
        if not self.enabled:
            log.info("[slack disabled] would send: %s", message["attachments"][0]["text"])
            return EscalationReceipt(False, "Slack notifications not configured")
        session = await self._ensure()
        try:
            async with session.post(self.cfg.webhook_url, json=message) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    log.error("slack webhook failed status=%s body=%s", resp.status, body[:200])
                    raise EscalationDeliveryError(f"Slack webhook returned {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise EscalationDeliveryError(f"Slack webhook unreachable: {exc}") from exc
        return EscalationReceipt(True)

    async def send_escalation(self, thread: ThreadRef, sop: Optional[SopConfig], reason: str) -> EscalationReceipt:
        action_type = sop.primary_action if sop else None
        return await self._post(self._message(escalation_text(thread, sop, reason), "high", thread, action_type))

    async def notify(self, text: str, *, priority: str = "medium", thread: Optional[ThreadRef] = None) -> EscalationReceipt:
        return await self._post(self._message(text, priority, thread, None))

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

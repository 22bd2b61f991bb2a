# SPDX-License-Identifier: Apache-2.0
"""BenQ projector control over the projector's HTTP command endpoint."""
from __future__ import annotations

from typing import Dict

import aiohttp

from action_framework.config import BenQConfig

from .base import VendorClient

CONTROL_PATH = "/cgi-bin/pjcontrol.cgi"
BASIC_AUTH_USER = "admin"

POWER_ON = "*pow=on#"
POWER_OFF = "*pow=off#"
POWER_STATUS = "*pow=?#"

INPUT_COMMANDS = {
    "hdmi": "*sour=hdmi#",
    "hdmi1": "*sour=hdmi#",
    "hdmi2": "*sour=hdmi2#",
    "vga": "*sour=rgb#",
}
VALID_INPUTS = ("hdmi", "hdmi2", "vga")


class BenQClient(VendorClient):
    """One client for every projector; each call names the projector host."""

    vendor = "benq"

    def __init__(self, cfg: BenQConfig):
        super().__init__("", cfg.timeout)
        self.cfg = cfg

    @property
    def configured(self) -> bool:
        return self.cfg.live

    async def _headers(self) -> Dict[str, str]:
        if not self.cfg.password:
            return {}
        return {"Authorization": aiohttp.BasicAuth(BASIC_AUTH_USER, self.cfg.password).encode()}

    def control_url(self, host: str) -> str:
        return f"http://{host}:{self.cfg.port}{CONTROL_PATH}"

    async def send_command(self, host: str, command: str) -> str:
        data = await self.request(
            "POST", self.control_url(host), data=command, headers={"Content-Type": "text/plain"}
        )
        return str(data.get("text", data))

    async def power_status(self, host: str) -> str:
        """``on``, ``off`` or ``unknown``; the reply text carries ON or OFF."""
        reply = (await self.send_command(host, POWER_STATUS)).upper()
        if "OFF" in reply:
            return "off"
        if "ON" in reply:
            return "on"
        return "unknown"

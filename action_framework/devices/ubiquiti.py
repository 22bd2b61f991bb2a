# SPDX-License-Identifier: Apache-2.0
"""UniFi Access client for door control."""
from __future__ import annotations

from typing import Any, Dict

from action_framework.config import UbiquitiConfig

from .base import VendorClient


class UbiquitiClient(VendorClient):
    vendor = "ubiquiti"

    def __init__(self, cfg: UbiquitiConfig):
        super().__init__(cfg.api_url, cfg.timeout)
        self.cfg = cfg

    @property
    def configured(self) -> bool:
        return self.cfg.live

    async def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.cfg.api_key}"}

    async def unlock(self, door_id: str, duration: int) -> Dict[str, Any]:
        return await self.request("PUT", f"/api/v1/doors/{door_id}/unlock", json={"duration": duration})

    async def lock(self, door_id: str) -> Dict[str, Any]:
        return await self.request("PUT", f"/api/v1/doors/{door_id}/lock")

    async def door_status(self, door_id: str) -> str:
        data = await self.request("GET", f"/api/v1/doors/{door_id}")
        return str(data.get("status", "unknown"))

# SPDX-License-Identifier: Apache-2.0
"""NinjaOne RMM client used for PC and TrackMan control."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from action_framework.config import NinjaOneConfig

from .base import VendorClient

log = logging.getLogger(__name__)

TOKEN_REFRESH_MARGIN_S = 60.0


class NinjaOneClient(VendorClient):
    vendor = "ninjaone"

    def __init__(self, cfg: NinjaOneConfig):
        super().__init__(cfg.base_url, cfg.timeout)
        self.cfg = cfg
        self._token: Optional[str] = None
        self._token_expiry = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return self.cfg.live

    def script(self, name: str) -> str:
        return self.cfg.scripts[name]

    async def _refresh_token(self) -> str:
        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expiry - TOKEN_REFRESH_MARGIN_S:
                return self._token
            payload = await self.request(
                "POST",
                "/oauth/token",
                json={
                    "grant_type": "client_credentials",
                    "client_id": self.cfg.client_id,
                    "client_secret": self.cfg.client_secret,
                    "scope": "monitoring management",
                },
                auth=False,
            )
            self._token = payload["access_token"]
            self._token_expiry = time.monotonic() + float(payload.get("expires_in", 3600))
            log.info("refreshed NinjaOne access token")
            return self._token

    async def _headers(self) -> Dict[str, str]:
        if self._token is None:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def run_script(self, device_id: str, script_id: str, parameters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        await self._refresh_token()
        data = await self.request(
            "POST",
            f"/devices/{device_id}/scripts/{script_id}/run",
            json={"parameters": parameters or {}},
        )
        return {"job_id": data.get("jobId"), "status": data.get("status")}

    async def device_status(self, device_id: str) -> Dict[str, Any]:
        await self._refresh_token()
        data = await self.request("GET", f"/devices/{device_id}")
        return {
            "online": bool(data.get("online", False)),
            "last_seen": data.get("lastSeenTime"),
        }

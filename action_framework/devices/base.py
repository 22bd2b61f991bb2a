# SPDX-License-Identifier: Apache-2.0
"""Shared HTTP plumbing for vendor device APIs."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from action_framework.errors import ActionTimeoutError, vendor_error

log = logging.getLogger(__name__)


class VendorClient:
    """Lazily opened ``aiohttp`` session plus uniform error mapping.

    Any non-2xx response or transport failure surfaces as a framework
    error: 400/401/403/404 become ``PermissionDeniedError``, everything else
    ``VendorApiError``. A JSON body that does not parse counts as a vendor
    error too. Non-JSON bodies come back as ``{"text": ...}``.
    """

    vendor = "vendor"

    def __init__(self, base_url: str, timeout: float):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

    async def _ensure(self) -> aiohttp.ClientSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            return self._session

    async def _headers(self) -> Dict[str, str]:
        return {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        auth: bool = True,
    ) -> Dict[str, Any]:
        session = await self._ensure()
        url = f"{self.base_url}{path}"
        base_headers = await self._headers() if auth else {}
        merged = {**base_headers, **(headers or {})}
        try:
            async with session.request(method, url, json=json, data=data, params=params, headers=merged) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    log.error("%s %s %s failed status=%s body=%s", self.vendor, method, path, resp.status, body[:200])
                    raise vendor_error(self.vendor, resp.status, body[:200] or resp.reason or "request failed")
                if resp.content_type == "application/json":
                    try:
                        payload = await resp.json()
                    except ValueError as exc:
                        raise vendor_error(self.vendor, resp.status, f"malformed JSON body: {exc}") from exc
                    return payload if isinstance(payload, dict) else {"data": payload}
                return {"text": await resp.text()}
        except asyncio.TimeoutError as exc:
            raise ActionTimeoutError(f"{self.vendor} {method} {path}", self.timeout, self.timeout) from exc
        except aiohttp.ClientError as exc:
            raise vendor_error(self.vendor, None, str(exc) or exc.__class__.__name__) from exc

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

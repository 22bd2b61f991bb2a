# SPDX-License-Identifier: Apache-2.0
"""HubSpot CRM service against a local API stub."""
from __future__ import annotations

import socket
from contextlib import asynccontextmanager
from typing import Any, Dict, List

import pytest
from aiohttp import web

from action_framework.breaker import BreakerRegistry
from action_framework.config import HubSpotConfig
from action_framework.crm import create_crm_service, ticket_properties
from action_framework.outcomes import OutcomeKind


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class StubHubSpot:
    def __init__(self, contacts: Dict[str, str] | None = None):
        self.contacts = dict(contacts or {})
        self.requests: List[Dict[str, Any]] = []
        self.app = web.Application()
        self.app.router.add_post("/crm/v3/objects/contacts/search", self._search)
        self.app.router.add_post("/crm/v3/objects/contacts", self._created("contact-new"))
        self.app.router.add_patch("/crm/v3/objects/contacts/{id}", self._created("unused"))
        self.app.router.add_post("/crm/v3/objects/tickets", self._created("ticket-9"))
        self.app.router.add_post("/crm/v3/objects/notes", self._created("note-3"))

    async def _record(self, request: web.Request) -> Dict[str, Any]:
        body = await request.json()
        self.requests.append(
            {"method": request.method, "path": request.path, "auth": request.headers.get("Authorization"), "body": body}
        )
        return body

    async def _search(self, request: web.Request) -> web.Response:
        body = await self._record(request)
        email = body["filterGroups"][0]["filters"][0]["value"]
        found = [{"id": self.contacts[email]}] if email in self.contacts else []
        return web.json_response({"total": len(found), "results": found})

    def _created(self, object_id: str):
        async def handle(request: web.Request) -> web.Response:
            await self._record(request)
            return web.json_response({"id": request.match_info.get("id", object_id)})

        return handle

    def paths(self) -> List[str]:
        return [f"{r['method']} {r['path']}" for r in self.requests]


@asynccontextmanager
async def running(stub: StubHubSpot):
    port = _free_port()
    runner = web.AppRunner(stub.app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        await runner.cleanup()


def _service(url: str):
    breakers = BreakerRegistry()
    return create_crm_service(HubSpotConfig(access_token="hs-token", api_url=url), breakers), breakers


def test_ticket_priority_defaults_to_medium():
    props = ticket_properties({"subject": "Bay 2 screen", "content": "Flicker", "priority": "someday"})
    assert props["hs_ticket_priority"] == "MEDIUM"
    assert props["source_type"] == "ClubOS V3"


@pytest.mark.asyncio
async def test_update_contact_creates_when_missing_and_patches_when_found():
    stub = StubHubSpot({"known@example.com": "contact-1"})
    async with running(stub) as url:
        service, breakers = _service(url)
        try:
            created = await service.update_contact({"email": "new@example.com", "first_name": "Ada"})
            updated = await service.update_contact({"email": "known@example.com", "total_bookings": 12})
        finally:
            await service.close()

    assert created.notes == "Contact created"
    assert created.details["contact_id"] == "contact-new"
    assert updated.notes == "Contact updated"
    assert updated.details["contact_id"] == "contact-1"
    assert stub.paths() == [
        "POST /crm/v3/objects/contacts/search",
        "POST /crm/v3/objects/contacts",
        "POST /crm/v3/objects/contacts/search",
        "PATCH /crm/v3/objects/contacts/contact-1",
    ]
    assert stub.requests[1]["body"] == {"properties": {"email": "new@example.com", "firstname": "Ada"}}
    assert stub.requests[0]["auth"] == "Bearer hs-token"
    assert {"hubspot:find_contact", "hubspot:create_contact", "hubspot:update_contact"} <= set(breakers.snapshot())


@pytest.mark.asyncio
async def test_ticket_is_associated_with_customer():
    stub = StubHubSpot({"known@example.com": "contact-1"})
    async with running(stub) as url:
        service, _ = _service(url)
        try:
            result = await service.create_ticket(
                {
                    "subject": "Door stuck",
                    "content": "Bay 1",
                    "priority": "urgent",
                    "customer_email": "known@example.com",
                }
            )
        finally:
            await service.close()

    assert result.outcome is OutcomeKind.SUCCESS
    assert result.details["ticket_id"] == "ticket-9"
    assert result.details["contact_id"] == "contact-1"
    body = stub.requests[-1]["body"]
    assert body["properties"]["hs_ticket_priority"] == "URGENT"
    assert body["associations"][0]["to"] == {"id": "contact-1"}
    assert body["associations"][0]["types"][0]["associationTypeId"] == 16


@pytest.mark.asyncio
async def test_log_activity_needs_an_existing_contact():
    stub = StubHubSpot({"known@example.com": "contact-1"})
    async with running(stub) as url:
        service, _ = _service(url)
        try:
            missing = await service.log_activity({"content": "Refund call", "contact_email": "ghost@example.com"})
            logged = await service.log_activity({"content": "Refund call", "contact_email": "known@example.com"})
        finally:
            await service.close()

    assert missing.outcome is OutcomeKind.FAILED
    assert missing.notes == "Contact not found: ghost@example.com"
    assert logged.notes == "Activity logged successfully"
    assert logged.details["activity_id"] == "note-3"
    note = stub.requests[-1]["body"]
    assert note["properties"]["hs_note_body"] == "Refund call"
    assert note["associations"][0]["types"][0]["associationTypeId"] == 202


@pytest.mark.asyncio
async def test_simulated_crm_skips_network():
    service = create_crm_service(HubSpotConfig(), BreakerRegistry())
    result = await service.update_contact({"email": "ada@example.com", "preferred_location": "bedford"})
    assert result.outcome is OutcomeKind.SUCCESS
    assert result.details["simulated"] is True
    assert result.details["properties"] == {"email": "ada@example.com", "preferred_location": "bedford"}

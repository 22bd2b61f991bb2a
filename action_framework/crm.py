# SPDX-License-Identifier: Apache-2.0
"""HubSpot CRM: contacts, support tickets and activity notes."""
from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, Mapping, Optional

from .breaker import BreakerRegistry
from .config import HubSpotConfig
from .devices.base import VendorClient
from .errors import ActionFrameworkError
from .outcomes import ActionResult

log = logging.getLogger(__name__)

CONTACT_PROPERTIES = {
    "email": "email",
    "first_name": "firstname",
    "last_name": "lastname",
    "phone": "phone",
    "company": "company",
    "website": "website",
    "customer_type": "customer_type",
    "preferred_location": "preferred_location",
    "last_booking_date": "last_booking_date",
    "total_bookings": "total_bookings",
}

TICKET_PRIORITIES = {"low": "LOW", "medium": "MEDIUM", "high": "HIGH", "urgent": "URGENT"}
TICKET_SOURCE = "ClubOS V3"
TICKET_PIPELINE = "0"
TICKET_STAGE = "1"

# HubSpot-defined association type ids.
TICKET_TO_CONTACT = 16
NOTE_TO_CONTACT = 202


def _association(contact_id: str, type_id: int) -> Dict[str, Any]:
    return {
        "to": {"id": contact_id},
        "types": [{"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": type_id}],
    }


def contact_properties(params: Mapping[str, Any]) -> Dict[str, Any]:
    return {prop: params[key] for key, prop in CONTACT_PROPERTIES.items() if params.get(key) is not None}


def ticket_properties(params: Mapping[str, Any]) -> Dict[str, Any]:
    priority = str(params.get("priority") or "medium").lower()
    return {
        "subject": params["subject"],
        "content": params["content"],
        "hs_ticket_priority": TICKET_PRIORITIES.get(priority, TICKET_PRIORITIES["medium"]),
        "hs_pipeline": str(params.get("pipeline") or TICKET_PIPELINE),
        "hs_pipeline_stage": str(params.get("stage") or TICKET_STAGE),
        "source_type": TICKET_SOURCE,
    }


def _missing(params: Mapping[str, Any], *names: str) -> Optional[ActionResult]:
    for name in names:
        if not params.get(name):
            return ActionResult.failed(f"Missing required parameter: {name}")
    return None


class HubSpotClient(VendorClient):
    vendor = "hubspot"

    def __init__(self, cfg: HubSpotConfig):
        super().__init__(cfg.api_url, cfg.timeout)
        self.cfg = cfg

    @property
    def configured(self) -> bool:
        return self.cfg.live

    async def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.cfg.access_token}"}

    async def find_contact(self, email: str) -> Optional[Dict[str, Any]]:
        data = await self.request(
            "POST",
            "/crm/v3/objects/contacts/search",
            json={
                "filterGroups": [{"filters": [{"propertyName": "email", "operator": "EQ", "value": email}]}],
                "limit": 1,
            },
        )
        results = data.get("results") or []
        return results[0] if results else None

    async def create_contact(self, properties: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", "/crm/v3/objects/contacts", json={"properties": properties})

    async def update_contact(self, contact_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("PATCH", f"/crm/v3/objects/contacts/{contact_id}", json={"properties": properties})

    async def create_ticket(self, properties: Dict[str, Any], contact_id: Optional[str]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"properties": properties}
        if contact_id:
            body["associations"] = [_association(contact_id, TICKET_TO_CONTACT)]
        return await self.request("POST", "/crm/v3/objects/tickets", json=body)

    async def create_note(self, contact_id: str, content: str) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/crm/v3/objects/notes",
            json={
                "properties": {"hs_timestamp": str(int(time.time() * 1000)), "hs_note_body": content},
                "associations": [_association(contact_id, NOTE_TO_CONTACT)],
            },
        )


class CrmService:
    """Maps action parameters onto HubSpot objects.

    Every HubSpot call passes through the ``hubspot:<operation>`` breaker.
    Vendor failures become ``failed`` results; missing parameters fail
    before any call is made.
    """

    def __init__(self, client: HubSpotClient, breakers: BreakerRegistry):
        self.client = client
        self.breakers = breakers

    async def _guarded(self, operation: str, call) -> Any:
        return await self.breakers.get(f"hubspot:{operation}").call(call)

    async def _contact_id(self, email: str) -> Optional[str]:
        contact = await self._guarded("find_contact", lambda: self.client.find_contact(email))
        return str(contact["id"]) if contact else None

    async def update_contact(self, params: Mapping[str, Any]) -> ActionResult:
        missing = _missing(params, "email")
        if missing:
            return missing
        email = str(params["email"])
        properties = contact_properties(params)
        if not self.client.configured:
            log.info("[simulated] upserting contact %s", email)
            return ActionResult.success(
                "Contact updated", email=email, action="updated", properties=properties, simulated=True
            )
        try:
            contact_id = await self._contact_id(email)
            if contact_id is None:
                created = await self._guarded("create_contact", lambda: self.client.create_contact(properties))
                contact_id, action = str(created.get("id")), "created"
            else:
                await self._guarded("update_contact", lambda: self.client.update_contact(contact_id, properties))
                action = "updated"
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to update contact: {exc}", email=email, simulated=False)
        return ActionResult.success(
            f"Contact {action}",
            contact_id=contact_id,
            email=email,
            action=action,
            properties=properties,
            simulated=False,
        )

    async def create_ticket(self, params: Mapping[str, Any]) -> ActionResult:
        missing = _missing(params, "subject", "content")
        if missing:
            return missing
        properties = ticket_properties(params)
        priority = properties["hs_ticket_priority"].lower()
        if not self.client.configured:
            log.info("[simulated] creating ticket %r", params["subject"])
            return ActionResult.success(
                "Support ticket created",
                ticket_id=f"sim-{uuid.uuid4().hex[:12]}",
                subject=params["subject"],
                priority=priority,
                status="new",
                simulated=True,
            )
        email = params.get("customer_email")
        try:
            contact_id = await self._contact_id(str(email)) if email else None
            ticket = await self._guarded("create_ticket", lambda: self.client.create_ticket(properties, contact_id))
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to create ticket: {exc}", simulated=False)
        return ActionResult.success(
            "Support ticket created",
            ticket_id=ticket.get("id"),
            subject=params["subject"],
            priority=priority,
            status="new",
            contact_id=contact_id,
            simulated=False,
        )

    async def log_activity(self, params: Mapping[str, Any]) -> ActionResult:
        missing = _missing(params, "content", "contact_email")
        if missing:
            return missing
        email = str(params["contact_email"])
        if not self.client.configured:
            return ActionResult.success(
                "Activity logged successfully", contact_email=email, activity_type="NOTE", simulated=True
            )
        try:
            contact_id = await self._contact_id(email)
            if contact_id is None:
                return ActionResult.failed(f"Contact not found: {email}", contact_email=email, simulated=False)
            note = await self._guarded(
                "log_activity", lambda: self.client.create_note(contact_id, str(params["content"]))
            )
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to log activity: {exc}", contact_email=email, simulated=False)
        return ActionResult.success(
            "Activity logged successfully",
            activity_id=note.get("id"),
            contact_id=contact_id,
            contact_email=email,
            activity_type="NOTE",
            simulated=False,
        )

    async def close(self) -> None:
        await self.client.close()


def create_crm_service(cfg: HubSpotConfig, breakers: BreakerRegistry) -> CrmService:
    return CrmService(HubSpotClient(cfg), breakers)

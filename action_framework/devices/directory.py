# SPDX-License-Identifier: Apache-2.0
"""Static reference data mapping (location, bay) pairs to devices."""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from action_framework.errors import ConfigurationError

MAIN_ENTRANCE = "main"


@dataclass(frozen=True, slots=True)
class DeviceIdentity:
    device_id: str
    display_name: str


def _identities(raw: Mapping[str, Mapping[str, tuple]]) -> Dict[str, Dict[str, DeviceIdentity]]:
    return {loc: {bay: DeviceIdentity(*ident) for bay, ident in bays.items()} for loc, bays in raw.items()}


DEFAULT_PCS = _identities(
    {
        "bedford": {
            "bay-1": ("BEDFORD-BAY1-PC", "Bedford Bay 1"),
            "bay-2": ("BEDFORD-BAY2-PC", "Bedford Bay 2"),
        },
        "dartmouth": {
            "bay-1": ("DART-BAY1-PC", "Dartmouth Bay 1"),
            "bay-2": ("DART-BAY2-PC", "Dartmouth Bay 2"),
            "bay-3": ("DART-BAY3-PC", "Dartmouth Bay 3"),
            "bay-4": ("DART-BAY4-PC", "Dartmouth Bay 4"),
        },
    }
)

DEFAULT_DOORS = _identities(
    {
        "bedford": {
            MAIN_ENTRANCE: ("door_001", "Bedford Main Entrance"),
            "bay-1": ("door_002", "Bedford Bay 1 Access"),
            "bay-2": ("door_003", "Bedford Bay 2 Access"),
            "office": ("door_004", "Bedford Office"),
        },
        "dartmouth": {
            MAIN_ENTRANCE: ("door_101", "Dartmouth Main Entrance"),
            "bay-1": ("door_102", "Dartmouth Bay 1 Access"),
            "bay-2": ("door_103", "Dartmouth Bay 2 Access"),
            "bay-3": ("door_104", "Dartmouth Bay 3 Access"),
            "bay-4": ("door_105", "Dartmouth Bay 4 Access"),
            "office": ("door_106", "Dartmouth Office"),
        },
    }
)


# Projectors are addressed by host; the device id is the projector's IP.
DEFAULT_PROJECTORS = _identities(
    {
        "bedford": {
            "bay-1": ("192.168.1.101", "Bedford Bay 1"),
            "bay-2": ("192.168.1.102", "Bedford Bay 2"),
        },
        "dartmouth": {
            "bay-1": ("192.168.2.101", "Dartmouth Bay 1"),
            "bay-2": ("192.168.2.102", "Dartmouth Bay 2"),
            "bay-3": ("192.168.2.103", "Dartmouth Bay 3"),
            "bay-4": ("192.168.2.104", "Dartmouth Bay 4"),
        },
    }
)


def _freeze(entries: Mapping[str, Mapping[str, DeviceIdentity]]) -> Mapping[str, Mapping[str, DeviceIdentity]]:
    return MappingProxyType({loc.lower(): MappingProxyType(dict(bays)) for loc, bays in entries.items()})


class DeviceDirectory:
    """Read-only lookup; safe to share across concurrent dispatches."""

    def __init__(
        self,
        pcs: Optional[Mapping[str, Mapping[str, DeviceIdentity]]] = None,
        doors: Optional[Mapping[str, Mapping[str, DeviceIdentity]]] = None,
        projectors: Optional[Mapping[str, Mapping[str, DeviceIdentity]]] = None,
    ):
        self._pcs = _freeze(pcs if pcs is not None else DEFAULT_PCS)
        self._doors = _freeze(doors if doors is not None else DEFAULT_DOORS)
        self._projectors = _freeze(projectors if projectors is not None else DEFAULT_PROJECTORS)

    @classmethod
    def from_config(
        cls,
        devices: Mapping[str, Mapping[str, Mapping[str, str]]],
        doors: Mapping[str, Mapping[str, Mapping[str, str]]],
        projectors: Optional[Mapping[str, Mapping[str, Mapping[str, str]]]] = None,
    ) -> "DeviceDirectory":
        def merged(defaults, overrides):
            table = {loc: dict(bays) for loc, bays in defaults.items()}
            for loc, bays in overrides.items():
                target = table.setdefault(loc.lower(), {})
                for bay, entry in bays.items():
                    target[bay] = DeviceIdentity(entry["id"], entry["name"])
            return table

        return cls(
            merged(DEFAULT_PCS, devices),
            merged(DEFAULT_DOORS, doors),
            merged(DEFAULT_PROJECTORS, projectors or {}),
        )

    @staticmethod
    def _lookup(table, kind: str, location: Optional[str], bay: Optional[str]) -> DeviceIdentity:
        identity = table.get((location or "").lower(), {}).get(bay or "")
        if identity is None:
            raise ConfigurationError(f"{kind} not found for {location} {bay}")
        return identity

    def resolve_pc(self, location: Optional[str], bay: Optional[str]) -> DeviceIdentity:
        return self._lookup(self._pcs, "Device", location, bay)

    def resolve_door(self, location: Optional[str], bay: Optional[str] = None) -> DeviceIdentity:
        return self._lookup(self._doors, "Door", location, bay or MAIN_ENTRANCE)

    def resolve_projector(self, location: Optional[str], bay: Optional[str]) -> DeviceIdentity:
        return self._lookup(self._projectors, "Projector", location, bay)

    def locations(self) -> list[str]:
        return sorted(set(self._pcs) | set(self._doors) | set(self._projectors))

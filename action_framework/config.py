# SPDX-License-Identifier: Apache-2.0
"""Configuration loader for the action framework."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

DEMO_NINJAONE_CLIENT_ID = "demo_client_id"
NINJAONE_BASE_URL = "https://api.ninjarmm.com/v2"
UBIQUITI_API_URL = "https://unifi-controller.clubhouse.local:8443"
OPENPHONE_API_URL = "https://api.openphone.com/v1"
HUBSPOT_API_URL = "https://api.hubapi.com"
BENQ_PORT = 4661
SLACK_CHANNEL = "#clubos-alerts"


@dataclass(slots=True)
class DispatcherConfig:
    timeout_seconds: float = 30.0
    max_retries: int = 2
    retry_delay: float = 1.0
    auto_escalate: bool = False
    legacy_actions: List[str] = field(default_factory=list)


@dataclass(slots=True)
class BreakerConfig:
    failure_threshold: int = 5
    reset_timeout: float = 60.0


@dataclass(slots=True)
class NinjaOneConfig:
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    base_url: str = NINJAONE_BASE_URL
    timeout: float = 30.0
    scripts: Dict[str, str] = field(
        default_factory=lambda: {
            "restart_trackman": "restart-trackman-v2",
            "reboot": "reboot-graceful",
            "wake": "wake-on-lan",
            "lock": "lock-workstation",
        }
    )

    @property
    def live(self) -> bool:
        return bool(self.client_id) and bool(self.client_secret) and self.client_id != DEMO_NINJAONE_CLIENT_ID


@dataclass(slots=True)
class UbiquitiConfig:
    api_key: Optional[str] = None
    api_url: str = UBIQUITI_API_URL
    timeout: float = 15.0
    unlock_duration: int = 600

    @property
    def live(self) -> bool:
        return bool(self.api_key)


@dataclass(slots=True)
class BenQConfig:
    enabled: bool = False
    password: Optional[str] = None
    port: int = BENQ_PORT
    timeout: float = 10.0

    @property
    def live(self) -> bool:
        return self.enabled


@dataclass(slots=True)
class OpenPhoneConfig:
    api_key: Optional[str] = None
    api_url: str = OPENPHONE_API_URL
    timeout: float = 30.0
    numbers: Dict[str, str] = field(default_factory=dict)

    @property
    def live(self) -> bool:
        return bool(self.api_key)


@dataclass(slots=True)
class HubSpotConfig:
    access_token: Optional[str] = None
    api_url: str = HUBSPOT_API_URL
    timeout: float = 30.0

    @property
    def live(self) -> bool:
        return bool(self.access_token)


@dataclass(slots=True)
class SlackConfig:
    webhook_url: Optional[str] = None
    channel: str = SLACK_CHANNEL
    timeout: float = 5.0


@dataclass(slots=True)
class VendorsConfig:
    ninjaone: NinjaOneConfig = field(default_factory=NinjaOneConfig)
    ubiquiti: UbiquitiConfig = field(default_factory=UbiquitiConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    benq: BenQConfig = field(default_factory=BenQConfig)
    openphone: OpenPhoneConfig = field(default_factory=OpenPhoneConfig)
    hubspot: HubSpotConfig = field(default_factory=HubSpotConfig)


@dataclass(slots=True)
class SimulationConfig:
    failure_rate: float = 0.1
    seed: Optional[int] = None


@dataclass(slots=True)
class BookingConfig:
    id: str
    customer_id: str
    start_time: datetime
    duration_minutes: int = 60
    location: Optional[str] = None
    bay_id: Optional[str] = None


@dataclass(slots=True)
class FrameworkConfig:
    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    breaker: BreakerConfig = field(default_factory=BreakerConfig)
    vendors: VendorsConfig = field(default_factory=VendorsConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    devices: Dict[str, Dict[str, Dict[str, str]]] = field(default_factory=dict)
    doors: Dict[str, Dict[str, Dict[str, str]]] = field(default_factory=dict)
    projectors: Dict[str, Dict[str, Dict[str, str]]] = field(default_factory=dict)
    bookings: List[BookingConfig] = field(default_factory=list)
    metrics_port: int = 0


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a mapping")
    return value


def _parse_dispatcher(data: Dict[str, Any]) -> DispatcherConfig:
    legacy = data.get("legacy_actions", []) or []
    if not isinstance(legacy, list):
        raise ValueError("'dispatcher.legacy_actions' must be a list")
    timeout = float(data.get("timeout_seconds", 30.0))
    if timeout <= 0:
        raise ValueError(f"'dispatcher.timeout_seconds' must be positive, got {timeout:g}")
    retries = int(data.get("max_retries", 2))
    if retries < 0:
        raise ValueError("'dispatcher.max_retries' must be >= 0")
    return DispatcherConfig(
        timeout_seconds=timeout,
        max_retries=retries,
        retry_delay=float(data.get("retry_delay", 1.0)),
        auto_escalate=bool(data.get("auto_escalate", False)),
        legacy_actions=[str(item) for item in legacy],
    )


def _parse_breaker(data: Dict[str, Any]) -> BreakerConfig:
    return BreakerConfig(
        failure_threshold=int(data.get("failure_threshold", 5)),
        reset_timeout=float(data.get("reset_timeout", 60.0)),
    )


def _parse_vendors(data: Dict[str, Any]) -> VendorsConfig:
    ninja = _section(data, "ninjaone")
    ubnt = _section(data, "ubiquiti")
    slack = _section(data, "slack")
    benq = _section(data, "benq")
    openphone = _section(data, "openphone")
    hubspot = _section(data, "hubspot")
    ninja_cfg = NinjaOneConfig(
        client_id=ninja.get("client_id") or os.environ.get("NINJAONE_CLIENT_ID"),
        client_secret=ninja.get("client_secret") or os.environ.get("NINJAONE_CLIENT_SECRET"),
        base_url=ninja.get("base_url", NINJAONE_BASE_URL),
        timeout=float(ninja.get("timeout", 30.0)),
    )
    ninja_cfg.scripts.update(_section(ninja, "scripts"))
    return VendorsConfig(
        ninjaone=ninja_cfg,
        ubiquiti=UbiquitiConfig(
            api_key=ubnt.get("api_key") or os.environ.get("UBIQUITI_API_KEY"),
            api_url=ubnt.get("api_url", UBIQUITI_API_URL),
            timeout=float(ubnt.get("timeout", 15.0)),
            unlock_duration=int(ubnt.get("unlock_duration", 600)),
        ),
        slack=SlackConfig(
            webhook_url=slack.get("webhook_url") or os.environ.get("SLACK_WEBHOOK_URL"),
            channel=slack.get("channel", SLACK_CHANNEL),
            timeout=float(slack.get("timeout", 5.0)),
        ),
        benq=BenQConfig(
            enabled=bool(benq.get("enabled", False)),
            password=benq.get("password") or os.environ.get("BENQ_PASSWORD"),
            port=int(benq.get("port") or os.environ.get("BENQ_API_PORT") or BENQ_PORT),
            timeout=float(benq.get("timeout", 10.0)),
        ),
        openphone=OpenPhoneConfig(
            api_key=openphone.get("api_key") or os.environ.get("OPENPHONE_API_KEY"),
            api_url=openphone.get("api_url", OPENPHONE_API_URL),
            timeout=float(openphone.get("timeout", 30.0)),
            numbers={str(k): str(v) for k, v in _section(openphone, "numbers").items()},
        ),
        hubspot=HubSpotConfig(
            access_token=hubspot.get("access_token") or os.environ.get("HUBSPOT_ACCESS_TOKEN"),
            api_url=hubspot.get("api_url", HUBSPOT_API_URL),
            timeout=float(hubspot.get("timeout", 30.0)),
        ),
    )


def _parse_directory(key: str, data: Dict[str, Any]) -> Dict[str, Dict[str, Dict[str, str]]]:
    entries: Dict[str, Dict[str, Dict[str, str]]] = {}
    for location, bays in data.items():
        if not isinstance(bays, dict):
            raise ValueError(f"'{key}.{location}' must be a mapping of bay -> device")
        entries[str(location).lower()] = {}
        for bay, device in bays.items():
            if not isinstance(device, dict) or "id" not in device:
                raise ValueError(f"'{key}.{location}.{bay}' needs an 'id'")
            entries[str(location).lower()][str(bay)] = {
                "id": str(device["id"]),
                "name": str(device.get("name", device["id"])),
            }
    return entries


def _parse_bookings(items: List[Dict[str, Any]]) -> List[BookingConfig]:
    bookings: List[BookingConfig] = []
    for item in items:
        start = item["start_time"]
        if isinstance(start, str):
            start = datetime.fromisoformat(start)
        bookings.append(
            BookingConfig(
                id=str(item["id"]),
                customer_id=str(item["customer_id"]),
                start_time=start,
                duration_minutes=int(item.get("duration_minutes", 60)),
                location=item.get("location"),
                bay_id=item.get("bay_id"),
            )
        )
    return bookings


def parse_config(raw: Dict[str, Any]) -> FrameworkConfig:
    simulation = _section(raw, "simulation")
    seed = simulation.get("seed")
    bookings = raw.get("bookings", []) or []
    if not isinstance(bookings, list):
        raise ValueError("'bookings' must be a list")
    return FrameworkConfig(
        dispatcher=_parse_dispatcher(_section(raw, "dispatcher")),
        breaker=_parse_breaker(_section(raw, "breaker")),
        vendors=_parse_vendors(_section(raw, "vendors")),
        simulation=SimulationConfig(
            failure_rate=float(simulation.get("failure_rate", 0.1)),
            seed=int(seed) if seed is not None else None,
        ),
        devices=_parse_directory("devices", _section(raw, "devices")),
        doors=_parse_directory("doors", _section(raw, "doors")),
        projectors=_parse_directory("projectors", _section(raw, "projectors")),
        bookings=_parse_bookings(bookings),
        metrics_port=int(raw.get("metrics_port", 0)),
    )


def default_config() -> FrameworkConfig:
    return parse_config({})


def load_config(path: str | Path) -> FrameworkConfig:
    raw = yaml.safe_load(Path(path).read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config file {path} must contain a mapping")
    return parse_config(raw)

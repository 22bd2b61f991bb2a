# SPDX-License-Identifier: Apache-2.0
"""Device adapter factory."""
from __future__ import annotations

from action_framework.breaker import BreakerRegistry
from action_framework.config import FrameworkConfig

from .adapter import RemoteDeviceAdapter
from .benq import BenQClient
from .directory import DeviceDirectory, DeviceIdentity
from .ninjaone import NinjaOneClient
from .ubiquiti import UbiquitiClient


def create_adapter(cfg: FrameworkConfig, breakers: BreakerRegistry) -> RemoteDeviceAdapter:
    return RemoteDeviceAdapter(
        directory=DeviceDirectory.from_config(cfg.devices, cfg.doors, cfg.projectors),
        ninjaone=NinjaOneClient(cfg.vendors.ninjaone),
        ubiquiti=UbiquitiClient(cfg.vendors.ubiquiti),
        breakers=breakers,
        simulation=cfg.simulation,
        benq=BenQClient(cfg.vendors.benq),
    )


__all__ = [
    "BenQClient",
    "DeviceDirectory",
    "DeviceIdentity",
    "NinjaOneClient",
    "RemoteDeviceAdapter",
    "UbiquitiClient",
    "create_adapter",
]

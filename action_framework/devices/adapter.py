# SPDX-License-Identifier: Apache-2.0
"""Remote device adapter: resolves bays to devices and drives vendor APIs.

Each vendor runs in simulated mode until its credentials are configured.
Simulated results never touch the network and are flagged
``simulated=True`` so staff can tell a rehearsal from a real action.
"""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional

from action_framework.breaker import BreakerRegistry
from action_framework.config import BenQConfig, SimulationConfig
from action_framework.errors import ActionFrameworkError, ConfigurationError
from action_framework.outcomes import ActionResult

from .benq import INPUT_COMMANDS, POWER_OFF, POWER_ON, VALID_INPUTS, BenQClient
from .directory import DeviceDirectory, DeviceIdentity
from .ninjaone import NinjaOneClient
from .ubiquiti import UbiquitiClient

log = logging.getLogger(__name__)

SIMULATED_UNLOCK_DURATION = "10 minutes"
REBOOT_ESTIMATE = "3-5 minutes"
WAKE_POLL_INTERVAL_S = 5.0
WAKE_POLL_ATTEMPTS = 6
PROJECTOR_WARMUP_S = 3.0
PROJECTOR_OFF_REPEAT_S = 1.0
PROJECTOR_INPUT_SETTLE_S = 2.0
PROJECTOR_COOLDOWN = "90 seconds"


def _minutes(seconds: int) -> str:
    minutes = max(1, round(seconds / 60))
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


class RemoteDeviceAdapter:
    def __init__(
        self,
        directory: DeviceDirectory,
        ninjaone: NinjaOneClient,
        ubiquiti: UbiquitiClient,
        breakers: BreakerRegistry,
        simulation: Optional[SimulationConfig] = None,
        *,
        benq: Optional[BenQClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.directory = directory
        self.ninjaone = ninjaone
        self.ubiquiti = ubiquiti
        self.benq = benq if benq is not None else BenQClient(BenQConfig())
        self.breakers = breakers
        self.simulation = simulation or SimulationConfig()
        self._rng = random.Random(self.simulation.seed)
        self._sleep = sleep

    async def _guarded(self, vendor: str, operation: str, call: Callable[[], Awaitable[Any]]) -> Any:
        return await self.breakers.get(f"{vendor}:{operation}").call(call)

    def _pc(self, bay: Optional[str], location: Optional[str]) -> DeviceIdentity:
        return self.directory.resolve_pc(location, bay)

    @staticmethod
    def _base(identity: DeviceIdentity, location, bay, simulated: bool) -> dict:
        return {
            "device": identity.display_name,
            "device_id": identity.device_id,
            "location": location,
            "bay": bay,
            "simulated": simulated,
        }

    async def reset_device(self, bay: Optional[str], location: Optional[str]) -> ActionResult:
        """Restart the TrackMan software on the bay PC."""
        try:
            pc = self._pc(bay, location)
        except ConfigurationError as exc:
            return ActionResult.failed(str(exc), location=location, bay=bay)
        if not self.ninjaone.configured:
            log.info("[simulated] resetting TrackMan on %s", pc.display_name)
            if self._rng.random() < self.simulation.failure_rate:
                return ActionResult.failed(
                    f"Failed to reset TrackMan on {pc.display_name} - Device not responding",
                    **self._base(pc, location, bay, True),
                )
            return ActionResult.success(
                f"TrackMan reset initiated on {pc.display_name}", **self._base(pc, location, bay, True)
            )
        try:
            job = await self._guarded(
                "ninjaone",
                "reset_device",
                lambda: self.ninjaone.run_script(pc.device_id, self.ninjaone.script("restart_trackman")),
            )
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to reset TrackMan: {exc}", **self._base(pc, location, bay, False))
        return ActionResult.success(
            f"TrackMan reset initiated on {pc.display_name}",
            job_id=job.get("job_id"),
            **self._base(pc, location, bay, False),
        )

    async def reboot_device(self, bay: Optional[str], location: Optional[str]) -> ActionResult:
        try:
            pc = self._pc(bay, location)
        except ConfigurationError as exc:
            return ActionResult.failed(str(exc), location=location, bay=bay)
        if not self.ninjaone.configured:
            log.info("[simulated] rebooting %s", pc.display_name)
            return ActionResult.success(
                f"PC reboot initiated on {pc.display_name}. Estimated time: {REBOOT_ESTIMATE}",
                estimated_time=REBOOT_ESTIMATE,
                **self._base(pc, location, bay, True),
            )
        try:
            job = await self._guarded(
                "ninjaone",
                "reboot_device",
                lambda: self.ninjaone.run_script(
                    pc.device_id, self.ninjaone.script("reboot"), {"timeout": 60, "force": False}
                ),
            )
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to reboot PC: {exc}", **self._base(pc, location, bay, False))
        return ActionResult.success(
            f"PC reboot initiated on {pc.display_name}",
            job_id=job.get("job_id"),
            estimated_time=REBOOT_ESTIMATE,
            **self._base(pc, location, bay, False),
        )

    async def wake_device(
        self,
        bay: Optional[str],
        location: Optional[str],
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ActionResult:
        """Send Wake-on-LAN and poll until the PC reports online.

        Returns ``partial`` when the command went out but the PC never came
        up, and ``unconfirmed`` when polling was abandoned via ``cancel_event``.
        """
        try:
            pc = self._pc(bay, location)
        except ConfigurationError as exc:
            return ActionResult.failed(str(exc), location=location, bay=bay)
        if not self.ninjaone.configured:
            return ActionResult.success(f"PC woken on {pc.display_name}", **self._base(pc, location, bay, True))
        try:
            status = await self._guarded("ninjaone", "device_status", lambda: self.ninjaone.device_status(pc.device_id))
            if status["online"]:
                return ActionResult.success("PC already online", skipped=True, **self._base(pc, location, bay, False))
            job = await self._guarded(
                "ninjaone", "wake_device", lambda: self.ninjaone.run_script(pc.device_id, self.ninjaone.script("wake"))
            )
            for _ in range(WAKE_POLL_ATTEMPTS):
                if cancel_event is not None and cancel_event.is_set():
                    return ActionResult.unconfirmed(
                        "Wake command sent; verification abandoned",
                        job_id=job.get("job_id"),
                        **self._base(pc, location, bay, False),
                    )
                await self._sleep(WAKE_POLL_INTERVAL_S)
                status = await self._guarded(
                    "ninjaone", "device_status", lambda: self.ninjaone.device_status(pc.device_id)
                )
                if status["online"]:
                    return ActionResult.success(
                        "PC woken successfully", job_id=job.get("job_id"), **self._base(pc, location, bay, False)
                    )
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to wake PC: {exc}", **self._base(pc, location, bay, False))
        return ActionResult.partial(
            "Wake command sent but PC not yet online", job_id=job.get("job_id"), **self._base(pc, location, bay, False)
        )

    async def lock_device(self, bay: Optional[str], location: Optional[str]) -> ActionResult:
        try:
            pc = self._pc(bay, location)
        except ConfigurationError as exc:
            return ActionResult.failed(str(exc), location=location, bay=bay)
        if not self.ninjaone.configured:
            return ActionResult.success(f"PC locked on {pc.display_name}", **self._base(pc, location, bay, True))
        try:
            job = await self._guarded(
                "ninjaone", "lock_device", lambda: self.ninjaone.run_script(pc.device_id, self.ninjaone.script("lock"))
            )
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to lock PC: {exc}", **self._base(pc, location, bay, False))
        return ActionResult.success("PC locked", job_id=job.get("job_id"), **self._base(pc, location, bay, False))

    async def unlock_door(
        self,
        bay: Optional[str],
        location: Optional[str],
        duration: Optional[int] = None,
    ) -> ActionResult:
        """Unlock the bay door (or the main entrance when no bay is given).

        ``duration`` is the validity window in seconds; the result reports it
        in minutes.
        """
        try:
            door = self.directory.resolve_door(location, bay)
        except ConfigurationError as exc:
            return ActionResult.failed(str(exc), location=location, bay=bay)
        if not self.ubiquiti.configured:
            log.info("[simulated] unlocking %s", door.display_name)
            window = _minutes(duration) if duration else SIMULATED_UNLOCK_DURATION
            return ActionResult.success(
                f"Door unlocked for {location} {bay or 'main entrance'}",
                duration=window,
                **self._base(door, location, bay, True),
            )
        seconds = duration or self.ubiquiti.cfg.unlock_duration
        try:
            await self._guarded("ubiquiti", "unlock_door", lambda: self.ubiquiti.unlock(door.device_id, seconds))
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to unlock door: {exc}", **self._base(door, location, bay, False))
        return ActionResult.success(
            f"Door unlocked: {door.display_name}",
            duration=_minutes(seconds),
            **self._base(door, location, bay, False),
        )

    async def lock_door(self, bay: Optional[str], location: Optional[str]) -> ActionResult:
        try:
            door = self.directory.resolve_door(location, bay)
        except ConfigurationError as exc:
            return ActionResult.failed(str(exc), location=location, bay=bay)
        if not self.ubiquiti.configured:
            return ActionResult.success(f"Door locked: {door.display_name}", **self._base(door, location, bay, True))
        try:
            status = await self._guarded("ubiquiti", "door_status", lambda: self.ubiquiti.door_status(door.device_id))
            if status == "locked":
                return ActionResult.success(
                    "Door already locked", skipped=True, status=status, **self._base(door, location, bay, False)
                )
            await self._guarded("ubiquiti", "lock_door", lambda: self.ubiquiti.lock(door.device_id))
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to lock door: {exc}", **self._base(door, location, bay, False))
        return ActionResult.success("Door locked successfully", **self._base(door, location, bay, False))

    async def door_status(self, bay: Optional[str], location: Optional[str]) -> ActionResult:
        try:
            door = self.directory.resolve_door(location, bay)
        except ConfigurationError as exc:
            return ActionResult.failed(str(exc), location=location, bay=bay)
        if not self.ubiquiti.configured:
            return ActionResult.success(
                f"{door.display_name} is locked", status="locked", **self._base(door, location, bay, True)
            )
        try:
            status = await self._guarded("ubiquiti", "door_status", lambda: self.ubiquiti.door_status(door.device_id))
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to read door status: {exc}", **self._base(door, location, bay, False))
        if status == "unknown":
            return ActionResult.unconfirmed(
                f"{door.display_name} status unknown", status=status, **self._base(door, location, bay, False)
            )
        return ActionResult.success(f"{door.display_name} is {status}", status=status, **self._base(door, location, bay, False))

    async def _projector_power_state(self, projector: DeviceIdentity) -> str:
        try:
            return await self._guarded("benq", "power_status", lambda: self.benq.power_status(projector.device_id))
        except ActionFrameworkError as exc:
            log.warning("power status for %s unavailable: %s", projector.display_name, exc)
            return "unknown"

    async def projector_power(self, bay: Optional[str], location: Optional[str], on: bool) -> ActionResult:
        """Switch a bay projector on or off, skipping when it is already there.

        Power-on is confirmed by re-reading the power state after warm-up.
        Power-off sends the command twice, as the projector asks for
        confirmation of a shutdown.
        """
        try:
            projector = self.directory.resolve_projector(location, bay)
        except ConfigurationError as exc:
            return ActionResult.failed(str(exc), location=location, bay=bay)
        wanted = "on" if on else "off"
        if not self.benq.configured:
            log.info("[simulated] powering %s %s", wanted, projector.display_name)
            return ActionResult.success(
                f"Projector powered {wanted}: {projector.display_name}",
                **self._base(projector, location, bay, True),
            )
        operation = "power_on" if on else "power_off"
        base = self._base(projector, location, bay, False)
        if await self._projector_power_state(projector) == wanted:
            return ActionResult.success(f"Projector already {wanted}", skipped=True, **base)
        command = POWER_ON if on else POWER_OFF
        try:
            await self._guarded("benq", operation, lambda: self.benq.send_command(projector.device_id, command))
            if not on:
                await self._sleep(PROJECTOR_OFF_REPEAT_S)
                await self._guarded("benq", operation, lambda: self.benq.send_command(projector.device_id, command))
                return ActionResult.success("Projector powering off", cooldown_time=PROJECTOR_COOLDOWN, **base)
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to power {wanted} projector: {exc}", **base)
        await self._sleep(PROJECTOR_WARMUP_S)
        if await self._projector_power_state(projector) == "on":
            return ActionResult.success(
                "Projector powered on successfully", warmup_time=f"{PROJECTOR_WARMUP_S:g} seconds", **base
            )
        return ActionResult.failed("Projector failed to power on", **base)

    async def projector_input(self, bay: Optional[str], location: Optional[str], source: Optional[str]) -> ActionResult:
        source = (source or "hdmi").lower()
        command = INPUT_COMMANDS.get(source)
        if command is None:
            return ActionResult.failed(
                f"Invalid input: {source}. Valid inputs: {', '.join(VALID_INPUTS)}", location=location, bay=bay
            )
        try:
            projector = self.directory.resolve_projector(location, bay)
        except ConfigurationError as exc:
            return ActionResult.failed(str(exc), location=location, bay=bay)
        if not self.benq.configured:
            return ActionResult.success(
                f"Input changed to {source}", input=source, **self._base(projector, location, bay, True)
            )
        base = self._base(projector, location, bay, False)
        try:
            await self._guarded("benq", "change_input", lambda: self.benq.send_command(projector.device_id, command))
        except ActionFrameworkError as exc:
            return ActionResult.failed(f"Failed to change projector input: {exc}", **base)
        await self._sleep(PROJECTOR_INPUT_SETTLE_S)
        return ActionResult.success(f"Input changed to {source}", input=source, **base)

    async def close(self) -> None:
        await asyncio.gather(self.ninjaone.close(), self.ubiquiti.close(), self.benq.close())

# SPDX-License-Identifier: Apache-2.0
"""Circuit breaker state machine and registry."""
from __future__ import annotations

import asyncio

import pytest

from action_framework.breaker import BreakerRegistry, CircuitBreaker, CircuitState
from action_framework.errors import CircuitOpenError, VendorApiError


async def _fail():
    raise VendorApiError("ninjaone", 502, "bad gateway")


async def _ok():
    return "ok"


async def _trip(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        with pytest.raises(VendorApiError):
            await breaker.call(_fail)


@pytest.mark.asyncio
async def test_opens_after_threshold_and_rejects_without_invoking(clock):
    breaker = CircuitBreaker("ninjaone:reset_device", failure_threshold=3, reset_timeout=60, clock=clock)
    await _trip(breaker, 3)
    assert breaker.state is CircuitState.OPEN

    invoked = []

    async def operation():
        invoked.append(1)
        return "ok"

    clock.advance(10)
    with pytest.raises(CircuitOpenError) as info:
        await breaker.call(operation)
    assert invoked == []
    assert info.value.retry_after == pytest.approx(50)
    assert "ninjaone:reset_device is OPEN" in str(info.value)
    assert breaker.request_count == 4


@pytest.mark.asyncio
async def test_half_open_trial_success_closes(clock):
    breaker = CircuitBreaker("ubiquiti:unlock_door", failure_threshold=2, reset_timeout=60, clock=clock)
    await _trip(breaker, 2)
    clock.advance(60)
    assert await breaker.call(_ok) == "ok"
    assert breaker.state is CircuitState.CLOSED
    assert breaker.failures == 0


@pytest.mark.asyncio
async def test_half_open_trial_failure_reopens_and_rearms(clock):
    breaker = CircuitBreaker("ubiquiti:unlock_door", failure_threshold=2, reset_timeout=60, clock=clock)
    await _trip(breaker, 2)
    clock.advance(61)
    await _trip(breaker, 1)
    assert breaker.state is CircuitState.OPEN
    assert breaker.last_failure_time == clock.now
    assert breaker.failures == 1
    clock.advance(30)
    with pytest.raises(CircuitOpenError):
        await breaker.call(_ok)


@pytest.mark.asyncio
async def test_half_open_admits_a_single_trial(clock):
    breaker = CircuitBreaker("ninjaone:wake_device", failure_threshold=1, reset_timeout=5, clock=clock)
    await _trip(breaker, 1)
    clock.advance(5)

    release = asyncio.Event()

    async def trial():
        await release.wait()
        return "trial"

    first = asyncio.ensure_future(breaker.call(trial))
    await asyncio.sleep(0)
    assert breaker.state is CircuitState.HALF_OPEN
    with pytest.raises(CircuitOpenError):
        await breaker.call(_ok)
    release.set()
    assert await first == "trial"
    assert breaker.state is CircuitState.CLOSED


@pytest.mark.asyncio
async def test_closed_success_does_not_reset_failures(clock):
    breaker = CircuitBreaker("slack:notify", failure_threshold=3, clock=clock)
    await _trip(breaker, 2)
    await breaker.call(_ok)
    assert breaker.failures == 2
    await _trip(breaker, 1)
    assert breaker.state is CircuitState.OPEN


@pytest.mark.asyncio
async def test_status_reports_success_rate(clock):
    breaker = CircuitBreaker("ninjaone:lock_device", clock=clock)
    assert breaker.success_rate == 0.0
    await breaker.call(_ok)
    await _trip(breaker, 1)
    status = breaker.status()
    assert status["state"] == "CLOSED"
    assert status["success_rate"] == 0.5
    assert status["request_count"] == 2
    assert status["last_failure_time"] == clock.now


def test_threshold_must_be_positive():
    with pytest.raises(ValueError):
        CircuitBreaker("x", failure_threshold=0)


@pytest.mark.asyncio
async def test_registry_keeps_one_breaker_per_target(clock):
    registry = BreakerRegistry(failure_threshold=1, reset_timeout=30, clock=clock)
    unlock = registry.get("ubiquiti:unlock_door")
    assert registry.get("ubiquiti:unlock_door") is unlock
    assert "ubiquiti:unlock_door" in registry
    assert "ubiquiti:lock_door" not in registry

    await _trip(unlock, 1)
    lock = registry.get("ubiquiti:lock_door")
    assert await lock.call(_ok) == "ok"

    snapshot = registry.snapshot()
    assert list(snapshot) == ["ubiquiti:lock_door", "ubiquiti:unlock_door"]
    assert snapshot["ubiquiti:unlock_door"]["state"] == "OPEN"
    assert snapshot["ubiquiti:lock_door"]["state"] == "CLOSED"

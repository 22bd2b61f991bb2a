# SPDX-License-Identifier: Apache-2.0
"""Retry loop: attempt counts, backoff and non-retryable errors."""
from __future__ import annotations

import pytest

from action_framework.context import SopConfig
from action_framework.errors import ConfigurationError, PermissionDeniedError, RetryExhaustedError, VendorApiError
from action_framework.retry import RetryPolicy, backoff_delay, is_retryable, with_retry


def _flaky(failures: int):
    calls = []

    async def operation():
        calls.append(len(calls) + 1)
        if len(calls) <= failures:
            raise VendorApiError("ninjaone", 503, "unavailable")
        return "ok"

    return operation, calls


@pytest.mark.asyncio
@pytest.mark.parametrize("failures", [0, 1, 2])
async def test_recovers_after_transient_failures(failures, no_sleep, sleeps):
    operation, calls = _flaky(failures)
    assert await with_retry(operation, 2, 1.0, sleep=no_sleep) == "ok"
    assert len(calls) == failures + 1
    assert sleeps == [1.0, 2.0][:failures]


@pytest.mark.asyncio
async def test_exhaustion_reports_last_error_and_attempts(no_sleep, sleeps):
    operation, calls = _flaky(10)
    with pytest.raises(RetryExhaustedError) as info:
        await with_retry(operation, 2, 1.0, sleep=no_sleep)
    assert len(calls) == 3
    assert info.value.attempts == 3
    assert isinstance(info.value.last_error, VendorApiError)
    assert info.value.__cause__ is info.value.last_error
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_zero_retries_means_one_attempt(no_sleep, sleeps):
    operation, calls = _flaky(10)
    with pytest.raises(RetryExhaustedError) as info:
        await with_retry(operation, 0, 1.0, sleep=no_sleep)
    assert calls == [1]
    assert info.value.attempts == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(no_sleep, sleeps):
    calls = []

    async def operation():
        calls.append(1)
        raise PermissionDeniedError("ubiquiti", 404, "door missing")

    with pytest.raises(PermissionDeniedError):
        await with_retry(operation, 3, 1.0, sleep=no_sleep)
    assert calls == [1]
    assert sleeps == []


@pytest.mark.asyncio
async def test_configuration_errors_are_not_retried(no_sleep):
    calls = []

    async def operation():
        calls.append(1)
        raise ConfigurationError("Device not found for nowhere bay-9")

    with pytest.raises(ConfigurationError):
        await with_retry(operation, 3, 1.0, sleep=no_sleep)
    assert calls == [1]


def test_status_code_attribute_is_honoured():
    class HttpError(Exception):
        def __init__(self, status_code):
            super().__init__(f"http {status_code}")
            self.status_code = status_code

    assert not is_retryable(HttpError(401))
    assert is_retryable(HttpError(502))
    assert is_retryable(RuntimeError("socket reset"))


@pytest.mark.asyncio
async def test_negative_retries_rejected(no_sleep):
    operation, _ = _flaky(0)
    with pytest.raises(ValueError):
        await with_retry(operation, -1, sleep=no_sleep)


def test_backoff_doubles_from_base():
    assert [backoff_delay(1.0, n) for n in range(3)] == [1.0, 2.0, 4.0]
    assert backoff_delay(0.5, 2) == 2.0


def test_policy_from_sop_falls_back_per_field():
    defaults = RetryPolicy(timeout=30.0, max_retries=2, retry_delay=0.5)
    policy = RetryPolicy.from_sop(SopConfig(timeout_seconds=5, max_retries=None), defaults)
    assert policy == RetryPolicy(timeout=5.0, max_retries=2, retry_delay=0.5)
    assert RetryPolicy.from_sop(None, defaults) is defaults
    assert RetryPolicy.from_sop(SopConfig(max_retries=0)).max_retries == 0

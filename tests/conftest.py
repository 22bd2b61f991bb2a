# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures and fakes for action framework tests."""
from __future__ import annotations

from typing import Any, List, Optional

import pytest

from action_framework.booking import BookingValidation, BookingValidator
from action_framework.config import parse_config
from action_framework.dispatcher import build_dispatcher
from action_framework.escalation import EscalationReceipt, EscalationTransport

VENDOR_ENV = (
    "NINJAONE_CLIENT_ID",
    "NINJAONE_CLIENT_SECRET",
    "UBIQUITI_API_KEY",
    "SLACK_WEBHOOK_URL",
    "BENQ_PASSWORD",
    "BENQ_API_PORT",
    "OPENPHONE_API_KEY",
    "HUBSPOT_ACCESS_TOKEN",
)


class FakeEscalation(EscalationTransport):
    """Escalation transport that records what it was asked to send."""

    def __init__(self, receipt: Optional[EscalationReceipt] = None, error: Optional[Exception] = None):
        self.receipt = receipt or EscalationReceipt(True)
        self.error = error
        self.escalations: List[Any] = []
        self.notifications: List[Any] = []

    async def send_escalation(self, thread, sop, reason):
        self.escalations.append((thread, sop, reason))
        if self.error is not None:
            raise self.error
        return self.receipt

    async def notify(self, text, *, priority="medium", thread=None):
        self.notifications.append((text, priority))
        if self.error is not None:
            raise self.error
        return self.receipt


class FakeBookings(BookingValidator):
    def __init__(self, validation: Optional[BookingValidation] = None):
        self.validation = validation or BookingValidation(False, "No active booking found")
        self.calls: List[Any] = []

    async def validate_customer_action(self, customer_id, action):
        self.calls.append((customer_id, action))
        return self.validation


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def simulated_vendors(monkeypatch):
    """Keep every vendor in simulated mode regardless of the host environment."""
    for name in VENDOR_ENV:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def no_sleep(sleeps):
    async def _sleep(delay):
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def escalation():
    return FakeEscalation()


@pytest.fixture
def bookings():
    return FakeBookings()


@pytest.fixture
def make_dispatcher(escalation, bookings, no_sleep):
    def _make(**sections):
        raw = {"simulation": {"failure_rate": 0.0, "seed": 7}}
        raw.update(sections)
        return build_dispatcher(parse_config(raw), bookings=bookings, escalation=escalation, sleep=no_sleep)

    return _make

# SPDX-License-Identifier: Apache-2.0
"""Booking validation collaborator consulted before customer-facing actions."""
from __future__ import annotations

import abc
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from .config import BookingConfig

EARLY_BUFFER = timedelta(minutes=15)
LATE_BUFFER = timedelta(minutes=30)
UNLOCK_LEAD_TIME = timedelta(minutes=15)
LOOKBACK = timedelta(minutes=30)
LOOKAHEAD = timedelta(hours=24)


@dataclass(frozen=True, slots=True)
class Booking:
    id: str
    customer_id: str
    start_time: datetime
    duration_minutes: int = 60
    location: Optional[str] = None
    bay_id: Optional[str] = None

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)

    def is_active(self, now: datetime) -> bool:
        return self.start_time - EARLY_BUFFER <= now <= self.end_time + LATE_BUFFER


@dataclass(frozen=True, slots=True)
class BookingValidation:
    allowed: bool
    reason: Optional[str] = None
    booking: Optional[Booking] = None


class BookingValidator(abc.ABC):
    @abc.abstractmethod
    async def validate_customer_action(self, customer_id: Optional[str], action: str) -> BookingValidation:
        raise NotImplementedError


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class StaticBookingValidator(BookingValidator):
    """In-memory validator for demo and staging deployments."""

    def __init__(self, bookings: Iterable[Booking], *, clock: Callable[[], datetime] | None = None):
        self._bookings: List[Booking] = sorted(
            (
                Booking(b.id, b.customer_id, _aware(b.start_time), b.duration_minutes, b.location, b.bay_id)
                for b in bookings
            ),
            key=lambda b: b.start_time,
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_config(cls, items: Iterable[BookingConfig]) -> "StaticBookingValidator":
        return cls(
            Booking(item.id, item.customer_id, item.start_time, item.duration_minutes, item.location, item.bay_id)
            for item in items
        )

    def booking_for(self, customer_id: Optional[str], now: datetime) -> Optional[Booking]:
        for booking in self._bookings:
            if booking.customer_id != customer_id:
                continue
            if now - LOOKBACK <= booking.start_time <= now + LOOKAHEAD:
                return booking
        return None

    async def validate_customer_action(self, customer_id: Optional[str], action: str) -> BookingValidation:
        now = self._clock()
        booking = self.booking_for(customer_id, now)
        if booking is None:
            return BookingValidation(False, "No active booking found")
        if not booking.is_active(now):
            return BookingValidation(False, "Booking is not currently active", booking)
        if action == "unlock_door":
            lead = booking.start_time - now
            if lead > UNLOCK_LEAD_TIME:
                minutes = round((lead - UNLOCK_LEAD_TIME).total_seconds() / 60)
                return BookingValidation(
                    False,
                    f"Too early to unlock. Please try {minutes} minutes before your booking.",
                    booking,
                )
        return BookingValidation(True, booking=booking)

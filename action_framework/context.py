# SPDX-License-Identifier: Apache-2.0
"""Context envelope handed to every action handler."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional


@dataclass(frozen=True, slots=True)
class ThreadRef:
    id: str
    location: Optional[str] = None
    bay_id: Optional[str] = None
    customer_id: Optional[str] = None
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    intent: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ThreadRef":
        if data.get("id") is None:
            raise ValueError("thread record is missing 'id'")
        correlation_id = data.get("correlation_id") or uuid.uuid4().hex
        return cls(
            id=str(data["id"]),
            location=data.get("location"),
            bay_id=data.get("bay_id"),
            customer_id=data.get("customer_id"),
            correlation_id=str(correlation_id),
            intent=data.get("intent"),
        )


@dataclass(frozen=True, slots=True)
class SopConfig:
    """The slice of an SOP record the framework consumes."""

    id: Optional[str] = None
    title: Optional[str] = None
    timeout_seconds: Optional[float] = None
    max_retries: Optional[int] = None
    primary_action: Optional[str] = None
    fallback_action: Optional[str] = None

    def __post_init__(self):
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(f"SOP timeout_seconds must be positive, got {self.timeout_seconds!r}")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError(f"SOP max_retries must be >= 0, got {self.max_retries!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SopConfig":
        timeout = data.get("timeout_seconds")
        retries = data.get("max_retries")
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            title=data.get("title"),
            timeout_seconds=float(timeout) if timeout is not None else None,
            max_retries=int(retries) if retries is not None else None,
            primary_action=data.get("primary_action"),
            fallback_action=data.get("fallback_action"),
        )


@dataclass(slots=True)
class ActionContext:
    thread: ThreadRef
    sop: Optional[SopConfig] = None
    booking_id: Optional[str] = None
    reason: Optional[str] = None
    params: Mapping[str, Any] = field(default_factory=dict)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @classmethod
    def from_records(
        cls,
        thread: Mapping[str, Any],
        sop: Optional[Mapping[str, Any]] = None,
        booking_id: Optional[str] = None,
        reason: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> "ActionContext":
        return cls(
            thread=ThreadRef.from_mapping(thread),
            sop=SopConfig.from_mapping(sop) if sop else None,
            booking_id=booking_id,
            reason=reason,
            params=dict(params or {}),
        )

    @property
    def correlation_id(self) -> str:
        return self.thread.correlation_id

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def for_attempt(self) -> "ActionContext":
        return replace(self, cancel_event=asyncio.Event())

    def derive(self, *, reason: Optional[str] = None) -> "ActionContext":
        """Fresh context for a follow-up dispatch on the same thread."""
        return ActionContext(
            thread=self.thread,
            sop=self.sop,
            booking_id=self.booking_id,
            reason=reason if reason is not None else self.reason,
            params=self.params,
        )


@dataclass(frozen=True, slots=True)
class ActionRequest:
    action_type: str
    context: ActionContext

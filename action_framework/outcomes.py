# SPDX-License-Identifier: Apache-2.0
"""Outcome vocabulary and the thread status transitions it drives."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

log = logging.getLogger(__name__)


class OutcomeKind(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    UNCONFIRMED = "unconfirmed"


class ThreadStatus(str, enum.Enum):
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    AWAITING_HUMAN = "awaiting_human"
    IN_PROGRESS = "in_progress"


_STATUS_FOR_OUTCOME = {
    OutcomeKind.SUCCESS: ThreadStatus.RESOLVED,
    OutcomeKind.FAILED: ThreadStatus.ESCALATED,
    OutcomeKind.PARTIAL: ThreadStatus.AWAITING_HUMAN,
    OutcomeKind.UNCONFIRMED: ThreadStatus.IN_PROGRESS,
}


def coerce_outcome(value: Any) -> OutcomeKind:
    """Map handler output onto the vocabulary; anything unrecognised is unconfirmed."""
    if isinstance(value, OutcomeKind):
        return value
    try:
        return OutcomeKind(value)
    except ValueError:
        log.debug("coercing unrecognised outcome %r to unconfirmed", value)
        return OutcomeKind.UNCONFIRMED


def requires_escalation(outcome: OutcomeKind) -> bool:
    return outcome in (OutcomeKind.FAILED, OutcomeKind.PARTIAL)


@dataclass(slots=True)
class ActionResult:
    """Normalised result of one dispatch.

    ``outcome`` is stored as given by the handler; the dispatcher coerces it
    before the result leaves the framework.
    """

    outcome: Any
    notes: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def success(cls, notes: str, **details: Any) -> "ActionResult":
        return cls(OutcomeKind.SUCCESS, notes, details)

    @classmethod
    def partial(cls, notes: str, **details: Any) -> "ActionResult":
        return cls(OutcomeKind.PARTIAL, notes, details)

    @classmethod
    def failed(cls, notes: str, **details: Any) -> "ActionResult":
        return cls(OutcomeKind.FAILED, notes, details)

    @classmethod
    def unconfirmed(cls, notes: str, **details: Any) -> "ActionResult":
        return cls(OutcomeKind.UNCONFIRMED, notes, details)

    @classmethod
    def from_value(cls, value: Any) -> "ActionResult":
        """Accept a result object or the ad hoc mappings older handlers return."""
        if isinstance(value, ActionResult):
            return value
        if isinstance(value, Mapping):
            extra = {k: v for k, v in value.items() if k not in {"outcome", "notes", "details"}}
            details = {**extra, **dict(value.get("details") or {})}
            return cls(value.get("outcome"), str(value.get("notes", "")), details)
        return cls(OutcomeKind.UNCONFIRMED, "Invalid handler response", {"response_type": type(value).__name__})

    def with_details(self, **extra: Any) -> "ActionResult":
        return ActionResult(self.outcome, self.notes, {**self.details, **extra}, self.timestamp)

    def to_record(self) -> Dict[str, Any]:
        outcome = self.outcome.value if isinstance(self.outcome, OutcomeKind) else str(self.outcome)
        return {
            "outcome": outcome,
            "notes": self.notes,
            "details": dict(self.details),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class ThreadTransition:
    status: ThreadStatus
    increment_sop_override: bool = False


def transition_for(result: ActionResult, *, performed_by_human: bool = False) -> ThreadTransition:
    """Status the caller should move the thread to after persisting ``result``.

    A failed outcome recorded for an action a human carried out after the
    automated SOP gave up also bumps that SOP's override counter.
    """
    outcome = coerce_outcome(result.outcome)
    return ThreadTransition(
        status=_STATUS_FOR_OUTCOME[outcome],
        increment_sop_override=performed_by_human and outcome is OutcomeKind.FAILED,
    )

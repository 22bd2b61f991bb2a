# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import pytest

from action_framework.context import ActionContext, ThreadRef
from action_framework.outcomes import (
    ActionResult,
    OutcomeKind,
    ThreadStatus,
    coerce_outcome,
    requires_escalation,
    transition_for,
)


@pytest.mark.parametrize(
    "outcome, status",
    [
        ("success", ThreadStatus.RESOLVED),
        ("failed", ThreadStatus.ESCALATED),
        ("partial", ThreadStatus.AWAITING_HUMAN),
        ("unconfirmed", ThreadStatus.IN_PROGRESS),
        ("exploded", ThreadStatus.IN_PROGRESS),
    ],
)
def test_transition_table(outcome, status):
    transition = transition_for(ActionResult(outcome, "n/a"))
    assert transition.status is status
    assert transition.increment_sop_override is False


def test_human_failure_bumps_override_counter():
    assert transition_for(ActionResult.failed("door jammed"), performed_by_human=True).increment_sop_override
    assert not transition_for(ActionResult.success("done"), performed_by_human=True).increment_sop_override


def test_coercion_and_escalation_rules():
    assert coerce_outcome("partial") is OutcomeKind.PARTIAL
    assert coerce_outcome(None) is OutcomeKind.UNCONFIRMED
    assert coerce_outcome(OutcomeKind.FAILED) is OutcomeKind.FAILED
    assert requires_escalation(OutcomeKind.FAILED)
    assert requires_escalation(OutcomeKind.PARTIAL)
    assert not requires_escalation(OutcomeKind.UNCONFIRMED)


def test_from_value_merges_ad_hoc_fields():
    result = ActionResult.from_value({"outcome": "success", "notes": "ok", "job_id": "j1", "details": {"device": "PC"}})
    assert result.details == {"job_id": "j1", "device": "PC"}
    assert ActionResult.from_value(result) is result
    assert ActionResult.from_value("done").outcome is OutcomeKind.UNCONFIRMED


def test_to_record_is_plain_data():
    record = ActionResult.partial("Wake command sent", job_id="j2").with_details(device="Bedford Bay 1").to_record()
    assert record["outcome"] == "partial"
    assert record["details"] == {"job_id": "j2", "device": "Bedford Bay 1"}
    assert isinstance(record["timestamp"], str)


def test_context_records_and_derivation():
    context = ActionContext.from_records(
        {"id": 17, "location": "bedford", "bay_id": "bay-2", "customer_id": "c-1"},
        {"id": "sop-3", "title": "TrackMan frozen", "timeout_seconds": "45", "max_retries": 1},
        booking_id="bk-1",
    )
    assert context.thread.id == "17"
    assert context.sop.timeout_seconds == 45.0
    assert context.correlation_id

    context.cancel_event.set()
    follow_up = context.derive(reason="Action reset_trackman failed")
    assert follow_up.reason == "Action reset_trackman failed"
    assert follow_up.thread is context.thread
    assert not follow_up.cancelled

    with pytest.raises(ValueError):
        ThreadRef.from_mapping({"location": "bedford"})

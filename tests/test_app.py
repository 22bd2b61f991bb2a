# SPDX-License-Identifier: Apache-2.0
"""Command line entry point."""
from __future__ import annotations

import json

import pytest

from action_framework.app import main


def test_run_prints_result_and_transition(capsys):
    code = main(
        [
            "run",
            "send_message",
            "--thread-id",
            "t-1",
            "--location",
            "bedford",
            "--correlation-id",
            "corr-1",
            "--param",
            "to=+19025550100",
            "--param",
            "message=Your bay is ready",
        ]
    )
    payload = json.loads(capsys.readouterr().out)
    assert code == 0
    assert payload["outcome"] == "success"
    assert payload["thread_status"] == "resolved"
    assert payload["action_type"] == "send_message"
    assert payload["details"]["from_name"] == "Bedford Main Line"
    assert payload["details"]["message"] == "Your bay is ready"


def test_failed_run_exits_non_zero(capsys):
    code = main(["run", "unlock_door", "--thread-id", "t-2", "--customer", "nobody", "--retries", "0"])
    payload = json.loads(capsys.readouterr().out)
    assert code == 1
    assert payload["notes"] == "No active booking found"
    assert payload["thread_status"] == "escalated"


def test_health_lists_actions(tmp_path, capsys):
    path = tmp_path / "actions.yaml"
    path.write_text("dispatcher:\n  legacy_actions: [send_message]\n")
    assert main(["--config", str(path), "health"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["actions"]["escalate"]["variant"] == "framework"
    assert payload["actions"]["send_message"]["variant"] == "legacy"


def test_malformed_param_is_a_usage_error():
    with pytest.raises(SystemExit) as info:
        main(["run", "send_sms", "--thread-id", "t-3", "--param", "no-equals-sign"])
    assert info.value.code == 2


def test_non_positive_sop_timeout_is_rejected(capsys):
    assert main(["run", "reset_trackman", "--thread-id", "t-4", "--timeout", "0"]) == 2
    assert capsys.readouterr().out == ""

# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import textwrap
from datetime import datetime

import pytest

from action_framework.config import default_config, load_config, parse_config


def test_defaults():
    cfg = default_config()
    assert cfg.dispatcher.timeout_seconds == 30.0
    assert cfg.dispatcher.max_retries == 2
    assert cfg.dispatcher.auto_escalate is False
    assert cfg.breaker.failure_threshold == 5
    assert cfg.breaker.reset_timeout == 60.0
    assert cfg.vendors.ninjaone.live is False
    assert cfg.vendors.ubiquiti.live is False
    assert cfg.vendors.slack.channel == "#clubos-alerts"
    assert cfg.vendors.benq.live is False
    assert cfg.vendors.benq.port == 4661
    assert cfg.vendors.openphone.api_url == "https://api.openphone.com/v1"
    assert cfg.vendors.hubspot.live is False
    assert cfg.dispatcher.legacy_actions == []
    assert cfg.simulation.failure_rate == 0.1


def test_load_yaml(tmp_path):
    path = tmp_path / "actions.yaml"
    path.write_text(
        textwrap.dedent(
            """
            dispatcher:
              timeout_seconds: 10
              max_retries: 1
              auto_escalate: true
              legacy_actions: [reset_trackman]
            breaker:
              failure_threshold: 3
            vendors:
              ninjaone:
                client_id: real-client
                client_secret: s3cret
                scripts:
                  wake: wol-v3
              ubiquiti:
                api_key: abc
                unlock_duration: 300
              benq:
                enabled: true
                port: 4662
              openphone:
                api_key: op-key
                numbers:
                  bedford_main: "+19025550111"
            simulation:
              failure_rate: 0
              seed: 11
            devices:
              Halifax:
                bay-1: {id: HFX-BAY1-PC, name: Halifax Bay 1}
            projectors:
              halifax:
                bay-1: {id: 10.0.3.101, name: Halifax Bay 1}
            bookings:
              - id: bk-1
                customer_id: cust-1
                start_time: "2026-10-19T09:00:00+00:00"
                bay_id: bay-1
            metrics_port: 9400
            """
        )
    )
    cfg = load_config(path)
    assert cfg.dispatcher.timeout_seconds == 10.0
    assert cfg.dispatcher.legacy_actions == ["reset_trackman"]
    assert cfg.breaker.failure_threshold == 3
    assert cfg.breaker.reset_timeout == 60.0
    assert cfg.vendors.ninjaone.live is True
    assert cfg.vendors.ninjaone.scripts["wake"] == "wol-v3"
    assert cfg.vendors.ninjaone.scripts["reboot"] == "reboot-graceful"
    assert cfg.vendors.ubiquiti.unlock_duration == 300
    assert cfg.vendors.benq.live is True
    assert cfg.vendors.benq.port == 4662
    assert cfg.vendors.openphone.live is True
    assert cfg.vendors.openphone.numbers == {"bedford_main": "+19025550111"}
    assert cfg.vendors.hubspot.live is False
    assert cfg.projectors["halifax"]["bay-1"]["id"] == "10.0.3.101"
    assert cfg.simulation.seed == 11
    assert cfg.devices["halifax"]["bay-1"] == {"id": "HFX-BAY1-PC", "name": "Halifax Bay 1"}
    assert cfg.bookings[0].start_time == datetime.fromisoformat("2026-10-19T09:00:00+00:00")
    assert cfg.metrics_port == 9400


def test_environment_credentials(monkeypatch):
    monkeypatch.setenv("UBIQUITI_API_KEY", "from-env")
    monkeypatch.setenv("NINJAONE_CLIENT_ID", "demo_client_id")
    monkeypatch.setenv("NINJAONE_CLIENT_SECRET", "whatever")
    cfg = default_config()
    assert cfg.vendors.ubiquiti.api_key == "from-env"
    assert cfg.vendors.ubiquiti.live is True
    assert cfg.vendors.ninjaone.live is False


def test_messaging_and_crm_credentials_from_environment(monkeypatch):
    monkeypatch.setenv("OPENPHONE_API_KEY", "op-env")
    monkeypatch.setenv("HUBSPOT_ACCESS_TOKEN", "hs-env")
    monkeypatch.setenv("BENQ_PASSWORD", "pj-env")
    cfg = default_config()
    assert cfg.vendors.openphone.live is True
    assert cfg.vendors.hubspot.access_token == "hs-env"
    assert cfg.vendors.benq.password == "pj-env"
    assert cfg.vendors.benq.live is False


@pytest.mark.parametrize(
    "raw",
    [
        {"dispatcher": ["not", "a", "mapping"]},
        {"dispatcher": {"legacy_actions": "reset_trackman"}},
        {"dispatcher": {"timeout_seconds": -1}},
        {"dispatcher": {"max_retries": -1}},
        {"projectors": {"bedford": {"bay-1": {"name": "no host"}}}},
        {"devices": {"bedford": {"bay-1": {"name": "missing id"}}}},
        {"bookings": {"id": "bk-1"}},
    ],
)
def test_invalid_shapes_rejected(raw):
    with pytest.raises(ValueError):
        parse_config(raw)


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path).dispatcher.max_retries == 2

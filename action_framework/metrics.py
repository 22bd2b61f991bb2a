# SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for action dispatch and breaker health."""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

ACTION_DISPATCHED = Counter(
    "afw_action_dispatch_total",
    "Dispatched actions by normalised outcome",
    labelnames=("action_type", "outcome"),
)

ACTION_LATENCY = Histogram(
    "afw_action_latency_ms",
    "End-to-end dispatch latency including retries (milliseconds)",
    labelnames=("action_type",),
    buckets=(5, 10, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000),
)

ACTION_RETRIES = Counter(
    "afw_action_retries_total",
    "Retry attempts scheduled after a transient failure",
    labelnames=("action_type",),
)

ACTION_TIMEOUTS = Counter(
    "afw_action_timeouts_total",
    "Handler attempts abandoned by the timeout guard",
    labelnames=("action_type",),
)

BREAKER_STATE = Gauge(
    "afw_breaker_state",
    "Circuit breaker state per target (0 closed, 1 half-open, 2 open)",
    labelnames=("target",),
)

BREAKER_REJECTIONS = Counter(
    "afw_breaker_rejections_total",
    "Calls rejected without invocation because the circuit was open",
    labelnames=("target",),
)

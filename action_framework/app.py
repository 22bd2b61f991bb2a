# SPDX-License-Identifier: Apache-2.0
"""Command line runner for one-off dispatches and health checks."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict

from prometheus_client import start_http_server

from action_framework.config import FrameworkConfig, default_config, load_config
from action_framework.context import ActionContext
from action_framework.dispatcher import build_dispatcher
from action_framework.outcomes import transition_for

log = logging.getLogger("action_framework")


def _param(text: str):
    key, sep, value = text.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {text!r}")
    return key, value


def _context_from_args(args) -> ActionContext:
    thread: Dict[str, Any] = {
        "id": args.thread_id,
        "location": args.location,
        "bay_id": args.bay,
        "customer_id": args.customer,
    }
    if args.correlation_id:
        thread["correlation_id"] = args.correlation_id
    sop: Dict[str, Any] = {}
    if args.timeout is not None:
        sop["timeout_seconds"] = args.timeout
    if args.retries is not None:
        sop["max_retries"] = args.retries
    return ActionContext.from_records(
        thread, sop or None, booking_id=args.booking_id, reason=args.reason, params=dict(args.param or [])
    )


async def run_action(cfg: FrameworkConfig, args) -> Dict[str, Any]:
    dispatcher = build_dispatcher(cfg)
    try:
        result = await dispatcher.execute(args.action, _context_from_args(args))
    finally:
        await dispatcher.aclose()
    record = result.to_record()
    transition = transition_for(result)
    record["thread_status"] = transition.status.value
    record["action_type"] = args.action
    return record


async def health(cfg: FrameworkConfig) -> Dict[str, Any]:
    dispatcher = build_dispatcher(cfg)
    try:
        return dispatcher.health()
    finally:
        await dispatcher.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Facility action framework")
    parser.add_argument("--config", help="YAML config file (defaults apply when omitted)")
    parser.add_argument("--metrics-port", type=int, default=None, help="expose Prometheus metrics on this port")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="dispatch one action and print its result")
    run.add_argument("action")
    run.add_argument("--thread-id", required=True)
    run.add_argument("--location")
    run.add_argument("--bay")
    run.add_argument("--customer")
    run.add_argument("--booking-id")
    run.add_argument("--correlation-id")
    run.add_argument("--reason")
    run.add_argument("--timeout", type=float, help="SOP timeout in seconds")
    run.add_argument("--retries", type=int, help="SOP max retries")
    run.add_argument(
        "--param", type=_param, action="append", metavar="KEY=VALUE", help="action parameter (repeatable)"
    )

    sub.add_parser("health", help="print handler and circuit breaker state")
    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config(args.config) if args.config else default_config()
    except ValueError as exc:
        log.error("invalid config: %s", exc)
        return 2
    metrics_port = args.metrics_port if args.metrics_port is not None else cfg.metrics_port
    if metrics_port:
        start_http_server(metrics_port)
        log.info("metrics exposed on :%d", metrics_port)
    try:
        if args.command == "run":
            payload = asyncio.run(run_action(cfg, args))
        else:
            payload = asyncio.run(health(cfg))
    except KeyboardInterrupt:
        return 130
    except ValueError as exc:
        log.error("%s", exc)
        return 2
    json.dump(payload, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    if args.command == "run" and payload["outcome"] == "failed":
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Runnable demo for the virtual node heartbeat supervisor.

The demo registers one virtual node and walks through:

* startup (node registration and lease capability probe)
* liveness through lease renewal, or status publication without leases
* a condition change pushed by the status source
* transient ping failures that never stop supervision
* an external status update

Run after installing this example package:

    vnode-example
    vnode-example --no-leases
    vnode-example --backend redis --redis-url redis://127.0.0.1:6379/0
"""

from __future__ import annotations

import argparse
import json
import sys
import threading
import time
import uuid
from typing import Any

from virtual_node import (
    HeartbeatSupervisor,
    Node,
    NodeCondition,
    NodeStatus,
    ObjectMeta,
    SupervisorConfig,
    create_supervisor,
)
from virtual_node.exceptions import BackendNotAvailableError

from .source import DemoStatusSource


def _wait_until(predicate, *, timeout_seconds: float = 5.0, interval_seconds: float = 0.05) -> bool:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval_seconds)
    return False


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="virtual-node-supervisor example")
    parser.add_argument("--backend", choices=("memory", "redis"), default="memory")
    parser.add_argument("--node-name", default=f"liqo-{uuid.uuid4().hex[:8]}")
    parser.add_argument("--ping-interval", type=float, default=0.5)
    parser.add_argument("--status-interval", type=float, default=3.0)
    parser.add_argument("--no-leases", action="store_true", help="Run without node leases")
    parser.add_argument("--redis-url", default="redis://127.0.0.1:6379/0")
    parser.add_argument("--redis-namespace", default=f"vnode-example:{uuid.uuid4().hex[:8]}")
    return parser


def _backend_options(args: argparse.Namespace) -> dict[str, Any]:
    if args.backend == "redis":
        return {
            "redis_url": args.redis_url,
            "namespace": args.redis_namespace,
        }
    return {}


def _print_step(title: str, payload: Any) -> None:
    print(f"\n=== {title} ===")
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def _initial_node(name: str) -> Node:
    return Node(
        metadata=ObjectMeta(name=name, labels={"type": "virtual-node"}),
        status=NodeStatus(
            conditions=[NodeCondition(type="Ready", status="True", reason="RemoteClusterReady")],
            capacity={"cpu": "16", "memory": "64Gi", "pods": "110"},
            allocatable={"cpu": "16", "memory": "64Gi", "pods": "110"},
        ),
    )


def run_demo(args: argparse.Namespace) -> int:
    node = _initial_node(args.node_name)
    source = DemoStatusSource(node)
    supervisor: HeartbeatSupervisor = create_supervisor(
        source,
        node,
        SupervisorConfig(
            ping_interval_seconds=args.ping_interval,
            status_interval_seconds=args.status_interval,
        ),
        backend=args.backend,
        enable_leases=not args.no_leases,
        **_backend_options(args),
    )
    stop = threading.Event()
    runner = threading.Thread(target=supervisor.run, args=(stop,), name="vnode-supervisor", daemon=True)
    runner.start()

    try:
        if not supervisor.wait_ready(timeout=10.0):
            print("Supervisor did not become ready.", file=sys.stderr)
            return 1
        _print_step(
            "Startup",
            {
                "node": supervisor.node_name,
                "backend": args.backend,
                "lease_mode": supervisor.lease_mode.value,
                "lease": None if supervisor.lease is None else supervisor.lease.as_dict(),
            },
        )

        # Liveness
        _wait_until(lambda: source.pings >= 3, timeout_seconds=10.0 * args.ping_interval + 5.0)
        _print_step("Liveness", {"health": supervisor.health(), "stats": supervisor.stats()})

        # Condition change from the status source
        source.set_condition("Ready", "False", reason="RemoteClusterUnreachable")
        _wait_until(lambda: supervisor.node.status.condition("Ready").status == "False")
        _print_step("Status Notification", supervisor.node.status.as_dict())

        # Transient ping failures
        source.fail_pings(2)
        _wait_until(lambda: supervisor.stats()["ping_failures"] >= 2, timeout_seconds=10.0 * args.ping_interval + 5.0)
        _wait_until(lambda: supervisor.health()["status"] == "ok", timeout_seconds=10.0 * args.ping_interval + 5.0)
        _print_step("Ping Failures", {"health": supervisor.health(), "stats": supervisor.stats()})

        # External update
        updated = supervisor.node
        updated.metadata.annotations["example.io/drained-by"] = "demo"
        supervisor.update_node_from_outside(updated)
        _print_step("External Update", supervisor.node.metadata.as_dict())

        _print_step("Final Stats", supervisor.stats())
        return 0
    finally:
        stop.set()
        runner.join(timeout=10.0)


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return run_demo(args)
    except BackendNotAvailableError as exc:
        print(f"Redis backend not available: {exc}", file=sys.stderr)
        print(
            "Install the Redis extra first: pip install 'virtual-node-supervisor[redis]'",
            file=sys.stderr,
        )
        return 2


if __name__ == "__main__":
    raise SystemExit(main())

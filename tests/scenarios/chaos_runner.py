"""
Chaos validation harness for virtual node heartbeat supervisors.

The script repeatedly:

1. starts multiple supervisor processes (one virtual node each)
2. injects ping failures, status notifications and external updates
3. randomly terminates/restarts supervisors
4. checks that every supervisor keeps renewing its lease and recovers to ``ok``

Usage example
-------------
python tests/scenarios/chaos_runner.py --nodes 3 --duration-seconds 300
"""

from __future__ import annotations

import argparse
import json
import random
import sys
import time
import uuid
from pathlib import Path
from typing import Any

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tests.integration.process_handle import SupervisorProcess  # noqa: E402


def launch(name: str, ping_interval: float) -> SupervisorProcess:
    return SupervisorProcess(
        name,
        ("--ping-interval", str(ping_interval), "--status-interval", str(ping_interval * 5)),
    )


def disturb(process: SupervisorProcess) -> str:
    """Send one random disturbance and return its command name."""
    op = random.choice(("fail_ping", "notify", "update"))
    if op == "fail_ping":
        process.request(op, count=random.randint(1, 4))
    elif op == "notify":
        process.request(op, ready=random.choice(("True", "False")))
    else:
        process.request(op, labels={"chaos": uuid.uuid4().hex[:8]})
    return op


def final_stats(process: SupervisorProcess, *, timeout: float) -> dict[str, Any]:
    """Wait for ``ok`` health, then return the supervisor's counters."""
    last: dict[str, Any] = {}
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        last = process.request("health") or {}
        if last.get("status") == "ok":
            return process.request("stats") or {}
        time.sleep(0.2)
    raise RuntimeError(f"supervisor {process.node} did not recover: {last}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Chaos scenario runner")
    parser.add_argument("--nodes", type=int, default=3)
    parser.add_argument("--duration-seconds", type=int, default=120)
    parser.add_argument("--ping-interval", type=float, default=0.2)
    parser.add_argument("--restart-probability", type=float, default=0.1)
    args = parser.parse_args()

    fleet: dict[str, SupervisorProcess] = {}
    injected: dict[str, int] = {}
    restarts = 0

    try:
        for _ in range(args.nodes):
            name = f"chaos-{uuid.uuid4().hex[:8]}"
            fleet[name] = launch(name, args.ping_interval)

        deadline = time.monotonic() + float(args.duration_seconds)
        while time.monotonic() < deadline:
            name = random.choice(sorted(fleet))
            op = disturb(fleet[name])
            injected[op] = injected.get(op, 0) + 1

            # A restart re-registers the node against the existing object.
            if random.random() < args.restart_probability:
                fleet[name].close()
                fleet[name] = launch(name, args.ping_interval)
                restarts += 1

            time.sleep(args.ping_interval)

        recovery_timeout = 10.0 * args.ping_interval + 5.0
        summary = {name: final_stats(proc, timeout=recovery_timeout) for name, proc in fleet.items()}
        report = {"restarts": restarts, "injected": injected, "supervisors": summary}
        print(json.dumps(report, indent=2, sort_keys=True))
        stalled = sorted(name for name, stats in summary.items() if not stats.get("lease_renewals"))
        if stalled:
            print(f"supervisors never renewed their lease: {stalled}", file=sys.stderr)
            return 1
    finally:
        for proc in fleet.values():
            proc.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""
FastAPI application hosting a virtual node heartbeat supervisor.

The app registers one virtual node on startup, keeps it alive in a background
thread and exposes endpoints to inspect the node and to flip its conditions
or simulate failed pings.
"""

from __future__ import annotations

import argparse
import logging
import os
import threading
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException
from virtual_node import (
    HeartbeatSupervisor,
    Node,
    NodeCondition,
    NodeStatus,
    ObjectMeta,
    SupervisorConfig,
    VirtualNodeError,
    create_supervisor,
)

from .source import DemoStatusSource

app = FastAPI(title="virtual-node-supervisor FastAPI example", version="0.1.0")
_LOGGER = logging.getLogger(__name__)

_supervisor: HeartbeatSupervisor | None = None
_source: DemoStatusSource | None = None
_stop: threading.Event | None = None
_thread: threading.Thread | None = None
_READY_TIMEOUT_SECONDS = 10.0


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, "").strip()
    return value if value else default


def _parse_float(name: str, default: float) -> float:
    raw = _get_env(name, str(default))
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be a number.") from exc


def _parse_bool(name: str, default: bool) -> bool:
    raw = _get_env(name, "true" if default else "false").lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"Environment variable {name} must be a boolean.")


def _initial_node() -> Node:
    return Node(
        metadata=ObjectMeta(
            name=_get_env("VNODE_NAME", "liqo-remote-cluster"),
            labels={"type": "virtual-node"},
        ),
        status=NodeStatus(
            conditions=[NodeCondition(type="Ready", status="True", reason="RemoteClusterReady")],
            capacity={"cpu": _get_env("VNODE_CPU", "8"), "memory": _get_env("VNODE_MEMORY", "32Gi")},
            allocatable={"cpu": _get_env("VNODE_CPU", "8"), "memory": _get_env("VNODE_MEMORY", "32Gi")},
        ),
    )


def _build_supervisor(source: DemoStatusSource, node: Node) -> HeartbeatSupervisor:
    config = SupervisorConfig(
        ping_interval_seconds=_parse_float("VNODE_PING_INTERVAL", 10.0),
        status_interval_seconds=_parse_float("VNODE_STATUS_INTERVAL", 60.0),
    )
    enable_leases = _parse_bool("VNODE_LEASES", True)
    backend = _get_env("VNODE_BACKEND", "memory").lower()
    if backend == "redis":
        return create_supervisor(
            source,
            node,
            config,
            backend="redis",
            enable_leases=enable_leases,
            redis_url=_get_env("VNODE_REDIS_URL", "redis://127.0.0.1:6379/0"),
            namespace=_get_env("VNODE_REDIS_NAMESPACE", "vnode-fastapi-example"),
        )
    if backend != "memory":
        raise RuntimeError("VNODE_BACKEND must be memory or redis.")
    return create_supervisor(source, node, config, backend="memory", enable_leases=enable_leases)


def _run_supervisor(supervisor: HeartbeatSupervisor, stop: threading.Event) -> None:
    try:
        supervisor.run(stop)
    except VirtualNodeError:
        _LOGGER.exception("Virtual node supervisor %s stopped with an error.", supervisor.node_name)


def _require_supervisor() -> HeartbeatSupervisor:
    if _supervisor is None:
        raise HTTPException(status_code=503, detail="Supervisor not started.")
    return _supervisor


def _require_source() -> DemoStatusSource:
    if _source is None:
        raise HTTPException(status_code=503, detail="Supervisor not started.")
    return _source


@app.on_event("startup")
def on_startup() -> None:
    global _supervisor, _source, _stop, _thread
    if _supervisor is not None:
        return
    node = _initial_node()
    _source = DemoStatusSource(node)
    _supervisor = _build_supervisor(_source, node)
    _stop = threading.Event()
    _thread = threading.Thread(
        target=_run_supervisor,
        args=(_supervisor, _stop),
        name="vnode-supervisor",
        daemon=True,
    )
    _thread.start()
    if not _supervisor.wait_ready(timeout=_READY_TIMEOUT_SECONDS):
        _LOGGER.warning("Supervisor for %s is not ready yet.", node.name)


@app.on_event("shutdown")
def on_shutdown() -> None:
    global _supervisor, _source, _stop, _thread
    if _stop is None:
        return
    try:
        _stop.set()
        if _thread is not None:
            _thread.join(timeout=_READY_TIMEOUT_SECONDS)
    finally:
        _supervisor = None
        _source = None
        _stop = None
        _thread = None


@app.get("/")
def root() -> dict[str, Any]:
    supervisor = _require_supervisor()
    return {
        "message": "Virtual node supervisor example is running.",
        "node": supervisor.node_name,
        "lease_mode": supervisor.lease_mode.value,
        "ready": supervisor.ready.is_set(),
    }


@app.get("/healthz")
def healthz() -> dict[str, Any]:
    return _require_supervisor().health()


@app.get("/stats")
def stats() -> dict[str, Any]:
    return _require_supervisor().stats()


@app.get("/node")
def node_state() -> dict[str, Any]:
    return _require_supervisor().node.as_dict()


@app.get("/lease")
def lease_state() -> dict[str, Any]:
    lease = _require_supervisor().lease
    if lease is None:
        raise HTTPException(status_code=404, detail="Node leases are not in use.")
    return lease.as_dict()


@app.post("/conditions/{condition_type}")
def set_condition(condition_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    if "status" not in payload:
        raise HTTPException(status_code=400, detail="Payload must include 'status'.")
    status = str(payload["status"])
    if status not in {"True", "False", "Unknown"}:
        raise HTTPException(status_code=400, detail="Status must be True, False or Unknown.")
    node = _require_source().set_condition(
        condition_type,
        status,
        reason=str(payload.get("reason", "")),
        message=str(payload.get("message", "")),
    )
    condition = node.status.condition(condition_type)
    return {"node": node.name, "condition": None if condition is None else condition.as_dict()}


@app.post("/ping-failure")
def ping_failure(payload: dict[str, Any] | None = None) -> dict[str, Any]:
    count = 1 if not payload else payload.get("count", 1)
    try:
        count = int(count)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="'count' must be an integer.") from exc
    if count < 1:
        raise HTTPException(status_code=400, detail="'count' must be >= 1.")
    _require_source().fail_pings(count)
    return {"scheduled_failures": count}


def main(port: int = 8000) -> int:
    host = _get_env("VNODE_API_HOST", "0.0.0.0")
    uvicorn.run("vnode_example.fastapi_app:app", host=host, port=port, reload=False)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the virtual node FastAPI example.")
    parser.add_argument("--port", type=int, default=8000, help="The port number to use")
    args = parser.parse_args()
    raise SystemExit(main(args.port))

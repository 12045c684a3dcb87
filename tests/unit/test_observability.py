"""
Diagnostics and HTTP observability endpoint tests.
"""

from __future__ import annotations

import json
import threading
import unittest
import urllib.error
import urllib.request

from virtual_node import (
    HeartbeatSupervisor,
    InMemoryNodeStore,
    NaiveStatusSource,
    ObservabilityConfig,
    PingError,
    SupervisorConfig,
)
from virtual_node.observability import ObservabilityServer

from .support import FakeClock, ScriptedStatusSource, fast_config, make_node


def fetch(url: str) -> tuple[int, bytes]:
    try:
        with urllib.request.urlopen(url, timeout=5.0) as response:
            return response.status, response.read()
    except urllib.error.HTTPError as exc:
        return exc.code, exc.read()


class DiagnosticsTest(unittest.TestCase):
    def test_health_before_run_is_stopped(self) -> None:
        supervisor = HeartbeatSupervisor(NaiveStatusSource(), make_node(), InMemoryNodeStore())
        health = supervisor.health()
        self.assertEqual(health["status"], "stopped")
        self.assertEqual(health["lease_mode"], "unknown")
        self.assertIsNone(health["lease_renew_time"])

    def test_metrics_cover_counters_and_gauges(self) -> None:
        supervisor = HeartbeatSupervisor(NaiveStatusSource(), make_node(), InMemoryNodeStore())
        text = supervisor.metrics_text()
        self.assertIn("virtual_node_pings 0\n", text)
        self.assertIn("virtual_node_heartbeat_failures 0\n", text)
        self.assertIn("virtual_node_ready 0\n", text)

    def test_traces_record_lifecycle(self) -> None:
        stop = threading.Event()
        source = ScriptedStatusSource()
        source.ping_failures.append(PingError("unreachable"))
        supervisor = HeartbeatSupervisor(
            source,
            make_node(),
            InMemoryNodeStore(),
            fast_config(),
            clock=FakeClock(stop, until=10),
        )
        supervisor.run(stop)

        events = [entry["event"] for entry in supervisor.recent_traces()["traces"]]
        self.assertEqual(events[0], "supervisor_starting")
        self.assertIn("node_registered", events)
        self.assertIn("supervisor_ready", events)
        self.assertIn("ping_failed", events)
        self.assertEqual(events[-1], "supervisor_stopped")

    def test_tracing_can_be_disabled(self) -> None:
        stop = threading.Event()
        supervisor = HeartbeatSupervisor(
            ScriptedStatusSource(),
            make_node(),
            InMemoryNodeStore(),
            fast_config(observability=ObservabilityConfig(enable_tracing=False)),
            clock=FakeClock(stop, until=0),
        )
        supervisor.run(stop)
        self.assertEqual(supervisor.recent_traces(), {"traces": []})


class ObservabilityHttpTest(unittest.TestCase):
    def test_endpoints_while_running(self) -> None:
        supervisor = HeartbeatSupervisor(
            NaiveStatusSource(),
            make_node(),
            InMemoryNodeStore(),
            SupervisorConfig(
                ping_interval_seconds=0.05,
                poll_interval_seconds=0.02,
                observability=ObservabilityConfig(enable_http=True, port=0),
            ),
        )
        stop = threading.Event()
        runner = threading.Thread(target=supervisor.run, args=(stop,), daemon=True)
        runner.start()
        try:
            self.assertTrue(supervisor.wait_ready(timeout=5.0))
            base = f"http://127.0.0.1:{supervisor.observability_port}"

            status, body = fetch(f"{base}/healthz")
            self.assertEqual(status, 200)
            self.assertEqual(json.loads(body)["status"], "ok")

            status, body = fetch(f"{base}/readyz")
            self.assertEqual(status, 200)
            self.assertEqual(json.loads(body), {"node": "vnode-1", "ready": True})

            status, body = fetch(f"{base}/metrics")
            self.assertEqual(status, 200)
            self.assertIn(b"virtual_node_running 1", body)

            status, body = fetch(f"{base}/traces")
            self.assertEqual(status, 200)
            self.assertIn("traces", json.loads(body))

            status, _ = fetch(f"{base}/missing")
            self.assertEqual(status, 404)
        finally:
            stop.set()
            runner.join(timeout=5.0)
        self.assertIsNone(supervisor.observability_port)

    def test_unhealthy_provider_maps_to_503(self) -> None:
        server = ObservabilityServer(
            host="127.0.0.1",
            port=0,
            health_provider=lambda: {"status": "degraded", "ready": False, "node": "n"},
            metrics_provider=lambda: "",
            traces_provider=lambda: {"traces": []},
        )
        server.start()
        try:
            base = f"http://127.0.0.1:{server.port}"
            self.assertEqual(fetch(f"{base}/healthz")[0], 503)
            self.assertEqual(fetch(f"{base}/readyz")[0], 503)
        finally:
            server.stop()


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

from typing import Any

from .lease import LeaseMode


class SupervisorDiagnosticsMixin:
    """
    Public diagnostics and metrics helpers.
    """

    def stats(self) -> dict[str, Any]:
        """
        Return cumulative runtime counters and live gauges.
        """
        with self._stats_lock:
            payload: dict[str, Any] = dict(self._stats)
        payload["running"] = self.is_running
        payload["ready"] = self._ready.is_set()
        payload["lease_enabled"] = self._lease_mode is LeaseMode.SUPPORTED
        payload["pending_events"] = self._events.qsize()
        return payload

    def health(self) -> dict[str, Any]:
        """
        Return structured health state for readiness/liveness checks.

        ``degraded`` means the supervisor runs but the latest heartbeat cycle
        (ping plus lease renewal or status publish) failed.
        """
        if not self.is_running:
            status = "stopped"
        elif not self._ready.is_set():
            status = "starting"
        elif self._last_heartbeat_ok is False:
            status = "degraded"
        else:
            status = "ok"
        lease = self._lease
        renew_time = lease.spec.renew_time if lease is not None else None
        return {
            "status": status,
            "node": self._node.name,
            "ready": self._ready.is_set(),
            "lease_mode": self._lease_mode.value,
            "lease_renew_time": renew_time.isoformat() if renew_time is not None else None,
            "ping_interval_seconds": self.config.ping_interval_seconds,
            "status_interval_seconds": self.config.status_interval_seconds,
        }

    def metrics_text(self) -> str:
        """
        Return Prometheus-style metrics payload as text.
        """
        stats = self.stats()
        lines = []
        for key, value in sorted(stats.items()):
            if isinstance(value, bool):
                numeric = 1 if value else 0
                lines.append(f"virtual_node_{key} {numeric}")
            elif isinstance(value, (int, float)):
                lines.append(f"virtual_node_{key} {value}")
        return "\n".join(lines) + "\n"

    def recent_traces(self) -> dict[str, Any]:
        """
        Return bounded in-memory trace event history.
        """
        with self._trace_lock:
            traces = list(self._trace_history)
        return {"traces": traces}

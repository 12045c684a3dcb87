from __future__ import annotations

import logging
import time

from ..observability import ObservabilityServer

_LOGGER = logging.getLogger(__name__)


class SupervisorObservabilityMixin:
    """
    HTTP diagnostics endpoint and in-memory trace recording.
    """

    @property
    def observability_port(self) -> int | None:
        """Return the bound HTTP observability port while the server runs."""
        server = self._observability_server
        return server.port if server is not None else None

    def _start_observability_server(self) -> None:
        """
        Serve health, metrics and traces over HTTP for the duration of a run.

        A bind failure is logged and traced; supervision continues without the
        endpoint.
        """
        settings = self.config.observability
        if not settings.enable_http:
            return
        server = ObservabilityServer(
            host=settings.host,
            port=settings.port,
            health_provider=self.health,
            metrics_provider=self.metrics_text,
            traces_provider=self.recent_traces,
        )
        try:
            server.start()
        except OSError as exc:
            _LOGGER.warning(
                "Could not start observability endpoint on %s:%s node=%s error=%s",
                settings.host,
                settings.port,
                self._node.name,
                exc,
            )
            self._trace("observability_unavailable", reason=str(exc))
            return
        self._observability_server = server

    def _stop_observability_server(self) -> None:
        server, self._observability_server = self._observability_server, None
        if server is not None:
            server.stop()

    def _trace(self, event: str, **details: object) -> None:
        """
        Append one event to the bounded trace history.

        Entries carry a wall-clock millisecond timestamp, the event name, the
        node name and optional details.
        """
        if not self.config.observability.enable_tracing:
            return
        record: dict[str, object] = {
            "ts_ms": int(time.time() * 1000),
            "event": event,
            "node": self._node.name,
        }
        if details:
            record["details"] = dict(details)
        with self._trace_lock:
            self._trace_history.append(record)

"""
Lightweight HTTP observability endpoint for heartbeat supervisors.

Routes:

* ``/healthz``: JSON health; ``503`` unless the supervisor reports ``ok``
* ``/readyz``: ``200`` once the readiness gate is set, ``503`` before
* ``/metrics``: Prometheus text exposition of supervisor counters
* ``/traces``: bounded history of supervisor trace events
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable

_LOGGER = logging.getLogger(__name__)

_JSON_CONTENT_TYPE = "application/json; charset=utf-8"
_METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


@dataclass(frozen=True, slots=True)
class DiagnosticsProviders:
    """Callables the endpoint reads on every request."""

    health: Callable[[], dict[str, Any]]
    metrics: Callable[[], str]
    traces: Callable[[], dict[str, Any]]


def _health_route(providers: DiagnosticsProviders) -> tuple[HTTPStatus, str, bytes]:
    health = providers.health()
    status = HTTPStatus.OK if health.get("status") == "ok" else HTTPStatus.SERVICE_UNAVAILABLE
    return status, _JSON_CONTENT_TYPE, _encode_json(health)


def _ready_route(providers: DiagnosticsProviders) -> tuple[HTTPStatus, str, bytes]:
    health = providers.health()
    ready = bool(health.get("ready"))
    status = HTTPStatus.OK if ready else HTTPStatus.SERVICE_UNAVAILABLE
    return status, _JSON_CONTENT_TYPE, _encode_json({"ready": ready, "node": health.get("node")})


def _metrics_route(providers: DiagnosticsProviders) -> tuple[HTTPStatus, str, bytes]:
    return HTTPStatus.OK, _METRICS_CONTENT_TYPE, providers.metrics().encode("utf-8")


def _traces_route(providers: DiagnosticsProviders) -> tuple[HTTPStatus, str, bytes]:
    return HTTPStatus.OK, _JSON_CONTENT_TYPE, _encode_json(providers.traces())


def _encode_json(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str).encode("utf-8")


_ROUTES: dict[str, Callable[[DiagnosticsProviders], tuple[HTTPStatus, str, bytes]]] = {
    "/healthz": _health_route,
    "/readyz": _ready_route,
    "/metrics": _metrics_route,
    "/traces": _traces_route,
}


class _DiagnosticsRequestHandler(BaseHTTPRequestHandler):
    """Dispatch GET requests through the route table."""

    server_version = "virtual-node-observability/1.0"

    def do_GET(self) -> None:  # noqa: N802 - BaseHTTPRequestHandler hook name
        route = _ROUTES.get(self.path.split("?", 1)[0])
        if route is None:
            status, content_type, body = (
                HTTPStatus.NOT_FOUND,
                _JSON_CONTENT_TYPE,
                _encode_json({"error": "not found", "path": self.path}),
            )
        else:
            status, content_type, body = route(self.server.providers)  # type: ignore[attr-defined]
        self.send_response(int(status))
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002 - signature fixed by stdlib
        _LOGGER.debug("observability request from %s: %s", self.address_string(), format % args)


class _DiagnosticsHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], providers: DiagnosticsProviders) -> None:
        super().__init__(address, _DiagnosticsRequestHandler)
        self.providers = providers


class ObservabilityServer:
    """
    Background HTTP server exposing supervisor health and metrics.

    Parameters
    ----------
    host, port:
        Listen address. Port ``0`` binds an ephemeral port, see :attr:`port`.
    health_provider, metrics_provider, traces_provider:
        Callables returning the payloads of the matching routes.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int,
        health_provider: Callable[[], dict[str, Any]],
        metrics_provider: Callable[[], str],
        traces_provider: Callable[[], dict[str, Any]],
    ) -> None:
        self._address = (host, int(port))
        self._providers = DiagnosticsProviders(
            health=health_provider,
            metrics=metrics_provider,
            traces=traces_provider,
        )
        self._httpd: _DiagnosticsHTTPServer | None = None
        self._serve_thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        """Return the bound port (resolved after :meth:`start`)."""
        if self._httpd is not None:
            return int(self._httpd.server_address[1])
        return self._address[1]

    def start(self) -> None:
        """Bind the listen address and serve requests on a daemon thread."""
        if self._serve_thread is not None and self._serve_thread.is_alive():
            return
        self._httpd = _DiagnosticsHTTPServer(self._address, self._providers)
        self._serve_thread = threading.Thread(
            target=self._httpd.serve_forever,
            kwargs={"poll_interval": 0.1},
            name="virtual-node-observability-http",
            daemon=True,
        )
        self._serve_thread.start()
        _LOGGER.info("Observability server listening on %s:%d", self._address[0], self.port)

    def stop(self) -> None:
        """Stop serving and release the socket."""
        httpd, thread = self._httpd, self._serve_thread
        self._httpd = None
        self._serve_thread = None
        if httpd is None:
            return
        httpd.shutdown()
        httpd.server_close()
        if thread is not None:
            thread.join(timeout=1.0)

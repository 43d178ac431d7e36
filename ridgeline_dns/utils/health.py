"""
Health check module for Ridgeline-DNS.

This module provides health check endpoints for monitoring the application.
"""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from threading import Thread
from typing import Optional

from ridgeline_dns.models.models import Changes


class HealthState:
    """
    Outcome of the reconciliation cycles run so far.

    Written by the controller and read by the health check handler thread.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.cycles = 0
        self.failures = 0
        self.last_cycle_ok: Optional[bool] = None
        self.last_error = ""
        self.last_changes = {"create": 0, "update": 0, "delete": 0}

    def record_success(self, changes: Optional[Changes] = None) -> None:
        with self._lock:
            self.cycles += 1
            self.last_cycle_ok = True
            self.last_error = ""
            if changes is not None:
                self.last_changes = {
                    "create": len(changes.create),
                    "update": len(changes.update_new),
                    "delete": len(changes.delete),
                }

    def record_failure(self, error: Exception) -> None:
        with self._lock:
            self.cycles += 1
            self.failures += 1
            self.last_cycle_ok = False
            self.last_error = str(error)

    @property
    def healthy(self) -> bool:
        """True when the last cycle succeeded or no cycle has run yet."""
        with self._lock:
            return self.last_cycle_ok is not False

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "cycles": self.cycles,
                "failures": self.failures,
                "last_cycle_ok": self.last_cycle_ok,
                "last_error": self.last_error,
                "last_changes": dict(self.last_changes),
            }


class HealthCheckHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for health check endpoints.
    """

    # Set on the subclass built by HealthCheckServer
    state: HealthState = None

    def __init__(self, *args, **kwargs):
        self.logger = logging.getLogger("ridgeline-dns.health")
        super().__init__(*args, **kwargs)

    def do_GET(self):
        """
        Handle GET requests.
        """
        if self.path == "/health":
            self._handle_health_check()
        elif self.path == "/metrics":
            self._handle_metrics()
        else:
            self.send_response(404)
            self.end_headers()
            self.wfile.write(b"Not Found")

    def _handle_health_check(self):
        snapshot = self.state.snapshot()
        if self.state.healthy:
            status, response = 200, {"status": "healthy"}
        else:
            status = 503
            response = {"status": "unhealthy", "error": snapshot["last_error"]}
        self._write_json(status, response)

    def _handle_metrics(self):
        self._write_json(200, self.state.snapshot())

    def _write_json(self, status: int, body: dict):
        self.send_response(status)
        self.send_header("Content-type", "application/json")
        self.end_headers()
        self.wfile.write(json.dumps(body).encode())

    def log_message(self, format, *args):
        """
        Override log_message to use the application logger.
        """
        self.logger.debug(format % args)


class HealthCheckServer:
    """
    HTTP server for health check endpoints.
    """

    def __init__(self, state: HealthState, host: str = "0.0.0.0", port: int = 8080):
        """
        Initialize a HealthCheckServer.

        Args:
            state: Reconciliation state reported by the endpoints
            host: Host to bind to
            port: Port to bind to, 0 picks a free port
        """
        self.state = state
        self.host = host
        self.port = port
        self.server = None
        self.thread = None
        self.logger = logging.getLogger("ridgeline-dns.health")

    def start(self):
        """
        Start the health check server.
        """
        handler = type("BoundHealthCheckHandler", (HealthCheckHandler,), {"state": self.state})
        self.server = HTTPServer((self.host, self.port), handler)
        self.port = self.server.server_address[1]
        self.thread = Thread(target=self.server.serve_forever)
        self.thread.daemon = True
        self.thread.start()
        self.logger.info(f"Health check: {self.host}:{self.port}/health")

    def stop(self):
        """
        Stop the health check server.
        """
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.logger.info("Health check server stopped")

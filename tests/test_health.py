"""Tests for the health check state and HTTP server."""

import json
import urllib.error
import urllib.request

import pytest

from ridgeline_dns.models import Changes, Endpoint
from ridgeline_dns.utils.health import HealthCheckServer, HealthState


@pytest.fixture
def server():
    state = HealthState()
    server = HealthCheckServer(state, host="127.0.0.1", port=0)
    server.start()
    yield server
    server.stop()


def _get(server, path):
    url = f"http://127.0.0.1:{server.port}{path}"
    try:
        with urllib.request.urlopen(url, timeout=5) as response:
            return response.status, response.read()
    except urllib.error.HTTPError as e:
        return e.code, e.read()


class TestHealthState:
    def test_healthy_before_first_cycle(self):
        state = HealthState()
        assert state.healthy
        assert state.snapshot()["last_cycle_ok"] is None

    def test_failure_then_success(self):
        state = HealthState()
        state.record_failure(RuntimeError("boom"))
        assert not state.healthy
        assert state.snapshot()["last_error"] == "boom"

        changes = Changes(create=[Endpoint("www.example.com", ["1.1.1.1"], "A")])
        state.record_success(changes)
        assert state.healthy
        snapshot = state.snapshot()
        assert snapshot["cycles"] == 2
        assert snapshot["failures"] == 1
        assert snapshot["last_changes"] == {"create": 1, "update": 0, "delete": 0}


class TestHealthServer:
    def test_health_ok(self, server):
        status, body = _get(server, "/health")
        assert status == 200
        assert json.loads(body) == {"status": "healthy"}

    def test_health_after_failure(self, server):
        server.state.record_failure(RuntimeError("provider down"))
        status, body = _get(server, "/health")
        assert status == 503
        assert json.loads(body)["error"] == "provider down"

    def test_metrics(self, server):
        server.state.record_success(Changes())
        status, body = _get(server, "/metrics")
        assert status == 200
        assert json.loads(body)["cycles"] == 1

    def test_unknown_path(self, server):
        status, _ = _get(server, "/nope")
        assert status == 404

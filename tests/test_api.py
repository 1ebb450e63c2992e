"""
Tests for the HTTP health and queue endpoints.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from fare_alerts.core.logging_config import MetricsCollector
from fare_alerts.main import create_app
from fare_alerts.shared.exceptions import TransientTransportError


class StubRuntime:
    """Stands in for PipelineRuntime without touching MongoDB or Redis"""

    def __init__(self, queue=None, ready=True, engine_state="running"):
        self.queue = queue
        self.ready = ready
        self.engine_state = engine_state
        self.metrics = MetricsCollector()
        self.entered = False
        self.exited = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited = True

    async def readiness(self):
        state = "connected" if self.ready else "disconnected"
        return {"ready": self.ready, "mongodb": state, "redis": state}

    def get_status(self):
        return {
            "engine_state": self.engine_state,
            "uptime_seconds": 1.0,
            "shutdown_requested": False,
            "metrics": self.metrics.get_metrics(),
        }


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("fare_alerts.main.setup_logging"):
        yield


@pytest.fixture
def runtime(memory_queue):
    return StubRuntime(queue=memory_queue)


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime)) as test_client:
        yield test_client


class TestLifespan:
    """Test that the app runs the pipeline for its lifetime"""

    def test_runtime_entered_and_exited(self, runtime):
        with TestClient(create_app(runtime)):
            assert runtime.entered
        assert runtime.exited


class TestHealthEndpoints:
    """Test /health and /health/readiness"""

    def test_health_reports_engine_state_and_metrics(self, client, runtime):
        runtime.metrics.increment("events_consumed")

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["engine_state"] == "running"
        assert body["metrics"]["events_consumed"] == 1

    def test_health_unhealthy_when_engine_stopped(self, client, runtime):
        runtime.engine_state = "stopped"
        assert client.get("/health").json()["status"] == "unhealthy"

    def test_readiness_ok(self, client):
        response = client.get("/health/readiness")
        assert response.status_code == 200
        assert response.json()["mongodb"] == "connected"

    def test_readiness_unavailable(self, client, runtime):
        runtime.ready = False
        response = client.get("/health/readiness")
        assert response.status_code == 503
        assert response.json()["redis"] == "disconnected"


class TestQueueDepthEndpoint:
    """Test /queues/{queue_name}/depth"""

    def test_depth(self, client, memory_queue, sample_event):
        memory_queue.items.extend([sample_event, sample_event])

        response = client.get("/queues/FlightPricesQueue/depth")

        assert response.status_code == 200
        assert response.json() == {"queue": "FlightPricesQueue", "depth": 2}

    def test_depth_transport_failure(self, client, memory_queue):
        async def failing_depth(queue_name=None):
            raise TransientTransportError("redis down", transport="redis")

        memory_queue.queue_depth = failing_depth

        assert client.get("/queues/FlightPricesQueue/depth").status_code == 503

    def test_depth_without_queue(self):
        with TestClient(create_app(StubRuntime(queue=None))) as client:
            assert client.get("/queues/FlightPricesQueue/depth").status_code == 503

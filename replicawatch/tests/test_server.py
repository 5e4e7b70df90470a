"""Tests for the status / simulation HTTP endpoints."""
from __future__ import annotations

import warnings

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from replicawatch.monitor import HeartbeatMonitor
from replicawatch.server import MONITOR_KEY, create_app

from .conftest import R0, R1


@pytest_asyncio.fixture
async def client(monitor: HeartbeatMonitor):
    app = create_app(monitor)
    async with TestClient(TestServer(app)) as c:
        yield c


def _all_down(monitor: HeartbeatMonitor, probe) -> None:
    probe.set(R0, False)
    probe.set(R1, False)
    for _ in range(3):
        monitor.poll_once()


# --- Health ---

@pytest.mark.asyncio
async def test_health_up(client):
    resp = await client.get("/health")
    assert resp.status == 200
    data = await resp.json()
    assert data["status"] == "UP"
    assert data["system_operational"] is True
    assert data["healthy_replicas_count"] == 2
    assert data["total_replicas_count"] == 2
    assert data["primary_replica"] == R0


@pytest.mark.asyncio
async def test_health_down_returns_503(client, monitor, probe):
    _all_down(monitor, probe)
    resp = await client.get("/health")
    assert resp.status == 503
    data = await resp.json()
    assert data["status"] == "DOWN"


@pytest.mark.asyncio
async def test_health_status_detailed(client, monitor, probe):
    probe.set(R0, False)
    for _ in range(3):
        monitor.poll_once()
    resp = await client.get("/health/status")
    assert resp.status == 200
    data = await resp.json()
    assert data["endpoint"] == "fault-recovery-status"
    assert data["primary_replica"] == R1
    assert data["replicas"]["replica_0"]["status"] == "DOWN"
    assert [e["event_type"] for e in data["recent_failover_events"]] == ["FAILOVER", "FAILURE"]


@pytest.mark.asyncio
async def test_health_replicas(client, monitor, probe):
    probe.set(R1, False)
    for _ in range(3):
        monitor.poll_once()
    resp = await client.get("/health/replicas")
    data = await resp.json()
    assert data["healthy_replicas"] == 1
    assert data["replicas"]["replica_0"] == {"url": R0, "healthy": True, "is_primary": True}
    assert data["replicas"]["replica_1"]["healthy"] is False


# --- Heartbeat ---

@pytest.mark.asyncio
async def test_heartbeat_status_always_200(client, monitor, probe):
    _all_down(monitor, probe)
    resp = await client.get("/heartbeat/status")
    assert resp.status == 200
    data = await resp.json()
    assert data["system_status"] == "degraded"


@pytest.mark.asyncio
async def test_heartbeat_primary(client):
    resp = await client.get("/heartbeat/primary")
    data = await resp.json()
    assert data == {"primary_replica": R0, "system_operational": True}


@pytest.mark.asyncio
async def test_heartbeat_poll_runs_cycle(client, probe):
    resp = await client.post("/heartbeat/poll")
    assert resp.status == 200
    assert probe.calls == [R0, R1]


# --- Simulation ---

@pytest.mark.asyncio
async def test_enable_disable(client, monitor):
    resp = await client.post("/simulation/enable")
    assert (await resp.json())["enabled"] is True
    assert monitor.simulation_status()["simulation_enabled"] is True
    resp = await client.post("/simulation/disable")
    assert (await resp.json())["enabled"] is False
    assert monitor.simulation_status()["simulation_enabled"] is False


@pytest.mark.asyncio
async def test_fail_and_recover_by_index(client, monitor, probe):
    await client.post("/simulation/enable")
    resp = await client.post("/simulation/fail/0")
    assert resp.status == 200
    assert (await resp.json())["replica_index"] == 0
    for _ in range(3):
        await client.post("/heartbeat/poll")
    assert monitor.get_replica_health() == [False, True]
    assert R0 not in probe.calls

    resp = await client.post("/simulation/recover/0")
    assert resp.status == 200
    status = await (await client.get("/simulation/status")).json()
    assert status["simulated_failures"] == {R0: False}


@pytest.mark.asyncio
async def test_fail_unknown_replica_404(client):
    resp = await client.post("/simulation/fail/9")
    assert resp.status == 404
    resp = await client.post("/simulation/recover/not-a-replica")
    assert resp.status == 404


@pytest.mark.asyncio
async def test_reset(client, monitor):
    await client.post("/simulation/enable")
    await client.post("/simulation/fail/1")
    resp = await client.post("/simulation/reset")
    assert resp.status == 200
    assert monitor.simulation_status()["simulated_failures"] == {}


@pytest.mark.asyncio
async def test_set_probabilities(client):
    resp = await client.post("/simulation/probabilities",
                              json={"failure_probability": 0.25, "recovery_probability": 0.75})
    assert resp.status == 200
    data = await resp.json()
    assert data["failure_probability"] == 0.25
    assert data["recovery_probability"] == 0.75


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"failure_probability": 2.0, "recovery_probability": 0.5},
    {"failure_probability": 0.5},
    {"failure_probability": "x", "recovery_probability": 0.5},
])
async def test_set_probabilities_invalid(client, body):
    resp = await client.post("/simulation/probabilities", json=body)
    assert resp.status == 400


@pytest.mark.asyncio
async def test_set_probabilities_bad_json(client):
    resp = await client.post("/simulation/probabilities", data="not json",
                             headers={"Content-Type": "application/json"})
    assert resp.status == 400


def test_monitor_stored_under_typed_app_key(monitor):
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        app = create_app(monitor)
    assert app[MONITOR_KEY] is monitor

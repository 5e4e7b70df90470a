"""HTTP status + simulation control endpoints (aiohttp)."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from aiohttp import web

from .models import UnknownReplicaError
from .monitor import HeartbeatMonitor

logger = logging.getLogger("replicawatch.server")

MONITOR_KEY = web.AppKey("monitor", HeartbeatMonitor)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _health_code(monitor: HeartbeatMonitor) -> int:
    return 200 if monitor.is_system_operational() else 503


# --- Health ---

async def handle_health(request: web.Request) -> web.Response:
    monitor: HeartbeatMonitor = request.app[MONITOR_KEY]
    operational = monitor.is_system_operational()
    body = {
        "service": "replicawatch",
        "timestamp": _now(),
        "status": "UP" if operational else "DOWN",
        "system_operational": operational,
        "healthy_replicas_count": len(monitor.get_healthy_replicas()),
        "total_replicas_count": len(monitor.endpoints),
        "primary_replica": monitor.get_current_primary(),
    }
    return web.json_response(body, status=200 if operational else 503)


async def handle_health_status(request: web.Request) -> web.Response:
    monitor: HeartbeatMonitor = request.app[MONITOR_KEY]
    body = monitor.get_detailed_status()
    body["endpoint"] = "fault-recovery-status"
    body["timestamp"] = _now()
    return web.json_response(body, status=_health_code(monitor))


async def handle_health_replicas(request: web.Request) -> web.Response:
    monitor: HeartbeatMonitor = request.app[MONITOR_KEY]
    health = monitor.get_replica_health()
    primary = monitor.get_current_primary()
    replicas = {
        f"replica_{ep.index}": {"url": ep.url, "healthy": health[ep.index], "is_primary": ep.url == primary}
        for ep in monitor.endpoints
    }
    body = {
        "endpoint": "replicas-health",
        "timestamp": _now(),
        "total_replicas": len(monitor.endpoints),
        "healthy_replicas": sum(health),
        "primary_replica": primary,
        "replicas": replicas,
    }
    return web.json_response(body, status=_health_code(monitor))


# --- Heartbeat ---

async def handle_heartbeat_status(request: web.Request) -> web.Response:
    monitor: HeartbeatMonitor = request.app[MONITOR_KEY]
    return web.json_response(monitor.get_detailed_status())


async def handle_heartbeat_primary(request: web.Request) -> web.Response:
    monitor: HeartbeatMonitor = request.app[MONITOR_KEY]
    return web.json_response({
        "primary_replica": monitor.get_current_primary(),
        "system_operational": monitor.is_system_operational(),
    })


async def handle_heartbeat_poll(request: web.Request) -> web.Response:
    monitor: HeartbeatMonitor = request.app[MONITOR_KEY]
    # Probes block; keep them off the event loop
    await asyncio.get_running_loop().run_in_executor(None, monitor.trigger_poll_now)
    return web.json_response(monitor.get_detailed_status())


# --- Simulation ---

async def handle_simulation_enable(request: web.Request) -> web.Response:
    request.app[MONITOR_KEY].set_simulation_enabled(True)
    return web.json_response({"message": "Failure simulation enabled", "enabled": True})


async def handle_simulation_disable(request: web.Request) -> web.Response:
    request.app[MONITOR_KEY].set_simulation_enabled(False)
    return web.json_response({"message": "Failure simulation disabled", "enabled": False})


async def handle_simulation_fail(request: web.Request) -> web.Response:
    monitor: HeartbeatMonitor = request.app[MONITOR_KEY]
    try:
        ep = monitor.force_fail(request.match_info["replica"])
    except UnknownReplicaError as e:
        return web.json_response({"error": str(e.args[0])}, status=404)
    return web.json_response({"message": f"Simulated failure for replica: {ep.url}", "replica_index": ep.index})


async def handle_simulation_recover(request: web.Request) -> web.Response:
    monitor: HeartbeatMonitor = request.app[MONITOR_KEY]
    try:
        ep = monitor.force_recover(request.match_info["replica"])
    except UnknownReplicaError as e:
        return web.json_response({"error": str(e.args[0])}, status=404)
    return web.json_response({"message": f"Recovered replica: {ep.url}", "replica_index": ep.index})


async def handle_simulation_reset(request: web.Request) -> web.Response:
    request.app[MONITOR_KEY].reset_simulation()
    return web.json_response({"message": "All simulated failures cleared"})


async def handle_simulation_status(request: web.Request) -> web.Response:
    return web.json_response(request.app[MONITOR_KEY].simulation_status())


async def handle_simulation_probabilities(request: web.Request) -> web.Response:
    monitor: HeartbeatMonitor = request.app[MONITOR_KEY]
    try:
        body: dict[str, Any] = await request.json()
        monitor.set_simulation_probabilities(
            float(body["failure_probability"]), float(body["recovery_probability"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        return web.json_response({"error": f"invalid probabilities: {e}"}, status=400)
    return web.json_response(monitor.simulation_status())


def create_app(monitor: HeartbeatMonitor) -> web.Application:
    app = web.Application()
    app[MONITOR_KEY] = monitor
    app.router.add_get("/", handle_health)
    app.router.add_get("/health", handle_health)
    app.router.add_get("/health/status", handle_health_status)
    app.router.add_get("/health/replicas", handle_health_replicas)
    app.router.add_get("/heartbeat/status", handle_heartbeat_status)
    app.router.add_get("/heartbeat/primary", handle_heartbeat_primary)
    app.router.add_post("/heartbeat/poll", handle_heartbeat_poll)
    app.router.add_post("/simulation/enable", handle_simulation_enable)
    app.router.add_post("/simulation/disable", handle_simulation_disable)
    app.router.add_post("/simulation/fail/{replica:.+}", handle_simulation_fail)
    app.router.add_post("/simulation/recover/{replica:.+}", handle_simulation_recover)
    app.router.add_post("/simulation/reset", handle_simulation_reset)
    app.router.add_get("/simulation/status", handle_simulation_status)
    app.router.add_post("/simulation/probabilities", handle_simulation_probabilities)
    return app


async def start_status_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Status endpoint listening on %s:%d", host, port)
    return runner

#!/usr/bin/env python3
"""
replicawatch daemon
===================
Probes the configured replicas every heartbeat interval, keeps the
primary designation current and serves status/simulation endpoints.

Usage:
    replicawatch                                  # .env or environment variables
    RW_CONFIG=replicawatch.yaml replicawatch      # YAML config file
    RW_REPLICA_URLS=http://a/health,http://b/health replicawatch

Signals:
    SIGTERM / SIGINT → graceful shutdown
"""
from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from .config import ConfigValidationError, MonitorConfig
from .monitor import HeartbeatMonitor
from .probe import HttpProbe
from .server import create_app, start_status_server

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(cfg: MonitorConfig) -> logging.Logger:
    """Configure rotating file + console logging for the replicawatch tree."""
    log_dir = Path(cfg.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("replicawatch")
    logger.setLevel(logging.DEBUG)

    # One file per day, keep N days
    fh = TimedRotatingFileHandler(
        log_dir / "replicawatch.log",
        when="midnight",
        backupCount=cfg.log_retention_days,
        utc=True,
    )
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(getattr(logging, cfg.log_level.upper(), logging.INFO))
    ch.setFormatter(logging.Formatter(LOG_FORMAT))

    logger.addHandler(fh)
    logger.addHandler(ch)
    return logger


def load_config() -> MonitorConfig:
    config_path = os.environ.get("RW_CONFIG", "replicawatch.yaml")
    if Path(config_path).exists():
        return MonitorConfig.from_yaml(config_path)
    return MonitorConfig.from_env()


async def serve(cfg: MonitorConfig, logger: logging.Logger) -> None:
    probe = HttpProbe(timeout_s=cfg.probe_timeout_s)
    monitor = HeartbeatMonitor(cfg, probe)
    runner = await start_status_server(create_app(monitor), cfg.status_host, cfg.status_port)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _shutdown(sig: int) -> None:
        logger.info("Received signal %d — shutting down gracefully", sig)
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _shutdown, sig)

    monitor.start()
    try:
        await stop_event.wait()
    finally:
        # A probe in flight can hold the loop thread up to the probe timeout
        await loop.run_in_executor(None, monitor.stop, cfg.probe_timeout_s * len(cfg.replica_urls) + 1)
        await runner.cleanup()
        probe.close()
        logger.info("replicawatch stopped.")


def main() -> None:
    try:
        cfg = load_config()
    except ConfigValidationError as e:
        print(f"replicawatch: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)
    logger = setup_logging(cfg)
    logger.info("replicawatch starting — replicas: %s, interval: %.1fs",
                ", ".join(cfg.replica_urls), cfg.heartbeat_interval_s)
    asyncio.run(serve(cfg, logger))


if __name__ == "__main__":
    main()

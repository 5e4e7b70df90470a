"""Shared fixtures — in-memory probe transport and a controllable clock."""
from __future__ import annotations

import random
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from replicawatch.config import MonitorConfig
from replicawatch.fault_injector import FaultInjector
from replicawatch.monitor import HeartbeatMonitor

R0 = "http://replica-0:8080/health"
R1 = "http://replica-1:8080/health"
R2 = "http://replica-2:8080/health"


class FakeProbe:
    """Answers from a per-URL table; unknown URLs are up."""

    def __init__(self) -> None:
        self.results: dict[str, bool] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []
        self.gates: dict[str, threading.Event] = {}
        self.entered: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def set(self, url: str, ok: bool) -> None:
        self.results[url] = ok

    def block(self, url: str) -> threading.Event:
        """Make probes of ``url`` wait until the returned event is set."""
        self.gates[url] = threading.Event()
        self.entered[url] = threading.Event()
        return self.gates[url]

    def probe(self, endpoint: str) -> bool:
        with self._lock:
            self.calls.append(endpoint)
        if endpoint in self.gates:
            self.entered[endpoint].set()
            self.gates[endpoint].wait(5)
        if endpoint in self.errors:
            raise self.errors[endpoint]
        return self.results.get(endpoint, True)


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_config(*urls: str, **overrides) -> MonitorConfig:
    params = dict(
        replica_urls=tuple(urls) or (R0, R1),
        heartbeat_interval_s=10.0,
        probe_timeout_s=1.0,
        failure_threshold=3,
        recovery_threshold=2,
        simulation_enabled=False,
        failure_probability=0.0,
        recovery_probability=0.0,
    )
    params.update(overrides)
    return MonitorConfig(**params)


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def injector() -> FaultInjector:
    return FaultInjector(failure_probability=0.0, recovery_probability=0.0, rng=random.Random(1234))


@pytest.fixture
def monitor(probe, clock, injector) -> HeartbeatMonitor:
    return HeartbeatMonitor(make_config(R0, R1), probe, clock=clock, injector=injector)

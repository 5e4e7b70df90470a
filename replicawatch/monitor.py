"""Heartbeat monitor — probes every replica, debounces verdicts, picks a primary.

One cycle (``poll_once``):
    probe all replicas (fault injector first) → hysteresis update per replica
    → system operational flag → primary reconcile → publish

Probing happens outside the state lock; the apply phase runs under it, so
readers always see the complete result of the last finished cycle.
"""
from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from .config import MonitorConfig, validate_config
from .event_log import EventLog
from .fault_injector import FaultInjector
from .models import (
    SYSTEM_REPLICA_ID, EventKind, FailoverEvent, ReplicaEndpoint, ReplicaState,
    SystemStatus, UnknownReplicaError,
)
from .primary import PrimarySelector
from .probe import ProbeTransport

logger = logging.getLogger("replicawatch.monitor")

RECENT_EVENTS_IN_STATUS = 10

Clock = Callable[[], datetime]
ReplicaRef = Union[int, str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HeartbeatMonitor:
    """Owns the replica state table, event log, primary selector and scheduler."""

    def __init__(
        self,
        cfg: MonitorConfig,
        transport: ProbeTransport,
        clock: Clock = utc_now,
        injector: Optional[FaultInjector] = None,
        event_log: Optional[EventLog] = None,
    ) -> None:
        validate_config(cfg)
        self.cfg = cfg
        self._transport = transport
        self._clock = clock
        if injector is None:
            injector = FaultInjector(
                enabled=cfg.simulation_enabled,
                failure_probability=cfg.failure_probability,
                recovery_probability=cfg.recovery_probability,
            )
        self._injector = injector
        self._events = event_log if event_log is not None else EventLog(cfg.event_log_capacity)
        self._endpoints = tuple(ReplicaEndpoint(i, url) for i, url in enumerate(cfg.replica_urls))
        self._by_url = {ep.url: ep for ep in self._endpoints}

        # Seeded optimistic: trusted until proven otherwise
        now = clock()
        self._states = [
            ReplicaState(healthy=True, last_checked=now, consecutive_successes=cfg.recovery_threshold)
            for _ in self._endpoints
        ]
        self._operational = True
        self._selector = PrimarySelector(self._endpoints, self._events, clock)

        self._state_lock = threading.RLock()
        self._poll_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        logger.info("Initialized %d replicas for fault recovery monitoring (failure=%d, recovery=%d)",
                    len(self._endpoints), cfg.failure_threshold, cfg.recovery_threshold)

    # ------------------------------------------------------------------
    # Poll cycle
    # ------------------------------------------------------------------

    def poll_once(self) -> None:
        """Run one full heartbeat cycle. Cycles never overlap."""
        with self._poll_lock:
            logger.debug("Starting heartbeat check for %d replicas", len(self._endpoints))
            results = [(ep, self._check(ep), self._clock()) for ep in self._endpoints]

            with self._state_lock:
                for ep, ok, checked_at in results:
                    self._apply(ep, ok, checked_at)
                self._update_system_status()
                self._selector.reconcile([s.healthy for s in self._states])
                healthy_count = sum(1 for s in self._states if s.healthy)

            logger.debug("Heartbeat check completed. System operational: %s, Healthy replicas: %d",
                         self._operational, healthy_count)

    def _check(self, ep: ReplicaEndpoint) -> bool:
        if self._injector.should_fail(ep.url):
            logger.debug("Simulating failure for replica: %s", ep.url)
            return False
        try:
            return bool(self._transport.probe(ep.url))
        except Exception as e:
            logger.debug("Health check failed for %s: %s", ep.url, e)
            return False

    def _apply(self, ep: ReplicaEndpoint, ok: bool, checked_at: datetime) -> None:
        state = self._states[ep.index]
        state.last_checked = checked_at
        if ok:
            self._on_success(ep, state)
        else:
            self._on_failure(ep, state, checked_at)

    def _on_failure(self, ep: ReplicaEndpoint, state: ReplicaState, now: datetime) -> None:
        state.consecutive_failures += 1
        state.consecutive_successes = 0
        failures = state.consecutive_failures
        threshold = self.cfg.failure_threshold

        if state.healthy and failures >= threshold:
            state.healthy = False
            state.last_failover = now
            logger.warning("FAULT DETECTED: Replica %s has failed %d consecutive health checks — marking as DOWN",
                           ep.url, failures)
            self._record(ep.url, EventKind.FAILURE,
                         f"Replica marked as DOWN after {failures} consecutive failures")
        elif state.healthy and failures == 1:
            logger.info("Replica %s failed health check (attempt 1/%d threshold)", ep.url, threshold)

    def _on_success(self, ep: ReplicaEndpoint, state: ReplicaState) -> None:
        state.consecutive_successes += 1
        state.consecutive_failures = 0
        successes = state.consecutive_successes
        threshold = self.cfg.recovery_threshold

        if not state.healthy:
            if successes >= threshold:
                state.healthy = True
                logger.info("RECOVERY DETECTED: Replica %s has recovered after %d consecutive successful checks"
                            " — marking as UP", ep.url, successes)
                self._record(ep.url, EventKind.RECOVERY,
                             f"Replica marked as UP after {successes} consecutive successes")
            elif successes == 1:
                logger.info("Replica %s passed health check (attempt 1/%d threshold)", ep.url, threshold)
        elif successes < threshold:
            # A trusted replica does not re-earn the threshold after a blip
            state.consecutive_successes = threshold

    def _update_system_status(self) -> None:
        was_operational = self._operational
        self._operational = any(s.healthy for s in self._states)
        if was_operational == self._operational:
            return
        if self._operational:
            logger.info("SYSTEM RECOVERY: At least one replica is healthy — system is operational")
            self._record(SYSTEM_REPLICA_ID, EventKind.SYSTEM_RECOVERY, "System restored to operational status")
        else:
            logger.error("SYSTEM FAILURE: All replicas are down — system is degraded")
            self._record(SYSTEM_REPLICA_ID, EventKind.SYSTEM_FAILURE, "All replicas failed - system degraded")

    def _record(self, replica_id: str, kind: EventKind, description: str) -> None:
        self._events.append(FailoverEvent(
            timestamp=self._clock(), replica_id=replica_id, kind=kind, description=description,
        ))

    # ------------------------------------------------------------------
    # Scheduler
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the fixed-delay heartbeat loop in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="replicawatch-heartbeat", daemon=True)
        self._thread.start()
        logger.info("Heartbeat loop started — interval: %.1fs", self.cfg.heartbeat_interval_s)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Heartbeat loop still finishing a cycle after %s s", timeout)
                return
            self._thread = None
        logger.info("Heartbeat loop stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Heartbeat cycle failed")
            # Next cycle is one interval after this one completes
            if self._stop.wait(self.cfg.heartbeat_interval_s):
                break

    # ------------------------------------------------------------------
    # Status queries
    # ------------------------------------------------------------------

    @property
    def endpoints(self) -> tuple[ReplicaEndpoint, ...]:
        return self._endpoints

    @property
    def event_log(self) -> EventLog:
        return self._events

    def resolve(self, ref: ReplicaRef) -> ReplicaEndpoint:
        """Look up a replica by index (int or digit string) or by URL."""
        if isinstance(ref, int) or (isinstance(ref, str) and ref.isdigit()):
            idx = int(ref)
            if 0 <= idx < len(self._endpoints):
                return self._endpoints[idx]
        elif ref in self._by_url:
            return self._by_url[ref]
        raise UnknownReplicaError(f"Unknown replica: {ref}")

    def get_replica_health(self) -> list[bool]:
        with self._state_lock:
            return [s.healthy for s in self._states]

    def get_healthy_replicas(self) -> list[str]:
        with self._state_lock:
            return [ep.url for ep, s in zip(self._endpoints, self._states) if s.healthy]

    def get_current_primary(self) -> str:
        with self._state_lock:
            return self._selector.primary.url

    def is_system_operational(self) -> bool:
        with self._state_lock:
            return self._operational

    def get_system_status(self) -> SystemStatus:
        with self._state_lock:
            return SystemStatus(operational=self._operational, primary_index=self._selector.index)

    def get_replica_state(self, ref: ReplicaRef) -> ReplicaState:
        ep = self.resolve(ref)
        with self._state_lock:
            return dataclasses.replace(self._states[ep.index])

    def recent_events(self, n: int = RECENT_EVENTS_IN_STATUS) -> list[FailoverEvent]:
        with self._state_lock:
            return self._events.recent(n)

    def get_detailed_status(self) -> dict[str, Any]:
        with self._state_lock:
            primary_index = self._selector.index
            replicas: dict[str, dict[str, Any]] = {}
            for ep, s in zip(self._endpoints, self._states):
                info: dict[str, Any] = {
                    "status": "UP" if s.healthy else "DOWN",
                    "url": ep.url,
                    "is_primary": ep.index == primary_index,
                    "consecutive_failures": s.consecutive_failures,
                    "consecutive_successes": s.consecutive_successes,
                    "last_checked": s.last_checked.isoformat(),
                }
                if s.last_failover is not None:
                    info["last_failover"] = s.last_failover.isoformat()
                replicas[f"replica_{ep.index}"] = info

            return {
                "system_status": "operational" if self._operational else "degraded",
                "healthy_replicas": sum(1 for s in self._states if s.healthy),
                "total_replicas": len(self._endpoints),
                "primary_replica": self._endpoints[primary_index].url,
                "primary_replica_index": primary_index,
                "simulation_enabled": self._injector.enabled,
                "replicas": replicas,
                "recent_failover_events": [
                    e.to_dict() for e in self._events.recent(RECENT_EVENTS_IN_STATUS)
                ],
            }

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def set_simulation_enabled(self, enabled: bool) -> None:
        self._injector.set_enabled(enabled)

    def set_simulation_probabilities(self, failure_probability: float, recovery_probability: float) -> None:
        self._injector.set_probabilities(failure_probability, recovery_probability)

    def force_fail(self, ref: ReplicaRef) -> ReplicaEndpoint:
        ep = self.resolve(ref)
        self._injector.force_fail(ep.url)
        return ep

    def force_recover(self, ref: ReplicaRef) -> ReplicaEndpoint:
        ep = self.resolve(ref)
        self._injector.force_recover(ep.url)
        return ep

    def reset_simulation(self) -> None:
        self._injector.reset()

    def simulation_status(self) -> dict[str, Any]:
        p_fail, p_recover = self._injector.probabilities
        return {
            "simulation_enabled": self._injector.enabled,
            "simulated_failures": self._injector.status(),
            "failure_probability": p_fail,
            "recovery_probability": p_recover,
        }

    def trigger_poll_now(self) -> None:
        """Run a cycle synchronously on the caller's thread."""
        self.poll_once()

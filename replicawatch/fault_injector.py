"""Fault injector — simulated replica failures for demos and drills.

Overrides are consulted before the real probe. While a replica is
overridden-failing the monitor records a failed probe without touching the
network. Random flips are driven by ``failure_probability`` and
``recovery_probability``; manual commands bypass them.
"""
from __future__ import annotations

import logging
import random
import threading
from typing import Optional

logger = logging.getLogger("replicawatch.simulation")


class FaultInjector:
    def __init__(
        self,
        enabled: bool = False,
        failure_probability: float = 0.1,
        recovery_probability: float = 0.3,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._check_probability("failure_probability", failure_probability)
        self._check_probability("recovery_probability", recovery_probability)
        self._enabled = enabled
        self._p_fail = failure_probability
        self._p_recover = recovery_probability
        self._rng = rng or random.Random()
        self._failing: dict[str, bool] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _check_probability(name: str, value: float) -> None:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"{name} must be within [0, 1], got {value}")

    # --- Probe interception ---

    def should_fail(self, replica_id: str) -> bool:
        """Roll this cycle's outcome; True means treat the probe as failed."""
        with self._lock:
            if not self._enabled:
                return False

            if self._failing.get(replica_id, False):
                if self._rng.random() < self._p_recover:
                    self._failing[replica_id] = False
                    logger.info("SIMULATION: Replica %s recovered from simulated failure", replica_id)
                    return False
                return True

            if self._rng.random() < self._p_fail:
                self._failing[replica_id] = True
                logger.warning("SIMULATION: Replica %s entering simulated failure state", replica_id)
                return True
            return False

    # --- Switches ---

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._enabled = enabled
            if not enabled:
                self._failing.clear()
        logger.info("SIMULATION: Failure simulation %s", "enabled" if enabled else "disabled")

    @property
    def probabilities(self) -> tuple[float, float]:
        return self._p_fail, self._p_recover

    def set_probabilities(self, failure_probability: float, recovery_probability: float) -> None:
        self._check_probability("failure_probability", failure_probability)
        self._check_probability("recovery_probability", recovery_probability)
        with self._lock:
            self._p_fail = failure_probability
            self._p_recover = recovery_probability
        logger.info("SIMULATION: Probabilities set to fail=%.2f recover=%.2f",
                    failure_probability, recovery_probability)

    # --- Manual commands ---

    def force_fail(self, replica_id: str) -> None:
        with self._lock:
            self._failing[replica_id] = True
            enabled = self._enabled
        logger.warning("MANUAL SIMULATION: Replica %s manually set to failed state", replica_id)
        if not enabled:
            logger.warning("MANUAL SIMULATION: Simulation is disabled — override for %s is inactive", replica_id)

    def force_recover(self, replica_id: str) -> None:
        with self._lock:
            self._failing[replica_id] = False
        logger.info("MANUAL SIMULATION: Replica %s manually recovered from failure", replica_id)

    def reset(self) -> None:
        with self._lock:
            self._failing.clear()
        logger.info("SIMULATION: All simulated failures cleared")

    def is_failing(self, replica_id: str) -> bool:
        with self._lock:
            return self._failing.get(replica_id, False)

    def status(self) -> dict[str, bool]:
        """Copy of the per-replica overrides."""
        with self._lock:
            return dict(self._failing)

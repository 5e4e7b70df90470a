"""Primary replica selection.

The primary only moves when the current one is unhealthy. The replacement is
the first healthy replica in configured order; there is no fail-back.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from .event_log import EventLog
from .models import EventKind, FailoverEvent, ReplicaEndpoint

logger = logging.getLogger("replicawatch.primary")


class PrimarySelector:
    def __init__(
        self,
        endpoints: Sequence[ReplicaEndpoint],
        event_log: EventLog,
        clock: Callable[[], datetime],
        initial_index: int = 0,
    ) -> None:
        if not endpoints:
            raise ValueError("PrimarySelector needs at least one endpoint")
        if not 0 <= initial_index < len(endpoints):
            raise ValueError(f"initial_index {initial_index} out of range")
        self._endpoints = tuple(endpoints)
        self._events = event_log
        self._clock = clock
        self._index = initial_index

    @property
    def index(self) -> int:
        return self._index

    @property
    def primary(self) -> ReplicaEndpoint:
        return self._endpoints[self._index]

    def reconcile(self, healthy: Sequence[bool]) -> Optional[int]:
        """Re-evaluate the primary against this cycle's verdicts.

        Returns the new index on failover, None when the primary is kept.
        """
        if len(healthy) != len(self._endpoints):
            raise ValueError("health vector does not match the replica set")

        if healthy[self._index]:
            return None

        candidate = next((i for i, ok in enumerate(healthy) if ok), None)
        if candidate is None:
            logger.error("CRITICAL: No healthy replicas available for failover — keeping %s",
                         self.primary.url)
            return None

        old = self.primary
        self._index = candidate
        new = self.primary
        logger.warning("FAILOVER EXECUTED: Primary replica switched from %s (index %d) to %s (index %d)",
                       old.url, old.index, new.url, new.index)
        self._events.append(FailoverEvent(
            timestamp=self._clock(),
            replica_id=new.url,
            kind=EventKind.FAILOVER,
            description=f"Primary replica changed from {old.url} to {new.url}",
        ))
        return candidate

"""replicawatch — replica, state and event data models."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

SYSTEM_REPLICA_ID = "SYSTEM"


class EventKind(str, Enum):
    FAILURE = "FAILURE"                  # replica marked DOWN
    RECOVERY = "RECOVERY"                # replica marked UP
    FAILOVER = "FAILOVER"                # primary moved to another replica
    SYSTEM_FAILURE = "SYSTEM_FAILURE"    # no replica healthy
    SYSTEM_RECOVERY = "SYSTEM_RECOVERY"  # at least one replica healthy again


class UnknownReplicaError(KeyError):
    """Raised when a control call names a replica that is not configured."""


@dataclass(frozen=True)
class ReplicaEndpoint:
    index: int
    url: str


@dataclass
class ReplicaState:
    """Hysteresis counters and current verdict for one replica.

    At most one of the two counters is nonzero at a time.
    """
    healthy: bool
    last_checked: datetime
    consecutive_failures: int = 0
    consecutive_successes: int = 0
    last_failover: Optional[datetime] = None


@dataclass(frozen=True)
class FailoverEvent:
    timestamp: datetime
    replica_id: str
    kind: EventKind
    description: str

    def to_dict(self) -> dict[str, str]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "replica_id": self.replica_id,
            "event_type": self.kind.value,
            "description": self.description,
        }


@dataclass(frozen=True)
class SystemStatus:
    operational: bool
    primary_index: int

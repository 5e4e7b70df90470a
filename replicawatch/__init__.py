"""replicawatch — replica heartbeat monitoring, hysteresis and primary failover."""
from .config import ConfigValidationError, MonitorConfig, validate_config
from .event_log import EventLog
from .fault_injector import FaultInjector
from .models import (
    EventKind, FailoverEvent, ReplicaEndpoint, ReplicaState, SystemStatus, UnknownReplicaError,
)
from .monitor import HeartbeatMonitor
from .primary import PrimarySelector
from .probe import HttpProbe, ProbeTransport

__all__ = [
    "HeartbeatMonitor",
    "MonitorConfig",
    "ConfigValidationError",
    "validate_config",
    "EventLog",
    "FaultInjector",
    "PrimarySelector",
    "HttpProbe",
    "ProbeTransport",
    "EventKind",
    "FailoverEvent",
    "ReplicaEndpoint",
    "ReplicaState",
    "SystemStatus",
    "UnknownReplicaError",
]

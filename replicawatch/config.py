"""replicawatch configuration — environment first, optional YAML file."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv

load_dotenv()

DEFAULT_REPLICA_URLS = "http://localhost:8080/health,http://localhost:8081/health"


class ConfigValidationError(ValueError):
    """Raised when the monitor configuration cannot be used."""


def _split_urls(raw: str) -> tuple[str, ...]:
    return tuple(u.strip() for u in raw.split(",") if u.strip())


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _env_bool(name: str, default: str) -> bool:
    return _parse_bool(os.getenv(name, default))


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    """A nested YAML mapping; an empty section (`heartbeat:`) counts as {}."""
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigValidationError(f"Config section {name!r} must be a mapping")
    return value


@dataclass(frozen=True)
class MonitorConfig:
    """Immutable configuration for the replica monitor."""

    # Replicas, in failover preference order
    replica_urls: tuple[str, ...] = field(
        default_factory=lambda: _split_urls(os.getenv("RW_REPLICA_URLS", DEFAULT_REPLICA_URLS))
    )

    # Timing
    heartbeat_interval_s: float = field(default_factory=lambda: float(os.getenv("RW_HEARTBEAT_INTERVAL_S", "10")))
    probe_timeout_s: float = field(default_factory=lambda: float(os.getenv("RW_PROBE_TIMEOUT_S", "5")))

    # Hysteresis
    failure_threshold: int = field(default_factory=lambda: int(os.getenv("RW_FAILURE_THRESHOLD", "3")))
    recovery_threshold: int = field(default_factory=lambda: int(os.getenv("RW_RECOVERY_THRESHOLD", "2")))

    # Fault injection
    simulation_enabled: bool = field(default_factory=lambda: _env_bool("RW_SIMULATION_ENABLED", "false"))
    failure_probability: float = field(default_factory=lambda: float(os.getenv("RW_FAILURE_PROBABILITY", "0.1")))
    recovery_probability: float = field(default_factory=lambda: float(os.getenv("RW_RECOVERY_PROBABILITY", "0.3")))

    event_log_capacity: int = 100

    # Status endpoint
    status_host: str = field(default_factory=lambda: os.getenv("RW_STATUS_HOST", "0.0.0.0"))
    status_port: int = field(default_factory=lambda: int(os.getenv("RW_STATUS_PORT", "8090")))

    # Logging
    log_dir: str = field(default_factory=lambda: os.getenv("RW_LOG_DIR", "logs"))
    log_level: str = field(default_factory=lambda: os.getenv("RW_LOG_LEVEL", "INFO"))
    log_retention_days: int = field(default_factory=lambda: int(os.getenv("RW_LOG_RETENTION_DAYS", "7")))

    @classmethod
    def from_env(cls) -> MonitorConfig:
        """Create config from environment, raising on unusable values."""
        try:
            cfg = cls()
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(f"Invalid environment configuration: {e}") from e
        validate_config(cfg)
        return cfg

    @classmethod
    def from_yaml(cls, path: str) -> MonitorConfig:
        with open(path, "r") as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigValidationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigValidationError(f"{path} must contain a mapping at the top level")
        try:
            cfg = cls._from_mapping(raw)
        except ConfigValidationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(f"Invalid value in {path}: {e}") from e
        validate_config(cfg)
        return cfg

    @classmethod
    def _from_mapping(cls, raw: dict[str, Any]) -> MonitorConfig:
        base = cls()
        replicas = raw.get("replicas", base.replica_urls) or ()
        heartbeat = _section(raw, "heartbeat")
        thresholds = _section(raw, "thresholds")
        simulation = _section(raw, "simulation")
        status = _section(raw, "status")
        log_cfg = _section(raw, "logging")
        if isinstance(replicas, str):
            replicas = _split_urls(replicas)
        return cls(
            replica_urls=tuple(str(u).strip() for u in replicas),
            heartbeat_interval_s=float(heartbeat.get("interval_s", base.heartbeat_interval_s)),
            probe_timeout_s=float(heartbeat.get("timeout_s", base.probe_timeout_s)),
            failure_threshold=int(thresholds.get("failure", base.failure_threshold)),
            recovery_threshold=int(thresholds.get("recovery", base.recovery_threshold)),
            simulation_enabled=_parse_bool(simulation.get("enabled", base.simulation_enabled)),
            failure_probability=float(simulation.get("failure_probability", base.failure_probability)),
            recovery_probability=float(simulation.get("recovery_probability", base.recovery_probability)),
            status_host=status.get("host", base.status_host),
            status_port=int(status.get("port", base.status_port)),
            log_dir=log_cfg.get("log_dir", base.log_dir),
            log_level=log_cfg.get("level", base.log_level),
            log_retention_days=int(log_cfg.get("retention_days", base.log_retention_days)),
        )


def validate_config(cfg: MonitorConfig) -> None:
    """Reject configurations the monitor must not start with."""
    if not cfg.replica_urls:
        raise ConfigValidationError("At least one replica URL is required")
    seen: set[str] = set()
    for url in cfg.replica_urls:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigValidationError(f"Malformed replica URL: {url!r}")
        if url in seen:
            raise ConfigValidationError(f"Duplicate replica URL: {url}")
        seen.add(url)
    if cfg.failure_threshold < 1 or cfg.recovery_threshold < 1:
        raise ConfigValidationError("Failure and recovery thresholds must be >= 1")
    if cfg.heartbeat_interval_s <= 0 or cfg.probe_timeout_s <= 0:
        raise ConfigValidationError("Heartbeat interval and probe timeout must be positive")
    for name in ("failure_probability", "recovery_probability"):
        p = getattr(cfg, name)
        if not 0.0 <= p <= 1.0:
            raise ConfigValidationError(f"{name} must be within [0, 1], got {p}")
    if cfg.event_log_capacity < 1:
        raise ConfigValidationError("Event log capacity must be >= 1")
    if not 0 < cfg.status_port < 65536:
        raise ConfigValidationError(f"Invalid status port: {cfg.status_port}")

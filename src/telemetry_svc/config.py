"""Configuration for the telemetry service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from .telemetry.analytics import AnalyticsThresholds


CONFIG_ENV_VAR = "TELEMETRY_SVC_CONFIG"


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8060
    reload: bool = False
    log_level: str = "INFO"


@dataclass
class TelemetryConfig:
    """Downstream delivery of recorded events."""
    enabled: bool = True
    sink_type: str = "log"  # log | console | file | zmq
    sink_config: dict[str, Any] = field(default_factory=dict)

    # Batching
    batch_size: int = 500
    flush_interval_seconds: float = 1.0

    # Queue
    max_queue_size: int = 10000


@dataclass
class AnalyticsConfig:
    """Thresholds for the improvement-opportunity heuristics."""
    error_rate_threshold: float = 0.10
    slow_event_ms: float = 5000.0
    slow_event_ratio: float = 0.20
    negative_feedback_threshold: float = 0.30
    top_n: int = 10

    def thresholds(self) -> AnalyticsThresholds:
        return AnalyticsThresholds(
            error_rate_threshold=self.error_rate_threshold,
            slow_event_ms=self.slow_event_ms,
            slow_event_ratio=self.slow_event_ratio,
            negative_feedback_threshold=self.negative_feedback_threshold,
            top_n=self.top_n,
        )


@dataclass
class RetentionConfig:
    """Automatic pruning of old events."""
    max_age_days: float = 0.0  # 0 = keep everything
    check_interval_seconds: float = 3600.0


@dataclass
class Config:
    """Main configuration container."""
    server: ServerConfig = field(default_factory=ServerConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Create config from dictionary."""
        return cls(
            server=ServerConfig(**data.get("server", {})),
            telemetry=TelemetryConfig(**data.get("telemetry", {})),
            analytics=AnalyticsConfig(**data.get("analytics", {})),
            retention=RetentionConfig(**data.get("retention", {})),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: str | None = None) -> Config:
        """
        Load config from ``path`` or the TELEMETRY_SVC_CONFIG environment variable.

        Falls back to defaults when neither is set.
        """
        path = path or os.environ.get(CONFIG_ENV_VAR)
        if not path:
            return cls()
        if path.endswith(".json"):
            return cls.from_json(path)
        return cls.from_yaml(path)

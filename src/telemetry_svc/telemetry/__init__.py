"""Telemetry - typed event recording, sessions and derived analytics."""

from .analytics import AnalyticsSnapshot, AnalyticsThresholds, SystemHealth
from .batcher import TelemetryBatcher
from .emitter import TelemetryEmitter
from .events import (
    ArtifactData,
    ArtifactQuality,
    DeltaChange,
    DeltaData,
    ErrorData,
    EventKind,
    FeedbackData,
    OutcomeData,
    PlanData,
    PlanStep,
    PromptData,
    QualityIssue,
    SystemData,
    TelemetryEvent,
)
from .manager import TelemetryManager, get_default_manager, set_default_manager
from .session import SessionRegistry, TelemetrySession

__all__ = [
    "AnalyticsSnapshot",
    "AnalyticsThresholds",
    "SystemHealth",
    "TelemetryBatcher",
    "TelemetryEmitter",
    "ArtifactData",
    "ArtifactQuality",
    "DeltaChange",
    "DeltaData",
    "ErrorData",
    "EventKind",
    "FeedbackData",
    "OutcomeData",
    "PlanData",
    "PlanStep",
    "PromptData",
    "QualityIssue",
    "SystemData",
    "TelemetryEvent",
    "TelemetryManager",
    "get_default_manager",
    "set_default_manager",
    "SessionRegistry",
    "TelemetrySession",
]

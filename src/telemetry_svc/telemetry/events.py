"""Telemetry event types.

Each event carries exactly one payload variant; the event kind is read off
the payload so the two can never disagree.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Mapping, Union

from pydantic import TypeAdapter, ValidationError


class EventKind(str, Enum):
    """Kind of telemetry event."""
    PROMPT = "prompt"
    PLAN = "plan"
    ARTIFACT = "artifact"
    FEEDBACK = "feedback"
    DELTA = "delta"
    OUTCOME = "outcome"
    SYSTEM = "system"
    ERROR = "error"


_ADAPTERS: dict[type, TypeAdapter] = {}


class _Record:
    """Shared dict codec for payload dataclasses."""
    __slots__ = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        """
        Validate ``data`` against the field types and build an instance.

        Unknown keys are ignored and nested records are built from plain
        mappings. Numeric strings are coerced; anything else of the wrong
        type (including null for a list or mapping field) is rejected.

        Raises:
            pydantic.ValidationError: If a field is missing or has the wrong type
        """
        adapter = _ADAPTERS.get(cls)
        if adapter is None:
            adapter = _ADAPTERS[cls] = TypeAdapter(cls)
        return adapter.validate_python(data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class _Payload(_Record):
    __slots__ = ()

    kind: ClassVar[EventKind]

    def describe(self) -> str:
        """One-line human readable description (used by flat exports)."""
        return ""


# =============================================================================
# Prompt / Plan
# =============================================================================

@dataclass(frozen=True, slots=True)
class PromptData(_Payload):
    """A prompt submitted by the user."""
    kind: ClassVar[EventKind] = EventKind.PROMPT

    content: str
    type: str = "text"  # text | voice | image | code

    # Conversation context
    conversation_id: str = ""
    previous_messages: int = 0
    active_agent: str | None = None
    current_paam: str | None = None

    # language, complexity, category, estimated_time
    metadata: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        return self.content


@dataclass(frozen=True, slots=True)
class PlanStep(_Record):
    """A single step of a generation plan."""
    id: str
    name: str
    type: str = "generation"  # validation | generation | analysis | deployment | testing
    agent: str = ""
    estimated_duration: float = 0.0
    inputs: dict[str, Any] = field(default_factory=dict)
    expected_outputs: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PlanData(_Payload):
    """A plan produced in response to a prompt."""
    kind: ClassVar[EventKind] = EventKind.PLAN

    id: str
    name: str
    description: str = ""
    type: str = "generation"  # generation | modification | analysis | deployment
    steps: list[PlanStep] = field(default_factory=list)
    estimated_duration: float = 0.0  # milliseconds
    priority: str = "medium"  # low | medium | high | critical
    dependencies: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        return f"{self.name} ({len(self.steps)} steps)"


# =============================================================================
# Artifact
# =============================================================================

@dataclass(frozen=True, slots=True)
class QualityIssue(_Record):
    """An issue found while scoring an artifact."""
    message: str
    type: str = "warning"  # error | warning | info | style
    severity: str = "low"  # low | medium | high | critical
    location: dict[str, Any] | None = None  # file, line, column
    suggestion: str | None = None


@dataclass(frozen=True, slots=True)
class ArtifactQuality(_Record):
    """Quality assessment of a generated artifact."""
    score: float = 0.0
    issues: list[QualityIssue] = field(default_factory=list)

    # complexity, maintainability, testability, security, performance
    metrics: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ArtifactData(_Payload):
    """A generated artifact (code, schema, config, ...)."""
    kind: ClassVar[EventKind] = EventKind.ARTIFACT

    id: str
    name: str
    type: str = "code"  # code | schema | config | documentation | test
    content: str = ""
    size: int = 0
    language: str | None = None
    framework: str | None = None
    platform: str | None = None
    quality: ArtifactQuality | None = None

    # generated_by, generation_time, template, version
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def quality_score(self) -> float:
        return self.quality.score if self.quality else 0.0

    def describe(self) -> str:
        return f"{self.type}:{self.name}"


# =============================================================================
# Feedback / Delta
# =============================================================================

@dataclass(frozen=True, slots=True)
class FeedbackData(_Payload):
    """User feedback on an artifact, plan, agent or the system."""
    kind: ClassVar[EventKind] = EventKind.FEEDBACK

    id: str
    content: str
    type: str = "improvement"  # bug | improvement | question | feature | compliment
    severity: str = "low"  # low | medium | high | critical

    # What the feedback is about
    target_type: str = "system"  # artifact | plan | agent | system
    target_id: str = ""
    target_name: str | None = None

    suggested_fix: str | None = None
    status: str = "open"  # open | in-progress | resolved | dismissed
    sentiment: str | None = None  # positive | neutral | negative

    # user_role, experience
    metadata: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        return self.content


@dataclass(frozen=True, slots=True)
class DeltaChange(_Record):
    """A single change within a delta."""
    type: str  # add | remove | modify
    target_type: str = "code"  # code | config | schema | test
    target_id: str = ""
    path: str | None = None
    content: str | None = None
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class DeltaData(_Payload):
    """A correction or improvement applied to earlier output."""
    kind: ClassVar[EventKind] = EventKind.DELTA

    id: str
    description: str
    type: str = "improvement"  # improvement | correction | optimization | refactor
    changes: list[DeltaChange] = field(default_factory=list)

    # quality, performance, maintainability
    impact: dict[str, float] = field(default_factory=dict)

    # automated, agent, reason
    metadata: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        return self.description


# =============================================================================
# Outcome / System / Error
# =============================================================================

@dataclass(frozen=True, slots=True)
class OutcomeData(_Payload):
    """Final result of executing a plan."""
    kind: ClassVar[EventKind] = EventKind.OUTCOME

    type: str  # success | failure | partial | timeout
    id: str = ""
    plan_id: str = ""
    duration: float = 0.0  # milliseconds
    artifacts: list[str] = field(default_factory=list)

    # success, quality, performance, user_satisfaction, business_value
    metrics: dict[str, Any] = field(default_factory=dict)

    summary: str = ""
    lessons: list[str] = field(default_factory=list)

    # deployment, testing, user_adoption
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.type == "success"

    def describe(self) -> str:
        return self.summary or self.type


@dataclass(frozen=True, slots=True)
class SystemData(_Payload):
    """A system or agent lifecycle notification."""
    kind: ClassVar[EventKind] = EventKind.SYSTEM

    component: str
    action: str
    status: str = "started"  # started | completed | failed | paused

    # Agent that performed the action, if any
    agent: str | None = None

    # response_time_ms and other free-form measurements
    metrics: dict[str, Any] = field(default_factory=dict)

    # version, environment, load
    metadata: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        return f"{self.component}.{self.action} {self.status}"


@dataclass(frozen=True, slots=True)
class ErrorData(_Payload):
    """An error raised somewhere in the platform."""
    kind: ClassVar[EventKind] = EventKind.ERROR

    message: str
    type: str = "system"  # system | user | agent | validation
    severity: str = "medium"  # low | medium | high | critical
    stack: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    # component, action
    metadata: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        return self.message


EventPayload = Union[
    PromptData,
    PlanData,
    ArtifactData,
    FeedbackData,
    DeltaData,
    OutcomeData,
    SystemData,
    ErrorData,
]

PAYLOAD_TYPES: dict[EventKind, type] = {
    EventKind.PROMPT: PromptData,
    EventKind.PLAN: PlanData,
    EventKind.ARTIFACT: ArtifactData,
    EventKind.FEEDBACK: FeedbackData,
    EventKind.DELTA: DeltaData,
    EventKind.OUTCOME: OutcomeData,
    EventKind.SYSTEM: SystemData,
    EventKind.ERROR: ErrorData,
}


def payload_from_dict(kind: str | EventKind, data: Mapping[str, Any] | None) -> EventPayload:
    """
    Build the payload variant for ``kind`` from a plain mapping.

    Raises:
        ValueError: If the kind is unknown, or payload fields are missing or
            of the wrong type
    """
    event_kind = EventKind(kind)
    cls = PAYLOAD_TYPES[event_kind]
    try:
        return cls.from_dict(data or {})
    except ValidationError as e:
        raise ValueError(f"Invalid {event_kind.value} payload: {e}") from e


def parse_timestamp(value: str | datetime) -> datetime:
    ts = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True, slots=True)
class TelemetryEvent:
    """A single recorded occurrence within a session."""
    # Identification
    id: str
    timestamp: datetime

    # Owner
    session_id: str

    # What happened
    payload: EventPayload

    user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> EventKind:
        return self.payload.kind

    @classmethod
    def create(
        cls,
        session_id: str,
        payload: EventPayload,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        event_id: str | None = None,
        timestamp: datetime | None = None,
    ) -> TelemetryEvent:
        """Factory method with sensible defaults."""
        return cls(
            id=event_id or f"event_{uuid.uuid4().hex}",
            timestamp=timestamp or datetime.now(timezone.utc),
            session_id=session_id,
            payload=payload,
            user_id=user_id,
            metadata=dict(metadata or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "session_id": self.session_id,
            "user_id": self.user_id,
            "kind": self.kind.value,
            "payload": self.payload.to_dict(),
            "metadata": self.metadata,
        }


def event_from_dict(data: Mapping[str, Any]) -> TelemetryEvent:
    """Rebuild an event from the output of :meth:`TelemetryEvent.to_dict`."""
    return TelemetryEvent(
        id=data["id"],
        timestamp=parse_timestamp(data["timestamp"]),
        session_id=data["session_id"],
        payload=payload_from_dict(data["kind"], data.get("payload")),
        user_id=data.get("user_id"),
        metadata=dict(data.get("metadata") or {}),
    )

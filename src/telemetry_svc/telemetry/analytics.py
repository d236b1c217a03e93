"""Derived analytics over the telemetry event log."""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Sequence

from .events import (
    ArtifactData,
    ErrorData,
    EventKind,
    OutcomeData,
    PlanData,
    PromptData,
    SystemData,
    TelemetryEvent,
)
from .session import TelemetrySession


DurationEstimator = Callable[[TelemetryEvent], float]


@dataclass(frozen=True, slots=True)
class AnalyticsThresholds:
    """Fixed thresholds for the improvement-opportunity heuristics."""
    error_rate_threshold: float = 0.10
    slow_event_ms: float = 5000.0
    slow_event_ratio: float = 0.20
    negative_feedback_threshold: float = 0.30

    # Length of the top-prompts and common-issues lists
    top_n: int = 10


@dataclass(frozen=True, slots=True)
class PromptStat:
    prompt: str
    count: int
    success_rate: float


@dataclass(frozen=True, slots=True)
class AgentStat:
    agent: str
    usage: int
    success_rate: float
    average_response_time: float


@dataclass(frozen=True, slots=True)
class IssueStat:
    issue: str
    count: int
    severity: str


@dataclass(frozen=True, slots=True)
class ImprovementOpportunity:
    area: str
    impact: str  # low | medium | high
    description: str


@dataclass(frozen=True, slots=True)
class AnalyticsSnapshot:
    """
    Aggregate statistics derived from the full event log.

    Never stored on its own; always recomputed from the log.
    """
    total_sessions: int = 0
    total_events: int = 0
    average_session_duration: float = 0.0  # milliseconds
    success_rate: float = 0.0
    average_quality: float = 0.0
    user_satisfaction: float = 0.0
    top_prompts: list[PromptStat] = field(default_factory=list)
    agent_performance: list[AgentStat] = field(default_factory=list)
    common_issues: list[IssueStat] = field(default_factory=list)
    improvement_opportunities: list[ImprovementOpportunity] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class SystemHealth:
    """Short-window health figures for the event stream."""
    uptime_ms: float
    event_rate: int  # events in the last hour
    error_rate: float
    session_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _number(value: Any) -> float:
    """Free-form metrics may hold anything; only real numbers count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def payload_duration_ms(event: TelemetryEvent) -> float:
    """
    Duration reported by the event's own payload, in milliseconds.

    Returns 0 for kinds that carry no timing information.
    """
    payload = event.payload
    if isinstance(payload, OutcomeData):
        return _number(payload.duration)
    if isinstance(payload, PlanData):
        return _number(payload.estimated_duration)
    if isinstance(payload, ArtifactData):
        return _number(payload.metadata.get("generation_time"))
    if isinstance(payload, SystemData):
        return _number(payload.metrics.get("response_time_ms"))
    return 0.0


def _ratio(part: int | float, whole: int | float) -> float:
    return part / whole if whole else 0.0


def _of_kind(events: Iterable[TelemetryEvent], kind: EventKind) -> list[TelemetryEvent]:
    return [e for e in events if e.kind == kind]


def _average_session_duration(sessions: Iterable[TelemetrySession]) -> float:
    durations = [s.duration_ms for s in sessions if s.duration_ms is not None]
    return _ratio(sum(durations), len(durations))


def _top_prompts(
    prompts: Sequence[TelemetryEvent],
    successful_sessions: set[str],
    top_n: int,
) -> list[PromptStat]:
    counts: dict[str, int] = {}
    successes: dict[str, int] = {}
    for event in prompts:
        payload: PromptData = event.payload
        if not payload.content:
            continue
        counts[payload.content] = counts.get(payload.content, 0) + 1
        if event.session_id in successful_sessions:
            successes[payload.content] = successes.get(payload.content, 0) + 1

    # sorted() is stable, so ties stay in first-seen order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:top_n]
    return [
        PromptStat(prompt=p, count=c, success_rate=_ratio(successes.get(p, 0), c))
        for p, c in ranked
    ]


def _agent_performance(systems: Sequence[TelemetryEvent]) -> list[AgentStat]:
    usage: dict[str, int] = {}
    completed: Counter[str] = Counter()
    response_times: dict[str, list[float]] = {}

    for event in systems:
        payload: SystemData = event.payload
        if not payload.agent:
            continue
        usage[payload.agent] = usage.get(payload.agent, 0) + 1
        if payload.status == "completed":
            completed[payload.agent] += 1
        rt = payload.metrics.get("response_time_ms")
        if isinstance(rt, (int, float)) and not isinstance(rt, bool):
            response_times.setdefault(payload.agent, []).append(float(rt))

    return [
        AgentStat(
            agent=agent,
            usage=count,
            success_rate=_ratio(completed[agent], count),
            average_response_time=_ratio(
                sum(response_times.get(agent, [])), len(response_times.get(agent, []))
            ),
        )
        for agent, count in usage.items()
    ]


def _common_issues(errors: Sequence[TelemetryEvent], top_n: int) -> list[IssueStat]:
    counts: dict[str, int] = {}
    severity: dict[str, str] = {}
    for event in errors:
        payload: ErrorData = event.payload
        if not payload.message:
            continue
        counts[payload.message] = counts.get(payload.message, 0) + 1
        severity.setdefault(payload.message, payload.severity or "medium")

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:top_n]
    return [IssueStat(issue=m, count=c, severity=severity[m]) for m, c in ranked]


def _improvement_opportunities(
    events: Sequence[TelemetryEvent],
    errors: Sequence[TelemetryEvent],
    feedback: Sequence[TelemetryEvent],
    thresholds: AnalyticsThresholds,
    duration_estimator: DurationEstimator,
) -> list[ImprovementOpportunity]:
    opportunities: list[ImprovementOpportunity] = []
    if not events:
        return opportunities

    if _ratio(len(errors), len(events)) > thresholds.error_rate_threshold:
        opportunities.append(ImprovementOpportunity(
            area="Error Reduction",
            impact="high",
            description="High error rate detected. Implement better error handling and validation.",
        ))

    slow = [e for e in events if duration_estimator(e) > thresholds.slow_event_ms]
    if len(slow) > len(events) * thresholds.slow_event_ratio:
        opportunities.append(ImprovementOpportunity(
            area="Performance",
            impact="medium",
            description=(
                f"Many events taking longer than {thresholds.slow_event_ms / 1000:g} seconds. "
                "Optimize performance."
            ),
        ))

    negative = [e for e in feedback if e.payload.sentiment == "negative"]
    if len(negative) > len(feedback) * thresholds.negative_feedback_threshold:
        opportunities.append(ImprovementOpportunity(
            area="User Experience",
            impact="high",
            description="High negative feedback rate. Improve user experience and interface.",
        ))

    return opportunities


def compute_analytics(
    events: Sequence[TelemetryEvent],
    sessions: Sequence[TelemetrySession],
    thresholds: AnalyticsThresholds | None = None,
    duration_estimator: DurationEstimator = payload_duration_ms,
) -> AnalyticsSnapshot:
    """Recompute every aggregate from the event log and session list."""
    thresholds = thresholds or AnalyticsThresholds()

    outcomes = _of_kind(events, EventKind.OUTCOME)
    artifacts = _of_kind(events, EventKind.ARTIFACT)
    feedback = _of_kind(events, EventKind.FEEDBACK)
    errors = _of_kind(events, EventKind.ERROR)

    successful = [e for e in outcomes if e.payload.succeeded]
    positive = [e for e in feedback if e.payload.sentiment == "positive"]
    total_quality = sum(e.payload.quality_score for e in artifacts)

    return AnalyticsSnapshot(
        total_sessions=len(sessions),
        total_events=len(events),
        average_session_duration=_average_session_duration(sessions),
        success_rate=_ratio(len(successful), len(outcomes)),
        average_quality=_ratio(total_quality, len(artifacts)),
        user_satisfaction=_ratio(len(positive), len(feedback)),
        top_prompts=_top_prompts(
            _of_kind(events, EventKind.PROMPT),
            {e.session_id for e in successful},
            thresholds.top_n,
        ),
        agent_performance=_agent_performance(_of_kind(events, EventKind.SYSTEM)),
        common_issues=_common_issues(errors, thresholds.top_n),
        improvement_opportunities=_improvement_opportunities(
            events, errors, feedback, thresholds, duration_estimator,
        ),
    )


def compute_system_health(
    events: Sequence[TelemetryEvent],
    session_count: int,
    now: datetime,
    window: timedelta = timedelta(hours=1),
) -> SystemHealth:
    """Event rate and error rate over the trailing ``window``."""
    recent = [e for e in events if e.timestamp > now - window]
    recent_errors = [e for e in recent if e.kind == EventKind.ERROR]
    uptime = (now - events[0].timestamp).total_seconds() * 1000.0 if events else 0.0
    return SystemHealth(
        uptime_ms=uptime,
        event_rate=len(recent),
        error_rate=_ratio(len(recent_errors), len(recent)),
        session_count=session_count,
    )

"""Telemetry manager - event log, session registry and lazy analytics."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from . import export
from .analytics import (
    AnalyticsSnapshot,
    AnalyticsThresholds,
    DurationEstimator,
    SystemHealth,
    compute_analytics,
    compute_system_health,
    payload_duration_ms,
)
from .events import (
    ArtifactData,
    DeltaData,
    ErrorData,
    EventPayload,
    FeedbackData,
    OutcomeData,
    PlanData,
    PromptData,
    SystemData,
    TelemetryEvent,
    event_from_dict,
    parse_timestamp,
)
from .session import SessionRegistry, TelemetrySession
from .sinks.log import log_event


logger = logging.getLogger(__name__)

EventDispatch = Callable[[TelemetryEvent], Any]
Clock = Callable[[], datetime]
IdFactory = Callable[[str], str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class TelemetryManager:
    """
    In-memory telemetry aggregator.

    Every recorded event is appended to a global log and, when its session
    is known, to that session's own list. Analytics are recomputed on the
    first read after any mutation and cached until the next one.

    Unknown session IDs are never an error: events for them still land in
    the global log, and ``end_session`` on them does nothing.

    Collaborators are injected so tests can pin time and IDs:

    - ``sink``: called with each new event after it is stored. Failures are
      logged and otherwise ignored.
    - ``clock``: source of event and session timestamps.
    - ``id_factory``: builds IDs from a prefix (``"event"`` / ``"session"``).
    - ``duration_estimator``: per-event duration used by the slow-event
      heuristic.
    """

    def __init__(
        self,
        sink: EventDispatch | None = log_event,
        clock: Clock = utc_now,
        id_factory: IdFactory = generate_id,
        duration_estimator: DurationEstimator = payload_duration_ms,
        thresholds: AnalyticsThresholds | None = None,
    ) -> None:
        self._sink = sink
        self._clock = clock
        self._id_factory = id_factory
        self._duration_estimator = duration_estimator
        self._thresholds = thresholds or AnalyticsThresholds()

        self._events: list[TelemetryEvent] = []
        self._sessions = SessionRegistry()
        self._lock = threading.RLock()

        self._analytics = AnalyticsSnapshot()
        self._dirty = False

    # =========================================================================
    # Recording
    # =========================================================================

    def record_event(
        self,
        session_id: str,
        payload: EventPayload,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """
        Record an event and return its generated ID.

        The payload is trusted as given; its variant decides the event kind.
        """
        with self._lock:
            event = TelemetryEvent.create(
                session_id=session_id,
                payload=payload,
                user_id=user_id,
                metadata=metadata,
                event_id=self._id_factory("event"),
                timestamp=self._clock(),
            )
            self._events.append(event)
            session = self._sessions.get(session_id)
            if session is not None:
                session.events.append(event)
            self._dirty = True

        self._dispatch(event)
        return event.id

    def record_prompt(self, data: PromptData, session_id: str, user_id: str | None = None) -> str:
        return self.record_event(session_id, data, user_id)

    def record_plan(self, data: PlanData, session_id: str, user_id: str | None = None) -> str:
        return self.record_event(session_id, data, user_id)

    def record_artifact(self, data: ArtifactData, session_id: str, user_id: str | None = None) -> str:
        return self.record_event(session_id, data, user_id)

    def record_feedback(self, data: FeedbackData, session_id: str, user_id: str | None = None) -> str:
        return self.record_event(session_id, data, user_id)

    def record_delta(self, data: DeltaData, session_id: str, user_id: str | None = None) -> str:
        return self.record_event(session_id, data, user_id)

    def record_outcome(self, data: OutcomeData, session_id: str, user_id: str | None = None) -> str:
        return self.record_event(session_id, data, user_id)

    def record_system(self, data: SystemData, session_id: str, user_id: str | None = None) -> str:
        return self.record_event(session_id, data, user_id)

    def record_error(self, data: ErrorData, session_id: str, user_id: str | None = None) -> str:
        return self.record_event(session_id, data, user_id)

    def _dispatch(self, event: TelemetryEvent) -> None:
        if self._sink is None:
            return
        try:
            self._sink(event)
        except Exception as e:
            logger.warning(f"Telemetry sink failed for {event.id}: {e}")

    # =========================================================================
    # Sessions
    # =========================================================================

    def start_session(
        self,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Open a new session starting now and return its ID."""
        with self._lock:
            session = TelemetrySession(
                id=self._id_factory("session"),
                user_id=user_id,
                start_time=self._clock(),
                metadata=dict(metadata or {}),
            )
            self._sessions.add(session)
            self._dirty = True
        logger.debug(f"Session started: {session.id} user={user_id}")
        return session.id

    def end_session(self, session_id: str) -> None:
        """Stamp the session's end time. Unknown IDs are ignored."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return
            session.end_time = self._clock()
            self._dirty = True
        logger.debug(f"Session ended: {session_id}")

    @property
    def clock(self) -> Clock:
        return self._clock

    def get_session(self, session_id: str) -> TelemetrySession | None:
        return self._sessions.get(session_id)

    def get_session_events(self, session_id: str) -> list[TelemetryEvent]:
        """All logged events naming ``session_id``, whether or not it was started."""
        with self._lock:
            return [e for e in self._events if e.session_id == session_id]

    @property
    def events(self) -> list[TelemetryEvent]:
        with self._lock:
            return list(self._events)

    @property
    def sessions(self) -> list[TelemetrySession]:
        return self._sessions.all_sessions()

    # =========================================================================
    # Analytics
    # =========================================================================

    def get_analytics(self) -> AnalyticsSnapshot:
        """Return the cached snapshot, recomputing it first if stale."""
        with self._lock:
            if self._dirty:
                self._analytics = compute_analytics(
                    self._events,
                    self._sessions.all_sessions(),
                    thresholds=self._thresholds,
                    duration_estimator=self._duration_estimator,
                )
                self._dirty = False
            return self._analytics

    def get_system_health(self) -> SystemHealth:
        with self._lock:
            return compute_system_health(self._events, self._sessions.count(), self._clock())

    @property
    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "events": len(self._events),
                "sessions": self._sessions.count(),
                "analytics_stale": self._dirty,
            }

    # =========================================================================
    # Retention / export
    # =========================================================================

    def clear_old_data(self, older_than: datetime) -> None:
        """
        Drop events stamped before ``older_than`` and sessions started before it.

        Events at or after the cutoff are kept, including inside the
        surviving sessions. A naive cutoff is taken to be UTC.
        """
        older_than = parse_timestamp(older_than)
        with self._lock:
            before = len(self._events)
            self._events = [e for e in self._events if e.timestamp >= older_than]
            removed_sessions = self._sessions.remove_started_before(older_than)
            for session in self._sessions.all_sessions():
                session.events = [e for e in session.events if e.timestamp >= older_than]
            self._dirty = True

        logger.info(
            f"Cleared telemetry older than {older_than.isoformat()}: "
            f"{before - len(self._events)} events, {removed_sessions} sessions"
        )

    def export_data(self, format: str = "json") -> str:
        """
        Serialize the current state.

        ``json`` emits ``{events, sessions, analytics}``; ``csv`` emits the
        event log only.

        Raises:
            ValueError: For any other format
        """
        if format == "json":
            analytics = self.get_analytics()
            with self._lock:
                return export.to_json(self._events, self._sessions.all_sessions(), analytics)
        if format == "csv":
            with self._lock:
                return export.to_csv(self._events)
        raise ValueError(f"Unsupported export format: {format!r} (expected one of {export.EXPORT_FORMATS})")

    def load_data(self, data: Mapping[str, Any]) -> None:
        """
        Replace all state with the contents of a parsed JSON export.

        Session event lists reuse the event objects from the global log.
        """
        events = [event_from_dict(e) for e in data.get("events") or []]
        by_id = {e.id: e for e in events}
        sessions = [TelemetrySession.from_dict(s, by_id) for s in data.get("sessions") or []]

        with self._lock:
            self._events = events
            self._sessions.clear()
            for session in sessions:
                self._sessions.add(session)
            self._dirty = True

        logger.info(f"Loaded {len(events)} events and {len(sessions)} sessions")

    def clear(self) -> None:
        """Forget every event and session."""
        with self._lock:
            self._events = []
            self._sessions.clear()
            self._dirty = True


_default_manager: TelemetryManager | None = None


def get_default_manager() -> TelemetryManager:
    """Process-wide manager, created on first use with default collaborators."""
    global _default_manager
    if _default_manager is None:
        _default_manager = TelemetryManager()
    return _default_manager


def set_default_manager(manager: TelemetryManager | None) -> None:
    """Replace (or with None, reset) the process-wide manager."""
    global _default_manager
    _default_manager = manager

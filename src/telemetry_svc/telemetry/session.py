"""Session records and the thread-safe session registry."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from .events import TelemetryEvent, parse_timestamp, event_from_dict

logger = logging.getLogger(__name__)


@dataclass
class TelemetrySession:
    """
    A bounded interval of user/system activity.

    Events are appended in the order they are recorded. Ending a session
    only stamps ``end_time``; later events are still attached.
    """
    id: str
    start_time: datetime
    user_id: str | None = None
    end_time: datetime | None = None
    events: list[TelemetryEvent] = field(default_factory=list)

    # user_agent, platform, version, referrer
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def duration_ms(self) -> float | None:
        """Elapsed time between start and end, or None while still open."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "events": [e.to_dict() for e in self.events],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        events_by_id: Mapping[str, TelemetryEvent] | None = None,
    ) -> TelemetrySession:
        """
        Rebuild a session from its dict form.

        When ``events_by_id`` is given, events already decoded from the
        global log are reused instead of being decoded a second time.
        """
        index = events_by_id or {}
        end_time = data.get("end_time")
        return cls(
            id=data["id"],
            user_id=data.get("user_id"),
            start_time=parse_timestamp(data["start_time"]),
            end_time=parse_timestamp(end_time) if end_time else None,
            events=[index.get(e["id"]) or event_from_dict(e) for e in data.get("events") or []],
            metadata=dict(data.get("metadata") or {}),
        )


class SessionRegistry:
    """
    Thread-safe in-memory registry of telemetry sessions.

    Preserves insertion order so listings follow session start order.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, TelemetrySession] = {}
        self._lock = threading.RLock()

    def add(self, session: TelemetrySession) -> None:
        """Add or replace a session."""
        with self._lock:
            self._sessions[session.id] = session

    def get(self, session_id: str) -> TelemetrySession | None:
        """Get a session by ID."""
        with self._lock:
            return self._sessions.get(session_id)

    def exists(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def all_sessions(self) -> list[TelemetrySession]:
        """Get all sessions in start order."""
        with self._lock:
            return list(self._sessions.values())

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def remove_started_before(self, cutoff: datetime) -> int:
        """
        Drop every session whose start time is strictly before ``cutoff``.

        Returns:
            Number of sessions removed
        """
        with self._lock:
            stale = [sid for sid, s in self._sessions.items() if s.start_time < cutoff]
            for sid in stale:
                del self._sessions[sid]
            if stale:
                logger.debug(f"Removed {len(stale)} sessions started before {cutoff.isoformat()}")
            return len(stale)

    def clear(self) -> None:
        """Clear all sessions."""
        with self._lock:
            self._sessions.clear()

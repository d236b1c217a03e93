"""Export encoders for telemetry state."""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Iterable, Mapping

from .analytics import AnalyticsSnapshot
from .events import TelemetryEvent
from .session import TelemetrySession


EXPORT_FORMATS = ("json", "csv")

CSV_COLUMNS = ["id", "timestamp", "session_id", "user_id", "kind", "summary"]


def to_json(
    events: Iterable[TelemetryEvent],
    sessions: Iterable[TelemetrySession],
    analytics: AnalyticsSnapshot,
    indent: int | None = 2,
) -> str:
    """Serialize the full state as ``{events, sessions, analytics}``."""
    return json.dumps(
        {
            "events": [e.to_dict() for e in events],
            "sessions": [s.to_dict() for s in sessions],
            "analytics": analytics.to_dict(),
        },
        indent=indent,
        default=str,
    )


def to_csv(events: Iterable[TelemetryEvent]) -> str:
    """Flat event table, one row per event in log order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for event in events:
        writer.writerow([
            event.id,
            event.timestamp.isoformat(),
            event.session_id,
            event.user_id or "",
            event.kind.value,
            event.payload.describe(),
        ])
    return buffer.getvalue()


def parse_json(text: str) -> Mapping[str, Any]:
    """
    Parse a JSON export.

    Raises:
        ValueError: If the text is not a JSON object with an ``events`` list
    """
    data = json.loads(text)
    if not isinstance(data, dict) or not isinstance(data.get("events"), list):
        raise ValueError("Not a telemetry export: expected an object with an 'events' list")
    return data

"""Console sink for development/debugging."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass

from ..events import TelemetryEvent
from .base import TelemetrySink, filter_kinds


@dataclass
class ConsoleSink(TelemetrySink):
    """
    Prints events as they are flushed, optionally only some kinds.

    ``compact`` is one line per event; ``pretty`` is a short block with the
    payload's own description, e.g.::

        [TELEMETRY] error event_7 @ 2026-03-01T09:00:00+00:00
            session s-1, user dev@example.com
            Schema validation failed
    """
    stream: str = "stdout"  # stdout | stderr
    format: str = "json"  # json | compact | pretty

    # Event kinds to print; None prints all
    kinds: list[str] | None = None

    prefix: str = "[TELEMETRY] "

    def __post_init__(self):
        # Validate kind names up front
        filter_kinds([], self.kinds)

    async def send(self, events: list[TelemetryEvent]) -> None:
        out = sys.stdout if self.stream == "stdout" else sys.stderr
        for event in filter_kinds(events, self.kinds):
            print(f"{self.prefix}{self._format_event(event)}", file=out)

    def _format_event(self, event: TelemetryEvent) -> str:
        if self.format == "compact":
            return (
                f"{event.timestamp.isoformat()} {event.session_id} "
                f"{event.user_id or '-'} {event.kind.value} {event.payload.describe()}"
            )
        if self.format == "pretty":
            indent = " " * 4
            return (
                f"{event.kind.value} {event.id} @ {event.timestamp.isoformat()}\n"
                f"{indent}session {event.session_id}, user {event.user_id or '(anonymous)'}\n"
                f"{indent}{event.payload.describe() or '(no description)'}"
            )
        return json.dumps(event.to_dict(), default=str)

"""Sink that forwards events to the standard logging system."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from ..events import TelemetryEvent
from .base import TelemetrySink


logger = logging.getLogger(__name__)


def log_event(event: TelemetryEvent, level: int = logging.DEBUG) -> None:
    """Log a single event. Used as the manager's default dispatch target."""
    if logger.isEnabledFor(level):
        logger.log(
            level,
            f"Telemetry event: {event.kind.value} {event.id} "
            f"session={event.session_id} {event.payload.describe()!r}",
        )


@dataclass
class LogSink(TelemetrySink):
    """
    Sink that writes each event to a logger.

    The default sink when nothing else is configured.
    """
    # Logging level name
    level: str = "INFO"

    # Emit full JSON bodies instead of one-line summaries
    full: bool = False

    async def send(self, events: list[TelemetryEvent]) -> None:
        level = logging.getLevelName(self.level.upper())
        if not isinstance(level, int):
            level = logging.INFO

        for event in events:
            if self.full:
                logger.log(level, json.dumps(event.to_dict(), default=str))
            else:
                log_event(event, level)

"""Shared test fixtures for the telemetry service tests.

The manager is built with a hand-driven clock, sequential IDs and a
recording sink so every timestamp and ID in a test is predictable.
"""

from datetime import datetime, timedelta, timezone

import pytest

from telemetry_svc.telemetry.manager import TelemetryManager


START = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class SequentialIds:
    """ID factory producing event_1, event_2, session_1, ..."""

    def __init__(self):
        self._counters: dict[str, int] = {}

    def __call__(self, prefix: str) -> str:
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}_{self._counters[prefix]}"


class RecordingSink:
    def __init__(self):
        self.events = []

    def __call__(self, event) -> None:
        self.events.append(event)


# =============================================================================
# Manager Fixtures
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def manager(clock, sink) -> TelemetryManager:
    """Manager with deterministic collaborators."""
    return TelemetryManager(sink=sink, clock=clock, id_factory=SequentialIds())



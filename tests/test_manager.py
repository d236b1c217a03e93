"""Tests for the telemetry manager."""

import json
from datetime import timedelta

import pytest

from factories import artifact, error, feedback, outcome, prompt, system
from telemetry_svc.telemetry.events import EventKind
from telemetry_svc.telemetry.manager import (
    TelemetryManager,
    get_default_manager,
    set_default_manager,
)


class TestRecordEvent:
    def test_assigns_id_and_clock_timestamp(self, manager, clock):
        event_id = manager.record_event("s-1", prompt())

        assert event_id == "event_1"
        event = manager.events[0]
        assert event.timestamp == clock.now
        assert event.kind == EventKind.PROMPT
        assert event.session_id == "s-1"

    def test_appends_to_existing_session(self, manager):
        session_id = manager.start_session(user_id="dev@example.com")

        manager.record_event(session_id, prompt())
        manager.record_event(session_id, outcome())

        session = manager.get_session(session_id)
        assert [e.kind for e in session.events] == [EventKind.PROMPT, EventKind.OUTCOME]

    def test_unknown_session_goes_to_global_log_only(self, manager):
        manager.record_event("never-started", prompt())

        assert manager.get_session("never-started") is None
        assert len(manager.events) == 1
        assert len(manager.get_session_events("never-started")) == 1

    def test_dispatches_to_sink(self, manager, sink):
        event_id = manager.record_event("s-1", error())

        assert [e.id for e in sink.events] == [event_id]

    def test_sink_failure_is_swallowed(self, clock):
        def broken_sink(event):
            raise RuntimeError("downstream unavailable")

        manager = TelemetryManager(sink=broken_sink, clock=clock)
        event_id = manager.record_event("s-1", prompt())

        assert event_id
        assert manager.get_analytics().total_events == 1

    def test_no_sink(self, clock):
        manager = TelemetryManager(sink=None, clock=clock)
        manager.record_event("s-1", prompt())
        assert len(manager.events) == 1

    def test_typed_helpers_set_kind(self, manager):
        manager.record_prompt(prompt(), "s-1")
        manager.record_outcome(outcome(), "s-1")
        manager.record_artifact(artifact(), "s-1")
        manager.record_feedback(feedback(), "s-1")
        manager.record_system(system(), "s-1")
        manager.record_error(error(), "s-1", user_id="u-1")

        kinds = [e.kind for e in manager.events]
        assert kinds == [
            EventKind.PROMPT,
            EventKind.OUTCOME,
            EventKind.ARTIFACT,
            EventKind.FEEDBACK,
            EventKind.SYSTEM,
            EventKind.ERROR,
        ]
        assert manager.events[-1].user_id == "u-1"

    @pytest.mark.parametrize("count", [0, 1, 7, 25])
    def test_total_events_matches_calls(self, manager, count):
        for i in range(count):
            manager.record_event(f"s-{i % 3}", prompt(f"prompt {i}"))

        assert manager.get_analytics().total_events == count


class TestSessions:
    def test_start_session(self, manager, clock):
        session_id = manager.start_session(user_id="u-1", metadata={"platform": "web"})

        session = manager.get_session(session_id)
        assert session.start_time == clock.now
        assert session.end_time is None
        assert session.metadata == {"platform": "web"}
        assert session.is_open

    def test_end_session_sets_end_time(self, manager, clock):
        session_id = manager.start_session()
        clock.advance(seconds=90)

        manager.end_session(session_id)

        assert manager.get_session(session_id).duration_ms == 90_000

    def test_end_unknown_session_is_noop(self, manager):
        manager.end_session("missing")
        assert manager.sessions == []

    def test_start_then_end_counts_in_average(self, manager):
        session_id = manager.start_session()
        manager.end_session(session_id)

        snapshot = manager.get_analytics()
        assert snapshot.total_sessions == 1
        assert snapshot.average_session_duration >= 0

    def test_events_after_end_are_still_attached(self, manager):
        session_id = manager.start_session()
        manager.end_session(session_id)

        manager.record_event(session_id, prompt())

        assert len(manager.get_session(session_id).events) == 1


class TestAnalyticsCache:
    def test_initial_snapshot_is_zeroed(self, manager):
        snapshot = manager.get_analytics()
        assert snapshot.total_events == 0
        assert snapshot.success_rate == 0
        assert snapshot.top_prompts == []

    def test_cached_until_mutation(self, manager):
        manager.record_event("s-1", outcome())
        first = manager.get_analytics()

        assert manager.get_analytics() is first
        assert manager.stats["analytics_stale"] is False

        manager.record_event("s-1", outcome("failure"))
        assert manager.stats["analytics_stale"] is True
        assert manager.get_analytics() is not first

    def test_success_rate_two_of_three(self, manager):
        for kind in ("success", "success", "failure"):
            manager.record_event("s-1", outcome(kind))

        assert manager.get_analytics().success_rate == pytest.approx(2 / 3)


class TestClearOldData:
    def test_cutoff_boundary(self, manager, clock):
        manager.record_event("s-1", prompt("old"))
        clock.advance(minutes=10)
        cutoff = clock.now
        manager.record_event("s-1", prompt("at cutoff"))
        clock.advance(minutes=10)
        manager.record_event("s-1", prompt("new"))

        manager.clear_old_data(cutoff)

        remaining = [e.payload.content for e in manager.events]
        assert remaining == ["at cutoff", "new"]
        assert all(e.timestamp >= cutoff for e in manager.events)

    def test_drops_sessions_started_before_cutoff(self, manager, clock):
        old = manager.start_session()
        clock.advance(days=2)
        new = manager.start_session()

        manager.clear_old_data(clock.now - timedelta(days=1))

        assert manager.get_session(old) is None
        assert manager.get_session(new) is not None
        assert manager.get_analytics().total_sessions == 1

    def test_naive_cutoff_is_utc(self, manager, clock):
        manager.record_event("s-1", prompt("old"))
        clock.advance(minutes=10)
        manager.record_event("s-1", prompt("new"))

        manager.clear_old_data(clock.now.replace(tzinfo=None))

        assert [e.payload.content for e in manager.events] == ["new"]

    def test_marks_analytics_stale(self, manager, clock):
        manager.record_event("s-1", prompt())
        assert manager.get_analytics().total_events == 1

        clock.advance(seconds=1)
        manager.clear_old_data(clock.now)

        assert manager.get_analytics().total_events == 0


class TestExport:
    def test_json_round_trip_counts(self, manager):
        s1 = manager.start_session()
        manager.start_session()
        manager.record_event(s1, prompt())
        manager.record_event(s1, outcome())
        manager.record_event("orphan", error())

        data = json.loads(manager.export_data("json"))

        assert len(data["events"]) == len(manager.events)
        assert len(data["sessions"]) == len(manager.sessions)
        assert data["analytics"]["total_events"] == 3

    def test_csv_has_row_per_event(self, manager):
        manager.record_event("s-1", prompt("Add login page"))
        manager.record_event("s-1", error("Timeout"))

        lines = manager.export_data("csv").strip().splitlines()

        assert lines[0] == "id,timestamp,session_id,user_id,kind,summary"
        assert len(lines) == 3
        assert lines[1].endswith("prompt,Add login page")

    def test_unknown_format(self, manager):
        with pytest.raises(ValueError, match="Unsupported export format"):
            manager.export_data("xml")

    def test_load_data_restores_state(self, manager, clock):
        session_id = manager.start_session(user_id="u-1")
        manager.record_event(session_id, prompt())
        manager.record_event(session_id, outcome())
        manager.end_session(session_id)
        exported = json.loads(manager.export_data())

        restored = TelemetryManager(sink=None, clock=clock)
        restored.load_data(exported)

        assert len(restored.events) == 2
        session = restored.get_session(session_id)
        assert session.user_id == "u-1"
        assert session.end_time is not None
        # session events are the same objects as the global log
        assert session.events[0] is restored.events[0]
        assert restored.get_analytics().success_rate == 1.0


class TestSystemHealth:
    def test_empty(self, manager):
        health = manager.get_system_health()
        assert health.uptime_ms == 0
        assert health.event_rate == 0
        assert health.error_rate == 0

    def test_last_hour_window(self, manager, clock):
        manager.record_event("s-1", error())
        clock.advance(hours=2)
        manager.record_event("s-1", prompt())
        manager.record_event("s-1", error())
        manager.start_session()

        health = manager.get_system_health()

        assert health.uptime_ms == 2 * 3600 * 1000
        assert health.event_rate == 2
        assert health.error_rate == 0.5
        assert health.session_count == 1


class TestDefaultManager:
    def test_lazily_created_and_replaceable(self):
        set_default_manager(None)
        try:
            first = get_default_manager()
            assert get_default_manager() is first

            replacement = TelemetryManager(sink=None)
            set_default_manager(replacement)
            assert get_default_manager() is replacement
        finally:
            set_default_manager(None)

"""Tests for analytics aggregation."""

import pytest

from factories import artifact, error, feedback, outcome, prompt, system
from telemetry_svc.telemetry.analytics import (
    AnalyticsThresholds,
    compute_analytics,
    payload_duration_ms,
)
from telemetry_svc.telemetry.events import PlanData, TelemetryEvent
from telemetry_svc.telemetry.manager import TelemetryManager


def _events(*payloads, session_id="s-1"):
    return [TelemetryEvent.create(session_id=session_id, payload=p) for p in payloads]


class TestRates:
    def test_empty_log_is_all_zero(self):
        snapshot = compute_analytics([], [])

        assert snapshot.total_events == 0
        assert snapshot.success_rate == 0
        assert snapshot.average_quality == 0
        assert snapshot.user_satisfaction == 0
        assert snapshot.improvement_opportunities == []

    def test_average_quality_counts_missing_scores_as_zero(self):
        snapshot = compute_analytics(_events(artifact(0.9), artifact(0.5), artifact(None)), [])
        assert snapshot.average_quality == pytest.approx(1.4 / 3)

    def test_user_satisfaction(self):
        events = _events(feedback("positive"), feedback("negative"), feedback(None), feedback("positive"))
        assert compute_analytics(events, []).user_satisfaction == 0.5


class TestTopPrompts:
    def test_sorted_by_count_and_capped(self):
        payloads = [prompt(f"p{i}") for i in range(12)] + [prompt("p5"), prompt("p5"), prompt("p7")]
        top = compute_analytics(_events(*payloads), []).top_prompts

        assert len(top) == 10
        assert (top[0].prompt, top[0].count) == ("p5", 3)
        assert (top[1].prompt, top[1].count) == ("p7", 2)
        # ties keep first-seen order
        assert [p.prompt for p in top[2:5]] == ["p0", "p1", "p2"]

    def test_empty_content_skipped(self):
        top = compute_analytics(_events(prompt(""), prompt("real")), []).top_prompts
        assert [p.prompt for p in top] == ["real"]

    def test_success_rate_follows_session_outcome(self):
        events = (
            _events(prompt("deploy"), outcome("success"), session_id="good")
            + _events(prompt("deploy"), outcome("failure"), session_id="bad")
        )
        top = compute_analytics(events, []).top_prompts
        assert top[0].success_rate == 0.5


class TestAgentsAndIssues:
    def test_agent_performance(self):
        events = _events(
            system("architect", "completed", response_time_ms=200),
            system("architect", "failed", response_time_ms=400),
            system("ui-ux", "completed"),
            system(None, "completed"),
        )
        agents = {a.agent: a for a in compute_analytics(events, []).agent_performance}

        assert set(agents) == {"architect", "ui-ux"}
        assert agents["architect"].usage == 2
        assert agents["architect"].success_rate == 0.5
        assert agents["architect"].average_response_time == 300
        assert agents["ui-ux"].average_response_time == 0

    def test_common_issues_keep_first_severity(self):
        events = _events(
            error("Timeout", "low"),
            error("Build failed", "critical"),
            error("Timeout", "high"),
        )
        issues = compute_analytics(events, []).common_issues

        assert [(i.issue, i.count, i.severity) for i in issues] == [
            ("Timeout", 2, "low"),
            ("Build failed", 1, "critical"),
        ]


class TestImprovementOpportunities:
    def _areas(self, events, **kwargs):
        return [o.area for o in compute_analytics(events, [], **kwargs).improvement_opportunities]

    def test_error_rate_above_threshold(self):
        events = _events(error(), *[prompt(f"p{i}") for i in range(5)])
        assert "Error Reduction" in self._areas(events)

    def test_error_rate_at_threshold_is_not_flagged(self):
        events = _events(error(), *[prompt(f"p{i}") for i in range(9)])
        assert "Error Reduction" not in self._areas(events)

    def test_slow_events_use_injected_estimator(self):
        events = _events(*[prompt(f"p{i}") for i in range(4)])

        assert "Performance" in self._areas(events, duration_estimator=lambda e: 6000)
        assert "Performance" not in self._areas(events, duration_estimator=lambda e: 10)

    def test_default_estimator_reads_payload_duration(self):
        events = _events(outcome(duration=8000), prompt())
        assert "Performance" in self._areas(events)

    def test_negative_feedback(self):
        events = _events(feedback("negative"), feedback("positive"))
        assert "User Experience" in self._areas(events)

    def test_custom_thresholds(self):
        events = _events(feedback("negative"), *[feedback("positive") for _ in range(3)])
        strict = AnalyticsThresholds(negative_feedback_threshold=0.2)

        assert "User Experience" not in self._areas(events)
        assert "User Experience" in self._areas(events, thresholds=strict)


class TestPayloadDuration:
    def test_known_payloads(self):
        plan = PlanData(id="plan-1", name="CRUD", estimated_duration=3000)
        assert payload_duration_ms(_events(plan)[0]) == 3000
        assert payload_duration_ms(_events(system(response_time_ms=42))[0]) == 42
        assert payload_duration_ms(_events(prompt())[0]) == 0

    def test_non_numeric_metrics_count_as_zero(self):
        assert payload_duration_ms(_events(system(response_time_ms="fast"))[0]) == 0
        assert payload_duration_ms(_events(system(response_time_ms=True))[0]) == 0

    def test_bad_metrics_do_not_break_analytics(self):
        events = _events(system("architect", response_time_ms="fast"), outcome(duration=8000))

        snapshot = compute_analytics(events, [])

        assert snapshot.agent_performance[0].average_response_time == 0
        assert "Performance" in [o.area for o in snapshot.improvement_opportunities]


def test_manager_average_session_duration_ignores_open_sessions(manager, clock):
    a = manager.start_session()
    b = manager.start_session()
    manager.start_session()
    clock.advance(seconds=10)
    manager.end_session(a)
    clock.advance(seconds=10)
    manager.end_session(b)

    assert manager.get_analytics().average_session_duration == 15_000


def test_manager_uses_configured_thresholds(clock):
    manager = TelemetryManager(sink=None, clock=clock, thresholds=AnalyticsThresholds(top_n=2))
    for content in ("a", "b", "c"):
        manager.record_event("s-1", prompt(content))

    assert len(manager.get_analytics().top_prompts) == 2

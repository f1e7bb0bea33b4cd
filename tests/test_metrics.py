"""Unit tests for the metrics engine.

Tests cover streak counting, the kitty health bands, workout counters,
latest-log lookup, and per-exercise max-weight history.

Rules:
- No I/O; every test pins "today"/"now" explicitly.
- Dates are naive local datetimes at noon unless a test needs otherwise.
"""

from datetime import date, datetime, time, timedelta, timezone

from musclekitty.metrics import (
    compute_health,
    compute_streak,
    compute_workout_stats,
    exercise_history,
    latest_workout_log,
    workout_days,
)
from musclekitty.models import ExerciseLog, KittyHealth, SetLog, WorkoutLog

TODAY = date(2024, 6, 15)
NOW = datetime(2024, 6, 15, 12, 0)


def _make_log(
    when: datetime,
    workout_id: str = "w1",
    exercises: list[ExerciseLog] | None = None,
) -> WorkoutLog:
    """Create a minimal WorkoutLog for testing."""
    return WorkoutLog(
        workout_id=workout_id,
        workout_name="Leg Day",
        date=when,
        exercises=exercises or [],
    )


def _days_ago(n: int, hour: int = 12) -> WorkoutLog:
    return _make_log(datetime.combine(TODAY - timedelta(days=n), time(hour)))


# ── compute_streak ───────────────────────────────────────────────────────────


class TestComputeStreak:
    def test_no_logs_is_zero(self) -> None:
        assert compute_streak([], today=TODAY) == 0

    def test_today_yesterday_and_day_before(self) -> None:
        logs = [_days_ago(0), _days_ago(1), _days_ago(2)]
        assert compute_streak(logs, today=TODAY) == 3

    def test_gap_at_yesterday_and_today_is_zero(self) -> None:
        assert compute_streak([_days_ago(2)], today=TODAY) == 0

    def test_today_only_is_one(self) -> None:
        assert compute_streak([_days_ago(0)], today=TODAY) == 1

    def test_today_does_not_chain_past_missing_yesterday(self) -> None:
        # History two and three days ago is ignored without yesterday.
        logs = [_days_ago(0), _days_ago(2), _days_ago(3)]
        assert compute_streak(logs, today=TODAY) == 1

    def test_streak_ending_yesterday(self) -> None:
        logs = [_days_ago(1), _days_ago(2), _days_ago(3)]
        assert compute_streak(logs, today=TODAY) == 3

    def test_walk_stops_at_first_gap(self) -> None:
        logs = [_days_ago(1), _days_ago(2), _days_ago(4), _days_ago(5)]
        assert compute_streak(logs, today=TODAY) == 2

    def test_same_day_logs_collapse(self) -> None:
        logs = [_days_ago(1, hour=8), _days_ago(1, hour=8), _days_ago(1, hour=20)]
        assert compute_streak(logs, today=TODAY) == 1

    def test_order_does_not_matter(self) -> None:
        logs = [_days_ago(2), _days_ago(0), _days_ago(1)]
        assert compute_streak(logs, today=TODAY) == 3

    def test_future_log_is_not_counted_as_today(self) -> None:
        logs = [_make_log(datetime(2024, 6, 16, 12, 0))]
        assert compute_streak(logs, today=TODAY) == 0

    def test_aware_timestamps_use_local_day(self) -> None:
        moment = datetime(2024, 6, 14, 12, 0).astimezone().astimezone(timezone.utc)
        assert workout_days([_make_log(moment)]) == {date(2024, 6, 14)}


# ── compute_health ───────────────────────────────────────────────────────────


class TestComputeHealth:
    def _health_at(self, days: float) -> KittyHealth:
        return compute_health([_make_log(NOW - timedelta(days=days))], now=NOW)

    def test_no_logs_is_poor_zero(self) -> None:
        health = compute_health([], now=NOW)
        assert health.percentage == 0
        assert health.status == "poor"
        assert "needs your help" in health.message

    def test_two_days_is_excellent(self) -> None:
        health = self._health_at(2)
        assert health.percentage == 100
        assert health.status == "excellent"

    def test_three_days_boundary_is_excellent(self) -> None:
        assert self._health_at(3).percentage == 100

    def test_five_days_is_good(self) -> None:
        health = self._health_at(5)
        assert (health.percentage, health.status) == (75, "good")

    def test_ten_days_is_fair(self) -> None:
        health = self._health_at(10)
        assert (health.percentage, health.status) == (50, "fair")

    def test_fourteen_days_boundary_is_fair(self) -> None:
        assert self._health_at(14).percentage == 50

    def test_twenty_days_is_poor_25(self) -> None:
        health = self._health_at(20)
        assert (health.percentage, health.status) == (25, "poor")

    def test_forty_days_is_poor_zero(self) -> None:
        health = self._health_at(40)
        assert (health.percentage, health.status) == (0, "poor")

    def test_partial_days_are_floored(self) -> None:
        # 3 days and 23 hours still counts as 3 days.
        assert self._health_at(3.99).percentage == 100

    def test_only_most_recent_log_matters(self) -> None:
        logs = [
            _make_log(NOW - timedelta(days=60)),
            _make_log(NOW - timedelta(days=1)),
            _make_log(NOW - timedelta(days=45)),
        ]
        assert compute_health(logs, now=NOW).status == "excellent"

    def test_future_log_taken_at_face_value(self) -> None:
        health = compute_health([_make_log(NOW + timedelta(days=5))], now=NOW)
        assert health.percentage == 100

    def test_health_never_increases_with_age(self) -> None:
        percentages = [self._health_at(d).percentage for d in range(0, 45)]
        assert percentages == sorted(percentages, reverse=True)


# ── compute_workout_stats ────────────────────────────────────────────────────


class TestComputeWorkoutStats:
    def test_empty(self) -> None:
        stats = compute_workout_stats([], now=NOW)
        assert stats.total == 0
        assert stats.this_month == 0

    def test_counts_current_month_only(self) -> None:
        logs = [
            _make_log(datetime(2024, 6, 1, 9)),
            _make_log(datetime(2024, 6, 14, 9)),
            _make_log(datetime(2024, 5, 31, 9)),
            _make_log(datetime(2023, 6, 10, 9)),
        ]
        stats = compute_workout_stats(logs, now=NOW)
        assert stats.total == 4
        assert stats.this_month == 2


# ── latest_workout_log / exercise_history ────────────────────────────────────


def _bench(*weights: float) -> ExerciseLog:
    return ExerciseLog(
        exercise_id="bench",
        exercise_name="Bench Press",
        sets=[SetLog(set_number=i + 1, reps=8, weight=w) for i, w in enumerate(weights)],
    )


class TestLatestWorkoutLog:
    def test_none_when_no_matching_workout(self) -> None:
        assert latest_workout_log([_make_log(NOW, workout_id="other")], "w1") is None

    def test_picks_newest(self) -> None:
        old = _make_log(NOW - timedelta(days=3))
        new = _make_log(NOW - timedelta(days=1))
        assert latest_workout_log([old, new], "w1") is new


class TestExerciseHistory:
    def test_oldest_first_with_max_weight(self) -> None:
        logs = [
            _make_log(NOW - timedelta(days=1), exercises=[_bench(60, 70, 65)]),
            _make_log(NOW - timedelta(days=3), exercises=[_bench(50, 55)]),
        ]
        history = exercise_history(logs, "w1", "bench")
        assert [p.max_weight for p in history] == [55, 70]

    def test_missing_exercise_counts_as_zero(self) -> None:
        logs = [_make_log(NOW, exercises=[])]
        history = exercise_history(logs, "w1", "bench")
        assert len(history) == 1
        assert history[0].max_weight == 0

    def test_limit_keeps_most_recent(self) -> None:
        logs = [
            _make_log(NOW - timedelta(days=d), exercises=[_bench(float(100 - d))])
            for d in range(5)
        ]
        history = exercise_history(logs, "w1", "bench", limit=2)
        assert [p.max_weight for p in history] == [99, 100]

    def test_other_workouts_ignored(self) -> None:
        logs = [_make_log(NOW, workout_id="w2", exercises=[_bench(80)])]
        assert exercise_history(logs, "w1", "bench") == []

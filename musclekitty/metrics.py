"""Derived metrics over a user's workout log history.

Everything here is a pure function of the logs passed in (plus "now", which
callers may pin for reproducibility). Filtering logs by owner is the log
source's job, not this module's.

Dates are compared as local calendar days: timezone-aware timestamps are
converted to local time, naive ones are taken to already be local.
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from musclekitty.models import (
    ExerciseHistoryPoint,
    KittyHealth,
    WorkoutLog,
    WorkoutStats,
)

# (max days since last workout, percentage, status, message), ascending.
_HEALTH_BANDS: list[tuple[int, int, str, str]] = [
    (3, 100, "excellent", "Excellent! Your kitty is thriving with your consistent workouts!"),
    (7, 75, "good", "Your kitty is happy but would love another workout soon!"),
    (14, 50, "fair", "Your kitty is getting restless. Time for a workout!"),
    (30, 25, "poor", "Your kitty misses exercising with you. Don't wait any longer!"),
]

_NEGLECTED_MESSAGE = "Your kitty needs your help! Start working out to improve your kitty's health."


def _local(moment: datetime) -> datetime:
    """Return *moment* as an aware datetime in the local timezone."""
    return moment.astimezone()


def workout_days(logs: Iterable[WorkoutLog]) -> set[date]:
    """Return the distinct local calendar days that have at least one log."""
    return {_local(log.date).date() for log in logs}


def compute_streak(logs: Iterable[WorkoutLog], today: date | None = None) -> int:
    """Count consecutive workout days ending yesterday or today.

    The streak must be anchored yesterday before today can extend it: a
    workout today with none yesterday is a streak of exactly 1, however
    much history lies further back.

    Args:
        logs: Workout logs in any order.
        today: Reference day; defaults to the current local date.

    Returns:
        Streak length in days, 0 when neither today nor yesterday has a log.
    """
    days = workout_days(logs)
    if today is None:
        today = date.today()
    yesterday = today - timedelta(days=1)

    if yesterday not in days:
        return 1 if today in days else 0

    streak = 0
    check = yesterday
    while check in days:
        streak += 1
        check -= timedelta(days=1)

    if today in days:
        streak += 1
    return streak


def compute_health(logs: Iterable[WorkoutLog], now: datetime | None = None) -> KittyHealth:
    """Rate the kitty's health from the time since the most recent workout.

    Only the most recent log matters. Elapsed time is measured in whole
    days (floored); a log dated in the future counts as zero or fewer days.

    Args:
        logs: Workout logs in any order.
        now: Reference time; defaults to the current time.

    Returns:
        KittyHealth for the matching recency band, or the 0% / poor result
        when there are no logs or the last one is over 30 days old.
    """
    moments = [_local(log.date) for log in logs]
    if not moments:
        return KittyHealth(percentage=0, status="poor", message=_NEGLECTED_MESSAGE)

    reference = _local(now) if now is not None else datetime.now().astimezone()
    days_since = (reference - max(moments)).days

    for max_days, percentage, status, message in _HEALTH_BANDS:
        if days_since <= max_days:
            return KittyHealth(
                percentage=percentage,  # type: ignore[arg-type]
                status=status,  # type: ignore[arg-type]
                message=message,
            )
    return KittyHealth(percentage=0, status="poor", message=_NEGLECTED_MESSAGE)


def compute_workout_stats(
    logs: Iterable[WorkoutLog], now: datetime | None = None
) -> WorkoutStats:
    """Count all workouts and those in the current calendar month."""
    reference = _local(now) if now is not None else datetime.now().astimezone()
    total = 0
    this_month = 0
    for log in logs:
        total += 1
        moment = _local(log.date)
        if moment.year == reference.year and moment.month == reference.month:
            this_month += 1
    return WorkoutStats(this_month=this_month, total=total)


def latest_workout_log(logs: Iterable[WorkoutLog], workout_id: str) -> WorkoutLog | None:
    """Return the most recent log of the given workout, or None."""
    matching = [log for log in logs if log.workout_id == workout_id]
    if not matching:
        return None
    return max(matching, key=lambda log: _local(log.date))


def exercise_history(
    logs: Iterable[WorkoutLog],
    workout_id: str,
    exercise_id: str,
    limit: int = 10,
) -> list[ExerciseHistoryPoint]:
    """Heaviest set of one exercise across the latest logs of a workout.

    Args:
        logs: Workout logs in any order.
        workout_id: Workout whose logs are considered.
        exercise_id: Exercise to extract from each log.
        limit: Number of most recent logs to include.

    Returns:
        One point per log, oldest first. A log where the exercise is
        missing or has no sets contributes a max weight of 0.
    """
    matching = sorted(
        (log for log in logs if log.workout_id == workout_id),
        key=lambda log: _local(log.date),
        reverse=True,
    )[:limit]

    history: list[ExerciseHistoryPoint] = []
    for log in matching:
        exercise = next((ex for ex in log.exercises if ex.exercise_id == exercise_id), None)
        max_weight = 0.0
        if exercise is not None and exercise.sets:
            max_weight = max(s.weight for s in exercise.sets)
        history.append(ExerciseHistoryPoint(date=log.date, max_weight=max_weight))

    history.reverse()
    return history

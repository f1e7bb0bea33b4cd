"""Database service layer: async access to workout logs and kitty profiles.

All functions are async and require a SQLAlchemy ``AsyncSession`` injected
via the ``get_db`` FastAPI dependency.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from musclekitty.db_models import KittyProfileRow, WorkoutLogRow
from musclekitty.models import (
    ExerciseLog,
    KittyProfile,
    ProfileResolution,
    WorkoutLog,
)

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = {"kitty_name", "kitty_breed_id", "xp", "level", "coins"}


# ── Internal helpers ──────────────────────────────────────────────────────────


def _as_utc(moment: datetime) -> datetime:
    """SQLite drops tzinfo; stored values are UTC, naive input is local time."""
    return moment.astimezone(timezone.utc)


def _row_to_log(row: WorkoutLogRow) -> WorkoutLog:
    """Convert an ORM ``WorkoutLogRow`` to a ``WorkoutLog`` Pydantic model."""
    completed = row.date_completed
    if completed.tzinfo is None:
        completed = completed.replace(tzinfo=timezone.utc)
    return WorkoutLog(
        id=row.id,
        user_id=row.user_id,
        workout_id=row.workout_id,
        workout_name=row.workout_name,
        date=completed,
        exercises=[ExerciseLog.model_validate(e) for e in json.loads(row.exercises_json)],
    )


def _row_to_profile(row: KittyProfileRow) -> KittyProfile:
    return KittyProfile(
        id=row.id,
        user_id=row.user_id,
        kitty_name=row.kitty_name,
        kitty_breed_id=row.kitty_breed_id,
        xp=row.xp,
        level=row.level,
        coins=row.coins,
    )


# ── Workout logs ──────────────────────────────────────────────────────────────


async def list_workout_logs(
    db: AsyncSession, user_id: str | None = None
) -> list[WorkoutLog]:
    """Return workout logs visible to a user, newest first.

    Logs without an owner predate per-user logs and stay visible to every
    user. This is a compatibility rule, not an access control.

    Args:
        db: Active async database session.
        user_id: Viewing user. ``None`` returns every log.

    Returns:
        List of ``WorkoutLog`` objects.
    """
    query = select(WorkoutLogRow).order_by(WorkoutLogRow.date_completed.desc())
    if user_id:
        query = query.where(
            or_(WorkoutLogRow.user_id == user_id, WorkoutLogRow.user_id.is_(None))
        )
    result = await db.execute(query)
    return [_row_to_log(row) for row in result.scalars().all()]


async def get_workout_log(db: AsyncSession, log_id: str) -> WorkoutLog | None:
    """Fetch a single workout log by id, or ``None``."""
    row = await db.get(WorkoutLogRow, log_id)
    return _row_to_log(row) if row is not None else None


async def save_workout_log(db: AsyncSession, log: WorkoutLog) -> WorkoutLog:
    """Create or update a workout log (upsert by id).

    A log without an id gets a fresh uuid4.

    Args:
        db: Active async database session.
        log: The log to store.

    Returns:
        The stored log as read back from the database.
    """
    log_id = log.id or str(uuid.uuid4())
    exercises_json = json.dumps([e.model_dump(mode="json") for e in log.exercises])

    row = await db.get(WorkoutLogRow, log_id)
    if row is None:
        row = WorkoutLogRow(id=log_id)
        db.add(row)
    row.user_id = log.user_id
    row.workout_id = log.workout_id
    row.workout_name = log.workout_name
    row.date_completed = _as_utc(log.date)
    row.exercises_json = exercises_json

    await db.commit()
    await db.refresh(row)
    return _row_to_log(row)


async def delete_workout_log(
    db: AsyncSession, log_id: str, user_id: str | None = None
) -> bool:
    """Delete a log by id. Returns ``False`` if nothing was deleted.

    When *user_id* is given only a log owned by that user is deleted;
    legacy logs without an owner are left alone.
    """
    query = delete(WorkoutLogRow).where(WorkoutLogRow.id == log_id)
    if user_id is not None:
        query = query.where(WorkoutLogRow.user_id == user_id)
    result = await db.execute(query)
    await db.commit()
    return (result.rowcount or 0) > 0


# ── Kitty profiles ────────────────────────────────────────────────────────────


async def _resolve_row(
    db: AsyncSession, user_id: str
) -> tuple[str, KittyProfileRow | None]:
    by_id = await db.get(KittyProfileRow, user_id)
    result = await db.execute(
        select(KittyProfileRow).where(KittyProfileRow.user_id == user_id).limit(1)
    )
    by_user_id = result.scalar_one_or_none()

    if by_id is not None:
        if by_user_id is not None and by_user_id.id != by_id.id:
            logger.warning(
                "Kitty profiles %s and %s both match user %s; using the id match.",
                by_id.id,
                by_user_id.id,
                user_id,
            )
        return "primary", by_id
    if by_user_id is not None:
        return "secondary", by_user_id
    return "not_found", None


async def resolve_kitty_profile(db: AsyncSession, user_id: str) -> ProfileResolution:
    """Look up the kitty profile belonging to a user.

    Precedence: a row whose primary key equals *user_id* wins; otherwise a
    row whose ``user_id`` column equals it. The result records which key
    matched.

    Args:
        db: Active async database session.
        user_id: Identity id of the user.

    Returns:
        ``ProfileResolution`` tagged ``primary``, ``secondary`` or
        ``not_found``.
    """
    found_by, row = await _resolve_row(db, user_id)
    return ProfileResolution(
        found_by=found_by,  # type: ignore[arg-type]
        profile=_row_to_profile(row) if row is not None else None,
    )


async def upsert_kitty_profile(
    db: AsyncSession, user_id: str, **fields: Any
) -> KittyProfile:
    """Update the user's kitty profile, creating it if needed.

    The row is found with the same precedence as ``resolve_kitty_profile``.
    A matched row missing its ``user_id`` gets it filled in. A new row uses
    *user_id* for both keys.

    Raises:
        ValueError: If *fields* names a column that is not a profile field.
    """
    unknown = set(fields) - _PROFILE_FIELDS
    if unknown:
        raise ValueError(f"Unknown kitty profile field(s): {', '.join(sorted(unknown))}")

    _, row = await _resolve_row(db, user_id)
    if row is None:
        row = KittyProfileRow(id=user_id, user_id=user_id)
        db.add(row)
    elif not row.user_id:
        row.user_id = user_id

    for name, value in fields.items():
        setattr(row, name, value)

    await db.commit()
    await db.refresh(row)
    return _row_to_profile(row)

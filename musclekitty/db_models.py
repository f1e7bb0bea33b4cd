"""SQLAlchemy ORM table definitions for the log store.

Two tables:
- ``workout_logs``: finished workouts; ``user_id`` NULL marks a legacy log
- ``kitty_profiles``: kitty progression per user, reachable by ``id`` or
  ``user_id`` (older rows only have one of the two set to the user's id)

Import this module before calling ``database.create_tables()`` so all models
are registered with ``Base.metadata``.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from musclekitty.database import Base


class WorkoutLogRow(Base):
    """A finished workout.

    ``exercises_json`` stores the full ``list[ExerciseLog]`` as a JSON
    blob, preserving the Pydantic shape without per-set tables.
    """

    __tablename__ = "workout_logs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    workout_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    workout_name: Mapped[str] = mapped_column(String(256), default="")
    date_completed: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    exercises_json: Mapped[str] = mapped_column(Text, default="[]")


class KittyProfileRow(Base):
    """Kitty name, breed and progression for one user."""

    __tablename__ = "kitty_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    kitty_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    kitty_breed_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=0)
    coins: Mapped[int] = mapped_column(Integer, default=0)

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    """The signed-in user together with their kitty's progression.

    Frozen: every mutation produces a new instance via ``model_copy`` so the
    session store always swaps the whole profile.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    email: str = ""
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    kitty_name: Optional[str] = None
    kitty_breed_id: Optional[str] = None

    xp: int = 0
    level: int = 0
    coins: int = 0


class SessionState(BaseModel):
    """Snapshot of the session store published to subscribers."""

    model_config = ConfigDict(frozen=True)

    user: Optional[UserProfile] = None
    loading: bool = True
    is_first_login: bool = False


class SetLog(BaseModel):
    """A single performed set."""

    set_number: int
    reps: int
    weight: float


class ExerciseLog(BaseModel):
    """Results for one exercise within a finished workout."""

    exercise_id: str
    exercise_name: str
    sets: list[SetLog] = []


class WorkoutLog(BaseModel):
    """A finished workout.

    ``user_id`` is None for legacy logs written before logs carried an
    owner; those are visible to every user.
    """

    id: Optional[str] = None
    user_id: Optional[str] = None
    workout_id: str
    workout_name: str = ""
    date: datetime
    exercises: list[ExerciseLog] = []


class KittyHealth(BaseModel):
    """Recency-based health of the user's kitty."""

    percentage: Literal[0, 25, 50, 75, 100]
    status: Literal["excellent", "good", "fair", "poor"]
    message: str


class WorkoutStats(BaseModel):
    """Workout counters shown on the profile screen."""

    this_month: int
    total: int


class ExerciseHistoryPoint(BaseModel):
    """Heaviest set of one exercise within one workout log."""

    date: datetime
    max_weight: float


class UserStats(BaseModel):
    """Response from /users/{user_id}/stats."""

    streak: int
    health: KittyHealth
    workouts: WorkoutStats


class KittyProfile(BaseModel):
    """A stored kitty profile row."""

    id: str
    user_id: Optional[str] = None
    kitty_name: Optional[str] = None
    kitty_breed_id: Optional[str] = None
    xp: int = 0
    level: int = 0
    coins: int = 0


class ProfileResolution(BaseModel):
    """Outcome of looking a kitty profile up by user id.

    ``found_by`` records which key matched: ``primary`` (the row id),
    ``secondary`` (the ``user_id`` column) or ``not_found``.
    """

    found_by: Literal["primary", "secondary", "not_found"]
    profile: Optional[KittyProfile] = None


class KittyProfileUpdate(BaseModel):
    """Body of PUT /users/{user_id}/kitty. Omitted fields are left as stored."""

    kitty_name: Optional[str] = None
    kitty_breed_id: Optional[str] = None


class WorkoutRewardInput(BaseModel):
    """Body of POST /users/{user_id}/kitty/rewards: one finished workout."""

    difficulty: Literal["easy", "medium", "hard"]
    duration_minutes: float = Field(gt=0)


class WorkoutRewardResult(BaseModel):
    """Rewards granted for one workout and the kitty profile after them."""

    coins: int
    xp: int
    leveled_up: bool
    profile: KittyProfile

"""FastAPI application entry point.

Exposes the workout-log store and the derived metrics to the app shell.
Handlers are thin: metrics live in metrics.py and storage in db_service.py.

Run with:
    uvicorn musclekitty.main:app --reload --port 8000
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from musclekitty import db_service, metrics, progression
from musclekitty.database import create_tables, get_db
from musclekitty.models import (
    ExerciseHistoryPoint,
    KittyProfile,
    KittyProfileUpdate,
    ProfileResolution,
    UserStats,
    WorkoutLog,
    WorkoutRewardInput,
    WorkoutRewardResult,
)

# Import ORM models so Base.metadata is populated before create_tables() runs.
import musclekitty.db_models  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: make sure the database tables exist."""
    await create_tables()
    yield


app = FastAPI(
    title="Muscle Kitty API",
    description=(
        "Workout logs in → streak, kitty health and workout counts out. "
        "Kitty profiles are resolved by user id."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── System ────────────────────────────────────────────────────────────────────


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Confirm the API is running."""
    return {"status": "ok"}


# ── Workout logs ──────────────────────────────────────────────────────────────


@app.get("/users/{user_id}/logs", response_model=list[WorkoutLog], tags=["logs"])
async def list_logs(user_id: str, db: AsyncSession = Depends(get_db)) -> list[WorkoutLog]:
    """Return the user's workout logs plus unowned legacy logs, newest first."""
    return await db_service.list_workout_logs(db, user_id)


@app.post("/users/{user_id}/logs", response_model=WorkoutLog, tags=["logs"])
async def save_log(
    user_id: str, log: WorkoutLog, db: AsyncSession = Depends(get_db)
) -> WorkoutLog:
    """Create or update a workout log.

    New logs are owned by ``user_id``. Updating a legacy log keeps it
    unowned so it stays visible to every user.

    Returns HTTP 404 when updating a log that belongs to another user.
    """
    owner: str | None = user_id
    if log.id:
        existing = await db_service.get_workout_log(db, log.id)
        if existing is not None:
            if existing.user_id not in (None, user_id):
                raise HTTPException(status_code=404, detail=f"Workout log '{log.id}' not found.")
            owner = existing.user_id
    return await db_service.save_workout_log(db, log.model_copy(update={"user_id": owner}))


@app.delete("/users/{user_id}/logs/{log_id}", tags=["logs"])
async def remove_log(
    user_id: str, log_id: str, db: AsyncSession = Depends(get_db)
) -> dict[str, bool]:
    """Delete one of the user's workout logs. Returns ``{deleted: false}`` if not found.

    Returns HTTP 404 for logs owned by another user and for legacy logs,
    which are shared by everyone.
    """
    existing = await db_service.get_workout_log(db, log_id)
    if existing is not None and existing.user_id != user_id:
        raise HTTPException(status_code=404, detail=f"Workout log '{log_id}' not found.")
    deleted = await db_service.delete_workout_log(db, log_id, user_id)
    return {"deleted": deleted}


@app.get(
    "/users/{user_id}/workouts/{workout_id}/latest",
    response_model=WorkoutLog,
    tags=["logs"],
)
async def get_latest_log(
    user_id: str, workout_id: str, db: AsyncSession = Depends(get_db)
) -> WorkoutLog:
    """Most recent log of one workout, used to prefill the next session.

    Returns HTTP 404 if the workout has never been logged.
    """
    logs = await db_service.list_workout_logs(db, user_id)
    latest = metrics.latest_workout_log(logs, workout_id)
    if latest is None:
        raise HTTPException(status_code=404, detail=f"No logs for workout '{workout_id}'.")
    return latest


# ── Metrics ───────────────────────────────────────────────────────────────────


@app.get("/users/{user_id}/stats", response_model=UserStats, tags=["metrics"])
async def get_stats(user_id: str, db: AsyncSession = Depends(get_db)) -> UserStats:
    """Streak, kitty health and workout counts for the user's visible logs."""
    logs = await db_service.list_workout_logs(db, user_id)
    return UserStats(
        streak=metrics.compute_streak(logs),
        health=metrics.compute_health(logs),
        workouts=metrics.compute_workout_stats(logs),
    )


@app.get(
    "/users/{user_id}/workouts/{workout_id}/exercises/{exercise_id}/history",
    response_model=list[ExerciseHistoryPoint],
    tags=["metrics"],
)
async def get_exercise_history(
    user_id: str,
    workout_id: str,
    exercise_id: str,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> list[ExerciseHistoryPoint]:
    """Heaviest set per session for one exercise, oldest first."""
    logs = await db_service.list_workout_logs(db, user_id)
    return metrics.exercise_history(logs, workout_id, exercise_id, limit=limit)


# ── Kitty ─────────────────────────────────────────────────────────────────────


@app.get("/users/{user_id}/kitty", response_model=ProfileResolution, tags=["kitty"])
async def get_kitty(user_id: str, db: AsyncSession = Depends(get_db)) -> ProfileResolution:
    """Resolve the user's kitty profile and report which key matched.

    Returns HTTP 404 if the user has no kitty profile yet.
    """
    resolution = await db_service.resolve_kitty_profile(db, user_id)
    if resolution.found_by == "not_found":
        raise HTTPException(status_code=404, detail=f"No kitty profile for user '{user_id}'.")
    return resolution


@app.put("/users/{user_id}/kitty", response_model=KittyProfile, tags=["kitty"])
async def update_kitty(
    user_id: str, update: KittyProfileUpdate, db: AsyncSession = Depends(get_db)
) -> KittyProfile:
    """Name the kitty or pick its breed, creating the profile if needed."""
    return await db_service.upsert_kitty_profile(
        db, user_id, **update.model_dump(exclude_unset=True)
    )


@app.post(
    "/users/{user_id}/kitty/rewards",
    response_model=WorkoutRewardResult,
    tags=["kitty"],
)
async def reward_workout(
    user_id: str, reward: WorkoutRewardInput, db: AsyncSession = Depends(get_db)
) -> WorkoutRewardResult:
    """Grant the coins and XP earned by one finished workout."""
    resolution = await db_service.resolve_kitty_profile(db, user_id)
    current = resolution.profile or KittyProfile(id=user_id, user_id=user_id)
    awarded = progression.award_workout(current, reward.difficulty, reward.duration_minutes)
    stored = await db_service.upsert_kitty_profile(
        db, user_id, xp=awarded.xp, level=awarded.level, coins=awarded.coins
    )
    return WorkoutRewardResult(
        coins=progression.workout_coins(reward.difficulty, reward.duration_minutes),
        xp=progression.workout_xp(reward.difficulty, reward.duration_minutes),
        leveled_up=stored.level > current.level,
        profile=stored,
    )

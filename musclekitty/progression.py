"""Kitty progression arithmetic: experience, levels, and coin rewards.

The level curve is quadratic: reaching level ``n + 1`` from level ``n``
needs ``(n + 1)^2 * 10`` XP, so each level is harder than the last.
"""

import math
from typing import Literal, TypeVar

from musclekitty.models import KittyProfile, UserProfile

Difficulty = Literal["easy", "medium", "hard"]

ProfileT = TypeVar("ProfileT", UserProfile, KittyProfile)

_COIN_MULTIPLIER: dict[str, float] = {"easy": 1, "medium": 1.5, "hard": 2}
_XP_MULTIPLIER: dict[str, float] = {"easy": 1, "medium": 2, "hard": 3}


def next_level_xp(level: int) -> int:
    """XP threshold for leaving *level*."""
    return (level + 1) ** 2 * 10


def xp_for_level(level: int) -> int:
    """Total XP required to reach *level*."""
    return level**2 * 10


def calculate_level(level: int, xp: int) -> int:
    """Return the level after accounting for *xp*; advances at most one level."""
    if xp >= next_level_xp(level):
        return level + 1
    return level


def current_level_xp(level: int, xp: int) -> int:
    """XP accumulated toward the next level."""
    threshold = next_level_xp(level)
    if xp >= threshold:
        return xp - threshold
    return xp


def level_progress(level: int, xp: int) -> float:
    """Progress toward the next level as a percentage (0-100)."""
    return current_level_xp(level, xp) / next_level_xp(level) * 100


def remaining_xp(level: int, xp: int) -> int:
    """XP still missing before the next level-up; never negative."""
    return max(0, next_level_xp(level) - xp)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _multiplier(table: dict[str, float], difficulty: str) -> float:
    try:
        return table[difficulty]
    except KeyError:
        raise ValueError(f"Unknown workout difficulty: '{difficulty}'") from None


def workout_coins(difficulty: Difficulty, duration_minutes: float) -> int:
    """Coins earned: 5 per 10 minutes, scaled by difficulty.

    Raises:
        ValueError: If *difficulty* is not easy, medium or hard.
    """
    return _round_half_up(5 * (duration_minutes / 10) * _multiplier(_COIN_MULTIPLIER, difficulty))


def workout_xp(difficulty: Difficulty, duration_minutes: float) -> int:
    """XP earned: 10 per 10 minutes, scaled by difficulty.

    Raises:
        ValueError: If *difficulty* is not easy, medium or hard.
    """
    return _round_half_up(10 * (duration_minutes / 10) * _multiplier(_XP_MULTIPLIER, difficulty))


def award_workout(
    profile: ProfileT, difficulty: Difficulty, duration_minutes: float
) -> ProfileT:
    """Return a new profile with the rewards for one finished workout applied.

    Works on the signed-in ``UserProfile`` and on a stored ``KittyProfile``.

    Args:
        profile: Current profile; left unchanged.
        difficulty: Workout difficulty.
        duration_minutes: Workout length in minutes.

    Returns:
        Replacement profile with coins and XP added and the level updated.
    """
    xp = profile.xp + workout_xp(difficulty, duration_minutes)
    return profile.model_copy(
        update={
            "xp": xp,
            "coins": profile.coins + workout_coins(difficulty, duration_minutes),
            "level": calculate_level(profile.level, xp),
        }
    )

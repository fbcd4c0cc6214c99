"""Scoring rules for a single answered question.

Points for a correct answer are built up in order: base points, a speed bonus
for answering quickly, an age multiplier on grandmaster questions only, then a
flat bonus every third consecutive correct answer. Wrong answers score nothing
and reset the streak.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass

from trivia_formats import (
    TIER_APPRENTICE,
    TIER_GRANDMASTER,
    TIER_KING,
    TIER_MASTER,
    TIER_SKILLED,
)

TIER_BASE_POINTS = {
    TIER_APPRENTICE: 10,
    TIER_SKILLED: 20,
    TIER_MASTER: 30,
    TIER_KING: 40,
    TIER_GRANDMASTER: 50,
}
DEFAULT_BASE_POINTS = 50

SPEED_BONUS_MAX = 10
STREAK_LENGTH = 3
STREAK_BONUS = 50

YOUNG_PLAYER_AGE = 12
SENIOR_PLAYER_AGE = 50
YOUNG_PLAYER_MULTIPLIER = 1.2
SENIOR_PLAYER_MULTIPLIER = 0.8

LAST_SECOND_LATENCY_MS = 9000


@dataclass(frozen=True)
class ScoreBreakdown:
    base_points: int = 0
    speed_bonus: int = 0
    age_multiplier: float = 1.0
    streak: int = 0
    streak_bonus: int = 0
    total: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_answer(answer: str) -> str:
    return str(answer or "").strip().lower()


def is_correct(given: str, correct_answer: str) -> bool:
    return normalize_answer(given) == normalize_answer(correct_answer)


def base_points_for(base_points: int | None, tier: str) -> int:
    if base_points and base_points > 0:
        return int(base_points)
    return TIER_BASE_POINTS.get(tier, DEFAULT_BASE_POINTS)


def speed_bonus(latency_ms: int) -> int:
    elapsed_seconds = math.floor(max(0, int(latency_ms)) / 1000)
    return max(0, round(SPEED_BONUS_MAX - min(SPEED_BONUS_MAX, elapsed_seconds)))


def age_multiplier(tier: str, age: int | None) -> float:
    if tier != TIER_GRANDMASTER or age is None:
        return 1.0
    if age < YOUNG_PLAYER_AGE:
        return YOUNG_PLAYER_MULTIPLIER
    if age > SENIOR_PLAYER_AGE:
        return SENIOR_PLAYER_MULTIPLIER
    return 1.0


def advance_streak(previous: int, correct: bool) -> tuple[int, int]:
    """Return ``(streak_after, bonus)`` for one answer."""
    if not correct:
        return 0, 0
    streak = previous + 1
    if streak >= STREAK_LENGTH:
        return 0, STREAK_BONUS
    return streak, 0


def score_answer(
    *,
    correct: bool,
    latency_ms: int,
    tier: str,
    base_points: int | None,
    age: int | None,
    previous_streak: int,
) -> ScoreBreakdown:
    streak, bonus = advance_streak(previous_streak, correct)
    if not correct:
        return ScoreBreakdown(streak=streak)

    base = base_points_for(base_points, tier)
    speed = speed_bonus(latency_ms)
    multiplier = age_multiplier(tier, age)
    running = base + speed
    if multiplier != 1.0:
        running = int(round(running * multiplier))
    return ScoreBreakdown(
        base_points=base,
        speed_bonus=speed,
        age_multiplier=multiplier,
        streak=streak,
        streak_bonus=bonus,
        total=running + bonus,
    )

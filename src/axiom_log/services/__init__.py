"""Derived metrics and external analysis."""

from .continuity import (
    ContinuitySnapshot,
    WeeklyReward,
    current_streak,
    integrity_score,
    snapshot,
    week_start_for,
    weekly_reward,
)

__all__ = [
    "ContinuitySnapshot",
    "current_streak",
    "integrity_score",
    "snapshot",
    "week_start_for",
    "weekly_reward",
    "WeeklyReward",
]

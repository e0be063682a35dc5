"""Continuity engine: streak, integrity score and weekly reward.

Everything here is a pure function of its arguments. Calling any of them
twice with the same inputs yields identical results.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta, tzinfo

from ..models.entry import Entry, IdentityState

INTEGRITY_WINDOW_DAYS = 7

# Per-day integrity weight, divided by the window length
INTEGRITY_WEIGHTS = {
    IdentityState.OVERDRIVE: 100,
    IdentityState.NORMAL: 100,
    IdentityState.MAINTENANCE: 40,
    IdentityState.REST: 40,
    IdentityState.SURVIVAL: 20,
}

# Weekly base points; Overdrive and Rest are not part of the base sum
BASE_POINTS = {
    IdentityState.NORMAL: 10,
    IdentityState.MAINTENANCE: 6,
    IdentityState.SURVIVAL: 3,
}

ENERGY_BONUS_THRESHOLD = 4

# Longest Normal run within a week -> bonus
RUN_BONUS = {3: 2, 4: 3, 5: 4}
MAX_RUN_BONUS = 5  # runs of 6 or more
MAX_RUN_TARGET = 6


@dataclass(frozen=True)
class WeeklyReward:
    """Breakdown of the reward total for one week."""

    week_start: date
    base_points: int
    overdrive_count: int
    overdrive_points: int
    energy_bonus: int
    max_normal_run: int
    streak_bonus: int

    @property
    def total(self) -> int:
        return self.base_points + self.overdrive_points + self.energy_bonus + self.streak_bonus

    @property
    def overdrive_tier(self) -> int:
        """1 for a single Overdrive, 2 or 3 for the banded multipliers, 0 if none."""
        if self.overdrive_count == 0:
            return 0
        return min(self.overdrive_count, 3)

    def to_dict(self) -> dict:
        return {
            "week_start": self.week_start.isoformat(),
            "base_points": self.base_points,
            "overdrive_count": self.overdrive_count,
            "overdrive_points": self.overdrive_points,
            "energy_bonus": self.energy_bonus,
            "max_normal_run": self.max_normal_run,
            "streak_bonus": self.streak_bonus,
            "total": self.total,
        }


@dataclass(frozen=True)
class ContinuitySnapshot:
    """All derived metrics for one reference date."""

    reference_date: date
    streak: int
    integrity: int
    days_since_last_log: int | None
    weekly: WeeklyReward

    def to_dict(self) -> dict:
        return {
            "reference_date": self.reference_date.isoformat(),
            "streak": self.streak,
            "integrity": self.integrity,
            "days_since_last_log": self.days_since_last_log,
            "weekly": self.weekly.to_dict(),
        }


def entries_by_day(entries: Iterable[Entry], tz: tzinfo | None = None) -> dict[date, Entry]:
    """Map each calendar day to the entry that represents it.

    When imported data holds several entries for one day, the latest one
    (by timestamp, then identity ordinal, then id) wins.
    """
    by_day: dict[date, Entry] = {}
    for entry in sorted(entries, key=lambda e: e.sort_key):
        by_day[entry.local_day(tz)] = entry
    return by_day


def week_start_for(day: date, week_starts_on: int = 6) -> date:
    """First day of the week containing ``day``.

    Args:
        day: Any day in the week
        week_starts_on: Python weekday number (Monday=0, Sunday=6)
    """
    offset = (day.weekday() - week_starts_on) % 7
    return day - timedelta(days=offset)


def current_streak(
    entries: Iterable[Entry], today: date, tz: tzinfo | None = None
) -> int:
    """Consecutive-day streak walking backward from today.

    If today has no entry yet the walk starts at yesterday. Survival or a
    missing day stops the walk; Rest is passed over without counting.
    """
    by_day = entries_by_day(entries, tz)
    if not by_day:
        return 0

    check = today if today in by_day else today - timedelta(days=1)
    streak = 0
    while True:
        entry = by_day.get(check)
        if entry is None or entry.identity == IdentityState.SURVIVAL:
            break
        if entry.identity != IdentityState.REST:
            streak += 1
        check -= timedelta(days=1)
    return streak


def integrity_score(
    entries: Iterable[Entry], today: date, tz: tzinfo | None = None
) -> int:
    """Rolling 7-day weighted presence score (0-100) ending today."""
    by_day = entries_by_day(entries, tz)
    weight_sum = 0
    for offset in range(INTEGRITY_WINDOW_DAYS):
        entry = by_day.get(today - timedelta(days=offset))
        if entry is not None:
            weight_sum += INTEGRITY_WEIGHTS[entry.identity]
    score = int(weight_sum / INTEGRITY_WINDOW_DAYS + 0.5)
    return min(100, score)


def overdrive_points(count: int) -> int:
    """Banded Overdrive bonus for the number of Overdrive entries in a week."""
    if count >= 3:
        return 25 * count
    if count == 2:
        return 20 * count
    return 15 * count


def run_bonus(run: int) -> int:
    """Bonus for the longest Normal run within a week."""
    if run >= MAX_RUN_TARGET:
        return MAX_RUN_BONUS
    return RUN_BONUS.get(run, 0)


def longest_normal_run(by_day: dict[date, Entry], week_start: date) -> int:
    """Longest run of Normal days in the week starting at ``week_start``.

    Overdrive bridges the run without extending it; any other identity or
    an empty day resets it. The run never carries over from the previous
    week.
    """
    longest = 0
    run = 0
    for offset in range(7):
        entry = by_day.get(week_start + timedelta(days=offset))
        if entry is not None and entry.identity == IdentityState.NORMAL:
            run += 1
            longest = max(longest, run)
        elif entry is not None and entry.identity == IdentityState.OVERDRIVE:
            continue
        else:
            run = 0
    return longest


def weekly_reward(
    entries: Iterable[Entry], week_start: date, tz: tzinfo | None = None
) -> WeeklyReward:
    """Reward total for the window ``[week_start, week_start + 7 days)``."""
    week_end = week_start + timedelta(days=7)
    week_entries = [
        e for e in entries if week_start <= e.local_day(tz) < week_end
    ]

    base = 0
    overdrive_count = 0
    energy_bonus = 0
    for entry in week_entries:
        if entry.identity == IdentityState.OVERDRIVE:
            overdrive_count += 1
        base += BASE_POINTS.get(entry.identity, 0)
        if entry.energy >= ENERGY_BONUS_THRESHOLD:
            energy_bonus += 1

    max_run = longest_normal_run(entries_by_day(week_entries, tz), week_start)

    return WeeklyReward(
        week_start=week_start,
        base_points=base,
        overdrive_count=overdrive_count,
        overdrive_points=overdrive_points(overdrive_count),
        energy_bonus=energy_bonus,
        max_normal_run=max_run,
        streak_bonus=run_bonus(max_run),
    )


def days_since_last_log(
    entries: Iterable[Entry], today: date, tz: tzinfo | None = None
) -> int | None:
    """Whole days between the most recent entry and today (None if no entries)."""
    days = [e.local_day(tz) for e in entries]
    if not days:
        return None
    return (today - max(days)).days


def snapshot(
    entries: Iterable[Entry],
    today: date,
    week_start: date | None = None,
    tz: tzinfo | None = None,
    week_starts_on: int = 6,
) -> ContinuitySnapshot:
    """Compute every derived metric for ``today``.

    Args:
        entries: The entry log
        today: Reference date
        week_start: Start of the reward week (defaults to the week containing today)
        tz: Zone used to bucket timestamps into days (local if None)
        week_starts_on: Weekday used when ``week_start`` is not given
    """
    entries = list(entries)
    if week_start is None:
        week_start = week_start_for(today, week_starts_on)
    return ContinuitySnapshot(
        reference_date=today,
        streak=current_streak(entries, today, tz),
        integrity=integrity_score(entries, today, tz),
        days_since_last_log=days_since_last_log(entries, today, tz),
        weekly=weekly_reward(entries, week_start, tz),
    )

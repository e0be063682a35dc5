"""Tests for the continuity engine."""

from datetime import date

import pytest

from axiom_log.models.entry import IdentityState
from axiom_log.services.continuity import (
    current_streak,
    days_since_last_log,
    entries_by_day,
    integrity_score,
    overdrive_points,
    run_bonus,
    snapshot,
    week_start_for,
    weekly_reward,
)

from conftest import UTC, make_entry

N = IdentityState.NORMAL
O = IdentityState.OVERDRIVE
M = IdentityState.MAINTENANCE
S = IdentityState.SURVIVAL
R = IdentityState.REST

# 2024-03-03 is a Sunday
SUNDAY = date(2024, 3, 3)


def week(*identities, energy=3, start=(2024, 3, 3)):
    """One entry per consecutive day starting at ``start``; None skips a day."""
    entries = []
    for offset, identity in enumerate(identities):
        if identity is None:
            continue
        day = date(*start).toordinal() + offset
        d = date.fromordinal(day)
        entries.append(
            make_entry(f"e{offset}", (d.year, d.month, d.day), identity, energy=energy)
        )
    return entries


class TestStreak:
    """Tests for the current streak."""

    def test_survival_breaks_streak(self):
        """Test Mon N, Tue O, Wed N, Thu S, Fri N gives 1 on Friday."""
        entries = week(N, O, N, S, N, start=(2024, 3, 4))
        assert current_streak(entries, date(2024, 3, 8), UTC) == 1

    def test_counts_consecutive_days(self):
        """Test Normal and Overdrive both count."""
        entries = week(N, O, N, start=(2024, 3, 4))
        assert current_streak(entries, date(2024, 3, 6), UTC) == 3

    def test_rest_bridges_without_counting(self):
        """Test Rest keeps the streak alive but adds nothing."""
        entries = week(N, R, N, start=(2024, 3, 4))
        assert current_streak(entries, date(2024, 3, 6), UTC) == 2

    def test_maintenance_counts(self):
        """Test Maintenance extends the streak."""
        entries = week(M, M, start=(2024, 3, 4))
        assert current_streak(entries, date(2024, 3, 5), UTC) == 2

    def test_grace_day_for_today(self):
        """Test an empty today starts the walk at yesterday."""
        entries = week(N, N, start=(2024, 3, 4))
        assert current_streak(entries, date(2024, 3, 6), UTC) == 2

    def test_gap_resets(self):
        """Test two empty days give zero."""
        entries = week(N, N, start=(2024, 3, 4))
        assert current_streak(entries, date(2024, 3, 7), UTC) == 0

    def test_survival_today_is_zero(self):
        """Test Survival today yields zero."""
        entries = week(N, N, S, start=(2024, 3, 4))
        assert current_streak(entries, date(2024, 3, 6), UTC) == 0

    def test_empty_log(self):
        assert current_streak([], date(2024, 3, 6), UTC) == 0


class TestIntegrity:
    """Tests for the integrity score."""

    def test_three_normal_days(self):
        """Test Normal on days 1, 3 and 5 rounds 42.86 up to 43."""
        entries = week(N, None, N, None, N, start=(2024, 3, 4))
        assert integrity_score(entries, date(2024, 3, 8), UTC) == 43

    def test_full_week_is_capped(self):
        """Test the score never exceeds 100."""
        entries = week(O, O, O, O, O, O, O)
        assert integrity_score(entries, date(2024, 3, 9), UTC) == 100

    def test_weights(self):
        """Test Maintenance, Rest and Survival weights."""
        entries = week(M, R, S)
        # (40 + 40 + 20) / 7 = 14.29
        assert integrity_score(entries, date(2024, 3, 5), UTC) == 14

    def test_window_excludes_old_days(self):
        """Test entries older than seven days are ignored."""
        entries = week(N)
        assert integrity_score(entries, date(2024, 3, 10), UTC) == 0
        assert integrity_score(entries, date(2024, 3, 9), UTC) == 14


class TestWeeklyReward:
    """Tests for the weekly reward total."""

    def test_full_normal_week(self):
        """Test base points and the capped run bonus."""
        reward = weekly_reward(week(N, N, N, N, N, N, N), SUNDAY, UTC)

        assert reward.base_points == 70
        assert reward.max_normal_run == 7
        assert reward.streak_bonus == 5
        assert reward.total == 75

    @pytest.mark.parametrize("count,points", [(0, 0), (1, 15), (2, 40), (3, 75), (4, 100)])
    def test_overdrive_bands(self, count, points):
        """Test the banded Overdrive multiplier."""
        assert overdrive_points(count) == points

    def test_overdrive_not_in_base(self):
        """Test Overdrive days add band points only."""
        reward = weekly_reward(week(O, O), SUNDAY, UTC)

        assert reward.base_points == 0
        assert reward.overdrive_count == 2
        assert reward.overdrive_points == 40
        assert reward.overdrive_tier == 2

    def test_base_points_by_identity(self):
        """Test Normal, Maintenance, Survival and Rest base values."""
        reward = weekly_reward(week(N, M, S, R), SUNDAY, UTC)
        assert reward.base_points == 10 + 6 + 3 + 0

    def test_energy_bonus(self):
        """Test one point per entry with energy of 4 or more."""
        entries = week(N, M, energy=4) + week(S, start=(2024, 3, 6))
        reward = weekly_reward(entries, SUNDAY, UTC)
        assert reward.energy_bonus == 2

    @pytest.mark.parametrize("run,bonus", [(0, 0), (2, 0), (3, 2), (4, 3), (5, 4), (6, 5), (7, 5)])
    def test_run_bonus(self, run, bonus):
        assert run_bonus(run) == bonus

    def test_overdrive_bridges_normal_run(self):
        """Test an Overdrive day neither breaks nor extends the run."""
        reward = weekly_reward(week(N, N, O, N), SUNDAY, UTC)
        assert reward.max_normal_run == 3
        assert reward.streak_bonus == 2

    def test_maintenance_breaks_run(self):
        """Test any other identity resets the run."""
        reward = weekly_reward(week(N, N, M, N, N), SUNDAY, UTC)
        assert reward.max_normal_run == 2
        assert reward.streak_bonus == 0

    def test_entries_outside_week_ignored(self):
        """Test the window is [week_start, week_start + 7)."""
        entries = week(N, N, N, start=(2024, 3, 1))
        reward = weekly_reward(entries, SUNDAY, UTC)
        assert reward.base_points == 10
        assert reward.max_normal_run == 1


class TestHelpers:
    """Tests for day bucketing and snapshot helpers."""

    def test_week_start_sunday(self):
        """Test Sunday-based weeks."""
        assert week_start_for(date(2024, 3, 6)) == SUNDAY
        assert week_start_for(SUNDAY) == SUNDAY

    def test_week_start_monday(self):
        """Test Monday-based weeks."""
        assert week_start_for(date(2024, 3, 3), week_starts_on=0) == date(2024, 2, 26)

    def test_latest_entry_represents_day(self):
        """Test several entries on one day resolve to the latest."""
        early = make_entry("a", (2024, 3, 4), N, hour=8)
        late = make_entry("b", (2024, 3, 4), S, hour=20)

        assert entries_by_day([late, early], UTC)[date(2024, 3, 4)].id == "b"
        assert current_streak([early, late], date(2024, 3, 4), UTC) == 0

    def test_days_since_last_log(self):
        entries = week(N, start=(2024, 3, 4))
        assert days_since_last_log(entries, date(2024, 3, 7), UTC) == 3
        assert days_since_last_log([], date(2024, 3, 7), UTC) is None

    def test_snapshot_is_idempotent(self):
        """Test repeated computation gives identical results."""
        entries = week(N, O, N, S, N, R, N)
        first = snapshot(entries, date(2024, 3, 9), tz=UTC)
        second = snapshot(entries, date(2024, 3, 9), tz=UTC)

        assert first == second
        assert first.weekly.week_start == SUNDAY
        assert first.to_dict()["weekly"]["total"] == first.weekly.total

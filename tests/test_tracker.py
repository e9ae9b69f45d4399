"""
Tests for ChallengeProgressTracker.

Challenges are generated with a seeded factory; a 10000 income daily
challenge over 10 days has a $100 target and $10 daily targets.
"""

import random

import pytest
from datetime import datetime, timedelta

from stackr.challenges import (
    ChallengeFactory,
    ChallengeProgressTracker,
    InvalidContributionError,
    OutOfOrderContributionError,
)
from stackr.challenges.tracker import next_streak
from stackr.config import ChallengeSettings
from stackr.models.challenge import (
    ChallengePreferences,
    ChallengeStatus,
    DailyTargetState,
    FinancialProfile,
)


START = datetime(2024, 5, 1, 9, 0)


def make_daily_challenge(income=10000, duration=10):
    factory = ChallengeFactory(rng=random.Random(3), settings=ChallengeSettings())
    return factory.generate(
        FinancialProfile(monthly_income=income),
        ChallengePreferences(challenge_type="daily", duration=duration),
        now=START,
        user_id="u1",
    )


def day(n, hour=12):
    """Calendar day n of the challenge (1-based) at the given hour."""
    return START.replace(hour=hour) + timedelta(days=n - 1)


class TestStreakLaw:
    """Tests for next_streak."""

    def test_first_contribution(self):
        assert next_streak(0, None, day(1)) == 1

    def test_same_day_keeps_streak(self):
        assert next_streak(4, day(2, hour=8), day(2, hour=22)) == 4

    def test_next_day_extends(self):
        assert next_streak(4, day(2, hour=23), day(3, hour=1)) == 5

    def test_gap_resets(self):
        assert next_streak(4, day(2), day(4)) == 1


class TestContributions:
    """Tests for single contributions."""

    def setup_method(self):
        self.tracker = ChallengeProgressTracker()
        self.challenge = make_daily_challenge()

    def test_setup(self):
        assert self.challenge.target_amount == 100
        assert all(t.amount == 10 for t in self.challenge.daily_targets)

    def test_apply_returns_new_snapshot(self):
        """The input snapshot is never modified."""
        updated = self.tracker.apply(self.challenge, 10, day(1))

        assert updated is not self.challenge
        assert self.challenge.current_amount == 0
        assert self.challenge.daily_targets[0].state == DailyTargetState.PENDING
        assert updated.current_amount == 10
        assert updated.progress == 10
        assert updated.streak_count == 1
        assert updated.last_contribution_date == day(1)

    def test_daily_target_satisfied(self):
        updated = self.tracker.apply(self.challenge, 10, day(1))
        target = updated.daily_targets[0]
        assert target.state == DailyTargetState.SATISFIED
        assert target.contributed == 10

    def test_partial_daily_target_stays_pending(self):
        updated = self.tracker.apply(self.challenge, 4, day(1))
        assert updated.daily_targets[0].state == DailyTargetState.PENDING
        assert updated.daily_targets[0].contributed == 4

        updated = self.tracker.apply(updated, 6, day(1, hour=20))
        assert updated.daily_targets[0].state == DailyTargetState.SATISFIED

    def test_backdated_contribution_rejected(self):
        updated = self.tracker.apply(self.challenge, 10, day(3))
        with pytest.raises(OutOfOrderContributionError):
            self.tracker.apply(updated, 10, day(1))

    def test_negative_contribution_rejected(self):
        """Withdrawals are not contributions; the snapshot is left untouched."""
        updated = self.tracker.apply(self.challenge, 10, day(1))
        with pytest.raises(InvalidContributionError):
            self.tracker.apply(updated, -25, day(2))
        assert updated.current_amount == 10
        assert updated.progress == 10
        assert updated.streak_count == 1

    def test_earlier_hour_same_day_allowed(self):
        updated = self.tracker.apply(self.challenge, 10, day(3, hour=18))
        updated = self.tracker.apply(updated, 10, day(3, hour=7))
        assert updated.current_amount == 20
        assert updated.streak_count == 1

    def test_progress_capped(self):
        updated = self.tracker.apply(self.challenge, 250, day(1))
        assert updated.progress == 100
        assert updated.status == ChallengeStatus.COMPLETED

    def test_zero_target_completes_immediately(self):
        challenge = make_daily_challenge(income=0)
        assert challenge.target_amount == 0
        updated = self.tracker.apply(challenge, 0, day(1))
        assert updated.progress == 100
        assert updated.status == ChallengeStatus.COMPLETED

    def test_same_day_streak_bonus_not_repeated(self):
        challenge = self.challenge
        for n in range(1, 4):
            challenge = self.tracker.apply(challenge, 1, day(n))
        challenge = self.tracker.apply(challenge, 1, day(3, hour=20))

        streak_ids = [a.id for a in challenge.achievements if a.id.startswith("streak-")]
        assert streak_ids == ["streak-3"]


class TestFullChallenge:
    """A $100 daily challenge saved $10 a day for ten days."""

    def setup_method(self):
        self.tracker = ChallengeProgressTracker()
        challenge = make_daily_challenge()
        self.snapshots = []
        for n in range(1, 11):
            challenge = self.tracker.apply(challenge, 10, day(n))
            self.snapshots.append(challenge)
        self.final = challenge

    def test_completed_on_day_ten(self):
        assert [s.status for s in self.snapshots[:9]] == [ChallengeStatus.ACTIVE] * 9
        assert self.final.status == ChallengeStatus.COMPLETED
        assert self.final.completed_date == day(10)
        assert self.final.progress == 100
        assert self.final.streak_count == 10

    def test_achievements_in_order(self):
        assert [a.id for a in self.final.achievements] == [
            "milestone-milestone-0",
            "streak-3",
            "milestone-milestone-1",
            "streak-7",
            "milestone-milestone-2",
            "challenge-complete",
            "milestone-milestone-3",
        ]

    def test_streak_bonus_points(self):
        assert self.final.bonus_points == 15

    def test_milestones_achieved_once_and_never_undone(self):
        achieved_counts = [sum(m.achieved for m in s.milestones) for s in self.snapshots]
        assert achieved_counts == sorted(achieved_counts)
        assert achieved_counts[-1] == 4
        assert [m.achieved_date for m in self.final.milestones] == [
            day(3), day(5), day(8), day(10),
        ]

    def test_all_daily_targets_satisfied(self):
        assert all(
            t.state == DailyTargetState.SATISFIED for t in self.final.daily_targets
        )

    def test_terminal_challenge_ignores_contributions(self):
        """Applying to a completed challenge returns it unchanged."""
        result = self.tracker.apply(self.final, 50, day(11))
        assert result is self.final
        assert result.current_amount == 100


class TestEndOfChallenge:
    """Contributions after the end date close unfinished challenges."""

    def setup_method(self):
        self.tracker = ChallengeProgressTracker()
        self.challenge = make_daily_challenge()
        self.after_end = self.challenge.end_date + timedelta(days=1)

    def test_partially_completed(self):
        challenge = self.tracker.apply(self.challenge, 85, day(1))
        challenge = self.tracker.apply(challenge, 0, self.after_end)

        assert challenge.status == ChallengeStatus.PARTIALLY_COMPLETED
        assert challenge.achievements[-1].id == "almost-there"
        assert challenge.completed_date is None

    def test_failed(self):
        challenge = self.tracker.apply(self.challenge, 10, day(1))
        challenge = self.tracker.apply(challenge, 0, self.after_end)
        assert challenge.status == ChallengeStatus.FAILED

    def test_completion_after_end_date_wins(self):
        challenge = self.tracker.apply(self.challenge, 100, self.after_end)
        assert challenge.status == ChallengeStatus.COMPLETED

    def test_partial_is_terminal(self):
        challenge = self.tracker.apply(self.challenge, 85, day(1))
        challenge = self.tracker.apply(challenge, 0, self.after_end)
        assert self.tracker.apply(challenge, 15, self.after_end) is challenge


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""
Tests for challenge generation.

Every factory here gets a seeded random.Random so results are repeatable.
"""

import random

import pytest
from datetime import datetime, timedelta

from stackr.challenges.catalog import (
    CHALLENGE_TEMPLATES,
    COMMON_TIPS,
    SPECIFIC_TIPS,
    get_template,
    get_theme,
    round_half_up,
)
from stackr.challenges.factory import (
    ChallengeFactory,
    calculate_reward_points,
    calculate_target_amount,
    generate_daily_targets,
    generate_milestones,
    generate_rewards,
)
from stackr.config import ChallengeSettings
from stackr.models.challenge import (
    ChallengePreferences,
    ChallengeStatus,
    ChallengeType,
    DailyTargetState,
    FinancialProfile,
    RewardType,
)


START = datetime(2024, 5, 1, 9, 0)


def make_factory(seed=7):
    return ChallengeFactory(rng=random.Random(seed), settings=ChallengeSettings())


class TestRounding:
    """Tests for round_half_up."""

    @pytest.mark.parametrize("value,expected", [
        (2.5, 3),
        (3.5, 4),
        (2.49, 2),
        (0.5, 1),
        (-0.5, 0),
        (7.0, 7),
    ])
    def test_ties_round_up(self, value, expected):
        assert round_half_up(value) == expected


class TestTargetAmounts:
    """Tests for calculate_target_amount with 3000 income and 10% savings."""

    def setup_method(self):
        self.profile = FinancialProfile(monthly_income=3000, savings_rate=10)

    @pytest.mark.parametrize("challenge_type,duration,expected", [
        (ChallengeType.DAILY, 30, 90),
        (ChallengeType.DAILY, 10, 30),
        (ChallengeType.WEEKLY, 8, 120),
        (ChallengeType.WEEKLY, 7, 60),
        (ChallengeType.MONTHLY, 30, 360),
        (ChallengeType.MONTHLY, 31, 720),
        (ChallengeType.ROUND_UP, 30, 32),
        (ChallengeType.NO_SPEND, 14, 168),
        (ChallengeType.SAVING_SPRINT, 7, 70),
        (ChallengeType.INCREMENTAL, 26, 75),
        (ChallengeType.DECLUTTER, 14, 80),
        (ChallengeType.HABIT_SWAP, 30, 150),
        (ChallengeType.AUTOMATION, 60, 180),
    ])
    def test_formulas(self, challenge_type, duration, expected):
        assert calculate_target_amount(challenge_type, self.profile, duration) == expected

    def test_no_spend_uses_explicit_discretionary(self):
        profile = FinancialProfile(monthly_income=3000, discretionary_expense=600)
        assert calculate_target_amount(ChallengeType.NO_SPEND, profile, 30) == 480

    def test_accepts_string_type(self):
        assert calculate_target_amount("daily", self.profile, 30) == 90

    def test_zero_income(self):
        profile = FinancialProfile(monthly_income=0)
        assert calculate_target_amount(ChallengeType.DAILY, profile, 30) == 0


class TestDailyTargets:
    """Tests for generate_daily_targets."""

    def test_daily_spreads_evenly(self):
        targets = generate_daily_targets(ChallengeType.DAILY, 90, 30, START)
        assert len(targets) == 30
        assert all(t.amount == 3 for t in targets)
        assert all(t.state == DailyTargetState.PENDING for t in targets)
        assert [t.day for t in targets] == list(range(1, 31))
        assert targets[0].date == START
        assert targets[-1].date == START + timedelta(days=29)

    def test_weekly_only_on_cycle_days(self):
        """Off-cycle days are not applicable and expect nothing."""
        targets = generate_daily_targets(ChallengeType.WEEKLY, 120, 8, START)
        applicable = [t for t in targets if t.state == DailyTargetState.PENDING]
        assert [t.day for t in applicable] == [1, 8]
        assert all(t.amount == 60 for t in applicable)

        skipped = [t for t in targets if t.state == DailyTargetState.NOT_APPLICABLE]
        assert len(skipped) == 6
        assert all(t.amount == 0 and t.completed for t in skipped)

    def test_monthly_only_first_day_of_each_month(self):
        targets = generate_daily_targets(ChallengeType.MONTHLY, 720, 31, START)
        applicable = [t.day for t in targets if t.state == DailyTargetState.PENDING]
        assert applicable == [1, 31]

    def test_incremental_amounts_grow(self):
        targets = generate_daily_targets(ChallengeType.INCREMENTAL, 75, 26, START)
        applicable = [t for t in targets if t.state == DailyTargetState.PENDING]
        assert [t.day for t in applicable] == [1, 8, 15, 22]
        assert [t.amount for t in applicable] == [8, 16, 24, 32]

    def test_other_types_round_up_per_day(self):
        targets = generate_daily_targets(ChallengeType.ROUND_UP, 32, 30, START)
        assert all(t.amount == 2 for t in targets)


class TestMilestonesAndRewards:
    """Tests for milestones, reward points and rewards."""

    def test_short_challenge_milestones(self):
        milestones = generate_milestones(70, 7)
        assert [m.percentage for m in milestones] == [33, 66, 100]
        assert [m.amount for m in milestones] == [23, 46, 70]
        assert [m.id for m in milestones] == ["milestone-0", "milestone-1", "milestone-2"]

    def test_long_challenge_milestones(self):
        milestones = generate_milestones(90, 30)
        assert [m.percentage for m in milestones] == [25, 50, 75, 100]
        assert [m.amount for m in milestones] == [23, 45, 68, 90]
        assert [m.icon for m in milestones] == ["🔷", "⭐", "🌟", "🏆"]
        assert not any(m.achieved for m in milestones)

    def test_reward_points(self):
        daily = get_template(ChallengeType.DAILY)
        assert calculate_reward_points(90, daily) == 98
        assert calculate_reward_points(100, daily) == 100
        assert calculate_reward_points(100, get_template(ChallengeType.NO_SPEND)) == 200

    def test_reward_points_zero_target(self):
        assert calculate_reward_points(0, get_template(ChallengeType.DAILY)) == 0

    def test_rewards(self):
        rewards = generate_rewards(90, get_template(ChallengeType.DAILY))
        assert [r.type for r in rewards] == [
            RewardType.BADGE,
            RewardType.POINTS,
            RewardType.STATS,
        ]
        assert rewards[0].name == "Daily Challenge Warrior"
        assert rewards[1].value == 98
        assert rewards[2].value == "+9%"


class TestChallengeFactory:
    """Tests for ChallengeFactory.generate and friends."""

    def test_generate_with_preferences(self):
        factory = make_factory()
        challenge = factory.generate(
            FinancialProfile(monthly_income=3000, savings_rate=10),
            ChallengePreferences(challenge_type="daily", duration=10, theme="ocean"),
            now=START,
            user_id="u1",
        )

        assert challenge.type == ChallengeType.DAILY
        assert challenge.user_id == "u1"
        assert challenge.theme.id == "ocean"
        assert challenge.name == f"{challenge.theme.name}: Daily Challenge"
        assert challenge.duration == 10
        assert challenge.start_date == START
        assert challenge.end_date == START + timedelta(days=10)
        assert challenge.target_amount == 30
        assert len(challenge.daily_targets) == 10
        assert challenge.status == ChallengeStatus.ACTIVE
        assert challenge.current_amount == 0
        assert challenge.progress == 0
        assert challenge.streak_count == 0
        assert challenge.achievements == []

    def test_generate_defaults(self):
        challenge = make_factory().generate(now=START)
        template = CHALLENGE_TEMPLATES[challenge.type]
        assert challenge.duration == template.duration.default
        assert challenge.difficulty == template.difficulty

    def test_duration_outside_template_bounds_is_kept(self):
        challenge = make_factory().generate(
            preferences=ChallengePreferences(challenge_type="daily", duration=45),
            now=START,
        )
        assert challenge.duration == 45

    def test_preference_start_date_wins(self):
        start = datetime(2024, 6, 1)
        challenge = make_factory().generate(
            preferences=ChallengePreferences(challenge_type="weekly", start_date=start),
            now=START,
        )
        assert challenge.start_date == start

    def test_unknown_theme_falls_back(self):
        assert get_theme("does-not-exist").id == "space"
        challenge = make_factory().generate(
            preferences=ChallengePreferences(challenge_type="daily", theme="nope"),
            now=START,
        )
        assert challenge.theme.id == "space"

    def test_tips(self):
        """Two common tips and three specific ones, no repeats."""
        tips = make_factory().generate_tips(ChallengeType.WEEKLY)
        assert len(tips) == 5
        assert len(set(tips)) == 5
        assert set(tips[:2]) <= set(COMMON_TIPS)
        assert set(tips[2:]) == set(SPECIFIC_TIPS[ChallengeType.WEEKLY])

    def test_tip_counts_follow_settings(self):
        factory = ChallengeFactory(
            rng=random.Random(1),
            settings=ChallengeSettings(common_tip_count=1, specific_tip_count=1),
        )
        assert len(factory.generate_tips(ChallengeType.DAILY)) == 2

    def test_seeded_generation_is_repeatable(self):
        first = make_factory(seed=42).generate(now=START)
        second = make_factory(seed=42).generate(now=START)
        assert first == second
        assert first.id.version == 4

    def test_ids_differ_between_challenges(self):
        factory = make_factory()
        assert factory.generate(now=START).id != factory.generate(now=START).id

    def test_available_challenges(self):
        options = make_factory().available_challenges(FinancialProfile())
        assert len(options) == 10
        assert {o.type for o in options} == set(ChallengeType)
        daily = next(o for o in options if o.type == ChallengeType.DAILY)
        assert daily.duration == 30
        assert daily.target_amount == 90


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

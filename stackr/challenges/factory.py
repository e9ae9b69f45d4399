"""
Challenge Factory

Turns a financial profile and optional preferences into a concrete
Challenge: type, theme, target amount, daily targets, milestones,
rewards and tips.

DESIGN DECISION: Every random choice goes through one injected
random.Random. Seed it (CHALLENGE_RANDOM_SEED) and the same inputs
produce the same challenge, id included.
"""

import math
import random
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from stackr.challenges.catalog import (
    CHALLENGE_TEMPLATES,
    CHALLENGE_THEMES,
    COMMON_TIPS,
    DIFFICULTY_BASE_POINTS,
    SPECIFIC_TIPS,
    get_template,
    get_theme,
    round_half_up,
)
from stackr.config import ChallengeSettings, get_settings
from stackr.models.challenge import (
    Challenge,
    ChallengeOption,
    ChallengePreferences,
    ChallengeTemplate,
    ChallengeTheme,
    ChallengeType,
    DailyTarget,
    DailyTargetState,
    FinancialProfile,
    Milestone,
    Reward,
    RewardType,
)


def calculate_target_amount(
    challenge_type: ChallengeType,
    profile: FinancialProfile,
    duration: int,
) -> int:
    """
    Target amount for a challenge type over `duration` days.

    Weeks and months are counted with ceil, so an 8-day challenge spans
    two weeks.
    """
    challenge_type = ChallengeType(challenge_type)
    income = profile.monthly_income
    weeks = math.ceil(duration / 7)
    months = math.ceil(duration / 30)

    if challenge_type is ChallengeType.DAILY:
        return round_half_up(income * 0.001) * duration
    elif challenge_type is ChallengeType.WEEKLY:
        return round_half_up(income * 0.02) * weeks
    elif challenge_type is ChallengeType.MONTHLY:
        return round_half_up(income * (profile.savings_rate * 1.2 / 100)) * months
    elif challenge_type is ChallengeType.ROUND_UP:
        # 15 purchases a week, 50 cents rounded up on average
        return round_half_up(15 * 0.5 * (duration / 7))
    elif challenge_type is ChallengeType.NO_SPEND:
        return round_half_up((profile.discretionary / 30) * duration * 0.8)
    elif challenge_type is ChallengeType.SAVING_SPRINT:
        return round_half_up((income / 30) * duration * 0.10)
    elif challenge_type is ChallengeType.INCREMENTAL:
        return round_half_up(sum(income * 0.0025 * (i + 1) for i in range(weeks)))
    elif challenge_type is ChallengeType.DECLUTTER:
        # Two items a week at $20 each
        return 2 * 20 * weeks
    elif challenge_type is ChallengeType.HABIT_SWAP:
        return 5 * duration
    elif challenge_type is ChallengeType.AUTOMATION:
        return round_half_up(income * 0.03 * months)
    else:
        return round_half_up(max(2, income * 0.001)) * duration


def generate_daily_targets(
    challenge_type: ChallengeType,
    target_amount: float,
    duration: int,
    start_date: datetime,
) -> list[DailyTarget]:
    """
    Spread the target over the challenge days.

    Weekly, monthly and incremental challenges only expect a contribution
    on cycle days; every other day is NOT_APPLICABLE with amount 0.
    """
    challenge_type = ChallengeType(challenge_type)
    weeks = math.ceil(duration / 7)

    def target(i: int, amount: float, applicable: bool = True) -> DailyTarget:
        return DailyTarget(
            day=i + 1,
            date=start_date + timedelta(days=i),
            amount=amount if applicable else 0,
            state=DailyTargetState.PENDING if applicable else DailyTargetState.NOT_APPLICABLE,
        )

    if challenge_type is ChallengeType.DAILY:
        amount = round_half_up(target_amount / duration)
        return [target(i, amount) for i in range(duration)]

    if challenge_type is ChallengeType.WEEKLY:
        amount = round_half_up(target_amount / weeks)
        return [target(i, amount, i % 7 == 0) for i in range(duration)]

    if challenge_type is ChallengeType.MONTHLY:
        amount = round_half_up(target_amount / math.ceil(duration / 30))
        return [target(i, amount, i % 30 == 0) for i in range(duration)]

    if challenge_type is ChallengeType.INCREMENTAL:
        base = round_half_up(target_amount / (weeks * (weeks + 1) / 2))
        return [
            target(i, base * (i // 7 + 1), i % 7 == 0)
            for i in range(duration)
        ]

    amount = math.ceil(target_amount / duration)
    return [target(i, amount) for i in range(duration)]


def milestone_icon(percentage: int) -> str:
    if percentage == 100:
        return "🏆"
    if percentage >= 75:
        return "🌟"
    if percentage >= 50:
        return "⭐"
    return "🔷"


def generate_milestones(target_amount: float, duration: int) -> list[Milestone]:
    percentages = [33, 66, 100] if duration <= 7 else [25, 50, 75, 100]
    return [
        Milestone(
            id=f"milestone-{index}",
            name=f"{percentage}% Complete",
            description=f"Reach {percentage}% of your savings goal",
            amount=round_half_up(target_amount * percentage / 100),
            percentage=percentage,
            icon=milestone_icon(percentage),
        )
        for index, percentage in enumerate(percentages)
    ]


def calculate_reward_points(target_amount: float, template: ChallengeTemplate) -> int:
    """Achievement points scale with log10 of the target."""
    if target_amount <= 0:
        return 0
    base_points = DIFFICULTY_BASE_POINTS[template.difficulty]
    return round_half_up(base_points * math.log10(target_amount) / 2)


def generate_rewards(target_amount: float, template: ChallengeTemplate) -> list[Reward]:
    total_points = calculate_reward_points(target_amount, template)
    return [
        Reward(
            id="completion-badge",
            name=f"{template.name} Warrior",
            description=f"Completed the {template.name} challenge successfully",
            type=RewardType.BADGE,
            icon="🏆",
        ),
        Reward(
            id="points-reward",
            name="Achievement Points",
            description=f"Earned {total_points} achievement points",
            type=RewardType.POINTS,
            value=total_points,
            icon="✨",
        ),
        Reward(
            id="savings-boost",
            name="Savings Boost",
            description="Boosted your savings rate by completing this challenge",
            type=RewardType.STATS,
            value=f"+{round_half_up(target_amount / 10)}%",
            icon="📈",
        ),
    ]


class ChallengeFactory:
    """
    Generates savings challenges.

    Usage:
        factory = ChallengeFactory(rng=random.Random(7))
        challenge = factory.generate(profile, ChallengePreferences(challenge_type="daily"))
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        settings: Optional[ChallengeSettings] = None,
    ):
        self._settings = settings or get_settings().challenges
        self._rng = rng or random.Random(self._settings.random_seed)

    def pick_type(self) -> ChallengeType:
        return self._rng.choice(list(CHALLENGE_TEMPLATES))

    def pick_theme(self) -> ChallengeTheme:
        return CHALLENGE_THEMES[self._rng.choice(list(CHALLENGE_THEMES))]

    def new_id(self) -> UUID:
        return UUID(int=self._rng.getrandbits(128), version=4)

    def generate_tips(self, challenge_type: ChallengeType) -> list[str]:
        """Sample common and type-specific tips without replacement."""
        common = list(COMMON_TIPS)
        specific = list(SPECIFIC_TIPS.get(challenge_type, SPECIFIC_TIPS[ChallengeType.DAILY]))
        self._rng.shuffle(common)
        self._rng.shuffle(specific)
        return (
            common[:self._settings.common_tip_count]
            + specific[:self._settings.specific_tip_count]
        )

    def generate(
        self,
        profile: Optional[FinancialProfile] = None,
        preferences: Optional[ChallengePreferences] = None,
        now: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> Challenge:
        """
        Generate a new active challenge.

        Args:
            profile: Financial snapshot (defaults: 3000 income, 10% savings)
            preferences: Optional fixed type, duration, theme or start date
            now: Start instant when preferences carry none
            user_id: Owner recorded on the challenge
        """
        profile = profile or FinancialProfile()
        preferences = preferences or ChallengePreferences()

        challenge_type = preferences.challenge_type or self.pick_type()
        template = get_template(challenge_type)
        duration = preferences.duration or template.duration.default
        theme = get_theme(preferences.theme) if preferences.theme else self.pick_theme()

        start_date = preferences.start_date or now or datetime.now()
        target_amount = calculate_target_amount(template.type, profile, duration)

        return Challenge(
            id=self.new_id(),
            user_id=user_id,
            type=template.type,
            name=f"{theme.name}: {template.name}",
            description=template.description,
            theme_description=theme.description,
            start_date=start_date,
            end_date=start_date + timedelta(days=duration),
            duration=duration,
            target_amount=target_amount,
            daily_targets=generate_daily_targets(
                template.type, target_amount, duration, start_date
            ),
            difficulty=template.difficulty,
            theme=theme,
            milestones=generate_milestones(target_amount, duration),
            tips=self.generate_tips(template.type),
            rewards=generate_rewards(target_amount, template),
        )

    def available_challenges(
        self,
        profile: Optional[FinancialProfile] = None,
    ) -> list[ChallengeOption]:
        """One priced option per catalog type, each with a random theme."""
        profile = profile or FinancialProfile()
        options = []
        for template in CHALLENGE_TEMPLATES.values():
            theme = self.pick_theme()
            duration = template.duration.default
            options.append(ChallengeOption(
                type=template.type,
                name=f"{theme.name}: {template.name}",
                description=template.description,
                theme_description=theme.description,
                difficulty=template.difficulty,
                duration=duration,
                target_amount=calculate_target_amount(template.type, profile, duration),
                theme=theme,
            ))
        return options

"""
Challenge Recommender

Suggests up to three challenge types for a user based on their history
and savings rate. Picks are made in this order:

- beginner (easy) pick for users with fewer than 3 challenges
- habit pick (no-spend, habit-swap, automation) for savings rate < 15%
- advanced (medium/hard) pick for users with 3 or more challenges
- a quick win (default duration of two weeks or less)
- random fill until there are three
"""

import random
from typing import Iterable, Optional

from stackr.challenges.catalog import (
    CHALLENGE_TEMPLATES,
    CHALLENGE_THEMES,
    HABIT_TYPES,
    REPEATABLE_TYPES,
)
from stackr.challenges.factory import calculate_target_amount
from stackr.config import ChallengeSettings, get_settings
from stackr.models.challenge import (
    Challenge,
    ChallengeRecommendation,
    ChallengeStatus,
    ChallengeTemplate,
    ChallengeType,
    Difficulty,
    FinancialProfile,
)

RECOMMENDATION_COUNT = 3
QUICK_WIN_MAX_DAYS = 14


class ChallengeRecommender:

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        settings: Optional[ChallengeSettings] = None,
    ):
        if rng is None:
            settings = settings or get_settings().challenges
            rng = random.Random(settings.random_seed)
        self._rng = rng

    def eligible_templates(self, history: list[Challenge]) -> list[ChallengeTemplate]:
        """Types never completed, plus the ones worth repeating."""
        completed_types = {
            c.type for c in history if c.status is ChallengeStatus.COMPLETED
        }
        return [
            template
            for challenge_type, template in CHALLENGE_TEMPLATES.items()
            if challenge_type not in completed_types or challenge_type in REPEATABLE_TYPES
        ]

    def _recommend(
        self,
        template: ChallengeTemplate,
        profile: FinancialProfile,
        reason: str,
    ) -> ChallengeRecommendation:
        duration = template.duration.default
        return ChallengeRecommendation(
            type=template.type,
            name=template.name,
            description=template.description,
            duration=duration,
            target_amount=calculate_target_amount(template.type, profile, duration),
            difficulty=template.difficulty,
            theme=self._rng.choice(list(CHALLENGE_THEMES)),
            reason=reason,
        )

    def recommend(
        self,
        profile: Optional[FinancialProfile] = None,
        history: Iterable[Challenge] = (),
    ) -> list[ChallengeRecommendation]:
        profile = profile or FinancialProfile()
        history = list(history)
        eligible = self.eligible_templates(history)
        picks: list[ChallengeRecommendation] = []

        def first(predicate) -> Optional[ChallengeTemplate]:
            return next((t for t in eligible if predicate(t)), None)

        if len(history) < 3:
            beginner = first(
                lambda t: t.difficulty is Difficulty.EASY or t.type is ChallengeType.DAILY
            )
            if beginner:
                picks.append(self._recommend(
                    beginner, profile, "Great for beginners to build a savings habit"
                ))

        if profile.savings_rate < 15:
            habit = first(lambda t: t.type in HABIT_TYPES)
            if habit:
                picks.append(self._recommend(
                    habit, profile, "Help increase your savings rate with new habits"
                ))

        if len(history) >= 3:
            advanced = first(
                lambda t: t.difficulty in (Difficulty.MEDIUM, Difficulty.HARD)
            )
            if advanced:
                picks.append(self._recommend(
                    advanced,
                    profile,
                    "Ready for a bigger challenge? This will push your savings further",
                ))

        chosen = {p.type for p in picks}
        quick = first(
            lambda t: t.duration.default <= QUICK_WIN_MAX_DAYS and t.type not in chosen
        )
        if quick:
            picks.append(self._recommend(
                quick, profile, "Quick win to boost your savings momentum"
            ))

        while len(picks) < RECOMMENDATION_COUNT:
            chosen = {p.type for p in picks}
            remaining = [t for t in eligible if t.type not in chosen]
            if not remaining:
                break
            picks.append(self._recommend(
                self._rng.choice(remaining),
                profile,
                "This challenge matches your financial profile",
            ))

        return picks

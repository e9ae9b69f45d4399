"""
Achievement Level Calculator

Ranks a user by the number of challenges they completed and totals
their challenge points.
"""

from typing import Iterable, Optional

from stackr.challenges.catalog import (
    ACHIEVEMENT_LEVELS,
    DIFFICULTY_COMPLETION_BONUS,
    LevelTier,
    round_half_up,
)
from stackr.models.challenge import AchievementLevel, Challenge


def challenge_points(challenge: Challenge) -> int:
    """Points a completed challenge is worth: 100, difficulty bonus, achievement bonuses."""
    return 100 + DIFFICULTY_COMPLETION_BONUS[challenge.difficulty] + challenge.bonus_points


class AchievementLevelCalculator:
    """Maps completed challenges onto the Bronze..Diamond tiers."""

    def __init__(self, levels: list[LevelTier] = ACHIEVEMENT_LEVELS):
        self._levels = sorted(levels, key=lambda tier: tier.threshold)

    def current_tier(self, count: int) -> LevelTier:
        tier = self._levels[0]
        for candidate in self._levels:
            if count >= candidate.threshold:
                tier = candidate
        return tier

    def next_tier(self, tier: LevelTier) -> Optional[LevelTier]:
        for candidate in self._levels:
            if candidate.threshold > tier.threshold:
                return candidate
        return None

    def compute(self, completed_challenges: Iterable[Challenge]) -> AchievementLevel:
        """
        Level for a list of completed challenges.

        The caller filters to completed challenges; every challenge passed
        in counts towards the level and the points.
        """
        completed = list(completed_challenges)
        count = len(completed)
        tier = self.current_tier(count)
        next_tier = self.next_tier(tier)

        progress = 0
        required = 0
        if next_tier is not None:
            span = next_tier.threshold - tier.threshold
            # A user with no completions sits below Bronze; don't report negative progress
            progress = max(0, round_half_up((count - tier.threshold) / span * 100))
            required = next_tier.threshold - count

        return AchievementLevel(
            level=tier.name,
            icon=tier.icon,
            bonus_multiplier=1 + tier.bonus / 100,
            challenges_completed=count,
            next_level=next_tier.name if next_tier else None,
            progress_to_next_level=progress,
            required_for_next_level=required,
            total_points=sum(challenge_points(c) for c in completed),
        )

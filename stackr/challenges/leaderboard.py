"""
Leaderboard Builder

Scores users by their completed challenges and sorts them by points.
Ties keep their input order.
"""

from typing import Iterable, Optional

from stackr.challenges.levels import AchievementLevelCalculator
from stackr.models.challenge import (
    ChallengeStatus,
    LeaderboardEntry,
    LeaderboardUser,
)


class LeaderboardBuilder:

    def __init__(self, calculator: Optional[AchievementLevelCalculator] = None):
        self._calculator = calculator or AchievementLevelCalculator()

    def entry_for(self, user: LeaderboardUser) -> LeaderboardEntry:
        completed = [
            c for c in user.challenges if c.status is ChallengeStatus.COMPLETED
        ]
        level = self._calculator.compute(completed)

        return LeaderboardEntry(
            user_id=user.id,
            name=user.name,
            avatar=user.avatar,
            challenges_completed=len(completed),
            achievement_level=level.level,
            achievement_icon=level.icon,
            points=level.total_points,
            streak=max((c.streak_count for c in user.challenges), default=0),
            total_saved=sum(c.current_amount for c in completed),
        )

    def rank(self, entries: Iterable[LeaderboardEntry]) -> list[LeaderboardEntry]:
        """Sort rows by points, highest first, and number them from 1."""
        ordered = sorted(entries, key=lambda e: e.points, reverse=True)
        return [
            entry.model_copy(update={"rank": position})
            for position, entry in enumerate(ordered, start=1)
        ]

    def build(self, users: Iterable[LeaderboardUser]) -> list[LeaderboardEntry]:
        return self.rank(self.entry_for(user) for user in users)

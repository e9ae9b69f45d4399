"""
Challenge Statistics

Aggregates a user's challenges (any status) into the numbers shown on
their savings dashboard.
"""

from typing import Iterable

from stackr.challenges.catalog import round_half_up
from stackr.models.challenge import (
    Badge,
    Challenge,
    ChallengeStatistics,
    ChallengeStatus,
)

MAX_BADGES = 10

STATUS_POINTS = {
    ChallengeStatus.COMPLETED: 100,
    ChallengeStatus.PARTIALLY_COMPLETED: 50,
}


def compute_statistics(challenges: Iterable[Challenge]) -> ChallengeStatistics:
    challenges = list(challenges)
    if not challenges:
        return ChallengeStatistics()

    completed = [c for c in challenges if c.status is ChallengeStatus.COMPLETED]
    active = [c for c in challenges if c.status is ChallengeStatus.ACTIVE]
    total_saved = sum(c.current_amount for c in challenges)

    badges: list[Badge] = []
    seen: set[str] = set()
    for challenge in challenges:
        for achievement in challenge.achievements:
            if achievement.id in seen:
                continue
            seen.add(achievement.id)
            badges.append(Badge(
                id=achievement.id,
                name=achievement.name,
                description=achievement.description,
                icon=achievement.icon,
                date=achievement.date,
            ))

    return ChallengeStatistics(
        total_completed=len(completed),
        total_saved=total_saved,
        completion_rate=round_half_up(len(completed) / len(challenges) * 100),
        average_saved=round_half_up(total_saved / len(completed)) if completed else 0,
        longest_streak=max(c.streak_count for c in challenges),
        current_streak=max((c.streak_count for c in active), default=0),
        total_points=sum(
            STATUS_POINTS.get(c.status, 0) + c.bonus_points for c in challenges
        ),
        badges=badges[:MAX_BADGES],
    )

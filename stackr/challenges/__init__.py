"""
Savings Challenges Package

Generation, progress tracking and aggregation of gamified savings
challenges.
"""

from stackr.challenges.catalog import (
    ACHIEVEMENT_LEVELS,
    CHALLENGE_TEMPLATES,
    CHALLENGE_THEMES,
    STREAK_BONUSES,
    round_half_up,
)
from stackr.challenges.factory import ChallengeFactory, calculate_target_amount
from stackr.challenges.leaderboard import LeaderboardBuilder
from stackr.challenges.levels import AchievementLevelCalculator
from stackr.challenges.recommendations import ChallengeRecommender
from stackr.challenges.statistics import compute_statistics
from stackr.challenges.tracker import (
    ChallengeProgressTracker,
    InvalidContributionError,
    OutOfOrderContributionError,
)

__all__ = [
    "ACHIEVEMENT_LEVELS",
    "CHALLENGE_TEMPLATES",
    "CHALLENGE_THEMES",
    "STREAK_BONUSES",
    "AchievementLevelCalculator",
    "ChallengeFactory",
    "ChallengeProgressTracker",
    "ChallengeRecommender",
    "InvalidContributionError",
    "LeaderboardBuilder",
    "OutOfOrderContributionError",
    "calculate_target_amount",
    "compute_statistics",
    "round_half_up",
]

"""
Challenge Catalog

Static data the factory, tracker and level calculator draw from:
templates, themes, tips, streak bonuses and achievement tiers.

All arithmetic that feeds targets and points uses round_half_up, which
rounds .5 upwards like the web client does. Python's round() would send
2.5 to 2.
"""

import math
from typing import NamedTuple, Optional

from stackr.models.challenge import (
    ChallengeTemplate,
    ChallengeTheme,
    ChallengeType,
    Difficulty,
    DurationBounds,
    ThemeColors,
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties towards +infinity."""
    return int(math.floor(value + 0.5))


# =============================================================================
# TEMPLATES
# =============================================================================

CHALLENGE_TEMPLATES: dict[ChallengeType, ChallengeTemplate] = {
    template.type: template
    for template in [
        ChallengeTemplate(
            type=ChallengeType.DAILY,
            name="Daily Challenge",
            description="Save a small amount each day",
            duration=DurationBounds(min=7, max=30, default=30),
            difficulty=Difficulty.EASY,
        ),
        ChallengeTemplate(
            type=ChallengeType.WEEKLY,
            name="Weekly Power-Up",
            description="Save a larger amount once a week",
            duration=DurationBounds(min=4, max=12, default=8),
            difficulty=Difficulty.MEDIUM,
        ),
        ChallengeTemplate(
            type=ChallengeType.MONTHLY,
            name="Monthly Milestone",
            description="Save a substantial amount once a month",
            duration=DurationBounds(min=3, max=12, default=6),
            difficulty=Difficulty.MEDIUM,
        ),
        ChallengeTemplate(
            type=ChallengeType.ROUND_UP,
            name="Round-Up Challenge",
            description="Round up all purchases to the nearest dollar and save the difference",
            duration=DurationBounds(min=14, max=90, default=30),
            difficulty=Difficulty.EASY,
        ),
        ChallengeTemplate(
            type=ChallengeType.NO_SPEND,
            name="No-Spend Period",
            description="Avoid spending in specific categories for a period",
            duration=DurationBounds(min=7, max=30, default=14),
            difficulty=Difficulty.HARD,
        ),
        ChallengeTemplate(
            type=ChallengeType.SAVING_SPRINT,
            name="Savings Sprint",
            description="Maximize savings in a short, intense period",
            duration=DurationBounds(min=3, max=14, default=7),
            difficulty=Difficulty.HARD,
        ),
        ChallengeTemplate(
            type=ChallengeType.INCREMENTAL,
            name="Increment Challenge",
            description="Save an increasing amount each period",
            duration=DurationBounds(min=4, max=52, default=26),
            difficulty=Difficulty.MEDIUM,
        ),
        ChallengeTemplate(
            type=ChallengeType.DECLUTTER,
            name="Declutter & Earn",
            description="Sell unused items and save all proceeds",
            duration=DurationBounds(min=7, max=30, default=14),
            difficulty=Difficulty.MEDIUM,
        ),
        ChallengeTemplate(
            type=ChallengeType.HABIT_SWAP,
            name="Habit Swap",
            description="Replace expensive habits with cheaper alternatives and save the difference",
            duration=DurationBounds(min=14, max=60, default=30),
            difficulty=Difficulty.MEDIUM,
        ),
        ChallengeTemplate(
            type=ChallengeType.AUTOMATION,
            name="Auto-Save Setup",
            description="Set up automated transfers for consistent saving",
            duration=DurationBounds(min=30, max=90, default=60),
            difficulty=Difficulty.EASY,
        ),
    ]
}


def get_template(challenge_type: ChallengeType) -> ChallengeTemplate:
    return CHALLENGE_TEMPLATES[ChallengeType(challenge_type)]


# =============================================================================
# THEMES
# =============================================================================

CHALLENGE_THEMES: dict[str, ChallengeTheme] = {
    theme.id: theme
    for theme in [
        ChallengeTheme(
            id="space",
            name="Space Explorer",
            description="Reach for the stars with your savings!",
            colors=ThemeColors(primary="#1a237e", secondary="#7986cb", accent="#ff4081"),
        ),
        ChallengeTheme(
            id="ocean",
            name="Ocean Adventure",
            description="Dive deep into saving success!",
            colors=ThemeColors(primary="#006064", secondary="#4dd0e1", accent="#ffb74d"),
        ),
        ChallengeTheme(
            id="forest",
            name="Forest Journey",
            description="Grow your savings like a mighty forest!",
            colors=ThemeColors(primary="#1b5e20", secondary="#81c784", accent="#ff8a65"),
        ),
        ChallengeTheme(
            id="mountain",
            name="Mountain Climber",
            description="Ascend to financial heights!",
            colors=ThemeColors(primary="#3e2723", secondary="#a1887f", accent="#4fc3f7"),
        ),
        ChallengeTheme(
            id="ninja",
            name="Savings Ninja",
            description="Master the art of saving with stealth and discipline!",
            colors=ThemeColors(primary="#212121", secondary="#616161", accent="#f44336"),
        ),
        ChallengeTheme(
            id="wizard",
            name="Financial Wizard",
            description="Cast powerful spells of wealth growth!",
            colors=ThemeColors(primary="#4a148c", secondary="#9c27b0", accent="#ffeb3b"),
        ),
        ChallengeTheme(
            id="superhero",
            name="Money Superhero",
            description="Save the day with your financial superpowers!",
            colors=ThemeColors(primary="#0d47a1", secondary="#1976d2", accent="#f44336"),
        ),
        ChallengeTheme(
            id="chef",
            name="Budget Chef",
            description="Cook up a delicious financial future!",
            colors=ThemeColors(primary="#bf360c", secondary="#ff5722", accent="#fff176"),
        ),
    ]
}

DEFAULT_THEME_ID = "space"


def get_theme(theme_id: Optional[str]) -> ChallengeTheme:
    """Look up a theme, falling back to the default for unknown ids."""
    return CHALLENGE_THEMES.get(theme_id or DEFAULT_THEME_ID, CHALLENGE_THEMES[DEFAULT_THEME_ID])


# =============================================================================
# TIPS
# =============================================================================

COMMON_TIPS = [
    "Set reminders on your phone for saving days",
    "Visualize your goal to stay motivated",
    "Share your challenge progress with a friend for accountability",
    "Keep a visible tracker where you'll see it daily",
]

SPECIFIC_TIPS: dict[ChallengeType, list[str]] = {
    ChallengeType.DAILY: [
        "Put the daily amount in a jar each morning",
        "Set up a separate '30-day challenge' digital envelope",
        "Try to save the amount first thing each day",
    ],
    ChallengeType.WEEKLY: [
        "Schedule your savings transfer for the same day each week",
        "Consider saving the weekly amount from a single expense you cut",
        "Celebrate each weekly milestone with a free reward",
    ],
    ChallengeType.MONTHLY: [
        "Schedule the transfer right after payday",
        "Look for one big expense to cut each month",
        "Break down the monthly goal into weekly targets",
    ],
    ChallengeType.ROUND_UP: [
        "Keep a log of all purchases and calculate round-ups daily",
        "Use an app that automatically tracks your round-ups",
        "Round to the nearest $5 for even faster progress",
    ],
    ChallengeType.NO_SPEND: [
        "Identify trigger situations and plan alternatives",
        "Meal prep to avoid food spending",
        "Find free alternatives for entertainment",
    ],
    ChallengeType.SAVING_SPRINT: [
        "Clear your calendar of spending opportunities",
        "Temporarily pause subscriptions during the sprint",
        "Create daily mini-goals for maximum motivation",
    ],
    ChallengeType.INCREMENTAL: [
        "Use a visual tracker that shows the increasing amounts",
        "Plan ahead for the larger contributions in later weeks",
        "Find ways to increase income as the amounts grow",
    ],
    ChallengeType.DECLUTTER: [
        "Start with higher-value items for immediate momentum",
        "Set aside 15 minutes daily to identify items to sell",
        "Use multiple selling platforms for best results",
    ],
    ChallengeType.HABIT_SWAP: [
        "Track both the money and time saved with each swap",
        "Find substitutes that still provide satisfaction",
        "Create a 'swap journal' to track your experience",
    ],
    ChallengeType.AUTOMATION: [
        "Set up the automatic transfer and then 'forget' about it",
        "Start small and increase the amount once you adjust",
        "Split the automation into weekly smaller transfers",
    ],
}


# =============================================================================
# STREAKS AND LEVELS
# =============================================================================

class StreakBonus(NamedTuple):
    days: int
    bonus: int


STREAK_BONUSES = [
    StreakBonus(3, 5),
    StreakBonus(7, 10),
    StreakBonus(14, 15),
    StreakBonus(30, 25),
    StreakBonus(60, 35),
    StreakBonus(90, 50),
]


class LevelTier(NamedTuple):
    name: str
    threshold: int
    icon: str
    bonus: int


# Ascending by threshold
ACHIEVEMENT_LEVELS = [
    LevelTier("Bronze", 1, "🥉", 5),
    LevelTier("Silver", 5, "🥈", 10),
    LevelTier("Gold", 10, "🥇", 15),
    LevelTier("Platinum", 15, "💎", 20),
    LevelTier("Diamond", 25, "👑", 25),
]

DIFFICULTY_BASE_POINTS = {
    Difficulty.EASY: 100,
    Difficulty.MEDIUM: 150,
    Difficulty.HARD: 200,
}

# Extra points a completed challenge is worth on top of 100
DIFFICULTY_COMPLETION_BONUS = {
    Difficulty.EASY: 0,
    Difficulty.MEDIUM: 50,
    Difficulty.HARD: 100,
}

# Challenge types worth doing again after a completion
REPEATABLE_TYPES = frozenset({
    ChallengeType.DAILY,
    ChallengeType.WEEKLY,
    ChallengeType.ROUND_UP,
})

HABIT_TYPES = (
    ChallengeType.NO_SPEND,
    ChallengeType.HABIT_SWAP,
    ChallengeType.AUTOMATION,
)

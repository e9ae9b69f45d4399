"""
Savings Challenge Models

A Challenge is created by the ChallengeFactory and afterwards changes only
through ChallengeProgressTracker.apply(). Terminal challenges
(completed, partially completed, failed) never change again.

DESIGN DECISION: DailyTarget carries an explicit state instead of a
boolean. "No contribution required today" and "today's target was met"
used to share the same flag.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================

class ChallengeType(str, Enum):
    """The ten challenge templates in the catalog."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ROUND_UP = "round-up"
    NO_SPEND = "no-spend"
    SAVING_SPRINT = "saving-sprint"
    INCREMENTAL = "incremental"
    DECLUTTER = "declutter"
    HABIT_SWAP = "habit-swap"
    AUTOMATION = "automation"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ChallengeStatus(str, Enum):
    """
    Challenge lifecycle.

    Only ACTIVE accepts contributions.
    """
    ACTIVE = "active"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partiallyCompleted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ChallengeStatus.ACTIVE


class DailyTargetState(str, Enum):
    """What a single challenge day expects."""
    PENDING = "pending"                  # contribution expected, not yet met
    SATISFIED = "satisfied"              # contribution met the day's amount
    NOT_APPLICABLE = "not_applicable"    # no contribution required this day


class RewardType(str, Enum):
    BADGE = "badge"
    POINTS = "points"
    STATS = "stats"


# =============================================================================
# CATALOG ENTRIES
# =============================================================================

class DurationBounds(BaseModel):
    """Allowed challenge length in days."""

    min: int = Field(..., ge=1)
    max: int = Field(..., ge=1)
    default: int = Field(..., ge=1)

    @model_validator(mode='after')
    def validate_bounds(self) -> 'DurationBounds':
        if not self.min <= self.default <= self.max:
            raise ValueError("Default duration must lie between min and max")
        return self


class ChallengeTemplate(BaseModel):
    """Static catalog entry used to generate a concrete challenge."""

    type: ChallengeType
    name: str
    description: str
    duration: DurationBounds
    difficulty: Difficulty


class ThemeColors(BaseModel):
    """Cosmetic palette passed through to the UI."""

    primary: str
    secondary: str
    accent: str


class ChallengeTheme(BaseModel):
    id: str
    name: str
    description: str = ""
    colors: ThemeColors


# =============================================================================
# CHALLENGE PARTS
# =============================================================================

class DailyTarget(BaseModel):
    """Expected contribution for one day of a challenge."""

    day: int = Field(..., ge=1)
    date: datetime
    amount: float = Field(..., ge=0)
    state: DailyTargetState = DailyTargetState.PENDING
    contributed: float = Field(default=0.0, ge=0)

    @property
    def completed(self) -> bool:
        """Legacy boolean view: anything that is not pending."""
        return self.state is not DailyTargetState.PENDING


class Milestone(BaseModel):
    """
    A fixed checkpoint within a challenge.

    achieved only ever moves from False to True.
    """

    id: str
    name: str
    description: str = ""
    amount: float
    percentage: int
    icon: str
    achieved: bool = False
    achieved_date: Optional[datetime] = None


class Achievement(BaseModel):
    """A one-time unlocked event attached to a challenge."""

    id: str
    name: str
    description: str
    date: datetime
    icon: str
    bonus_points: Optional[int] = None


class Reward(BaseModel):
    id: str
    name: str
    description: str
    type: RewardType
    value: Optional[Union[int, str]] = None
    icon: str


class Challenge(BaseModel):
    """
    A concrete savings challenge.

    CRITICAL: Mutate only through ChallengeProgressTracker.apply(), which
    returns a new instance. Persist the returned snapshot.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: Optional[str] = None
    type: ChallengeType
    name: str
    description: str = ""
    theme_description: str = ""
    start_date: datetime
    end_date: datetime
    duration: int = Field(..., ge=1, description="Length in days")
    target_amount: float = Field(..., ge=0)
    current_amount: float = 0.0
    daily_targets: list[DailyTarget] = Field(default_factory=list)
    progress: int = Field(default=0, ge=0, le=100)
    status: ChallengeStatus = ChallengeStatus.ACTIVE
    completed_date: Optional[datetime] = None
    difficulty: Difficulty
    theme: ChallengeTheme
    milestones: list[Milestone] = Field(default_factory=list)
    streak_count: int = Field(default=0, ge=0)
    last_contribution_date: Optional[datetime] = None
    achievements: list[Achievement] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    rewards: list[Reward] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def bonus_points(self) -> int:
        """Sum of bonus points carried by unlocked achievements."""
        return sum(a.bonus_points or 0 for a in self.achievements)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Challenge':
        if self.end_date < self.start_date:
            raise ValueError("Challenge end date cannot be before start date")
        return self


# =============================================================================
# INPUTS
# =============================================================================

class FinancialProfile(BaseModel):
    """
    The user's financial snapshot used by the target formulas.

    discretionary_expense falls back to 15% of monthly income.
    """

    monthly_income: float = Field(default=3000.0, ge=0)
    savings_rate: float = Field(
        default=10.0,
        ge=0,
        le=100,
        description="Savings rate in percent"
    )
    discretionary_expense: Optional[float] = Field(default=None, ge=0)

    @property
    def discretionary(self) -> float:
        if self.discretionary_expense:
            return self.discretionary_expense
        return self.monthly_income * 0.15


class ChallengePreferences(BaseModel):
    """Optional overrides for challenge generation."""

    challenge_type: Optional[ChallengeType] = None
    duration: Optional[int] = Field(default=None, ge=1)
    theme: Optional[str] = None
    start_date: Optional[datetime] = None


class UserContext(BaseModel):
    """
    Explicit per-request context handed to flows.

    Replaces any shared application state: whoever calls a flow says
    which user and which profile it is acting for.
    """

    user_id: str = Field(..., min_length=1)
    display_name: Optional[str] = None
    profile: FinancialProfile = Field(default_factory=FinancialProfile)


# =============================================================================
# AGGREGATES
# =============================================================================

class AchievementLevel(BaseModel):
    """A user's rank derived from completed challenges."""

    level: str
    icon: str
    bonus_multiplier: float
    challenges_completed: int
    next_level: Optional[str] = None
    progress_to_next_level: int = 0
    required_for_next_level: int = 0
    total_points: int = 0


class LeaderboardUser(BaseModel):
    """Input row for the leaderboard: a user and all their challenges."""

    id: str
    name: str = ""
    avatar: Optional[str] = None
    challenges: list[Challenge] = Field(default_factory=list)


class LeaderboardEntry(BaseModel):
    user_id: str
    name: str = ""
    avatar: Optional[str] = None
    challenges_completed: int = 0
    achievement_level: str = "Bronze"
    achievement_icon: str = ""
    points: int = 0
    streak: int = 0
    total_saved: float = 0.0
    rank: Optional[int] = None


class Badge(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    date: datetime


class ChallengeStatistics(BaseModel):
    total_completed: int = 0
    total_saved: float = 0.0
    completion_rate: int = 0
    average_saved: int = 0
    longest_streak: int = 0
    current_streak: int = 0
    total_points: int = 0
    badges: list[Badge] = Field(default_factory=list)


class ChallengeOption(BaseModel):
    """A catalog entry priced for a specific profile."""

    type: ChallengeType
    name: str
    description: str
    theme_description: str = ""
    difficulty: Difficulty
    duration: int
    target_amount: float
    theme: ChallengeTheme


class ChallengeRecommendation(BaseModel):
    type: ChallengeType
    name: str
    description: str
    duration: int
    target_amount: float
    difficulty: Difficulty
    theme: str
    reason: str

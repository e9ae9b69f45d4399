"""
Data Models Package

This package contains all Pydantic models used by the Stackr engine.
All data flowing through the guardrail and challenge components must
conform to these schemas.
"""

from stackr.models.guardrail import (
    CategorySummary,
    GuardrailAlert,
    GuardrailCheckResult,
    GuardrailStatus,
    OverallStatus,
    SpendingCycle,
    SpendingLimit,
    SpendingLimitRequest,
    SpendingLogEntry,
    SpendingPeriod,
    SpendingReflection,
    SpendingSummary,
)
from stackr.models.challenge import (
    Achievement,
    AchievementLevel,
    Badge,
    Challenge,
    ChallengeOption,
    ChallengePreferences,
    ChallengeRecommendation,
    ChallengeStatistics,
    ChallengeStatus,
    ChallengeTemplate,
    ChallengeTheme,
    ChallengeType,
    DailyTarget,
    DailyTargetState,
    Difficulty,
    DurationBounds,
    FinancialProfile,
    LeaderboardEntry,
    LeaderboardUser,
    Milestone,
    Reward,
    RewardType,
    ThemeColors,
    UserContext,
)
from stackr.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Guardrail models
    "CategorySummary",
    "GuardrailAlert",
    "GuardrailCheckResult",
    "GuardrailStatus",
    "OverallStatus",
    "SpendingCycle",
    "SpendingLimit",
    "SpendingLimitRequest",
    "SpendingLogEntry",
    "SpendingPeriod",
    "SpendingReflection",
    "SpendingSummary",
    # Challenge models
    "Achievement",
    "AchievementLevel",
    "Badge",
    "Challenge",
    "ChallengeOption",
    "ChallengePreferences",
    "ChallengeRecommendation",
    "ChallengeStatistics",
    "ChallengeStatus",
    "ChallengeTemplate",
    "ChallengeTheme",
    "ChallengeType",
    "DailyTarget",
    "DailyTargetState",
    "Difficulty",
    "DurationBounds",
    "FinancialProfile",
    "LeaderboardEntry",
    "LeaderboardUser",
    "Milestone",
    "Reward",
    "RewardType",
    "ThemeColors",
    "UserContext",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

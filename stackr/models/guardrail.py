"""
Spending Guardrail Models

These models define the schemas for limits, ledger entries, alerts and
weekly reflections. They are designed to:
1. Reject invalid requests synchronously (never silently default)
2. Keep ledger entries immutable once written
3. Be serializable for storage and audit logging

DESIGN DECISION: All instants are naive local time, matching datetime.now().
Timezone-aware input is converted to local time and made naive on the way
in, so ledger timestamps and evaluation windows always compare cleanly.

Money that is entered by the user (limits, spending) is
stored as Decimal. Evaluation results carry floats because percentages are
derived values and are never written back as money.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def to_naive_local(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value
    return value.astimezone().replace(tzinfo=None)


# =============================================================================
# ENUMS
# =============================================================================

class SpendingCycle(str, Enum):
    """Recurrence period over which a spending limit resets."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class GuardrailStatus(str, Enum):
    """
    Classification of spending against a limit.

    SAFE never produces an alert; it only appears in summaries.
    """
    SAFE = "safe"
    WARNING = "warning"
    OVER = "over"


class OverallStatus(str, Enum):
    """Week-level status stored on a reflection."""
    GOOD = "good"
    WARNING = "warning"
    OVER_BUDGET = "over_budget"


# =============================================================================
# LIMITS
# =============================================================================

class SpendingLimitRequest(BaseModel):
    """
    A request to create or update a spending limit.

    CRITICAL: category, limit_amount and cycle are all required.
    Missing values raise a ValidationError; nothing is defaulted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Spending category the limit applies to"
    )
    limit_amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Maximum spend per cycle"
    )
    cycle: SpendingCycle = Field(
        ...,
        description="Weekly or monthly reset"
    )
    is_active: bool = Field(
        default=True,
        description="Inactive limits are kept but never evaluated"
    )


class SpendingLimit(BaseModel):
    """
    A stored spending limit.

    Unique per (user_id, category). The cycle is an attribute of the
    limit, not part of its identity.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique limit ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the limit"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    limit_amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2
    )
    cycle: SpendingCycle
    is_active: bool = True
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    @property
    def key(self) -> tuple[str, str]:
        """Uniqueness key used by every storage backend."""
        return (self.user_id, self.category)


# =============================================================================
# LEDGER
# =============================================================================

class SpendingLogEntry(BaseModel):
    """
    A single spending event.

    Entries are append-only and immutable. They feed aggregation only.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4
    )
    user_id: str = Field(
        ...,
        min_length=1
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    amount_spent: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Amount spent"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=500
    )
    source: str = Field(
        default="manual",
        max_length=50,
        description="Where the entry came from (manual, import, ...)"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now
    )
    dedupe_key: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Caller-supplied key that makes a retried append idempotent"
    )

    @field_validator('timestamp')
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return to_naive_local(v)


# =============================================================================
# EVALUATION RESULTS
# =============================================================================

class GuardrailAlert(BaseModel):
    """A limit that has crossed the warning or over threshold."""

    category: str
    spent: float
    limit: float
    percentage: float
    status: GuardrailStatus


class GuardrailCheckResult(BaseModel):
    """
    Result of checking all active limits for a user.

    Advisory only. Safe to recompute at any time.
    """

    user_id: str
    checked_at: datetime
    has_warnings: bool = False
    has_overages: bool = False
    alerts: list[GuardrailAlert] = Field(default_factory=list)


class SpendingPeriod(BaseModel):
    """An explicit [start, end] range for summaries."""

    start: datetime
    end: datetime

    @field_validator('start', 'end')
    @classmethod
    def normalize_bounds(cls, v: datetime) -> datetime:
        return to_naive_local(v)

    @model_validator(mode='after')
    def validate_range(self) -> 'SpendingPeriod':
        if self.end < self.start:
            raise ValueError("Period end cannot be before start")
        return self


class CategorySummary(BaseModel):
    """Spending for one category over a summary period."""

    category: str
    spent: float
    limit: Optional[float] = None
    percentage: float = 0.0
    status: GuardrailStatus = GuardrailStatus.SAFE


class SpendingSummary(BaseModel):
    """Per-category spending with totals over an explicit period."""

    user_id: str
    categories: list[CategorySummary] = Field(default_factory=list)
    total_spent: float = 0.0
    total_limit: Optional[float] = None
    start_date: datetime
    end_date: datetime

    @property
    def over_categories(self) -> list[CategorySummary]:
        return [c for c in self.categories if c.status == GuardrailStatus.OVER]

    @property
    def warning_categories(self) -> list[CategorySummary]:
        return [c for c in self.categories if c.status == GuardrailStatus.WARNING]


# =============================================================================
# REFLECTIONS
# =============================================================================

class SpendingReflection(BaseModel):
    """
    Persisted weekly summary with attached advice text.

    Unique per (user_id, week_start_date, week_end_date).
    The ai_suggestion text is produced elsewhere and stored as-is.
    """

    id: UUID = Field(
        default_factory=uuid4
    )
    user_id: str = Field(
        ...,
        min_length=1
    )
    week_start_date: datetime
    week_end_date: datetime
    overall_status: OverallStatus
    category_summary: dict[str, GuardrailStatus] = Field(
        default_factory=dict,
        description="Category -> guardrail status for the week"
    )
    ai_suggestion: str = Field(
        default="",
        description="Opaque advice text from an external generator"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    @property
    def key(self) -> tuple[str, datetime, datetime]:
        return (self.user_id, self.week_start_date, self.week_end_date)

    @model_validator(mode='after')
    def validate_week(self) -> 'SpendingReflection':
        if self.week_end_date < self.week_start_date:
            raise ValueError("Week end cannot be before week start")
        return self

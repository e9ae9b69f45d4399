"""
Reflection Recorder

Stores one weekly spending reflection per (user, week). The advice text
is written by an external generator; this module only stores it and
prepares the plain-text summary that generator is given.
"""

from datetime import datetime
from typing import Optional

from stackr.config import GuardrailSettings, get_settings
from stackr.models.guardrail import (
    GuardrailStatus,
    OverallStatus,
    SpendingReflection,
    SpendingSummary,
)
from stackr.services.storage import ReflectionStorageInterface


FALLBACK_SUGGESTION = (
    "Review your spending in categories close to or over budget, and consider "
    "adjusting your limits or spending habits. Focus on categories where "
    "you're within budget and apply those successful strategies to other areas."
)


def derive_overall_status(summary: SpendingSummary) -> OverallStatus:
    """over_budget if any category is over, warning if any is close, else good."""
    statuses = {c.status for c in summary.categories}
    if GuardrailStatus.OVER in statuses:
        return OverallStatus.OVER_BUDGET
    if GuardrailStatus.WARNING in statuses:
        return OverallStatus.WARNING
    return OverallStatus.GOOD


def describe_summary(summary: SpendingSummary) -> str:
    """One line per category, e.g. 'Food: Spent $320.00 of $400.00 limit (80%)'."""
    lines = []
    for c in summary.categories:
        if c.limit is None:
            lines.append(f"{c.category}: Spent ${c.spent:.2f} (no limit set)")
        else:
            lines.append(
                f"{c.category}: Spent ${c.spent:.2f} of ${c.limit:.2f} limit "
                f"({c.percentage:.0f}%)"
            )
    return "\n".join(lines)


class ReflectionRecorder:

    def __init__(
        self,
        storage: ReflectionStorageInterface,
        settings: Optional[GuardrailSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().guardrails

    async def upsert_weekly(
        self,
        user_id: str,
        week_start_date: datetime,
        week_end_date: datetime,
        overall_status: OverallStatus,
        category_summary: dict[str, GuardrailStatus],
        ai_suggestion: str,
    ) -> SpendingReflection:
        """
        Save the reflection for a week.

        An existing reflection for exactly the same week is updated in place.
        """
        reflection = SpendingReflection(
            user_id=user_id,
            week_start_date=week_start_date,
            week_end_date=week_end_date,
            overall_status=overall_status,
            category_summary=category_summary,
            ai_suggestion=ai_suggestion,
        )
        return await self._storage.upsert_reflection(reflection)

    async def history(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[SpendingReflection]:
        """Most recent reflections first."""
        return await self._storage.list_reflections(
            user_id,
            limit=limit or self._settings.reflection_history_size,
        )

"""
Tests for weekly spending reflections.
"""

import asyncio

import pytest
from datetime import datetime, timedelta

from stackr.config import GuardrailSettings
from stackr.guardrails import (
    ReflectionRecorder,
    derive_overall_status,
    describe_summary,
)
from stackr.models.guardrail import (
    CategorySummary,
    GuardrailStatus,
    OverallStatus,
    SpendingSummary,
)
from stackr.services.storage import InMemoryReflectionStorage


def run(coro):
    return asyncio.run(coro)


def make_summary(*categories):
    return SpendingSummary(
        user_id="u1",
        categories=list(categories),
        start_date=datetime(2024, 5, 12),
        end_date=datetime(2024, 5, 18, 23, 59, 59),
    )


class TestOverallStatus:
    """Tests for derive_overall_status."""

    def test_empty_summary_is_good(self):
        assert derive_overall_status(make_summary()) == OverallStatus.GOOD

    def test_warning_wins_over_safe(self):
        summary = make_summary(
            CategorySummary(category="Food", spent=10, status=GuardrailStatus.SAFE),
            CategorySummary(category="Fun", spent=85, status=GuardrailStatus.WARNING),
        )
        assert derive_overall_status(summary) == OverallStatus.WARNING

    def test_over_wins(self):
        summary = make_summary(
            CategorySummary(category="Fun", spent=85, status=GuardrailStatus.WARNING),
            CategorySummary(category="Food", spent=500, status=GuardrailStatus.OVER),
        )
        assert derive_overall_status(summary) == OverallStatus.OVER_BUDGET


class TestDescribeSummary:
    """Tests for the plain-text summary given to suggestion generators."""

    def test_lines(self):
        summary = make_summary(
            CategorySummary(
                category="Food",
                spent=320,
                limit=400,
                percentage=80.0,
                status=GuardrailStatus.WARNING,
            ),
            CategorySummary(category="Coffee", spent=12.5),
        )
        assert describe_summary(summary) == (
            "Food: Spent $320.00 of $400.00 limit (80%)\n"
            "Coffee: Spent $12.50 (no limit set)"
        )

    def test_empty(self):
        assert describe_summary(make_summary()) == ""


class TestReflectionRecorder:
    """Tests for ReflectionRecorder on the in-memory store."""

    def setup_method(self):
        self.recorder = ReflectionRecorder(
            InMemoryReflectionStorage(),
            GuardrailSettings(reflection_history_size=4),
        )

    def _save(self, week_start, status=OverallStatus.GOOD, suggestion="ok", user_id="u1"):
        week_end = week_start + timedelta(days=7, microseconds=-1)
        return run(self.recorder.upsert_weekly(
            user_id=user_id,
            week_start_date=week_start,
            week_end_date=week_end,
            overall_status=status,
            category_summary={"Food": GuardrailStatus.SAFE},
            ai_suggestion=suggestion,
        ))

    def test_same_week_updates_in_place(self):
        """Saving a week twice keeps one record with the latest content."""
        first = self._save(datetime(2024, 5, 5), suggestion="first")
        second = self._save(
            datetime(2024, 5, 5),
            status=OverallStatus.OVER_BUDGET,
            suggestion="second",
        )

        assert second.id == first.id
        history = run(self.recorder.history("u1"))
        assert len(history) == 1
        assert history[0].ai_suggestion == "second"
        assert history[0].overall_status == OverallStatus.OVER_BUDGET

    def test_history_newest_first_and_limited(self):
        for day in [5, 12, 19]:
            self._save(datetime(2024, 5, day))
        for day in [2, 9]:
            self._save(datetime(2024, 6, day))
        self._save(datetime(2024, 6, 9), user_id="u2")

        history = run(self.recorder.history("u1"))
        assert len(history) == 4
        assert [r.week_start_date for r in history] == [
            datetime(2024, 6, 9),
            datetime(2024, 6, 2),
            datetime(2024, 5, 19),
            datetime(2024, 5, 12),
        ]

    def test_history_explicit_limit(self):
        for day in [5, 12, 19]:
            self._save(datetime(2024, 5, day))
        assert len(run(self.recorder.history("u1", limit=2))) == 2

    def test_history_empty(self):
        assert run(self.recorder.history("nobody")) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

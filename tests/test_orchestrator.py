"""
Flow tests for GuardrailFlow and ChallengeFlow.

Both flows run on the in-memory backend with an AuditLogger over
InMemoryAuditStorage, so audited events can be asserted directly.
"""

import asyncio
import random

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from stackr.audit import AuditLogger, create_correlation_id
from stackr.challenges import (
    ChallengeFactory,
    ChallengeRecommender,
    InvalidContributionError,
    OutOfOrderContributionError,
)
from stackr.config import ChallengeSettings, GuardrailSettings, StorageSettings
from stackr.guardrails import FALLBACK_SUGGESTION
from stackr.models.audit import AuditEventBuilder, AuditEventType
from stackr.models.challenge import (
    ChallengePreferences,
    ChallengeStatus,
    FinancialProfile,
    UserContext,
)
from stackr.models.guardrail import GuardrailStatus, OverallStatus, SpendingCycle
from stackr.orchestrator import ChallengeFlow, GuardrailFlow, create_app_components
from stackr.services.storage import (
    InMemoryAuditStorage,
    InMemoryChallengeStorage,
    InMemoryLimitStorage,
    InMemoryReflectionStorage,
    InMemorySpendingLedger,
    NotFoundError,
    StorageError,
)


def run(coro):
    return asyncio.run(coro)


WEDNESDAY = datetime(2024, 5, 15, 12, 0)
START = datetime(2024, 5, 1, 9, 0)


class BrokenLedger(InMemorySpendingLedger):
    async def append_entry(self, entry):
        raise StorageError("disk full")


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise StorageError("audit sheet unavailable")


def event_types(events):
    return [e.event_type for e in events]


class TestGuardrailFlow:
    """Tests for the guardrail flow."""

    def setup_method(self):
        self.audit_storage = InMemoryAuditStorage()
        self.context = UserContext(user_id="u1")
        self.flow = self._make_flow()

    def _make_flow(self, suggestion_provider=None, ledger=None):
        return GuardrailFlow(
            limit_storage=InMemoryLimitStorage(),
            ledger_storage=ledger or InMemorySpendingLedger(),
            reflection_storage=InMemoryReflectionStorage(),
            audit_logger=AuditLogger(self.audit_storage),
            suggestion_provider=suggestion_provider,
            guardrail_settings=GuardrailSettings(),
            storage_settings=StorageSettings(
                retry_min_wait_seconds=0,
                retry_max_wait_seconds=0,
            ),
        )

    def test_set_limit_is_audited(self):
        correlation_id = create_correlation_id()
        limit = run(self.flow.set_limit(
            self.context, "Food", Decimal("400"), "monthly", correlation_id=correlation_id
        ))

        assert limit.user_id == "u1"
        assert limit.cycle == SpendingCycle.MONTHLY
        events = run(self.audit_storage.get_events_by_correlation_id(correlation_id))
        assert event_types(events) == [AuditEventType.LIMIT_SET]
        assert events[0].entity_id == limit.id

    def test_log_spending_returns_check(self):
        """Logging spending re-checks limits and audits alerts."""
        run(self.flow.set_limit(self.context, "Food", Decimal("400"), "monthly"))
        correlation_id = create_correlation_id()

        _, result = run(self.flow.log_spending(
            self.context, "Food", Decimal("320"), correlation_id=correlation_id
        ))
        assert result.has_warnings is True
        assert result.alerts[0].status == GuardrailStatus.WARNING

        entry, result = run(self.flow.log_spending(self.context, "Food", Decimal("100")))
        assert entry.amount_spent == Decimal("100")
        assert result.has_overages is True

        events = run(self.audit_storage.get_events_by_correlation_id(correlation_id))
        assert event_types(events) == [
            AuditEventType.SPENDING_LOGGED,
            AuditEventType.GUARDRAIL_WARNING,
        ]

    def test_log_spending_with_aware_timestamp(self):
        """A timezone-aware purchase time is stored naive and still checked."""
        ledger = InMemorySpendingLedger()
        flow = self._make_flow(ledger=ledger)
        run(flow.set_limit(self.context, "Food", Decimal("400"), "monthly"))

        entry, result = run(flow.log_spending(
            self.context, "Food", Decimal("320"), timestamp=datetime.now(timezone.utc)
        ))
        assert entry.timestamp.tzinfo is None
        assert result.has_warnings is True
        assert len(run(ledger.list_entries("u1"))) == 1

    def test_log_spending_storage_failure(self):
        flow = self._make_flow(ledger=BrokenLedger())
        correlation_id = create_correlation_id()

        with pytest.raises(StorageError):
            run(flow.log_spending(
                self.context, "Food", Decimal("10"), correlation_id=correlation_id
            ))

        events = run(self.audit_storage.get_events_by_correlation_id(correlation_id))
        assert event_types(events) == [AuditEventType.SAVE_FAILED]

    def test_remove_limit(self):
        limit = run(self.flow.set_limit(self.context, "Food", Decimal("400"), "monthly"))

        with pytest.raises(NotFoundError):
            run(self.flow.remove_limit(UserContext(user_id="u2"), limit.id))

        run(self.flow.remove_limit(self.context, limit.id, hard_delete=False))
        limits = run(self.flow.list_limits(self.context))
        assert limits[0].is_active is False

        run(self.flow.remove_limit(self.context, limit.id))
        assert run(self.flow.list_limits(self.context)) == []

    def test_check_limits_with_no_alerts(self):
        result = run(self.flow.check_limits(self.context, now=WEDNESDAY))
        assert result.alerts == []

    def test_weekly_reflection_fallback_without_provider(self):
        run(self.flow.set_limit(self.context, "Food", Decimal("100"), "weekly"))
        run(self.flow.log_spending(
            self.context, "Food", Decimal("120"), timestamp=datetime(2024, 5, 13)
        ))

        reflection = run(self.flow.weekly_reflection(self.context, now=WEDNESDAY))
        assert reflection.week_start_date == datetime(2024, 5, 12)
        assert reflection.overall_status == OverallStatus.OVER_BUDGET
        assert reflection.category_summary == {"Food": GuardrailStatus.OVER}
        assert reflection.ai_suggestion == FALLBACK_SUGGESTION

    def test_weekly_reflection_uses_provider(self):
        received = []

        async def provider(summary, text):
            received.append(text)
            return "Cook at home twice more this week."

        flow = self._make_flow(suggestion_provider=provider)
        run(flow.set_limit(self.context, "Food", Decimal("400"), "weekly"))
        run(flow.log_spending(
            self.context, "Food", Decimal("320"), timestamp=datetime(2024, 5, 13)
        ))

        reflection = run(flow.weekly_reflection(self.context, now=WEDNESDAY))
        assert reflection.ai_suggestion == "Cook at home twice more this week."
        assert reflection.overall_status == OverallStatus.WARNING
        assert received == ["Food: Spent $320.00 of $400.00 limit (80%)"]

    def test_provider_failure_falls_back(self):
        async def provider(summary, text):
            raise RuntimeError("model unavailable")

        flow = self._make_flow(suggestion_provider=provider)
        run(flow.log_spending(
            self.context, "Food", Decimal("20"), timestamp=datetime(2024, 5, 13)
        ))
        correlation_id = create_correlation_id()

        reflection = run(flow.weekly_reflection(
            self.context, now=WEDNESDAY, correlation_id=correlation_id
        ))
        assert reflection.ai_suggestion == FALLBACK_SUGGESTION
        events = run(self.audit_storage.get_events_by_correlation_id(correlation_id))
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in event_types(events)

    def test_provider_not_called_for_empty_week(self):
        async def provider(summary, text):
            raise AssertionError("should not be called")

        flow = self._make_flow(suggestion_provider=provider)
        reflection = run(flow.weekly_reflection(self.context, now=WEDNESDAY))
        assert reflection.ai_suggestion == FALLBACK_SUGGESTION
        assert reflection.overall_status == OverallStatus.GOOD

    def test_reflection_rerun_updates_same_week(self):
        run(self.flow.weekly_reflection(self.context, now=WEDNESDAY))
        run(self.flow.log_spending(
            self.context, "Food", Decimal("20"), timestamp=datetime(2024, 5, 13)
        ))
        run(self.flow.weekly_reflection(self.context, now=WEDNESDAY + timedelta(days=1)))

        history = run(self.flow.reflection_history(self.context))
        assert len(history) == 1
        assert history[0].category_summary == {"Food": GuardrailStatus.SAFE}


class TestChallengeFlow:
    """Tests for the challenge flow."""

    def setup_method(self):
        self.audit_storage = InMemoryAuditStorage()
        self.flow = ChallengeFlow(
            challenge_storage=InMemoryChallengeStorage(),
            factory=ChallengeFactory(rng=random.Random(9), settings=ChallengeSettings()),
            recommender=ChallengeRecommender(rng=random.Random(9)),
            audit_logger=AuditLogger(self.audit_storage),
        )
        self.context = UserContext(
            user_id="u1",
            profile=FinancialProfile(monthly_income=10000),
        )

    def _create(self, duration=10):
        return run(self.flow.create_challenge(
            self.context,
            ChallengePreferences(challenge_type="daily", duration=duration),
            now=START,
        ))

    def test_create_and_get(self):
        challenge = self._create()
        assert challenge.user_id == "u1"
        assert challenge.target_amount == 100
        assert run(self.flow.get_challenge(self.context, challenge.id)) == challenge

        events = run(self.audit_storage.get_events_by_entity("challenge", challenge.id))
        assert event_types(events) == [AuditEventType.CHALLENGE_CREATED]

    def test_get_other_users_challenge(self):
        challenge = self._create()
        with pytest.raises(NotFoundError):
            run(self.flow.get_challenge(UserContext(user_id="u2"), challenge.id))

    def test_record_contribution_unknown_challenge(self):
        with pytest.raises(NotFoundError):
            run(self.flow.record_contribution(self.context, uuid4(), 10, START))

    def test_record_contribution_persists(self):
        challenge = self._create()
        updated = run(self.flow.record_contribution(self.context, challenge.id, 30, START))
        stored = run(self.flow.get_challenge(self.context, challenge.id))

        assert updated.current_amount == 30
        assert stored == updated
        assert stored.achievements[0].id == "milestone-milestone-0"

    def test_contributions_complete_the_challenge(self):
        challenge = self._create()
        correlation_id = create_correlation_id()
        for n in range(9):
            run(self.flow.record_contribution(
                self.context, challenge.id, 10, START + timedelta(days=n)
            ))
        final = run(self.flow.record_contribution(
            self.context,
            challenge.id,
            10,
            START + timedelta(days=9),
            correlation_id=correlation_id,
        ))

        assert final.status == ChallengeStatus.COMPLETED
        assert final.streak_count == 10
        events = run(self.audit_storage.get_events_by_correlation_id(correlation_id))
        assert event_types(events) == [
            AuditEventType.CONTRIBUTION_APPLIED,
            AuditEventType.ACHIEVEMENT_UNLOCKED,
            AuditEventType.ACHIEVEMENT_UNLOCKED,
            AuditEventType.CHALLENGE_FINISHED,
        ]

    def test_terminal_challenge_ignores_contribution(self):
        challenge = self._create()
        run(self.flow.record_contribution(self.context, challenge.id, 100, START))
        correlation_id = create_correlation_id()

        result = run(self.flow.record_contribution(
            self.context, challenge.id, 50, START, correlation_id=correlation_id
        ))
        assert result.current_amount == 100
        events = run(self.audit_storage.get_events_by_correlation_id(correlation_id))
        assert event_types(events) == [AuditEventType.CONTRIBUTION_IGNORED]

    def test_backdated_contribution_rejected(self):
        challenge = self._create()
        run(self.flow.record_contribution(
            self.context, challenge.id, 10, START + timedelta(days=2)
        ))
        correlation_id = create_correlation_id()

        with pytest.raises(OutOfOrderContributionError):
            run(self.flow.record_contribution(
                self.context, challenge.id, 10, START, correlation_id=correlation_id
            ))

        stored = run(self.flow.get_challenge(self.context, challenge.id))
        assert stored.current_amount == 10
        events = run(self.audit_storage.get_events_by_correlation_id(correlation_id))
        assert event_types(events) == [AuditEventType.CONTRIBUTION_REJECTED]

    def test_negative_contribution_rejected(self):
        challenge = self._create()
        correlation_id = create_correlation_id()

        with pytest.raises(InvalidContributionError):
            run(self.flow.record_contribution(
                self.context, challenge.id, -5, START, correlation_id=correlation_id
            ))

        stored = run(self.flow.get_challenge(self.context, challenge.id))
        assert stored.current_amount == 0
        assert stored.progress == 0
        events = run(self.audit_storage.get_events_by_correlation_id(correlation_id))
        assert event_types(events) == [AuditEventType.CONTRIBUTION_REJECTED]

    def test_contribution_locks_are_released(self):
        """Per-challenge locks do not outlive the contributions that use them."""
        challenges = [self._create() for _ in range(3)]
        for challenge in challenges:
            run(self.flow.record_contribution(self.context, challenge.id, 5, START))

        assert len(self.flow._locks) == 0

    def test_concurrent_contributions_are_serialized(self):
        """Parallel contributions on the same day all count exactly once."""
        challenge = self._create()

        async def contribute_many():
            await asyncio.gather(*[
                self.flow.record_contribution(self.context, challenge.id, 5, START)
                for _ in range(6)
            ])
            return await self.flow.get_challenge(self.context, challenge.id)

        stored = run(contribute_many())
        assert stored.current_amount == 30
        assert stored.streak_count == 1
        assert challenge.id not in self.flow._locks

    def test_list_and_aggregates(self):
        first = self._create()
        self._create()
        run(self.flow.record_contribution(self.context, first.id, 100, START))

        assert len(run(self.flow.list_challenges(self.context))) == 2
        completed = run(self.flow.list_challenges(self.context, ChallengeStatus.COMPLETED))
        assert [c.id for c in completed] == [first.id]

        stats = run(self.flow.statistics(self.context))
        assert stats.total_completed == 1
        assert stats.completion_rate == 50

        level = run(self.flow.achievement_level(self.context))
        assert level.level == "Bronze"
        assert level.challenges_completed == 1

        picks = run(self.flow.recommendations(self.context))
        assert 1 <= len(picks) <= 3

    def test_available_challenges(self):
        assert len(self.flow.available_challenges(self.context)) == 10


class TestAuditLogger:
    """Tests for audit persistence failures."""

    def test_storage_failure_does_not_raise(self):
        logger = AuditLogger(BrokenAuditStorage())
        flow = GuardrailFlow(
            limit_storage=InMemoryLimitStorage(),
            ledger_storage=InMemorySpendingLedger(),
            reflection_storage=InMemoryReflectionStorage(),
            audit_logger=logger,
            guardrail_settings=GuardrailSettings(),
            storage_settings=StorageSettings(),
        )
        limit = run(flow.set_limit(UserContext(user_id="u1"), "Food", Decimal("50"), "weekly"))
        assert limit.category == "Food"

    def test_log_returns_false_on_failure(self):
        logger = AuditLogger(BrokenAuditStorage())
        event = AuditEventBuilder.system_error("Boom", "exploded")
        assert run(logger.log(event)) is False

    def test_log_error_is_persisted(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        run(logger.log_error("ImportFailed", "bad csv", details={"row": 3}))

        events = run(storage.get_recent_events(limit=10))
        assert event_types(events) == [AuditEventType.SYSTEM_ERROR]
        assert events[0].error_message == "bad csv"

    def test_log_without_storage(self):
        event = AuditEventBuilder.system_error("Boom", "exploded")
        assert run(AuditLogger().log(event)) is True


class TestAppComponents:
    """Tests for create_app_components."""

    def test_memory_backend(self):
        guardrail_flow, challenge_flow, sheets_client = create_app_components("memory")
        assert isinstance(guardrail_flow, GuardrailFlow)
        assert isinstance(challenge_flow, ChallengeFlow)
        assert sheets_client is None

    def test_recommendations_follow_random_seed(self, monkeypatch):
        """CHALLENGE_RANDOM_SEED makes recommendations reproducible."""
        monkeypatch.setenv("CHALLENGE_RANDOM_SEED", "5")
        context = UserContext(user_id="u1", profile=FinancialProfile(savings_rate=20))

        picks = []
        for _ in range(2):
            _, challenge_flow, _ = create_app_components("memory")
            picks.append(run(challenge_flow.recommendations(context)))

        assert [p.type for p in picks[0]] == [p.type for p in picks[1]]
        assert picks[0] == picks[1]

    def test_unconfigured_sheets_falls_back_to_memory(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        guardrail_flow, _, sheets_client = create_app_components("google_sheets")
        assert sheets_client is None

        context = UserContext(user_id="u1")
        limit = run(guardrail_flow.set_limit(context, "Food", Decimal("10"), "weekly"))
        assert run(guardrail_flow.list_limits(context)) == [limit]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

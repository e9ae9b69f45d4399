"""
Main Orchestrator for Stackr

This module ties together all the components and defines the
end-to-end flows for:
1. Guardrails (set limit → log spending → check limits → weekly reflection)
2. Challenges (generate → record contributions → levels and leaderboard)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Evaluators stay pure; the flows own all storage I/O
- Contributions to one challenge are applied strictly one at a time
- Every state change is audited

Callers pass a UserContext into every flow method. There is no shared
"current user" anywhere in the engine.
"""

import asyncio
import weakref
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, Optional, Union
from uuid import UUID

import structlog

from stackr.audit import AuditLogger, create_correlation_id
from stackr.challenges import (
    AchievementLevelCalculator,
    ChallengeFactory,
    ChallengeProgressTracker,
    ChallengeRecommender,
    LeaderboardBuilder,
    InvalidContributionError,
    OutOfOrderContributionError,
    compute_statistics,
)
from stackr.config import GuardrailSettings, StorageSettings, get_settings
from stackr.guardrails import (
    FALLBACK_SUGGESTION,
    GuardrailEvaluator,
    LimitRegistry,
    ReflectionRecorder,
    SpendingLedger,
    derive_overall_status,
    describe_summary,
    resolve_week_bounds,
)
from stackr.models.challenge import (
    AchievementLevel,
    Challenge,
    ChallengeOption,
    ChallengePreferences,
    ChallengeRecommendation,
    ChallengeStatistics,
    ChallengeStatus,
    LeaderboardEntry,
    LeaderboardUser,
    UserContext,
)
from stackr.models.guardrail import (
    GuardrailCheckResult,
    SpendingCycle,
    SpendingLimit,
    SpendingLogEntry,
    SpendingPeriod,
    SpendingReflection,
    SpendingSummary,
)
from stackr.services.storage import (
    ChallengeStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsChallengeStorage,
    GoogleSheetsClient,
    GoogleSheetsLimitStorage,
    GoogleSheetsReflectionStorage,
    GoogleSheetsSpendingLedger,
    InMemoryAuditStorage,
    InMemoryChallengeStorage,
    InMemoryLimitStorage,
    InMemoryReflectionStorage,
    InMemorySpendingLedger,
    LimitStorageInterface,
    NotFoundError,
    ReflectionStorageInterface,
    SpendingLedgerInterface,
    StorageError,
)


logger = structlog.get_logger("stackr.orchestrator")

# (summary, plain-text summary) -> advice text
SuggestionProvider = Callable[[SpendingSummary, str], Awaitable[str]]


class GuardrailFlow:
    """
    Orchestrates the spending guardrail flow.

    Flow:
    1. Set limit → Atomic upsert on (user, category)
    2. Log spending → Append to ledger (retried only with a dedupe key)
    3. Check → Recompute alerts for every active limit
    4. Reflect → Summarize the week, attach advice, upsert the reflection

    Alerts are advisory. They are recomputed on every check and never stored.
    """

    def __init__(
        self,
        limit_storage: LimitStorageInterface,
        ledger_storage: SpendingLedgerInterface,
        reflection_storage: ReflectionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        suggestion_provider: Optional[SuggestionProvider] = None,
        guardrail_settings: Optional[GuardrailSettings] = None,
        storage_settings: Optional[StorageSettings] = None,
    ):
        self._registry = LimitRegistry(limit_storage)
        self._ledger = SpendingLedger(ledger_storage, storage_settings)
        self._evaluator = GuardrailEvaluator(
            limit_storage, ledger_storage, guardrail_settings
        )
        self._recorder = ReflectionRecorder(reflection_storage, guardrail_settings)
        self._audit_logger = audit_logger
        self._suggestion_provider = suggestion_provider

    async def set_limit(
        self,
        context: UserContext,
        category: str,
        limit_amount: Union[Decimal, float, str],
        cycle: Union[SpendingCycle, str],
        is_active: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> SpendingLimit:
        """
        Create or update the limit for a category.

        Raises:
            pydantic.ValidationError: For missing or invalid fields
        """
        correlation_id = correlation_id or create_correlation_id()

        limit = await self._registry.set_limit(
            context.user_id, category, limit_amount, cycle, is_active
        )

        if self._audit_logger:
            await self._audit_logger.log_limit_set(limit, correlation_id)

        return limit

    async def list_limits(self, context: UserContext) -> list[SpendingLimit]:
        return await self._registry.list_limits(context.user_id)

    async def remove_limit(
        self,
        context: UserContext,
        limit_id: UUID,
        hard_delete: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete a limit, or only deactivate it.

        Raises:
            NotFoundError: If the limit is not the caller's
        """
        correlation_id = correlation_id or create_correlation_id()

        if hard_delete:
            await self._registry.remove(limit_id, context.user_id)
        else:
            await self._registry.deactivate(limit_id, context.user_id)

        if self._audit_logger:
            await self._audit_logger.log_limit_removed(
                user_id=context.user_id,
                limit_id=limit_id,
                hard_delete=hard_delete,
                correlation_id=correlation_id,
            )

    async def log_spending(
        self,
        context: UserContext,
        category: str,
        amount_spent: Union[Decimal, float, str],
        description: Optional[str] = None,
        source: str = "manual",
        timestamp: Optional[datetime] = None,
        dedupe_key: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[SpendingLogEntry, GuardrailCheckResult]:
        """
        Record a purchase and re-check the user's limits.

        Returns:
            (entry, check_result)
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            entry = await self._ledger.log_spending(
                user_id=context.user_id,
                category=category,
                amount_spent=amount_spent,
                description=description,
                source=source,
                timestamp=timestamp,
                dedupe_key=dedupe_key,
            )
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    entity_type="spending",
                    error_message=str(e),
                    user_id=context.user_id,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_spending(entry, correlation_id)

        result = await self.check_limits(context, correlation_id=correlation_id)
        return entry, result

    async def check_limits(
        self,
        context: UserContext,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> GuardrailCheckResult:
        result = await self._evaluator.check_all(context.user_id, now)

        if self._audit_logger and result.alerts:
            await self._audit_logger.log_guardrail_alerts(result, correlation_id)

        return result

    async def get_summary(
        self,
        context: UserContext,
        period: SpendingPeriod,
    ) -> SpendingSummary:
        return await self._evaluator.get_summary(context.user_id, period)

    async def _suggest(
        self,
        summary: SpendingSummary,
        correlation_id: UUID,
    ) -> str:
        """Ask the external generator for advice; fall back to generic text."""
        if self._suggestion_provider is None or not summary.categories:
            return FALLBACK_SUGGESTION

        try:
            suggestion = await self._suggestion_provider(summary, describe_summary(summary))
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="suggestion_provider",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return FALLBACK_SUGGESTION

        return suggestion or FALLBACK_SUGGESTION

    async def weekly_reflection(
        self,
        context: UserContext,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SpendingReflection:
        """
        Build and save the reflection for the week containing `now`.

        Running it again in the same week updates the stored reflection.
        """
        correlation_id = correlation_id or create_correlation_id()

        start, end = resolve_week_bounds(now or datetime.now())
        summary = await self._evaluator.get_summary(
            context.user_id, SpendingPeriod(start=start, end=end)
        )

        reflection = await self._recorder.upsert_weekly(
            user_id=context.user_id,
            week_start_date=start,
            week_end_date=end,
            overall_status=derive_overall_status(summary),
            category_summary={c.category: c.status for c in summary.categories},
            ai_suggestion=await self._suggest(summary, correlation_id),
        )

        if self._audit_logger:
            await self._audit_logger.log_reflection_saved(reflection, correlation_id)

        return reflection

    async def reflection_history(
        self,
        context: UserContext,
        limit: Optional[int] = None,
    ) -> list[SpendingReflection]:
        return await self._recorder.history(context.user_id, limit)


class ChallengeFlow:
    """
    Orchestrates the savings challenge flow.

    CRITICAL: record_contribution holds a per-challenge lock around
    load → apply → save. Streaks and milestones depend on contributions
    being applied in order, one at a time.
    """

    def __init__(
        self,
        challenge_storage: ChallengeStorageInterface,
        factory: Optional[ChallengeFactory] = None,
        tracker: Optional[ChallengeProgressTracker] = None,
        recommender: Optional[ChallengeRecommender] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = challenge_storage
        self._factory = factory or ChallengeFactory()
        self._tracker = tracker or ChallengeProgressTracker()
        self._recommender = recommender or ChallengeRecommender()
        self._levels = AchievementLevelCalculator()
        self._leaderboard = LeaderboardBuilder(self._levels)
        self._audit_logger = audit_logger
        # Entries disappear once no contribution holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, challenge_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(challenge_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[challenge_id] = lock
        return lock

    async def create_challenge(
        self,
        context: UserContext,
        preferences: Optional[ChallengePreferences] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Challenge:
        correlation_id = correlation_id or create_correlation_id()

        challenge = self._factory.generate(
            context.profile,
            preferences,
            now=now,
            user_id=context.user_id,
        )
        await self._storage.save_challenge(challenge)

        if self._audit_logger:
            await self._audit_logger.log_challenge_created(challenge, correlation_id)

        return challenge

    async def get_challenge(
        self,
        context: UserContext,
        challenge_id: UUID,
    ) -> Challenge:
        """
        Raises:
            NotFoundError: If the challenge is missing or not the caller's
        """
        challenge = await self._storage.get_challenge(challenge_id)
        if challenge is None or challenge.user_id != context.user_id:
            raise NotFoundError(f"Challenge not found: {challenge_id}")
        return challenge

    async def record_contribution(
        self,
        context: UserContext,
        challenge_id: UUID,
        amount: float,
        date: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Challenge:
        """
        Apply a contribution and persist the new snapshot.

        Contributions to a finished challenge are ignored and the stored
        snapshot is returned.

        Raises:
            NotFoundError: If the challenge is missing or not the caller's
            InvalidContributionError: If `amount` is negative
            OutOfOrderContributionError: If `date` is before the last contribution day
        """
        correlation_id = correlation_id or create_correlation_id()
        date = date or datetime.now()

        async with self._lock_for(challenge_id):
            challenge = await self.get_challenge(context, challenge_id)

            try:
                updated = self._tracker.apply(challenge, amount, date)
            except (InvalidContributionError, OutOfOrderContributionError) as e:
                if self._audit_logger:
                    await self._audit_logger.log_contribution_rejected(
                        challenge, str(e), correlation_id
                    )
                raise

            if updated is not challenge:
                await self._storage.save_challenge(updated)

        if self._audit_logger:
            await self._audit_logger.log_contribution(
                challenge, updated, amount, correlation_id
            )

        return updated

    async def list_challenges(
        self,
        context: UserContext,
        status: Optional[ChallengeStatus] = None,
    ) -> list[Challenge]:
        return await self._storage.list_challenges(context.user_id, status)

    def available_challenges(self, context: UserContext) -> list[ChallengeOption]:
        return self._factory.available_challenges(context.profile)

    async def statistics(self, context: UserContext) -> ChallengeStatistics:
        return compute_statistics(await self.list_challenges(context))

    async def achievement_level(self, context: UserContext) -> AchievementLevel:
        completed = await self.list_challenges(context, ChallengeStatus.COMPLETED)
        return self._levels.compute(completed)

    async def recommendations(
        self,
        context: UserContext,
    ) -> list[ChallengeRecommendation]:
        history = await self.list_challenges(context)
        return self._recommender.recommend(context.profile, history)

    def leaderboard(self, users: Iterable[LeaderboardUser]) -> list[LeaderboardEntry]:
        return self._leaderboard.build(users)


def create_app_components(
    storage_backend: Optional[str] = None,
    suggestion_provider: Optional[SuggestionProvider] = None,
) -> tuple[GuardrailFlow, ChallengeFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        storage_backend: "memory" or "google_sheets"; defaults to
                    the STORAGE_BACKEND setting.
        suggestion_provider: Async callable producing reflection advice.

    Returns:
        (guardrail_flow, challenge_flow, sheets_client)
    """
    settings = get_settings()
    storage_backend = storage_backend or settings.app.storage_backend
    sheets_client = None

    if storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient(storage_settings=settings.storage)
            limit_storage = GoogleSheetsLimitStorage(sheets_client)
            ledger_storage = GoogleSheetsSpendingLedger(sheets_client)
            reflection_storage = GoogleSheetsReflectionStorage(sheets_client)
            challenge_storage = GoogleSheetsChallengeStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", backend=storage_backend, error=str(e))
            storage_backend = "memory"
            sheets_client = None

    if storage_backend != "google_sheets":
        limit_storage = InMemoryLimitStorage()
        ledger_storage = InMemorySpendingLedger()
        reflection_storage = InMemoryReflectionStorage()
        challenge_storage = InMemoryChallengeStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    guardrail_flow = GuardrailFlow(
        limit_storage=limit_storage,
        ledger_storage=ledger_storage,
        reflection_storage=reflection_storage,
        audit_logger=audit_logger,
        suggestion_provider=suggestion_provider,
        guardrail_settings=settings.guardrails,
        storage_settings=settings.storage,
    )

    challenge_flow = ChallengeFlow(
        challenge_storage=challenge_storage,
        factory=ChallengeFactory(settings=settings.challenges),
        recommender=ChallengeRecommender(settings=settings.challenges),
        audit_logger=audit_logger,
    )

    return guardrail_flow, challenge_flow, sheets_client

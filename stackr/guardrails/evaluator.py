"""
Guardrail Evaluator

Classifies spending against limits.

DESIGN DECISION: The evaluation core is pure. evaluate() and summarize()
take a snapshot of limits and ledger entries and return results; they
never touch storage. check_all() and get_summary() only load the snapshot
and hand it over, so alerts can be recomputed at any time and are never
the system of record.

Percentages are computed in Decimal so that e.g. 320 of 400 is exactly
80.0 and lands on the warning threshold.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Union

from stackr.config import GuardrailSettings, get_settings
from stackr.guardrails.window import resolve_window
from stackr.models.guardrail import (
    CategorySummary,
    GuardrailAlert,
    GuardrailCheckResult,
    GuardrailStatus,
    SpendingLimit,
    SpendingLogEntry,
    SpendingPeriod,
    SpendingSummary,
    to_naive_local,
)
from stackr.services.storage import LimitStorageInterface, SpendingLedgerInterface


Amount = Union[Decimal, float, int]


def _to_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class GuardrailEvaluator:
    """
    Compares spending to limits.

    The storage arguments are only needed for check_all() and get_summary().
    """

    def __init__(
        self,
        limits: Optional[LimitStorageInterface] = None,
        ledger: Optional[SpendingLedgerInterface] = None,
        settings: Optional[GuardrailSettings] = None,
    ):
        self._limits = limits
        self._ledger = ledger
        self._settings = settings or get_settings().guardrails

    # =========================================================================
    # PURE CORE
    # =========================================================================

    def classify(
        self,
        spent: Amount,
        limit_amount: Optional[Amount],
    ) -> tuple[float, GuardrailStatus]:
        """
        Percentage of the limit used and the resulting status.

        An absent or zero limit is 0% and SAFE.
        """
        if not limit_amount:
            return 0.0, GuardrailStatus.SAFE

        percentage = _to_decimal(spent) / _to_decimal(limit_amount) * 100
        if percentage >= _to_decimal(self._settings.over_threshold):
            status = GuardrailStatus.OVER
        elif percentage >= _to_decimal(self._settings.warning_threshold):
            status = GuardrailStatus.WARNING
        else:
            status = GuardrailStatus.SAFE
        return float(percentage), status

    def evaluate(
        self,
        user_id: str,
        limits: Iterable[SpendingLimit],
        entries: Iterable[SpendingLogEntry],
        now: datetime,
    ) -> GuardrailCheckResult:
        """
        Check every active limit against its current window.

        Only WARNING and OVER produce alerts.
        """
        now = to_naive_local(now)
        entries = list(entries)
        alerts = []

        for limit in limits:
            if not limit.is_active or limit.user_id != user_id:
                continue

            start, end = resolve_window(limit.cycle, now)
            spent = sum(
                (
                    e.amount_spent
                    for e in entries
                    if e.user_id == user_id
                    and e.category == limit.category
                    and start <= e.timestamp <= end
                ),
                Decimal("0"),
            )

            percentage, status = self.classify(spent, limit.limit_amount)
            if status is GuardrailStatus.SAFE:
                continue

            alerts.append(GuardrailAlert(
                category=limit.category,
                spent=float(spent),
                limit=float(limit.limit_amount),
                percentage=percentage,
                status=status,
            ))

        return GuardrailCheckResult(
            user_id=user_id,
            checked_at=now,
            has_warnings=any(a.status is GuardrailStatus.WARNING for a in alerts),
            has_overages=any(a.status is GuardrailStatus.OVER for a in alerts),
            alerts=alerts,
        )

    def summarize(
        self,
        user_id: str,
        limits: Iterable[SpendingLimit],
        entries: Iterable[SpendingLogEntry],
        start: datetime,
        end: datetime,
    ) -> SpendingSummary:
        """
        Per-category spending over [start, end].

        Covers every category seen in the ledger in that range, with or
        without a limit, in first-seen order.
        """
        active = {
            l.category: l.limit_amount
            for l in limits
            if l.is_active and l.user_id == user_id
        }

        spending: dict[str, Decimal] = defaultdict(Decimal)
        for entry in entries:
            if entry.user_id != user_id or not start <= entry.timestamp <= end:
                continue
            spending[entry.category] += entry.amount_spent

        categories = []
        for category, spent in spending.items():
            limit_amount = active.get(category)
            percentage, status = self.classify(spent, limit_amount)
            categories.append(CategorySummary(
                category=category,
                spent=float(spent),
                limit=float(limit_amount) if limit_amount is not None else None,
                percentage=percentage,
                status=status,
            ))

        total_limit = sum(active.values(), Decimal("0"))
        return SpendingSummary(
            user_id=user_id,
            categories=categories,
            total_spent=float(sum(spending.values(), Decimal("0"))),
            total_limit=float(total_limit) if total_limit else None,
            start_date=start,
            end_date=end,
        )

    # =========================================================================
    # STORAGE-BACKED
    # =========================================================================

    def _require_storage(self) -> tuple[LimitStorageInterface, SpendingLedgerInterface]:
        if self._limits is None or self._ledger is None:
            raise RuntimeError("GuardrailEvaluator was created without storage")
        return self._limits, self._ledger

    async def check_all(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> GuardrailCheckResult:
        """Load the user's active limits and current windows, then evaluate."""
        limits_storage, ledger = self._require_storage()
        now = to_naive_local(now) if now else datetime.now()

        limits = await limits_storage.list_limits(user_id, active_only=True)
        if not limits:
            return GuardrailCheckResult(user_id=user_id, checked_at=now)

        # One read covering the widest window any limit needs
        earliest = min(resolve_window(l.cycle, now)[0] for l in limits)
        entries = await ledger.list_entries(user_id, start=earliest, end=now)
        return self.evaluate(user_id, limits, entries, now)

    async def get_summary(
        self,
        user_id: str,
        period: SpendingPeriod,
    ) -> SpendingSummary:
        limits_storage, ledger = self._require_storage()
        limits = await limits_storage.list_limits(user_id, active_only=True)
        entries = await ledger.list_entries(
            user_id, start=period.start, end=period.end
        )
        return self.summarize(user_id, limits, entries, period.start, period.end)

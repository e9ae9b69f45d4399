"""
Spending Ledger

Append-only record of spending events.

DESIGN DECISION: An append is not idempotent on its own. It is only
retried on a transient storage failure when the caller supplied a
dedupe_key, because the ledger then returns the already-written entry
instead of adding a second one.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stackr.config import StorageSettings, get_settings
from stackr.models.guardrail import SpendingLogEntry
from stackr.services.storage import ConnectionError, SpendingLedgerInterface


logger = structlog.get_logger("stackr.guardrails.ledger")


class SpendingLedger:

    def __init__(
        self,
        storage: SpendingLedgerInterface,
        settings: Optional[StorageSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().storage

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(ConnectionError),
            stop=stop_after_attempt(self._settings.retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._settings.retry_min_wait_seconds,
                max=self._settings.retry_max_wait_seconds,
            ),
            reraise=True,
        )

    async def log_spending(
        self,
        user_id: str,
        category: str,
        amount_spent: Union[Decimal, float, str],
        description: Optional[str] = None,
        source: str = "manual",
        timestamp: Optional[datetime] = None,
        dedupe_key: Optional[str] = None,
    ) -> SpendingLogEntry:
        """
        Append one spending entry.

        Raises:
            pydantic.ValidationError: For a blank category or negative amount
            ConnectionError: If storage stays unreachable
        """
        entry = SpendingLogEntry(
            user_id=user_id,
            category=category,
            amount_spent=amount_spent,
            description=description,
            source=source,
            timestamp=timestamp or datetime.now(),
            dedupe_key=dedupe_key,
        )

        if not dedupe_key:
            return await self._storage.append_entry(entry)

        async for attempt in self._retrying():
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "ledger_append_retry",
                        user_id=user_id,
                        dedupe_key=dedupe_key,
                        attempt=attempt.retry_state.attempt_number,
                    )
                stored = await self._storage.append_entry(entry)
        return stored

    async def list_entries(
        self,
        user_id: str,
        category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[SpendingLogEntry]:
        return await self._storage.list_entries(user_id, category, start, end)

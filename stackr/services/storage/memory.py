"""
In-Memory Storage Implementation

Used by the test-suite and for local runs without a spreadsheet.

Every write that depends on a uniqueness key runs under an asyncio.Lock,
so the key check and the write happen as one step. This is the in-process
equivalent of a unique index with ON CONFLICT DO UPDATE.
"""

import asyncio
from datetime import datetime
from typing import Optional
from uuid import UUID

from stackr.models.audit import AuditEvent
from stackr.models.challenge import Challenge, ChallengeStatus
from stackr.models.guardrail import (
    SpendingLimit,
    SpendingLogEntry,
    SpendingReflection,
)
from stackr.services.storage.interface import (
    AuditStorageInterface,
    ChallengeStorageInterface,
    ConflictError,
    LimitStorageInterface,
    NotFoundError,
    ReflectionStorageInterface,
    SpendingLedgerInterface,
)


class InMemoryLimitStorage(LimitStorageInterface):
    """Limits indexed by id with a unique (user_id, category) index."""

    def __init__(self):
        self._limits: dict[UUID, SpendingLimit] = {}
        self._by_key: dict[tuple[str, str], UUID] = {}
        self._lock = asyncio.Lock()

    async def upsert_limit(self, limit: SpendingLimit) -> SpendingLimit:
        async with self._lock:
            existing_id = self._by_key.get(limit.key)
            if existing_id is None:
                stored = limit.model_copy()
                self._limits[stored.id] = stored
                self._by_key[stored.key] = stored.id
                return stored.model_copy()

            existing = self._limits[existing_id]
            stored = existing.model_copy(update={
                "limit_amount": limit.limit_amount,
                "cycle": limit.cycle,
                "is_active": limit.is_active,
                "updated_at": datetime.utcnow(),
            })
            self._limits[existing_id] = stored
            return stored.model_copy()

    async def insert_limit(self, limit: SpendingLimit) -> SpendingLimit:
        async with self._lock:
            if limit.key in self._by_key:
                raise ConflictError(
                    f"Limit already exists for category '{limit.category}'"
                )
            stored = limit.model_copy()
            self._limits[stored.id] = stored
            self._by_key[stored.key] = stored.id
            return stored.model_copy()

    async def get_limit(self, limit_id: UUID) -> Optional[SpendingLimit]:
        limit = self._limits.get(limit_id)
        return limit.model_copy() if limit else None

    async def list_limits(
        self,
        user_id: str,
        active_only: bool = False,
    ) -> list[SpendingLimit]:
        limits = [
            limit.model_copy()
            for limit in self._limits.values()
            if limit.user_id == user_id and (limit.is_active or not active_only)
        ]
        limits.sort(key=lambda l: l.category)
        return limits

    async def update_limit(self, limit: SpendingLimit) -> SpendingLimit:
        async with self._lock:
            existing = self._limits.get(limit.id)
            if existing is None:
                raise NotFoundError(f"Limit not found: {limit.id}")
            if existing.key != limit.key:
                if limit.key in self._by_key:
                    raise ConflictError(
                        f"Limit already exists for category '{limit.category}'"
                    )
                del self._by_key[existing.key]
                self._by_key[limit.key] = limit.id
            stored = limit.model_copy(update={"updated_at": datetime.utcnow()})
            self._limits[limit.id] = stored
            return stored.model_copy()

    async def delete_limit(self, limit_id: UUID) -> bool:
        async with self._lock:
            limit = self._limits.pop(limit_id, None)
            if limit is None:
                return False
            self._by_key.pop(limit.key, None)
            return True


class InMemorySpendingLedger(SpendingLedgerInterface):
    """Append-only list of entries with a dedupe index."""

    def __init__(self):
        self._entries: list[SpendingLogEntry] = []
        self._dedupe: dict[tuple[str, str], SpendingLogEntry] = {}
        self._lock = asyncio.Lock()

    async def append_entry(self, entry: SpendingLogEntry) -> SpendingLogEntry:
        async with self._lock:
            if entry.dedupe_key:
                key = (entry.user_id, entry.dedupe_key)
                if key in self._dedupe:
                    return self._dedupe[key]
                self._dedupe[key] = entry
            self._entries.append(entry)
            return entry

    async def list_entries(
        self,
        user_id: str,
        category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[SpendingLogEntry]:
        entries = []
        for entry in self._entries:
            if entry.user_id != user_id:
                continue
            if category and entry.category != category:
                continue
            if start and entry.timestamp < start:
                continue
            if end and entry.timestamp > end:
                continue
            entries.append(entry)

        entries.sort(key=lambda e: e.timestamp)
        return entries


class InMemoryReflectionStorage(ReflectionStorageInterface):
    """Reflections keyed by (user_id, week_start_date, week_end_date)."""

    def __init__(self):
        self._reflections: dict[tuple[str, datetime, datetime], SpendingReflection] = {}
        self._lock = asyncio.Lock()

    async def upsert_reflection(
        self,
        reflection: SpendingReflection,
    ) -> SpendingReflection:
        async with self._lock:
            existing = self._reflections.get(reflection.key)
            if existing is None:
                stored = reflection.model_copy(deep=True)
            else:
                stored = existing.model_copy(update={
                    "overall_status": reflection.overall_status,
                    "category_summary": dict(reflection.category_summary),
                    "ai_suggestion": reflection.ai_suggestion,
                    "updated_at": datetime.utcnow(),
                })
            self._reflections[stored.key] = stored
            return stored.model_copy(deep=True)

    async def list_reflections(
        self,
        user_id: str,
        limit: int = 4,
    ) -> list[SpendingReflection]:
        reflections = [
            r.model_copy(deep=True)
            for r in self._reflections.values()
            if r.user_id == user_id
        ]
        reflections.sort(key=lambda r: r.week_end_date, reverse=True)
        return reflections[:limit]


class InMemoryChallengeStorage(ChallengeStorageInterface):
    """Challenge snapshots keyed by id."""

    def __init__(self):
        self._challenges: dict[UUID, Challenge] = {}

    async def save_challenge(self, challenge: Challenge) -> Challenge:
        self._challenges[challenge.id] = challenge.model_copy(deep=True)
        return challenge

    async def get_challenge(self, challenge_id: UUID) -> Optional[Challenge]:
        challenge = self._challenges.get(challenge_id)
        return challenge.model_copy(deep=True) if challenge else None

    async def list_challenges(
        self,
        user_id: str,
        status: Optional[ChallengeStatus] = None,
    ) -> list[Challenge]:
        challenges = [
            c.model_copy(deep=True)
            for c in self._challenges.values()
            if c.user_id == user_id and (status is None or c.status == status)
        ]
        challenges.sort(key=lambda c: c.start_date)
        return challenges


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

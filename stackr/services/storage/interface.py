"""
Abstract Storage Interface

DESIGN DECISION: The engine never talks to a database directly.
Persistence of limits, ledger entries, reflections and challenges is
owned by collaborators that implement these interfaces. This allows us to:
1. Keep every evaluator a pure function over a snapshot
2. Use in-memory storage for testing
3. Swap Google Sheets for a relational store later

Uniqueness rules are part of the contract, not of the callers:
- A limit is unique per (user_id, category). upsert_limit must be atomic.
- A reflection is unique per (user_id, week_start_date, week_end_date).
- A ledger append carrying a dedupe_key is idempotent.
"""

from abc import ABC, abstractmethod
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


class LimitStorageInterface(ABC):
    """
    Abstract interface for spending limit storage.

    Implementations must enforce the (user_id, category) key themselves.
    An application-level "look, then insert" is not enough.
    """

    @abstractmethod
    async def upsert_limit(self, limit: SpendingLimit) -> SpendingLimit:
        """
        Insert a limit, or update the existing one with the same key.

        On update the stored id and created_at are kept; limit_amount,
        cycle, is_active and updated_at are taken from the argument.

        Returns:
            The stored limit
        """
        pass

    @abstractmethod
    async def insert_limit(self, limit: SpendingLimit) -> SpendingLimit:
        """
        Insert a new limit.

        Raises:
            ConflictError: If a limit with the same key exists
        """
        pass

    @abstractmethod
    async def get_limit(self, limit_id: UUID) -> Optional[SpendingLimit]:
        """Retrieve a limit by ID, or None."""
        pass

    @abstractmethod
    async def list_limits(
        self,
        user_id: str,
        active_only: bool = False,
    ) -> list[SpendingLimit]:
        """
        List a user's limits ordered by category.

        Args:
            user_id: Owner of the limits
            active_only: Skip limits with is_active=False
        """
        pass

    @abstractmethod
    async def update_limit(self, limit: SpendingLimit) -> SpendingLimit:
        """
        Replace a stored limit.

        Raises:
            NotFoundError: If the limit doesn't exist
        """
        pass

    @abstractmethod
    async def delete_limit(self, limit_id: UUID) -> bool:
        """Hard-delete a limit. Returns False if nothing was deleted."""
        pass


class SpendingLedgerInterface(ABC):
    """
    Append-only spending ledger.

    Entries are never updated or deleted.
    """

    @abstractmethod
    async def append_entry(self, entry: SpendingLogEntry) -> SpendingLogEntry:
        """
        Append an entry.

        If entry.dedupe_key matches an entry already stored for the same
        user, the stored entry is returned and nothing is written.
        """
        pass

    @abstractmethod
    async def list_entries(
        self,
        user_id: str,
        category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[SpendingLogEntry]:
        """
        List a user's entries in chronological order.

        Args:
            user_id: Owner of the entries
            category: Only this category
            start: Entries at or after this instant
            end: Entries at or before this instant
        """
        pass


class ReflectionStorageInterface(ABC):
    """Storage for weekly spending reflections."""

    @abstractmethod
    async def upsert_reflection(
        self,
        reflection: SpendingReflection,
    ) -> SpendingReflection:
        """
        Insert a reflection, or update the one for the same week.

        On update overall_status, category_summary and ai_suggestion are
        replaced; id and created_at are kept.
        """
        pass

    @abstractmethod
    async def list_reflections(
        self,
        user_id: str,
        limit: int = 4,
    ) -> list[SpendingReflection]:
        """Most recent reflections first (by week_end_date)."""
        pass


class ChallengeStorageInterface(ABC):
    """Storage for challenge snapshots."""

    @abstractmethod
    async def save_challenge(self, challenge: Challenge) -> Challenge:
        """Insert or replace a challenge snapshot by id."""
        pass

    @abstractmethod
    async def get_challenge(self, challenge_id: UUID) -> Optional[Challenge]:
        """Retrieve a challenge by id, or None."""
        pass

    @abstractmethod
    async def list_challenges(
        self,
        user_id: str,
        status: Optional[ChallengeStatus] = None,
    ) -> list[Challenge]:
        """List a user's challenges, oldest start date first."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage, or not owned by the caller."""
    pass


class ConflictError(StorageError):
    """Attempted to insert an entity whose unique key already exists."""
    pass


class ConnectionError(StorageError):
    """
    Could not reach the storage backend.

    This is the only transient failure kind; it is safe to retry
    idempotent operations that fail with it.
    """
    pass

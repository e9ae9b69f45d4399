"""Services package."""

from stackr.services.storage import (
    AuditStorageInterface,
    ChallengeStorageInterface,
    ConflictError,
    ConnectionError,
    LimitStorageInterface,
    NotFoundError,
    ReflectionStorageInterface,
    SpendingLedgerInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ChallengeStorageInterface",
    "ConflictError",
    "ConnectionError",
    "LimitStorageInterface",
    "NotFoundError",
    "ReflectionStorageInterface",
    "SpendingLedgerInterface",
    "StorageError",
]

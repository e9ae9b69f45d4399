"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The in-memory backend is used for tests and local runs; Google Sheets is
the hosted backend. Both are swappable behind the interfaces.
"""

from stackr.services.storage.interface import (
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
from stackr.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryChallengeStorage,
    InMemoryLimitStorage,
    InMemoryReflectionStorage,
    InMemorySpendingLedger,
)
from stackr.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsChallengeStorage,
    GoogleSheetsClient,
    GoogleSheetsLimitStorage,
    GoogleSheetsReflectionStorage,
    GoogleSheetsSpendingLedger,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ChallengeStorageInterface",
    "LimitStorageInterface",
    "ReflectionStorageInterface",
    "SpendingLedgerInterface",
    # Exceptions
    "ConflictError",
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryChallengeStorage",
    "InMemoryLimitStorage",
    "InMemoryReflectionStorage",
    "InMemorySpendingLedger",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsChallengeStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLimitStorage",
    "GoogleSheetsReflectionStorage",
    "GoogleSheetsSpendingLedger",
]

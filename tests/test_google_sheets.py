"""
Tests for the Google Sheets retry policy.

No real API calls: a stand-in client fails sheet lookups on demand.
"""

import asyncio

import pytest
from uuid import uuid4

from stackr.config import StorageSettings
from stackr.services.storage import ConnectionError, StorageError
from stackr.services.storage.google_sheets import (
    GoogleSheetsChallengeStorage,
    GoogleSheetsClient,
)


def run(coro):
    return asyncio.run(coro)


class EmptySheet:
    def get_all_values(self):
        return [["id", "user_id"]]


class FlakySheetsClient(GoogleSheetsClient):
    """Raises `error` for the first `failures` sheet lookups."""

    def __init__(self, storage_settings, failures, error=None):
        self._storage_settings = storage_settings
        self.failures = failures
        self.error = error or ConnectionError("quota exceeded")
        self.calls = 0

    def get_challenges_sheet(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return EmptySheet()


def storage_settings(attempts):
    return StorageSettings(
        retry_attempts=attempts,
        retry_min_wait_seconds=0,
        retry_max_wait_seconds=0,
    )


class TestTransientRetry:
    """Retries follow the client's StorageSettings."""

    def test_recovers_within_configured_attempts(self):
        client = FlakySheetsClient(storage_settings(3), failures=2)
        storage = GoogleSheetsChallengeStorage(client)

        assert run(storage.get_challenge(uuid4())) is None
        assert client.calls == 3

    def test_gives_up_after_configured_attempts(self):
        client = FlakySheetsClient(storage_settings(2), failures=5)
        storage = GoogleSheetsChallengeStorage(client)

        with pytest.raises(ConnectionError):
            run(storage.get_challenge(uuid4()))
        assert client.calls == 2

    def test_single_attempt_disables_retry(self):
        client = FlakySheetsClient(storage_settings(1), failures=1)
        storage = GoogleSheetsChallengeStorage(client)

        with pytest.raises(ConnectionError):
            run(storage.list_challenges("u1"))
        assert client.calls == 1

    def test_permanent_errors_not_retried(self):
        client = FlakySheetsClient(
            storage_settings(3), failures=1, error=ValueError("bad row")
        )
        storage = GoogleSheetsChallengeStorage(client)

        with pytest.raises(StorageError, match="bad row"):
            run(storage.get_challenge(uuid4()))
        assert client.calls == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

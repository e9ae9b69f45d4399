"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Users can view their limits, spending and challenges directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions. Keyed writes are serialized with an asyncio.Lock per
  storage instance, which covers one process only
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interfaces, so we can swap
to PostgreSQL/SQLite later without changing engine logic.
"""

import asyncio
import functools
import json
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stackr.config import StorageSettings, get_settings
from stackr.models.audit import AuditEvent, AuditEventType, AuditSeverity
from stackr.models.challenge import Challenge, ChallengeStatus
from stackr.models.guardrail import (
    GuardrailStatus,
    OverallStatus,
    SpendingCycle,
    SpendingLimit,
    SpendingLogEntry,
    SpendingReflection,
)
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


LIMIT_COLUMNS = [
    "id",
    "user_id",
    "category",
    "limit_amount",
    "cycle",
    "is_active",
    "created_at",
    "updated_at",
]

SPENDING_COLUMNS = [
    "id",
    "user_id",
    "category",
    "amount_spent",
    "description",
    "source",
    "timestamp",
    "dedupe_key",
]

REFLECTION_COLUMNS = [
    "id",
    "user_id",
    "week_start_date",
    "week_end_date",
    "overall_status",
    "category_summary_json",
    "ai_suggestion",
    "created_at",
    "updated_at",
]

# Challenges are nested documents; the scalar columns are for people
# reading the sheet, challenge_json is the source of truth.
CHALLENGE_COLUMNS = [
    "id",
    "user_id",
    "type",
    "status",
    "start_date",
    "end_date",
    "target_amount",
    "current_amount",
    "progress",
    "challenge_json",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def transient_retry(func):
    """
    Retry a storage method on ConnectionError.

    The policy comes from the StorageSettings of the storage's client,
    read on every call.
    """
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        return await self._client.retrying()(func, self, *args, **kwargs)
    return wrapper


def _safe_getter(row: list) -> Callable[..., str]:
    """Handle missing trailing columns gracefully."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _wrap_error(action: str, error: Exception) -> StorageError:
    """Map a gspread failure onto the storage error hierarchy."""
    if isinstance(error, StorageError):
        return error
    if isinstance(error, gspread.exceptions.APIError):
        return ConnectionError(f"Google Sheets API error while trying to {action}: {error}")
    return StorageError(f"Failed to {action}: {error}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and creates worksheets on first use.
    """

    def __init__(self, storage_settings: Optional[StorageSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets
        self._storage_settings = storage_settings or get_settings().storage

    def retrying(self) -> AsyncRetrying:
        """Only transient failures are retried."""
        return AsyncRetrying(
            retry=retry_if_exception_type(ConnectionError),
            stop=stop_after_attempt(self._storage_settings.retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._storage_settings.retry_min_wait_seconds,
                max=self._storage_settings.retry_max_wait_seconds,
            ),
            reraise=True,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get or create a worksheet with a header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_limits_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.limits_sheet_name, LIMIT_COLUMNS)

    def get_spending_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.spending_sheet_name,
            SPENDING_COLUMNS,
            rows=5000,
        )

    def get_reflections_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.reflections_sheet_name,
            REFLECTION_COLUMNS,
        )

    def get_challenges_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.challenges_sheet_name,
            CHALLENGE_COLUMNS,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )


class GoogleSheetsLimitStorage(LimitStorageInterface):
    """
    Google Sheets implementation of limit storage.

    One limit per row. The (user_id, category) key is checked and written
    while holding the instance lock.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    def _limit_to_row(self, limit: SpendingLimit) -> list:
        return [
            str(limit.id),
            limit.user_id,
            limit.category,
            str(limit.limit_amount),
            limit.cycle.value,
            str(limit.is_active),
            limit.created_at.isoformat(),
            limit.updated_at.isoformat(),
        ]

    def _row_to_limit(self, row: list) -> SpendingLimit:
        safe_get = _safe_getter(row)
        return SpendingLimit(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            category=safe_get(2),
            limit_amount=Decimal(safe_get(3)),
            cycle=SpendingCycle(safe_get(4)),
            is_active=safe_get(5, "True").lower() == "true",
            created_at=datetime.fromisoformat(safe_get(6)),
            updated_at=datetime.fromisoformat(safe_get(7)),
        )

    def _find_by_key(
        self,
        all_rows: list[list],
        user_id: str,
        category: str,
    ) -> Optional[tuple[int, SpendingLimit]]:
        """Return (sheet row number, limit) for a key, or None."""
        for idx, row in enumerate(all_rows[1:], start=2):  # row 1 is header
            if row and len(row) > 2 and row[1] == user_id and row[2] == category:
                return idx, self._row_to_limit(row)
        return None

    def _write_row(self, sheet: gspread.Worksheet, idx: int, row: list) -> None:
        sheet.update(
            range_name=f"A{idx}:{chr(ord('A') + len(row) - 1)}{idx}",
            values=[row],
            value_input_option="RAW",
        )

    @transient_retry
    async def upsert_limit(self, limit: SpendingLimit) -> SpendingLimit:
        async with self._lock:
            try:
                sheet = self._client.get_limits_sheet()
                found = self._find_by_key(
                    sheet.get_all_values(), limit.user_id, limit.category
                )
                if found is None:
                    sheet.append_row(self._limit_to_row(limit), value_input_option="RAW")
                    return limit

                idx, existing = found
                stored = existing.model_copy(update={
                    "limit_amount": limit.limit_amount,
                    "cycle": limit.cycle,
                    "is_active": limit.is_active,
                    "updated_at": datetime.utcnow(),
                })
                self._write_row(sheet, idx, self._limit_to_row(stored))
                return stored
            except Exception as e:
                raise _wrap_error("upsert limit", e)

    async def insert_limit(self, limit: SpendingLimit) -> SpendingLimit:
        async with self._lock:
            try:
                sheet = self._client.get_limits_sheet()
                if self._find_by_key(sheet.get_all_values(), limit.user_id, limit.category):
                    raise ConflictError(
                        f"Limit already exists for category '{limit.category}'"
                    )
                sheet.append_row(self._limit_to_row(limit), value_input_option="RAW")
                return limit
            except Exception as e:
                raise _wrap_error("insert limit", e)

    @transient_retry
    async def get_limit(self, limit_id: UUID) -> Optional[SpendingLimit]:
        try:
            sheet = self._client.get_limits_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(limit_id):
                    return self._row_to_limit(row)
            return None
        except Exception as e:
            raise _wrap_error("get limit", e)

    @transient_retry
    async def list_limits(
        self,
        user_id: str,
        active_only: bool = False,
    ) -> list[SpendingLimit]:
        try:
            sheet = self._client.get_limits_sheet()
            limits = []
            for row in sheet.get_all_values()[1:]:
                if not row or len(row) < 2 or row[1] != user_id:
                    continue
                limit = self._row_to_limit(row)
                if active_only and not limit.is_active:
                    continue
                limits.append(limit)

            limits.sort(key=lambda l: l.category)
            return limits
        except Exception as e:
            raise _wrap_error("list limits", e)

    @transient_retry
    async def update_limit(self, limit: SpendingLimit) -> SpendingLimit:
        async with self._lock:
            try:
                sheet = self._client.get_limits_sheet()
                for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                    if row and row[0] == str(limit.id):
                        stored = limit.model_copy(update={"updated_at": datetime.utcnow()})
                        self._write_row(sheet, idx, self._limit_to_row(stored))
                        return stored

                raise NotFoundError(f"Limit not found: {limit.id}")
            except Exception as e:
                raise _wrap_error("update limit", e)

    @transient_retry
    async def delete_limit(self, limit_id: UUID) -> bool:
        async with self._lock:
            try:
                sheet = self._client.get_limits_sheet()
                for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                    if row and row[0] == str(limit_id):
                        sheet.delete_rows(idx)
                        return True
                return False
            except Exception as e:
                raise _wrap_error("delete limit", e)


class GoogleSheetsSpendingLedger(SpendingLedgerInterface):
    """
    Google Sheets implementation of the spending ledger.

    Rows are only ever appended.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    def _entry_to_row(self, entry: SpendingLogEntry) -> list:
        return [
            str(entry.id),
            entry.user_id,
            entry.category,
            str(entry.amount_spent),
            entry.description or "",
            entry.source,
            entry.timestamp.isoformat(),
            entry.dedupe_key or "",
        ]

    def _row_to_entry(self, row: list) -> SpendingLogEntry:
        safe_get = _safe_getter(row)
        return SpendingLogEntry(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            category=safe_get(2),
            amount_spent=Decimal(safe_get(3)),
            description=safe_get(4) or None,
            source=safe_get(5, "manual"),
            timestamp=datetime.fromisoformat(safe_get(6)),
            dedupe_key=safe_get(7) or None,
        )

    async def append_entry(self, entry: SpendingLogEntry) -> SpendingLogEntry:
        async with self._lock:
            try:
                sheet = self._client.get_spending_sheet()
                if entry.dedupe_key:
                    for row in sheet.get_all_values()[1:]:
                        if (
                            row
                            and len(row) > 7
                            and row[1] == entry.user_id
                            and row[7] == entry.dedupe_key
                        ):
                            return self._row_to_entry(row)

                sheet.append_row(self._entry_to_row(entry), value_input_option="RAW")
                return entry
            except Exception as e:
                raise _wrap_error("append spending entry", e)

    @transient_retry
    async def list_entries(
        self,
        user_id: str,
        category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[SpendingLogEntry]:
        try:
            sheet = self._client.get_spending_sheet()
            entries = []
            for row in sheet.get_all_values()[1:]:
                if not row or len(row) < 3 or row[1] != user_id:
                    continue
                if category and row[2] != category:
                    continue
                entry = self._row_to_entry(row)
                if start and entry.timestamp < start:
                    continue
                if end and entry.timestamp > end:
                    continue
                entries.append(entry)

            entries.sort(key=lambda e: e.timestamp)
            return entries
        except Exception as e:
            raise _wrap_error("list spending entries", e)


class GoogleSheetsReflectionStorage(ReflectionStorageInterface):
    """Google Sheets implementation of weekly reflection storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    def _reflection_to_row(self, reflection: SpendingReflection) -> list:
        return [
            str(reflection.id),
            reflection.user_id,
            reflection.week_start_date.isoformat(),
            reflection.week_end_date.isoformat(),
            reflection.overall_status.value,
            json.dumps({k: v.value for k, v in reflection.category_summary.items()}),
            reflection.ai_suggestion,
            reflection.created_at.isoformat(),
            reflection.updated_at.isoformat(),
        ]

    def _row_to_reflection(self, row: list) -> SpendingReflection:
        safe_get = _safe_getter(row)
        summary = json.loads(safe_get(5, "{}"))
        return SpendingReflection(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            week_start_date=datetime.fromisoformat(safe_get(2)),
            week_end_date=datetime.fromisoformat(safe_get(3)),
            overall_status=OverallStatus(safe_get(4)),
            category_summary={k: GuardrailStatus(v) for k, v in summary.items()},
            ai_suggestion=safe_get(6),
            created_at=datetime.fromisoformat(safe_get(7)),
            updated_at=datetime.fromisoformat(safe_get(8)),
        )

    @transient_retry
    async def upsert_reflection(
        self,
        reflection: SpendingReflection,
    ) -> SpendingReflection:
        async with self._lock:
            try:
                sheet = self._client.get_reflections_sheet()
                all_rows = sheet.get_all_values()
                start = reflection.week_start_date.isoformat()
                end = reflection.week_end_date.isoformat()

                for idx, row in enumerate(all_rows[1:], start=2):
                    if (
                        row
                        and len(row) > 3
                        and row[1] == reflection.user_id
                        and row[2] == start
                        and row[3] == end
                    ):
                        stored = self._row_to_reflection(row).model_copy(update={
                            "overall_status": reflection.overall_status,
                            "category_summary": dict(reflection.category_summary),
                            "ai_suggestion": reflection.ai_suggestion,
                            "updated_at": datetime.utcnow(),
                        })
                        new_row = self._reflection_to_row(stored)
                        for col_idx, value in enumerate(new_row, start=1):
                            sheet.update_cell(idx, col_idx, value)
                        return stored

                sheet.append_row(
                    self._reflection_to_row(reflection),
                    value_input_option="RAW",
                )
                return reflection
            except Exception as e:
                raise _wrap_error("upsert reflection", e)

    @transient_retry
    async def list_reflections(
        self,
        user_id: str,
        limit: int = 4,
    ) -> list[SpendingReflection]:
        try:
            sheet = self._client.get_reflections_sheet()
            reflections = [
                self._row_to_reflection(row)
                for row in sheet.get_all_values()[1:]
                if row and len(row) > 1 and row[1] == user_id
            ]
            reflections.sort(key=lambda r: r.week_end_date, reverse=True)
            return reflections[:limit]
        except Exception as e:
            raise _wrap_error("list reflections", e)


class GoogleSheetsChallengeStorage(ChallengeStorageInterface):
    """
    Google Sheets implementation of challenge storage.

    The whole challenge is JSON-serialized into the last column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    def _challenge_to_row(self, challenge: Challenge) -> list:
        return [
            str(challenge.id),
            challenge.user_id or "",
            challenge.type.value,
            challenge.status.value,
            challenge.start_date.isoformat(),
            challenge.end_date.isoformat(),
            challenge.target_amount,
            challenge.current_amount,
            challenge.progress,
            challenge.model_dump_json(),
        ]

    def _row_to_challenge(self, row: list) -> Challenge:
        return Challenge.model_validate_json(_safe_getter(row)(9))

    @transient_retry
    async def save_challenge(self, challenge: Challenge) -> Challenge:
        async with self._lock:
            try:
                sheet = self._client.get_challenges_sheet()
                new_row = self._challenge_to_row(challenge)
                for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                    if row and row[0] == str(challenge.id):
                        sheet.update(
                            range_name=f"A{idx}:J{idx}",
                            values=[new_row],
                            value_input_option="RAW",
                        )
                        return challenge

                sheet.append_row(new_row, value_input_option="RAW")
                return challenge
            except Exception as e:
                raise _wrap_error("save challenge", e)

    @transient_retry
    async def get_challenge(self, challenge_id: UUID) -> Optional[Challenge]:
        try:
            sheet = self._client.get_challenges_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(challenge_id):
                    return self._row_to_challenge(row)
            return None
        except Exception as e:
            raise _wrap_error("get challenge", e)

    @transient_retry
    async def list_challenges(
        self,
        user_id: str,
        status: Optional[ChallengeStatus] = None,
    ) -> list[Challenge]:
        try:
            sheet = self._client.get_challenges_sheet()
            challenges = []
            for row in sheet.get_all_values()[1:]:
                if not row or len(row) < 2 or row[1] != user_id:
                    continue
                challenge = self._row_to_challenge(row)
                if status is not None and challenge.status != status:
                    continue
                challenges.append(challenge)

            challenges.sort(key=lambda c: c.start_date)
            return challenges
        except Exception as e:
            raise _wrap_error("list challenges", e)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _read_events(self, predicate: Callable[[list], bool]) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if row and row[0] and predicate(row):
                events.append(self._row_to_event(row))
        return events

    @transient_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event.

        Failures propagate; AuditLogger decides they must not break
        the calling flow.
        """
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise _wrap_error("append audit event", e)

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events(
                lambda row: len(row) > 7 and row[7] == str(correlation_id)
            )
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise _wrap_error("get audit events", e)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events(
                lambda row: (
                    len(row) > 6
                    and row[5] == entity_type
                    and row[6] == str(entity_id)
                )
            )
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise _wrap_error("get audit events", e)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events(lambda row: True)
            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise _wrap_error("get audit events", e)

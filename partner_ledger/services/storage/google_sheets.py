"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Partners can view the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a partner group is small)
- No native transactions (we snapshot the owner's rows and restore them
  with compensating writes if an operation fails)
- Limited query capabilities (we filter in Python)

One worksheet per record type; every row carries its owner_id.
Payments, distributions and involved partner ids are JSON-serialized
into a single cell each.
"""

import json
from typing import Any, Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from pydantic import ValidationError
from pydantic.alias_generators import to_camel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from partner_ledger.config import get_settings
from partner_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from partner_ledger.models.ledger import Cost, LedgerModel, Partner, Profit
from partner_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)

T = TypeVar("T")

logger = structlog.get_logger(__name__)


# Column mappings for each worksheet
PARTNER_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "email",
    "phone",
    "document",
    "participation",
    "balance",
    "created_at",
]

COST_COLUMNS = [
    "id",
    "owner_id",
    "category",
    "description",
    "value",
    "date",
    "payer_id",
    "is_recurrent",
    "involved_partner_ids_json",
    "payments_json",
    "document_url",
    "created_at",
    "updated_at",
]

PROFIT_COLUMNS = [
    "id",
    "owner_id",
    "date",
    "value",
    "source",
    "category",
    "distributions_json",
    "document_url",
    "created_at",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

BOOL_COLUMNS = {"is_recurrent"}

sheets_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def record_to_row(record: LedgerModel, columns: list[str]) -> list[str]:
    """Convert a ledger model to a spreadsheet row."""
    document = record.to_document()
    row = []
    for column in columns:
        if column.endswith("_json"):
            row.append(json.dumps(document.get(to_camel(column[:-5]), [])))
            continue
        value = document.get(to_camel(column))
        row.append("" if value is None else str(value))
    return row


def row_to_document(row: list, columns: list[str]) -> dict[str, Any]:
    """
    Convert a spreadsheet row back to a camelCase document.

    Missing trailing cells are treated as empty. Empty cells are left out,
    so the model fills its defaults when the caller validates the document.
    """
    document: dict[str, Any] = {}
    for index, column in enumerate(columns):
        cell = row[index] if index < len(row) else ""
        if column.endswith("_json"):
            document[to_camel(column[:-5])] = json.loads(cell) if cell else []
        elif column in BOOL_COLUMNS:
            document[to_camel(column)] = str(cell).strip().lower() == "true"
        elif cell != "":
            document[to_camel(column)] = cell
    return document


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

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

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
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

    def get_partners_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.partners_sheet_name, PARTNER_COLUMNS)

    def get_costs_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.costs_sheet_name, COST_COLUMNS)

    def get_profits_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.profits_sheet_name, PROFIT_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class _SheetTable:
    """Row-level operations on one worksheet, scoped by owner_id (column B)."""

    def __init__(
        self,
        sheet_getter: Callable[[], gspread.Worksheet],
        columns: list[str],
        model: type[LedgerModel],
        entity_type: str,
    ):
        self._sheet_getter = sheet_getter
        self._columns = columns
        self._model = model
        self.entity_type = entity_type

    @sheets_retry
    def _all_rows(self) -> list[list]:
        # Skip header
        return self._sheet_getter().get_all_values()[1:]

    def _find(self, owner_id: str, record_id: UUID) -> Optional[tuple[int, list]]:
        """Return (sheet_row_number, row) for a record, or None."""
        key = str(record_id)
        for idx, row in enumerate(self._all_rows(), start=2):  # Row 1 is header
            if len(row) > 1 and row[0] == key and row[1] == owner_id:
                return idx, row
        return None

    def _parse(self, row: list) -> LedgerModel:
        return self._model.model_validate(row_to_document(row, self._columns))

    def list_records(self, owner_id: str) -> list:
        records = []
        for row in self._all_rows():
            if len(row) < 2 or not row[0] or row[1] != owner_id:
                continue
            try:
                records.append(self._parse(row))
            except (ValidationError, ValueError) as e:
                logger.warning(
                    "malformed_row_skipped",
                    entity_type=self.entity_type,
                    record_id=row[0],
                    error=str(e),
                )
        return records

    def get_record(self, owner_id: str, record_id: UUID) -> Optional[LedgerModel]:
        found = self._find(owner_id, record_id)
        return self._parse(found[1]) if found else None

    @sheets_retry
    def _write_row(self, idx: int, record: LedgerModel) -> None:
        cell_range = f"A{idx}:{rowcol_to_a1(idx, len(self._columns))}"
        self._sheet_getter().update(
            range_name=cell_range,
            values=[record_to_row(record, self._columns)],
            value_input_option="RAW",
        )

    # append_row and delete_rows are not idempotent, so they are never retried.

    def insert_record(self, owner_id: str, record: LedgerModel) -> None:
        if self._find(owner_id, record.id) is not None:
            raise DuplicateError(f"{self.entity_type.capitalize()} already exists: {record.id}")
        self._sheet_getter().append_row(
            record_to_row(record, self._columns),
            value_input_option="RAW",
        )

    def update_record(self, owner_id: str, record: LedgerModel) -> None:
        found = self._find(owner_id, record.id)
        if found is None:
            raise NotFoundError(self.entity_type, record.id)
        self._write_row(found[0], record)

    def delete_record(self, owner_id: str, record_id: UUID) -> bool:
        found = self._find(owner_id, record_id)
        if found is None:
            return False
        self._sheet_getter().delete_rows(found[0])
        return True


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Records are stored as rows in per-type worksheets with one record per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._partners = _SheetTable(self._client.get_partners_sheet, PARTNER_COLUMNS, Partner, "partner")
        self._costs = _SheetTable(self._client.get_costs_sheet, COST_COLUMNS, Cost, "cost")
        self._profits = _SheetTable(self._client.get_profits_sheet, PROFIT_COLUMNS, Profit, "profit")

    async def _call(self, action: str, fn: Callable[..., T], *args) -> T:
        """Run a table operation, translating backend errors into StorageError."""
        try:
            return fn(*args)
        except (StorageError, NotFoundError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to {action}: {e}")

    # Partners

    async def list_partners(self, owner_id: str) -> list[Partner]:
        return await self._call("list partners", self._partners.list_records, owner_id)

    async def get_partner(self, owner_id: str, partner_id: UUID) -> Optional[Partner]:
        return await self._call("get partner", self._partners.get_record, owner_id, partner_id)

    async def insert_partner(self, owner_id: str, partner: Partner) -> Partner:
        await self._call("save partner", self._partners.insert_record, owner_id, partner)
        return partner

    async def update_partner(self, owner_id: str, partner: Partner) -> Partner:
        await self._call("update partner", self._partners.update_record, owner_id, partner)
        return partner

    async def delete_partner(self, owner_id: str, partner_id: UUID) -> bool:
        return await self._call("delete partner", self._partners.delete_record, owner_id, partner_id)

    # Costs

    async def list_costs(self, owner_id: str) -> list[Cost]:
        return await self._call("list costs", self._costs.list_records, owner_id)

    async def get_cost(self, owner_id: str, cost_id: UUID) -> Optional[Cost]:
        return await self._call("get cost", self._costs.get_record, owner_id, cost_id)

    async def insert_cost(self, owner_id: str, cost: Cost) -> Cost:
        await self._call("save cost", self._costs.insert_record, owner_id, cost)
        return cost

    async def update_cost(self, owner_id: str, cost: Cost) -> Cost:
        await self._call("update cost", self._costs.update_record, owner_id, cost)
        return cost

    async def delete_cost(self, owner_id: str, cost_id: UUID) -> bool:
        return await self._call("delete cost", self._costs.delete_record, owner_id, cost_id)

    # Profits

    async def list_profits(self, owner_id: str) -> list[Profit]:
        return await self._call("list profits", self._profits.list_records, owner_id)

    async def get_profit(self, owner_id: str, profit_id: UUID) -> Optional[Profit]:
        return await self._call("get profit", self._profits.get_record, owner_id, profit_id)

    async def insert_profit(self, owner_id: str, profit: Profit) -> Profit:
        await self._call("save profit", self._profits.insert_record, owner_id, profit)
        return profit

    async def update_profit(self, owner_id: str, profit: Profit) -> Profit:
        await self._call("update profit", self._profits.update_record, owner_id, profit)
        return profit

    async def delete_profit(self, owner_id: str, profit_id: UUID) -> bool:
        return await self._call("delete profit", self._profits.delete_record, owner_id, profit_id)

    # Transactions

    async def with_transaction(
        self,
        owner_id: str,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Snapshot the owner's rows, run fn, and restore the snapshot if fn fails.

        The restore is a sequence of compensating writes; if the backend is
        down for good it can fail too, which is logged loudly.
        """
        snapshot = []
        for table in (self._partners, self._costs, self._profits):
            records = await self._call(f"snapshot {table.entity_type}s", table.list_records, owner_id)
            snapshot.append((table, records))
        try:
            return await fn()
        except Exception:
            try:
                for table, records in snapshot:
                    self._restore(table, owner_id, records)
                logger.warning("transaction_rolled_back", owner_id=owner_id)
            except Exception as restore_error:
                logger.error(
                    "transaction_rollback_failed",
                    owner_id=owner_id,
                    error=str(restore_error),
                )
            raise

    def _restore(self, table: _SheetTable, owner_id: str, records: list) -> None:
        wanted = {record.id: record for record in records}
        for current in table.list_records(owner_id):
            target = wanted.pop(current.id, None)
            if target is None:
                table.delete_record(owner_id, current.id)
            elif current != target:
                table.update_record(owner_id, target)
        for record in wanted.values():
            table.insert_record(owner_id, record)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=safe_get(1),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            owner_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    @sheets_retry
    def _all_rows(self) -> list[list]:
        return self._client.get_audit_sheet().get_all_values()[1:]

    def _events(self, predicate: Callable[[list], bool]) -> list[AuditEvent]:
        events = []
        for row in self._all_rows():
            if not row or not row[0] or not predicate(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValidationError, ValueError) as e:
                logger.warning("malformed_audit_row_skipped", event_id=row[0], error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = self._events(lambda row: len(row) > 7 and row[7] == str(correlation_id))
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = self._events(
                lambda row: len(row) > 6 and row[5] == entity_type and row[6] == str(entity_id)
            )
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._events(lambda row: True)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

"""
In-Memory Storage Implementation

Keeps each owner's partners, costs and profits as serialized documents,
exactly as a document store would hold them. Every read goes back through
model_validate, so the same revival rules apply here as for a remote backend.

Used for tests and for running the ledger without a configured backend.
"""

import copy
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog

from partner_ledger.models.audit import AuditEvent
from partner_ledger.models.ledger import Cost, LedgerModel, Partner, Profit
from partner_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)

T = TypeVar("T")

logger = structlog.get_logger(__name__)

TABLES = ("partners", "costs", "profits")


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Dict-backed storage: {owner_id: {table: {record_id: document}}}.

    Insertion order is preserved, so list_* returns records oldest first.
    """

    def __init__(self):
        self._data: dict[str, dict[str, dict[str, dict]]] = {}

    def _table(self, owner_id: str, table: str) -> dict[str, dict]:
        owner = self._data.setdefault(owner_id, {name: {} for name in TABLES})
        return owner[table]

    def _insert(self, owner_id: str, table: str, record: LedgerModel) -> None:
        rows = self._table(owner_id, table)
        key = str(record.id)
        if key in rows:
            raise DuplicateError(f"{table[:-1].capitalize()} already exists: {key}")
        rows[key] = record.to_document()

    def _update(self, owner_id: str, table: str, record: LedgerModel) -> None:
        rows = self._table(owner_id, table)
        key = str(record.id)
        if key not in rows:
            raise NotFoundError(table[:-1], record.id)
        rows[key] = record.to_document()

    def _delete(self, owner_id: str, table: str, record_id: UUID) -> bool:
        return self._table(owner_id, table).pop(str(record_id), None) is not None

    # Partners

    async def list_partners(self, owner_id: str) -> list[Partner]:
        return [Partner.model_validate(doc) for doc in self._table(owner_id, "partners").values()]

    async def get_partner(self, owner_id: str, partner_id: UUID) -> Optional[Partner]:
        doc = self._table(owner_id, "partners").get(str(partner_id))
        return Partner.model_validate(doc) if doc is not None else None

    async def insert_partner(self, owner_id: str, partner: Partner) -> Partner:
        self._insert(owner_id, "partners", partner)
        return partner

    async def update_partner(self, owner_id: str, partner: Partner) -> Partner:
        self._update(owner_id, "partners", partner)
        return partner

    async def delete_partner(self, owner_id: str, partner_id: UUID) -> bool:
        return self._delete(owner_id, "partners", partner_id)

    # Costs

    async def list_costs(self, owner_id: str) -> list[Cost]:
        return [Cost.model_validate(doc) for doc in self._table(owner_id, "costs").values()]

    async def get_cost(self, owner_id: str, cost_id: UUID) -> Optional[Cost]:
        doc = self._table(owner_id, "costs").get(str(cost_id))
        return Cost.model_validate(doc) if doc is not None else None

    async def insert_cost(self, owner_id: str, cost: Cost) -> Cost:
        self._insert(owner_id, "costs", cost)
        return cost

    async def update_cost(self, owner_id: str, cost: Cost) -> Cost:
        self._update(owner_id, "costs", cost)
        return cost

    async def delete_cost(self, owner_id: str, cost_id: UUID) -> bool:
        return self._delete(owner_id, "costs", cost_id)

    # Profits

    async def list_profits(self, owner_id: str) -> list[Profit]:
        return [Profit.model_validate(doc) for doc in self._table(owner_id, "profits").values()]

    async def get_profit(self, owner_id: str, profit_id: UUID) -> Optional[Profit]:
        doc = self._table(owner_id, "profits").get(str(profit_id))
        return Profit.model_validate(doc) if doc is not None else None

    async def insert_profit(self, owner_id: str, profit: Profit) -> Profit:
        self._insert(owner_id, "profits", profit)
        return profit

    async def update_profit(self, owner_id: str, profit: Profit) -> Profit:
        self._update(owner_id, "profits", profit)
        return profit

    async def delete_profit(self, owner_id: str, profit_id: UUID) -> bool:
        return self._delete(owner_id, "profits", profit_id)

    # Transactions

    async def with_transaction(
        self,
        owner_id: str,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Snapshot the owner's tables, restore them if fn raises."""
        snapshot = copy.deepcopy(self._data.get(owner_id))
        try:
            return await fn()
        except Exception:
            if snapshot is None:
                self._data.pop(owner_id, None)
            else:
                self._data[owner_id] = snapshot
            logger.warning("transaction_rolled_back", owner_id=owner_id)
            raise


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

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
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

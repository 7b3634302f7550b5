"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for testing
3. Keep settlement logic decoupled from storage implementation

Every method is scoped to an owner. An implementation must never return or
touch a record that belongs to a different owner.

Implementations hand back validated models: raw rows/documents are revived
through the pydantic models before they leave the storage layer.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from partner_ledger.errors import (
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from partner_ledger.models.audit import AuditEvent
from partner_ledger.models.ledger import Cost, Partner, Profit

T = TypeVar("T")


class LedgerStorageInterface(ABC):
    """
    Abstract interface for partner/cost/profit storage.

    Any storage implementation (Google Sheets, in-memory, PostgreSQL, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Partners
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_partners(self, owner_id: str) -> list[Partner]:
        """List all partners of an owner, oldest first."""
        pass

    @abstractmethod
    async def get_partner(self, owner_id: str, partner_id: UUID) -> Optional[Partner]:
        """
        Retrieve a partner by ID.

        Returns:
            The partner if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert_partner(self, owner_id: str, partner: Partner) -> Partner:
        """
        Insert a new partner.

        Raises:
            DuplicateError: If a partner with the same ID exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_partner(self, owner_id: str, partner: Partner) -> Partner:
        """
        Replace an existing partner.

        Raises:
            NotFoundError: If the partner doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_partner(self, owner_id: str, partner_id: UUID) -> bool:
        """Delete a partner. Returns False if nothing was deleted."""
        pass

    # -------------------------------------------------------------------------
    # Costs
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_costs(self, owner_id: str) -> list[Cost]:
        pass

    @abstractmethod
    async def get_cost(self, owner_id: str, cost_id: UUID) -> Optional[Cost]:
        pass

    @abstractmethod
    async def insert_cost(self, owner_id: str, cost: Cost) -> Cost:
        pass

    @abstractmethod
    async def update_cost(self, owner_id: str, cost: Cost) -> Cost:
        pass

    @abstractmethod
    async def delete_cost(self, owner_id: str, cost_id: UUID) -> bool:
        pass

    # -------------------------------------------------------------------------
    # Profits
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_profits(self, owner_id: str) -> list[Profit]:
        pass

    @abstractmethod
    async def get_profit(self, owner_id: str, profit_id: UUID) -> Optional[Profit]:
        pass

    @abstractmethod
    async def insert_profit(self, owner_id: str, profit: Profit) -> Profit:
        pass

    @abstractmethod
    async def update_profit(self, owner_id: str, profit: Profit) -> Profit:
        pass

    @abstractmethod
    async def delete_profit(self, owner_id: str, profit_id: UUID) -> bool:
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def with_transaction(
        self,
        owner_id: str,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run fn as one atomic unit for the owner's data.

        If fn raises, every write it made is undone before the exception
        propagates. The return value of fn is passed through.
        """
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
        """Get all events of one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]

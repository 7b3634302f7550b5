"""
Profit Distribution Engine

A profit is distributed across every current partner in proportion to
their participation. Each distribution credits the partner's balance;
deleting the profit takes the same amounts back.

Edits recompute against the partners that exist at edit time, not the
ones that existed when the profit was first registered.
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

import structlog

from partner_ledger.errors import NoPartnersError, NotFoundError
from partner_ledger.ledger.money import allocate_proportionally
from partner_ledger.ledger.partners import PartnerLedger
from partner_ledger.models.ledger import Partner, Profit, ProfitCategory, ProfitDistribution
from partner_ledger.services.storage import LedgerStorageInterface
from partner_ledger.validation import as_uuid, validate_input

logger = structlog.get_logger(__name__)


def build_distributions(value, partners: list[Partner]) -> list[ProfitDistribution]:
    return [
        ProfitDistribution(partner_id=partner_id, amount=amount)
        for partner_id, amount in allocate_proportionally(
            value, [(p.id, p.participation) for p in partners]
        )
    ]


class ProfitDistributionEngine:
    """Applies and reverses the balance effects of profits for one owner."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        owner_id: str,
        partners: PartnerLedger,
    ):
        self._storage = storage
        self._owner_id = owner_id
        self._partners = partners

    async def list_profits(self) -> list[Profit]:
        """All profits, newest first."""
        profits = await self._storage.list_profits(self._owner_id)
        return sorted(profits, key=lambda p: (p.date, p.created_at), reverse=True)

    async def get_profit(self, profit_id: Any) -> Profit:
        profit_id = as_uuid(profit_id, "profit_id")
        profit = await self._storage.get_profit(self._owner_id, profit_id)
        if profit is None:
            raise NotFoundError("profit", profit_id)
        return profit

    async def _validated_profit(
        self,
        date: Any,
        value: Any,
        source: str,
        category: Any,
        document_url: Optional[str] = None,
        **existing: Any,
    ) -> Profit:
        partners = await self._partners.list_partners()
        if not partners:
            raise NoPartnersError()

        profit = validate_input(
            Profit,
            owner_id=self._owner_id,
            date=date,
            value=value,
            source=source,
            category=category,
            document_url=document_url,
            **existing,
        )
        profit.distributions = build_distributions(profit.value, partners)
        return profit

    async def _apply_distributions(self, profit: Profit, correlation_id: Optional[UUID]) -> None:
        for distribution in profit.distributions:
            await self._partners.apply_balance_delta(
                distribution.partner_id, distribution.amount, correlation_id
            )

    async def _revert_distributions(self, profit: Profit, correlation_id: Optional[UUID]) -> None:
        for distribution in profit.distributions:
            await self._partners.revert_balance_delta(
                distribution.partner_id, -distribution.amount, correlation_id
            )

    async def add_profit(
        self,
        date: date,
        value: Any,
        source: str,
        category: ProfitCategory,
        document_url: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Profit:
        """
        Register a profit and credit every partner with their share.

        Raises:
            NoPartnersError: if there is nobody to distribute to
            InvalidInputError: for a non-positive value, blank source, ...
        """
        profit = await self._validated_profit(
            date=date,
            value=value,
            source=source,
            category=category,
            document_url=document_url,
        )

        await self._storage.insert_profit(self._owner_id, profit)
        await self._apply_distributions(profit, correlation_id)

        logger.info(
            "profit_added",
            owner_id=self._owner_id,
            profit_id=str(profit.id),
            value=str(profit.value),
            distributed=str(profit.distributed_total),
            partner_count=len(profit.distributions),
        )
        return profit

    async def edit_profit(
        self,
        profit_id: Any,
        date: date,
        value: Any,
        source: str,
        category: ProfitCategory,
        document_url: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Profit:
        """Revert the stored distributions and redistribute the new value."""
        current = await self.get_profit(profit_id)
        updated = await self._validated_profit(
            date=date,
            value=value,
            source=source,
            category=category,
            document_url=document_url,
            id=current.id,
            created_at=current.created_at,
            updated_at=datetime.utcnow(),
        )

        await self._revert_distributions(current, correlation_id)
        await self._apply_distributions(updated, correlation_id)
        await self._storage.update_profit(self._owner_id, updated)

        logger.info(
            "profit_updated",
            owner_id=self._owner_id,
            profit_id=str(updated.id),
            old_value=str(current.value),
            value=str(updated.value),
            partner_count=len(updated.distributions),
        )
        return updated

    async def delete_profit(self, profit_id: Any, correlation_id: Optional[UUID] = None) -> Profit:
        profit = await self.get_profit(profit_id)

        await self._storage.delete_profit(self._owner_id, profit.id)
        await self._revert_distributions(profit, correlation_id)

        logger.info("profit_deleted", owner_id=self._owner_id, profit_id=str(profit.id))
        return profit

"""
Cost Settlement Engine

A cost is fronted by one partner (the payer) and split equally among the
involved partners. Balance effects:

    add                 payer +value
    payment -> paid     partner -amount, payer -amount
    payment -> unpaid   partner +amount, payer +amount
    delete              payer -value (blocked while any payment is paid)
    edit                revert the stored effect, then apply the new one

Every check that can reject an operation runs before the first write.
"""

from datetime import date, datetime
from typing import Any, Iterable, Optional
from uuid import UUID

import structlog

from partner_ledger.errors import NoPartnersError, NotFoundError, PaidPaymentsExistError
from partner_ledger.ledger.money import split_evenly
from partner_ledger.ledger.partners import PartnerLedger
from partner_ledger.models.ledger import Cost, CostCategory, CostPayment
from partner_ledger.services.storage import LedgerStorageInterface
from partner_ledger.validation import as_uuid, require_selection, validate_input

logger = structlog.get_logger(__name__)


def build_payments(value, involved_partner_ids: list[UUID], payer_id: UUID) -> list[CostPayment]:
    """One unpaid payment per involved partner. Leftover cents go to the payer first."""
    return [
        CostPayment(partner_id=partner_id, amount=amount, paid=False)
        for partner_id, amount in split_evenly(value, involved_partner_ids, first_in_line=payer_id)
    ]


class CostSettlementEngine:
    """Applies and reverses the balance effects of costs for one owner."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        owner_id: str,
        partners: PartnerLedger,
    ):
        self._storage = storage
        self._owner_id = owner_id
        self._partners = partners

    async def list_costs(self) -> list[Cost]:
        """All costs, newest first."""
        costs = await self._storage.list_costs(self._owner_id)
        return sorted(costs, key=lambda c: (c.date, c.created_at), reverse=True)

    async def get_cost(self, cost_id: Any) -> Cost:
        cost_id = as_uuid(cost_id, "cost_id")
        cost = await self._storage.get_cost(self._owner_id, cost_id)
        if cost is None:
            raise NotFoundError("cost", cost_id)
        return cost

    async def _validated_cost(
        self,
        category: Any,
        description: Optional[str],
        value: Any,
        date: Any,
        payer_id: Any,
        is_recurrent: bool,
        involved_partner_ids: Optional[Iterable[Any]],
        document_url: Optional[str] = None,
        **existing: Any,
    ) -> Cost:
        """
        Build the cost a user asked for, with a fresh unpaid split.

        Raises NoPartnersError, EmptySelectionError, InvalidInputError or
        NotFoundError (payer / involved partner) without writing anything.
        """
        partners = await self._partners.list_partners()
        if not partners:
            raise NoPartnersError()

        selected = require_selection(involved_partner_ids)
        cost = validate_input(
            Cost,
            owner_id=self._owner_id,
            category=category,
            description=description,
            value=value,
            date=date,
            payer_id=payer_id,
            is_recurrent=is_recurrent,
            involved_partner_ids=selected,
            document_url=document_url,
            **existing,
        )

        known = {p.id for p in partners}
        if cost.payer_id not in known:
            raise NotFoundError("partner", cost.payer_id)
        for partner_id in cost.involved_partner_ids:
            if partner_id not in known:
                raise NotFoundError("partner", partner_id)

        cost.payments = build_payments(cost.value, cost.involved_partner_ids, cost.payer_id)
        return cost

    async def add_cost(
        self,
        category: CostCategory,
        value: Any,
        date: date,
        payer_id: Any,
        involved_partner_ids: Iterable[Any],
        description: Optional[str] = None,
        is_recurrent: bool = False,
        document_url: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Cost:
        """Persist a new cost and credit the payer with its full value."""
        cost = await self._validated_cost(
            category=category,
            description=description,
            value=value,
            date=date,
            payer_id=payer_id,
            is_recurrent=is_recurrent,
            involved_partner_ids=involved_partner_ids,
            document_url=document_url,
        )

        await self._storage.insert_cost(self._owner_id, cost)
        await self._partners.apply_balance_delta(cost.payer_id, cost.value, correlation_id)

        logger.info(
            "cost_added",
            owner_id=self._owner_id,
            cost_id=str(cost.id),
            value=str(cost.value),
            payer_id=str(cost.payer_id),
            partner_count=len(cost.payments),
        )
        return cost

    async def mark_cost_payment_as_paid(
        self,
        cost_id: Any,
        partner_id: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Cost:
        """
        Toggle one partner's payment.

        Despite the name this is a toggle: calling it on a paid payment
        marks it unpaid again and restores both balances.
        """
        cost = await self.get_cost(cost_id)
        partner_id = as_uuid(partner_id, "partner_id")
        payment = cost.payment_for(partner_id)
        if payment is None:
            raise NotFoundError(
                "cost_payment",
                partner_id,
                f"Partner {partner_id} has no share in this cost.",
            )

        payment.paid = not payment.paid
        if payment.paid:
            delta = -payment.amount
            await self._partners.apply_balance_delta(payment.partner_id, delta, correlation_id)
            await self._partners.apply_balance_delta(cost.payer_id, delta, correlation_id)
        else:
            # Un-marking undoes a stored settlement; partners deleted since are skipped.
            await self._partners.revert_balance_delta(
                payment.partner_id, payment.amount, correlation_id
            )
            await self._partners.revert_balance_delta(
                cost.payer_id, payment.amount, correlation_id
            )
        await self._storage.update_cost(self._owner_id, cost)

        logger.info(
            "cost_payment_toggled",
            owner_id=self._owner_id,
            cost_id=str(cost.id),
            partner_id=str(partner_id),
            amount=str(payment.amount),
            paid=payment.paid,
        )
        return cost

    async def _revert_cost_effect(self, cost: Cost, correlation_id: Optional[UUID]) -> None:
        await self._partners.revert_balance_delta(cost.payer_id, -cost.value, correlation_id)
        for payment in cost.payments:
            if payment.paid:
                await self._partners.revert_balance_delta(
                    payment.partner_id, payment.amount, correlation_id
                )
                await self._partners.revert_balance_delta(
                    cost.payer_id, payment.amount, correlation_id
                )

    async def edit_cost(
        self,
        cost_id: Any,
        category: CostCategory,
        value: Any,
        date: date,
        payer_id: Any,
        involved_partner_ids: Iterable[Any],
        description: Optional[str] = None,
        is_recurrent: bool = False,
        document_url: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Cost:
        """
        Replace a cost. The old effect (including paid payments) is fully
        reverted and every payment of the new version starts unpaid.
        """
        current = await self.get_cost(cost_id)
        updated = await self._validated_cost(
            category=category,
            description=description,
            value=value,
            date=date,
            payer_id=payer_id,
            is_recurrent=is_recurrent,
            involved_partner_ids=involved_partner_ids,
            document_url=document_url,
            id=current.id,
            created_at=current.created_at,
            updated_at=datetime.utcnow(),
        )

        await self._revert_cost_effect(current, correlation_id)
        await self._partners.apply_balance_delta(updated.payer_id, updated.value, correlation_id)
        await self._storage.update_cost(self._owner_id, updated)

        logger.info(
            "cost_updated",
            owner_id=self._owner_id,
            cost_id=str(updated.id),
            old_value=str(current.value),
            value=str(updated.value),
            reset_paid_payments=sum(1 for p in current.payments if p.paid),
        )
        return updated

    async def delete_cost(self, cost_id: Any, correlation_id: Optional[UUID] = None) -> Cost:
        """
        Remove a cost and take its value back from the payer.

        Raises:
            PaidPaymentsExistError: while any payment is marked paid
        """
        cost = await self.get_cost(cost_id)
        if cost.has_paid_payments:
            raise PaidPaymentsExistError()

        await self._storage.delete_cost(self._owner_id, cost.id)
        await self._partners.revert_balance_delta(cost.payer_id, -cost.value, correlation_id)

        logger.info("cost_deleted", owner_id=self._owner_id, cost_id=str(cost.id))
        return cost

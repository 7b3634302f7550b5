"""
Ledger Reports

DESIGN DECISION: Reports are READ-ONLY and DETERMINISTIC.
They are computed from what the storage returns at call time; nothing here
caches results or writes back. Totals use Decimal so a report always agrees
with the balances it sits next to.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, TypeVar, Union

from partner_ledger.errors import NotFoundError
from partner_ledger.models.ledger import Cost, Profit
from partner_ledger.models.reports import (
    CategoryTotal,
    CostShareLine,
    DashboardSummary,
    PartnerBalance,
    PartnerStatement,
)
from partner_ledger.services.storage import LedgerStorageInterface
from partner_ledger.validation import as_uuid

R = TypeVar("R", Cost, Profit)


def filter_by_date(
    records: Iterable[R],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list[R]:
    """Keep records whose date falls in [date_from, date_to]; both ends optional."""
    return [
        r for r in records
        if (date_from is None or r.date >= date_from)
        and (date_to is None or r.date <= date_to)
    ]


def date_range_str(date_from: Optional[date], date_to: Optional[date]) -> str:
    """Format date range for report headers."""
    if date_from and date_to:
        if date_from == date_to:
            return f"on {date_from.strftime('%d %b %Y')}"
        elif date_from.month == date_to.month and date_from.year == date_to.year:
            return f"in {date_from.strftime('%B %Y')}"
        elif date_from.year == date_to.year:
            return f"from {date_from.strftime('%b')} to {date_to.strftime('%b %Y')}"
        else:
            return f"from {date_from.strftime('%b %Y')} to {date_to.strftime('%b %Y')}"
    elif date_from:
        return f"from {date_from.strftime('%d %b %Y')}"
    elif date_to:
        return f"until {date_to.strftime('%d %b %Y')}"
    return ""


def _category_totals(records: Iterable[Union[Cost, Profit]]) -> list[CategoryTotal]:
    groups: dict[str, list[Decimal]] = {}
    for record in records:
        groups.setdefault(record.category.value, []).append(record.value)

    totals = [
        CategoryTotal(category=key, total=sum(values, Decimal("0")), count=len(values))
        for key, values in groups.items()
    ]
    return sorted(totals, key=lambda t: t.total, reverse=True)


class LedgerReports:
    """
    Dashboard and partner-detail views for one owner.

    GUARANTEES:
    - Only returns real data from storage
    - Empty periods give zero totals, never an error
    """

    def __init__(self, storage: LedgerStorageInterface, owner_id: str):
        self._storage = storage
        self._owner_id = owner_id

    async def dashboard_summary(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> DashboardSummary:
        """Totals for the period plus every partner's current balance."""
        costs = filter_by_date(await self._storage.list_costs(self._owner_id), date_from, date_to)
        profits = filter_by_date(await self._storage.list_profits(self._owner_id), date_from, date_to)
        partners = await self._storage.list_partners(self._owner_id)

        return DashboardSummary(
            date_from=date_from,
            date_to=date_to,
            period=date_range_str(date_from, date_to),
            total_costs=sum((c.value for c in costs), Decimal("0")),
            total_profits=sum((p.value for p in profits), Decimal("0")),
            cost_count=len(costs),
            profit_count=len(profits),
            partner_balances=[
                PartnerBalance(
                    partner_id=p.id,
                    name=p.name,
                    participation=p.participation,
                    balance=p.balance,
                )
                for p in sorted(partners, key=lambda p: p.name.casefold())
            ],
        )

    async def costs_by_category(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[CategoryTotal]:
        """Cost totals per category, largest first."""
        costs = await self._storage.list_costs(self._owner_id)
        return _category_totals(filter_by_date(costs, date_from, date_to))

    async def profits_by_category(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[CategoryTotal]:
        """Profit totals per category, largest first."""
        profits = await self._storage.list_profits(self._owner_id)
        return _category_totals(filter_by_date(profits, date_from, date_to))

    async def partner_statement(self, partner_id: Any) -> PartnerStatement:
        """
        Costs the partner fronted, their share in each cost they are
        involved in, and the profits distributed to them. Newest first.
        """
        partner_id = as_uuid(partner_id, "partner_id")
        partner = await self._storage.get_partner(self._owner_id, partner_id)
        if partner is None:
            raise NotFoundError("partner", partner_id)

        costs = sorted(
            await self._storage.list_costs(self._owner_id),
            key=lambda c: (c.date, c.created_at),
            reverse=True,
        )
        profits = sorted(
            await self._storage.list_profits(self._owner_id),
            key=lambda p: (p.date, p.created_at),
            reverse=True,
        )

        shares = []
        for cost in costs:
            payment = cost.payment_for(partner_id)
            if payment is not None:
                shares.append(CostShareLine(
                    cost_id=cost.id,
                    date=cost.date,
                    category=cost.category.value,
                    description=cost.description,
                    amount=payment.amount,
                    paid=payment.paid,
                ))

        received = Decimal("0")
        own_profits = []
        for profit in profits:
            amounts = [d.amount for d in profit.distributions if d.partner_id == partner_id]
            if amounts:
                own_profits.append(profit)
                received += sum(amounts, Decimal("0"))

        return PartnerStatement(
            partner=partner,
            costs_paid_by=[c for c in costs if c.payer_id == partner_id],
            cost_shares=shares,
            profits=own_profits,
            total_profit_received=received,
        )

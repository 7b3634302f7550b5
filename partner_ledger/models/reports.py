"""
Report Models

Read-only views computed from the stored ledger: the dashboard totals,
per-category breakdowns and a single partner's statement.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from partner_ledger.models.ledger import Cost, Partner, Profit


class PartnerBalance(BaseModel):
    """A partner's current position as shown on the dashboard."""

    partner_id: UUID
    name: str
    participation: Decimal
    balance: Decimal

    @property
    def is_creditor(self) -> bool:
        """True when the group owes this partner."""
        return self.balance >= 0


class DashboardSummary(BaseModel):
    """Totals for the dashboard, optionally restricted to a date range."""

    generated_at: datetime = Field(default_factory=datetime.utcnow)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    period: str = Field(default="", description="Human-readable date range, empty for all time")

    total_costs: Decimal = Decimal("0")
    total_profits: Decimal = Decimal("0")
    cost_count: int = 0
    profit_count: int = 0
    partner_balances: list[PartnerBalance] = Field(default_factory=list)

    @property
    def net_balance(self) -> Decimal:
        """Profits minus costs for the selected period."""
        return self.total_profits - self.total_costs


class CategoryTotal(BaseModel):
    """Sum of values for one cost or profit category."""

    category: str
    total: Decimal
    count: int = Field(ge=0)


class CostShareLine(BaseModel):
    """A partner's share in one cost."""

    cost_id: UUID
    date: date
    category: str
    description: Optional[str] = None
    amount: Decimal
    paid: bool


class PartnerStatement(BaseModel):
    """Everything that touched one partner's balance."""

    partner: Partner
    costs_paid_by: list[Cost] = Field(
        default_factory=list,
        description="Costs this partner fronted"
    )
    cost_shares: list[CostShareLine] = Field(
        default_factory=list,
        description="This partner's share in each cost they are involved in"
    )
    profits: list[Profit] = Field(
        default_factory=list,
        description="Profits with a distribution to this partner"
    )
    total_profit_received: Decimal = Decimal("0")

    @property
    def total_owed_shares(self) -> Decimal:
        return sum((line.amount for line in self.cost_shares), Decimal("0"))

    @property
    def total_unpaid_shares(self) -> Decimal:
        return sum(
            (line.amount for line in self.cost_shares if not line.paid),
            Decimal("0"),
        )

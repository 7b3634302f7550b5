"""Tests for ledger reports."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from partner_ledger.errors import NotFoundError
from partner_ledger.models.ledger import CostCategory, ProfitCategory
from partner_ledger.queries import LedgerReports, date_range_str


@pytest.fixture
def reports(storage):
    return LedgerReports(storage, "owner-1")


async def _populate(costs, profits, ana, bruno):
    """Two January costs, one February cost, one January profit."""
    await costs.add_cost(
        category=CostCategory.SITE,
        value=Decimal("100"),
        date=date(2024, 1, 10),
        payer_id=ana.id,
        involved_partner_ids=[ana.id, bruno.id],
        description="Domain",
    )
    await costs.add_cost(
        category=CostCategory.SITE,
        value=Decimal("30"),
        date=date(2024, 1, 25),
        payer_id=bruno.id,
        involved_partner_ids=[bruno.id],
    )
    await costs.add_cost(
        category=CostCategory.PROVIDER,
        value=Decimal("50"),
        date=date(2024, 2, 5),
        payer_id=bruno.id,
        involved_partner_ids=[ana.id, bruno.id],
    )
    await profits.add_profit(
        date=date(2024, 1, 31),
        value=Decimal("200"),
        source="Client X",
        category=ProfitCategory.OPERATIONAL,
    )


class TestDashboardSummary:
    @pytest.mark.asyncio
    async def test_all_time_totals(self, reports, costs, profits, add_partners):
        ana, bruno = await add_partners(50, 50)
        await _populate(costs, profits, ana, bruno)

        summary = await reports.dashboard_summary()
        assert summary.total_costs == Decimal("180")
        assert summary.total_profits == Decimal("200")
        assert summary.net_balance == Decimal("20")
        assert summary.cost_count == 3
        assert summary.profit_count == 1
        assert summary.period == ""
        assert [b.name for b in summary.partner_balances] == ["Ana", "Bruno"]
        assert summary.partner_balances[0].balance == Decimal("200")
        assert summary.partner_balances[1].balance == Decimal("180")

    @pytest.mark.asyncio
    async def test_date_range(self, reports, costs, profits, add_partners):
        ana, bruno = await add_partners(50, 50)
        await _populate(costs, profits, ana, bruno)

        summary = await reports.dashboard_summary(date(2024, 1, 1), date(2024, 1, 31))
        assert summary.total_costs == Decimal("130")
        assert summary.total_profits == Decimal("200")
        assert summary.period == "in January 2024"

    @pytest.mark.asyncio
    async def test_empty_ledger(self, reports):
        summary = await reports.dashboard_summary()
        assert summary.total_costs == Decimal("0")
        assert summary.net_balance == Decimal("0")
        assert summary.partner_balances == []


class TestCategoryTotals:
    @pytest.mark.asyncio
    async def test_costs_by_category(self, reports, costs, profits, add_partners):
        ana, bruno = await add_partners(50, 50)
        await _populate(costs, profits, ana, bruno)

        totals = await reports.costs_by_category()
        assert [(t.category, t.total, t.count) for t in totals] == [
            ("site", Decimal("130"), 2),
            ("provedor", Decimal("50"), 1),
        ]

    @pytest.mark.asyncio
    async def test_costs_by_category_in_range(self, reports, costs, profits, add_partners):
        ana, bruno = await add_partners(50, 50)
        await _populate(costs, profits, ana, bruno)

        totals = await reports.costs_by_category(date_from=date(2024, 2, 1))
        assert [(t.category, t.total) for t in totals] == [("provedor", Decimal("50"))]

    @pytest.mark.asyncio
    async def test_profits_by_category(self, reports, costs, profits, add_partners):
        ana, bruno = await add_partners(50, 50)
        await _populate(costs, profits, ana, bruno)

        totals = await reports.profits_by_category(date_to=date(2024, 1, 30))
        assert totals == []
        totals = await reports.profits_by_category()
        assert [(t.category, t.total, t.count) for t in totals] == [
            ("operacional", Decimal("200"), 1),
        ]


class TestPartnerStatement:
    @pytest.mark.asyncio
    async def test_statement(self, reports, costs, profits, add_partners):
        ana, bruno = await add_partners(50, 50)
        await _populate(costs, profits, ana, bruno)

        statement = await reports.partner_statement(ana.id)
        assert statement.partner.id == ana.id
        assert [c.description for c in statement.costs_paid_by] == ["Domain"]
        assert [(line.amount, line.paid) for line in statement.cost_shares] == [
            (Decimal("25"), False),
            (Decimal("50"), False),
        ]
        assert statement.total_unpaid_shares == Decimal("75")
        assert statement.total_profit_received == Decimal("100")
        assert len(statement.profits) == 1

    @pytest.mark.asyncio
    async def test_statement_reflects_paid_shares(self, reports, costs, profits, add_partners):
        ana, bruno = await add_partners(50, 50)
        await _populate(costs, profits, ana, bruno)
        site = [c for c in await costs.list_costs() if c.description == "Domain"][0]
        await costs.mark_cost_payment_as_paid(site.id, bruno.id)

        statement = await reports.partner_statement(bruno.id)
        paid = {line.cost_id: line.paid for line in statement.cost_shares}
        assert paid[site.id] is True
        assert statement.total_owed_shares == Decimal("105")
        assert statement.total_unpaid_shares == Decimal("55")

    @pytest.mark.asyncio
    async def test_unknown_partner(self, reports):
        with pytest.raises(NotFoundError):
            await reports.partner_statement(uuid4())


class TestDateRangeStr:
    @pytest.mark.parametrize("date_from,date_to,expected", [
        (date(2024, 1, 5), date(2024, 1, 5), "on 05 Jan 2024"),
        (date(2024, 1, 1), date(2024, 1, 31), "in January 2024"),
        (date(2024, 1, 1), date(2024, 3, 31), "from Jan to Mar 2024"),
        (date(2023, 11, 1), date(2024, 2, 1), "from Nov 2023 to Feb 2024"),
        (date(2024, 1, 5), None, "from 05 Jan 2024"),
        (None, date(2024, 1, 5), "until 05 Jan 2024"),
        (None, None, ""),
    ])
    def test_formats(self, date_from, date_to, expected):
        assert date_range_str(date_from, date_to) == expected

"""Tests for the Profit Distribution Engine."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from partner_ledger.errors import InvalidInputError, NoPartnersError, NotFoundError
from partner_ledger.models.ledger import ProfitCategory


async def _add_profit(profits, value="200", when=date(2024, 1, 20)):
    return await profits.add_profit(
        date=when,
        value=Decimal(value),
        source="Client X",
        category=ProfitCategory.OPERATIONAL,
    )


class TestAddProfit:
    @pytest.mark.asyncio
    async def test_two_partner_scenario(self, profits, add_partners, balances):
        ana, bruno = await add_partners(50, 50)
        profit = await _add_profit(profits)

        assert [(d.partner_id, d.amount) for d in profit.distributions] == [
            (ana.id, Decimal("100")),
            (bruno.id, Decimal("100")),
        ]
        assert await balances() == {"Ana": Decimal("100"), "Bruno": Decimal("100")}

        await profits.delete_profit(profit.id)
        assert await balances() == {"Ana": Decimal("0"), "Bruno": Decimal("0")}
        assert await profits.list_profits() == []

    @pytest.mark.asyncio
    async def test_partial_participation_distributes_proportionally(self, profits, add_partners):
        await add_partners(30, 20)
        profit = await _add_profit(profits, value="100")
        assert [d.amount for d in profit.distributions] == [Decimal("30"), Decimal("20")]
        assert profit.distributed_total == Decimal("50")

    @pytest.mark.asyncio
    async def test_distribution_sums_to_value_at_full_participation(self, profits, add_partners):
        await add_partners("33.33", "33.33", "33.34")
        profit = await _add_profit(profits, value="1000.01")
        assert profit.distributed_total == Decimal("1000.01")

    @pytest.mark.asyncio
    async def test_no_partners(self, profits):
        with pytest.raises(NoPartnersError):
            await _add_profit(profits)

    @pytest.mark.asyncio
    async def test_invalid_input(self, profits, add_partners, balances):
        await add_partners(100)
        with pytest.raises(InvalidInputError):
            await _add_profit(profits, value="0")
        with pytest.raises(InvalidInputError):
            await profits.add_profit(
                date=date(2024, 1, 1),
                value=Decimal("10"),
                source="  ",
                category=ProfitCategory.OTHER,
            )
        assert await profits.list_profits() == []
        assert await balances() == {"Ana": Decimal("0")}

    @pytest.mark.asyncio
    async def test_profit_is_persisted(self, profits, add_partners):
        await add_partners(50, 50)
        profit = await _add_profit(profits)
        stored = await profits.get_profit(profit.id)
        assert stored.source == "Client X"
        assert stored.distributed_total == Decimal("200")


class TestEditProfit:
    @pytest.mark.asyncio
    async def test_no_op_edit_keeps_balances(self, profits, add_partners, balances):
        await add_partners("33.33", "33.33", "33.34")
        profit = await _add_profit(profits, value="100")
        before = await balances()

        await profits.edit_profit(
            profit.id,
            date=profit.date,
            value=profit.value,
            source=profit.source,
            category=profit.category,
        )
        assert await balances() == before

    @pytest.mark.asyncio
    async def test_edit_redistributes_new_value(self, profits, add_partners, balances):
        await add_partners(50, 50)
        profit = await _add_profit(profits)

        updated = await profits.edit_profit(
            profit.id,
            date=date(2024, 2, 1),
            value=Decimal("300"),
            source="Client Y",
            category=ProfitCategory.EXTRAORDINARY,
        )
        assert updated.id == profit.id
        assert updated.distributed_total == Decimal("300")
        assert await balances() == {"Ana": Decimal("150"), "Bruno": Decimal("150")}

    @pytest.mark.asyncio
    async def test_edit_uses_current_partner_set(self, profits, partners, add_partners, balances):
        ana, = await add_partners(50)
        profit = await _add_profit(profits)
        assert await balances() == {"Ana": Decimal("100")}

        await partners.add_partner(name="Bruno", email="bruno@example.com", participation=50)
        updated = await profits.edit_profit(
            profit.id,
            date=profit.date,
            value=profit.value,
            source=profit.source,
            category=profit.category,
        )
        assert len(updated.distributions) == 2
        assert await balances() == {"Ana": Decimal("100"), "Bruno": Decimal("100")}

    @pytest.mark.asyncio
    async def test_invalid_edit_changes_nothing(self, profits, add_partners, balances):
        await add_partners(50, 50)
        profit = await _add_profit(profits)
        with pytest.raises(InvalidInputError):
            await profits.edit_profit(
                profit.id,
                date=profit.date,
                value=Decimal("-1"),
                source=profit.source,
                category=profit.category,
            )
        assert await balances() == {"Ana": Decimal("100"), "Bruno": Decimal("100")}
        assert (await profits.get_profit(profit.id)).value == Decimal("200")

    @pytest.mark.asyncio
    async def test_edit_unknown_profit(self, profits, add_partners):
        await add_partners(100)
        with pytest.raises(NotFoundError):
            await profits.edit_profit(
                uuid4(),
                date=date(2024, 1, 1),
                value=Decimal("10"),
                source="x",
                category=ProfitCategory.OTHER,
            )


class TestDeleteProfit:
    @pytest.mark.asyncio
    async def test_reversal_skips_removed_partner(self, storage, profits, add_partners, balances):
        ana, bruno = await add_partners(50, 50)
        profit = await _add_profit(profits)
        # Bypass the ledger rules to simulate a partner removed elsewhere
        await storage.delete_partner("owner-1", bruno.id)

        await profits.delete_profit(profit.id)
        assert await balances() == {"Ana": Decimal("0")}

    @pytest.mark.asyncio
    async def test_delete_unknown_profit(self, profits):
        with pytest.raises(NotFoundError):
            await profits.delete_profit(uuid4())

    @pytest.mark.asyncio
    async def test_list_profits_newest_first(self, profits, add_partners):
        await add_partners(100)
        older = await _add_profit(profits, when=date(2023, 12, 31))
        newer = await _add_profit(profits, when=date(2024, 6, 30))
        assert [p.id for p in await profits.list_profits()] == [newer.id, older.id]

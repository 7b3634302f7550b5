"""Tests for LedgerSession: notifications, audit trail and rollback."""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from partner_ledger.audit import AuditLogger
from partner_ledger.config import get_settings
from partner_ledger.errors import (
    DuplicateNameError,
    InvalidInputError,
    NotFoundError,
    PaidPaymentsExistError,
    StorageError,
)
from partner_ledger.models.audit import AuditEventType
from partner_ledger.models.ledger import CostCategory, ProfitCategory
from partner_ledger.services.notifications import RecordingNotifier
from partner_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from partner_ledger.session import LedgerSession, create_session


class FlakyStorage(InMemoryLedgerStorage):
    """In-memory storage whose partner updates start failing after N calls."""

    def __init__(self):
        super().__init__()
        self.fail_after = None
        self._updates = 0

    async def update_partner(self, owner_id, partner):
        if self.fail_after is not None:
            self._updates += 1
            if self._updates > self.fail_after:
                raise StorageError("Failed to update partner: backend unavailable")
        return await super().update_partner(owner_id, partner)


async def _two_partners(session):
    ana = await session.add_partner(name="Ana", email="ana@example.com", participation=50)
    bruno = await session.add_partner(name="Bruno", email="bruno@example.com", participation=50)
    return ana, bruno


class TestNotifications:
    @pytest.mark.asyncio
    async def test_success_messages(self, session, notifier):
        ana, bruno = await _two_partners(session)
        cost = await session.add_cost(
            category=CostCategory.SITE,
            value=Decimal("100"),
            date=date(2024, 1, 15),
            payer_id=ana.id,
            involved_partner_ids=[ana.id, bruno.id],
        )
        await session.mark_cost_payment_as_paid(cost.id, bruno.id)
        await session.mark_cost_payment_as_paid(cost.id, bruno.id)
        await session.add_profit(
            date=date(2024, 1, 20),
            value=Decimal("200"),
            source="Client X",
            category=ProfitCategory.OPERATIONAL,
        )

        assert notifier.messages("success") == [
            "Partner added successfully!",
            "Partner added successfully!",
            "Cost added successfully!",
            "Bruno paid their share.",
            "Bruno's payment was reverted.",
            "Profit registered and distributed successfully!",
        ]
        assert notifier.messages("error") == []

    @pytest.mark.asyncio
    async def test_error_is_notified_and_reraised(self, session, notifier):
        await session.add_partner(name="Ana", email="ana@example.com", participation=50)
        with pytest.raises(DuplicateNameError):
            await session.add_partner(name="ana", email="other@example.com", participation=10)

        assert notifier.last.level == "error"
        assert notifier.last.message == DuplicateNameError.default_message

    @pytest.mark.asyncio
    async def test_delete_blocked_by_paid_payment(self, session, notifier):
        ana, bruno = await _two_partners(session)
        cost = await session.add_cost(
            category=CostCategory.OTHER,
            value=Decimal("100"),
            date=date(2024, 1, 15),
            payer_id=ana.id,
            involved_partner_ids=[ana.id, bruno.id],
        )
        await session.mark_cost_payment_as_paid(cost.id, bruno.id)

        with pytest.raises(PaidPaymentsExistError):
            await session.delete_cost(cost.id)
        assert notifier.last.message == PaidPaymentsExistError.default_message
        assert (await session.get_partner(ana.id)).balance == Decimal("50")

    @pytest.mark.asyncio
    async def test_broken_notifier_does_not_fail_the_operation(self, storage):
        notifier = MagicMock()
        notifier.notify_success.side_effect = RuntimeError("toast service down")
        session = LedgerSession("owner-1", storage, notifier=notifier)

        partner = await session.add_partner(name="Ana", email="ana@example.com", participation=50)
        assert (await session.get_partner(partner.id)).name == "Ana"
        notifier.notify_success.assert_called_once()

    @pytest.mark.asyncio
    async def test_partner_arguments_in_positional_order(self, session):
        ana = await session.add_partner(
            "Ana", "ana@example.com", "+55 11 99999-0000", "123.456.789-00", Decimal("60")
        )
        assert ana.phone == "+55 11 99999-0000"
        assert ana.document == "123.456.789-00"
        assert ana.participation == Decimal("60")

        edited = await session.edit_partner(
            ana.id, "Ana", "ana@example.com", None, None, Decimal("40")
        )
        assert edited.phone is None
        assert edited.participation == Decimal("40")


class TestAuditTrail:
    @pytest.mark.asyncio
    async def test_success_is_audited(self, session, audit_storage):
        ana = await session.add_partner(name="Ana", email="ana@example.com", participation=100)
        events = await audit_storage.get_events_by_entity("partner", ana.id)
        assert [e.event_type for e in events] == [AuditEventType.PARTNER_ADDED]
        assert events[0].owner_id == "owner-1"

    @pytest.mark.asyncio
    async def test_cost_events_share_a_correlation_id(self, session, audit_storage):
        ana = await session.add_partner(name="Ana", email="ana@example.com", participation=100)
        cost = await session.add_cost(
            category=CostCategory.DATABASE,
            value=Decimal("40"),
            date=date(2024, 1, 15),
            payer_id=ana.id,
            involved_partner_ids=[ana.id],
        )
        cost_event = (await audit_storage.get_events_by_entity("cost", cost.id))[0]
        related = await audit_storage.get_events_by_correlation_id(cost_event.correlation_id)
        assert {e.event_type for e in related} == {
            AuditEventType.BALANCE_ADJUSTED,
            AuditEventType.COST_ADDED,
        }

    @pytest.mark.asyncio
    async def test_rejection_is_audited(self, session, audit_storage):
        with pytest.raises(NotFoundError):
            await session.delete_profit("00000000-0000-0000-0000-000000000000")
        recent = await audit_storage.get_recent_events(limit=1)
        assert recent[0].event_type == AuditEventType.OPERATION_REJECTED
        assert recent[0].error_code == "NotFoundError"
        assert recent[0].details["operation"] == "delete_profit"


class TestRollback:
    @pytest.mark.asyncio
    async def test_storage_failure_mid_distribution_rolls_back(self):
        storage = FlakyStorage()
        notifier = RecordingNotifier()
        audit_storage = InMemoryAuditStorage()
        session = LedgerSession("owner-1", storage, notifier, AuditLogger(audit_storage))
        ana, bruno = await _two_partners(session)

        storage.fail_after = 1
        with pytest.raises(StorageError):
            await session.add_profit(
                date=date(2024, 1, 20),
                value=Decimal("200"),
                source="Client X",
                category=ProfitCategory.OPERATIONAL,
            )

        storage.fail_after = None
        assert (await session.get_partner(ana.id)).balance == Decimal("0")
        assert (await session.get_partner(bruno.id)).balance == Decimal("0")
        assert await session.list_profits() == []
        assert notifier.last.message == "Failed to update partner: backend unavailable"
        events = await audit_storage.get_recent_events()
        assert AuditEventType.STORAGE_ERROR in [e.event_type for e in events]

    @pytest.mark.asyncio
    async def test_failed_payment_toggle_keeps_cost_unpaid(self):
        storage = FlakyStorage()
        session = LedgerSession("owner-1", storage, RecordingNotifier())
        ana, bruno = await _two_partners(session)
        cost = await session.add_cost(
            category=CostCategory.SITE,
            value=Decimal("100"),
            date=date(2024, 1, 15),
            payer_id=ana.id,
            involved_partner_ids=[ana.id, bruno.id],
        )

        storage.fail_after = 1
        with pytest.raises(StorageError):
            await session.mark_cost_payment_as_paid(cost.id, bruno.id)

        storage.fail_after = None
        assert (await session.get_cost(cost.id)).payment_for(bruno.id).paid is False
        assert (await session.get_partner(ana.id)).balance == Decimal("100")
        assert (await session.get_partner(bruno.id)).balance == Decimal("0")


class TestReadsAndReports:
    @pytest.mark.asyncio
    async def test_reads_delegate(self, session):
        ana, bruno = await _two_partners(session)
        await session.add_profit(
            date=date(2024, 1, 20),
            value=Decimal("200"),
            source="Client X",
            category=ProfitCategory.OPERATIONAL,
        )
        assert await session.get_total_participation() == Decimal("100")
        assert (await session.dashboard_summary()).total_profits == Decimal("200")
        assert (await session.partner_statement(bruno.id)).total_profit_received == Decimal("100")
        assert await session.costs_by_category() == []
        assert len(await session.profits_by_category()) == 1


class TestCreateSession:
    @pytest.fixture(autouse=True)
    def clean_settings(self, monkeypatch):
        for name in (
            "LEDGER_STORAGE_BACKEND",
            "LEDGER_DEFAULT_OWNER_ID",
            "GOOGLE_SHEETS_CREDENTIALS_PATH",
            "GOOGLE_SHEETS_SPREADSHEET_ID",
        ):
            monkeypatch.delenv(name, raising=False)
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_in_memory_session(self):
        session = create_session(owner_id="acme", use_storage=False)
        assert session.owner_id == "acme"
        assert isinstance(session._storage, InMemoryLedgerStorage)

    def test_default_owner_from_settings(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DEFAULT_OWNER_ID", "from-env")
        assert create_session(use_storage=False).owner_id == "from-env"

    def test_owner_is_required(self):
        with pytest.raises(InvalidInputError):
            create_session(use_storage=False)

    def test_unconfigured_sheets_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "google_sheets")
        session = create_session(owner_id="acme")
        assert isinstance(session._storage, InMemoryLedgerStorage)

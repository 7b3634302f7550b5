"""Tests for the audit logger."""

from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from partner_ledger.audit import AuditLogger, create_correlation_id
from partner_ledger.models.audit import AuditEventType, AuditSeverity
from partner_ledger.services.storage import InMemoryAuditStorage


class TestAuditLogger:
    @pytest.mark.asyncio
    async def test_local_only_logging_succeeds(self):
        logger = AuditLogger()
        await logger.log_error("ValueError", "bad input")

    @pytest.mark.asyncio
    async def test_events_are_persisted(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()
        partner_id = uuid4()

        await logger.log_partner_changed(
            event_type=AuditEventType.PARTNER_ADDED,
            owner_id="owner-1",
            partner_id=partner_id,
            name="Ana",
            correlation_id=correlation_id,
        )
        await logger.log_balance_adjusted(
            owner_id="owner-1",
            partner_id=partner_id,
            delta=Decimal("-50"),
            new_balance=Decimal("50"),
            correlation_id=correlation_id,
        )

        events = await storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_type for e in events] == [
            AuditEventType.PARTNER_ADDED,
            AuditEventType.BALANCE_ADJUSTED,
        ]
        assert events[1].severity == AuditSeverity.DEBUG
        assert events[1].details == {"delta": "-50", "new_balance": "50"}

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_raised(self):
        storage = AsyncMock()
        storage.append_event.side_effect = RuntimeError("sheet offline")
        logger = AuditLogger(storage)

        await logger.log_storage_error(
            owner_id="owner-1",
            operation="add_cost",
            error_message="sheet offline",
            correlation_id=uuid4(),
        )
        storage.append_event.assert_awaited_once()

    def test_correlation_ids_are_unique(self):
        assert create_correlation_id() != create_correlation_id()

"""Shared test fixtures for partner_ledger."""

from decimal import Decimal

import pytest

from partner_ledger.audit import AuditLogger
from partner_ledger.ledger import CostSettlementEngine, PartnerLedger, ProfitDistributionEngine
from partner_ledger.services.notifications import RecordingNotifier
from partner_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from partner_ledger.session import LedgerSession

OWNER = "owner-1"


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def partners(storage):
    return PartnerLedger(storage, OWNER)


@pytest.fixture
def costs(storage, partners):
    return CostSettlementEngine(storage, OWNER, partners)


@pytest.fixture
def profits(storage, partners):
    return ProfitDistributionEngine(storage, OWNER, partners)


@pytest.fixture
def session(storage, notifier, audit_storage):
    return LedgerSession(
        owner_id=OWNER,
        storage=storage,
        notifier=notifier,
        audit_logger=AuditLogger(audit_storage),
    )


async def _add_partners(ledger: PartnerLedger, *participations):
    names = ["Ana", "Bruno", "Carla", "Diego", "Elisa"]
    created = []
    for name, participation in zip(names, participations):
        created.append(await ledger.add_partner(
            name=name,
            email=f"{name.lower()}@example.com",
            participation=Decimal(str(participation)),
        ))
    return created


async def _balances(ledger: PartnerLedger) -> dict:
    return {p.name: p.balance for p in await ledger.list_partners()}


@pytest.fixture
def add_partners(partners):
    """Add partners named Ana, Bruno, Carla, ... with the given participation."""
    async def add(*participations):
        return await _add_partners(partners, *participations)
    return add


@pytest.fixture
def balances(partners):
    """{name: balance} for every partner."""
    async def read():
        return await _balances(partners)
    return read

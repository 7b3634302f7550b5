"""
Ledger Session

This module ties the ledger components together for one owner and defines
the end-to-end flow of every user action:

    correlation id -> transaction(engine operation) -> notify -> audit

DESIGN DECISION: The session enforces the boundaries:
- Each mutating action runs inside storage.with_transaction, so a failure
  halfway through a multi-partner update leaves no partial balances behind
- Every outcome, success or failure, is reported to the notifier
- Every outcome is audited under the action's correlation id
- Ledger errors are re-raised after being reported; callers decide what
  to do next

There is no process-wide ledger state. Build one session per owner.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar
from uuid import UUID

import structlog

from partner_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from partner_ledger.config import get_settings
from partner_ledger.errors import InvalidInputError, LedgerError, StorageError
from partner_ledger.ledger import CostSettlementEngine, PartnerLedger, ProfitDistributionEngine
from partner_ledger.models.audit import AuditEventType
from partner_ledger.models.ledger import (
    Cost,
    CostCategory,
    Partner,
    Profit,
    ProfitCategory,
)
from partner_ledger.models.reports import CategoryTotal, DashboardSummary, PartnerStatement
from partner_ledger.queries import LedgerReports
from partner_ledger.services.notifications import LoggingNotifier, NotificationGatewayInterface
from partner_ledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from partner_ledger.validation import as_uuid

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class LedgerSession:
    """
    Every ledger operation for a single owner.

    Mutating calls notify and audit; read calls go straight to the
    engines and reports.
    """

    def __init__(
        self,
        owner_id: str,
        storage: LedgerStorageInterface,
        notifier: Optional[NotificationGatewayInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_total_participation: Decimal = Decimal("100"),
    ):
        self._owner_id = owner_id
        self._storage = storage
        self._notifier = notifier or LoggingNotifier()
        self._audit_logger = audit_logger or AuditLogger()

        self.partners = PartnerLedger(
            storage,
            owner_id,
            max_total_participation=max_total_participation,
            audit_logger=self._audit_logger,
        )
        self.costs = CostSettlementEngine(storage, owner_id, self.partners)
        self.profits = ProfitDistributionEngine(storage, owner_id, self.partners)
        self.reports = LedgerReports(storage, owner_id)

    @property
    def owner_id(self) -> str:
        return self._owner_id

    # =========================================================================
    # PLUMBING
    # =========================================================================

    def _notify(self, success: bool, message: str) -> None:
        # A broken notifier must not turn a committed operation into a failure
        try:
            if success:
                self._notifier.notify_success(message)
            else:
                self._notifier.notify_error(message)
        except Exception as e:
            logger.error("notification_failed", error=str(e), message=message)

    async def _run(
        self,
        operation: str,
        action: Callable[[UUID], Awaitable[T]],
        on_success: Callable[[T, UUID], Awaitable[str]],
    ) -> T:
        """
        Run one user action as a single transaction.

        action receives the correlation id and performs the writes;
        on_success audits the result and returns the message shown to the user.
        """
        correlation_id = create_correlation_id()
        try:
            result = await self._storage.with_transaction(
                self._owner_id,
                lambda: action(correlation_id),
            )
        except StorageError as e:
            self._notify(False, e.message)
            await self._audit_logger.log_storage_error(
                owner_id=self._owner_id,
                operation=operation,
                error_message=e.message,
                correlation_id=correlation_id,
            )
            raise
        except LedgerError as e:
            self._notify(False, e.message)
            await self._audit_logger.log_operation_rejected(
                owner_id=self._owner_id,
                operation=operation,
                error_code=type(e).__name__,
                error_message=e.message,
                correlation_id=correlation_id,
            )
            raise
        except Exception as e:
            self._notify(False, LedgerError.default_message)
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"operation": operation, "owner_id": self._owner_id},
                correlation_id=correlation_id,
            )
            raise

        self._notify(True, await on_success(result, correlation_id))
        return result

    async def _partner_done(
        self,
        event_type: AuditEventType,
        partner: Partner,
        correlation_id: UUID,
    ) -> None:
        await self._audit_logger.log_partner_changed(
            event_type=event_type,
            owner_id=self._owner_id,
            partner_id=partner.id,
            name=partner.name,
            correlation_id=correlation_id,
        )

    async def _cost_done(self, event_type: AuditEventType, cost: Cost, correlation_id: UUID) -> None:
        await self._audit_logger.log_cost_changed(
            event_type=event_type,
            owner_id=self._owner_id,
            cost_id=cost.id,
            value=cost.value,
            payer_id=cost.payer_id,
            correlation_id=correlation_id,
        )

    async def _profit_done(
        self,
        event_type: AuditEventType,
        profit: Profit,
        correlation_id: UUID,
    ) -> None:
        await self._audit_logger.log_profit_changed(
            event_type=event_type,
            owner_id=self._owner_id,
            profit_id=profit.id,
            value=profit.value,
            partner_count=len(profit.distributions),
            correlation_id=correlation_id,
        )

    # =========================================================================
    # PARTNERS
    # =========================================================================

    async def list_partners(self) -> list[Partner]:
        return await self.partners.list_partners()

    async def get_partner(self, partner_id: Any) -> Partner:
        return await self.partners.get_partner(partner_id)

    async def get_total_participation(self) -> Decimal:
        return await self.partners.get_total_participation()

    async def add_partner(
        self,
        name: str,
        email: str,
        phone: Optional[str] = None,
        document: Optional[str] = None,
        participation: Any = None,
    ) -> Partner:
        async def action(correlation_id: UUID) -> Partner:
            return await self.partners.add_partner(
                name=name,
                email=email,
                phone=phone,
                document=document,
                participation=participation,
            )

        async def on_success(partner: Partner, correlation_id: UUID) -> str:
            await self._partner_done(AuditEventType.PARTNER_ADDED, partner, correlation_id)
            return "Partner added successfully!"

        return await self._run("add_partner", action, on_success)

    async def edit_partner(
        self,
        partner_id: Any,
        name: str,
        email: str,
        phone: Optional[str] = None,
        document: Optional[str] = None,
        participation: Any = None,
    ) -> Partner:
        async def action(correlation_id: UUID) -> Partner:
            return await self.partners.edit_partner(
                partner_id,
                name=name,
                email=email,
                phone=phone,
                document=document,
                participation=participation,
            )

        async def on_success(partner: Partner, correlation_id: UUID) -> str:
            await self._partner_done(AuditEventType.PARTNER_UPDATED, partner, correlation_id)
            return "Partner updated successfully!"

        return await self._run("edit_partner", action, on_success)

    async def delete_partner(self, partner_id: Any) -> Partner:
        async def action(correlation_id: UUID) -> Partner:
            return await self.partners.delete_partner(partner_id)

        async def on_success(partner: Partner, correlation_id: UUID) -> str:
            await self._partner_done(AuditEventType.PARTNER_DELETED, partner, correlation_id)
            return "Partner removed successfully!"

        return await self._run("delete_partner", action, on_success)

    # =========================================================================
    # COSTS
    # =========================================================================

    async def list_costs(self) -> list[Cost]:
        return await self.costs.list_costs()

    async def get_cost(self, cost_id: Any) -> Cost:
        return await self.costs.get_cost(cost_id)

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
    ) -> Cost:
        async def action(correlation_id: UUID) -> Cost:
            return await self.costs.add_cost(
                category=category,
                value=value,
                date=date,
                payer_id=payer_id,
                involved_partner_ids=involved_partner_ids,
                description=description,
                is_recurrent=is_recurrent,
                document_url=document_url,
                correlation_id=correlation_id,
            )

        async def on_success(cost: Cost, correlation_id: UUID) -> str:
            await self._cost_done(AuditEventType.COST_ADDED, cost, correlation_id)
            return "Cost added successfully!"

        return await self._run("add_cost", action, on_success)

    async def mark_cost_payment_as_paid(self, cost_id: Any, partner_id: Any) -> Cost:
        async def action(correlation_id: UUID) -> Cost:
            return await self.costs.mark_cost_payment_as_paid(
                cost_id, partner_id, correlation_id=correlation_id
            )

        async def on_success(cost: Cost, correlation_id: UUID) -> str:
            payment = cost.payment_for(as_uuid(partner_id, "partner_id"))
            await self._audit_logger.log_cost_payment_toggled(
                owner_id=self._owner_id,
                cost_id=cost.id,
                partner_id=payment.partner_id,
                amount=payment.amount,
                paid=payment.paid,
                correlation_id=correlation_id,
            )
            partner = await self.partners.get_partner(payment.partner_id)
            if payment.paid:
                return f"{partner.name} paid their share."
            return f"{partner.name}'s payment was reverted."

        return await self._run("mark_cost_payment_as_paid", action, on_success)

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
    ) -> Cost:
        async def action(correlation_id: UUID) -> Cost:
            return await self.costs.edit_cost(
                cost_id,
                category=category,
                value=value,
                date=date,
                payer_id=payer_id,
                involved_partner_ids=involved_partner_ids,
                description=description,
                is_recurrent=is_recurrent,
                document_url=document_url,
                correlation_id=correlation_id,
            )

        async def on_success(cost: Cost, correlation_id: UUID) -> str:
            await self._cost_done(AuditEventType.COST_UPDATED, cost, correlation_id)
            return "Cost updated successfully!"

        return await self._run("edit_cost", action, on_success)

    async def delete_cost(self, cost_id: Any) -> Cost:
        async def action(correlation_id: UUID) -> Cost:
            return await self.costs.delete_cost(cost_id, correlation_id=correlation_id)

        async def on_success(cost: Cost, correlation_id: UUID) -> str:
            await self._cost_done(AuditEventType.COST_DELETED, cost, correlation_id)
            return "Cost removed successfully!"

        return await self._run("delete_cost", action, on_success)

    # =========================================================================
    # PROFITS
    # =========================================================================

    async def list_profits(self) -> list[Profit]:
        return await self.profits.list_profits()

    async def get_profit(self, profit_id: Any) -> Profit:
        return await self.profits.get_profit(profit_id)

    async def add_profit(
        self,
        date: date,
        value: Any,
        source: str,
        category: ProfitCategory,
        document_url: Optional[str] = None,
    ) -> Profit:
        async def action(correlation_id: UUID) -> Profit:
            return await self.profits.add_profit(
                date=date,
                value=value,
                source=source,
                category=category,
                document_url=document_url,
                correlation_id=correlation_id,
            )

        async def on_success(profit: Profit, correlation_id: UUID) -> str:
            await self._profit_done(AuditEventType.PROFIT_ADDED, profit, correlation_id)
            return "Profit registered and distributed successfully!"

        return await self._run("add_profit", action, on_success)

    async def edit_profit(
        self,
        profit_id: Any,
        date: date,
        value: Any,
        source: str,
        category: ProfitCategory,
        document_url: Optional[str] = None,
    ) -> Profit:
        async def action(correlation_id: UUID) -> Profit:
            return await self.profits.edit_profit(
                profit_id,
                date=date,
                value=value,
                source=source,
                category=category,
                document_url=document_url,
                correlation_id=correlation_id,
            )

        async def on_success(profit: Profit, correlation_id: UUID) -> str:
            await self._profit_done(AuditEventType.PROFIT_UPDATED, profit, correlation_id)
            return "Profit updated and redistributed successfully!"

        return await self._run("edit_profit", action, on_success)

    async def delete_profit(self, profit_id: Any) -> Profit:
        async def action(correlation_id: UUID) -> Profit:
            return await self.profits.delete_profit(profit_id, correlation_id=correlation_id)

        async def on_success(profit: Profit, correlation_id: UUID) -> str:
            await self._profit_done(AuditEventType.PROFIT_DELETED, profit, correlation_id)
            return "Profit removed successfully!"

        return await self._run("delete_profit", action, on_success)

    # =========================================================================
    # REPORTS
    # =========================================================================

    async def dashboard_summary(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> DashboardSummary:
        return await self.reports.dashboard_summary(date_from, date_to)

    async def costs_by_category(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[CategoryTotal]:
        return await self.reports.costs_by_category(date_from, date_to)

    async def profits_by_category(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[CategoryTotal]:
        return await self.reports.profits_by_category(date_from, date_to)

    async def partner_statement(self, partner_id: Any) -> PartnerStatement:
        return await self.reports.partner_statement(partner_id)


def create_session(
    owner_id: Optional[str] = None,
    use_storage: bool = True,
    notifier: Optional[NotificationGatewayInterface] = None,
) -> LedgerSession:
    """
    Factory function to create a session from settings.

    Args:
        owner_id: Account whose data the session operates on.
                  Falls back to LEDGER_DEFAULT_OWNER_ID.
        use_storage: Whether to use the configured backend.
                     Set to False for an in-memory session.
        notifier: Where user feedback goes. Defaults to the structured log.

    Google Sheets is used only when LEDGER_STORAGE_BACKEND=google_sheets
    and its settings load; otherwise the session runs in memory.
    """
    settings = get_settings()
    ledger_settings = settings.ledger
    configure_logging(settings.app.log_level)

    owner_id = owner_id or ledger_settings.default_owner_id
    if not owner_id:
        raise InvalidInputError("owner_id: an owner is required to open a ledger session")

    storage: Optional[LedgerStorageInterface] = None
    audit_logger: Optional[AuditLogger] = None

    if use_storage and ledger_settings.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsLedgerStorage(sheets_client)
            if ledger_settings.audit_to_storage:
                audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
            else:
                audit_logger = AuditLogger()
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", backend="google_sheets", error=str(e))
            storage = None
            audit_logger = None

    if storage is None:
        storage = InMemoryLedgerStorage()
        if ledger_settings.audit_to_storage:
            audit_logger = AuditLogger(InMemoryAuditStorage())
        else:
            audit_logger = AuditLogger()

    logger.info(
        "session_created",
        owner_id=owner_id,
        storage=type(storage).__name__,
    )
    return LedgerSession(
        owner_id=owner_id,
        storage=storage,
        notifier=notifier,
        audit_logger=audit_logger,
        max_total_participation=ledger_settings.max_total_participation,
    )

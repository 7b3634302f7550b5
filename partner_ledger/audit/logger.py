"""
Audit Logger

DESIGN DECISION: Every ledger operation is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability when a multi-step operation fails
3. Partners can see the history of their balances

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't break a ledger operation if logging fails)
- Supports correlation IDs to trace all events of one user action
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from partner_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from partner_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("partner_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_partner_changed(
        self,
        event_type: AuditEventType,
        owner_id: str,
        partner_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> None:
        """Log a partner being added, edited or deleted."""
        await self.log(AuditEventBuilder.partner_changed(
            event_type=event_type,
            owner_id=owner_id,
            partner_id=partner_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_balance_adjusted(
        self,
        owner_id: str,
        partner_id: UUID,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.balance_adjusted(
            owner_id=owner_id,
            partner_id=partner_id,
            delta=delta,
            new_balance=new_balance,
            correlation_id=correlation_id,
        ))

    async def log_cost_changed(
        self,
        event_type: AuditEventType,
        owner_id: str,
        cost_id: UUID,
        value: Decimal,
        payer_id: UUID,
        correlation_id: UUID,
    ) -> None:
        """Log a cost being added, edited or deleted."""
        await self.log(AuditEventBuilder.cost_changed(
            event_type=event_type,
            owner_id=owner_id,
            cost_id=cost_id,
            value=value,
            payer_id=payer_id,
            correlation_id=correlation_id,
        ))

    async def log_cost_payment_toggled(
        self,
        owner_id: str,
        cost_id: UUID,
        partner_id: UUID,
        amount: Decimal,
        paid: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.cost_payment_toggled(
            owner_id=owner_id,
            cost_id=cost_id,
            partner_id=partner_id,
            amount=amount,
            paid=paid,
            correlation_id=correlation_id,
        ))

    async def log_profit_changed(
        self,
        event_type: AuditEventType,
        owner_id: str,
        profit_id: UUID,
        value: Decimal,
        partner_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log a profit being added, edited or deleted."""
        await self.log(AuditEventBuilder.profit_changed(
            event_type=event_type,
            owner_id=owner_id,
            profit_id=profit_id,
            value=value,
            partner_count=partner_count,
            correlation_id=correlation_id,
        ))

    async def log_operation_rejected(
        self,
        owner_id: str,
        operation: str,
        error_code: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a validation or not-found rejection."""
        await self.log(AuditEventBuilder.operation_rejected(
            owner_id=owner_id,
            operation=operation,
            error_code=error_code,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        owner_id: str,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            owner_id=owner_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an unexpected error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., editing a cost).
    Pass it through all subsequent operations.
    """
    return uuid4()

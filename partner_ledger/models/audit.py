"""
Audit Models for Partner Ledger

Every ledger operation is logged for audit purposes.
This provides:
1. Complete traceability of every balance change
2. Debugging information when a multi-step operation fails
3. The ability to reconstruct how a balance was reached

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Partners
    PARTNER_ADDED = "partner_added"
    PARTNER_UPDATED = "partner_updated"
    PARTNER_DELETED = "partner_deleted"
    BALANCE_ADJUSTED = "balance_adjusted"

    # Costs
    COST_ADDED = "cost_added"
    COST_UPDATED = "cost_updated"
    COST_DELETED = "cost_deleted"
    COST_PAYMENT_TOGGLED = "cost_payment_toggled"

    # Profits
    PROFIT_ADDED = "profit_added"
    PROFIT_UPDATED = "profit_updated"
    PROFIT_DELETED = "profit_deleted"

    # Failures
    OPERATION_REJECTED = "operation_rejected"
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger operation creates at least one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    owner_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (partner, cost, profit)"
    )
    entity_id: Optional[UUID] = None

    # Correlation - all events of one user action share this
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.cost_added(owner_id, cost_id, ...)
        event = AuditEventBuilder.operation_rejected(owner_id, "delete_cost", ...)
    """

    @staticmethod
    def partner_changed(
        event_type: AuditEventType,
        owner_id: str,
        partner_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        verb = {
            AuditEventType.PARTNER_ADDED: "added",
            AuditEventType.PARTNER_UPDATED: "updated",
            AuditEventType.PARTNER_DELETED: "deleted",
        }.get(event_type, event_type.value)
        return AuditEvent(
            event_type=event_type,
            owner_id=owner_id,
            entity_type="partner",
            entity_id=partner_id,
            correlation_id=correlation_id,
            description=f"Partner {verb}: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def balance_adjusted(
        owner_id: str,
        partner_id: UUID,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_ADJUSTED,
            severity=AuditSeverity.DEBUG,
            owner_id=owner_id,
            entity_type="partner",
            entity_id=partner_id,
            correlation_id=correlation_id,
            description=f"Balance adjusted by {delta}",
            details={
                "delta": str(delta),
                "new_balance": str(new_balance),
            },
        )

    @staticmethod
    def cost_changed(
        event_type: AuditEventType,
        owner_id: str,
        cost_id: UUID,
        value: Decimal,
        payer_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            owner_id=owner_id,
            entity_type="cost",
            entity_id=cost_id,
            correlation_id=correlation_id,
            description=f"Cost {event_type.value.split('_', 1)[1]}: {value}",
            details={
                "value": str(value),
                "payer_id": str(payer_id),
            },
            is_user_action=True,
        )

    @staticmethod
    def cost_payment_toggled(
        owner_id: str,
        cost_id: UUID,
        partner_id: UUID,
        amount: Decimal,
        paid: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COST_PAYMENT_TOGGLED,
            owner_id=owner_id,
            entity_type="cost",
            entity_id=cost_id,
            correlation_id=correlation_id,
            description=(
                "Cost share marked as paid" if paid else "Cost share payment reverted"
            ),
            details={
                "partner_id": str(partner_id),
                "amount": str(amount),
                "paid": paid,
            },
            is_user_action=True,
        )

    @staticmethod
    def profit_changed(
        event_type: AuditEventType,
        owner_id: str,
        profit_id: UUID,
        value: Decimal,
        partner_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            owner_id=owner_id,
            entity_type="profit",
            entity_id=profit_id,
            correlation_id=correlation_id,
            description=f"Profit {event_type.value.split('_', 1)[1]}: {value}",
            details={
                "value": str(value),
                "partner_count": partner_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def operation_rejected(
        owner_id: str,
        operation: str,
        error_code: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Operation rejected: {operation}",
            details={"operation": operation},
            error_code=error_code,
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        owner_id: str,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Storage failure during {operation}",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

"""
Core Data Models for Partner Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Revive loosely-typed documents coming back from storage

DESIGN DECISION: Every record read from storage goes through model_validate.
Storage may hand back ISO timestamps where we expect dates, or documents
written by older versions without payments/distributions. The validators
below normalize those shapes instead of trusting them ad hoc.

Stored documents use camelCase keys (payerId, involvedPartnerIds, ...);
Python code uses the snake_case attribute names.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


def _revive_date(value: Any) -> Any:
    """Accept dates, datetimes and ISO-8601 timestamps for a date field."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return value


def _default_list(value: Any) -> Any:
    """Missing or malformed array columns become empty lists."""
    if value is None or not isinstance(value, (list, tuple)):
        return []
    return value


class LedgerModel(BaseModel):
    """Shared configuration for every stored ledger document."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_document(self) -> dict:
        """Serialize for storage (camelCase keys, JSON-safe values)."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CostCategory(str, Enum):
    """Supported cost categories."""
    SITE = "site"
    PROVIDER = "provedor"
    DATABASE = "banco_de_dados"
    OTHER = "outros"


class ProfitCategory(str, Enum):
    """Supported profit categories."""
    OPERATIONAL = "operacional"
    EXTRAORDINARY = "extraordinaria"
    INVESTMENT = "investimento"
    OTHER = "outros"


# =============================================================================
# PARTNER
# =============================================================================

class Partner(LedgerModel):
    """
    A stakeholder with a participation percentage and a running balance.

    Positive balance: the group owes this partner.
    Negative balance: this partner owes the group.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique partner ID"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="Account that owns this record"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Partner name (unique per owner, case-insensitive)"
    )
    email: str = Field(
        ...,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        max_length=254,
        description="Partner email (unique per owner, case-insensitive)"
    )
    phone: Optional[str] = Field(default=None, max_length=50)
    document: Optional[str] = Field(
        default=None,
        max_length=50,
        description="External document identifier"
    )
    participation: Decimal = Field(
        ...,
        gt=0,
        le=100,
        decimal_places=2,
        description="Share of profits in percent"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Signed running balance"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("phone", "document", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


# =============================================================================
# COST
# =============================================================================

class CostPayment(LedgerModel):
    """One involved partner's share of a cost."""

    partner_id: UUID
    amount: Decimal = Field(..., ge=0)
    paid: bool = False

    @field_validator("paid", mode="before")
    @classmethod
    def default_paid(cls, v: Any) -> Any:
        return False if v is None else v


class Cost(LedgerModel):
    """
    An expense fronted by one partner (the payer) and split equally
    among the involved partners.
    """

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    category: CostCategory
    description: Optional[str] = Field(default=None, max_length=500)
    value: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Total amount fronted by the payer"
    )
    date: date
    payer_id: UUID
    is_recurrent: bool = False
    involved_partner_ids: list[UUID] = Field(default_factory=list)
    payments: list[CostPayment] = Field(default_factory=list)
    document_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("date", mode="before")
    @classmethod
    def revive_date(cls, v: Any) -> Any:
        return _revive_date(v)

    @field_validator("involved_partner_ids", "payments", mode="before")
    @classmethod
    def default_lists(cls, v: Any) -> Any:
        return _default_list(v)

    @property
    def has_paid_payments(self) -> bool:
        return any(payment.paid for payment in self.payments)

    def payment_for(self, partner_id: UUID) -> Optional[CostPayment]:
        for payment in self.payments:
            if payment.partner_id == partner_id:
                return payment
        return None


# =============================================================================
# PROFIT
# =============================================================================

class ProfitDistribution(LedgerModel):
    """One partner's share of a profit."""

    partner_id: UUID
    amount: Decimal = Field(..., ge=0)


class Profit(LedgerModel):
    """Income distributed across all partners proportional to participation."""

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    date: date
    value: Decimal = Field(..., gt=0, decimal_places=2)
    source: str = Field(..., min_length=1, max_length=200)
    category: ProfitCategory
    distributions: list[ProfitDistribution] = Field(default_factory=list)
    document_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("date", mode="before")
    @classmethod
    def revive_date(cls, v: Any) -> Any:
        return _revive_date(v)

    @field_validator("distributions", mode="before")
    @classmethod
    def default_distributions(cls, v: Any) -> Any:
        return _default_list(v)

    @property
    def distributed_total(self) -> Decimal:
        return sum((d.amount for d in self.distributions), Decimal("0"))

"""
Data Models Package

This package contains all Pydantic models used in the Partner Ledger system.
All data flowing through the system must conform to these schemas.
"""

from partner_ledger.models.ledger import (
    Cost,
    CostCategory,
    CostPayment,
    LedgerModel,
    Partner,
    Profit,
    ProfitCategory,
    ProfitDistribution,
)
from partner_ledger.models.reports import (
    CategoryTotal,
    CostShareLine,
    DashboardSummary,
    PartnerBalance,
    PartnerStatement,
)
from partner_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Cost",
    "CostCategory",
    "CostPayment",
    "LedgerModel",
    "Partner",
    "Profit",
    "ProfitCategory",
    "ProfitDistribution",
    # Reports
    "CategoryTotal",
    "CostShareLine",
    "DashboardSummary",
    "PartnerBalance",
    "PartnerStatement",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

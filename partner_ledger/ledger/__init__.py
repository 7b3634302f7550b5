"""
Ledger core: partners, cost settlement and profit distribution.
"""

from partner_ledger.ledger.costs import CostSettlementEngine, build_payments
from partner_ledger.ledger.money import (
    CENT,
    HUNDRED,
    ZERO,
    allocate_proportionally,
    split_evenly,
    to_decimal,
    to_money,
)
from partner_ledger.ledger.partners import PartnerLedger
from partner_ledger.ledger.profits import ProfitDistributionEngine, build_distributions

__all__ = [
    "PartnerLedger",
    "CostSettlementEngine",
    "ProfitDistributionEngine",
    "build_payments",
    "build_distributions",
    "CENT",
    "HUNDRED",
    "ZERO",
    "to_decimal",
    "to_money",
    "split_evenly",
    "allocate_proportionally",
]

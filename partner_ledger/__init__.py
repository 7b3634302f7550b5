"""
Partner Ledger - Source Package

Balance-settlement core for a small group of business partners who share
costs and profits.

DESIGN PRINCIPLES:
1. Validate everything before touching a balance
2. Every effect that is applied can be reversed exactly
3. One logical operation = one storage transaction
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Partner Ledger Team"

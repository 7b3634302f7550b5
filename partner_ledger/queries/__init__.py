"""Read-only ledger reports."""

from partner_ledger.queries.reports import LedgerReports, date_range_str, filter_by_date

__all__ = ["LedgerReports", "date_range_str", "filter_by_date"]

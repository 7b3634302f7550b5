"""Input validation package."""

from partner_ledger.validation.validator import (
    as_uuid,
    ensure_participation_within_cap,
    ensure_unique_identity,
    format_validation_errors,
    require_selection,
    validate_input,
)

__all__ = [
    "as_uuid",
    "ensure_participation_within_cap",
    "ensure_unique_identity",
    "format_validation_errors",
    "require_selection",
    "validate_input",
]

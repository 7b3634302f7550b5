"""
Ledger Error Taxonomy

Three families of errors cross the ledger boundary:

- LedgerValidationError: user-correctable input problems. Always raised
  before any balance or record is written.
- NotFoundError: the partner/cost/profit/payment being operated on does
  not exist (anymore).
- StorageError: the persistence backend failed. The surrounding
  transaction restores the pre-operation state.

Every error carries a short user-facing message that the session forwards
to the notification gateway unchanged.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for every error raised by the ledger core."""

    default_message = "The operation could not be completed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# VALIDATION ERRORS - raised before any mutation
# =============================================================================

class LedgerValidationError(LedgerError):
    """Input rejected before anything was written."""
    default_message = "The submitted data is not valid."


class EmptySelectionError(LedgerValidationError):
    default_message = "Select at least one partner involved in the cost."


class NoPartnersError(LedgerValidationError):
    default_message = "Add partners before registering costs or profits."


class DuplicateNameError(LedgerValidationError):
    default_message = "A partner with this name already exists."


class DuplicateEmailError(LedgerValidationError):
    default_message = "A partner with this email already exists."


class NonZeroBalanceError(LedgerValidationError):
    default_message = "A partner with a non-zero balance cannot be deleted."


class PaidPaymentsExistError(LedgerValidationError):
    default_message = (
        "A cost with payments already made cannot be deleted. "
        "Undo the payments first."
    )


class ParticipationLimitError(LedgerValidationError):
    default_message = "Total participation of all partners cannot exceed 100%."


class InvalidInputError(LedgerValidationError):
    """Field-level validation failure (wraps pydantic errors)."""
    default_message = "Some fields are missing or invalid."


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(LedgerError):
    """Entity not found for the current owner."""

    def __init__(self, entity_type: str, entity_id: object, message: Optional[str] = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message or f"{entity_type.replace('_', ' ').capitalize()} not found: {entity_id}")


# =============================================================================
# PERSISTENCE
# =============================================================================

class StorageError(LedgerError):
    """Base exception for storage operations."""
    default_message = "Could not read or write ledger data."


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass

"""
Input Validation for Ledger Operations

DESIGN DECISION: Validation happens before any write, in two stages:

STAGE 1 - SCHEMA VALIDATION:
- Types, required fields, ranges (positive values, 0 < participation <= 100)
- Done by the pydantic models; failures become InvalidInputError

STAGE 2 - LEDGER RULES:
- Non-empty partner selection
- Unique partner name / email per owner
- Total participation cap
- These need the current partner set, so the engines call them after
  reading from storage but before mutating anything

IMPORTANT: Validation NEVER silently fixes issues.
It raises with a message the user can act on.
"""

from decimal import Decimal
from typing import Any, Iterable, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError

from partner_ledger.errors import (
    DuplicateEmailError,
    DuplicateNameError,
    EmptySelectionError,
    InvalidInputError,
    ParticipationLimitError,
)
from partner_ledger.models.ledger import Partner

M = TypeVar("M", bound=BaseModel)


def format_validation_errors(error: ValidationError) -> str:
    """
    Generate a user-friendly summary of pydantic validation errors.

    This is what we show to users instead of the raw error dump.
    """
    lines = []
    for issue in error.errors():
        field = ".".join(str(part) for part in issue.get("loc", ())) or "input"
        lines.append(f"{field}: {issue.get('msg', 'invalid value')}")
    return "Some fields are missing or invalid: " + "; ".join(lines)


def validate_input(model_cls: type[M], **fields: Any) -> M:
    """Stage 1: build a model from user input or raise InvalidInputError."""
    try:
        return model_cls(**fields)
    except ValidationError as e:
        raise InvalidInputError(format_validation_errors(e)) from e


def as_uuid(value: Any, field: str = "id") -> UUID:
    """Coerce an id coming from the UI layer."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{field}: not a valid identifier ({value!r})") from e


def require_selection(partner_ids: Optional[Iterable[Any]]) -> list[UUID]:
    """
    Stage 2: at least one partner must be selected.

    Duplicates are dropped, selection order is kept.
    """
    selected: list[UUID] = []
    for raw in partner_ids or []:
        partner_id = as_uuid(raw, "involved_partner_ids")
        if partner_id not in selected:
            selected.append(partner_id)
    if not selected:
        raise EmptySelectionError()
    return selected


def _normalize(text: str) -> str:
    return text.strip().casefold()


def ensure_unique_identity(
    partners: Iterable[Partner],
    name: str,
    email: str,
    exclude_id: Optional[UUID] = None,
) -> None:
    """Stage 2: name and email are unique per owner, case-insensitively."""
    others = [p for p in partners if p.id != exclude_id]
    if any(_normalize(p.name) == _normalize(name) for p in others):
        raise DuplicateNameError()
    if any(_normalize(p.email) == _normalize(email) for p in others):
        raise DuplicateEmailError()


def ensure_participation_within_cap(
    partners: Iterable[Partner],
    participation: Decimal,
    cap: Decimal = Decimal("100"),
    exclude_id: Optional[UUID] = None,
) -> None:
    """Stage 2: the partners' participation must not add up to more than cap."""
    current = sum(
        (p.participation for p in partners if p.id != exclude_id),
        Decimal("0"),
    )
    if current + participation > cap:
        available = max(cap - current, Decimal("0"))
        raise ParticipationLimitError(
            f"Total participation cannot exceed {cap}%. "
            f"Currently allocated: {current}%, available: {available}%."
        )

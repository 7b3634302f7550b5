"""
Partner Ledger

Owns the partners of one owner: identity, participation and the running
balance. A balance is only ever changed through apply_balance_delta, which
the cost and profit engines call.
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog

from partner_ledger.audit import AuditLogger
from partner_ledger.errors import NonZeroBalanceError, NotFoundError
from partner_ledger.ledger.money import ZERO, to_decimal
from partner_ledger.models.ledger import Partner
from partner_ledger.services.storage import LedgerStorageInterface
from partner_ledger.validation import (
    as_uuid,
    ensure_participation_within_cap,
    ensure_unique_identity,
    validate_input,
)

logger = structlog.get_logger(__name__)


class PartnerLedger:
    """Partner CRUD and balance adjustment for a single owner."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        owner_id: str,
        max_total_participation: Decimal = Decimal("100"),
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._owner_id = owner_id
        self._cap = max_total_participation
        self._audit_logger = audit_logger

    @property
    def owner_id(self) -> str:
        return self._owner_id

    async def list_partners(self) -> list[Partner]:
        return await self._storage.list_partners(self._owner_id)

    async def get_partner(self, partner_id: Any) -> Partner:
        partner_id = as_uuid(partner_id, "partner_id")
        partner = await self._storage.get_partner(self._owner_id, partner_id)
        if partner is None:
            raise NotFoundError("partner", partner_id)
        return partner

    async def get_total_participation(self) -> Decimal:
        """Sum of participation across all partners."""
        partners = await self.list_partners()
        return sum((p.participation for p in partners), ZERO)

    async def apply_balance_delta(
        self,
        partner_id: Any,
        delta: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Partner:
        """
        balance += delta, persisted immediately.

        Raises:
            NotFoundError: if the partner does not exist
        """
        partner = await self.get_partner(partner_id)
        delta = to_decimal(delta)
        updated = partner.model_copy(update={"balance": partner.balance + delta})
        await self._storage.update_partner(self._owner_id, updated)

        logger.debug(
            "balance_adjusted",
            owner_id=self._owner_id,
            partner_id=str(updated.id),
            delta=str(delta),
            balance=str(updated.balance),
        )
        if self._audit_logger:
            await self._audit_logger.log_balance_adjusted(
                owner_id=self._owner_id,
                partner_id=updated.id,
                delta=delta,
                new_balance=updated.balance,
                correlation_id=correlation_id,
            )
        return updated

    async def revert_balance_delta(
        self,
        partner_id: Any,
        delta: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Partner]:
        """
        Apply a delta that undoes a previously stored effect.

        A partner that no longer exists has nothing left to undo; the step
        is skipped with a warning instead of failing the whole operation.
        """
        try:
            return await self.apply_balance_delta(partner_id, delta, correlation_id)
        except NotFoundError:
            logger.warning(
                "reversal_skipped_missing_partner",
                owner_id=self._owner_id,
                partner_id=str(partner_id),
                delta=str(delta),
            )
            return None

    async def add_partner(
        self,
        name: str,
        email: str,
        phone: Optional[str] = None,
        document: Optional[str] = None,
        participation: Any = None,
    ) -> Partner:
        """
        Create a partner with a zero balance.

        Raises:
            InvalidInputError, DuplicateNameError, DuplicateEmailError,
            ParticipationLimitError
        """
        partner = validate_input(
            Partner,
            owner_id=self._owner_id,
            name=name,
            email=email,
            phone=phone,
            document=document,
            participation=participation,
            balance=ZERO,
        )
        existing = await self.list_partners()
        ensure_unique_identity(existing, partner.name, partner.email)
        ensure_participation_within_cap(existing, partner.participation, self._cap)

        await self._storage.insert_partner(self._owner_id, partner)
        logger.info("partner_added", owner_id=self._owner_id, partner_id=str(partner.id))
        return partner

    async def edit_partner(
        self,
        partner_id: Any,
        name: str,
        email: str,
        phone: Optional[str] = None,
        document: Optional[str] = None,
        participation: Any = None,
    ) -> Partner:
        """Update identity and participation. The balance is left untouched."""
        current = await self.get_partner(partner_id)
        fields = current.model_dump()
        fields.update(
            name=name,
            email=email,
            phone=phone,
            document=document,
            participation=participation,
        )
        updated = validate_input(Partner, **fields)

        existing = await self.list_partners()
        ensure_unique_identity(existing, updated.name, updated.email, exclude_id=current.id)
        ensure_participation_within_cap(
            existing, updated.participation, self._cap, exclude_id=current.id
        )

        await self._storage.update_partner(self._owner_id, updated)
        logger.info("partner_updated", owner_id=self._owner_id, partner_id=str(updated.id))
        return updated

    async def delete_partner(self, partner_id: Any) -> Partner:
        """
        Remove a partner whose balance is exactly zero.

        Raises:
            NonZeroBalanceError: if the balance is not zero
        """
        partner = await self.get_partner(partner_id)
        if partner.balance != ZERO:
            raise NonZeroBalanceError(
                f"{partner.name} cannot be deleted while their balance is {partner.balance}."
            )
        await self._storage.delete_partner(self._owner_id, partner.id)
        logger.info("partner_deleted", owner_id=self._owner_id, partner_id=str(partner.id))
        return partner

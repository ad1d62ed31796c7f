"""Fee Service — platform fee breakdown, invoicing and transfer bookkeeping.

Fee amounts on a transaction are materialized at most once. The rate used
is always the one stored on the transaction at creation, so a later change
to PLATFORM_FEE_PERCENT never re-prices an existing escrow.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from business_escrow.config import Settings, get_settings
from business_escrow.domain.enums import EventType
from business_escrow.domain.exceptions import (
    AdminRequiredError,
    EscrowNotFoundError,
    InvalidInputError,
    InvalidTransitionError,
)
from business_escrow.domain.fees import FeeBreakdown, calculate_fees
from business_escrow.infrastructure.database.directories import SqlRoleDirectory
from business_escrow.infrastructure.database.repositories import (
    EscrowRepository,
    EventRepository,
)
from business_escrow.logging_config import get_logger
from business_escrow.services.escrow_service import require_party

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from business_escrow.domain.ports import RoleDirectory
    from business_escrow.infrastructure.database.orm_models import EscrowTransaction

logger = get_logger(__name__)


@dataclass(frozen=True)
class FeeStatement:
    """Fee state of one transaction, as shown to its parties."""

    escrow_id: uuid.UUID
    escrow_status: str
    breakdown: FeeBreakdown
    calculated: bool
    fee_invoice_url: str | None
    fee_transferred_at: datetime | None
    platform_account_id: str | None

    @property
    def invoice_generated(self) -> bool:
        return self.fee_invoice_url is not None

    @property
    def transferred(self) -> bool:
        return self.fee_transferred_at is not None


@dataclass(frozen=True)
class FeeInvoice:
    escrow_id: uuid.UUID
    invoice_url: str
    platform_fee_amount: int
    generated_at: datetime


class FeeService:
    """Fee calculation plus invoice and transfer bookkeeping on transactions."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        roles: RoleDirectory | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._escrow_repo = EscrowRepository(session)
        self._event_repo = EventRepository(session)
        self._roles = roles or SqlRoleDirectory(session, admin_role=self._settings.admin_role)

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def calculate(self, transaction_amount: int | None) -> FeeBreakdown:
        """Price an amount at the platform's current rate."""
        if transaction_amount is None:
            raise InvalidInputError(
                "transactionAmount is required", "MISSING_TRANSACTION_AMOUNT"
            )
        try:
            return calculate_fees(transaction_amount, self._settings.platform_fee_percent)
        except ValueError as err:
            raise InvalidInputError(
                "transactionAmount must be a positive integer (cents)",
                "INVALID_TRANSACTION_AMOUNT",
            ) from err

    async def get_breakdown(self, escrow_id: uuid.UUID, user_id: str) -> FeeStatement:
        """Return the stored breakdown, or a preview if not yet materialized."""
        escrow = await self._get_escrow_or_raise(escrow_id)
        require_party(escrow.buyer_id, escrow.seller_id, user_id)

        calculated = escrow.platform_fee_amount is not None
        if calculated:
            breakdown = FeeBreakdown(
                transaction_amount=escrow.escrow_amount,
                platform_fee_percent=escrow.platform_fee_percent,
                platform_fee_amount=escrow.platform_fee_amount,
                buyer_total_amount=escrow.buyer_total_amount,
                seller_net_amount=escrow.seller_net_amount,
            )
        else:
            breakdown = calculate_fees(escrow.escrow_amount, escrow.platform_fee_percent)

        return FeeStatement(
            escrow_id=escrow.id,
            escrow_status=escrow.status,
            breakdown=breakdown,
            calculated=calculated,
            fee_invoice_url=escrow.fee_invoice_url,
            fee_transferred_at=escrow.fee_transferred_at,
            platform_account_id=escrow.platform_account_id,
        )

    # ------------------------------------------------------------------
    # Invoice
    # ------------------------------------------------------------------

    async def generate_invoice(self, escrow_id: uuid.UUID, user_id: str) -> FeeInvoice:
        """Materialize the fee (if needed) and issue a fresh invoice URL.

        Safe to retry: an existing breakdown is never recomputed, only the
        invoice URL is regenerated.
        """
        escrow = await self._get_escrow_or_raise(escrow_id, for_update=True)
        require_party(escrow.buyer_id, escrow.seller_id, user_id)

        if escrow.platform_fee_amount is None:
            fees = calculate_fees(escrow.escrow_amount, escrow.platform_fee_percent)
            escrow.platform_fee_amount = fees.platform_fee_amount
            escrow.buyer_total_amount = fees.buyer_total_amount
            escrow.seller_net_amount = fees.seller_net_amount
            logger.info(
                "fee.materialized",
                escrow_id=str(escrow.id),
                fee=fees.platform_fee_amount,
            )

        now = datetime.now(UTC)
        epoch_ms = int(now.timestamp() * 1000)
        base = self._settings.invoice_base_url.rstrip("/")
        escrow.fee_invoice_url = f"{base}/fee-invoice-{escrow.id}-{epoch_ms}.pdf"
        await self._escrow_repo.save(escrow)

        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=EventType.FEE_INVOICE_GENERATED,
            old_status=escrow.status,
            new_status=escrow.status,
            actor=user_id,
            metadata={
                "invoice_url": escrow.fee_invoice_url,
                "platform_fee_amount": escrow.platform_fee_amount,
            },
        )

        logger.info("fee.invoice_generated", escrow_id=str(escrow.id))
        return FeeInvoice(
            escrow_id=escrow.id,
            invoice_url=escrow.fee_invoice_url,
            platform_fee_amount=escrow.platform_fee_amount,
            generated_at=now,
        )

    # ------------------------------------------------------------------
    # Transfer (admin)
    # ------------------------------------------------------------------

    async def mark_transferred(self, escrow_id: uuid.UUID, user_id: str) -> EscrowTransaction:
        """Record that the platform fee has been moved to the platform account."""
        if not await self._roles.is_admin(user_id):
            logger.warning("fee.transfer_denied", user_id=user_id, escrow_id=str(escrow_id))
            raise AdminRequiredError()

        escrow = await self._get_escrow_or_raise(escrow_id, for_update=True)
        if escrow.platform_fee_amount is None:
            raise InvalidTransitionError(
                "Platform fee has not been calculated", "FEE_NOT_CALCULATED"
            )
        if escrow.fee_transferred_at is not None:
            raise InvalidTransitionError(
                "Platform fee has already been transferred", "FEE_ALREADY_TRANSFERRED"
            )

        escrow.fee_transferred_at = datetime.now(UTC)
        escrow.platform_account_id = self._settings.platform_account_id
        await self._escrow_repo.save(escrow)

        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=EventType.FEE_TRANSFERRED,
            old_status=escrow.status,
            new_status=escrow.status,
            actor=user_id,
            metadata={
                "platform_fee_amount": escrow.platform_fee_amount,
                "platform_account_id": escrow.platform_account_id,
            },
        )

        logger.info(
            "fee.transferred",
            escrow_id=str(escrow.id),
            fee=escrow.platform_fee_amount,
            account=escrow.platform_account_id,
        )
        return escrow

    async def _get_escrow_or_raise(
        self, escrow_id: uuid.UUID, for_update: bool = False
    ) -> EscrowTransaction:
        escrow = await self._escrow_repo.get_by_id(escrow_id, for_update=for_update)
        if escrow is None:
            raise EscrowNotFoundError(escrow_id)
        return escrow

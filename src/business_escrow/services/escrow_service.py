"""Escrow Service — core business logic for the escrow transaction lifecycle.

This is the application layer that coordinates between:
    - Domain state machine (forward-only transition guard)
    - Fee calculator (eager breakdown at creation)
    - Collaborator directories (listings, LOIs, users)
    - Repositories (data access) and the audit event log

The webhook, fee and migration services reuse the helpers at the bottom of
this module so that milestone stamping, note appending and party checks
behave the same on every path.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from statemachine.exceptions import TransitionNotAllowed

from business_escrow.config import Settings, get_settings
from business_escrow.domain.enums import (
    ESCROW_STATUS_ORDER,
    PARTY_SETTABLE_STATUSES,
    EscrowStatus,
    EventType,
    PartyRole,
)
from business_escrow.domain.exceptions import (
    ConflictError,
    EscrowNotFoundError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateTransitionError,
    ListingNotFoundError,
    LoiNotFoundError,
)
from business_escrow.domain.fees import calculate_fees
from business_escrow.domain.state_machine import (
    TERMINAL_SIDE_STATUSES,
    normalize_status,
    status_aliases,
    validate_transition,
)
from business_escrow.infrastructure.database.directories import (
    SqlListingDirectory,
    SqlLoiDirectory,
    SqlUserDirectory,
)
from business_escrow.infrastructure.database.orm_models import EscrowTransaction
from business_escrow.infrastructure.database.repositories import (
    EscrowRepository,
    EventRepository,
)
from business_escrow.logging_config import get_logger

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from business_escrow.domain.ports import (
        ListingDirectory,
        ListingSummary,
        LoiDirectory,
        LoiSummary,
        UserDirectory,
        UserSummary,
    )

logger = get_logger(__name__)

ACCEPTED_LOI_STATUS = "accepted"

# Status value -> milestone column, for both the party and webhook vocabularies.
MILESTONE_FIELDS: dict[str, str] = {
    EscrowStatus.INITIATED: "initiated_at",
    EscrowStatus.FUNDED: "funded_at",
    EscrowStatus.IN_MIGRATION: "migration_started_at",
    "migration_in_progress": "migration_started_at",
    EscrowStatus.COMPLETE: "completed_at",
    "completed": "completed_at",
    EscrowStatus.RELEASED: "released_at",
}


@dataclass
class EscrowDetails:
    """A transaction plus the collaborator records shown alongside it."""

    escrow: EscrowTransaction
    listing: ListingSummary | None
    loi: LoiSummary | None
    buyer: UserSummary | None
    seller: UserSummary | None


class EscrowService:
    """Manages escrow transaction creation, reads and party status changes."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        listings: ListingDirectory | None = None,
        lois: LoiDirectory | None = None,
        users: UserDirectory | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._escrow_repo = EscrowRepository(session)
        self._event_repo = EventRepository(session)
        self._listings = listings or SqlListingDirectory(session)
        self._lois = lois or SqlLoiDirectory(session)
        self._users = users or SqlUserDirectory(session)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_escrow(
        self,
        buyer_id: str,
        listing_id: int,
        seller_id: str,
        escrow_amount: int,
        loi_id: int | None = None,
        escrow_provider: str | None = None,
        escrow_reference_id: str | None = None,
        notes: str | None = None,
    ) -> EscrowTransaction:
        """Create a transaction in `initiated` with a fresh webhook secret.

        The buyer is always the authenticated caller; callers must never
        pass a buyer id taken from a request body.
        """
        if not seller_id or listing_id is None or escrow_amount is None:
            raise InvalidInputError(
                "listingId, sellerId and escrowAmount are required", "MISSING_REQUIRED_FIELDS"
            )
        if isinstance(escrow_amount, bool) or not isinstance(escrow_amount, int) or escrow_amount <= 0:
            raise InvalidInputError(
                "Escrow amount must be a positive integer", "INVALID_ESCROW_AMOUNT"
            )

        listing = await self._listings.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        if listing.seller_id != seller_id:
            raise InvalidInputError("Seller does not own this listing", "SELLER_MISMATCH")

        if loi_id is not None:
            loi = await self._lois.get_loi(loi_id)
            if loi is None:
                raise LoiNotFoundError(loi_id)
            if loi.status != ACCEPTED_LOI_STATUS:
                raise InvalidInputError(
                    "LOI must be accepted before creating an escrow", "LOI_NOT_ACCEPTED"
                )
            if (loi.buyer_id, loi.seller_id, loi.listing_id) != (buyer_id, seller_id, listing_id):
                raise InvalidInputError(
                    "LOI does not match the buyer, seller and listing", "LOI_MISMATCH"
                )

        reference_id = clean_text(escrow_reference_id)
        if reference_id and await self._escrow_repo.get_by_reference(reference_id):
            raise ConflictError(
                "An escrow with this provider reference already exists",
                "DUPLICATE_REFERENCE_ID",
            )

        fees = calculate_fees(escrow_amount, self._settings.platform_fee_percent)
        now = datetime.now(UTC)
        escrow = EscrowTransaction(
            listing_id=listing_id,
            loi_id=loi_id,
            buyer_id=buyer_id,
            seller_id=seller_id,
            status=EscrowStatus.INITIATED.value,
            escrow_amount=escrow_amount,
            platform_fee_percent=fees.platform_fee_percent,
            platform_fee_amount=fees.platform_fee_amount,
            buyer_total_amount=fees.buyer_total_amount,
            seller_net_amount=fees.seller_net_amount,
            escrow_provider=clean_text(escrow_provider),
            escrow_reference_id=reference_id,
            webhook_secret=secrets.token_hex(32),
            initiated_at=now,
            notes=clean_text(notes),
        )
        escrow = await self._escrow_repo.create(escrow)

        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=EventType.ESCROW_CREATED,
            old_status=None,
            new_status=escrow.status,
            actor=buyer_id,
            metadata={
                "listing_id": listing_id,
                "loi_id": loi_id,
                "escrow_amount": escrow_amount,
                "platform_fee_amount": fees.platform_fee_amount,
            },
        )

        logger.info(
            "escrow.created",
            escrow_id=str(escrow.id),
            listing_id=listing_id,
            amount=escrow_amount,
            fee=fees.platform_fee_amount,
        )
        return escrow

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_escrow(self, escrow_id: uuid.UUID, user_id: str) -> EscrowTransaction:
        """Get a transaction the caller is a party to, or raise."""
        escrow = await self._get_escrow_or_raise(escrow_id)
        require_party(escrow.buyer_id, escrow.seller_id, user_id)
        return escrow

    async def get_escrow_details(self, escrow_id: uuid.UUID, user_id: str) -> EscrowDetails:
        """Get a transaction enriched with listing, LOI, buyer and seller."""
        escrow = await self.get_escrow(escrow_id, user_id)
        listing = await self._listings.get_listing(escrow.listing_id)
        loi = await self._lois.get_loi(escrow.loi_id) if escrow.loi_id is not None else None
        users = await self._users.get_users([escrow.buyer_id, escrow.seller_id])
        return EscrowDetails(
            escrow=escrow,
            listing=listing,
            loi=loi,
            buyer=users.get(escrow.buyer_id),
            seller=users.get(escrow.seller_id),
        )

    async def list_for_user(
        self,
        user_id: str,
        status: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[EscrowTransaction]:
        """List transactions where the caller is buyer or seller, newest first."""
        return await self._escrow_repo.list_for_party(
            user_id,
            statuses=status_aliases(status) if status else None,
            limit=clamp_limit(limit, self._settings),
            offset=max(offset, 0),
        )

    async def list_for_listing(self, listing_id: int, user_id: str) -> list[EscrowTransaction]:
        """List a listing's transactions visible to the caller.

        The listing's seller sees all of them; anyone else sees only the
        ones where they are the buyer.
        """
        listing = await self._listings.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)

        escrows = await self._escrow_repo.list_for_listing(listing_id)
        if listing.seller_id == user_id:
            return escrows

        visible = [e for e in escrows if e.buyer_id == user_id]
        if escrows and not visible:
            raise ForbiddenError()
        return visible

    # ------------------------------------------------------------------
    # Status changes (party path)
    # ------------------------------------------------------------------

    async def update_status(
        self,
        escrow_id: uuid.UUID,
        new_status: str | None,
        user_id: str,
        notes: str | None = None,
    ) -> EscrowTransaction:
        """Move a transaction forward on behalf of its buyer or seller."""
        if not new_status:
            raise InvalidInputError("Status is required", "MISSING_STATUS")
        if new_status not in PARTY_SETTABLE_STATUSES:
            valid = ", ".join(ESCROW_STATUS_ORDER)
            raise InvalidInputError(
                f"Invalid status '{new_status}'. Must be one of: {valid}", "INVALID_STATUS"
            )

        escrow = await self._get_escrow_or_raise(escrow_id, for_update=True)
        require_party(escrow.buyer_id, escrow.seller_id, user_id)

        old_status = escrow.status
        escrow.status = self._fire_transition(escrow, new_status)
        now = datetime.now(UTC)
        stamp_milestone(escrow, escrow.status, now)
        if notes and notes.strip():
            escrow.notes = append_note(escrow.notes, notes.strip())
        await self._escrow_repo.save(escrow)

        await self._event_repo.record(
            escrow_id=escrow.id,
            event_type=EventType.STATUS_UPDATED,
            old_status=old_status,
            new_status=escrow.status,
            actor=user_id,
        )

        logger.info(
            "escrow.status_updated",
            escrow_id=str(escrow.id),
            old_status=old_status,
            new_status=escrow.status,
        )
        return escrow

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_escrow_or_raise(
        self, escrow_id: uuid.UUID, for_update: bool = False
    ) -> EscrowTransaction:
        escrow = await self._escrow_repo.get_by_id(escrow_id, for_update=for_update)
        if escrow is None:
            raise EscrowNotFoundError(escrow_id)
        return escrow

    def _fire_transition(self, escrow: EscrowTransaction, target_status: str) -> str:
        """Validate a party-requested move and return the status to store.

        Raises InvalidStateTransitionError for backward moves and for any
        move out of cancelled or disputed.
        """
        current = normalize_status(escrow.status)
        if current in TERMINAL_SIDE_STATUSES:
            raise InvalidStateTransitionError(escrow.status, target_status)
        if current not in ESCROW_STATUS_ORDER:
            # Provider-specific value with no place in the ordering.
            logger.warning(
                "escrow.unordered_status_overridden",
                escrow_id=str(escrow.id),
                current=escrow.status,
                attempted=target_status,
            )
            return target_status
        try:
            return validate_transition(current, target_status)
        except TransitionNotAllowed as err:
            raise InvalidStateTransitionError(escrow.status, target_status) from err


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def party_roles(buyer_id: str, seller_id: str, user_id: str) -> set[PartyRole]:
    """Return the roles a user holds on a transaction (both for a dual-role user)."""
    roles: set[PartyRole] = set()
    if user_id == buyer_id:
        roles.add(PartyRole.BUYER)
    if user_id == seller_id:
        roles.add(PartyRole.SELLER)
    return roles


def require_party(buyer_id: str, seller_id: str, user_id: str) -> set[PartyRole]:
    """Return the caller's roles, raising ForbiddenError if they hold none."""
    roles = party_roles(buyer_id, seller_id, user_id)
    if not roles:
        raise ForbiddenError()
    return roles


def stamp_milestone(escrow: EscrowTransaction, status: str, when: datetime) -> None:
    """Set the milestone timestamp for `status` unless it is already set."""
    field = MILESTONE_FIELDS.get(status)
    if field is not None and getattr(escrow, field) is None:
        setattr(escrow, field, when)


def append_note(existing: str | None, line: str) -> str:
    """Append one line to the transaction's notes log."""
    if not existing:
        return line
    return f"{existing}\n{line}"


def clean_text(value: str | None) -> str | None:
    """Strip whitespace; blank strings become None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def clamp_limit(limit: int | None, settings: Settings) -> int:
    """Apply the default page size and cap it at the configured maximum."""
    if limit is None:
        return settings.default_page_size
    return max(1, min(limit, settings.max_page_size))

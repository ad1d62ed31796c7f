"""Escrow transaction REST API routes.

Routes:
    POST   /api/escrow                        — Create an escrow (caller is the buyer)
    GET    /api/escrow                        — List the caller's escrows
    GET    /api/escrow/listing/{listing_id}   — Escrows on a listing visible to the caller
    GET    /api/escrow/{escrow_id}            — Escrow details with listing, LOI and parties
    PATCH  /api/escrow/{escrow_id}/status     — Move an escrow forward (buyer/seller)
    POST   /api/escrow/webhook                — Provider callback (per-escrow secret)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from business_escrow.api.deps import get_app_settings, get_current_user, get_db_session
from business_escrow.config import Settings
from business_escrow.domain.exceptions import DuplicateOperationError, InvalidInputError
from business_escrow.domain.ports import CurrentUser
from business_escrow.infrastructure.redis_client import claim_idempotency, release_idempotency
from business_escrow.logging_config import get_logger
from business_escrow.schemas.common import PaginationInfo
from business_escrow.schemas.escrow import (
    CreateEscrowRequest,
    EscrowCreatedResponse,
    EscrowDetailResponse,
    EscrowListResponse,
    EscrowResponse,
    UpdateStatusRequest,
    WebhookRequest,
    WebhookResponse,
)
from business_escrow.services.escrow_service import EscrowService, clamp_limit
from business_escrow.services.webhook_service import WebhookService

router = APIRouter(prefix="/api/escrow", tags=["Escrow"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=EscrowCreatedResponse,
    status_code=201,
    summary="Create an escrow transaction",
)
async def create_escrow(
    request: CreateEscrowRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> EscrowCreatedResponse:
    """Create an escrow in `initiated`. The authenticated caller is the buyer."""
    if request.spoofed_buyer_keys():
        logger.warning("escrow.buyer_id_in_body", user_id=user.id)
        raise InvalidInputError(
            "The buyer is the authenticated user and cannot be set in the request",
            "USER_ID_NOT_ALLOWED",
        )

    idempotency_key = f"{user.id}:{request.idempotency_key}" if request.idempotency_key else None
    if idempotency_key and not await claim_idempotency(idempotency_key):
        raise DuplicateOperationError(request.idempotency_key)

    svc = EscrowService(session)
    try:
        escrow = await svc.create_escrow(
            buyer_id=user.id,
            listing_id=request.listing_id,
            seller_id=request.seller_id,
            escrow_amount=request.escrow_amount,
            loi_id=request.loi_id,
            escrow_provider=request.escrow_provider,
            escrow_reference_id=request.escrow_reference_id,
            notes=request.notes,
        )
    except Exception:
        if idempotency_key:
            await release_idempotency(idempotency_key)
        raise
    return EscrowCreatedResponse.model_validate(escrow)


# ---------------------------------------------------------------------------
# Provider webhook
# ---------------------------------------------------------------------------


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    summary="Escrow provider status callback",
)
async def escrow_webhook(
    request: WebhookRequest,
    session: AsyncSession = Depends(get_db_session),
) -> WebhookResponse:
    """Apply a provider status change authenticated by the escrow's webhook secret."""
    svc = WebhookService(session)
    result = await svc.handle(
        escrow_reference_id=request.escrow_reference_id,
        status=request.status,
        webhook_secret=request.webhook_secret,
        event_type=request.event_type,
        payload=request.payload,
    )
    return WebhookResponse.model_validate(result)


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=EscrowListResponse,
    summary="List the caller's escrows",
)
async def list_escrows(
    status: str | None = Query(default=None),
    limit: int | None = Query(default=None),
    offset: int = Query(default=0),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> EscrowListResponse:
    """Escrows where the caller is buyer or seller, newest first."""
    limit = clamp_limit(limit, settings)
    offset = max(offset, 0)
    svc = EscrowService(session, settings=settings)
    escrows = await svc.list_for_user(user.id, status=status, limit=limit, offset=offset)
    return EscrowListResponse(
        escrows=[EscrowResponse.model_validate(e) for e in escrows],
        pagination=PaginationInfo(limit=limit, offset=offset, count=len(escrows)),
    )


@router.get(
    "/listing/{listing_id}",
    response_model=list[EscrowResponse],
    summary="List escrows on a listing",
)
async def list_listing_escrows(
    listing_id: int,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> list[EscrowResponse]:
    """The listing's seller sees every escrow; a buyer sees only their own."""
    svc = EscrowService(session)
    escrows = await svc.list_for_listing(listing_id, user.id)
    return [EscrowResponse.model_validate(e) for e in escrows]


@router.get(
    "/{escrow_id}",
    response_model=EscrowDetailResponse,
    summary="Get escrow details",
)
async def get_escrow(
    escrow_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> EscrowDetailResponse:
    """Fetch an escrow with its listing, LOI, buyer and seller."""
    svc = EscrowService(session)
    details = await svc.get_escrow_details(escrow_id, user.id)
    return EscrowDetailResponse.model_validate(details.escrow).model_copy(
        update={
            "listing": details.listing.to_dict() if details.listing else None,
            "loi": details.loi.to_dict() if details.loi else None,
            "buyer": details.buyer.to_dict() if details.buyer else None,
            "seller": details.seller.to_dict() if details.seller else None,
        }
    )


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


@router.patch(
    "/{escrow_id}/status",
    response_model=EscrowResponse,
    summary="Advance escrow status",
)
async def update_escrow_status(
    escrow_id: uuid.UUID,
    request: UpdateStatusRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> EscrowResponse:
    """Move an escrow to an equal or later status. Backward moves are rejected."""
    svc = EscrowService(session)
    escrow = await svc.update_status(
        escrow_id=escrow_id,
        new_status=request.status,
        user_id=user.id,
        notes=request.notes,
    )
    return EscrowResponse.model_validate(escrow)

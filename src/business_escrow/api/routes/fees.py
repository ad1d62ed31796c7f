"""Platform fee REST API routes.

Routes:
    POST   /api/fees/calculate              — Price an amount (no auth)
    GET    /api/fees/breakdown/{escrow_id}  — Fee state of an escrow (buyer/seller)
    POST   /api/fees/invoice/generate       — Materialize fee and issue invoice (buyer/seller)
    POST   /api/fees/transfer               — Record fee transfer (admin)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from business_escrow.api.deps import get_app_settings, get_current_user, get_db_session
from business_escrow.config import Settings
from business_escrow.domain.ports import CurrentUser
from business_escrow.schemas.fees import (
    EscrowFeeResponse,
    EscrowReferenceRequest,
    FeeBreakdownResponse,
    FeeCalculateRequest,
    FeeInvoiceResponse,
    FeeStatusFlags,
    FeeTransferResponse,
)
from business_escrow.services.fee_service import FeeService

router = APIRouter(prefix="/api/fees", tags=["Fees"])


@router.post(
    "/calculate",
    response_model=FeeBreakdownResponse,
    summary="Calculate platform fee for an amount",
)
async def calculate_fee(
    request: FeeCalculateRequest,
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> FeeBreakdownResponse:
    svc = FeeService(session, settings=settings)
    return FeeBreakdownResponse.from_breakdown(svc.calculate(request.transaction_amount))


@router.get(
    "/breakdown/{escrow_id}",
    response_model=EscrowFeeResponse,
    summary="Fee breakdown of an escrow",
)
async def get_fee_breakdown(
    escrow_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> EscrowFeeResponse:
    """Stored fee figures (or a preview at the escrow's rate) plus invoice and transfer state."""
    svc = FeeService(session)
    statement = await svc.get_breakdown(escrow_id, user.id)
    return EscrowFeeResponse(
        escrow_id=statement.escrow_id,
        escrow_status=statement.escrow_status,
        breakdown=FeeBreakdownResponse.from_breakdown(statement.breakdown),
        fee_invoice_url=statement.fee_invoice_url,
        fee_transferred_at=statement.fee_transferred_at,
        platform_account_id=statement.platform_account_id,
        status=FeeStatusFlags(
            calculated=statement.calculated,
            invoice_generated=statement.invoice_generated,
            transferred=statement.transferred,
        ),
    )


@router.post(
    "/invoice/generate",
    response_model=FeeInvoiceResponse,
    summary="Generate a fee invoice",
)
async def generate_fee_invoice(
    request: EscrowReferenceRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> FeeInvoiceResponse:
    """Safe to retry: the fee is computed once, the invoice URL is reissued."""
    svc = FeeService(session)
    invoice = await svc.generate_invoice(request.escrow_id, user.id)
    return FeeInvoiceResponse.model_validate(invoice)


@router.post(
    "/transfer",
    response_model=FeeTransferResponse,
    summary="Mark platform fee as transferred",
)
async def transfer_fee(
    request: EscrowReferenceRequest,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> FeeTransferResponse:
    """Admin only. Fails if the fee is not calculated or already transferred."""
    svc = FeeService(session)
    escrow = await svc.mark_transferred(request.escrow_id, user.id)
    return FeeTransferResponse(
        success=True,
        escrow_id=escrow.id,
        platform_fee_amount=escrow.platform_fee_amount,
        platform_account_id=escrow.platform_account_id,
        fee_transferred_at=escrow.fee_transferred_at,
    )

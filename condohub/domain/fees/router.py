"""Fee router - FastAPI endpoints for fees, fee payments and fraction accounts"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    ExtraFeeRequest,
    FeeDetailResponse,
    FeeGenerateRequest,
    FeePaymentCreate,
    FeePaymentResponse,
    FeeResponse,
    FractionAccountResponse,
    LiquidationResponse,
    ReceiptResponse,
)
from .service import FeeDomainService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/condominiums/{condominium_id}", tags=["Fees"])


def get_fee_service(db: Session = Depends(get_db)) -> FeeDomainService:
    """Dependency injection for FeeDomainService"""
    return FeeDomainService(db)


# ============================================================================
# FEES
# ============================================================================


@router.get("/fees", response_model=list[FeeResponse])
async def list_fees(
    condominium_id: int,
    year: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: FeeDomainService = Depends(get_fee_service),
):
    """Fees of the condominium; residents only see their own fractions"""
    return service.list_fees(condominium_id, current_user, year, status)


@router.post("/fees/generate", response_model=list[FeeResponse])
async def generate_fees(
    condominium_id: int,
    data: FeeGenerateRequest,
    current_user: User = Depends(get_current_user),
    service: FeeDomainService = Depends(get_fee_service),
):
    return service.generate(condominium_id, data, current_user)


@router.post("/fees/extra", response_model=list[FeeResponse])
async def generate_extra_fees(
    condominium_id: int,
    data: ExtraFeeRequest,
    current_user: User = Depends(get_current_user),
    service: FeeDomainService = Depends(get_fee_service),
):
    return service.generate_extra(condominium_id, data, current_user)


@router.post("/fees/mark-overdue")
async def mark_overdue(
    condominium_id: int,
    current_user: User = Depends(get_current_user),
    service: FeeDomainService = Depends(get_fee_service),
):
    return {"updated": service.mark_overdue(condominium_id, current_user)}


@router.get("/fees/{fee_id}", response_model=FeeDetailResponse)
async def get_fee(
    condominium_id: int,
    fee_id: int,
    current_user: User = Depends(get_current_user),
    service: FeeDomainService = Depends(get_fee_service),
):
    return service.get_fee_detail(condominium_id, fee_id, current_user)


# ============================================================================
# FEE PAYMENTS
# ============================================================================


@router.post("/fees/{fee_id}/payments", response_model=list[FeePaymentResponse])
async def register_payment(
    condominium_id: int,
    fee_id: int,
    data: FeePaymentCreate,
    current_user: User = Depends(get_current_user),
    service: FeeDomainService = Depends(get_fee_service),
):
    """Register a manual payment; it may spread over the open fees of the same period"""
    return service.register_payment(condominium_id, fee_id, data, current_user)


@router.delete("/fees/{fee_id}/payments/{payment_id}", response_model=FeeResponse)
async def delete_payment(
    condominium_id: int,
    fee_id: int,
    payment_id: int,
    current_user: User = Depends(get_current_user),
    service: FeeDomainService = Depends(get_fee_service),
):
    return service.delete_payment(condominium_id, fee_id, payment_id, current_user)


@router.get("/receipts", response_model=list[ReceiptResponse])
async def list_receipts(
    condominium_id: int,
    fraction_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: FeeDomainService = Depends(get_fee_service),
):
    return service.list_receipts(condominium_id, current_user, fraction_id)


# ============================================================================
# FRACTION ACCOUNTS
# ============================================================================


@router.get("/fractions/{fraction_id}/account", response_model=FractionAccountResponse)
async def get_fraction_account(
    condominium_id: int,
    fraction_id: int,
    current_user: User = Depends(get_current_user),
    service: FeeDomainService = Depends(get_fee_service),
):
    return service.get_fraction_account(condominium_id, fraction_id, current_user)


@router.post("/fractions/{fraction_id}/liquidate", response_model=LiquidationResponse)
async def liquidate_fraction(
    condominium_id: int,
    fraction_id: int,
    current_user: User = Depends(get_current_user),
    service: FeeDomainService = Depends(get_fee_service),
):
    return service.liquidate(condominium_id, fraction_id, current_user)

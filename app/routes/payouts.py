"""Payout routes"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db, get_processor
from app.schemas.payout import PayoutBreakdown, PayoutRead, PayoutRequest
from app.services.payments.base import PaymentProcessor
from app.services.payout_service import PayoutResult, PayoutService

router = APIRouter(prefix="/payouts", tags=["payouts"])


@router.post("", response_model=PayoutResult, status_code=201)
async def payout_item(
    request: PayoutRequest,
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_processor),
):
    """Transfer the seller's share of one order item."""
    service = PayoutService(db, processor=processor)
    return await service.payout(request.order_item_id, initiated_by=request.initiated_by)


@router.get("/preview/{item_id}", response_model=PayoutBreakdown)
async def preview_payout(item_id: str, db: AsyncSession = Depends(get_db)):
    return await PayoutService(db).preview(item_id)


@router.get("", response_model=List[PayoutRead])
async def list_payouts(seller_id: Optional[int] = Query(None), db: AsyncSession = Depends(get_db)):
    payouts = await PayoutService(db).list_payouts(seller_id=seller_id)
    return [PayoutRead.from_orm_model(p) for p in payouts]

"""Refund routes"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db, get_processor
from app.schemas.refund import RefundRead, RefundRequest
from app.services.order_service import OrderService
from app.services.payments.base import PaymentProcessor
from app.services.refund_service import RefundResult, RefundService

router = APIRouter(prefix="/refunds", tags=["refunds"])


@router.post("", response_model=RefundResult, status_code=201)
async def refund_item(
    request: RefundRequest,
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_processor),
):
    """Refund one order item (price and retip, times quantity)."""
    service = OrderService(db, processor=processor)
    return await service.refund(
        request.order_item_id,
        request.reason,
        notes=request.notes,
        initiated_by=request.initiated_by,
    )


@router.get("", response_model=List[RefundRead])
async def list_refunds(
    order_item_id: Optional[str] = Query(None),
    seller_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    refunds = await RefundService(db).list_refunds(order_item_id=order_item_id, seller_id=seller_id)
    return [RefundRead.from_orm_model(r) for r in refunds]

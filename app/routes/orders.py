"""Order routes - checkout, quotes and seller decisions on order items."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db, get_processor
from app.schemas.order import (
    CheckoutRequest,
    ItemTransitionResponse,
    OrderRead,
    QuoteRequest,
)
from app.services.order_service import OrderService
from app.services.payments.base import PaymentProcessor
from app.services.pricing import OrderTotals

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/quote", response_model=OrderTotals)
async def quote_order(request: QuoteRequest, db: AsyncSession = Depends(get_db)):
    """Price a cart without placing an order."""
    service = OrderService(db)
    return await service.quote(request.items, shipping_cost=request.shipping_cost)


@router.post("/checkout", response_model=OrderRead, status_code=201)
async def checkout(
    request: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_processor),
):
    """Create an order from a paid cart."""
    service = OrderService(db, processor=processor)
    order = await service.create_order(
        buyer_id=request.buyer_id,
        lines=request.items,
        shipping_address=request.shipping_address,
        payment_intent_id=request.payment_intent_id,
        buyer_name=request.buyer_name,
        buyer_email=request.buyer_email,
        shipping_cost=request.shipping_cost,
    )
    return OrderRead.model_validate(order)


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(order_id: str, db: AsyncSession = Depends(get_db)):
    service = OrderService(db)
    return OrderRead.model_validate(await service.get_order(order_id))


@router.post("/items/{item_id}/confirm", response_model=ItemTransitionResponse)
async def confirm_item(item_id: str, db: AsyncSession = Depends(get_db)):
    """Seller approves an item; stock is taken."""
    item = await OrderService(db).confirm(item_id)
    return ItemTransitionResponse(item_id=item.id, order_status=item.order_status, message="Order item approved")


@router.post("/items/{item_id}/reject", response_model=ItemTransitionResponse)
async def reject_item(item_id: str, db: AsyncSession = Depends(get_db)):
    item = await OrderService(db).reject(item_id)
    return ItemTransitionResponse(item_id=item.id, order_status=item.order_status, message="Order item rejected")


@router.post("/items/{item_id}/cancel", response_model=ItemTransitionResponse)
async def cancel_item(item_id: str, db: AsyncSession = Depends(get_db)):
    """Cancel an approved item before it ships; stock is restored."""
    item = await OrderService(db).cancel(item_id)
    return ItemTransitionResponse(item_id=item.id, order_status=item.order_status, message="Order item cancelled")

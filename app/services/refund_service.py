"""
Refund Service

Partial refunds of a checkout, one order item at a time.

    refund_amount = price * quantity + (retip_price * quantity if retip_added)

Order of work:
  1. local checks (item exists, not already refunded, order paid, intent on file)
  2. processor refund, idempotency key "refund-<order item id>"
  3. one transaction: Refund row, refund Transaction row, item -> refunded

Nothing local is written before the processor confirms. If the processor
refunded but step 3 fails, the refund id is logged and raised as a
ReconciliationGapError so it can be matched against the processor's records.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import OrderItemStatus, RefundReason, RefundStatus, TransactionStatus, TransactionType
from app.core.exceptions import (
    AlreadyRefundedError,
    IllegalStateError,
    MissingPaymentReferenceError,
    NotFoundError,
    ReconciliationGapError,
    ValidationError,
)
from app.models.order import OrderItem
from app.models.product import Product
from app.models.refund import Refund, Transaction
from app.services.order_state import validate_transition
from app.services.payments.base import PaymentProcessor
from app.services.payments.factory import get_payment_processor
from app.services.pricing import round_money, to_cents, to_decimal

logger = logging.getLogger(__name__)


class RefundResult(BaseModel):
    refund_id: str
    stripe_refund_id: str
    order_item_id: str
    refund_amount: str
    status: str


def calculate_refund_amount(item: OrderItem):
    """Item subtotal plus the retip subtotal, both scaled by quantity."""
    item_total = to_decimal(item.price) * item.quantity
    retip_total = to_decimal(item.retip_price) * item.quantity if item.retip_added else 0
    return round_money(item_total), round_money(retip_total)


class RefundService:
    def __init__(self, db: AsyncSession, processor: Optional[PaymentProcessor] = None):
        self.db = db
        self._processor = processor

    @property
    def processor(self) -> PaymentProcessor:
        if self._processor is None:
            self._processor = get_payment_processor()
        return self._processor

    async def refund_item(
        self,
        order_item_id: str,
        reason,
        notes: Optional[str] = None,
        initiated_by: Optional[str] = None,
    ) -> RefundResult:
        """
        Refund a single order item.

        Raises:
            NotFoundError: item or parent order missing
            AlreadyRefundedError: item is already refunded
            IllegalStateError: order never completed payment
            MissingPaymentReferenceError: order has no payment intent
            PaymentProcessorError: the processor refused or timed out (nothing written)
            ReconciliationGapError: processor refunded, local commit failed
        """
        try:
            reason = RefundReason(reason)
        except ValueError:
            raise ValidationError(f"Unknown refund reason '{reason}'")

        result = await self.db.execute(
            select(OrderItem).options(selectinload(OrderItem.order)).where(OrderItem.id == order_item_id)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError(f"Order item {order_item_id} not found")
        order = item.order
        if order is None:
            raise NotFoundError(f"Order for item {order_item_id} not found")

        if item.order_status == OrderItemStatus.REFUNDED:
            raise AlreadyRefundedError(f"Order item {order_item_id} has already been refunded")
        if not order.payment_completed:
            raise IllegalStateError(f"Order {order.id} has no completed payment to refund")
        if not order.payment_intent_id:
            raise MissingPaymentReferenceError(f"Order {order.id} has no payment intent reference")
        validate_transition(item.order_status, OrderItemStatus.REFUNDED, item.id)

        item_total, retip_total = calculate_refund_amount(item)
        refund_amount = item_total + retip_total
        previous_status = item.order_status

        processor_refund = await self.processor.create_refund(
            order.payment_intent_id,
            to_cents(refund_amount),
            metadata={
                "order_id": order.id,
                "order_item_id": item.id,
                "reason": reason.value,
            },
            idempotency_key=f"refund-{item.id}",
        )
        external_id = processor_refund["id"]

        try:
            status_update = await self.db.execute(
                update(OrderItem)
                .where(OrderItem.id == item.id, OrderItem.order_status != OrderItemStatus.REFUNDED)
                .values(order_status=OrderItemStatus.REFUNDED)
            )
            if status_update.rowcount == 0:
                raise AlreadyRefundedError(f"Order item {order_item_id} was refunded by another request")

            refund = Refund(
                order_id=order.id,
                order_item_id=item.id,
                stripe_refund_id=external_id,
                stripe_payment_intent_id=order.payment_intent_id,
                refund_amount=refund_amount,
                item_price=round_money(item.price),
                item_quantity=item.quantity,
                retip_refund_amount=retip_total,
                reason=reason,
                status=_refund_status(processor_refund.get("status")),
                initiated_by=initiated_by,
                notes=notes,
                processed_date=datetime.now(timezone.utc).replace(tzinfo=None),
            )
            self.db.add(refund)
            self.db.add(Transaction(
                order_id=order.id,
                payment_processor_id=external_id,
                amount=refund_amount,
                type=TransactionType.REFUND,
                status=TransactionStatus.COMPLETED,
                payment_details={
                    "order_item_id": item.id,
                    "reason": reason.value,
                    "previous_status": previous_status.value,
                    "processor_status": processor_refund.get("status"),
                },
            ))
            await self.db.commit()
        except AlreadyRefundedError:
            await self.db.rollback()
            logger.error(
                "Processor refund %s for item %s has no local record: item was refunded concurrently",
                external_id, order_item_id,
            )
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(
                "Processor refund %s for item %s succeeded but local commit failed: %s",
                external_id, order_item_id, e,
            )
            raise ReconciliationGapError(
                f"Refund {external_id} was issued but could not be recorded for item {order_item_id}",
                external_id=external_id,
            ) from e

        logger.info(
            "Order item %s refunded %s (%s -> refunded), processor refund %s",
            item.id, refund_amount, previous_status.value, external_id,
        )
        return RefundResult(
            refund_id=refund.id,
            stripe_refund_id=external_id,
            order_item_id=item.id,
            refund_amount=str(refund_amount),
            status=refund.status.value,
        )

    async def list_refunds(
        self,
        order_item_id: Optional[str] = None,
        seller_id: Optional[int] = None,
    ) -> List[Refund]:
        query = select(Refund).order_by(Refund.created_at.desc())
        if order_item_id:
            query = query.where(Refund.order_item_id == order_item_id)
        if seller_id is not None:
            query = (
                query.join(OrderItem, OrderItem.id == Refund.order_item_id)
                .join(Product, Product.id == OrderItem.product_id)
                .where(Product.seller_id == seller_id)
            )
        result = await self.db.execute(query)
        return list(result.scalars())


def _refund_status(processor_status: Optional[str]) -> RefundStatus:
    try:
        return RefundStatus(processor_status)
    except ValueError:
        return RefundStatus.PENDING

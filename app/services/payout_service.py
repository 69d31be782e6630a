"""
Payout Service

Pays a seller for one order item through a Stripe Connect transfer.

    item_total = price * quantity
    commission = item_total * rate / 100            (rate by product category)
    gross      = item_total - commission
    fee        = gross * PROCESSOR_FEE_PERCENT / 100 + PROCESSOR_FEE_FLAT
    net        = gross - fee                        (must be > 0)

An item is paid at most once: seller_paid only ever flips false -> true, and
it flips in the same transaction that records the Payout row.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import PayoutStatus
from app.core.exceptions import (
    AlreadyPaidError,
    IllegalStateError,
    NonPositivePayoutError,
    NotFoundError,
    ReconciliationGapError,
)
from app.models.order import OrderItem
from app.models.payout import Payout
from app.models.product import Product
from app.models.seller import Seller
from app.schemas.payout import PayoutBreakdown
from app.services.commission_service import CommissionService
from app.services.order_state import PAYABLE_STATES
from app.services.payments.base import PaymentProcessor
from app.services.payments.factory import get_payment_processor
from app.services.pricing import calculate_processor_fee, round_money, to_cents, to_decimal

logger = logging.getLogger(__name__)


class PayoutResult(BaseModel):
    payout_id: str
    order_item_id: str
    stripe_transfer_id: str
    net_amount: Decimal
    status: PayoutStatus


def calculate_payout(
    order_item_id: str,
    price,
    quantity: int,
    commission_rate,
    fee_percent=None,
    fee_flat=None,
) -> PayoutBreakdown:
    """
    Money split for one order item. Pure; used for previews and by payout().

    Example:
        100.00 x 1 at 5% -> commission 5.00, gross 95.00,
        fee 0.25% * 95 + 0.25 = 0.4875 -> 0.49, net 94.51
    """
    item_total = round_money(to_decimal(price) * quantity)
    rate = to_decimal(commission_rate)
    commission = round_money(item_total * rate / 100)
    gross = item_total - commission
    fee = round_money(calculate_processor_fee(gross, fee_percent, fee_flat))
    return PayoutBreakdown(
        order_item_id=order_item_id,
        item_total=item_total,
        commission_rate=rate,
        commission=commission,
        gross_payout=gross,
        processor_fee=fee,
        net_payout=gross - fee,
    )


class PayoutService:
    def __init__(self, db: AsyncSession, processor: Optional[PaymentProcessor] = None):
        self.db = db
        self._processor = processor
        self.commissions = CommissionService(db)

    @property
    def processor(self) -> PaymentProcessor:
        if self._processor is None:
            self._processor = get_payment_processor()
        return self._processor

    async def _load_item(self, order_item_id: str) -> OrderItem:
        result = await self.db.execute(
            select(OrderItem)
            .options(selectinload(OrderItem.product).selectinload(Product.seller))
            .where(OrderItem.id == order_item_id)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFoundError(f"Order item {order_item_id} not found")
        if item.product is None:
            raise NotFoundError(f"Product for order item {order_item_id} not found")
        return item

    async def preview(self, order_item_id: str) -> PayoutBreakdown:
        item = await self._load_item(order_item_id)
        rate = await self.commissions.get_rate(item.product.category)
        return calculate_payout(item.id, item.price, item.quantity, rate)

    async def payout(self, order_item_id: str, initiated_by: Optional[str] = None) -> PayoutResult:
        """
        Transfer the seller's share for one order item.

        Raises:
            NotFoundError: item, product, seller or commission rate missing
            AlreadyPaidError: seller_paid is already set
            IllegalStateError: item not payable, or seller cannot receive transfers
            NonPositivePayoutError: fees leave nothing to pay
            PaymentProcessorError: transfer refused or timed out (nothing written)
            ReconciliationGapError: transfer made, local commit failed
        """
        item = await self._load_item(order_item_id)
        if item.seller_paid:
            raise AlreadyPaidError(f"Seller has already been paid for order item {order_item_id}")
        if item.order_status not in PAYABLE_STATES:
            raise IllegalStateError(
                f"Order item {order_item_id} is '{item.order_status.value}' and cannot be paid out"
            )

        seller: Seller = item.product.seller
        if seller is None:
            raise NotFoundError(f"Seller for order item {order_item_id} not found")
        if not seller.stripe_account_id or not seller.payouts_enabled:
            raise IllegalStateError(f"Seller {seller.id} has no payouts-enabled Stripe account")

        rate = await self.commissions.get_rate(item.product.category)
        breakdown = calculate_payout(item.id, item.price, item.quantity, rate)
        if breakdown.net_payout <= 0:
            raise NonPositivePayoutError(
                f"Net payout for order item {order_item_id} would be {breakdown.net_payout}"
            )

        description = f"Payout for order item {item.id} ({item.title} x {item.quantity})"
        transfer = await self.processor.create_transfer(
            seller.stripe_account_id,
            to_cents(breakdown.net_payout),
            metadata={
                "order_id": item.order_id,
                "order_item_id": item.id,
                "seller_id": str(seller.id),
            },
            idempotency_key=f"payout-{item.id}",
        )
        transfer_id = transfer["id"]

        try:
            flipped = await self.db.execute(
                update(OrderItem)
                .where(OrderItem.id == item.id, OrderItem.seller_paid.is_(False))
                .values(seller_paid=True)
            )
            if flipped.rowcount == 0:
                raise AlreadyPaidError(f"Seller was paid for order item {order_item_id} by another request")

            payout = Payout(
                order_item_id=item.id,
                seller_id=seller.id,
                stripe_account_id=seller.stripe_account_id,
                stripe_transfer_id=transfer_id,
                gross_amount=breakdown.item_total,
                commission_amount=breakdown.commission,
                fee_amount=breakdown.processor_fee,
                net_amount=breakdown.net_payout,
                status=PayoutStatus.PAID,
                description=description,
                payout_metadata={
                    "commission_rate": str(breakdown.commission_rate),
                    "gross_payout": str(breakdown.gross_payout),
                    "order_id": item.order_id,
                },
                initiated_by=initiated_by,
                processed_at=datetime.now(timezone.utc).replace(tzinfo=None),
            )
            self.db.add(payout)
            await self.db.commit()
        except AlreadyPaidError:
            await self.db.rollback()
            logger.error(
                "Transfer %s for item %s has no local record: item was paid concurrently",
                transfer_id, order_item_id,
            )
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(
                "Transfer %s for item %s succeeded but local commit failed: %s",
                transfer_id, order_item_id, e,
            )
            raise ReconciliationGapError(
                f"Transfer {transfer_id} was made but could not be recorded for item {order_item_id}",
                external_id=transfer_id,
            ) from e

        logger.info(
            "Seller %s paid %s for order item %s (commission %s, fee %s), transfer %s",
            seller.id, breakdown.net_payout, order_item_id, breakdown.commission,
            breakdown.processor_fee, transfer_id,
        )
        return PayoutResult(
            payout_id=payout.id,
            order_item_id=order_item_id,
            stripe_transfer_id=transfer_id,
            net_amount=breakdown.net_payout,
            status=PayoutStatus.PAID,
        )

    async def list_payouts(self, seller_id: Optional[int] = None) -> List[Payout]:
        query = select(Payout).order_by(Payout.created_at.desc())
        if seller_id is not None:
            query = query.where(Payout.seller_id == seller_id)
        result = await self.db.execute(query)
        return list(result.scalars())

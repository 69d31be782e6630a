"""
Order Service

Checkout and the seller-driven order item transitions:

- quote / create_order: Money Calculator over the catalog, one transaction
  for Order + OrderItems + the payment ledger row
- confirm: pending_approval -> approved, takes stock
- reject: pending_approval -> rejected
- cancel: approved -> cancelled, gives stock back
- refund: handed to RefundService

Status moves are conditional UPDATEs (WHERE order_status = <expected>). When
no row matches, someone else moved the item first and the call fails with
IllegalStateError instead of applying a stale transition.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import OrderItemStatus, TransactionStatus, TransactionType
from app.core.exceptions import IllegalStateError, NotFoundError, ValidationError
from app.models.order import Order, OrderItem
from app.models.product import Product
from app.models.refund import Transaction
from app.schemas.order import CheckoutLine, ShippingAddress
from app.services.commission_service import CommissionService
from app.services.inventory_service import InventoryService
from app.services.order_state import validate_transition
from app.services.payments.base import PaymentProcessor
from app.services.payments.factory import get_payment_processor
from app.services.pricing import (
    CartLine,
    OrderTotals,
    calculate_order_totals,
    round_money,
    to_cents,
    to_decimal,
)

logger = logging.getLogger(__name__)


class OrderService:
    def __init__(self, db: AsyncSession, processor: Optional[PaymentProcessor] = None):
        self.db = db
        self._processor = processor
        self.inventory = InventoryService(db)
        self.commissions = CommissionService(db)

    @property
    def processor(self) -> PaymentProcessor:
        if self._processor is None:
            self._processor = get_payment_processor()
        return self._processor

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_order(self, order_id: str) -> Order:
        result = await self.db.execute(
            select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def get_item(self, item_id: str) -> OrderItem:
        item = await self.db.get(OrderItem, item_id)
        if item is None:
            raise NotFoundError(f"Order item {item_id} not found")
        return item

    # ------------------------------------------------------------------
    # Quote / checkout
    # ------------------------------------------------------------------

    async def _load_products(self, lines: List[CheckoutLine]) -> Dict[int, Product]:
        product_ids = {line.product_id for line in lines}
        result = await self.db.execute(select(Product).where(Product.id.in_(product_ids)))
        return {product.id: product for product in result.scalars()}

    def _cart_lines(self, lines: List[CheckoutLine], products: Dict[int, Product]) -> List[CartLine]:
        """Turn checkout lines into priced cart lines using the catalog's current prices."""
        cart = []
        for line in lines:
            product = products.get(line.product_id)
            if product is None:
                # Left for the calculator to report as an unknown product
                cart.append(CartLine(product_id=line.product_id, unit_price=Decimal("0"), quantity=line.quantity))
                continue
            if not product.is_active or product.is_archived:
                raise ValidationError(f"Product {product.id} is not available for purchase")
            if line.retip_added and not product.requires_retipping:
                raise ValidationError(f"Product {product.id} does not offer retipping")
            cart.append(CartLine(
                product_id=product.id,
                unit_price=to_decimal(product.price),
                quantity=line.quantity,
                retip_added=line.retip_added,
                retip_price=to_decimal(product.retip_price) if line.retip_added else Decimal("0"),
            ))
        return cart

    async def quote(self, lines: List[CheckoutLine], shipping_cost=0) -> OrderTotals:
        """Price a cart without persisting anything."""
        if not lines:
            raise ValidationError("Cart is empty")
        seen = set()
        for line in lines:
            if line.product_id in seen:
                raise ValidationError(f"Product {line.product_id} appears on more than one cart line")
            seen.add(line.product_id)
        products = await self._load_products(lines)
        cart = self._cart_lines(lines, products)
        catalog = {pid: product.category for pid, product in products.items()}
        rates = await self.commissions.get_rates(catalog.values())
        return calculate_order_totals(cart, catalog, rates, shipping_cost=shipping_cost)

    async def create_order(
        self,
        buyer_id: str,
        lines: List[CheckoutLine],
        shipping_address: ShippingAddress,
        payment_intent_id: str,
        buyer_name: Optional[str] = None,
        buyer_email: Optional[str] = None,
        shipping_cost=0,
    ) -> Order:
        """
        Commit a checkout.

        The payment intent must already have succeeded at the processor; one
        payment intent can back only one order.

        Raises:
            ValidationError: bad cart, duplicate or unpaid payment intent, or an
                intent whose amount differs from the order total
            NotFoundError: missing commission rate for a product category
            PaymentProcessorError: the intent lookup failed
        """
        if not payment_intent_id:
            raise ValidationError("A payment intent is required to check out")

        totals = await self.quote(lines, shipping_cost=shipping_cost)
        products = await self._load_products(lines)

        existing = await self.db.execute(select(Order.id).where(Order.payment_intent_id == payment_intent_id))
        if existing.first() is not None:
            raise ValidationError(f"Payment intent {payment_intent_id} has already been used for an order")

        intent = await self.processor.retrieve_payment_intent(payment_intent_id)
        if intent.get("status") != "succeeded":
            raise ValidationError(
                f"Payment intent {payment_intent_id} is '{intent.get('status')}', expected 'succeeded'"
            )
        expected_cents = to_cents(totals.total)
        if intent.get("amount") != expected_cents:
            raise ValidationError(
                f"Payment intent {payment_intent_id} captured {intent.get('amount')} cents, "
                f"order total is {expected_cents} cents"
            )

        try:
            order = Order(
                buyer_id=buyer_id,
                buyer_name=buyer_name,
                buyer_email=buyer_email,
                subtotal=totals.subtotal,
                retip_total=totals.retip_total,
                tax_amount=totals.tax,
                platform_fee=totals.platform_fee,
                shipping_cost=totals.shipping_cost,
                total_amount=totals.total,
                payment_intent_id=payment_intent_id,
                payment_completed=True,
                requires_retipping=any(line.retip_added for line in lines),
                shipping_address=shipping_address.model_dump(),
            )
            self.db.add(order)
            await self.db.flush()

            for line, line_totals in zip(lines, totals.lines):
                product = products[line.product_id]
                self.db.add(OrderItem(
                    order_id=order.id,
                    product_id=product.id,
                    quantity=line.quantity,
                    price=round_money(product.price),
                    title=product.title,
                    retip_added=line.retip_added,
                    retip_price=round_money(product.retip_price) if line.retip_added else Decimal("0.00"),
                    platform_commission=line_totals.commission,
                    order_status=OrderItemStatus.PENDING_APPROVAL,
                    payment_status=True,
                ))

            self.db.add(Transaction(
                order_id=order.id,
                payment_processor_id=payment_intent_id,
                amount=totals.total,
                type=TransactionType.PAYMENT,
                status=TransactionStatus.COMPLETED,
                payment_details={"processor_status": intent.get("status"), "amount_cents": intent.get("amount")},
            ))
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if "payment_intent_id" not in str(e.orig):
                raise
            logger.warning("Checkout for payment intent %s rejected: %s", payment_intent_id, e)
            raise ValidationError(f"Payment intent {payment_intent_id} has already been used for an order") from e
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Order %s created for buyer %s: %s items, total %s",
            order.id, buyer_id, len(lines), totals.total,
        )
        return await self.get_order(order.id)

    # ------------------------------------------------------------------
    # Item transitions
    # ------------------------------------------------------------------

    async def _move(self, item: OrderItem, expected: OrderItemStatus, target: OrderItemStatus) -> None:
        """Conditional status update; zero rows means the item moved underneath us."""
        result = await self.db.execute(
            update(OrderItem)
            .where(OrderItem.id == item.id, OrderItem.order_status == expected)
            .values(order_status=target)
        )
        if result.rowcount == 0:
            raise IllegalStateError(
                f"Order item {item.id} is no longer '{expected.value}'; it was changed by another request"
            )

    async def confirm(self, item_id: str) -> OrderItem:
        """
        Seller approves an item: pending_approval -> approved, stock taken.

        Raises:
            NotFoundError, IllegalStateError, InsufficientStockError
        """
        item = await self.get_item(item_id)
        validate_transition(item.order_status, OrderItemStatus.APPROVED, item.id)

        try:
            await self._move(item, OrderItemStatus.PENDING_APPROVAL, OrderItemStatus.APPROVED)
            await self.inventory.decrement(item.product_id, item.quantity)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Order item %s confirmed (%s x product %s)", item.id, item.quantity, item.product_id)
        return await self.get_item(item_id)

    async def reject(self, item_id: str) -> OrderItem:
        """Seller declines an item: pending_approval -> rejected. Stock is untouched."""
        item = await self.get_item(item_id)
        validate_transition(item.order_status, OrderItemStatus.REJECTED, item.id)

        try:
            await self._move(item, OrderItemStatus.PENDING_APPROVAL, OrderItemStatus.REJECTED)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Order item %s rejected", item.id)
        return await self.get_item(item_id)

    async def cancel(self, item_id: str) -> OrderItem:
        """Cancel an approved, not yet shipped item: approved -> cancelled, stock restored."""
        item = await self.get_item(item_id)
        validate_transition(item.order_status, OrderItemStatus.CANCELLED, item.id)

        try:
            await self._move(item, OrderItemStatus.APPROVED, OrderItemStatus.CANCELLED)
            await self.inventory.restore(item.product_id, item.quantity)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Order item %s cancelled, %s units returned to product %s", item.id, item.quantity, item.product_id)
        return await self.get_item(item_id)

    async def refund(self, item_id: str, reason, notes: Optional[str] = None, initiated_by: Optional[str] = None):
        """Refund one item through RefundService, sharing this session and processor."""
        from app.services.refund_service import RefundService

        service = RefundService(self.db, processor=self._processor)
        return await service.refund_item(item_id, reason, notes=notes, initiated_by=initiated_by)

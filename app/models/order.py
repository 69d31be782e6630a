# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, ForeignKey, JSON, CheckConstraint, UniqueConstraint, Enum, TIMESTAMP,
    event, inspect,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.core.enums import OrderItemStatus, enum_values
from app.core.exceptions import ValidationError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _uuid() -> str:
    return str(uuid.uuid4())


class Order(Base):
    """Aggregate root for a single checkout. Never physically deleted."""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)
    order_date = Column(TIMESTAMP(timezone=False), default=_utcnow, nullable=False)

    buyer_id = Column(String, nullable=False, index=True)
    buyer_name = Column(String, nullable=True)
    buyer_email = Column(String, nullable=True)

    # Money (total_amount = subtotal + retip_total + tax_amount + platform_fee + shipping_cost)
    subtotal = Column(Numeric(10, 2), nullable=False)
    retip_total = Column(Numeric(10, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    platform_fee = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)

    payment_intent_id = Column(String, nullable=True, unique=True)
    payment_completed = Column(Boolean, default=False, nullable=False)
    requires_retipping = Column(Boolean, default=False, nullable=False)

    shipping_address = Column(JSON, nullable=False)  # name, line1, city, state, postal_code, country, phone
    tracking_number = Column(String, nullable=True)
    carrier_shipment_id = Column(String, nullable=True)

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.created_at")
    shipments = relationship("Shipment", back_populates="order", foreign_keys="Shipment.order_id")

    def __repr__(self):
        return f"<Order {self.id} buyer={self.buyer_id} total={self.total_amount}>"


class OrderItem(Base):
    """
    One line per (order, product).

    price, title, retip_price and quantity are snapshots taken at checkout and
    never change; only order_status, payment_status and seller_paid move.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        UniqueConstraint("order_id", "product_id", name="uq_order_items_order_product"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)

    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    # Snapshots
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    title = Column(String, nullable=False)
    retip_added = Column(Boolean, default=False, nullable=False)
    retip_price = Column(Numeric(10, 2), default=0, nullable=False)
    platform_commission = Column(Numeric(10, 2), default=0, nullable=False)

    # Mutable state
    order_status = Column(
        Enum(OrderItemStatus, name="orderitemstatus", values_callable=enum_values),
        default=OrderItemStatus.PENDING_APPROVAL,
        nullable=False,
        index=True,
    )
    # Status held when a carrier exception arrived; leaving exception never goes below it
    pre_exception_status = Column(
        Enum(OrderItemStatus, name="orderitemstatus", values_callable=enum_values),
        nullable=True,
    )
    payment_status = Column(Boolean, default=False, nullable=False)
    seller_paid = Column(Boolean, default=False, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")

    @property
    def item_total(self):
        return self.price * self.quantity

    @property
    def retip_total(self):
        return (self.retip_price or 0) * self.quantity if self.retip_added else 0

    def __repr__(self):
        return f"<OrderItem {self.id} product={self.product_id} status={self.order_status}>"


SNAPSHOT_FIELDS = ("quantity", "price", "title", "retip_added", "retip_price", "product_id", "order_id")


@event.listens_for(OrderItem, "before_update")
def _reject_snapshot_changes(mapper, connection, target):
    state = inspect(target)
    changed = [name for name in SNAPSHOT_FIELDS if state.attrs[name].history.has_changes()]
    if changed:
        raise ValidationError(f"Order item {target.id} snapshot fields are immutable: {', '.join(changed)}")

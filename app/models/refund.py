# app/models/refund.py
import uuid

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, JSON, Text, Enum, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.core.enums import RefundReason, RefundStatus, TransactionType, TransactionStatus, enum_values


def _uuid() -> str:
    return str(uuid.uuid4())


class Refund(Base):
    """
    One successful processor refund for one order item.

    refund_amount = item_price * item_quantity + retip_refund_amount
    """
    __tablename__ = "refunds"

    id = Column(String(36), primary_key=True, default=_uuid)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)

    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    order_item_id = Column(String(36), ForeignKey("order_items.id"), nullable=False, index=True)

    stripe_refund_id = Column(String, unique=True, nullable=False)
    stripe_payment_intent_id = Column(String, nullable=False)

    refund_amount = Column(Numeric(10, 2), nullable=False)
    item_price = Column(Numeric(10, 2), nullable=False)
    item_quantity = Column(Integer, nullable=False)
    retip_refund_amount = Column(Numeric(10, 2), nullable=False, default=0)

    reason = Column(Enum(RefundReason, name="refundreason", values_callable=enum_values), nullable=False)
    status = Column(
        Enum(RefundStatus, name="refundstatus", values_callable=enum_values),
        default=RefundStatus.PENDING,
        nullable=False,
    )
    initiated_by = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    processed_date = Column(TIMESTAMP(timezone=False), nullable=True)

    order_item = relationship("OrderItem")

    def __repr__(self):
        return f"<Refund {self.id} item={self.order_item_id} amount={self.refund_amount}>"


class Transaction(Base):
    """Money movement ledger: one row per payment and per refund"""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), nullable=False)

    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    payment_processor_id = Column(String, nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    type = Column(Enum(TransactionType, name="transactiontype", values_callable=enum_values), nullable=False)
    status = Column(
        Enum(TransactionStatus, name="transactionstatus", values_callable=enum_values),
        default=TransactionStatus.PENDING,
        nullable=False,
    )
    payment_details = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<Transaction {self.id} {self.type} {self.amount}>"

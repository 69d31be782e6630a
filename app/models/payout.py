# app/models/payout.py
import uuid

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, JSON, Text, Enum, Index, TIMESTAMP, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.core.enums import PayoutStatus, enum_values


def _uuid() -> str:
    return str(uuid.uuid4())


class Payout(Base):
    """
    A Stripe Connect transfer to a seller for one order item.

    net_amount = gross_amount - commission_amount - fee_amount
    """
    __tablename__ = "payouts"
    __table_args__ = (
        # At most one live payout per order item
        Index(
            "uq_payouts_order_item_active",
            "order_item_id",
            unique=True,
            postgresql_where=text("status != 'voided'"),
            sqlite_where=text("status != 'voided'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)

    order_item_id = Column(String(36), ForeignKey("order_items.id"), nullable=False)
    seller_id = Column(Integer, ForeignKey("sellers.id"), nullable=False, index=True)
    stripe_account_id = Column(String, nullable=False)
    stripe_transfer_id = Column(String, unique=True, nullable=True)

    gross_amount = Column(Numeric(10, 2), nullable=False)
    commission_amount = Column(Numeric(10, 2), nullable=False)
    fee_amount = Column(Numeric(10, 2), nullable=False)
    net_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(
        Enum(PayoutStatus, name="payoutstatus", values_callable=enum_values),
        default=PayoutStatus.PENDING,
        nullable=False,
    )
    description = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    payout_metadata = Column("metadata", JSON, nullable=True)
    initiated_by = Column(String, nullable=True)
    processed_at = Column(TIMESTAMP(timezone=False), nullable=True)

    order_item = relationship("OrderItem")
    seller = relationship("Seller")

    def __repr__(self):
        return f"<Payout {self.id} item={self.order_item_id} net={self.net_amount} {self.status}>"

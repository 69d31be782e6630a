"""
Shipping-related database models.
"""

from sqlalchemy import (
    Column, Integer, String, Float, Date, Enum, ForeignKey, JSON, Text, CheckConstraint, TIMESTAMP,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.core.enums import ShipmentStatus, enum_values


# A pickup is either fully scheduled or not scheduled at all
PICKUP_ALL_OR_NOTHING = (
    "(pickup_request_number IS NULL AND pickup_date IS NULL "
    "AND pickup_ready_time IS NULL AND pickup_close_time IS NULL) OR "
    "(pickup_request_number IS NOT NULL AND pickup_date IS NOT NULL "
    "AND pickup_ready_time IS NOT NULL AND pickup_close_time IS NOT NULL)"
)


class Shipment(Base):
    """Shipment database model"""
    __tablename__ = "shipments"
    __table_args__ = (
        CheckConstraint(PICKUP_ALL_OR_NOTHING, name="ck_shipments_pickup_all_or_nothing"),
    )

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)

    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("sellers.id"), nullable=False, index=True)

    # Core shipment details
    carrier = Column(String, index=True, nullable=False)  # e.g. "ups"
    service_code = Column(String, nullable=True)
    carrier_shipment_id = Column(String, nullable=True, index=True)
    tracking_number = Column(String, nullable=True, index=True)

    # Status tracking
    status = Column(
        Enum(ShipmentStatus, name="shipmentstatus", values_callable=enum_values),
        default=ShipmentStatus.PENDING,
        nullable=False,
        index=True,
    )
    # Status held when a carrier exception arrived; leaving exception never goes below it
    pre_exception_status = Column(
        Enum(ShipmentStatus, name="shipmentstatus", values_callable=enum_values),
        nullable=True,
    )
    tracking_events = Column(JSON, nullable=True)
    actual_delivery_date = Column(TIMESTAMP(timezone=False), nullable=True)

    # Package details
    weight = Column(Float, nullable=True)
    dimensions = Column(JSON, nullable=True)  # length, width, height (inches)
    shipper_address = Column(JSON, nullable=True)
    shipping_address = Column(JSON, nullable=True)

    # Response data
    carrier_response = Column(JSON, nullable=True)
    label_data = Column(Text, nullable=True)  # Base64 encoded label image
    label_format = Column(String, nullable=True)

    # Pickup (all four set together or none)
    pickup_request_number = Column(String, nullable=True)
    pickup_date = Column(Date, nullable=True)
    pickup_ready_time = Column(String(4), nullable=True)  # HHMM
    pickup_close_time = Column(String(4), nullable=True)  # HHMM

    # Returns
    return_reason = Column(String, nullable=True)
    original_shipment_id = Column(Integer, ForeignKey("shipments.id"), nullable=True)
    return_shipment_id = Column(Integer, nullable=True)

    order = relationship("Order", back_populates="shipments", foreign_keys=[order_id])
    items = relationship("ShipmentItem", back_populates="shipment", cascade="all, delete-orphan")

    @property
    def has_pickup(self) -> bool:
        return self.pickup_request_number is not None

    def __repr__(self):
        return f"<Shipment {self.id}: {self.carrier} - {self.tracking_number} ({self.status})>"


class ShipmentItem(Base):
    """Which order items travel in which shipment"""
    __tablename__ = "shipment_items"

    id = Column(Integer, primary_key=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id"), nullable=False, index=True)
    order_item_id = Column(String(36), ForeignKey("order_items.id"), nullable=False, index=True)
    quantity_shipped = Column(Integer, nullable=False)

    shipment = relationship("Shipment", back_populates="items")
    order_item = relationship("OrderItem")

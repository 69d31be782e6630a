"""
Shared enums and constants used across the application.
"""

from enum import Enum


class OrderItemStatus(str, Enum):
    """Lifecycle of a single order line item"""
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    EXCEPTION = "exception"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    RETURNED = "returned"


class ShipmentStatus(str, Enum):
    """Shipment status enum"""
    PENDING = "pending"
    CREATED = "created"
    PICKUP_SCHEDULED = "pickup_scheduled"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    EXCEPTION = "exception"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class RefundReason(str, Enum):
    SELLER_REJECTED = "seller_rejected"
    CUSTOMER_REQUESTED = "customer_requested"
    OUT_OF_STOCK = "out_of_stock"
    QUALITY_ISSUE = "quality_issue"
    DAMAGED_ITEM = "damaged_item"
    WRONG_ITEM = "wrong_item"
    OTHER = "other"


class RefundStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


class TransactionType(str, Enum):
    PAYMENT = "payment"
    REFUND = "refund"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PayoutStatus(str, Enum):
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    PAID = "paid"
    FAILED = "failed"
    VOIDED = "voided"


def enum_values(enum_cls):
    """Persist enum values ("pending_approval") rather than member names."""
    return [member.value for member in enum_cls]

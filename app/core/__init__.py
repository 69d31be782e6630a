"""
Core module exports.
"""
from .enums import (
    OrderItemStatus,
    ShipmentStatus,
    RefundReason,
    RefundStatus,
    TransactionType,
    TransactionStatus,
    PayoutStatus,
)

from .exceptions import (
    BaseServiceError,
    ValidationError,
    NotFoundError,
    IllegalStateError,
    InsufficientStockError,
    AlreadyRefundedError,
    AlreadyPaidError,
    NonPositivePayoutError,
    ExternalServiceError,
    CarrierError,
    PaymentProcessorError,
    ReconciliationGapError,
)

"""
Schema exports for the application.
"""

# Base schemas
from .base import BaseSchema

# Order schemas
from .order import (
    ShippingAddress,
    CheckoutLine,
    QuoteRequest,
    CheckoutRequest,
    OrderItemRead,
    OrderRead,
    ItemTransitionResponse,
)

from .refund import RefundRequest, RefundRead
from .payout import PayoutRequest, PayoutBreakdown, PayoutRead
from .shipment import (
    CreateShipmentRequest,
    PickupRequest,
    ReturnRequest,
    CarrierEventRequest,
    ShipmentRead,
)
from .commission import CommissionUpdate, CommissionRead

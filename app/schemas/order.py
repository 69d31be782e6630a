"""
Schemas for checkout, quotes and order items.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.enums import OrderItemStatus
from app.schemas.base import BaseSchema


class ShippingAddress(BaseModel):
    """Buyer's delivery address, stored as JSON on the order"""
    name: str
    line1: str
    city: str
    state: str
    postal_code: str
    country: str = "US"
    phone: Optional[str] = None

    @field_validator('name', 'line1', 'city', 'state', 'postal_code', 'country')
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Address fields cannot be blank')
        return v.strip()


class CheckoutLine(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1)
    retip_added: bool = False


class QuoteRequest(BaseModel):
    items: List[CheckoutLine]
    shipping_cost: Decimal = Decimal("0")


class CheckoutRequest(BaseModel):
    buyer_id: str
    buyer_name: Optional[str] = None
    buyer_email: Optional[str] = None
    items: List[CheckoutLine]
    shipping_address: ShippingAddress
    payment_intent_id: str
    shipping_cost: Decimal = Decimal("0")


class OrderItemRead(BaseSchema):
    id: str
    order_id: str
    product_id: int
    title: str
    quantity: int
    price: Decimal
    retip_added: bool
    retip_price: Decimal
    platform_commission: Decimal
    order_status: OrderItemStatus
    payment_status: bool
    seller_paid: bool


class OrderRead(BaseSchema):
    id: str
    buyer_id: str
    buyer_name: Optional[str] = None
    buyer_email: Optional[str] = None
    subtotal: Decimal
    retip_total: Decimal
    tax_amount: Decimal
    platform_fee: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    payment_intent_id: Optional[str] = None
    payment_completed: bool
    requires_retipping: bool
    shipping_address: dict
    tracking_number: Optional[str] = None
    carrier_shipment_id: Optional[str] = None
    order_date: Optional[datetime] = None
    items: List[OrderItemRead] = []


class ItemTransitionResponse(BaseModel):
    success: bool = True
    item_id: str
    order_status: OrderItemStatus
    message: str

    model_config = ConfigDict(from_attributes=True)

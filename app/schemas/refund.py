"""
Refund schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from app.core.enums import RefundReason, RefundStatus
from app.schemas.base import BaseSchema


class RefundRequest(BaseModel):
    order_item_id: str
    reason: RefundReason
    notes: Optional[str] = None
    initiated_by: Optional[str] = None


class RefundRead(BaseSchema):
    id: str
    order_id: str
    order_item_id: str
    stripe_refund_id: str
    stripe_payment_intent_id: str
    refund_amount: Decimal
    item_price: Decimal
    item_quantity: int
    retip_refund_amount: Decimal
    reason: RefundReason
    status: RefundStatus
    initiated_by: Optional[str] = None
    notes: Optional[str] = None
    processed_date: Optional[datetime] = None

"""
Payout schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from app.core.enums import PayoutStatus
from app.schemas.base import BaseSchema


class PayoutRequest(BaseModel):
    order_item_id: str
    initiated_by: Optional[str] = None


class PayoutBreakdown(BaseModel):
    """Money split for one order item, before anything is transferred"""
    order_item_id: str
    item_total: Decimal
    commission_rate: Decimal
    commission: Decimal
    gross_payout: Decimal
    processor_fee: Decimal
    net_payout: Decimal


class PayoutRead(BaseSchema):
    id: str
    order_item_id: str
    seller_id: int
    stripe_account_id: str
    stripe_transfer_id: Optional[str] = None
    gross_amount: Decimal
    commission_amount: Decimal
    fee_amount: Decimal
    net_amount: Decimal
    status: PayoutStatus
    description: Optional[str] = None
    initiated_by: Optional[str] = None
    processed_at: Optional[datetime] = None

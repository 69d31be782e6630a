"""
Shipment schemas
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from app.core.enums import ShipmentStatus
from app.schemas.base import BaseSchema


class CreateShipmentRequest(BaseModel):
    order_id: str
    seller_id: int
    order_item_ids: Optional[List[str]] = None
    service_code: str = "03"  # UPS Ground


class PickupRequest(BaseModel):
    pickup_date: date
    ready_time: str = Field("0900", description="HHMM")
    close_time: str = Field("1700", description="HHMM")

    @field_validator('ready_time', 'close_time', mode='before')
    @classmethod
    def normalise_time(cls, v):
        """Accept "09:00" or "0900"."""
        v = str(v).replace(":", "").strip()
        if len(v) != 4 or not v.isdigit():
            raise ValueError('Times must be HHMM')
        if int(v[:2]) > 23 or int(v[2:]) > 59:
            raise ValueError('Times must be a valid HHMM')
        return v


class ReturnRequest(BaseModel):
    reason: str


class CarrierEventRequest(BaseModel):
    """A raw carrier status code, e.g. from a carrier webhook"""
    status_code: str
    description: Optional[str] = None


class ShipmentItemRead(BaseSchema):
    order_item_id: str
    quantity_shipped: int


class ShipmentRead(BaseSchema):
    id: int
    order_id: str
    seller_id: int
    carrier: str
    service_code: Optional[str] = None
    carrier_shipment_id: Optional[str] = None
    tracking_number: Optional[str] = None
    status: ShipmentStatus
    weight: Optional[float] = None
    dimensions: Optional[Dict[str, Any]] = None
    shipper_address: Optional[Dict[str, Any]] = None
    shipping_address: Optional[Dict[str, Any]] = None
    pickup_request_number: Optional[str] = None
    pickup_date: Optional[date] = None
    pickup_ready_time: Optional[str] = None
    pickup_close_time: Optional[str] = None
    return_reason: Optional[str] = None
    original_shipment_id: Optional[int] = None
    return_shipment_id: Optional[int] = None
    actual_delivery_date: Optional[datetime] = None
    items: List[ShipmentItemRead] = []

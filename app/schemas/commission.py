"""
Commission schemas
"""
from decimal import Decimal

from pydantic import BaseModel, Field

from app.schemas.base import BaseSchema


class CommissionUpdate(BaseModel):
    category: str
    commission_rate: Decimal = Field(..., ge=0, le=100)


class CommissionRead(BaseSchema):
    id: int
    category: str
    commission_rate: Decimal

# app/models/commission.py
from sqlalchemy import Column, Integer, String, Numeric, CheckConstraint, TIMESTAMP
from sqlalchemy.sql import func

from app.database import Base


class Commission(Base):
    """Platform commission percentage per product category"""
    __tablename__ = "commissions"
    __table_args__ = (
        CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="ck_commissions_rate_range",
        ),
    )

    id = Column(Integer, primary_key=True)
    category = Column(String, unique=True, nullable=False, index=True)
    commission_rate = Column(Numeric(5, 2), nullable=False)  # percent, 0-100
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Commission {self.category}: {self.commission_rate}%>"

# app/models/seller.py
from sqlalchemy import Column, Integer, String, Boolean, JSON, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class Seller(Base):
    """A vendor on the marketplace. Ships from business_address, gets paid to stripe_account_id."""
    __tablename__ = "sellers"

    id = Column(Integer, primary_key=True)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), nullable=False)

    name = Column(String, nullable=False)
    company_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    business_address = Column(JSON, nullable=True)  # line1, city, state, postal_code, country

    # Stripe Connect
    stripe_account_id = Column(String, nullable=True, unique=True)
    payouts_enabled = Column(Boolean, default=False, nullable=False)

    products = relationship("Product", back_populates="seller")

    @property
    def display_name(self) -> str:
        return self.company_name or self.name

    def __repr__(self):
        return f"<Seller {self.id}: {self.display_name}>"

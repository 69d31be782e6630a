"""
Models for the sellable side of the marketplace.

A Product is a seller's stocked unit. Products may be grouped under a
ProductListing whose `stock` is a coarse counter of how many of its products
are still in stock; it is adjusted by one whenever a product crosses zero,
not by the number of units sold.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Float, Boolean, ForeignKey, CheckConstraint, TIMESTAMP,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class ProductListing(Base):
    __tablename__ = "product_listings"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_listings_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)

    seller_id = Column(Integer, ForeignKey("sellers.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    stock = Column(Integer, default=0, nullable=False)

    products = relationship("Product", back_populates="listing")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
    )

    # Primary Key and Timestamps
    id = Column(Integer, primary_key=True)
    created_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)

    seller_id = Column(Integer, ForeignKey("sellers.id"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("product_listings.id"), nullable=True, index=True)

    # Core Product Information
    title = Column(String, nullable=False)
    category = Column(String, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, default=0, nullable=False)

    # Status and Flags
    is_active = Column(Boolean, default=True, nullable=False)
    is_archived = Column(Boolean, default=False, nullable=False)
    requires_retipping = Column(Boolean, default=False, nullable=False)
    retip_price = Column(Numeric(10, 2), nullable=True)

    # Shipping (pounds / inches)
    weight = Column(Float, nullable=True)
    length = Column(Float, nullable=True)
    width = Column(Float, nullable=True)
    height = Column(Float, nullable=True)

    seller = relationship("Seller", back_populates="products")
    listing = relationship("ProductListing", back_populates="products")
    order_items = relationship("OrderItem", back_populates="product")

    def __repr__(self):
        return f"<Product {self.id}: {self.title} qty={self.quantity}>"

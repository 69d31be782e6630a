"""
Inventory ledger for marketplace products.

Stock moves only alongside an order item status change, so neither method
commits: both run inside the caller's transaction and roll back with it.

The listing counter is coarse. It drops by one when a product's quantity
lands on exactly zero and rises by one when a restore lifts a product off
zero, regardless of how many units moved.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from app.models.product import Product, ProductListing

logger = logging.getLogger(__name__)


@dataclass
class StockChange:
    product_id: int
    previous_quantity: int
    new_quantity: int
    listing_id: Optional[int] = None
    listing_delta: int = 0


class InventoryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load_product(self, product_id: int) -> Product:
        result = await self.db.execute(
            select(Product.id, Product.quantity, Product.listing_id).where(Product.id == product_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError(f"Product {product_id} not found")
        return row

    async def decrement(self, product_id: int, qty: int) -> StockChange:
        """
        Take qty units off a product.

        The guard lives in the UPDATE itself (quantity >= qty), so a concurrent
        decrement cannot push stock below zero.

        Raises:
            ValidationError: qty < 1
            NotFoundError: product does not exist
            InsufficientStockError: fewer than qty units on hand
        """
        if qty < 1:
            raise ValidationError("Quantity to decrement must be at least 1")

        result = await self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.quantity >= qty)
            .values(quantity=Product.quantity - qty)
            .returning(Product.quantity, Product.listing_id)
        )
        row = result.first()
        if row is None:
            current = await self._load_product(product_id)
            raise InsufficientStockError(
                f"Product {product_id} has {current.quantity} in stock, {qty} requested"
            )

        new_quantity, listing_id = row
        change = StockChange(
            product_id=product_id,
            previous_quantity=new_quantity + qty,
            new_quantity=new_quantity,
            listing_id=listing_id,
        )

        if new_quantity == 0 and listing_id is not None:
            listing_result = await self.db.execute(
                update(ProductListing)
                .where(ProductListing.id == listing_id, ProductListing.stock > 0)
                .values(stock=ProductListing.stock - 1)
            )
            if listing_result.rowcount == 1:
                change.listing_delta = -1
            else:
                logger.warning(
                    "Listing %s already at zero stock when product %s sold out",
                    listing_id, product_id,
                )

        logger.info(
            "Stock decremented for product %s: %s -> %s (listing delta %s)",
            product_id, change.previous_quantity, change.new_quantity, change.listing_delta,
        )
        return change

    async def restore(self, product_id: int, qty: int) -> StockChange:
        """
        Put qty units back on a product after a cancellation.

        Raises:
            ValidationError: qty < 1
            NotFoundError: product does not exist
        """
        if qty < 1:
            raise ValidationError("Quantity to restore must be at least 1")

        result = await self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(quantity=Product.quantity + qty)
            .returning(Product.quantity, Product.listing_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError(f"Product {product_id} not found")

        new_quantity, listing_id = row
        change = StockChange(
            product_id=product_id,
            previous_quantity=new_quantity - qty,
            new_quantity=new_quantity,
            listing_id=listing_id,
        )

        if change.previous_quantity == 0 and listing_id is not None:
            listing_result = await self.db.execute(
                update(ProductListing)
                .where(ProductListing.id == listing_id)
                .values(stock=ProductListing.stock + 1)
            )
            if listing_result.rowcount == 1:
                change.listing_delta = 1

        logger.info(
            "Stock restored for product %s: %s -> %s (listing delta %s)",
            product_id, change.previous_quantity, change.new_quantity, change.listing_delta,
        )
        return change

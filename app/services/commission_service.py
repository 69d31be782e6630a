"""
Commission rates per product category.

Read by checkout (platform fee) and payout settlement (seller's share);
maintained through the commissions routes.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.models.commission import Commission
from app.services.pricing import to_decimal

logger = logging.getLogger(__name__)


class CommissionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_rate(self, category: str) -> Decimal:
        """Commission percent for a category; NotFoundError when none is configured."""
        result = await self.db.execute(select(Commission).where(Commission.category == category))
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"No commission rate configured for category '{category}'")
        return to_decimal(row.commission_rate)

    async def get_rates(self, categories: Iterable[str]) -> Dict[str, Decimal]:
        """Rates for the given categories. Missing categories are simply absent."""
        categories = set(categories)
        if not categories:
            return {}
        result = await self.db.execute(select(Commission).where(Commission.category.in_(categories)))
        return {row.category: to_decimal(row.commission_rate) for row in result.scalars()}

    async def list_commissions(self) -> List[Commission]:
        result = await self.db.execute(select(Commission).order_by(Commission.category))
        return list(result.scalars())

    async def set_rate(self, category: str, rate) -> Commission:
        """Create or update the rate for a category."""
        category = (category or "").strip()
        if not category:
            raise ValidationError("Category is required")
        rate = to_decimal(rate)
        if rate < 0 or rate > 100:
            raise ValidationError("Commission rate must be between 0 and 100")

        try:
            result = await self.db.execute(select(Commission).where(Commission.category == category))
            row = result.scalar_one_or_none()
            if row is None:
                row = Commission(category=category, commission_rate=rate)
                self.db.add(row)
                logger.info("Commission for '%s' created at %s%%", category, rate)
            else:
                logger.info("Commission for '%s' changed %s%% -> %s%%", category, row.commission_rate, rate)
                row.commission_rate = rate
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return row

    async def delete_rate(self, category: str) -> None:
        result = await self.db.execute(select(Commission).where(Commission.category == category))
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"No commission rate configured for category '{category}'")
        try:
            await self.db.delete(row)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info("Commission for '%s' deleted", category)

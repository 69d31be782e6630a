from typing import AsyncGenerator
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import async_session
from app.services.payments.base import PaymentProcessor
from app.services.payments.factory import get_payment_processor
from app.services.shipping.base import BaseCarrier
from app.services.shipping.factory import get_carrier


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


def get_processor() -> PaymentProcessor:
    """Dependency for the payment processor (overridden in tests)."""
    return get_payment_processor()


async def get_shipping_carrier() -> AsyncGenerator[BaseCarrier, None]:
    """Dependency for the default carrier (overridden in tests).

    The carrier's HTTP client is closed once the request finishes.
    """
    carrier = get_carrier()
    try:
        yield carrier
    finally:
        await carrier.close()

"""
Stripe Payment Processor

Wraps the (blocking) stripe SDK. Each call runs in a worker thread so the
event loop is never held up by a Stripe round trip.

Stripe API Docs:
 - https://docs.stripe.com/api/refunds/create
 - https://docs.stripe.com/api/payment_intents/retrieve
 - https://docs.stripe.com/api/transfers/create
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import stripe

from app.core.config import get_settings
from app.core.exceptions import PaymentProcessorError
from app.services.payments.base import PaymentProcessor

logger = logging.getLogger(__name__)


class StripePaymentProcessor(PaymentProcessor):
    """Stripe + Stripe Connect implementation."""

    processor_name = "Stripe"
    processor_code = "stripe"

    def __init__(self, api_key: Optional[str] = None):
        settings = get_settings()
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.currency = settings.STRIPE_CURRENCY
        stripe.api_key = self.api_key
        stripe.max_network_retries = settings.STRIPE_MAX_NETWORK_RETRIES
        stripe.default_http_client = stripe.RequestsClient(timeout=settings.STRIPE_TIMEOUT)

    async def _call(self, operation: str, func, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(func, **kwargs)
        except stripe.StripeError as e:
            message = getattr(e, "user_message", None) or str(e)
            logger.error("Stripe %s failed: %s", operation, message)
            raise PaymentProcessorError(f"Stripe {operation} failed: {message}") from e

    async def create_refund(
        self,
        payment_intent_id: str,
        amount_cents: int,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = dict(
            payment_intent=payment_intent_id,
            amount=amount_cents,
            metadata=metadata or {},
        )
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        refund = await self._call("refund", stripe.Refund.create, **params)
        logger.info("Stripe refund %s created for %s (%s cents)", refund.id, payment_intent_id, amount_cents)
        return {"id": refund.id, "status": refund.status, "amount": refund.amount}

    async def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        intent = await self._call("payment intent lookup", stripe.PaymentIntent.retrieve, id=payment_intent_id)
        return {"id": intent.id, "status": intent.status, "amount": intent.amount}

    async def create_transfer(
        self,
        destination_account_id: str,
        amount_cents: int,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = dict(
            amount=amount_cents,
            currency=self.currency,
            destination=destination_account_id,
            metadata=metadata or {},
        )
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        transfer = await self._call("transfer", stripe.Transfer.create, **params)
        logger.info("Stripe transfer %s created to %s (%s cents)", transfer.id, destination_account_id, amount_cents)
        return {"id": transfer.id, "amount": transfer.amount, "destination": transfer.destination}

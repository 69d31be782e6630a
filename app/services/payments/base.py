"""
Base Payment Processor Interface

Refunds, payment intent lookups and Connect transfers all go through this
interface so the order, refund and payout services never import a vendor SDK.

Every money-moving call accepts an idempotency key. Services derive the key
from the internal entity id ("refund-<item id>", "payout-<item id>") so that
re-running an operation after a crash cannot move money twice.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class PaymentProcessor(ABC):
    """Base class for payment processors"""

    processor_name = "Generic Processor"
    processor_code = "generic"

    @abstractmethod
    async def create_refund(
        self,
        payment_intent_id: str,
        amount_cents: int,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Partially refund a captured payment

        Returns:
            {"id": <refund id>, "status": <processor status>}
        """
        pass

    @abstractmethod
    async def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        """Look up a payment intent

        Returns:
            {"id": ..., "status": ..., "amount": <cents>}
        """
        pass

    @abstractmethod
    async def create_transfer(
        self,
        destination_account_id: str,
        amount_cents: int,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Move funds to a connected account

        Returns:
            {"id": <transfer id>, ...}
        """
        pass

"""
Payment processor factory, mirroring the shipping carrier factory
"""
from app.services.payments.base import PaymentProcessor
from app.services.payments.stripe_processor import StripePaymentProcessor


def get_payment_processor(processor_code: str = "stripe") -> PaymentProcessor:
    """
    Factory function to get the payment processor by code

    Raises:
        ValueError: If the processor code is not supported
    """
    processors = {
        "stripe": StripePaymentProcessor,
    }

    if processor_code not in processors:
        raise ValueError(f"Payment processor '{processor_code}' is not supported")

    return processors[processor_code]()

"""
Shipping carrier factory to make carrier selection easy
"""
from typing import Optional

from app.core.config import get_settings
from app.services.shipping.base import BaseCarrier
from app.services.shipping.carriers.ups import UPSCarrier


def get_carrier(carrier_code: Optional[str] = None) -> BaseCarrier:
    """
    Factory function to get the appropriate carrier by code

    Args:
        carrier_code: The code of the carrier to use (default: settings.DEFAULT_CARRIER)

    Returns:
        An instance of the appropriate carrier class

    Raises:
        ValueError: If the carrier code is not supported
    """
    carriers = {
        "ups": UPSCarrier,
    }

    carrier_code = (carrier_code or get_settings().DEFAULT_CARRIER).lower()
    if carrier_code not in carriers:
        raise ValueError(f"Carrier '{carrier_code}' is not supported")

    return carriers[carrier_code]()

"""
Base Carrier Interface

This module defines the abstract base class that all shipping carrier
implementations must implement.

Each carrier implementation provides standard methods for:
- Creating shipments (and labels)
- Tracking shipments
- Voiding shipments
- Scheduling and cancelling pickups

Every method raises CarrierError on failure, including timeouts. A method
that returns has had its effect at the carrier.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional


class BaseCarrier(ABC):
    """Base class for all shipping carriers"""

    carrier_name = "Generic Carrier"
    carrier_code = "generic"

    @abstractmethod
    async def create_shipment(self, shipment_details: Dict[str, Any]) -> Dict[str, Any]:
        """Create a shipment

        Args:
            shipment_details: Carrier-format shipment request

        Returns:
            {"shipment_id", "tracking_number", "label_data", "label_format", "raw"}
        """
        pass

    @abstractmethod
    async def track_shipment(self, tracking_number: str) -> Dict[str, Any]:
        """Track a shipment

        Args:
            tracking_number: Shipment tracking number

        Returns:
            {"status_code", "description", "activities": [...], "raw"}
            activities are newest first
        """
        pass

    @abstractmethod
    async def void_shipment(self, shipment_id: str, tracking_number: Optional[str] = None) -> Dict[str, Any]:
        """Void a shipment that has not been picked up"""
        pass

    @abstractmethod
    async def schedule_pickup(self, pickup_details: Dict[str, Any]) -> Dict[str, Any]:
        """Schedule a pickup

        Returns:
            {"pickup_request_number", "raw"}
        """
        pass

    @abstractmethod
    async def cancel_pickup(self, pickup_request_number: str) -> Dict[str, Any]:
        """Cancel a scheduled pickup"""
        pass

    async def close(self) -> None:
        """Release any transport the carrier holds open"""
        return None

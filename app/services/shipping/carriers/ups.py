"""
UPS Carrier Implementation

This module implements the UPS REST API integration.

Features:
- OAuth client-credentials token, cached until it expires
- Shipment creation (label returned as base64 GIF)
- Shipment tracking
- Shipment void
- Pickup scheduling and cancellation

UPS API Docs:
 - https://developer.ups.com/api/reference/oauth/client-credentials
 - https://developer.ups.com/api/reference/shipping/business-rules
 - https://developer.ups.com/api/reference/tracking/business-rules
 - https://developer.ups.com/api/reference/pickup/business-rules
"""

import base64
import logging
import time
import uuid
from typing import Any, Dict, Optional

import httpx

from app.core.config import get_settings
from app.core.exceptions import CarrierError
from app.services.shipping.base import BaseCarrier
from app.services.shipping.status_mapping import activity_status_code

logger = logging.getLogger(__name__)

SANDBOX_URL = "https://wwwcie.ups.com"
PRODUCTION_URL = "https://onlinetools.ups.com"

SHIPMENT_API_VERSION = "v2409"
PICKUP_API_VERSION = "v2409"

# UPS void response codes -> what the seller should be told
VOID_ERROR_MESSAGES = {
    "190101": "Shipment not found or has already been voided.",
    "190102": "This shipment is outside the allowed void period. Shipments can only be voided "
              "on the day they were created or before pickup.",
    "190103": "This shipment has already been picked up and cannot be voided. "
              "Create a return shipment instead.",
    "190104": "This shipment has already been delivered and cannot be voided.",
}


class UPSCarrier(BaseCarrier):
    """UPS carrier implementation."""

    carrier_name = "UPS"
    carrier_code = "ups"

    # Token cache shared by all instances (one set of credentials per process)
    _token: Optional[str] = None
    _token_expires_at: float = 0.0

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        """Initialize the UPS carrier.

        Args:
            client: Optional preconfigured httpx client (tests inject a mock transport)
        """
        settings = get_settings()

        self.client_id = settings.UPS_CLIENT_ID
        self.client_secret = settings.UPS_CLIENT_SECRET
        self.account_number = settings.UPS_ACCOUNT_NUMBER
        self.timeout = settings.CARRIER_TIMEOUT
        self.transaction_src = "marketplace"

        # Sandbox unless running in production, unless explicitly overridden
        self.base_url = settings.UPS_API_BASE_URL or (
            PRODUCTION_URL if settings.is_production else SANDBOX_URL
        )
        self._client = client

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_access_token(self) -> str:
        """Get (or reuse) an OAuth access token"""
        if UPSCarrier._token and time.monotonic() < UPSCarrier._token_expires_at:
            return UPSCarrier._token

        credentials = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        try:
            response = await self._http().post(
                "/security/v1/oauth/token",
                data={"grant_type": "client_credentials"},
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Authorization": f"Basic {credentials}",
                },
            )
        except httpx.TimeoutException as e:
            raise CarrierError("UPS authentication timed out") from e
        except httpx.HTTPError as e:
            raise CarrierError(f"UPS authentication failed: {e}") from e

        if response.status_code != 200:
            logger.error("UPS OAuth error %s: %s", response.status_code, response.text)
            raise CarrierError("Failed to authenticate with UPS API")

        data = response.json()
        expires_in = int(data.get("expires_in", 3600))
        UPSCarrier._token = data["access_token"]
        # Refresh a minute early
        UPSCarrier._token_expires_at = time.monotonic() + max(expires_in - 60, 0)
        return UPSCarrier._token

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        trans_id: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        token = await self._get_access_token()
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
            "transId": trans_id[:32],
            "transactionSrc": self.transaction_src,
        }
        if extra_headers:
            headers.update(extra_headers)

        try:
            return await self._http().request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("UPS %s timed out after %ss", operation, self.timeout)
            raise CarrierError(f"UPS {operation} timed out") from e
        except httpx.HTTPError as e:
            logger.error("UPS %s request failed: %s", operation, e)
            raise CarrierError(f"UPS {operation} failed: {e}") from e

    @staticmethod
    def _error_messages(response: httpx.Response) -> Dict[str, str]:
        """code -> message from a UPS error body"""
        try:
            errors = response.json().get("response", {}).get("errors", [])
        except ValueError:
            return {}
        return {str(e.get("code")): e.get("message", "") for e in errors}

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.status_code in (200, 201):
            return
        messages = self._error_messages(response)
        logger.error("UPS %s error %s: %s", operation, response.status_code, messages or response.text)
        detail = "; ".join(f"{code}: {msg}" for code, msg in messages.items()) or response.text
        raise CarrierError(f"UPS {operation} failed ({response.status_code}): {detail}")

    async def create_shipment(self, shipment_details: Dict[str, Any]) -> Dict[str, Any]:
        """Create a shipment with UPS

        Args:
            shipment_details: ShipmentRequest payload from UPSPayloadBuilder
        """
        reference = (
            shipment_details.get("ShipmentRequest", {})
            .get("Request", {})
            .get("TransactionReference", {})
            .get("CustomerContext", "")
        )
        response = await self._request(
            "POST",
            f"/api/shipments/{SHIPMENT_API_VERSION}/ship",
            "create shipment",
            trans_id=reference or uuid.uuid4().hex,
            json=shipment_details,
        )
        self._raise_for_status(response, "create shipment")

        data = response.json()
        results = data.get("ShipmentResponse", {}).get("ShipmentResults", {})
        shipment_id = results.get("ShipmentIdentificationNumber")
        packages = results.get("PackageResults") or []
        if isinstance(packages, dict):
            packages = [packages]
        first = packages[0] if packages else {}
        tracking_number = first.get("TrackingNumber") or shipment_id
        label = first.get("ShippingLabel", {})

        if not shipment_id:
            raise CarrierError("UPS did not return a shipment identification number")

        logger.info("UPS shipment created: %s (tracking %s)", shipment_id, tracking_number)
        return {
            "shipment_id": shipment_id,
            "tracking_number": tracking_number,
            "label_data": label.get("GraphicImage"),
            "label_format": label.get("ImageFormat", {}).get("Code"),
            "raw": data,
        }

    async def track_shipment(self, tracking_number: str) -> Dict[str, Any]:
        """Track a shipment by its tracking number"""
        response = await self._request(
            "GET",
            f"/api/track/v1/details/{tracking_number}",
            "tracking",
            trans_id=f"track-{uuid.uuid4().hex[:20]}",
            params={"locale": "en_US", "returnSignature": "false"},
        )
        self._raise_for_status(response, "tracking")

        data = response.json()
        shipments = data.get("trackResponse", {}).get("shipment") or [{}]
        packages = shipments[0].get("package") or [{}]
        activities = packages[0].get("activity") or []

        latest = activities[0] if activities else {}
        return {
            "status_code": activity_status_code(latest) if latest else None,
            "description": (latest.get("status") or {}).get("description"),
            "activities": [
                {
                    "code": activity_status_code(a),
                    "description": (a.get("status") or {}).get("description"),
                    "date": a.get("date"),
                    "time": a.get("time"),
                    "location": (a.get("location") or {}).get("address", {}).get("city"),
                }
                for a in activities
            ],
            "raw": data,
        }

    async def void_shipment(self, shipment_id: str, tracking_number: Optional[str] = None) -> Dict[str, Any]:
        """Void a shipment. UPS void codes become readable CarrierError messages."""
        params = {"trackingnumber": tracking_number} if tracking_number else None
        response = await self._request(
            "DELETE",
            f"/api/shipments/{SHIPMENT_API_VERSION}/void/cancel/{shipment_id}",
            "void shipment",
            trans_id=f"void-{shipment_id}",
            params=params,
        )
        if response.status_code not in (200, 201):
            messages = self._error_messages(response)
            for code, message in VOID_ERROR_MESSAGES.items():
                if code in messages:
                    logger.error("UPS void of %s refused (%s)", shipment_id, code)
                    raise CarrierError(message)
            self._raise_for_status(response, "void shipment")

        logger.info("UPS shipment %s voided", shipment_id)
        return {"shipment_id": shipment_id, "voided": True, "raw": response.json()}

    async def schedule_pickup(self, pickup_details: Dict[str, Any]) -> Dict[str, Any]:
        """Schedule a pickup

        Args:
            pickup_details: PickupCreationRequest payload from UPSPayloadBuilder
        """
        response = await self._request(
            "POST",
            f"/api/pickupcreation/{PICKUP_API_VERSION}/pickup",
            "schedule pickup",
            trans_id=f"pickup-{uuid.uuid4().hex[:20]}",
            json=pickup_details,
        )
        self._raise_for_status(response, "schedule pickup")

        data = response.json()
        prn = data.get("PickupCreationResponse", {}).get("PRN")
        if not prn:
            raise CarrierError("UPS did not return a pickup request number")
        logger.info("UPS pickup scheduled: PRN %s", prn)
        return {"pickup_request_number": prn, "raw": data}

    async def cancel_pickup(self, pickup_request_number: str) -> Dict[str, Any]:
        """Cancel a pickup by its PRN"""
        response = await self._request(
            "DELETE",
            f"/api/shipments/{PICKUP_API_VERSION}/pickup/02",  # 02 = cancel by PRN
            "cancel pickup",
            trans_id=f"cancel-pickup-{uuid.uuid4().hex[:16]}",
            extra_headers={"Prn": pickup_request_number},
        )
        self._raise_for_status(response, "cancel pickup")
        logger.info("UPS pickup %s cancelled", pickup_request_number)
        return {"pickup_request_number": pickup_request_number, "cancelled": True, "raw": response.json()}

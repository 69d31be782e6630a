# app/services/shipping/payload_builder.py
"""
UPS Payload Builder

Converts marketplace shipments (seller address, buyer address, aggregated
package) into UPS Shipping and Pickup API payloads.

Addresses are the JSON shape stored on orders and sellers:
    {name, line1, city, state, postal_code, country, phone}
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from app.core.exceptions import ValidationError

# UPS service codes
# See: https://developer.ups.com/api/reference/shipping/appendix
UPS_SERVICE_CODES = {
    '01': 'Next Day Air',
    '02': '2nd Day Air',
    '03': 'Ground',
    '12': '3 Day Select',
    '13': 'Next Day Air Saver',
    '14': 'UPS Next Day Air Early',
    '59': '2nd Day Air A.M.',
}

# Used when a product has no shipping data
DEFAULT_WEIGHT_LBS = 1.0
DEFAULT_DIMENSIONS = {"length": 10.0, "width": 8.0, "height": 6.0}

REQUIRED_ADDRESS_FIELDS = ("name", "line1", "city", "state", "postal_code")


@dataclass
class PackageDetails:
    """One physical package: pounds and inches"""
    weight: float
    length: float
    width: float
    height: float
    description: str = "Package"

    @property
    def dimensions(self) -> Dict[str, float]:
        return {"length": self.length, "width": self.width, "height": self.height}


def aggregate_package(lines: Iterable[Dict[str, Any]]) -> PackageDetails:
    """
    Combine order items into one package.

    Weight is summed (per-unit weight x quantity); each dimension is the
    largest seen across the items.

    Args:
        lines: dicts with weight, length, width, height (any may be None) and quantity
    """
    total_weight = 0.0
    dims = {"length": 0.0, "width": 0.0, "height": 0.0}
    count = 0

    for line in lines:
        count += 1
        quantity = line.get("quantity") or 1
        total_weight += (line.get("weight") or DEFAULT_WEIGHT_LBS) * quantity
        for axis in dims:
            dims[axis] = max(dims[axis], line.get(axis) or DEFAULT_DIMENSIONS[axis])

    if count == 0:
        raise ValidationError("Cannot build a package with no items")

    return PackageDetails(
        weight=round(total_weight, 2),
        length=dims["length"],
        width=dims["width"],
        height=dims["height"],
    )


def clean_phone_number(phone: Optional[str]) -> str:
    digits = re.sub(r"\D", "", phone or "")
    return digits[-10:] if len(digits) >= 10 else (digits or "0000000000")


def validate_address(address: Optional[Dict[str, Any]], label: str) -> Dict[str, Any]:
    if not address:
        raise ValidationError(f"{label} address is missing")
    missing = [f for f in REQUIRED_ADDRESS_FIELDS if not address.get(f)]
    if missing:
        raise ValidationError(f"{label} address is missing: {', '.join(missing)}")
    return address


class UPSPayloadBuilder:
    """Builds UPS API payloads"""

    def __init__(self, account_number: str):
        self.account_number = account_number

    def _party(self, address: Dict[str, Any], include_shipper_number: bool = False) -> Dict[str, Any]:
        party = {
            "Name": address["name"][:35],
            "AttentionName": (address.get("attention_name") or address["name"])[:35],
            "Phone": {"Number": clean_phone_number(address.get("phone"))},
            "Address": {
                "AddressLine": [address["line1"]] + ([address["line2"]] if address.get("line2") else []),
                "City": address["city"],
                "StateProvinceCode": address["state"],
                "PostalCode": address["postal_code"],
                "CountryCode": address.get("country") or "US",
            },
        }
        if include_shipper_number:
            party["ShipperNumber"] = self.account_number
        return party

    def build_shipment(
        self,
        reference: str,
        shipper: Dict[str, Any],
        ship_to: Dict[str, Any],
        package: PackageDetails,
        service_code: str = "03",
        is_return: bool = False,
    ) -> Dict[str, Any]:
        """
        Build a ShipmentRequest.

        Args:
            reference: Our reference, echoed back by UPS (order id, return id)
            shipper: Who the package ships from
            ship_to: Who receives it
            package: Aggregated package
            service_code: UPS service code (default 03 = Ground)
            is_return: Mark the shipment as a return (print return label)
        """
        validate_address(shipper, "Shipper")
        validate_address(ship_to, "Recipient")
        if service_code not in UPS_SERVICE_CODES:
            raise ValidationError(f"Unsupported UPS service code '{service_code}'")

        shipment = {
            "Description": package.description,
            "Shipper": self._party(shipper, include_shipper_number=True),
            "ShipTo": self._party(ship_to),
            "ShipFrom": self._party(shipper),
            "PaymentInformation": {
                "ShipmentCharge": {
                    "Type": "01",  # Transportation
                    "BillShipper": {"AccountNumber": self.account_number},
                },
            },
            "Service": {"Code": service_code, "Description": UPS_SERVICE_CODES[service_code]},
            "Package": [{
                "Description": package.description,
                "Packaging": {"Code": "02"},  # Customer supplied
                "Dimensions": {
                    "UnitOfMeasurement": {"Code": "IN"},
                    "Length": f"{package.length:g}",
                    "Width": f"{package.width:g}",
                    "Height": f"{package.height:g}",
                },
                "PackageWeight": {
                    "UnitOfMeasurement": {"Code": "LBS"},
                    "Weight": f"{package.weight:g}",
                },
                "ReferenceNumber": {"Code": "02", "Value": reference[:35]},
            }],
        }
        if is_return:
            shipment["ReturnService"] = {"Code": "9"}  # Print return label

        return {
            "ShipmentRequest": {
                "Request": {
                    "RequestOption": "nonvalidate",
                    "TransactionReference": {"CustomerContext": reference},
                },
                "Shipment": shipment,
                "LabelSpecification": {
                    "LabelImageFormat": {"Code": "GIF"},
                    "HTTPUserAgent": "Mozilla/4.5",
                },
            }
        }

    def build_pickup(
        self,
        address: Dict[str, Any],
        pickup_date: date,
        ready_time: str,
        close_time: str,
        weight: float,
        reference: str,
        service_code: str = "03",
    ) -> Dict[str, Any]:
        """Build a PickupCreationRequest. Times are HHMM."""
        validate_address(address, "Pickup")
        return {
            "PickupCreationRequest": {
                "RatePickupIndicator": "N",
                "Shipper": {"Account": {"AccountNumber": self.account_number, "AccountCountryCode": "US"}},
                "PickupDateInfo": {
                    "CloseTime": close_time,
                    "ReadyTime": ready_time,
                    "PickupDate": pickup_date.strftime("%Y%m%d"),
                },
                "PickupAddress": {
                    "CompanyName": address.get("company_name") or address["name"],
                    "ContactName": address["name"],
                    "AddressLine": address["line1"],
                    "City": address["city"],
                    "StateProvince": address["state"],
                    "PostalCode": address["postal_code"],
                    "CountryCode": address.get("country") or "US",
                    "ResidentialIndicator": "N",
                    "Phone": {"Number": clean_phone_number(address.get("phone"))},
                },
                "AlternateAddressIndicator": "N",
                "PickupPiece": [{
                    "ServiceCode": f"0{service_code}" if len(service_code) == 2 else service_code,
                    "Quantity": "1",
                    "DestinationCountryCode": "US",
                    "ContainerCode": "01",
                }],
                "TotalWeight": {"Weight": f"{weight:g}", "UnitOfMeasurement": "LBS"},
                "OverweightIndicator": "N",
                "PaymentMethod": "01",
                "ReferenceNumber": reference[:35],
            }
        }

    def validate_payload(self, payload: Dict[str, Any]) -> List[str]:
        """Return a list of problems with a ShipmentRequest (empty when valid)."""
        errors = []
        shipment = payload.get("ShipmentRequest", {}).get("Shipment", {})
        if not shipment.get("Shipper", {}).get("ShipperNumber"):
            errors.append("Shipper account number is missing")
        for package in shipment.get("Package", []):
            if float(package.get("PackageWeight", {}).get("Weight") or 0) <= 0:
                errors.append("Package weight must be positive")
        if not shipment.get("Package"):
            errors.append("At least one package is required")
        return errors

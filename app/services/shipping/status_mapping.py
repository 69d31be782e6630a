"""
Carrier status code -> internal shipment status.

UPS reports an activity status type/code per tracking event. Only codes in
CARRIER_STATUS_MAP move a shipment; manifest codes (M, MP) and anything
unknown leave it where it is.
"""

from typing import Any, Dict, Optional

from app.core.enums import ShipmentStatus

CARRIER_STATUS_MAP: Dict[str, ShipmentStatus] = {
    "D": ShipmentStatus.DELIVERED,
    "I": ShipmentStatus.IN_TRANSIT,
    "AR": ShipmentStatus.IN_TRANSIT,
    "DP": ShipmentStatus.IN_TRANSIT,
    "OFD": ShipmentStatus.OUT_FOR_DELIVERY,
    "X": ShipmentStatus.EXCEPTION,
    "P": ShipmentStatus.SHIPPED,
}


def map_carrier_status(code: Optional[str]) -> Optional[ShipmentStatus]:
    if not code:
        return None
    return CARRIER_STATUS_MAP.get(code.strip().upper())


def activity_status_code(activity: Dict[str, Any]) -> Optional[str]:
    """
    Pick the code to map from one UPS activity.

    The detailed code wins when we know it (AR, DP, OFD); otherwise the
    broad type (D, I, X, P, M).
    """
    status = activity.get("status") or {}
    code = (status.get("code") or "").strip().upper()
    if code in CARRIER_STATUS_MAP:
        return code
    status_type = (status.get("type") or "").strip().upper()
    return status_type or code or None

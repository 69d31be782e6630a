from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db, get_shipping_carrier
from app.schemas.shipment import (
    CarrierEventRequest,
    CreateShipmentRequest,
    PickupRequest,
    ReturnRequest,
    ShipmentRead,
)
from app.services.shipment_service import ShipmentService
from app.services.shipping.base import BaseCarrier

router = APIRouter(
    prefix="/shipping",
    tags=["shipping"],
    responses={404: {"description": "Not found"}},
)


def _service(db: AsyncSession, carrier: BaseCarrier) -> ShipmentService:
    return ShipmentService(db, carrier=carrier)


@router.post("/shipments", response_model=ShipmentRead, status_code=201)
async def create_shipment(
    request: CreateShipmentRequest,
    db: AsyncSession = Depends(get_db),
    carrier: BaseCarrier = Depends(get_shipping_carrier),
):
    """Ship a seller's approved items from an order."""
    shipment = await _service(db, carrier).create_shipment(
        request.order_id,
        request.seller_id,
        order_item_ids=request.order_item_ids,
        service_code=request.service_code,
    )
    return ShipmentRead.model_validate(shipment)


@router.post("/orders/{order_id}/shipments")
async def create_order_shipments(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    carrier: BaseCarrier = Depends(get_shipping_carrier),
) -> Dict[str, Any]:
    """One shipment per seller with approved items."""
    result = await _service(db, carrier).create_shipments_for_order(order_id)
    return {
        "order_id": order_id,
        "shipments": [ShipmentRead.model_validate(s).model_dump(mode="json") for s in result["shipments"]],
        "errors": result["errors"],
    }


@router.get("/orders/{order_id}/shipments", response_model=List[ShipmentRead])
async def list_order_shipments(order_id: str, db: AsyncSession = Depends(get_db)):
    shipments = await ShipmentService(db).list_shipments(order_id=order_id)
    return [ShipmentRead.model_validate(s) for s in shipments]


@router.get("/shipments/{shipment_id}", response_model=ShipmentRead)
async def get_shipment(shipment_id: int, db: AsyncSession = Depends(get_db)):
    return ShipmentRead.model_validate(await ShipmentService(db).get_shipment(shipment_id))


@router.post("/shipments/{shipment_id}/track")
async def track_shipment(
    shipment_id: int,
    db: AsyncSession = Depends(get_db),
    carrier: BaseCarrier = Depends(get_shipping_carrier),
) -> Dict[str, Any]:
    """Poll the carrier and apply the latest status."""
    return await _service(db, carrier).track_and_update(shipment_id)


@router.post("/shipments/{shipment_id}/events")
async def carrier_event(
    shipment_id: int,
    request: CarrierEventRequest,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Apply a carrier status code pushed to us (webhook or manual entry)."""
    return await ShipmentService(db).apply_carrier_status(shipment_id, request.status_code)


@router.post("/shipments/{shipment_id}/void", response_model=ShipmentRead)
async def void_shipment(
    shipment_id: int,
    db: AsyncSession = Depends(get_db),
    carrier: BaseCarrier = Depends(get_shipping_carrier),
):
    return ShipmentRead.model_validate(await _service(db, carrier).void_shipment(shipment_id))


@router.post("/shipments/{shipment_id}/return", response_model=ShipmentRead, status_code=201)
async def return_shipment(
    shipment_id: int,
    request: ReturnRequest,
    db: AsyncSession = Depends(get_db),
    carrier: BaseCarrier = Depends(get_shipping_carrier),
):
    shipment = await _service(db, carrier).handle_return(shipment_id, request.reason)
    return ShipmentRead.model_validate(shipment)


@router.post("/shipments/{shipment_id}/pickup", response_model=ShipmentRead)
async def schedule_pickup(
    shipment_id: int,
    request: PickupRequest,
    db: AsyncSession = Depends(get_db),
    carrier: BaseCarrier = Depends(get_shipping_carrier),
):
    shipment = await _service(db, carrier).schedule_pickup(
        shipment_id, request.pickup_date, request.ready_time, request.close_time
    )
    return ShipmentRead.model_validate(shipment)


@router.delete("/shipments/{shipment_id}/pickup", response_model=ShipmentRead)
async def cancel_pickup(
    shipment_id: int,
    db: AsyncSession = Depends(get_db),
    carrier: BaseCarrier = Depends(get_shipping_carrier),
):
    return ShipmentRead.model_validate(await _service(db, carrier).cancel_pickup(shipment_id))

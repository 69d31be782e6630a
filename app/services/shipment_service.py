"""
Shipment Service

Coordinates carrier shipments for approved order items.

One shipment carries one seller's approved items of one order. The carrier
is always called before anything is written locally; when the carrier call
fails nothing changes here. When the carrier call succeeds but the local
write fails, the carrier side is undone (void) where possible, and a
ReconciliationGapError is raised when it is not.

Status moves driven by the carrier are monotonic: a duplicate or older event
(in_transit after delivered) is ignored rather than applied.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import get_settings
from app.core.enums import OrderItemStatus, ShipmentStatus
from app.core.exceptions import (
    BaseServiceError,
    CarrierError,
    IllegalStateError,
    IllegalVoidError,
    NotFoundError,
    ReconciliationGapError,
    ValidationError,
)
from app.models.order import Order, OrderItem
from app.models.product import Product
from app.models.seller import Seller
from app.models.shipping import Shipment, ShipmentItem
from app.services.order_state import (
    SHIPMENT_IN_FLIGHT,
    SHIPMENT_TO_ITEM_STATUS,
    is_forward,
    is_shipment_forward,
)
from app.services.shipping.base import BaseCarrier
from app.services.shipping.factory import get_carrier
from app.services.shipping.payload_builder import UPSPayloadBuilder, aggregate_package, validate_address
from app.services.shipping.status_mapping import map_carrier_status

logger = logging.getLogger(__name__)

# Once the carrier has the package a void is no longer possible
NON_VOIDABLE = frozenset({
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY,
    ShipmentStatus.DELIVERED,
    ShipmentStatus.RETURNED,
    ShipmentStatus.CANCELLED,
})

# Item statuses a voided shipment sends back to approved
VOID_REVERTIBLE = (OrderItemStatus.PROCESSING, OrderItemStatus.SHIPPED, OrderItemStatus.EXCEPTION)


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def seller_address(seller: Seller) -> Dict[str, Any]:
    """Seller's business address in the shape the payload builder expects."""
    address = dict(seller.business_address or {})
    address.setdefault("name", seller.display_name)
    address.setdefault("company_name", seller.company_name or seller.name)
    address.setdefault("phone", seller.phone)
    return validate_address(address, f"Seller {seller.id}")


class ShipmentService:
    def __init__(self, db: AsyncSession, carrier: Optional[BaseCarrier] = None):
        self.db = db
        self._carrier = carrier
        self.settings = get_settings()

    @property
    def carrier(self) -> BaseCarrier:
        if self._carrier is None:
            self._carrier = get_carrier()
        return self._carrier

    @property
    def builder(self) -> UPSPayloadBuilder:
        return UPSPayloadBuilder(account_number=self.settings.UPS_ACCOUNT_NUMBER)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_shipment(self, shipment_id: int) -> Shipment:
        result = await self.db.execute(
            select(Shipment)
            .options(
                selectinload(Shipment.items).selectinload(ShipmentItem.order_item),
                selectinload(Shipment.order),
            )
            .where(Shipment.id == shipment_id)
            .execution_options(populate_existing=True)
        )
        shipment = result.scalar_one_or_none()
        if shipment is None:
            raise NotFoundError(f"Shipment {shipment_id} not found")
        return shipment

    async def list_shipments(self, order_id: Optional[str] = None) -> List[Shipment]:
        query = select(Shipment).options(selectinload(Shipment.items)).order_by(Shipment.id)
        if order_id:
            query = query.where(Shipment.order_id == order_id)
        result = await self.db.execute(query)
        return list(result.scalars())

    async def _load_order(self, order_id: str) -> Order:
        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.items).selectinload(OrderItem.product))
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_shipment(
        self,
        order_id: str,
        seller_id: int,
        order_item_ids: Optional[List[str]] = None,
        service_code: str = "03",
    ) -> Shipment:
        """
        Ship a seller's approved items from an order.

        Raises:
            NotFoundError: order or seller missing
            ValidationError: items still awaiting approval, nothing to ship, bad addresses
            CarrierError: carrier refused or timed out (nothing written)
        """
        order = await self._load_order(order_id)
        seller = await self.db.get(Seller, seller_id)
        if seller is None:
            raise NotFoundError(f"Seller {seller_id} not found")

        seller_items = [item for item in order.items if item.product and item.product.seller_id == seller_id]
        if not seller_items:
            raise ValidationError(f"Order {order_id} has no items from seller {seller_id}")

        pending = [item.id for item in seller_items if item.order_status == OrderItemStatus.PENDING_APPROVAL]
        if pending:
            raise ValidationError(
                f"Order {order_id} still has items awaiting seller approval: {', '.join(pending)}"
            )

        approved = [item for item in seller_items if item.order_status == OrderItemStatus.APPROVED]
        if order_item_ids:
            wanted = set(order_item_ids)
            unknown = wanted - {item.id for item in approved}
            if unknown:
                raise ValidationError(
                    f"Items not approved for shipping from seller {seller_id}: {', '.join(sorted(unknown))}"
                )
            approved = [item for item in approved if item.id in wanted]
        if not approved:
            raise ValidationError(f"No approved items to ship for order {order_id} from seller {seller_id}")

        package = aggregate_package(
            {
                "weight": item.product.weight,
                "length": item.product.length,
                "width": item.product.width,
                "height": item.product.height,
                "quantity": item.quantity,
            }
            for item in approved
        )
        shipper = seller_address(seller)
        ship_to = validate_address(order.shipping_address, "Buyer")
        reference = f"shipment-{order.id}-{seller_id}"
        payload = self.builder.build_shipment(reference, shipper, ship_to, package, service_code=service_code)

        carrier_result = await self.carrier.create_shipment(payload)

        try:
            shipment = Shipment(
                order_id=order.id,
                seller_id=seller_id,
                carrier=self.carrier.carrier_code,
                service_code=service_code,
                carrier_shipment_id=carrier_result["shipment_id"],
                tracking_number=carrier_result["tracking_number"],
                status=ShipmentStatus.CREATED,
                weight=package.weight,
                dimensions=package.dimensions,
                shipper_address=shipper,
                shipping_address=ship_to,
                label_data=carrier_result.get("label_data"),
                label_format=carrier_result.get("label_format"),
                carrier_response={"reference": reference},
                tracking_events=[],
            )
            shipment.items = [
                ShipmentItem(order_item_id=item.id, quantity_shipped=item.quantity) for item in approved
            ]
            self.db.add(shipment)

            order.tracking_number = carrier_result["tracking_number"]
            order.carrier_shipment_id = carrier_result["shipment_id"]

            item_ids = [item.id for item in approved]
            moved = await self.db.execute(
                update(OrderItem)
                .where(OrderItem.id.in_(item_ids), OrderItem.order_status == OrderItemStatus.APPROVED)
                .values(order_status=OrderItemStatus.PROCESSING)
            )
            if moved.rowcount != len(item_ids):
                raise IllegalStateError(
                    f"Items of order {order_id} changed while the shipment was being created"
                )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            await self._compensate_void(carrier_result, order_id, e)
            raise

        logger.info(
            "Shipment %s created for order %s seller %s: %s items, tracking %s",
            shipment.id, order_id, seller_id, len(approved), carrier_result["tracking_number"],
        )
        return await self.get_shipment(shipment.id)

    async def _compensate_void(self, carrier_result: Dict[str, Any], context: str, cause: Exception) -> None:
        """Undo a carrier shipment whose local record could not be written."""
        shipment_id = carrier_result.get("shipment_id")
        try:
            await self.carrier.void_shipment(shipment_id, carrier_result.get("tracking_number"))
            logger.warning("Carrier shipment %s voided after local failure for %s: %s", shipment_id, context, cause)
        except CarrierError as void_error:
            logger.error(
                "Carrier shipment %s for %s exists without a local record and could not be voided: %s",
                shipment_id, context, void_error,
            )
            raise ReconciliationGapError(
                f"Carrier shipment {shipment_id} was created but could not be recorded or voided",
                external_id=shipment_id,
            ) from cause

    async def create_shipments_for_order(self, order_id: str, service_code: str = "03") -> Dict[str, Any]:
        """
        One shipment per seller that has approved items on the order.

        A failure for one seller does not stop the others; it is reported in
        the result.
        """
        order = await self._load_order(order_id)
        seller_ids = sorted({
            item.product.seller_id
            for item in order.items
            if item.product and item.order_status == OrderItemStatus.APPROVED
        })
        if not seller_ids:
            raise ValidationError(f"Order {order_id} has no approved items to ship")

        created_ids, errors = [], []
        for seller_id in seller_ids:
            try:
                shipment = await self.create_shipment(order_id, seller_id, service_code=service_code)
                created_ids.append(shipment.id)
            except BaseServiceError as e:
                logger.error("Shipment for order %s seller %s failed: %s", order_id, seller_id, e.message)
                errors.append({"seller_id": seller_id, "error": type(e).__name__, "message": e.message})

        # A later rollback expires earlier rows, so reload them
        created = [await self.get_shipment(shipment_id) for shipment_id in created_ids]
        return {"order_id": order_id, "shipments": created, "errors": errors}

    # ------------------------------------------------------------------
    # Pickups
    # ------------------------------------------------------------------

    async def schedule_pickup(
        self,
        shipment_id: int,
        pickup_date: date,
        ready_time: str = "0900",
        close_time: str = "1700",
    ) -> Shipment:
        """Schedule a carrier pickup. All four pickup fields are set together."""
        shipment = await self.get_shipment(shipment_id)
        if shipment.status != ShipmentStatus.CREATED:
            raise IllegalStateError(
                f"Pickup can only be scheduled for a created shipment (shipment {shipment_id} is "
                f"'{shipment.status.value}')"
            )
        if ready_time >= close_time:
            raise ValidationError("Pickup ready time must be before close time")
        if pickup_date < date.today():
            raise ValidationError("Pickup date cannot be in the past")

        payload = self.builder.build_pickup(
            shipment.shipper_address,
            pickup_date,
            ready_time,
            close_time,
            weight=shipment.weight or 1.0,
            reference=f"pickup-{shipment.id}",
            service_code=shipment.service_code or "03",
        )
        result = await self.carrier.schedule_pickup(payload)
        prn = result["pickup_request_number"]

        try:
            moved = await self.db.execute(
                update(Shipment)
                .where(Shipment.id == shipment.id, Shipment.status == ShipmentStatus.CREATED)
                .values(
                    status=ShipmentStatus.PICKUP_SCHEDULED,
                    pickup_request_number=prn,
                    pickup_date=pickup_date,
                    pickup_ready_time=ready_time,
                    pickup_close_time=close_time,
                )
            )
            if moved.rowcount == 0:
                raise IllegalStateError(f"Shipment {shipment_id} changed while the pickup was being scheduled")
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            try:
                await self.carrier.cancel_pickup(prn)
            except CarrierError as cancel_error:
                logger.error("Pickup %s for shipment %s could not be cancelled: %s", prn, shipment_id, cancel_error)
                raise ReconciliationGapError(
                    f"Pickup {prn} was scheduled but could not be recorded or cancelled",
                    external_id=prn,
                ) from e
            raise

        logger.info("Pickup %s scheduled for shipment %s on %s", prn, shipment_id, pickup_date)
        return await self.get_shipment(shipment_id)

    async def cancel_pickup(self, shipment_id: int) -> Shipment:
        """Cancel a scheduled pickup; all four pickup fields are cleared together."""
        shipment = await self.get_shipment(shipment_id)
        if not shipment.has_pickup or shipment.status != ShipmentStatus.PICKUP_SCHEDULED:
            raise IllegalStateError(f"Shipment {shipment_id} has no scheduled pickup to cancel")

        prn = shipment.pickup_request_number
        await self.carrier.cancel_pickup(prn)

        try:
            await self._clear_pickup(shipment.id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.error("Pickup %s cancelled at carrier but shipment %s was not updated", prn, shipment_id)
            raise

        logger.info("Pickup %s cancelled for shipment %s", prn, shipment_id)
        return await self.get_shipment(shipment_id)

    async def _clear_pickup(self, shipment_id: int) -> None:
        await self.db.execute(
            update(Shipment)
            .where(Shipment.id == shipment_id)
            .values(
                status=ShipmentStatus.CREATED,
                pickup_request_number=None,
                pickup_date=None,
                pickup_ready_time=None,
                pickup_close_time=None,
            )
        )

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def _apply_status(self, shipment: Shipment, target: ShipmentStatus) -> bool:
        """
        Move a shipment and its items forward. No commit.

        Returns False (and changes nothing) when target is not forward of the
        shipment's current status.
        """
        current = shipment.status
        before_exception = shipment.pre_exception_status
        if not is_shipment_forward(current, target, before_exception):
            logger.debug("Shipment %s: ignoring %s while %s", shipment.id, target.value, current.value)
            return False

        values = {"status": target}
        if target == ShipmentStatus.EXCEPTION:
            values["pre_exception_status"] = current
        elif current == ShipmentStatus.EXCEPTION:
            values["pre_exception_status"] = None
        if target == ShipmentStatus.DELIVERED:
            values["actual_delivery_date"] = _now()

        moved = await self.db.execute(
            update(Shipment).where(Shipment.id == shipment.id, Shipment.status == current).values(**values)
        )
        if moved.rowcount == 0:
            logger.info("Shipment %s moved concurrently; %s not applied", shipment.id, target.value)
            return False

        item_target = SHIPMENT_TO_ITEM_STATUS.get(target)
        if item_target is not None:
            for shipment_item in shipment.items:
                item = shipment_item.order_item
                if item is None or not is_forward(item.order_status, item_target, item.pre_exception_status):
                    continue
                item_values = {"order_status": item_target}
                if item_target == OrderItemStatus.EXCEPTION:
                    item_values["pre_exception_status"] = item.order_status
                elif item.order_status == OrderItemStatus.EXCEPTION:
                    item_values["pre_exception_status"] = None
                await self.db.execute(
                    update(OrderItem)
                    .where(OrderItem.id == item.id, OrderItem.order_status == item.order_status)
                    .values(**item_values)
                )

        logger.info("Shipment %s: %s -> %s", shipment.id, current.value, target.value)
        return True

    async def apply_carrier_status(self, shipment_id: int, status) -> Dict[str, Any]:
        """
        Apply a carrier-reported status (internal status or raw carrier code).

        Unknown codes and non-forward statuses are no-ops.
        """
        target = _coerce_shipment_status(status)
        shipment = await self.get_shipment(shipment_id)
        if target is None:
            logger.info("Shipment %s: carrier code %r does not map to a status change", shipment_id, status)
            return {"shipment_id": shipment_id, "status": shipment.status.value, "changed": False}

        try:
            changed = await self._apply_status(shipment, target)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        shipment = await self.get_shipment(shipment_id)
        return {"shipment_id": shipment_id, "status": shipment.status.value, "changed": changed}

    async def track_and_update(self, shipment_id: int) -> Dict[str, Any]:
        """Poll the carrier and apply the latest tracking status."""
        shipment = await self.get_shipment(shipment_id)
        if not shipment.tracking_number:
            raise ValidationError(f"Shipment {shipment_id} has no tracking number")

        tracking = await self.carrier.track_shipment(shipment.tracking_number)
        code = tracking.get("status_code")
        target = map_carrier_status(code)

        try:
            await self.db.execute(
                update(Shipment)
                .where(Shipment.id == shipment.id)
                .values(tracking_events=tracking.get("activities") or [])
            )
            changed = await self._apply_status(shipment, target) if target else False
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        shipment = await self.get_shipment(shipment_id)
        return {
            "shipment_id": shipment_id,
            "tracking_number": shipment.tracking_number,
            "carrier_status_code": code,
            "description": tracking.get("description"),
            "status": shipment.status.value,
            "changed": changed,
        }

    async def refresh_in_flight(self) -> Dict[str, Any]:
        """Track every shipment the carrier may still move. One failure does not stop the sweep."""
        result = await self.db.execute(
            select(Shipment.id)
            .where(Shipment.status.in_(SHIPMENT_IN_FLIGHT), Shipment.tracking_number.is_not(None))
            .order_by(Shipment.id)
        )
        shipment_ids = list(result.scalars())

        updated, unchanged, errors = 0, 0, []
        for shipment_id in shipment_ids:
            try:
                outcome = await self.track_and_update(shipment_id)
            except BaseServiceError as e:
                logger.error("Tracking refresh for shipment %s failed: %s", shipment_id, e.message)
                errors.append({"shipment_id": shipment_id, "error": e.message})
                continue
            if outcome["changed"]:
                updated += 1
            else:
                unchanged += 1

        logger.info(
            "Tracking refresh: %s shipments, %s updated, %s unchanged, %s errors",
            len(shipment_ids), updated, unchanged, len(errors),
        )
        return {"checked": len(shipment_ids), "updated": updated, "unchanged": unchanged, "errors": errors}

    # ------------------------------------------------------------------
    # Compensation
    # ------------------------------------------------------------------

    async def void_shipment(self, shipment_id: int) -> Shipment:
        """
        Undo a shipment the carrier has not taken yet.

        A scheduled pickup is cancelled first. Items go back to approved: the
        seller's approval (and the stock it took) still stands.

        Raises:
            IllegalVoidError: shipment is already moving, delivered, returned or cancelled
            CarrierError: carrier refused the void
        """
        shipment = await self.get_shipment(shipment_id)
        if shipment.status in NON_VOIDABLE or (
            shipment.status == ShipmentStatus.EXCEPTION and shipment.pre_exception_status in NON_VOIDABLE
        ):
            raise IllegalVoidError(
                f"Shipment {shipment_id} is '{shipment.status.value}' and can no longer be voided"
            )

        if shipment.has_pickup:
            await self.carrier.cancel_pickup(shipment.pickup_request_number)
            try:
                await self._clear_pickup(shipment.id)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise
            shipment = await self.get_shipment(shipment_id)

        await self.carrier.void_shipment(shipment.carrier_shipment_id, shipment.tracking_number)

        try:
            voided = {
                "carrier_shipment_id": shipment.carrier_shipment_id,
                "tracking_number": shipment.tracking_number,
                "voided_at": _now().isoformat(),
            }
            await self.db.execute(
                update(Shipment)
                .where(Shipment.id == shipment.id)
                .values(
                    status=ShipmentStatus.CANCELLED,
                    pre_exception_status=None,
                    carrier_shipment_id=None,
                    tracking_number=None,
                    label_data=None,
                    label_format=None,
                    carrier_response=dict(shipment.carrier_response or {}, voided=voided),
                )
            )
            item_ids = [si.order_item_id for si in shipment.items]
            if item_ids:
                await self.db.execute(
                    update(OrderItem)
                    .where(OrderItem.id.in_(item_ids), OrderItem.order_status.in_(VOID_REVERTIBLE))
                    .values(order_status=OrderItemStatus.APPROVED, pre_exception_status=None)
                )
            order = shipment.order
            if order is not None and order.carrier_shipment_id == voided["carrier_shipment_id"]:
                await self.db.execute(
                    update(Order)
                    .where(Order.id == order.id)
                    .values(tracking_number=None, carrier_shipment_id=None)
                )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(
                "Carrier shipment %s voided but shipment %s was not updated: %s",
                voided["carrier_shipment_id"], shipment_id, e,
            )
            raise ReconciliationGapError(
                f"Shipment {shipment_id} was voided at the carrier but could not be updated",
                external_id=voided["carrier_shipment_id"],
            ) from e

        logger.info("Shipment %s voided, %s items back to approved", shipment_id, len(item_ids))
        return await self.get_shipment(shipment_id)

    async def handle_return(self, shipment_id: int, reason: str) -> Shipment:
        """
        Send a delivered shipment back to the seller.

        Creates a return shipment (buyer ships to seller) linked through
        original_shipment_id; the original becomes returned, and so do its items.
        """
        if not reason or not reason.strip():
            raise ValidationError("A return reason is required")

        original = await self.get_shipment(shipment_id)
        if original.status != ShipmentStatus.DELIVERED:
            raise IllegalStateError(
                f"Only delivered shipments can be returned (shipment {shipment_id} is '{original.status.value}')"
            )

        item_ids = [si.order_item_id for si in original.items]
        result = await self.db.execute(
            select(OrderItem).options(selectinload(OrderItem.product)).where(OrderItem.id.in_(item_ids))
        )
        items = list(result.scalars())
        package = aggregate_package(
            {
                "weight": item.product.weight if item.product else None,
                "length": item.product.length if item.product else None,
                "width": item.product.width if item.product else None,
                "height": item.product.height if item.product else None,
                "quantity": item.quantity,
            }
            for item in items
        )

        # Buyer becomes the shipper
        return_shipper = validate_address(original.shipping_address, "Buyer")
        return_recipient = validate_address(original.shipper_address, "Seller")
        reference = f"return-{original.id}"
        payload = self.builder.build_shipment(
            reference,
            return_shipper,
            return_recipient,
            package,
            service_code=original.service_code or "03",
            is_return=True,
        )
        carrier_result = await self.carrier.create_shipment(payload)

        try:
            return_shipment = Shipment(
                order_id=original.order_id,
                seller_id=original.seller_id,
                carrier=self.carrier.carrier_code,
                service_code=original.service_code,
                carrier_shipment_id=carrier_result["shipment_id"],
                tracking_number=carrier_result["tracking_number"],
                status=ShipmentStatus.CREATED,
                weight=package.weight,
                dimensions=package.dimensions,
                shipper_address=return_shipper,
                shipping_address=return_recipient,
                label_data=carrier_result.get("label_data"),
                label_format=carrier_result.get("label_format"),
                carrier_response={"reference": reference},
                tracking_events=[],
                return_reason=reason,
                original_shipment_id=original.id,
            )
            return_shipment.items = [
                ShipmentItem(order_item_id=si.order_item_id, quantity_shipped=si.quantity_shipped)
                for si in original.items
            ]
            self.db.add(return_shipment)
            await self.db.flush()

            moved = await self.db.execute(
                update(Shipment)
                .where(Shipment.id == original.id, Shipment.status == ShipmentStatus.DELIVERED)
                .values(
                    status=ShipmentStatus.RETURNED,
                    return_reason=reason,
                    return_shipment_id=return_shipment.id,
                )
            )
            if moved.rowcount == 0:
                raise IllegalStateError(f"Shipment {shipment_id} changed while the return was being created")

            await self.db.execute(
                update(OrderItem)
                .where(OrderItem.id.in_(item_ids), OrderItem.order_status == OrderItemStatus.DELIVERED)
                .values(order_status=OrderItemStatus.RETURNED)
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            await self._compensate_void(carrier_result, f"return of shipment {shipment_id}", e)
            raise

        logger.info(
            "Return shipment %s created for shipment %s (%s), tracking %s",
            return_shipment.id, shipment_id, reason, carrier_result["tracking_number"],
        )
        return await self.get_shipment(return_shipment.id)


def _coerce_shipment_status(value) -> Optional[ShipmentStatus]:
    """Accept a ShipmentStatus, its value ("delivered") or a carrier code ("D")."""
    if isinstance(value, ShipmentStatus):
        return value
    if value is None:
        return None
    text = str(value).strip()
    try:
        return ShipmentStatus(text.lower())
    except ValueError:
        return map_carrier_status(text)

# tests/test_routes/test_shipping_routes.py
import pytest

from app.core.enums import OrderItemStatus


@pytest.fixture
async def approved_item(make_order):
    order, item = await make_order(quantity=2, status=OrderItemStatus.APPROVED)
    return order, item


@pytest.mark.asyncio
async def test_create_and_follow_shipment(client, approved_item, seller, mock_carrier):
    order, item = approved_item

    created = await client.post("/shipping/shipments", json={"order_id": order.id, "seller_id": seller.id})
    assert created.status_code == 201
    shipment = created.json()
    assert shipment["tracking_number"] == "1ZTRACK0001"
    assert shipment["status"] == "created"
    assert shipment["items"] == [{"order_item_id": item.id, "quantity_shipped": 2}]
    mock_carrier.create_shipment.assert_awaited_once()

    in_transit = await client.post(f"/shipping/shipments/{shipment['id']}/events", json={"status_code": "I"})
    assert in_transit.status_code == 200
    assert in_transit.json()["status"] == "in_transit"

    delivered = await client.post(f"/shipping/shipments/{shipment['id']}/events", json={"status_code": "D"})
    assert delivered.json()["status"] == "delivered"

    # Late scans never move a delivered shipment backwards
    late = await client.post(f"/shipping/shipments/{shipment['id']}/events", json={"status_code": "I"})
    assert late.json()["status"] == "delivered"

    listed = await client.get(f"/shipping/orders/{order.id}/shipments")
    assert [s["status"] for s in listed.json()] == ["delivered"]


@pytest.mark.asyncio
async def test_order_shipments_endpoint(client, approved_item, seller):
    order, _ = approved_item

    response = await client.post(f"/shipping/orders/{order.id}/shipments")

    assert response.status_code == 200
    body = response.json()
    assert body["errors"] == []
    assert [s["seller_id"] for s in body["shipments"]] == [seller.id]


@pytest.mark.asyncio
async def test_pending_item_cannot_ship(client, make_order, seller):
    order, _ = await make_order()

    response = await client.post("/shipping/shipments", json={"order_id": order.id, "seller_id": seller.id})

    assert response.status_code in (400, 409)
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_carrier_failure_is_bad_gateway(client, approved_item, seller, mock_carrier):
    from app.core.exceptions import CarrierError

    mock_carrier.create_shipment.side_effect = CarrierError("UPS create shipment timed out")
    order, _ = approved_item

    response = await client.post("/shipping/shipments", json={"order_id": order.id, "seller_id": seller.id})

    assert response.status_code == 502
    assert response.json()["error"] == "CarrierError"
    listed = await client.get(f"/shipping/orders/{order.id}/shipments")
    assert listed.json() == []


@pytest.mark.asyncio
async def test_pickup_then_void(client, approved_item, seller, mock_carrier):
    order, _ = approved_item
    shipment = (await client.post("/shipping/shipments", json={"order_id": order.id, "seller_id": seller.id})).json()

    pickup = await client.post(
        f"/shipping/shipments/{shipment['id']}/pickup",
        json={"pickup_date": "2030-01-02", "ready_time": "09:30", "close_time": "1700"},
    )
    assert pickup.status_code == 200
    assert pickup.json()["pickup_request_number"] == "PRN123"
    assert pickup.json()["pickup_ready_time"] == "0930"

    voided = await client.post(f"/shipping/shipments/{shipment['id']}/void")
    assert voided.status_code == 200
    assert voided.json()["status"] == "cancelled"
    mock_carrier.cancel_pickup.assert_awaited_once_with("PRN123")


@pytest.mark.asyncio
async def test_bad_pickup_time(client, approved_item, seller):
    order, _ = approved_item
    shipment = (await client.post("/shipping/shipments", json={"order_id": order.id, "seller_id": seller.id})).json()

    response = await client.post(
        f"/shipping/shipments/{shipment['id']}/pickup",
        json={"pickup_date": "2030-01-02", "ready_time": "2590"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delivered_shipment_cannot_be_voided(client, approved_item, seller):
    order, _ = approved_item
    shipment = (await client.post("/shipping/shipments", json={"order_id": order.id, "seller_id": seller.id})).json()
    await client.post(f"/shipping/shipments/{shipment['id']}/events", json={"status_code": "D"})

    response = await client.post(f"/shipping/shipments/{shipment['id']}/void")

    assert response.status_code == 409
    assert response.json()["error"] == "IllegalVoidError"


@pytest.mark.asyncio
async def test_return_shipment(client, approved_item, seller):
    order, _ = approved_item
    shipment = (await client.post("/shipping/shipments", json={"order_id": order.id, "seller_id": seller.id})).json()
    await client.post(f"/shipping/shipments/{shipment['id']}/events", json={"status_code": "D"})

    response = await client.post(f"/shipping/shipments/{shipment['id']}/return", json={"reason": "damaged"})

    assert response.status_code == 201
    returned = response.json()
    assert returned["original_shipment_id"] == shipment["id"]
    assert returned["return_reason"] == "damaged"


@pytest.mark.asyncio
async def test_unknown_shipment(client):
    response = await client.get("/shipping/shipments/999")
    assert response.status_code == 404

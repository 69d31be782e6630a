# tests/test_routes/test_settlement_routes.py
import pytest

from app.core.enums import OrderItemStatus


@pytest.mark.asyncio
async def test_refund_once(client, make_order, mock_processor):
    _, item = await make_order(status=OrderItemStatus.REJECTED)
    payload = {"order_item_id": item.id, "reason": "seller_rejected", "initiated_by": "ops"}

    first = await client.post("/refunds", json=payload)
    assert first.status_code == 201
    assert first.json()["refund_amount"] == "100.00"
    assert first.json()["stripe_refund_id"] == "re_test_1"

    second = await client.post("/refunds", json=payload)
    assert second.status_code == 409
    assert second.json()["error"] == "AlreadyRefundedError"
    assert mock_processor.create_refund.await_count == 1

    listed = await client.get("/refunds", params={"order_item_id": item.id})
    assert [r["reason"] for r in listed.json()] == ["seller_rejected"]


@pytest.mark.asyncio
async def test_refund_with_unknown_reason(client, make_order):
    _, item = await make_order()
    response = await client.post("/refunds", json={"order_item_id": item.id, "reason": "boredom"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_refund_processor_failure_is_bad_gateway(client, make_order, mock_processor):
    from app.core.exceptions import PaymentProcessorError

    mock_processor.create_refund.side_effect = PaymentProcessorError("Stripe refund failed: card_declined")
    _, item = await make_order(status=OrderItemStatus.CANCELLED)

    response = await client.post("/refunds", json={"order_item_id": item.id, "reason": "customer_requested"})

    assert response.status_code == 502
    assert response.json()["error"] == "PaymentProcessorError"


@pytest.mark.asyncio
async def test_payout_preview_and_transfer(client, make_order, commission):
    _, item = await make_order(status=OrderItemStatus.DELIVERED)

    preview = await client.get(f"/payouts/preview/{item.id}")
    assert preview.status_code == 200
    assert preview.json()["commission"] == "5.00"
    assert preview.json()["processor_fee"] == "0.49"
    assert preview.json()["net_payout"] == "94.51"

    paid = await client.post("/payouts", json={"order_item_id": item.id})
    assert paid.status_code == 201
    assert paid.json()["net_amount"] == "94.51"
    assert paid.json()["stripe_transfer_id"] == "tr_test_1"

    again = await client.post("/payouts", json={"order_item_id": item.id})
    assert again.status_code == 409
    assert again.json()["error"] == "AlreadyPaidError"

    listed = await client.get("/payouts")
    assert len(listed.json()) == 1
    assert listed.json()[0]["status"] == "paid"


@pytest.mark.asyncio
async def test_payout_before_approval_is_conflict(client, make_order, commission):
    _, item = await make_order(status=OrderItemStatus.PENDING_APPROVAL)
    response = await client.post("/payouts", json={"order_item_id": item.id})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_commission_table(client):
    created = await client.put("/commissions", json={"category": "chalk", "commission_rate": "12.50"})
    assert created.status_code == 200
    assert created.json()["commission_rate"] == "12.50"

    updated = await client.put("/commissions", json={"category": "chalk", "commission_rate": "10.00"})
    assert updated.json()["id"] == created.json()["id"]

    listed = await client.get("/commissions")
    assert [(c["category"], c["commission_rate"]) for c in listed.json()] == [("chalk", "10.00")]

    deleted = await client.delete("/commissions/chalk")
    assert deleted.json() == {"success": True, "category": "chalk"}

    missing = await client.delete("/commissions/chalk")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_commission_rate_out_of_range(client):
    response = await client.put("/commissions", json={"category": "chalk", "commission_rate": "101"})
    assert response.status_code == 422

# tests/unit/services/test_refund_service.py
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from app.core.enums import OrderItemStatus, RefundReason, RefundStatus, TransactionType
from app.core.exceptions import (
    AlreadyRefundedError,
    IllegalStateError,
    NotFoundError,
    PaymentProcessorError,
    ReconciliationGapError,
    ValidationError,
)
from app.models.refund import Refund, Transaction
from app.services.refund_service import RefundService


async def _count(db_session, model):
    return await db_session.scalar(select(func.count()).select_from(model))


@pytest.mark.asyncio
async def test_refund_item_with_retip(db_session, make_order, mock_processor):
    order, item = await make_order(quantity=2, retip_added=True, payment_intent_id="pi_refund_1")
    service = RefundService(db_session, processor=mock_processor)

    result = await service.refund_item(item.id, RefundReason.CUSTOMER_REQUESTED, notes="changed mind")

    assert result.stripe_refund_id == "re_test_1"
    assert result.refund_amount == "220.00"
    assert result.status == RefundStatus.SUCCEEDED.value
    mock_processor.create_refund.assert_awaited_once()
    args, kwargs = mock_processor.create_refund.await_args
    assert args == ("pi_refund_1", 22000)
    assert kwargs["idempotency_key"] == f"refund-{item.id}"

    refund = (await db_session.execute(select(Refund))).scalar_one()
    assert refund.retip_refund_amount == Decimal("20.00")
    assert refund.item_quantity == 2
    ledger = (await db_session.execute(select(Transaction))).scalar_one()
    assert ledger.type == TransactionType.REFUND
    await db_session.refresh(item)
    assert item.order_status == OrderItemStatus.REFUNDED


@pytest.mark.asyncio
async def test_second_refund_is_rejected(db_session, make_order, mock_processor):
    _, item = await make_order(quantity=1)
    service = RefundService(db_session, processor=mock_processor)
    await service.refund_item(item.id, "seller_rejected")

    with pytest.raises(AlreadyRefundedError):
        await service.refund_item(item.id, "seller_rejected")

    assert await _count(db_session, Refund) == 1
    assert mock_processor.create_refund.await_count == 1


@pytest.mark.asyncio
async def test_refund_of_rejected_item(db_session, make_order, mock_processor):
    _, item = await make_order(status=OrderItemStatus.REJECTED)
    result = await RefundService(db_session, processor=mock_processor).refund_item(item.id, "seller_rejected")
    assert result.refund_amount == "100.00"


@pytest.mark.asyncio
async def test_refund_requires_completed_payment(db_session, make_order, mock_processor):
    _, item = await make_order(payment_completed=False)
    with pytest.raises(IllegalStateError):
        await RefundService(db_session, processor=mock_processor).refund_item(item.id, "other")
    mock_processor.create_refund.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_reason(db_session, make_order, mock_processor):
    _, item = await make_order()
    with pytest.raises(ValidationError):
        await RefundService(db_session, processor=mock_processor).refund_item(item.id, "because")


@pytest.mark.asyncio
async def test_unknown_item(db_session, mock_processor):
    with pytest.raises(NotFoundError):
        await RefundService(db_session, processor=mock_processor).refund_item("missing", "other")


@pytest.mark.asyncio
async def test_processor_failure_writes_nothing(db_session, make_order, mock_processor):
    _, item = await make_order()
    mock_processor.create_refund.side_effect = PaymentProcessorError("card network down")

    with pytest.raises(PaymentProcessorError):
        await RefundService(db_session, processor=mock_processor).refund_item(item.id, "other")

    assert await _count(db_session, Refund) == 0
    await db_session.refresh(item)
    assert item.order_status == OrderItemStatus.PENDING_APPROVAL


@pytest.mark.asyncio
async def test_local_failure_after_refund_is_a_reconciliation_gap(db_session, make_order, mock_processor, mocker):
    _, item = await make_order()
    mocker.patch.object(db_session, "commit", AsyncMock(side_effect=RuntimeError("database went away")))

    with pytest.raises(ReconciliationGapError) as exc_info:
        await RefundService(db_session, processor=mock_processor).refund_item(item.id, "other")

    assert exc_info.value.external_id == "re_test_1"
    assert await _count(db_session, Refund) == 0


@pytest.mark.asyncio
async def test_list_refunds_by_seller(db_session, make_order, mock_processor, seller):
    _, item = await make_order()
    service = RefundService(db_session, processor=mock_processor)
    await service.refund_item(item.id, "other")

    assert len(await service.list_refunds(seller_id=seller.id)) == 1
    assert await service.list_refunds(seller_id=seller.id + 1) == []

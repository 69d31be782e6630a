# tests/unit/services/test_payout_service.py
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from app.core.enums import OrderItemStatus, PayoutStatus
from app.core.exceptions import (
    AlreadyPaidError,
    IllegalStateError,
    NonPositivePayoutError,
    NotFoundError,
    ReconciliationGapError,
)
from app.models.payout import Payout
from app.services.payout_service import PayoutService


async def _count(db_session, model):
    return await db_session.scalar(select(func.count()).select_from(model))


@pytest.mark.asyncio
async def test_payout_transfers_net_amount(db_session, make_order, commission, mock_processor):
    _, item = await make_order(status=OrderItemStatus.DELIVERED)

    result = await PayoutService(db_session, processor=mock_processor).payout(item.id, initiated_by="ops")

    assert result.net_amount == Decimal("94.51")
    assert result.status == PayoutStatus.PAID
    args, kwargs = mock_processor.create_transfer.await_args
    assert args == ("acct_seller_1", 9451)
    assert kwargs["idempotency_key"] == f"payout-{item.id}"

    payout = (await db_session.execute(select(Payout))).scalar_one()
    assert payout.gross_amount == Decimal("100.00")
    assert payout.commission_amount == Decimal("5.00")
    assert payout.fee_amount == Decimal("0.49")
    assert payout.net_amount == Decimal("94.51")
    await db_session.refresh(item)
    assert item.seller_paid is True


@pytest.mark.asyncio
async def test_seller_is_paid_exactly_once(db_session, make_order, commission, mock_processor):
    _, item = await make_order(status=OrderItemStatus.DELIVERED)
    service = PayoutService(db_session, processor=mock_processor)
    await service.payout(item.id)

    with pytest.raises(AlreadyPaidError):
        await service.payout(item.id)

    assert mock_processor.create_transfer.await_count == 1
    assert await _count(db_session, Payout) == 1


@pytest.mark.asyncio
async def test_pending_item_cannot_be_paid(db_session, make_order, commission, mock_processor):
    _, item = await make_order()
    with pytest.raises(IllegalStateError):
        await PayoutService(db_session, processor=mock_processor).payout(item.id)


@pytest.mark.asyncio
async def test_refunded_item_cannot_be_paid(db_session, make_order, commission, mock_processor):
    _, item = await make_order(status=OrderItemStatus.REFUNDED)
    with pytest.raises(IllegalStateError):
        await PayoutService(db_session, processor=mock_processor).payout(item.id)


@pytest.mark.asyncio
async def test_seller_without_payouts_enabled(db_session, make_order, commission, mock_processor, seller):
    seller.payouts_enabled = False
    await db_session.commit()
    _, item = await make_order(status=OrderItemStatus.DELIVERED)

    with pytest.raises(IllegalStateError):
        await PayoutService(db_session, processor=mock_processor).payout(item.id)
    mock_processor.create_transfer.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_commission_rate(db_session, make_order, mock_processor):
    _, item = await make_order(status=OrderItemStatus.DELIVERED)
    with pytest.raises(NotFoundError):
        await PayoutService(db_session, processor=mock_processor).payout(item.id)


@pytest.mark.asyncio
async def test_fees_eating_the_payout(db_session, make_order, product, mock_processor):
    from app.models.commission import Commission

    db_session.add(Commission(category="cues", commission_rate=Decimal("100")))
    await db_session.commit()
    _, item = await make_order(status=OrderItemStatus.DELIVERED)

    with pytest.raises(NonPositivePayoutError):
        await PayoutService(db_session, processor=mock_processor).payout(item.id)
    mock_processor.create_transfer.assert_not_awaited()


@pytest.mark.asyncio
async def test_preview_matches_payout(db_session, make_order, commission, mock_processor):
    _, item = await make_order(quantity=2, status=OrderItemStatus.APPROVED)
    breakdown = await PayoutService(db_session, processor=mock_processor).preview(item.id)

    # 200 at 5% -> 190 gross, fee 0.475 + 0.25 = 0.725 -> 0.73
    assert breakdown.item_total == Decimal("200.00")
    assert breakdown.processor_fee == Decimal("0.73")
    assert breakdown.net_payout == Decimal("189.27")
    mock_processor.create_transfer.assert_not_awaited()


@pytest.mark.asyncio
async def test_local_failure_after_transfer_is_a_reconciliation_gap(db_session, make_order, commission, mock_processor, mocker):
    _, item = await make_order(status=OrderItemStatus.DELIVERED)
    mocker.patch.object(db_session, "commit", AsyncMock(side_effect=RuntimeError("database went away")))

    with pytest.raises(ReconciliationGapError) as exc_info:
        await PayoutService(db_session, processor=mock_processor).payout(item.id)

    assert exc_info.value.external_id == "tr_test_1"
    assert await _count(db_session, Payout) == 0

# tests/unit/services/test_pricing.py
from decimal import Decimal

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.services.payout_service import calculate_payout
from app.services.pricing import (
    CartLine,
    calculate_order_totals,
    calculate_processor_fee,
    round_money,
    to_cents,
)

CATALOG = {1: "cues", 2: "chalk"}
RATES = {"cues": Decimal("5"), "chalk": Decimal("12.5")}


def test_round_money_rounds_half_up():
    assert round_money("2.185") == Decimal("2.19")
    assert round_money("94.5125") == Decimal("94.51")
    assert round_money(0.1 + 0.2) == Decimal("0.30")


def test_to_cents():
    assert to_cents(Decimal("94.51")) == 9451
    assert to_cents("220") == 22000
    assert to_cents(0.005) == 1


def test_order_totals_with_retip_tax_and_commission():
    """$100 x 2 with a $10 retip at 5% commission and 1.09% tax"""
    lines = [CartLine(product_id=1, unit_price=Decimal("100"), quantity=2, retip_added=True, retip_price=Decimal("10"))]

    totals = calculate_order_totals(lines, CATALOG, RATES, tax_rate=Decimal("0.0109"))

    assert totals.subtotal == Decimal("200.00")
    assert totals.retip_total == Decimal("20.00")
    assert totals.tax == Decimal("2.18")
    assert totals.platform_fee == Decimal("10.00")
    assert totals.shipping_cost == Decimal("0.00")
    assert totals.total == Decimal("232.18")
    assert totals.lines[0].commission == Decimal("10.00")


def test_retip_price_ignored_when_not_added():
    lines = [CartLine(product_id=1, unit_price=Decimal("100"), quantity=1, retip_added=False, retip_price=Decimal("10"))]
    totals = calculate_order_totals(lines, CATALOG, RATES, tax_rate=0)
    assert totals.retip_total == Decimal("0.00")
    assert totals.total == Decimal("105.00")


def test_commission_is_rounded_per_line_then_summed():
    lines = [
        CartLine(product_id=2, unit_price=Decimal("0.99"), quantity=1),
        CartLine(product_id=2, unit_price=Decimal("0.99"), quantity=1),
    ]
    totals = calculate_order_totals(lines, CATALOG, RATES, tax_rate=0)
    # 0.12375 -> 0.12 on each line
    assert [line.commission for line in totals.lines] == [Decimal("0.12"), Decimal("0.12")]
    assert totals.platform_fee == Decimal("0.24")


def test_shipping_is_added_untaxed():
    lines = [CartLine(product_id=1, unit_price=Decimal("50"), quantity=1)]
    totals = calculate_order_totals(lines, CATALOG, RATES, tax_rate=Decimal("0.1"), shipping_cost="7.5")
    assert totals.tax == Decimal("5.00")
    assert totals.shipping_cost == Decimal("7.50")
    assert totals.total == Decimal("50.00") + Decimal("5.00") + Decimal("2.50") + Decimal("7.50")


def test_empty_cart_rejected():
    with pytest.raises(ValidationError):
        calculate_order_totals([], CATALOG, RATES)


def test_unknown_product_rejected():
    with pytest.raises(ValidationError):
        calculate_order_totals([CartLine(product_id=99, unit_price=Decimal("1"), quantity=1)], CATALOG, RATES)


def test_zero_quantity_rejected():
    with pytest.raises(ValidationError):
        calculate_order_totals([CartLine(product_id=1, unit_price=Decimal("1"), quantity=0)], CATALOG, RATES)


def test_negative_shipping_rejected():
    with pytest.raises(ValidationError):
        calculate_order_totals(
            [CartLine(product_id=1, unit_price=Decimal("1"), quantity=1)], CATALOG, RATES, shipping_cost=-1
        )


def test_missing_commission_rate_is_not_found():
    with pytest.raises(NotFoundError):
        calculate_order_totals([CartLine(product_id=2, unit_price=Decimal("1"), quantity=1)], CATALOG, {"cues": 5})


def test_processor_fee_is_not_rounded():
    assert calculate_processor_fee(Decimal("95"), percent="0.25", flat="0.25") == Decimal("0.4875")


def test_payout_breakdown_rounds_fee():
    """$100 at 5%: fee 0.4875 rounds to 0.49, net 94.51"""
    breakdown = calculate_payout("item-1", Decimal("100"), 1, Decimal("5"), fee_percent="0.25", fee_flat="0.25")

    assert breakdown.item_total == Decimal("100.00")
    assert breakdown.commission == Decimal("5.00")
    assert breakdown.gross_payout == Decimal("95.00")
    assert breakdown.processor_fee == Decimal("0.49")
    assert breakdown.net_payout == Decimal("94.51")

"""
Centralized order money calculations.

All amounts are Decimal and rounded to cents with ROUND_HALF_UP.

    subtotal     = sum(unit_price * quantity)
    retip_total  = sum(retip_price * quantity) for lines with retip added
    tax          = subtotal * tax_rate            (never on retip or shipping)
    platform_fee = sum(line_subtotal * category_rate / 100), per line
    total        = subtotal + retip_total + tax + platform_fee + shipping_cost

Nothing here touches the database, so quotes can be computed freely.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from app.core.config import get_settings
from app.core.exceptions import NotFoundError, ValidationError

CENT = Decimal("0.01")

Number = Union[Decimal, float, int, str]


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert floats via str() so 0.1 stays 0.1."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """
    Round to cents, half up.

    Examples:
        2.185 -> 2.19
        94.5125 -> 94.51
    """
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> int:
    """Integer cents for payment processor calls."""
    return int((round_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


class CartLine(BaseModel):
    """One line of a cart or order as seen by the calculator"""
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    unit_price: Decimal
    quantity: int
    retip_added: bool = False
    retip_price: Decimal = Decimal("0")


class LineTotals(BaseModel):
    product_id: int
    category: str
    commission_rate: Decimal
    subtotal: Decimal
    retip_total: Decimal
    commission: Decimal


class OrderTotals(BaseModel):
    subtotal: Decimal
    retip_total: Decimal
    tax: Decimal
    platform_fee: Decimal
    shipping_cost: Decimal
    total: Decimal
    lines: List[LineTotals] = []


def _validate_line(line: CartLine, catalog: Mapping[int, str]) -> None:
    if line.product_id not in catalog:
        raise ValidationError(f"Unknown product {line.product_id}")
    if line.quantity < 1:
        raise ValidationError(f"Quantity for product {line.product_id} must be at least 1")
    if line.unit_price < 0:
        raise ValidationError(f"Price for product {line.product_id} cannot be negative")
    if line.retip_price < 0:
        raise ValidationError(f"Retip price for product {line.product_id} cannot be negative")


def calculate_order_totals(
    lines: List[CartLine],
    catalog: Mapping[int, str],
    commission_rates: Mapping[str, Number],
    tax_rate: Optional[Number] = None,
    shipping_cost: Number = 0,
) -> OrderTotals:
    """
    Compute the money breakdown for a set of cart lines.

    Args:
        lines: Cart lines (price snapshot, quantity, retip choice)
        catalog: product id -> category
        commission_rates: category -> commission percent (0-100)
        tax_rate: Fraction applied to the item subtotal (default: settings.TAX_RATE)
        shipping_cost: Flat shipping charge added to the total

    Returns:
        OrderTotals with per-line commissions

    Raises:
        ValidationError: empty cart, unknown product, quantity < 1, negative prices
        NotFoundError: a product category has no commission rate
    """
    if not lines:
        raise ValidationError("Cart is empty")

    if tax_rate is None:
        tax_rate = get_settings().TAX_RATE
    tax_rate = to_decimal(tax_rate)
    if tax_rate < 0:
        raise ValidationError("Tax rate cannot be negative")

    shipping = round_money(shipping_cost)
    if shipping < 0:
        raise ValidationError("Shipping cost cannot be negative")

    line_totals: List[LineTotals] = []
    for line in lines:
        _validate_line(line, catalog)
        category = catalog[line.product_id]
        if category not in commission_rates:
            raise NotFoundError(f"No commission rate configured for category '{category}'")
        rate = to_decimal(commission_rates[category])

        line_subtotal = round_money(to_decimal(line.unit_price) * line.quantity)
        line_retip = round_money(line.retip_price * line.quantity) if line.retip_added else Decimal("0.00")

        line_totals.append(LineTotals(
            product_id=line.product_id,
            category=category,
            commission_rate=rate,
            subtotal=line_subtotal,
            retip_total=line_retip,
            commission=round_money(line_subtotal * rate / 100),
        ))

    subtotal = sum((lt.subtotal for lt in line_totals), Decimal("0.00"))
    retip_total = sum((lt.retip_total for lt in line_totals), Decimal("0.00"))
    platform_fee = sum((lt.commission for lt in line_totals), Decimal("0.00"))
    tax = round_money(subtotal * tax_rate)

    return OrderTotals(
        subtotal=subtotal,
        retip_total=retip_total,
        tax=tax,
        platform_fee=platform_fee,
        shipping_cost=shipping,
        total=subtotal + retip_total + tax + platform_fee + shipping,
        lines=line_totals,
    )


def calculate_processor_fee(
    amount: Number,
    percent: Optional[Number] = None,
    flat: Optional[Number] = None,
) -> Decimal:
    """
    Connect transfer fee: percent of the amount plus a flat charge.

    The result is not rounded; callers round the net figure.
    """
    settings = get_settings()
    percent = to_decimal(settings.PROCESSOR_FEE_PERCENT if percent is None else percent)
    flat = to_decimal(settings.PROCESSOR_FEE_FLAT if flat is None else flat)
    return to_decimal(amount) * percent / 100 + flat

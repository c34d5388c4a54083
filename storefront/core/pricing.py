"""Tax-inclusive to tax-exclusive price breakdowns.

Rounding is applied per unit, before multiplying by quantity, so each
line matches what the order repository stores for it. Order totals sum the
already-rounded line values, which can drift from an exact computation by
at most one cent per line. That drift is the accepted rounding policy.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from .errors import InvalidPriceError, InvalidQuantityError
from .models import ZERO, OrderLine, OrderTotals, PriceTotals

CENT = Decimal("0.01")

# Storefront-wide VAT rate, applied to every product.
VAT_RATE = Decimal("0.20")


def round_money(amount: Decimal) -> Decimal:
    """Round to two decimals, half away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def breakdown(
    unit_price_incl_tax: Decimal,
    qty: int,
    tax_rate: Decimal,
    product_id: int | None = None,
    label: str = "",
) -> OrderLine:
    """Price one order line from its tax-inclusive unit price.

    Args:
        unit_price_incl_tax: Price of one unit, tax included.
        qty: Number of units, at least 1.
        tax_rate: Tax rate as a fraction (0.20 for 20 %).
        product_id: Product the line refers to, copied onto the line.
        label: Display label, copied onto the line.

    Returns:
        OrderLine with unit and line amounts rounded to cents.

    Raises:
        InvalidPriceError: If the price or the tax rate is negative.
        InvalidQuantityError: If qty is below 1.
    """
    unit_price_incl_tax = Decimal(unit_price_incl_tax)
    tax_rate = Decimal(tax_rate)
    if unit_price_incl_tax < 0:
        raise InvalidPriceError(
            f"Unit price must be non-negative, got {unit_price_incl_tax}"
        )
    if tax_rate < 0:
        raise InvalidPriceError(f"Tax rate must be non-negative, got {tax_rate}")
    if isinstance(qty, bool) or qty < 1:
        raise InvalidQuantityError(f"Quantity must be at least 1, got {qty}")

    unit_excl = round_money(unit_price_incl_tax / (1 + tax_rate))
    unit_tax = round_money(unit_price_incl_tax - unit_excl)

    return OrderLine(
        product_id=product_id,
        qty=qty,
        unit_price_excl_tax=unit_excl,
        unit_price_incl_tax=unit_price_incl_tax,
        tax_amount_per_unit=unit_tax,
        line_total_excl_tax=round_money(unit_excl * qty),
        line_total_tax=round_money(unit_tax * qty),
        label=label,
    )


def aggregate(lines: Iterable[OrderLine]) -> PriceTotals:
    """Sum the rounded line totals of an order."""
    subtotal = ZERO
    tax_total = ZERO
    for line in lines:
        subtotal += line.line_total_excl_tax
        tax_total += line.line_total_tax
    return PriceTotals(subtotal_excl_tax=subtotal, tax_total=tax_total)


def order_totals(lines: Iterable[OrderLine], delivery_cost: Decimal = ZERO) -> OrderTotals:
    """Totals of an order including its delivery fee."""
    if delivery_cost < 0:
        raise InvalidPriceError(
            f"Delivery cost must be non-negative, got {delivery_cost}"
        )
    totals = aggregate(lines)
    return OrderTotals(
        subtotal_excl_tax=totals.subtotal_excl_tax,
        tax_total=totals.tax_total,
        delivery_cost=round_money(Decimal(delivery_cost)),
    )

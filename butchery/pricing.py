"""Money helpers shared by the basket, checkout and reports.

VAT is a fixed percentage of the subtotal. Amounts are carried as exact
``Decimal`` values and only rounded to currency precision when presented.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Union

from butchery.settings import settings

VAT_RATE = Decimal(str(settings.VAT_RATE))
CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


class VatBreakdown(NamedTuple):
    """Display amounts; ``total`` is always ``subtotal + vat``."""

    subtotal: Decimal
    vat: Decimal
    total: Decimal


def to_decimal(value: Number) -> Decimal:
    """Converts floats through their repr so 0.1 stays 0.1."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(amount: Number, places: int = 2) -> Decimal:
    """Round to currency precision, half away from zero."""
    quantize_str = "0." + "0" * places if places else "1"
    return to_decimal(amount).quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def vat_for(subtotal: Number, rate: Decimal = VAT_RATE) -> Decimal:
    return to_decimal(subtotal) * rate


def calculate_vat(subtotal: Number, rate: Decimal = VAT_RATE) -> VatBreakdown:
    """Calculate VAT and total from a subtotal, rounded for display."""
    shown_subtotal = round_money(subtotal)
    shown_vat = round_money(vat_for(shown_subtotal, rate))
    return VatBreakdown(
        subtotal=shown_subtotal,
        vat=shown_vat,
        total=shown_subtotal + shown_vat,
    )


def discounted_price(price: Number, discount_percent: Number) -> Decimal:
    """Unit price after a percentage discount, rounded to cents."""
    price = to_decimal(price)
    discount_percent = to_decimal(discount_percent or 0)
    if discount_percent <= 0:
        return price
    return round_money(price * (1 - discount_percent / 100))


def percent_change(current: Number, previous: Number) -> float:
    """Percentage change with two decimals; 0 when there is no base."""
    previous = to_decimal(previous)
    if previous <= 0:
        return 0.0
    change = (to_decimal(current) - previous) / previous * 100
    return float(round_money(change))


def format_price(amount: Number, currency: str = settings.CURRENCY) -> str:
    return f"{currency} {round_money(amount):.2f}"

"""
trackd - Currency Helpers

Money is held as Decimal rounded to two places; Stripe amounts are integer
minor units (pence/cents).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

CURRENCY_SYMBOLS = {
    "GBP": "£",
    "EUR": "€",
    "USD": "$",
}

SUPPORTED_CURRENCIES = tuple(CURRENCY_SYMBOLS)

TWO_PLACES = Decimal("0.01")

# Annual plans are billed as 12 months less 15%
ANNUAL_DISCOUNT_FACTOR = Decimal("0.85")


def to_decimal(value: Any) -> Decimal:
    """Coerce a DB aggregate or JSON number to Decimal, treating None as 0."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def safe_divide(numerator: Any, denominator: Any) -> Decimal:
    """Divide, returning 0 when the denominator is zero or missing."""
    denominator = to_decimal(denominator)
    if denominator == 0:
        return Decimal("0")
    return to_decimal(numerator) / denominator


def to_minor_units(amount: Decimal) -> int:
    """Convert a two-place amount to integer pence/cents."""
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: Optional[int]) -> Decimal:
    return quantize_money(Decimal(amount or 0) / 100)


def annual_amount(monthly_price: Decimal) -> Decimal:
    """Yearly price: 12 months with the annual discount applied."""
    return quantize_money(to_decimal(monthly_price) * 12 * ANNUAL_DISCOUNT_FACTOR)


def monthly_from_annual_minor_units(unit_amount: int) -> Decimal:
    """Recover the canonical monthly price from an annual Stripe unit amount."""
    return quantize_money(Decimal(unit_amount) / 100 / 12 / ANNUAL_DISCOUNT_FACTOR)


def format_price(amount: Any, currency: str = "GBP") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), "")
    return f"{symbol}{quantize_money(amount):.2f}"

"""Decimal helpers for request and item amounts."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the only rounding function used for amounts.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_decimal(value: object) -> Decimal | None:
    """Coerce ints, strings and Decimals; None for anything non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def line_total(quantity: int, unit_cost: Decimal | None) -> Decimal | None:
    """quantity x unit_cost, or None when the unit cost is unknown."""
    if unit_cost is None:
        return None
    return round_money(Decimal(quantity) * Decimal(unit_cost))

# app/utils/decimal_utils.py
from decimal import Decimal, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
THREEPLACES = Decimal("0.001")


def to_decimal(value) -> Decimal:
    """Money value rounded half-up to cents. ``None`` counts as zero."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    return Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def to_quantity(value) -> Decimal:
    if value is None:
        return Decimal("0.000")
    return Decimal(str(value)).quantize(THREEPLACES, rounding=ROUND_HALF_UP)


def round_half_up(value: float, places: int = 2) -> float:
    """JS-style Math.round(x * 10**p) / 10**p used by the pricing reports."""
    quant = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP))

"""
Decimal helpers shared by the payroll calculators.

Money is always ``Decimal``. Statutory and benefit lines round to whole
currency units; derived salary figures round to cents.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

ZERO = Decimal("0")
WHOLE_UNIT = Decimal("1")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert a real number to Decimal.

    Returns None for anything that is not an int, float or Decimal (bools and
    strings included) and for NaN/infinite values.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def round_whole(amount: Decimal) -> Decimal:
    return amount.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def round_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """
    Convert JSON/DB numbers to a 2-place Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, float)):
        d = Decimal(str(value))
    elif isinstance(value, str):
        try:
            d = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError("amount must be a number")
    else:
        raise ValueError("amount must be a number")
    if not d.is_finite():
        raise ValueError("amount must be a number")
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def as_float(value: Optional[Decimal]) -> Optional[float]:
    """JSON-friendly money value."""
    if value is None:
        return None
    return float(value)


def round_half_up(value: float, places: int = 0) -> float:
    """
    Round half towards +infinity, the way dashboards have always shown it
    (2.5 -> 3, -2.5 -> -2). Python's round() would give banker's rounding.
    """
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float, places: int = 2) -> float:
    """
    Round like a cashier: 0.5 always goes up.

    Built-in round() uses banker's rounding and binary floats, so
    round(2.675, 2) gives 2.67. Going through str() keeps the decimal
    value the user typed.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))

"""Half-up rounding for money amounts and progress percentages"""
from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float, places: int = 0) -> float:
    """
    Round to `places` decimals with ties going up, not to the even digit.

    Uses the exact binary value of the float: 0.125 rounds to 0.13, while
    1.005 (stored as 1.00499...) rounds to 1.0.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def round_percent(value: float) -> int:
    """Whole-number percentage, ties rounded up"""
    return int(round_half_up(value))

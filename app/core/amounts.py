from decimal import Decimal, ROUND_HALF_UP

_CENT = Decimal("0.01")
_WHOLE = Decimal("1")


def round_currency(amount) -> float:
    """Round a currency amount to 2 decimals, half-up."""
    return float(Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP))


def clamp_non_negative(amount: float) -> float:
    return max(0.0, amount)


def round_whole(value) -> int:
    """Round to the nearest integer, half-up (2.5 -> 3)."""
    return int(Decimal(str(value)).quantize(_WHOLE, rounding=ROUND_HALF_UP))

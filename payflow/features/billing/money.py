"""Amount helpers: major/minor unit conversion and comparison."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

# Currencies whose smallest unit is the major unit
ZERO_DECIMAL_CURRENCIES = frozenset({
    "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
    "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
})

_CENT = Decimal("0.01")


def _factor(currency: str) -> int:
    return 1 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 100


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    """Normalize an amount to a 2dp Decimal (floats go through str to avoid binary noise)."""
    if isinstance(value, Decimal):
        amount = value
    else:
        amount = Decimal(str(value))
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Union[Decimal, int, float, str], currency: str) -> int:
    """5000 NGN -> 500000 kobo."""
    return int((to_decimal(amount) * _factor(currency)).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(value: Union[int, str], currency: str) -> Decimal:
    """500000 kobo -> Decimal('5000.00')."""
    return to_decimal(Decimal(int(value)) / _factor(currency))


def amounts_match(
    expected_amount: Decimal,
    expected_currency: str,
    actual_amount: Optional[Decimal],
    actual_currency: Optional[str],
) -> bool:
    """True when both amount and currency agree with what was issued."""
    if actual_amount is None or not actual_currency:
        return False
    if actual_currency.upper() != expected_currency.upper():
        return False
    return to_decimal(actual_amount) == to_decimal(expected_amount)

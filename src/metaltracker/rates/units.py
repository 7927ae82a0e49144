"""Unit and purity conversions for precious-metal quotes.

All conversions use Decimal arithmetic; JSON numbers are converted through
str() so that binary float artefacts never enter a price. Every price is
rounded exactly once, by round_price(), half away from zero.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

#: Grams in one troy ounce.
GRAMS_PER_TROY_OUNCE = Decimal("31.1035")

#: 22 karat gold is 91.6% pure.
PURITY_22K = Decimal("0.916")

_WHOLE = Decimal("1")


def to_decimal(value: object) -> Decimal:
    """Convert a JSON scalar (int, float or numeric string) to Decimal.

    Raises:
        ValueError: If the value is missing, boolean, non-numeric or not finite.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"not a number: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def round_price(value: Decimal) -> int:
    """Round a price to whole currency units, half away from zero."""
    return int(value.quantize(_WHOLE, rounding=ROUND_HALF_UP))


def gram_price_from_troy_ounce(price_per_ounce: Decimal) -> Decimal:
    """Convert a per-troy-ounce price into a per-gram price."""
    return price_per_ounce / GRAMS_PER_TROY_OUNCE


def invert_rate(units_per_base: Decimal) -> Decimal:
    """Invert an exchange rate, e.g. ounces-per-USD into USD-per-ounce.

    Raises:
        ValueError: If the rate is not strictly positive.
    """
    if units_per_base <= 0:
        raise ValueError(f"rate must be positive, got {units_per_base}")
    return _WHOLE / units_per_base


def derive_purity_variant(price_24k: int, purity_ratio: Decimal = PURITY_22K) -> int:
    """Price of a lower-purity grade derived from the 24k price.

    Since purity_ratio < 1 the result never exceeds price_24k.
    """
    return round_price(Decimal(price_24k) * purity_ratio)

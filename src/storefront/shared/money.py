"""Fixed-point money helpers.

Amounts are handled as `Decimal` quantized to the currency's minor unit and
persisted as integer minor units (cents). Binary floats only appear at the
catalogue boundary and are converted through their shortest decimal repr.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Convert a catalogue amount (float, int, str or Decimal) to a cent-quantized Decimal."""
    if value is None:
        raise ValueError("Amount is required")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(repr(value))
    else:
        amount = Decimal(str(value))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    return int((amount.quantize(CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def from_cents(cents: int | None) -> Decimal:
    return (Decimal(cents or 0) / 100).quantize(CENT)


def format_amount(cents: int | None) -> str:
    """Render minor units as a plain decimal string, e.g. 1440 -> "14.40"."""
    return str(from_cents(cents))

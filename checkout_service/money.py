# checkout_service/money.py
"""Fixed-point money helpers.

Amounts are summed as integer paise and only turned back into ``Decimal``
rupees at the record boundary, so totals never drift.
"""

from decimal import Decimal, InvalidOperation

MINOR_UNITS = 100
_CENT = Decimal("0.01")


def to_minor_units(amount) -> int:
    """Convert a rupee amount (``Decimal``, ``int`` or ``str``) to integer paise."""
    if isinstance(amount, (bool, float)):
        raise TypeError("Monetary amounts must not be floats")
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a monetary amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Not a monetary amount: {amount!r}")
    if value < 0:
        raise ValueError(f"Monetary amount must be non-negative: {amount!r}")
    minor = value * MINOR_UNITS
    if minor != minor.to_integral_value():
        raise ValueError(f"Amount has fractions of a paisa: {amount!r}")
    return int(minor)


def from_minor_units(minor: int) -> Decimal:
    return (Decimal(minor) / MINOR_UNITS).quantize(_CENT)


def line_total(unit_price, quantity: int) -> int:
    """Subtotal of ``quantity`` units at ``unit_price``, in paise."""
    return to_minor_units(unit_price) * quantity

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """
    Coerce int/float/str/Decimal to Decimal without float artefacts.

    NaN and infinities raise ValueError like any other non-amount.
    """
    if value is None or (isinstance(value, str) and value == ""):
        return ZERO
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value) -> str | None:
    """Serialize an amount for JSON ("12.50")."""
    if value is None:
        return None
    return str(quantize(to_decimal(value)))

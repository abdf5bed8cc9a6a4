from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, NamedTuple

from .money import ZERO, to_decimal

# Payment channels tracked independently in reconciliation, in display order.
CASH = "efectivo"
TRANSFER = "transferencia"
QR = "qr"
EXPENSAS = "expensas"
CARD = "tarjeta"

CHANNELS = (CASH, TRANSFER, QR, EXPENSAS)

# Cash transactions may also be recorded against card terminals.
VALID_PAYMENT_METHODS = CHANNELS + (CARD,)

# Amounts at or below this are floating noise, not a payment.
PAYMENT_EPSILON = Decimal("0.009")

_AMOUNT_RE = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)")


class Payment(NamedTuple):
    method: str
    amount: Decimal

    def to_dict(self) -> dict:
        return {"method": self.method, "amount": self.amount}


def parse_amount(value) -> Decimal:
    """
    Parse operator input into a non-negative amount.

    Accepts "." or "," as decimal separator and ignores trailing garbage
    ("12,50 $" -> 12.50). Blank or unparseable input, NaN and infinity
    included, is zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        try:
            amount = to_decimal(value)
        except ValueError:
            return ZERO
        return amount if amount > 0 else ZERO

    text = str(value).replace(",", ".", 1)
    match = _AMOUNT_RE.match(text)
    if not match:
        return ZERO
    return Decimal(match.group(1))


def build_payment_list(amounts: Mapping[str, Decimal], total: Decimal) -> list[Payment]:
    """
    Turn per-channel amounts into the ordered payment list of a sale.

    Channels with amount <= PAYMENT_EPSILON are dropped. When nothing is
    left the whole total is paid in cash.
    """
    payments = [
        Payment(channel, amounts.get(channel, ZERO))
        for channel in CHANNELS
        if amounts.get(channel, ZERO) > PAYMENT_EPSILON
    ]
    if not payments:
        payments = [Payment(CASH, total)]
    return payments


def primary_payment_method(payments) -> str | None:
    """Cash if any payment is cash, otherwise the first payment's method."""
    methods = [p["method"] if isinstance(p, dict) else p.method for p in payments]
    if not methods:
        return None
    if CASH in methods:
        return CASH
    return methods[0]


@dataclass
class PaymentSplitter:
    """
    Amounts entered per payment channel for the sale being rung up.

    Partial entry is allowed here; matching the cart total is checked at
    settlement.
    """
    amounts: dict[str, Decimal] = field(default_factory=lambda: {c: ZERO for c in CHANNELS})

    @classmethod
    def from_mapping(cls, data: Mapping | None) -> "PaymentSplitter":
        splitter = cls()
        for channel, raw in (data or {}).items():
            splitter.set_amount(channel, raw)
        return splitter

    def set_amount(self, channel: str, value) -> Decimal:
        if channel not in CHANNELS:
            raise ValueError(f"Invalid payment channel: {channel}. Must be one of {list(CHANNELS)}")
        amount = parse_amount(value)
        self.amounts[channel] = amount
        return amount

    @property
    def entered_total(self) -> Decimal:
        return sum(self.amounts.values(), ZERO)

    def _all_zero(self) -> bool:
        return all(amount == 0 for amount in self.amounts.values())

    def on_total_changed(self, total: Decimal) -> None:
        """
        Keep defaults in step with the cart total: a fresh positive total is
        paid all in cash, a cart that drops back to zero clears every amount.
        """
        if total > 0 and self._all_zero():
            self.amounts[CASH] = total
        elif total == 0 and not self._all_zero():
            self.reset()

    def reset(self) -> None:
        for channel in CHANNELS:
            self.amounts[channel] = ZERO

    def payments(self, total: Decimal) -> list[Payment]:
        return build_payment_list(self.amounts, total)

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .money import ZERO, to_decimal
from .payments import CASH, CHANNELS

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = (INCOME, EXPENSE)

BALANCED = "balanced"
SURPLUS = "surplus"
SHORTFALL = "shortfall"

RECONCILE_TOLERANCE = Decimal("0.01")


def _field(row, name: str):
    if isinstance(row, dict):
        return row.get(name)
    return getattr(row, name)


@dataclass(frozen=True)
class Reconciliation:
    """Advisory outcome of a drawer count. Never blocks closing a shift."""
    status: str
    expected_cash: Decimal
    counted_cash: Decimal
    difference: Decimal

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "expected_cash": self.expected_cash,
            "counted_cash": self.counted_cash,
            "difference": self.difference,
        }


class CashLedger:
    """
    Income/expense aggregation over cash-transaction rows.

    The caller has already filtered the rows to a shift or a period.
    Pure function of (rows, opening_cash): computing twice gives the same
    figures.
    """

    def __init__(self, transactions: Iterable, opening_cash=ZERO):
        self._rows = tuple(transactions)
        self.opening_cash = to_decimal(opening_cash)

    def _sum(self, tx_type: str, method: str | None) -> Decimal:
        total = ZERO
        for row in self._rows:
            if _field(row, "type") != tx_type:
                continue
            if method is not None and _field(row, "payment_method") != method:
                continue
            total += to_decimal(_field(row, "amount"))
        return total

    def income_total(self, method: str | None = None) -> Decimal:
        return self._sum(INCOME, method)

    def expense_total(self, method: str | None = None) -> Decimal:
        return self._sum(EXPENSE, method)

    def in_box(self, method: str) -> Decimal:
        return self.income_total(method) - self.expense_total(method)

    def in_box_by_channel(self) -> dict[str, Decimal]:
        return {channel: self.in_box(channel) for channel in CHANNELS}

    @property
    def expected_cash(self) -> Decimal:
        return self.opening_cash + self.in_box(CASH)

    @property
    def balance(self) -> Decimal:
        return self.income_total() - self.expense_total()

    def reconcile(self, counted_cash) -> Reconciliation:
        counted = to_decimal(counted_cash)
        expected = self.expected_cash

        if abs(counted - expected) < RECONCILE_TOLERANCE:
            return Reconciliation(BALANCED, expected, counted, ZERO)
        if counted > expected:
            return Reconciliation(SURPLUS, expected, counted, counted - expected)
        return Reconciliation(SHORTFALL, expected, counted, expected - counted)

    def summary(self) -> dict:
        return {
            "opening_cash": self.opening_cash,
            "total_income": self.income_total(),
            "total_expense": self.expense_total(),
            "balance": self.balance,
            "in_box": self.in_box_by_channel(),
            "expected_cash": self.expected_cash,
            "transaction_count": len(self._rows),
        }

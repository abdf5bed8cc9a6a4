# Overview: In-memory sale core (cart, payment split, cash ledger). No database access.

from .cart import Cart, CartLine
from .payments import (
    CASH,
    CHANNELS,
    Payment,
    PaymentSplitter,
    build_payment_list,
    parse_amount,
    primary_payment_method,
)
from .ledger import CashLedger, Reconciliation

__all__ = [
    "Cart", "CartLine",
    "CASH", "CHANNELS", "Payment", "PaymentSplitter",
    "build_payment_list", "parse_amount", "primary_payment_method",
    "CashLedger", "Reconciliation",
]

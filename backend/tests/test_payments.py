"""
Payment splitter tests: amount parsing, auto-fill, payment list and the
derived primary method.
"""

from decimal import Decimal

import pytest

from kiosco.pos.payments import (
    CASH,
    EXPENSAS,
    QR,
    TRANSFER,
    Payment,
    PaymentSplitter,
    build_payment_list,
    parse_amount,
    primary_payment_method,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("12.50", Decimal("12.50")),
        ("12,50", Decimal("12.50")),
        ("  7 ", Decimal("7")),
        ("", Decimal("0")),
        (None, Decimal("0")),
        ("abc", Decimal("0")),
        ("-5", Decimal("0")),
        (".5", Decimal(".5")),
        (15, Decimal("15")),
        (float("nan"), Decimal("0")),
        (float("inf"), Decimal("0")),
        (Decimal("NaN"), Decimal("0")),
        ("NaN", Decimal("0")),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


class TestAutoFill:
    def test_positive_total_fills_cash_when_nothing_entered(self):
        splitter = PaymentSplitter()
        splitter.on_total_changed(Decimal("35.00"))

        assert splitter.amounts[CASH] == Decimal("35.00")

    def test_entered_amounts_are_kept(self):
        splitter = PaymentSplitter()
        splitter.set_amount(QR, "20")
        splitter.on_total_changed(Decimal("35.00"))

        assert splitter.amounts[CASH] == Decimal("0")
        assert splitter.amounts[QR] == Decimal("20")

    def test_zero_total_resets_amounts(self):
        splitter = PaymentSplitter()
        splitter.set_amount(TRANSFER, "50")
        splitter.on_total_changed(Decimal("0"))

        assert splitter.entered_total == Decimal("0")

    def test_unknown_channel_is_rejected(self):
        with pytest.raises(ValueError):
            PaymentSplitter().set_amount("bitcoin", "1")


class TestBuildPaymentList:
    def test_keeps_channel_order_and_drops_noise(self):
        amounts = {
            EXPENSAS: Decimal("10"),
            CASH: Decimal("40"),
            QR: Decimal("0.009"),
            TRANSFER: Decimal("0.01"),
        }
        payments = build_payment_list(amounts, Decimal("50.01"))

        assert payments == [
            Payment(CASH, Decimal("40")),
            Payment(TRANSFER, Decimal("0.01")),
            Payment(EXPENSAS, Decimal("10")),
        ]

    def test_nothing_entered_means_full_cash(self):
        payments = build_payment_list({}, Decimal("99.90"))

        assert payments == [Payment(CASH, Decimal("99.90"))]


class TestPrimaryPaymentMethod:
    def test_cash_wins_when_present(self):
        payments = [Payment(QR, Decimal("10")), Payment(CASH, Decimal("5"))]
        assert primary_payment_method(payments) == CASH

    def test_first_method_otherwise(self):
        payments = [{"method": TRANSFER, "amount": "10"}, {"method": QR, "amount": "5"}]
        assert primary_payment_method(payments) == TRANSFER

    def test_empty(self):
        assert primary_payment_method([]) is None

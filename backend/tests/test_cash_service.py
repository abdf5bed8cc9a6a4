"""
Cash desk tests.

Verifies:
- Manual rows need an open shift and valid input
- Period boundaries follow the operator's local calendar
- Period overview totals and the open shift's per-channel balances
- Related sale lookup by link and by "V-<n>" reference
- CSV export format
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from kiosco.errors import InvalidState, NotFoundError
from kiosco.extensions import db
from kiosco.models import CashTransaction
from kiosco.pos.cart import Cart
from kiosco.pos.payments import PaymentSplitter
from kiosco.services import cash_service, settlement_service
from kiosco.validation import ValidationError


def add_row(shift_id, created_at, amount="10.00", tx_type="income", method="efectivo",
            category="ajuste", description=""):
    tx = CashTransaction(
        shift_id=shift_id,
        type=tx_type,
        category=category,
        amount=Decimal(amount),
        payment_method=method,
        description=description,
        created_at=created_at,
    )
    db.session.add(tx)
    db.session.commit()
    return tx


class TestRecordTransaction:
    def test_records_row(self, shift_ctx):
        tx = cash_service.record_transaction(
            shift_ctx,
            tx_type="expense",
            category="  retiro ",
            amount="250.50",
            payment_method="efectivo",
            description="Pago proveedor",
        )

        assert tx.id is not None
        assert tx.shift_id == shift_ctx.shift_id
        assert tx.category == "retiro"
        assert tx.amount == Decimal("250.5")
        assert tx.sale_id is None

    def test_requires_open_shift(self, db_session):
        with pytest.raises(InvalidState):
            cash_service.record_transaction(
                None, tx_type="income", category="propina", amount="10", payment_method="efectivo",
            )

    @pytest.mark.parametrize("overrides", [
        {"tx_type": "refund"},
        {"payment_method": "cheque"},
        {"category": "   "},
        {"amount": "0"},
        {"amount": "-5"},
        {"amount": "abc"},
    ])
    def test_rejects_bad_input(self, shift_ctx, overrides):
        kwargs = dict(tx_type="income", category="propina", amount="10", payment_method="efectivo")
        kwargs.update(overrides)

        with pytest.raises(ValidationError):
            cash_service.record_transaction(shift_ctx, **kwargs)

        assert db.session.query(CashTransaction).count() == 0

    def test_card_is_accepted_for_manual_rows(self, shift_ctx):
        tx = cash_service.record_transaction(
            shift_ctx, tx_type="income", category="ajuste", amount="1", payment_method="tarjeta",
        )

        assert tx.payment_method == "tarjeta"


class TestPeriods:
    # Thursday 2026-10-15, 12:00 in Buenos Aires (UTC-3)
    NOW = datetime(2026, 10, 15, 15, 0)

    @pytest.fixture
    def rows(self, open_shift):
        return {
            "today": add_row(open_shift.id, datetime(2026, 10, 15, 12, 0)),
            "late_today": add_row(open_shift.id, datetime(2026, 10, 16, 2, 0)),
            "yesterday_local": add_row(open_shift.id, datetime(2026, 10, 15, 2, 0)),
            "monday": add_row(open_shift.id, datetime(2026, 10, 13, 12, 0)),
            "early_month": add_row(open_shift.id, datetime(2026, 10, 2, 12, 0)),
            "last_month": add_row(open_shift.id, datetime(2026, 9, 20, 12, 0)),
        }

    def _ids(self, rows, *names):
        return {rows[name].id for name in names}

    def test_today_uses_local_midnight(self, rows):
        result = cash_service.list_transactions("today", now=self.NOW)

        assert {tx.id for tx in result} == self._ids(rows, "today", "late_today")

    def test_week_starts_monday(self, rows):
        result = cash_service.list_transactions("week", now=self.NOW)

        assert {tx.id for tx in result} == self._ids(rows, "today", "late_today", "yesterday_local", "monday")

    def test_month(self, rows):
        result = cash_service.list_transactions("month", now=self.NOW)

        assert len(result) == 5
        assert rows["last_month"].id not in {tx.id for tx in result}

    def test_previous_month(self, rows):
        result = cash_service.list_transactions("previous_month", now=self.NOW)

        assert [tx.id for tx in result] == [rows["last_month"].id]

    def test_all_newest_first(self, rows):
        result = cash_service.list_transactions("all", now=self.NOW)

        assert [tx.id for tx in result] == [
            rows[name].id
            for name in ("late_today", "today", "yesterday_local", "monday", "early_month", "last_month")
        ]

    def test_custom_range(self, rows):
        result = cash_service.list_transactions(
            "custom", date_from=date(2026, 10, 1), date_to=date(2026, 10, 13), now=self.NOW,
        )

        assert {tx.id for tx in result} == self._ids(rows, "monday", "early_month")

    def test_unknown_period(self, db_session):
        with pytest.raises(ValidationError):
            cash_service.list_transactions("year")


class TestPeriodOverview:
    def test_shift_balances(self, shift_ctx):
        for tx_type, amount, method in [
            ("income", "100", "efectivo"),
            ("expense", "30", "efectivo"),
            ("income", "50", "transferencia"),
        ]:
            cash_service.record_transaction(
                shift_ctx, tx_type=tx_type, category="ajuste", amount=amount, payment_method=method,
            )

        overview = cash_service.period_overview("today", shift=shift_ctx)

        assert overview["count"] == 3
        assert overview["period_totals"] == {
            "total_income": "150.00",
            "total_expense": "30.00",
            "balance": "120.00",
        }
        assert overview["shift"]["in_box"] == {
            "efectivo": "70.00",
            "transferencia": "50.00",
            "qr": "0.00",
            "expensas": "0.00",
        }
        assert overview["shift"]["expected_cash"] == "70.00"
        assert overview["month"]["balance"] == "120.00"

    def test_without_shift(self, db_session):
        overview = cash_service.period_overview("today")

        assert overview["shift"] is None
        assert overview["transactions"] == []


class TestRelatedSale:
    @pytest.fixture
    def sale(self, make_product, shift_ctx):
        agua = make_product("0001", "Agua", price="10.00")
        cart = Cart()
        cart.add_to_cart(agua)
        return settlement_service.settle_sale(cart, PaymentSplitter.from_mapping({"efectivo": "10"}), shift_ctx)

    def test_by_link(self, sale):
        row = db.session.query(CashTransaction).filter_by(sale_id=sale.id).one()

        assert cash_service.related_sale(row.id).id == sale.id

    def test_by_reference_in_description(self, sale, shift_ctx):
        tx = cash_service.record_transaction(
            shift_ctx,
            tx_type="expense",
            category="devolucion",
            amount="10",
            payment_method="efectivo",
            description=f"Devolución de {sale.sale_number}",
        )

        assert cash_service.related_sale(tx.id).id == sale.id

    def test_unresolved_reference(self, shift_ctx):
        tx = cash_service.record_transaction(
            shift_ctx, tx_type="expense", category="ajuste", amount="1",
            payment_method="efectivo", description="Ver V-42",
        )

        assert cash_service.related_sale(tx.id) is None

    def test_unknown_transaction(self, db_session):
        with pytest.raises(NotFoundError):
            cash_service.related_sale(404)


class TestCsvExport:
    def test_format(self, open_shift):
        income = add_row(
            open_shift.id,
            datetime(2026, 10, 15, 15, 4, 5),
            amount="150",
            category="propina",
            description='Propina "mesa 4"',
        )
        expense = add_row(
            open_shift.id,
            datetime(2026, 10, 16, 1, 30),
            amount="20.5",
            tx_type="expense",
            method="transferencia",
            category="retiro",
        )

        text = cash_service.export_csv([income, expense])

        assert text == (
            '"Date","Time","Type","Category","Amount","Method","Description"\n'
            '"15/10/2026","12:04:05","Income","propina","150.00","efectivo","Propina ""mesa 4"""\n'
            '"15/10/2026","22:30:00","Expense","retiro","20.50","transferencia",""\n'
        )

    def test_empty_export_is_refused(self, app):
        with pytest.raises(InvalidState):
            cash_service.export_csv([])

    def test_filename_uses_local_date(self, app):
        assert cash_service.export_filename(datetime(2026, 10, 16, 1, 0)) == "cash_transactions_2026-10-15.csv"

"""
Sale settlement tests.

Verifies:
- A settled sale writes the sale, stock decrement, movements and cash rows
- Payment/total tolerance is exactly one cent
- Non-cash payments require customer name and lot
- Any failure leaves no trace (sale, stock, movements, cash rows)
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from kiosco.errors import (
    InvalidState,
    MissingCustomerInfo,
    PaymentMismatch,
    RemoteWriteFailure,
    StockExceeded,
)
from kiosco.extensions import db
from kiosco.models import CashTransaction, InventoryMovement, Product, Sale
from kiosco.pos.cart import Cart
from kiosco.pos.payments import PaymentSplitter
from kiosco.services import settlement_service, shift_service
from kiosco.validation import ValidationError


def _cart(*lines):
    """lines: (product, quantity) pairs."""
    cart = Cart()
    for product, quantity in lines:
        cart.add_to_cart(product)
        cart.update_quantity(product.id, quantity)
    return cart


def _counts():
    return (
        db.session.query(Sale).count(),
        db.session.query(InventoryMovement).count(),
        db.session.query(CashTransaction).count(),
    )


class TestSettleSale:
    def test_end_to_end_cash_sale(self, shift_ctx, make_product):
        product = make_product("0001", "Paleta", price="10.00", stock=10)
        cart = _cart((product, 2))
        splitter = PaymentSplitter.from_mapping({"efectivo": "20"})

        sale = settlement_service.settle_sale(cart, splitter, shift_ctx)

        assert sale.total == Decimal("20.00")
        assert sale.payment_method == "efectivo"
        assert [p.to_dict() for p in sale.payments] == [{"method": "efectivo", "amount": "20.00"}]
        assert sale.sale_number.startswith("V-")

        cash_rows = db.session.query(CashTransaction).all()
        assert len(cash_rows) == 1
        assert cash_rows[0].type == "income"
        assert cash_rows[0].category == "venta"
        assert cash_rows[0].amount == Decimal("20.00")
        assert cash_rows[0].payment_method == "efectivo"
        assert cash_rows[0].sale_id == sale.id
        assert cash_rows[0].description == f"Venta {sale.sale_number}"

        movements = db.session.query(InventoryMovement).all()
        assert len(movements) == 1
        assert movements[0].movement_type == "sale"
        assert movements[0].quantity == 2
        assert movements[0].total_amount == Decimal("20.00")
        assert movements[0].sale_number == sale.sale_number

        assert db.session.get(Product, product.id).stock == 8

    def test_success_resets_cart_and_splitter(self, shift_ctx, make_product):
        product = make_product("0001", "Agua")
        cart = _cart((product, 1))
        splitter = PaymentSplitter()
        splitter.on_total_changed(cart.total)

        settlement_service.settle_sale(cart, splitter, shift_ctx)

        assert cart.is_empty
        assert splitter.entered_total == Decimal("0")

    def test_split_payment_writes_one_cash_row_per_channel(self, shift_ctx, make_product):
        product = make_product("0001", "Luz cancha", price="300.00", stock=5)
        cart = _cart((product, 1))
        splitter = PaymentSplitter.from_mapping({"qr": "100", "efectivo": "150", "expensas": "50"})

        sale = settlement_service.settle_sale(
            cart, splitter, shift_ctx, customer_name="Ana Gómez", customer_lot="12"
        )

        rows = db.session.query(CashTransaction).order_by(CashTransaction.id).all()
        assert [(r.payment_method, r.amount) for r in rows] == [
            ("efectivo", Decimal("150.00")),
            ("qr", Decimal("100.00")),
            ("expensas", Decimal("50.00")),
        ]
        assert all(r.description == f"Venta {sale.sale_number} - Ana Gómez (Lote 12)" for r in rows)
        assert sale.payment_method == "efectivo"
        assert sale.customer_lot == "12"

        movement = db.session.query(InventoryMovement).one()
        assert movement.description == f"Venta {sale.sale_number} - Ana Gómez"

    def test_lot_without_name_still_lands_on_cash_rows(self, shift_ctx, make_product):
        product = make_product("0001", "Agua", price="10.00")
        cart = _cart((product, 1))
        splitter = PaymentSplitter.from_mapping({"efectivo": "10"})

        sale = settlement_service.settle_sale(cart, splitter, shift_ctx, customer_lot=" 12 ")

        row = db.session.query(CashTransaction).one()
        assert row.description == f"Venta {sale.sale_number} -  (Lote 12)"
        assert db.session.query(InventoryMovement).one().description == f"Venta {sale.sale_number}"

    def test_non_cash_only_sale_derives_first_method(self, shift_ctx, make_product):
        product = make_product("0001", "Invitado", price="50.00")
        cart = _cart((product, 1))
        splitter = PaymentSplitter.from_mapping({"transferencia": "30", "qr": "20"})

        sale = settlement_service.settle_sale(
            cart, splitter, shift_ctx, customer_name="Luis", customer_lot="4"
        )

        assert sale.payment_method == "transferencia"

    def test_price_override_and_snapshots_are_stored(self, shift_ctx, make_product):
        product = make_product("0001", "Gatorade", price="20.00", category="Bebida")
        cart = _cart((product, 3))
        cart.update_price(product.id, "15.00")
        splitter = PaymentSplitter.from_mapping({"efectivo": "45"})

        sale = settlement_service.settle_sale(cart, splitter, shift_ctx)

        product.name = "Gatorade 750"
        db.session.commit()

        item = sale.items[0].to_dict()
        assert item["product_name"] == "Gatorade"
        assert item["category"] == "Bebida"
        assert item["price"] == "15.00"
        assert item["subtotal"] == "45.00"


class TestPreconditions:
    def test_empty_cart(self, shift_ctx):
        with pytest.raises(InvalidState):
            settlement_service.settle_sale(Cart(), PaymentSplitter(), shift_ctx)

    def test_no_shift(self, db_session, make_product):
        cart = _cart((make_product("0001", "Agua"), 1))
        with pytest.raises(InvalidState):
            settlement_service.settle_sale(cart, PaymentSplitter.from_mapping({"efectivo": "10"}), None)

    def test_closed_shift(self, open_shift, shift_ctx, make_product):
        cart = _cart((make_product("0001", "Agua"), 1))
        shift_service.close_shift(open_shift.id, "0")

        with pytest.raises(InvalidState):
            settlement_service.settle_sale(cart, PaymentSplitter.from_mapping({"efectivo": "10"}), shift_ctx)

        assert _counts() == (0, 0, 0)

    def test_mismatch_reports_both_figures(self, shift_ctx, make_product):
        cart = _cart((make_product("0001", "Pelota", price="100.00"), 1))
        splitter = PaymentSplitter.from_mapping({"efectivo": "40", "qr": "59.98"})

        with pytest.raises(PaymentMismatch) as exc:
            settlement_service.settle_sale(cart, splitter, shift_ctx, customer_name="A", customer_lot="1")

        assert exc.value.details == {"total": "100.00", "paid": "99.98"}
        assert _counts() == (0, 0, 0)
        assert not cart.is_empty

    def test_delta_of_exactly_one_cent_passes(self, shift_ctx, make_product):
        cart = _cart((make_product("0001", "Pelota", price="100.00"), 1))
        splitter = PaymentSplitter.from_mapping({"efectivo": "100.01"})

        sale = settlement_service.settle_sale(cart, splitter, shift_ctx)

        assert sale.total == Decimal("100.00")

    def test_delta_above_one_cent_fails(self, shift_ctx, make_product):
        cart = _cart((make_product("0001", "Pelota", price="100.00"), 1))
        splitter = PaymentSplitter.from_mapping({"efectivo": "100.02"})

        with pytest.raises(PaymentMismatch):
            settlement_service.settle_sale(cart, splitter, shift_ctx)

    def test_payments_are_checked_and_stored_in_cents(self, shift_ctx, make_product):
        cart = _cart((make_product("0001", "Pelota", price="100.00"), 1))
        splitter = PaymentSplitter.from_mapping({"efectivo": "60.004", "qr": "40.006"})

        sale = settlement_service.settle_sale(cart, splitter, shift_ctx, customer_name="Ana", customer_lot="3")

        assert [(p.method, p.amount) for p in sale.payments] == [
            ("efectivo", Decimal("60.00")),
            ("qr", Decimal("40.01")),
        ]
        rows = db.session.query(CashTransaction).order_by(CashTransaction.id).all()
        assert [r.amount for r in rows] == [Decimal("60.00"), Decimal("40.01")]

    @pytest.mark.parametrize("name,lot", [(None, "3"), ("   ", "3"), ("Ana", None), ("Ana", "  ")])
    def test_non_cash_needs_name_and_lot(self, shift_ctx, make_product, name, lot):
        cart = _cart((make_product("0001", "Agua"), 1))
        splitter = PaymentSplitter.from_mapping({"transferencia": "10"})

        with pytest.raises(MissingCustomerInfo):
            settlement_service.settle_sale(cart, splitter, shift_ctx, customer_name=name, customer_lot=lot)

        assert _counts() == (0, 0, 0)

    def test_qr_payment_without_customer_name(self, shift_ctx, make_product):
        cart = _cart((make_product("0001", "Agua"), 1))
        splitter = PaymentSplitter.from_mapping({"qr": "10"})

        with pytest.raises(MissingCustomerInfo):
            settlement_service.settle_sale(cart, splitter, shift_ctx, customer_name="")


class TestAtomicity:
    def test_stock_sold_elsewhere_rolls_back_everything(self, shift_ctx, make_product):
        first = make_product("0001", "Agua", price="10.00", stock=5)
        second = make_product("0002", "Alfajor", price="5.00", stock=2)
        cart = _cart((first, 2), (second, 2))

        # Another terminal sold the last alfajores after they were added
        second.stock = 1
        db.session.commit()

        splitter = PaymentSplitter.from_mapping({"efectivo": "30"})
        with pytest.raises(StockExceeded) as exc:
            settlement_service.settle_sale(cart, splitter, shift_ctx)

        assert exc.value.details["product_id"] == second.id
        assert exc.value.details["stock"] == 1
        assert _counts() == (0, 0, 0)
        assert db.session.get(Product, first.id).stock == 5
        assert db.session.get(Product, second.id).stock == 1
        assert len(cart.lines) == 2

    def test_database_failure_is_remote_write_failure(self, shift_ctx, make_product, monkeypatch):
        product = make_product("0001", "Agua", stock=5)
        cart = _cart((product, 1))
        splitter = PaymentSplitter.from_mapping({"efectivo": "10"})

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db.session, "commit", failing_commit)
        with pytest.raises(RemoteWriteFailure):
            settlement_service.settle_sale(cart, splitter, shift_ctx)
        monkeypatch.undo()

        assert _counts() == (0, 0, 0)
        assert db.session.get(Product, product.id).stock == 5
        assert not cart.is_empty


class TestSaleNumbers:
    def test_collision_bumps_number(self, shift_ctx, make_product):
        product = make_product("0001", "Agua")
        cart = _cart((product, 1))
        sale = settlement_service.settle_sale(cart, PaymentSplitter.from_mapping({"efectivo": "10"}), shift_ctx)

        taken = int(sale.sale_number[2:])
        assert settlement_service.next_sale_number(now_ms=taken) == f"V-{taken + 1}"

    def test_consecutive_sales_get_distinct_numbers(self, shift_ctx, make_product):
        product = make_product("0001", "Agua", stock=10)
        numbers = set()
        for _ in range(3):
            cart = _cart((product, 1))
            sale = settlement_service.settle_sale(cart, PaymentSplitter.from_mapping({"efectivo": "10"}), shift_ctx)
            numbers.add(sale.sale_number)

        assert len(numbers) == 3


class TestBuildCart:
    def test_rebuilds_lines_from_request_items(self, db_session, make_product):
        agua = make_product("0001", "Agua", price="10.00", stock=5)
        cart = settlement_service.build_cart([
            {"product_id": agua.id, "quantity": 3},
            {"product_id": agua.id, "quantity": 1, "price": "8"},
        ])

        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 4
        assert cart.total == Decimal("32")

    def test_quantity_above_stock(self, db_session, make_product):
        agua = make_product("0001", "Agua", stock=2)

        with pytest.raises(StockExceeded):
            settlement_service.build_cart([{"product_id": agua.id, "quantity": 3}])

    def test_inactive_product_cannot_be_sold(self, db_session, make_product):
        retired = make_product("0001", "Agua vieja", stock=5, active=False)

        with pytest.raises(InvalidState):
            settlement_service.build_cart([{"product_id": retired.id, "quantity": 1}])

        db.session.expire_all()
        assert db.session.get(Product, retired.id).stock == 5

    @pytest.mark.parametrize("price", ["NaN", "Infinity", "abc"])
    def test_non_numeric_price_override(self, db_session, make_product, price):
        agua = make_product("0001", "Agua", stock=5)

        with pytest.raises(ValidationError):
            settlement_service.build_cart([{"product_id": agua.id, "quantity": 1, "price": price}])

    def test_sub_cent_price_override_is_rounded(self, db_session, make_product):
        agua = make_product("0001", "Agua", stock=5)
        cart = settlement_service.build_cart([{"product_id": agua.id, "quantity": 3, "price": "0.333"}])

        assert cart.lines[0].price == Decimal("0.33")
        assert cart.total == Decimal("0.99")

"""
Sale Settlement Service

WHY: Turns the cart and the entered payments into a persisted sale. Every
check runs before anything is written, and every write (sale, stock,
movements, cash rows) commits in one transaction.

CHECKS (in order, each a hard stop):
1. cart not empty and a shift is open
2. payment list built from the splitter (cash fallback for the full total)
3. |sum(payments) - total| <= 0.01
4. non-cash payments need customer name and lot

WRITES (one transaction):
1. sale with items and payments, unique sale_number
2. conditional stock decrement per line (stock >= quantity)
3. one sale movement per line
4. one income/venta cash row per payment

A failed stock condition raises StockExceeded and a database error raises
RemoteWriteFailure. Either way nothing is persisted.
"""
from __future__ import annotations

import time
from decimal import Decimal

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import (
    InvalidState,
    MissingCustomerInfo,
    NotFoundError,
    PaymentMismatch,
    PosError,
    RemoteWriteFailure,
    StockExceeded,
)
from ..extensions import db
from ..models import CashTransaction, InventoryMovement, Product, Sale, SaleItem, SalePayment, Shift
from ..models.inventory import MOVEMENT_SALE
from ..permissions import AuthContext
from ..pos.cart import Cart
from ..pos.ledger import INCOME
from ..pos.money import ZERO, money_str, quantize
from ..pos.payments import CASH, Payment, PaymentSplitter
from ..validation import ValidationError, require_positive_int
from .shift_service import ShiftContext
from kiosco.time_utils import utcnow

SETTLEMENT_TOLERANCE = Decimal("0.01")
SALE_CASH_CATEGORY = "venta"


def build_cart(items) -> Cart:
    """
    Rebuild a cart from request items [{product_id, quantity, price?}].

    Quantities go through the cart's stock bound, so a line above the
    product's current stock raises StockExceeded here already.
    """
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    cart = Cart()
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError("each item must be an object")

        product_id = require_positive_int("product_id", raw.get("product_id"))
        quantity = require_positive_int("quantity", raw.get("quantity", 1))

        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        if not product.active:
            raise InvalidState("Product is not available for sale", details={"product_id": product_id})

        line = cart.add_to_cart(product)
        # add_to_cart already counted one unit
        cart.update_quantity(product_id, line.quantity - 1 + quantity)

        if raw.get("price") is not None:
            try:
                cart.update_price(product_id, raw["price"])
            except ValueError:
                raise ValidationError("price must be a number")

    return cart


def next_sale_number(now_ms: int | None = None) -> str:
    """V-<epoch ms>, bumped by one until no stored sale uses it."""
    candidate = now_ms if now_ms is not None else int(time.time() * 1000)
    while db.session.query(Sale.id).filter_by(sale_number=f"V-{candidate}").first() is not None:
        candidate += 1
    return f"V-{candidate}"


def _has_non_cash(payments: list[Payment]) -> bool:
    return any(p.method != CASH for p in payments)


def _clean(value) -> str:
    return (value or "").strip() if isinstance(value, str) else ""


def validate_settlement(
    cart: Cart,
    splitter: PaymentSplitter,
    shift: ShiftContext | None,
    customer_name: str | None,
    customer_lot: str | None,
) -> list[Payment]:
    """Run the pre-write checks and return the payment list to persist."""
    if cart.is_empty:
        raise InvalidState("Cart is empty")
    if shift is None:
        raise InvalidState("No open shift")

    total = cart.total
    payments = [Payment(p.method, quantize(p.amount)) for p in splitter.payments(total)]

    paid = sum((p.amount for p in payments), ZERO)
    if abs(paid - total) > SETTLEMENT_TOLERANCE:
        raise PaymentMismatch(
            f"Payments ({money_str(paid)}) do not match the total ({money_str(total)})",
            details={"total": money_str(total), "paid": money_str(paid)},
        )

    if _has_non_cash(payments) and not (_clean(customer_name) and _clean(customer_lot)):
        raise MissingCustomerInfo(
            "Customer name and lot are required for non-cash payments",
            details={"methods": [p.method for p in payments]},
        )

    return payments


def _movement_description(sale_number: str, customer_name: str) -> str:
    if customer_name:
        return f"Venta {sale_number} - {customer_name}"
    return f"Venta {sale_number}"


def _cash_description(sale_number: str, customer_name: str, customer_lot: str) -> str:
    if customer_name or customer_lot:
        return f"Venta {sale_number} - {customer_name} (Lote {customer_lot or '-'})"
    return f"Venta {sale_number}"


def _decrement_stock(product_id: int, quantity: int, product_name: str) -> None:
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        stock = db.session.query(Product.stock).filter(Product.id == product_id).scalar()
        raise StockExceeded(
            f"Insufficient stock for {product_name}",
            details={
                "product_id": product_id,
                "requested_quantity": quantity,
                "stock": stock,
            },
        )


def settle_sale(
    cart: Cart,
    splitter: PaymentSplitter,
    shift: ShiftContext | None,
    *,
    customer_name: str | None = None,
    customer_lot: str | None = None,
    auth: AuthContext | None = None,
) -> Sale:
    """
    Validate and persist a sale.

    On success the cart and the splitter are reset and the stored Sale is
    returned. On any failure both are left untouched and no row is
    written.
    """
    payments = validate_settlement(cart, splitter, shift, customer_name, customer_lot)

    name = _clean(customer_name)
    lot = _clean(customer_lot)
    total = cart.total
    now = utcnow()

    stored_shift = db.session.get(Shift, shift.shift_id)
    if stored_shift is None or not stored_shift.is_open:
        raise InvalidState("Shift is no longer open", details={"shift_id": shift.shift_id})

    try:
        sale = Sale(
            sale_number=next_sale_number(),
            user_id=auth.user_id if auth else shift.user_id,
            user_name=auth.user_name if auth else shift.user_name,
            shift_id=shift.shift_id,
            subtotal=total,
            discount=ZERO,
            total=total,
            customer_name=name or None,
            customer_lot=lot or None,
            created_at=now,
        )
        for position, line in enumerate(cart.lines):
            sale.items.append(SaleItem(
                position=position,
                product_id=line.product_id,
                product_name=line.product_name,
                category=line.category or None,
                quantity=line.quantity,
                price=line.price,
                subtotal=line.subtotal,
            ))
        for position, payment in enumerate(payments):
            sale.payments.append(SalePayment(
                position=position,
                method=payment.method,
                amount=payment.amount,
            ))
        db.session.add(sale)
        db.session.flush()

        for line in cart.lines:
            _decrement_stock(line.product_id, line.quantity, line.product_name)

        for line in cart.lines:
            db.session.add(InventoryMovement(
                product_id=line.product_id,
                product_name=line.product_name,
                category=line.category or None,
                movement_type=MOVEMENT_SALE,
                quantity=line.quantity,
                unit_price=line.price,
                total_amount=line.subtotal,
                sale_id=sale.id,
                sale_number=sale.sale_number,
                description=_movement_description(sale.sale_number, name),
                created_at=now,
            ))

        for payment in payments:
            db.session.add(CashTransaction(
                shift_id=shift.shift_id,
                type=INCOME,
                category=SALE_CASH_CATEGORY,
                amount=payment.amount,
                payment_method=payment.method,
                description=_cash_description(sale.sale_number, name, lot),
                sale_id=sale.id,
                created_at=now,
            ))

        db.session.commit()
    except PosError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to settle sale on shift %s", shift.shift_id)
        raise RemoteWriteFailure("Sale could not be saved. Nothing was recorded.") from e

    current_app.logger.info(
        "Sale %s settled: total=%s payments=%s shift=%s",
        sale.sale_number,
        money_str(total),
        ",".join(f"{p.method}:{money_str(p.amount)}" for p in payments),
        shift.shift_id,
    )

    cart.clear()
    splitter.reset()
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def get_sale_by_number(sale_number: str) -> Sale:
    sale = db.session.query(Sale).filter_by(sale_number=sale_number).first()
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_number": sale_number})
    return sale

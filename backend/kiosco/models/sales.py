from __future__ import annotations

from ..extensions import db
from ..pos.money import money_str
from ..pos.payments import primary_payment_method
from kiosco.time_utils import to_utc_z


class Sale(db.Model):
    """
    Settled sale.

    Written exactly once by the settlement service together with its items,
    payments, stock decrements, inventory movements and cash rows. Never
    mutated afterwards.

    PAYMENTS: the ordered sale_payments rows are the only record of how the
    sale was paid. payment_method is derived from them on read.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_number", name="uq_sales_sale_number"),
        db.Index("ix_sales_shift_created", "shift_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "V-1718040000000"
    sale_number = db.Column(db.String(64), nullable=False)

    # Operator snapshot
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    user_name = db.Column(db.String(128), nullable=True)

    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_lot = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    shift = db.relationship("Shift", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        order_by="SaleItem.position",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
    )
    payments = db.relationship(
        "SalePayment",
        order_by="SalePayment.position",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
    )

    @property
    def payment_method(self) -> str | None:
        return primary_payment_method(self.payments)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_number": self.sale_number,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "shift_id": self.shift_id,
            "items": [item.to_dict() for item in self.items],
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "payment_method": self.payment_method,
            "payments": [payment.to_dict() for payment in self.payments],
            "customer_name": self.customer_name,
            "customer_lot": self.customer_lot,
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    """Cart line snapshot. Name, category and price are copied at settlement."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "category": self.category,
            "quantity": self.quantity,
            "price": money_str(self.price),
            "subtotal": money_str(self.subtotal),
        }


class SalePayment(db.Model):
    """One channel/amount pair of a sale, in entry order."""
    __tablename__ = "sale_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    method = db.Column(db.String(32), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "amount": money_str(self.amount),
        }

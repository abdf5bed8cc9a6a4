from __future__ import annotations

from ..extensions import db
from ..pos.money import money_str
from kiosco.time_utils import to_utc_z

SHIFT_OPEN = "OPEN"
SHIFT_CLOSED = "CLOSED"


class Shift(db.Model):
    """
    Cash-drawer custody period of one operator.

    LIFECYCLE:
    - OPEN: at most one at a time; sales and cash rows attach to it
    - CLOSED: counted cash recorded verbatim with the advisory
      reconciliation (expected, difference, status)

    opening_cash is immutable once the shift is opened.
    """
    __tablename__ = "shifts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    user_name = db.Column(db.String(128), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_OPEN, index=True)

    opening_cash = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    # Set when closing
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    closing_cash = db.Column(db.Numeric(12, 2), nullable=True)
    expected_cash = db.Column(db.Numeric(12, 2), nullable=True)
    difference = db.Column(db.Numeric(12, 2), nullable=True)  # closing - expected
    reconciliation_status = db.Column(db.String(16), nullable=True)  # balanced, surplus, shortfall
    notes = db.Column(db.Text, nullable=True)

    user = db.relationship("User", backref=db.backref("shifts", lazy=True))

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "status": self.status,
            "opening_cash": money_str(self.opening_cash),
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date) if self.end_date else None,
            "closing_cash": money_str(self.closing_cash),
            "expected_cash": money_str(self.expected_cash),
            "difference": money_str(self.difference),
            "reconciliation_status": self.reconciliation_status,
            "notes": self.notes,
        }


class CashTransaction(db.Model):
    """
    Append-only cash-desk ledger row.

    Sale settlement writes one income row (category "venta") per payment
    channel used; operators add manual income/expense rows (tips,
    withdrawals, adjustments).
    """
    __tablename__ = "cash_transactions"
    __table_args__ = (
        db.Index("ix_cash_transactions_shift_created", "shift_id", "created_at"),
        db.CheckConstraint("amount > 0", name="ck_cash_transactions_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # income, expense
    category = db.Column(db.String(128), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False, default="")

    # Set for rows written by sale settlement
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    shift = db.relationship("Shift", backref=db.backref("cash_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "type": self.type,
            "category": self.category,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "description": self.description,
            "sale_id": self.sale_id,
            "created_at": to_utc_z(self.created_at),
        }

# Overview: Cash-drawer shift lifecycle: open, current context, close with count, summary.

"""
Shift Service

WHY: Each shift is a period of accountability for one operator. Sales and
cash rows attach to the open shift; closing it records the counted drawer
cash against what the ledger says should be there.

DESIGN:
- At most one OPEN shift at a time
- opening_cash is fixed when the shift opens
- Closing accepts the counted cash verbatim and stores the advisory
  reconciliation (expected, difference, status). A mismatch never blocks
  the close.
- IMMUTABLE: Once closed, a shift cannot be reopened or modified.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..errors import InvalidState, NotFoundError
from ..extensions import db
from ..models import CashTransaction, Sale, Shift
from ..models.cash import SHIFT_CLOSED, SHIFT_OPEN
from ..permissions import AuthContext
from ..pos.ledger import BALANCED, CashLedger
from ..pos.money import money_str, to_decimal
from ..validation import require_non_negative_amount
from .concurrency import lock_for_update
from kiosco.time_utils import to_utc_z, utcnow


@dataclass(frozen=True)
class ShiftContext:
    """What the POS needs to know about the open shift."""
    shift_id: int
    user_id: int | None
    user_name: str
    opening_cash: Decimal
    start_date: datetime

    def to_dict(self) -> dict:
        return {
            "shift_id": self.shift_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "opening_cash": money_str(self.opening_cash),
            "start_date": to_utc_z(self.start_date),
        }


def shift_context(shift: Shift | None) -> ShiftContext | None:
    if shift is None or not shift.is_open:
        return None
    return ShiftContext(
        shift_id=shift.id,
        user_id=shift.user_id,
        user_name=shift.user_name,
        opening_cash=to_decimal(shift.opening_cash),
        start_date=shift.start_date,
    )


def get_current_shift() -> Shift | None:
    return (
        db.session.query(Shift)
        .filter_by(status=SHIFT_OPEN)
        .order_by(Shift.start_date.desc(), Shift.id.desc())
        .first()
    )


def get_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if shift is None:
        raise NotFoundError("Shift not found", details={"shift_id": shift_id})
    return shift


def open_shift(auth: AuthContext, opening_cash) -> Shift:
    """
    Open a shift for the acting operator.

    Raises:
        InvalidState: a shift is already open, or opening_cash is negative
        ValueError: opening_cash is not a finite number
    """
    amount = to_decimal(opening_cash)
    if amount < 0:
        raise InvalidState("Opening cash cannot be negative", details={"opening_cash": money_str(amount)})

    existing = get_current_shift()
    if existing:
        raise InvalidState(
            f"A shift is already open (shift {existing.id})",
            details={"shift_id": existing.id},
        )

    shift = Shift(
        user_id=auth.user_id,
        user_name=auth.user_name,
        status=SHIFT_OPEN,
        opening_cash=amount,
        start_date=utcnow(),
    )
    db.session.add(shift)
    db.session.commit()

    current_app.logger.info("Shift %s opened by %s with %s", shift.id, shift.user_name, money_str(amount))
    return shift


def shift_transactions(shift_id: int) -> list[CashTransaction]:
    return (
        db.session.query(CashTransaction)
        .filter_by(shift_id=shift_id)
        .order_by(CashTransaction.created_at.asc(), CashTransaction.id.asc())
        .all()
    )


def shift_ledger(shift: Shift) -> CashLedger:
    return CashLedger(shift_transactions(shift.id), opening_cash=shift.opening_cash)


def close_shift(shift_id: int, counted_cash, notes: str | None = None) -> Shift:
    """
    Close a shift with the operator's drawer count.

    The count is stored as given. Expected cash, difference and the
    balanced/surplus/shortfall classification come from the shift ledger.

    Raises:
        NotFoundError: unknown shift
        InvalidState: shift already closed
        ValidationError: negative count
    """
    counted = require_non_negative_amount("counted_cash", counted_cash)

    shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
    if not shift:
        raise NotFoundError("Shift not found", details={"shift_id": shift_id})
    if shift.status != SHIFT_OPEN:
        raise InvalidState("Shift already closed", details={"shift_id": shift_id})

    result = shift_ledger(shift).reconcile(counted)

    shift.status = SHIFT_CLOSED
    shift.end_date = utcnow()
    shift.closing_cash = counted
    shift.expected_cash = result.expected_cash
    shift.difference = counted - result.expected_cash
    shift.reconciliation_status = result.status
    shift.notes = (notes or "").strip() or None

    db.session.commit()

    log = current_app.logger.info if result.status == BALANCED else current_app.logger.warning
    log(
        "Shift %s closed: expected=%s counted=%s status=%s",
        shift.id, money_str(result.expected_cash), money_str(counted), result.status,
    )
    return shift


def shift_summary(shift_id: int) -> dict:
    """Ledger figures, sale count and (once closed) the reconciliation of a shift."""
    shift = get_shift(shift_id)
    ledger = shift_ledger(shift)
    sales_count = db.session.query(Sale).filter_by(shift_id=shift.id).count()

    figures = ledger.summary()
    summary = {
        "shift": shift.to_dict(),
        "sales_count": sales_count,
        "opening_cash": money_str(figures["opening_cash"]),
        "total_income": money_str(figures["total_income"]),
        "total_expense": money_str(figures["total_expense"]),
        "balance": money_str(figures["balance"]),
        "in_box": {channel: money_str(amount) for channel, amount in figures["in_box"].items()},
        "expected_cash": money_str(figures["expected_cash"]),
        "transaction_count": figures["transaction_count"],
        "reconciliation": None,
    }
    if shift.closing_cash is not None:
        summary["reconciliation"] = {
            key: money_str(value) if key != "status" else value
            for key, value in ledger.reconcile(shift.closing_cash).to_dict().items()
        }
    return summary


def list_shifts(limit: int = 20) -> list[Shift]:
    return (
        db.session.query(Shift)
        .order_by(Shift.start_date.desc(), Shift.id.desc())
        .limit(limit)
        .all()
    )

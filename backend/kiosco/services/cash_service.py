# Overview: Cash desk operations: manual rows, period listings, balances, related sale, CSV export.

"""
Cash Desk Service

WHY: The cash_transactions table is the drawer's ledger. Sale settlement
appends income rows automatically; operators add tips, withdrawals and
adjustments here. Listings, balances and the CSV export read the same rows.

PERIODS: today, week (Monday-based), month, previous_month, all, custom.
Boundaries follow the operator's calendar in DISPLAY_TIMEZONE.
"""
from __future__ import annotations

import csv
import io
import re
from datetime import date, datetime

from flask import current_app

from ..errors import InvalidState, NotFoundError
from ..extensions import db
from ..models import CashTransaction, Sale
from ..pos.ledger import EXPENSE, INCOME, TRANSACTION_TYPES, CashLedger
from ..pos.money import money_str
from ..pos.payments import VALID_PAYMENT_METHODS
from ..validation import ValidationError, coerce_amount
from .shift_service import ShiftContext
from kiosco.time_utils import (
    format_local_date,
    format_local_time,
    period_range,
    to_local,
    utcnow,
)

CSV_HEADER = ["Date", "Time", "Type", "Category", "Amount", "Method", "Description"]
CSV_TYPE_LABELS = {INCOME: "Income", EXPENSE: "Expense"}

_SALE_REFERENCE_RE = re.compile(r"V-(\d+)")

MAX_CATEGORY_LENGTH = 128


def record_transaction(
    shift: ShiftContext | None,
    *,
    tx_type: str,
    category: str,
    amount,
    payment_method: str,
    description: str | None = None,
) -> CashTransaction:
    """
    Append a manual income/expense row to the open shift.

    Raises:
        InvalidState: no open shift
        ValidationError: bad type, method, category or amount <= 0
    """
    if shift is None:
        raise InvalidState("No open shift")

    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of {list(TRANSACTION_TYPES)}")
    if payment_method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {list(VALID_PAYMENT_METHODS)}")

    category = (category or "").strip()
    if not category:
        raise ValidationError("category cannot be blank")
    if len(category) > MAX_CATEGORY_LENGTH:
        raise ValidationError(f"category exceeds max length {MAX_CATEGORY_LENGTH}")

    value = coerce_amount("amount", amount)
    if value <= 0:
        raise ValidationError("amount must be > 0")

    tx = CashTransaction(
        shift_id=shift.shift_id,
        type=tx_type,
        category=category,
        amount=value,
        payment_method=payment_method,
        description=(description or "").strip(),
        created_at=utcnow(),
    )
    db.session.add(tx)
    db.session.commit()

    current_app.logger.info(
        "Cash %s recorded on shift %s: %s %s (%s)",
        tx_type, shift.shift_id, money_str(value), payment_method, category,
    )
    return tx


def list_transactions(
    period: str = "today",
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    now: datetime | None = None,
) -> list[CashTransaction]:
    """Rows created inside the period, newest first."""
    try:
        start, end = period_range(
            period,
            current_app.config["DISPLAY_TIMEZONE"],
            now=now,
            date_from=date_from,
            date_to=date_to,
        )
    except ValueError as e:
        raise ValidationError(str(e))

    return (
        db.session.query(CashTransaction)
        .filter(CashTransaction.created_at >= start, CashTransaction.created_at <= end)
        .order_by(CashTransaction.created_at.desc(), CashTransaction.id.desc())
        .all()
    )


def _totals(ledger: CashLedger) -> dict:
    return {
        "total_income": money_str(ledger.income_total()),
        "total_expense": money_str(ledger.expense_total()),
        "balance": money_str(ledger.balance),
    }


def period_overview(
    period: str = "today",
    *,
    shift: ShiftContext | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Cash desk view for a period.

    - transactions: every row in the period
    - shift: totals and per-channel balances of the rows in the period
      that belong to the open shift (None without a shift)
    - month: month-to-date totals over all shifts
    """
    rows = list_transactions(period, date_from=date_from, date_to=date_to, now=now)
    month_rows = list_transactions("month", now=now)

    shift_figures = None
    if shift is not None:
        shift_ledger = CashLedger(
            [row for row in rows if row.shift_id == shift.shift_id],
            opening_cash=shift.opening_cash,
        )
        shift_figures = _totals(shift_ledger)
        shift_figures["in_box"] = {
            channel: money_str(amount) for channel, amount in shift_ledger.in_box_by_channel().items()
        }
        shift_figures["expected_cash"] = money_str(shift_ledger.expected_cash)

    return {
        "period": period,
        "transactions": [row.to_dict() for row in rows],
        "count": len(rows),
        "period_totals": _totals(CashLedger(rows)),
        "shift": shift_figures,
        "month": _totals(CashLedger(month_rows)),
    }


def get_transaction(tx_id: int) -> CashTransaction:
    tx = db.session.get(CashTransaction, tx_id)
    if tx is None:
        raise NotFoundError("Transaction not found", details={"transaction_id": tx_id})
    return tx


def related_sale(tx_id: int) -> Sale | None:
    """
    Sale a cash row came from: its sale_id link, or failing that the first
    "V-<digits>" reference in its description. None when neither resolves.
    """
    tx = get_transaction(tx_id)

    if tx.sale_id is not None:
        sale = db.session.get(Sale, tx.sale_id)
        if sale is not None:
            return sale

    match = _SALE_REFERENCE_RE.search(tx.description or "")
    if not match:
        return None
    return db.session.query(Sale).filter_by(sale_number=f"V-{match.group(1)}").first()


def export_filename(now: datetime | None = None) -> str:
    local = to_local(now or utcnow(), current_app.config["DISPLAY_TIMEZONE"])
    return f"cash_transactions_{local.date().isoformat()}.csv"


def export_csv(rows) -> str:
    """
    CSV text of the given rows, every cell quoted.

    Date is d/m/yyyy and time 24h, both in DISPLAY_TIMEZONE.

    Raises InvalidState when there is nothing to export.
    """
    rows = list(rows)
    if not rows:
        raise InvalidState("No transactions to export")

    tz_name = current_app.config["DISPLAY_TIMEZONE"]
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow([
            format_local_date(row.created_at, tz_name),
            format_local_time(row.created_at, tz_name),
            CSV_TYPE_LABELS.get(row.type, row.type),
            row.category,
            money_str(row.amount),
            row.payment_method,
            row.description or "",
        ])
    return buffer.getvalue()

# Overview: Dashboard metrics: in-box per channel, tracked product counters, top product.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleItem
from ..pos.money import money_str
from ..pos.ledger import CashLedger
from ..pos.payments import CASH, CHANNELS
from .settings_service import get_business_name
from .shift_service import ShiftContext, shift_transactions
from kiosco.time_utils import period_range


def _items_since(start: datetime) -> list[SaleItem]:
    return (
        db.session.query(SaleItem)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(Sale.created_at >= start)
        .order_by(Sale.created_at.asc(), Sale.id.asc(), SaleItem.position.asc())
        .all()
    )


def keyword_counts(items, keywords) -> dict[str, int]:
    """Units sold per keyword; a keyword matches a case-insensitive substring of the product name."""
    counts = {keyword: 0 for keyword in keywords}
    for item in items:
        name = item.product_name.lower()
        for keyword in keywords:
            if keyword in name:
                counts[keyword] += item.quantity
    return counts


def top_product(items) -> dict:
    """Most units by product name. Ties go to the product sold first."""
    units: dict[str, int] = {}
    for item in items:
        units[item.product_name] = units.get(item.product_name, 0) + item.quantity

    name, quantity = "-", 0
    for product_name, qty in units.items():
        if qty > quantity:
            name, quantity = product_name, qty
    return {"name": name, "quantity": quantity}


def in_box(shift: ShiftContext | None) -> dict[str, str]:
    """Per-channel balance of the open shift; cash includes the opening cash."""
    if shift is None:
        return {channel: money_str(0) for channel in CHANNELS}

    ledger = CashLedger(shift_transactions(shift.shift_id), opening_cash=shift.opening_cash)
    balances = ledger.in_box_by_channel()
    balances[CASH] = ledger.expected_cash
    return {channel: money_str(amount) for channel, amount in balances.items()}


def dashboard(shift: ShiftContext | None, *, now: datetime | None = None) -> dict:
    tz_name = current_app.config["DISPLAY_TIMEZONE"]
    keywords = current_app.config["TRACKED_PRODUCT_KEYWORDS"]

    today_start, _ = period_range("today", tz_name, now=now)
    month_start, _ = period_range("month", tz_name, now=now)

    month_items = _items_since(month_start)
    today_items = [item for item in month_items if item.sale.created_at >= today_start]

    today_counts = keyword_counts(today_items, keywords)
    month_counts = keyword_counts(month_items, keywords)

    return {
        "business_name": get_business_name(),
        "shift": shift.to_dict() if shift else None,
        "in_box": in_box(shift),
        "tracked_products": [
            {"keyword": keyword, "today": today_counts[keyword], "month": month_counts[keyword]}
            for keyword in keywords
        ],
        "top_product_month": top_product(month_items),
    }

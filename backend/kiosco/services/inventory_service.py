# Overview: Stock income recording and the inventory movement log.

"""
Inventory movement service.

WHY: Every unit entering or leaving stock leaves a trace. Sale movements
are written by the settlement service; this module records provider
income and serves the filtered log with its totals.

ATOMICITY: an income movement and its stock increment commit together
or not at all.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, RemoteWriteFailure
from ..extensions import db
from ..models import InventoryMovement, Product
from ..models.inventory import MOVEMENT_INCOME, MOVEMENT_SALE, MOVEMENT_TYPES
from ..pos.money import ZERO, money_str
from ..validation import ValidationError, require_non_negative_amount, require_positive_int
from kiosco.time_utils import parse_iso_date, utcnow

DEFAULT_PROVIDER = "Sin especificar"


@dataclass(frozen=True)
class MovementFilters:
    movement_type: str | None = None  # None means all
    product: str | None = None
    provider: str | None = None
    category: str | None = None
    start_date: date | None = None
    end_date: date | None = None

    @classmethod
    def from_args(cls, args) -> "MovementFilters":
        movement_type = (args.get("movement_type") or "").strip() or None
        if movement_type == "all":
            movement_type = None
        if movement_type is not None and movement_type not in MOVEMENT_TYPES:
            raise ValidationError(f"movement_type must be one of {list(MOVEMENT_TYPES)} or 'all'")

        try:
            start_date = parse_iso_date(args.get("start_date"))
            end_date = parse_iso_date(args.get("end_date"))
        except ValueError:
            raise ValidationError("start_date and end_date must be YYYY-MM-DD")

        return cls(
            movement_type=movement_type,
            product=(args.get("product") or "").strip() or None,
            provider=(args.get("provider") or "").strip() or None,
            category=(args.get("category") or "").strip() or None,
            start_date=start_date,
            end_date=end_date,
        )


def _local_day_start_utc(d: date, tz_name: str) -> datetime:
    local = datetime.combine(d, datetime.min.time(), tzinfo=ZoneInfo(tz_name))
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def record_income(
    *,
    product_id: int,
    quantity,
    unit_price,
    provider_name: str | None = None,
    description: str | None = None,
) -> InventoryMovement:
    """
    Receive stock from a provider.

    Appends an income movement and increments the product's stock in one
    transaction. Blank provider names are stored as "Sin especificar".
    """
    product_id = require_positive_int("product_id", product_id)
    quantity = require_positive_int("quantity", quantity)
    unit_price = require_non_negative_amount("unit_price", unit_price)

    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})

    movement = InventoryMovement(
        product_id=product.id,
        product_name=product.name,
        category=product.category,
        movement_type=MOVEMENT_INCOME,
        quantity=quantity,
        unit_price=unit_price,
        total_amount=unit_price * quantity,
        provider_name=(provider_name or "").strip() or DEFAULT_PROVIDER,
        description=(description or "").strip() or None,
        created_at=utcnow(),
    )

    try:
        db.session.add(movement)
        db.session.execute(
            update(Product)
            .where(Product.id == product.id)
            .values(stock=Product.stock + quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Failed to record stock income for product %s", product_id)
        raise RemoteWriteFailure("Could not record stock income") from e

    current_app.logger.info(
        "Stock income: product=%s qty=%s provider=%r", product_id, quantity, movement.provider_name
    )
    return movement


def list_movements(filters: MovementFilters | None = None) -> list[InventoryMovement]:
    """
    Movements newest first.

    Text filters are case-insensitive substrings; category is exact. Date
    bounds are inclusive whole days in the display timezone.
    """
    filters = filters or MovementFilters()
    query = db.session.query(InventoryMovement)

    if filters.movement_type:
        query = query.filter(InventoryMovement.movement_type == filters.movement_type)
    if filters.product:
        query = query.filter(InventoryMovement.product_name.ilike(f"%{filters.product}%"))
    if filters.provider:
        query = query.filter(InventoryMovement.provider_name.ilike(f"%{filters.provider}%"))
    if filters.category:
        query = query.filter(InventoryMovement.category == filters.category)

    tz_name = current_app.config["DISPLAY_TIMEZONE"]
    if filters.start_date:
        query = query.filter(InventoryMovement.created_at >= _local_day_start_utc(filters.start_date, tz_name))
    if filters.end_date:
        next_day = filters.end_date + timedelta(days=1)
        query = query.filter(InventoryMovement.created_at < _local_day_start_utc(next_day, tz_name))

    return query.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc()).all()


def movement_stats(movements) -> dict:
    """Totals over an already filtered list of movements."""
    total_income = ZERO
    total_sales = ZERO
    income_count = 0
    sales_count = 0

    for m in movements:
        amount = Decimal(m.total_amount)
        if m.movement_type == MOVEMENT_INCOME:
            total_income += amount
            income_count += 1
        elif m.movement_type == MOVEMENT_SALE:
            total_sales += amount
            sales_count += 1

    return {
        "total_income": money_str(total_income),
        "total_sales": money_str(total_sales),
        "net": money_str(total_sales - total_income),
        "income_count": income_count,
        "sales_count": sales_count,
        "count": income_count + sales_count,
    }


def list_providers() -> list[str]:
    rows = (
        db.session.query(InventoryMovement.provider_name)
        .filter(InventoryMovement.provider_name.isnot(None))
        .distinct()
        .all()
    )
    return sorted((name for (name,) in rows if name), key=str.casefold)

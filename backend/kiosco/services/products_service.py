# backend/kiosco/services/products_service.py
"""
Catalog Service

Product listing (search, sorting, stock status, recent sales), code
suggestion and CRUD.

PERMISSIONS: changing stock through an edit needs ADJUST_STOCK and
deleting needs DELETE_PRODUCT, both checked on the AuthContext the caller
passes in. Stock received from providers goes through inventory_service
instead.
"""
from __future__ import annotations

from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateCode, NotFoundError
from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..models.catalog import PREDEFINED_CATEGORIES
from ..permissions import ADJUST_STOCK, DELETE_PRODUCT, AuthContext
from kiosco.time_utils import utcnow

PRODUCT_MUTABLE_FIELDS = {
    "code", "name", "description", "category",
    "price", "cost", "stock", "min_stock", "active",
}

SORT_OPTIONS = ("alphabetical", "category", "stock-status")

STOCK_STATUS_ORDER = {"none": 0, "low": 1, "medium": 2, "high": 3}

RECENT_SALES_WINDOW = timedelta(days=7)


def stock_status(product) -> str:
    """
    Stock level bucket:
    - none: out of stock
    - low: at or below min_stock
    - medium: at or below twice min_stock
    - high: anything above
    """
    if product.stock == 0:
        return "none"
    if product.stock <= product.min_stock:
        return "low"
    if product.stock <= product.min_stock * 2:
        return "medium"
    return "high"


def _name_key(product) -> str:
    return product.name.casefold()


def _sort_products(products: list[Product], sort: str) -> list[Product]:
    if sort == "category":
        return sorted(products, key=lambda p: ((p.category or "").casefold(), _name_key(p)))
    if sort == "stock-status":
        return sorted(products, key=lambda p: (STOCK_STATUS_ORDER[stock_status(p)], _name_key(p)))
    return sorted(products, key=_name_key)


def units_sold_since(since) -> dict[int, int]:
    """product_id -> units sold in sales created at or after `since`."""
    rows = (
        db.session.query(SaleItem.product_id, func.sum(SaleItem.quantity))
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(Sale.created_at >= since, SaleItem.product_id.isnot(None))
        .group_by(SaleItem.product_id)
        .all()
    )
    return {product_id: int(qty or 0) for product_id, qty in rows}


def _product_row(p: Product, sold: dict[int, int]) -> dict:
    row = p.to_dict()
    row["stock_status"] = stock_status(p)
    row["sold_last_7_days"] = sold.get(p.id, 0)
    return row


def list_products(search: str | None = None, sort: str = "alphabetical") -> dict:
    """
    Full catalog for the stock view.

    `search` matches name, code or category (case-insensitive substring).
    Every row carries stock_status and sold_last_7_days. low_stock lists
    products at or below their minimum regardless of the search.
    """
    if sort not in SORT_OPTIONS:
        raise ValueError(f"Invalid sort: {sort}. Must be one of {list(SORT_OPTIONS)}")

    products = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()
    sold = units_sold_since(utcnow() - RECENT_SALES_WINDOW)

    term = (search or "").strip().casefold()
    if term:
        visible = [
            p for p in products
            if term in p.name.casefold()
            or term in p.code.casefold()
            or term in (p.category or "").casefold()
        ]
    else:
        visible = products

    items = [_product_row(p, sold) for p in _sort_products(visible, sort)]
    return {
        "items": items,
        "count": len(items),
        "low_stock": [_product_row(p, sold) for p in products if p.stock <= p.min_stock],
    }


def list_low_stock() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.stock <= Product.min_stock)
        .order_by(Product.name.asc())
        .all()
    )


def list_for_sale(category: str | None = None, search: str | None = None) -> list[Product]:
    """Active products with stock, optionally narrowed by category and name."""
    query = db.session.query(Product).filter(Product.active.is_(True), Product.stock > 0)
    if category:
        query = query.filter(Product.category == category)
    if search and search.strip():
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Product.name.asc()).all()


def list_categories() -> list[str]:
    """Predefined categories first, then any other category in use, sorted."""
    used = {
        c for (c,) in db.session.query(Product.category).filter(Product.category.isnot(None)).distinct()
        if c and c.strip()
    }
    extra = sorted(used - set(PREDEFINED_CATEGORIES), key=str.casefold)
    return list(PREDEFINED_CATEGORIES) + extra


def suggest_code() -> str:
    """
    Next product code: the largest positive numeric code + 1, zero-padded
    to 4 digits ("0001"). Without numeric codes, "P-<count + 1>".
    """
    codes = [code for (code,) in db.session.query(Product.code).all()]
    numeric = [int(code) for code in codes if code.strip().isdigit() and int(code) > 0]
    if numeric:
        return str(max(numeric) + 1).zfill(4)
    return f"P-{len(codes) + 1}"


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def _ensure_code_available(code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.code == code)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise DuplicateCode("Code already in use", details={"code": code})


def _commit_catalog_write(code: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateCode("Code already in use", details={"code": code})


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def create_product(*, patch: dict) -> Product:
    """Create from a validated patch. Initial stock needs no extra capability."""
    code = patch["code"]
    _ensure_code_available(code)

    product = Product(active=True)
    apply_product_patch(product, patch)
    product.updated_at = utcnow()
    db.session.add(product)
    _commit_catalog_write(code)
    return product


def update_product(product_id: int, *, patch: dict, auth: AuthContext) -> Product:
    """
    Apply a validated patch.

    A patch whose stock differs from the stored stock requires ADJUST_STOCK;
    without it nothing is written.
    """
    product = get_product(product_id)

    if "stock" in patch and patch["stock"] != product.stock:
        auth.require(ADJUST_STOCK)

    if "code" in patch:
        _ensure_code_available(patch["code"], exclude_id=product.id)

    apply_product_patch(product, patch)
    product.updated_at = utcnow()
    _commit_catalog_write(product.code)
    return product


def delete_product(product_id: int, *, auth: AuthContext) -> None:
    auth.require(DELETE_PRODUCT)
    product = get_product(product_id)
    db.session.delete(product)
    db.session.commit()


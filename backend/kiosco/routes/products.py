# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/kiosco/routes/products.py
"""
Catalog routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Write operations require MANAGE_PRODUCTS permission
- Stock edits and deletion are additionally checked against the caller's
  AuthContext (ADJUST_STOCK / DELETE_PRODUCT) inside the service
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import PosError
from ..models import Product
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "code", "name", "description", "category",
        "price", "cost", "stock", "min_stock", "active",
    },
    required_on_create={"code", "name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    Stock view listing.

    Query params:
    - search: str (optional) - substring of name, code or category
    - sort: alphabetical | category | stock-status (default alphabetical)
    """
    try:
        return products_service.list_products(
            search=request.args.get("search"),
            sort=request.args.get("sort", "alphabetical"),
        )
    except ValueError as e:
        return {"error": str(e)}, 400


@products_bp.get("/for-sale")
@require_auth
@require_permission("CREATE_SALE")
def list_for_sale():
    """Active products with stock for the POS picker (?category=, ?search=)."""
    products = products_service.list_for_sale(
        category=request.args.get("category"),
        search=request.args.get("search"),
    )
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_low_stock():
    products = products_service.list_low_stock()
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/categories")
@require_auth
def list_categories():
    return {"categories": products_service.list_categories()}


@products_bp.get("/suggest-code")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def suggest_code():
    return {"code": products_service.suggest_code()}


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """Partial update. Changing stock requires ADJUST_STOCK."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id, patch=patch, auth=g.auth)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Requires DELETE_PRODUCT."""
    try:
        products_service.delete_product(product_id, auth=g.auth)
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200

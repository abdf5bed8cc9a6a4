# Overview: Flask API routes for sale settlement and lookup; parses input and returns JSON responses.

"""
Sales routes.

POST /api/sales settles a cart in one call:

    {
      "items": [{"product_id": 1, "quantity": 2, "price": "150.00"}],
      "payments": {"efectivo": "200", "transferencia": "100"},
      "customer_name": "Ana",
      "customer_lot": "12"
    }

"price" is an optional per-line override. Omitted or all-zero payments
mean the whole total is paid in cash.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import PosError
from ..pos.payments import PaymentSplitter
from ..services import settlement_service, shift_service
from ..validation import ValidationError

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def settle_sale_route():
    payload = request.get_json(silent=True) or {}

    try:
        cart = settlement_service.build_cart(payload.get("items") or [])

        payments = payload.get("payments") or {}
        if not isinstance(payments, dict):
            raise ValidationError("payments must be an object of channel -> amount")
        try:
            splitter = PaymentSplitter.from_mapping(payments)
        except ValueError as e:
            raise ValidationError(str(e))
        splitter.on_total_changed(cart.total)

        shift = shift_service.shift_context(shift_service.get_current_shift())
        sale = settlement_service.settle_sale(
            cart,
            splitter,
            shift,
            customer_name=payload.get("customer_name"),
            customer_lot=payload.get("customer_lot"),
            auth=g.auth,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to settle sale")
        return {"error": "Internal server error"}, 500

    return sale.to_dict(), 201


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_REPORTS")
def get_sale_route(sale_id: int):
    try:
        return settlement_service.get_sale(sale_id).to_dict()
    except PosError as e:
        return e.to_dict(), e.http_status


@sales_bp.get("/by-number/<sale_number>")
@require_auth
@require_permission("VIEW_REPORTS")
def get_sale_by_number_route(sale_number: str):
    try:
        return settlement_service.get_sale_by_number(sale_number).to_dict()
    except PosError as e:
        return e.to_dict(), e.http_status

# Overview: Flask API routes for inventory movements; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from ..decorators import require_auth, require_permission
from ..errors import PosError
from ..services import inventory_service
from ..services.inventory_service import MovementFilters
from ..validation import ValidationError

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/movements")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_movements_route():
    """
    Movement log with totals.

    Query params (all optional):
    - movement_type: income | sale | all
    - product, provider: case-insensitive substring
    - category: exact match
    - start_date, end_date: YYYY-MM-DD, inclusive
    """
    try:
        filters = MovementFilters.from_args(request.args)
    except ValidationError as e:
        return {"error": str(e)}, 400

    movements = inventory_service.list_movements(filters)
    return {
        "items": [m.to_dict() for m in movements],
        "stats": inventory_service.movement_stats(movements),
        "providers": inventory_service.list_providers(),
    }


@inventory_bp.post("/movements")
@require_auth
@require_permission("RECEIVE_INVENTORY")
def record_income_route():
    """
    Receive stock from a provider.

    Body: product_id, quantity, unit_price, provider_name?, description?
    """
    payload = request.get_json(silent=True) or {}

    try:
        movement = inventory_service.record_income(
            product_id=payload.get("product_id"),
            quantity=payload.get("quantity"),
            unit_price=payload.get("unit_price"),
            provider_name=payload.get("provider_name"),
            description=payload.get("description"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record stock income")
        return {"error": "Internal server error"}, 500

    return movement.to_dict(), 201

# Overview: Flask API routes for the shift lifecycle; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_permission
from ..errors import PosError
from ..services import shift_service
from ..validation import ValidationError

shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("/open")
@require_auth
@require_permission("MANAGE_SHIFT")
def open_shift_route():
    """Body: opening_cash (defaults to 0)."""
    payload = request.get_json(silent=True) or {}

    try:
        shift = shift_service.open_shift(g.auth, payload.get("opening_cash", 0))
    except ValueError as e:
        return {"error": str(e)}, 400
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return {"error": "Internal server error"}, 500

    return shift.to_dict(), 201


@shifts_bp.get("/current")
@require_auth
def current_shift_route():
    shift = shift_service.get_current_shift()
    return {"shift": shift.to_dict() if shift else None}


@shifts_bp.post("/<int:shift_id>/close")
@require_auth
@require_permission("MANAGE_SHIFT")
def close_shift_route(shift_id: int):
    """
    Close with the counted drawer cash.

    Body: counted_cash (required, >= 0), notes (optional). The response
    carries the stored reconciliation; a surplus or shortfall does not
    block the close.
    """
    payload = request.get_json(silent=True) or {}
    if "counted_cash" not in payload:
        return {"error": "counted_cash is required"}, 400

    try:
        shift = shift_service.close_shift(shift_id, payload["counted_cash"], payload.get("notes"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return {"error": "Internal server error"}, 500

    return shift.to_dict(), 200


@shifts_bp.get("/<int:shift_id>/summary")
@require_auth
@require_permission("VIEW_REPORTS")
def shift_summary_route(shift_id: int):
    try:
        return shift_service.shift_summary(shift_id)
    except PosError as e:
        return e.to_dict(), e.http_status

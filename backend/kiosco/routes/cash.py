# Overview: Flask API routes for the cash desk; parses input and returns JSON responses.

from flask import Blueprint, Response, current_app, request

from ..decorators import require_auth, require_permission
from ..errors import PosError
from ..services import cash_service, shift_service
from ..validation import ValidationError
from kiosco.time_utils import parse_iso_date

cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


def _period_args() -> dict:
    try:
        return {
            "period": request.args.get("period", "today"),
            "date_from": parse_iso_date(request.args.get("date_from")),
            "date_to": parse_iso_date(request.args.get("date_to")),
        }
    except ValueError:
        raise ValidationError("date_from and date_to must be YYYY-MM-DD")


@cash_bp.get("/transactions")
@require_auth
@require_permission("VIEW_REPORTS")
def list_transactions_route():
    """
    Cash rows of a period with period, open-shift and month-to-date totals.

    Query params:
    - period: today | week | month | previous_month | all | custom
    - date_from, date_to: YYYY-MM-DD (custom only, end day inclusive)
    """
    try:
        args = _period_args()
        shift = shift_service.shift_context(shift_service.get_current_shift())
        return cash_service.period_overview(
            args["period"],
            shift=shift,
            date_from=args["date_from"],
            date_to=args["date_to"],
        )
    except ValidationError as e:
        return {"error": str(e)}, 400


@cash_bp.post("/transactions")
@require_auth
@require_permission("MANAGE_CASH")
def record_transaction_route():
    """Body: type, category, amount, payment_method, description?"""
    payload = request.get_json(silent=True) or {}

    try:
        shift = shift_service.shift_context(shift_service.get_current_shift())
        tx = cash_service.record_transaction(
            shift,
            tx_type=payload.get("type"),
            category=payload.get("category"),
            amount=payload.get("amount"),
            payment_method=payload.get("payment_method", "efectivo"),
            description=payload.get("description"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PosError as e:
        return e.to_dict(), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record cash transaction")
        return {"error": "Internal server error"}, 500

    return tx.to_dict(), 201


@cash_bp.get("/transactions/<int:tx_id>/sale")
@require_auth
@require_permission("VIEW_REPORTS")
def related_sale_route(tx_id: int):
    try:
        sale = cash_service.related_sale(tx_id)
    except PosError as e:
        return e.to_dict(), e.http_status
    return {"sale": sale.to_dict() if sale else None}


@cash_bp.get("/export.csv")
@require_auth
@require_permission("VIEW_REPORTS")
def export_csv_route():
    """CSV of the same rows GET /transactions lists for the period."""
    try:
        args = _period_args()
        rows = cash_service.list_transactions(
            args["period"], date_from=args["date_from"], date_to=args["date_to"]
        )
        content = cash_service.export_csv(rows)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PosError as e:
        return e.to_dict(), e.http_status

    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{cash_service.export_filename()}"'},
    )

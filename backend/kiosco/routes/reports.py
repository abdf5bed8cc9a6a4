# Overview: Flask API routes for the dashboard.

from flask import Blueprint

from ..decorators import require_auth, require_permission
from ..services import reporting_service, shift_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
@require_permission("VIEW_REPORTS")
def dashboard_route():
    shift = shift_service.shift_context(shift_service.get_current_shift())
    return reporting_service.dashboard(shift)

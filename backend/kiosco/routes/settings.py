# Overview: Flask API routes for business configuration.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services import settings_service
from ..validation import ValidationError

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/business-name")
@require_auth
def get_business_name_route():
    return {"business_name": settings_service.get_business_name()}


@settings_bp.put("/business-name")
@require_auth
@require_permission("MANAGE_SETTINGS")
def set_business_name_route():
    payload = request.get_json(silent=True) or {}
    try:
        name = settings_service.set_business_name(payload.get("business_name"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"business_name": name}
